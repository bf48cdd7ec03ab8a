from .names import random_phrase

__all__ = ["random_phrase"]
