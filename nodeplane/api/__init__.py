from .server import ACCOUNT_HEADER, SERVICES, create_app, error_middleware

__all__ = ["ACCOUNT_HEADER", "SERVICES", "create_app", "error_middleware"]
