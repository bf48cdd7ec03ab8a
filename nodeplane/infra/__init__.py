"""Transport infrastructure shared by provider adapters."""

from .http import BearerAuth, HttpClient, HttpError, TRANSPORT_FAILURE

__all__ = ["BearerAuth", "HttpClient", "HttpError", "TRANSPORT_FAILURE"]
