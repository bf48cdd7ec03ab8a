"""Translation of LambdaLabs HTTP failures into the common error taxonomy."""

from __future__ import annotations

from nodeplane.errors import (
    BadRequestError,
    CapacityExhaustedError,
    Error,
    ForbiddenError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
    UnknownError,
)
from nodeplane.infra.http import HttpError
from nodeplane.types import RuntimeProvider

PROVIDER = RuntimeProvider.LAMBDALABS

CREDENTIALS_SUGGESTION = "Make sure your LambdaLabs credentials are up to date"
STATUS_PAGE_SUGGESTION = (
    "LambdaLabs might be experiencing issues. "
    "Check the service status page at https://status.lambdalabs.com/"
)


def bad_request(msg: str, cause: BaseException | None = None) -> BadRequestError:
    return BadRequestError(msg, provider=PROVIDER, cause=cause)


def unauthorized(msg: str, cause: BaseException | None = None) -> UnauthorizedError:
    return UnauthorizedError(
        msg, provider=PROVIDER, suggestion=CREDENTIALS_SUGGESTION, cause=cause
    )


def forbidden(msg: str, cause: BaseException | None = None) -> ForbiddenError:
    return ForbiddenError(msg, provider=PROVIDER, suggestion=CREDENTIALS_SUGGESTION, cause=cause)


def not_found(msg: str, cause: BaseException | None = None) -> NotFoundError:
    return NotFoundError(msg, provider=PROVIDER, cause=cause)


def internal(msg: str, cause: BaseException | None = None) -> InternalError:
    return InternalError(
        msg or "Unknown error",
        provider=PROVIDER,
        suggestion=STATUS_PAGE_SUGGESTION,
        cause=cause,
    )


def capacity_exhausted(
    msg: str, suggestion: str = "", cause: BaseException | None = None
) -> CapacityExhaustedError:
    return CapacityExhaustedError(msg, provider=PROVIDER, suggestion=suggestion, cause=cause)


def unknown(code: int, cause: BaseException | None = None) -> UnknownError:
    return UnknownError(code, provider=PROVIDER, cause=cause)


def is_capacity_error(err: HttpError) -> bool:
    # LambdaLabs reports a full region as a 400.
    return err.status == 400 and "available capacity" in err.message.lower()


def map_http_error(err: HttpError) -> Error:
    msg = err.message
    match err.status:
        case 400:
            return bad_request(msg, err)
        case 401:
            return unauthorized(msg, err)
        case 403:
            return forbidden(msg, err)
        case 404:
            return not_found(msg, err)
        case 500:
            return internal(msg, err)
        case 503:
            return capacity_exhausted(msg, cause=err)
        case code:
            return unknown(code, err)
