"""Error taxonomy.

Every failure that crosses a service or provider boundary is an ``Error``.
Errors are rendered directly to API consumers, so messages must describe
the problem without exposing internals. Provider adapters translate vendor
failures into these types and never let wire errors escape.

Short form::

    LambdaLabs API error: Invalid Public Key

Verbose form::

    LambdaLabs API error:
        code: 400
        message: Invalid Public Key
"""

from __future__ import annotations

from typing import Any, ClassVar

from nodeplane.types import RuntimeProvider


class Error(Exception):
    """A failure carrying an HTTP-style status code and user-facing text."""

    default_code: ClassVar[int] = 500

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        provider: RuntimeProvider | None = None,
        suggestion: str = "",
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code if code is not None else self.default_code
        self.message = message
        self.provider = provider
        self.suggestion = suggestion
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def source(self) -> str:
        return f"{self.provider.value} API" if self.provider else "API"

    def short(self) -> str:
        return f"{self.source} error: {self.message}"

    def verbose(self) -> str:
        lines = [f"{self.source} error:", f"\tcode: {self.code}", f"\tmessage: {self.message}"]
        if self.suggestion:
            lines.append(f"\tsuggestion: {self.suggestion}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "provider": self.provider.value if self.provider else "",
        }

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code}, message={self.message!r})"


class BadRequestError(Error):
    default_code = 400


class UnauthorizedError(Error):
    default_code = 401


class ForbiddenError(Error):
    default_code = 403


class NotFoundError(Error):
    default_code = 404


class InternalError(Error):
    default_code = 500


class CapacityExhaustedError(Error):
    """No region has capacity for the requested node type.

    ``suggestion`` carries the catalog snapshot at the time of failure.
    """

    default_code = 503


class UnknownError(Error):
    """Unexpected provider status. ``code`` keeps the status the provider returned."""

    def __init__(
        self,
        code: int,
        *,
        message: str = "Unknown error",
        provider: RuntimeProvider | None = None,
        suggestion: str = "",
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, code=code, provider=provider, suggestion=suggestion, cause=cause)


def as_error(exc: BaseException, fallback_message: str = "Internal server error") -> Error:
    """Return ``exc`` if it is already an ``Error``, otherwise wrap it as internal."""
    if isinstance(exc, Error):
        return exc
    return InternalError(fallback_message or "Internal server error", cause=exc)


__all__ = [
    "BadRequestError",
    "CapacityExhaustedError",
    "Error",
    "ForbiddenError",
    "InternalError",
    "NotFoundError",
    "UnauthorizedError",
    "UnknownError",
    "as_error",
]
