"""JSON-over-HTTP transport for provider REST APIs.

Provider clients talk to their vendor through ``HttpClient``. It owns one
lazily created ``aiohttp.ClientSession``, injects auth headers, optionally
unwraps a success envelope (``{"data": ...}``) and turns every failure into
``HttpError``. Mapping ``HttpError`` onto the error taxonomy is left to the
provider adapter, which knows what each status means for its vendor.
"""

from __future__ import annotations

import json as jsonlib
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable, TypeAlias

import aiohttp
from loguru import logger

JsonBody: TypeAlias = dict[str, Any] | list[Any]

TRANSPORT_FAILURE = 0


@dataclass(frozen=True, slots=True)
class HttpError(Exception):
    """Non-2xx response, or ``TRANSPORT_FAILURE`` when no response arrived."""

    status: int
    body: str
    method: str = ""
    path: str = ""

    def __str__(self) -> str:
        where = f"{self.method} {self.path} " if self.method else ""
        return f"{where}HTTP {self.status}: {self.body}"

    @property
    def payload(self) -> Any:
        try:
            return jsonlib.loads(self.body)
        except ValueError:
            return None

    @property
    def message(self) -> str:
        """Vendor message from an ``{"error": ...}`` body, else the raw body."""
        match self.payload:
            case {"error": {"message": str(msg)}}:
                return msg
            case {"error": str(msg)}:
                return msg
            case _:
                return self.body


@runtime_checkable
class Auth(Protocol):
    async def headers(self) -> dict[str, str]: ...


class BearerAuth:
    """Static API token, as issued by LambdaLabs and most GPU clouds."""

    def __init__(self, token: str) -> None:
        self._token = token

    async def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}


class HttpClient:
    """Minimal JSON client bound to one API root.

    Args:
        base_url: API root; request paths are appended to it.
        auth: Header source, consulted on every request.
        timeout: Total per-request timeout in seconds.
        envelope: Key of the success envelope to unwrap, e.g. ``"data"``.
            ``None`` returns bodies untouched.
        default_headers: Sent with every request.
    """

    def __init__(
        self,
        base_url: str,
        auth: Auth | None = None,
        *,
        timeout: float = 30,
        envelope: str | None = None,
        default_headers: dict[str, str] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth = auth
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._envelope = envelope
        self._headers = {"Accept": "application/json", **(default_headers or {})}
        self._session: aiohttp.ClientSession | None = None
        self._log = logger.bind(component="http")

    @property
    def base_url(self) -> str:
        return self._base_url

    def _session_for_request(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _request_headers(self) -> dict[str, str]:
        if self._auth is None:
            return self._headers
        return {**self._headers, **await self._auth.headers()}

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: JsonBody | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded (and unwrapped) JSON body.

        Empty bodies decode to ``None``.

        Raises:
            HttpError: On any status >= 400, or with ``TRANSPORT_FAILURE``
                when the request could not be completed.
        """
        session = self._session_for_request()
        headers = await self._request_headers()
        self._log.debug("{method} {path}", method=method, path=path)

        try:
            async with session.request(
                method, f"{self._base_url}{path}", headers=headers, json=json, params=params
            ) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    self._log.debug(
                        "{method} {path} returned {status}: {body}",
                        method=method, path=path, status=resp.status, body=text[:500],
                    )
                    raise HttpError(resp.status, text, method, path)
                raw = await resp.read()
        except aiohttp.ClientError as e:
            raise HttpError(TRANSPORT_FAILURE, str(e), method, path) from e
        except TimeoutError as e:
            raise HttpError(TRANSPORT_FAILURE, "request timed out", method, path) from e

        if not raw:
            return None
        try:
            body = jsonlib.loads(raw)
        except ValueError as e:
            raise HttpError(TRANSPORT_FAILURE, f"invalid JSON response: {e}", method, path) from e
        if self._envelope is not None and isinstance(body, dict):
            return body.get(self._envelope)
        return body

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: JsonBody | None = None) -> Any:
        return await self.request("POST", path, json=json)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()


__all__ = ["Auth", "BearerAuth", "HttpClient", "HttpError", "JsonBody", "TRANSPORT_FAILURE"]
