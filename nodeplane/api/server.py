"""HTTP surface.

A thin aiohttp router over the services. Handlers only parse requests and
render responses; every failure is rendered from the common ``Error``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeAlias
from uuid import UUID

from aiohttp import web
from loguru import logger

from nodeplane.builder import BuildService
from nodeplane.errors import BadRequestError, Error, UnauthorizedError, as_error
from nodeplane.module import Services
from nodeplane.types import RuntimeProvider, SessionCreateParams

ACCOUNT_HEADER = "X-Account-ID"

SERVICES = web.AppKey("services", Services)

Handler: TypeAlias = Callable[[web.Request], Awaitable[web.StreamResponse]]

log = logger.bind(component="api")


# ─── Errors ──────────────────────────────────────────────────────────


def _render_error(request: web.Request, err: Error) -> web.Response:
    # Server-side faults are errors, caller faults are warnings.
    if err.code >= 500 or err.code < 100:
        log.error("{method} {path}: {err}", method=request.method, path=request.path, err=err)
    else:
        log.warning("{method} {path}: {err}", method=request.method, path=request.path, err=err)
    status = err.code if 400 <= err.code < 600 else 500
    return web.json_response(err.to_dict(), status=status)


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        return _render_error(request, as_error(e))


# ─── Request helpers ─────────────────────────────────────────────────


def _uuid(value: str, what: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise BadRequestError(f"Invalid {what}: {value}") from None


def _account_id(request: web.Request) -> UUID:
    raw = request.headers.get(ACCOUNT_HEADER)
    if not raw:
        raise UnauthorizedError("Missing account", suggestion=f"Set the {ACCOUNT_HEADER} header")
    return _uuid(raw, "account id")


async def _json_body(request: web.Request) -> dict[str, Any]:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except ValueError as e:
        raise BadRequestError("Invalid request body", cause=e) from e
    if not isinstance(body, dict):
        raise BadRequestError("Invalid request body: expected a JSON object")
    return body


def _flag(request: web.Request, name: str) -> bool:
    return request.query.get(name) == "true"


def _services(request: web.Request) -> Services:
    return request.app[SERVICES]


# ─── Sessions ────────────────────────────────────────────────────────


async def sessions_create(request: web.Request) -> web.Response:
    services = _services(request)
    account_id = _account_id(request)
    project_id = _uuid(request.match_info["project_id"], "project id")
    params = SessionCreateParams.from_dict(await _json_body(request))

    session = await services.sessions.create(account_id, project_id, params)
    try:
        await services.sessions.watch(session.id)
    except Error as e:
        log.bind(session_id=str(session.id)).error("Failed to watch session: {err}", err=e)
    return web.json_response(session.to_dict())


async def sessions_list(request: web.Request) -> web.Response:
    _account_id(request)
    project_id = _uuid(request.match_info["project_id"], "project id")
    sessions = await _services(request).sessions.list(project_id, _flag(request, "terminated"))
    return web.json_response({"sessions": [s.to_dict() for s in sessions]})


async def sessions_get(request: web.Request) -> web.Response:
    _account_id(request)
    session_id = _uuid(request.match_info["session_id"], "session id")
    session = await _services(request).sessions.get(session_id)
    return web.json_response({"session": session.to_dict()})


async def sessions_terminate(request: web.Request) -> web.Response:
    _account_id(request)
    session_id = _uuid(request.match_info["session_id"], "session id")
    await _services(request).sessions.terminate(session_id)
    return web.json_response({"success": True})


# ─── SSH keys ────────────────────────────────────────────────────────


async def ssh_keys_add(request: web.Request) -> web.Response:
    account_id = _account_id(request)
    body = await _json_body(request)
    public_key = body.get("publicKey")
    if not public_key:
        raise BadRequestError("Invalid request body: field 'publicKey' is required")
    await _services(request).ssh_keys.add(account_id, public_key, body.get("name"))
    return web.json_response({"success": True})


async def ssh_keys_generate(request: web.Request) -> web.Response:
    account_id = _account_id(request)
    body = await _json_body(request)
    key = await _services(request).ssh_keys.generate(account_id, body.get("name"))
    return web.json_response(key.to_dict())


async def ssh_keys_list(request: web.Request) -> web.Response:
    account_id = _account_id(request)
    keys = await _services(request).ssh_keys.list(account_id)
    return web.json_response({"keys": [k.to_dict() for k in keys]})


# ─── Providers ───────────────────────────────────────────────────────


async def node_types_list(request: web.Request) -> web.Response:
    account_id = _account_id(request)
    provider = RuntimeProvider.parse(request.match_info["provider"])
    node_types = await _services(request).catalog.list_node_types(
        account_id, provider, available_only=_flag(request, "available")
    )
    return web.json_response({"nodeTypes": [nt.to_dict() for nt in node_types]})


# ─── Builds ──────────────────────────────────────────────────────────


def build_routes(builds: BuildService) -> list[web.RouteDef]:
    """Build routes, mounted only when a builder is configured."""

    async def builds_create(request: web.Request) -> web.Response:
        account_id = _account_id(request)
        project_id = _uuid(request.match_info["project_id"], "project id")
        context = await request.read()
        if not context:
            raise BadRequestError("Invalid request body: build context is required")
        build_id = await builds.create(account_id, project_id, context)
        return web.json_response({"buildID": build_id})

    async def builds_get(request: web.Request) -> web.Response:
        _account_id(request)
        info = await builds.get(request.match_info["build_id"], logs=_flag(request, "logs"))
        return web.json_response(info.to_dict())

    return [
        web.post("/projects/{project_id}/builds", builds_create),
        web.get("/builds/{build_id}", builds_get),
    ]


# ─── App ─────────────────────────────────────────────────────────────


def create_app(services: Services) -> web.Application:
    app = web.Application(middlewares=[error_middleware])
    app[SERVICES] = services

    app.router.add_post("/projects/{project_id}/sessions", sessions_create)
    app.router.add_get("/projects/{project_id}/sessions", sessions_list)
    app.router.add_get("/sessions/{session_id}", sessions_get)
    app.router.add_put("/sessions/{session_id}/terminate", sessions_terminate)

    app.router.add_post("/ssh-keys", ssh_keys_add)
    app.router.add_post("/ssh-keys/generate", ssh_keys_generate)
    app.router.add_get("/ssh-keys", ssh_keys_list)

    app.router.add_get("/providers/{provider}/node-types", node_types_list)

    if services.builds is not None:
        app.router.add_routes(build_routes(services.builds))

    async def stop_watchers(_app: web.Application) -> None:
        await services.sessions.close()

    app.on_cleanup.append(stop_watchers)
    return app


__all__ = ["ACCOUNT_HEADER", "SERVICES", "build_routes", "create_app", "error_middleware"]
