"""Runtime initializers.

An initializer is the single place a ``RuntimeProvider`` is turned into a
concrete ``Runtime``. New vendors are wired in here and nowhere else.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Protocol, runtime_checkable, TypeAlias
from uuid import UUID

from loguru import logger

from nodeplane.errors import BadRequestError, UnauthorizedError
from nodeplane.providers.lambdalabs.config import API_KEY_ENV, LambdaLabs
from nodeplane.types import RuntimeProvider

from .base import Runtime

log = logger.bind(component="initializer")


@runtime_checkable
class Initializer(Protocol):
    async def initialize(self, account_id: UUID, provider: RuntimeProvider) -> Runtime:
        """Build a ready runtime for ``provider`` on behalf of ``account_id``."""
        ...


class EnvInitializer:
    """Builds runtimes from locally configured credentials.

    Only meant for development and self-hosting: every account shares the
    credentials found in the config file or the environment.
    """

    def __init__(self, lambdalabs: LambdaLabs | None = None) -> None:
        self._lambdalabs = lambdalabs or LambdaLabs()

    async def initialize(self, account_id: UUID, provider: RuntimeProvider) -> Runtime:
        log.debug("Initializing {provider} runtime", provider=provider.value)

        match provider:
            case RuntimeProvider.LAMBDALABS:
                from nodeplane.providers.lambdalabs.provider import LambdaLabsRuntime

                api_key = self._lambdalabs.resolved_api_key()
                if not api_key:
                    raise UnauthorizedError(
                        "Missing LambdaLabs API key in runtime config",
                        provider=provider,
                        suggestion=f"Set {API_KEY_ENV} or providers.lambdalabs.api_key",
                    )
                return LambdaLabsRuntime.create(api_key, self._lambdalabs)
            case _:
                raise BadRequestError(
                    f"{provider.value!r} provider not supported in the env initializer",
                    provider=provider,
                )


RuntimeFactory: TypeAlias = Callable[[UUID], Awaitable[Runtime]]


class StaticInitializer:
    """Initializer over a fixed provider -> factory table.

    Useful for custom deployments where credentials are resolved elsewhere,
    and for tests.
    """

    def __init__(self, factories: Mapping[RuntimeProvider, RuntimeFactory]) -> None:
        self._factories = dict(factories)

    @classmethod
    def of(cls, *runtimes: Runtime) -> StaticInitializer:
        """Serve the given runtimes, keyed by their provider."""

        def const(rt: Runtime) -> RuntimeFactory:
            async def factory(_account_id: UUID) -> Runtime:
                return rt

            return factory

        return cls({rt.provider: const(rt) for rt in runtimes})

    async def initialize(self, account_id: UUID, provider: RuntimeProvider) -> Runtime:
        factory = self._factories.get(provider)
        if factory is None:
            raise BadRequestError(
                f"{provider.value!r} provider is not configured",
                provider=provider,
                suggestion=f"Configured providers: {', '.join(p.value for p in self._factories) or 'none'}",
            )
        return await factory(account_id)


__all__ = ["EnvInitializer", "Initializer", "RuntimeFactory", "StaticInitializer"]
