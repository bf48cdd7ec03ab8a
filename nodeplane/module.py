"""Central DI module for the control plane.

Provides the store, the runtime initializer and the services built on top
of them. Every service receives its dependencies explicitly; there is no
global store handle.
"""

from __future__ import annotations

from dataclasses import dataclass

from injector import Binder, Injector, Module, provider, singleton

from .builder import Builder, BuildService, LogDriver, MemoryLogDriver
from .catalog import CatalogService
from .config import Settings
from .runtime.initializer import EnvInitializer, Initializer
from .sessions import SessionService
from .ssh_keys import SSHKeyService
from .store import MemoryStore, Store


@dataclass(frozen=True, slots=True)
class Services:
    """Everything the HTTP surface binds to."""

    sessions: SessionService
    ssh_keys: SSHKeyService
    catalog: CatalogService
    builds: BuildService | None = None


class ControlPlaneModule(Module):
    """Core bindings.

    Usage:
        injector = Injector([ControlPlaneModule(settings)])
        services = injector.get(Services)
    """

    def __init__(
        self,
        settings: Settings,
        *,
        store: Store | None = None,
        initializer: Initializer | None = None,
        builder: Builder | None = None,
        log_driver: LogDriver | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._initializer = initializer
        self._builder = builder
        self._log_driver = log_driver

    def configure(self, binder: Binder) -> None:
        binder.bind(Settings, to=self._settings)
        binder.bind(Store, to=self._store or MemoryStore())

    @singleton
    @provider
    def provide_initializer(self, settings: Settings) -> Initializer:
        return self._initializer or EnvInitializer(settings.lambdalabs)

    @singleton
    @provider
    def provide_sessions(self, store: Store, initializer: Initializer) -> SessionService:
        return SessionService(store, initializer)

    @singleton
    @provider
    def provide_ssh_keys(self, store: Store) -> SSHKeyService:
        return SSHKeyService(store)

    @singleton
    @provider
    def provide_catalog(self, initializer: Initializer) -> CatalogService:
        return CatalogService(initializer)

    @singleton
    @provider
    def provide_services(
        self,
        store: Store,
        sessions: SessionService,
        ssh_keys: SSHKeyService,
        catalog: CatalogService,
    ) -> Services:
        builds = None
        if self._builder is not None:
            builds = BuildService(store, self._builder, self._log_driver or MemoryLogDriver())
        return Services(sessions=sessions, ssh_keys=ssh_keys, catalog=catalog, builds=builds)


def create_injector(settings: Settings, **kwargs: object) -> Injector:
    return Injector([ControlPlaneModule(settings, **kwargs)])  # type: ignore[arg-type]


__all__ = ["ControlPlaneModule", "Services", "create_injector"]
