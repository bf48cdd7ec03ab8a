"""Node type catalog queries across providers."""

from __future__ import annotations

from contextlib import aclosing
from uuid import UUID

from loguru import logger

from nodeplane.runtime.initializer import Initializer
from nodeplane.types import NodeType, RuntimeProvider

log = logger.bind(component="catalog")


class CatalogService:
    def __init__(self, initializer: Initializer) -> None:
        self._initializer = initializer

    async def list_node_types(
        self,
        account_id: UUID,
        provider: RuntimeProvider,
        available_only: bool = False,
    ) -> list[NodeType]:
        """List a provider's node types.

        With ``available_only``, types with no region reporting capacity are
        left out.
        """
        log.info("Listing node types for {provider}", provider=provider.value)
        runtime = await self._initializer.initialize(account_id, provider)
        async with aclosing(runtime):
            node_types = await runtime.list_node_types()
        if available_only:
            return [nt for nt in node_types if nt.available]
        return node_types


__all__ = ["CatalogService"]
