from __future__ import annotations

from functools import lru_cache
from typing import AsyncIterator

from fastapi import Depends

from oftforge.core.chains.chain_registry import ChainRegistry, build_default_chain_registry
from oftforge.core.commands.layerzero_tasks import LayerZeroTasks, build_default_layerzero_tasks
from oftforge.core.provisioning.pipeline import ProvisioningPipeline
from oftforge.core.transfers.transfer_dispatcher import TransferDispatcher
from oftforge.integrations.lifi.lifi_client import LifiBridgeClient, build_lifi_catalog_client


@lru_cache(maxsize=1)
def get_chain_registry() -> ChainRegistry:
    return build_default_chain_registry()


@lru_cache(maxsize=1)
def get_layerzero_tasks() -> LayerZeroTasks:
    return build_default_layerzero_tasks()


def get_provisioning_pipeline(
        registry: ChainRegistry = Depends(get_chain_registry),
        tasks: LayerZeroTasks = Depends(get_layerzero_tasks),
) -> ProvisioningPipeline:
    return ProvisioningPipeline(registry, tasks)


def get_transfer_dispatcher(
        registry: ChainRegistry = Depends(get_chain_registry),
        tasks: LayerZeroTasks = Depends(get_layerzero_tasks),
) -> TransferDispatcher:
    return TransferDispatcher(registry, tasks)


async def get_lifi_catalog_client() -> AsyncIterator[LifiBridgeClient]:
    """Request-scoped read-only LI.FI client, closed after the response."""
    async with build_lifi_catalog_client() as client:
        yield client
