from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from oftforge.configuration.config import settings
from oftforge.core.chains.chain_registry import ChainRegistry
from oftforge.core.commands.layerzero_tasks import LayerZeroTasks, OriginTokenParameters
from oftforge.core.errors import ProvisioningStepError, ValidationError
from oftforge.core.provisioning.oapp_config import OAppConfig, build_oapp_config
from oftforge.core.structures.structures import (
    ChainDescriptor,
    MirrorDeployment,
    OriginTokenDeployment,
    ProvisioningProgress,
)
from oftforge.logging.logger import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ProvisioningRequest:
    """One token provisioning request (origin token + mirrors on every destination chain)."""
    token_name: str
    token_symbol: str
    total_supply: str
    metadata_uri: str
    destination_chains: Tuple[str, ...] = field(default_factory=tuple)


class ProvisioningPipeline:
    """
    Sequential four-step provisioning of an OFT across the origin chain and its destinations.

    1) create the token on the origin chain
    2) deploy one mirror contract per destination chain, in request order
    3) initialize the cross-chain configuration built from this run's deployments
    4) wire the configuration on each destination chain, in request order

    A failing step aborts the run with a ProvisioningStepError carrying the progress so far.
    Completed steps are never rolled back.
    """

    def __init__(
            self,
            registry: ChainRegistry,
            tasks: LayerZeroTasks,
            *,
            program_id: Optional[str] = None,
            compute_unit_price_scale_factor: Optional[str] = None,
    ) -> None:
        self.registry = registry
        self.tasks = tasks
        self.program_id = program_id or settings.SOLANA_OFT_PROGRAM_ID
        self.compute_unit_price_scale_factor = (
            compute_unit_price_scale_factor or settings.COMPUTE_UNIT_PRICE_SCALE_FACTOR
        )

    async def run(self, request: ProvisioningRequest) -> ProvisioningProgress:
        """
        Execute the four steps for `request`.

        Raises:
            ValidationError before any external call if a destination is unknown, repeated or cannot host a mirror.
            ProvisioningStepError when a step fails.
        """
        repeated = sorted({chain_id for chain_id in request.destination_chains
                           if request.destination_chains.count(chain_id) > 1})
        if repeated:
            raise ValidationError(f"Destination chains listed more than once: {', '.join(repeated)}")
        destinations = [self.registry.resolve_destination(chain_id) for chain_id in request.destination_chains]
        origin = self.registry.origin
        progress = ProvisioningProgress()

        log.info(
            "[PIPELINE][START] token=%s symbol=%s destinations=%s",
            request.token_name,
            request.token_symbol,
            ",".join(chain.logical_id for chain in destinations),
        )

        await self._create_origin_token(request, origin, progress)
        deployments = await self._deploy_mirrors(request, destinations, progress)
        config = await self._initialize_config(origin, progress, deployments)
        await self._wire(config, destinations, progress)

        log.info("[PIPELINE][DONE] %s provisioned on %d destination chain(s)", request.token_symbol, len(destinations))
        return progress

    async def _create_origin_token(
            self,
            request: ProvisioningRequest,
            origin: ChainDescriptor,
            progress: ProvisioningProgress,
    ) -> OriginTokenDeployment:
        log.info("[PIPELINE][STEP1] Creating origin OFT on %s", origin.display_name)
        params = OriginTokenParameters(
            name=request.token_name,
            symbol=request.token_symbol,
            amount=request.total_supply,
            uri=request.metadata_uri,
            endpoint_id=origin.endpoint_id,
            program_id=self.program_id,
            compute_unit_price_scale_factor=self.compute_unit_price_scale_factor,
        )
        try:
            deployment = await self.tasks.create_origin_token(params)
        except Exception as exc:
            log.error("[PIPELINE][STEP1] Origin OFT creation failed — %s", exc)
            raise ProvisioningStepError(1, "Failed to create origin OFT", progress, exc) from exc

        progress.record_origin(deployment.mint, deployment.oft_store)
        progress.step1_completed = True
        log.info("[PIPELINE][STEP1] Completed %s", deployment)
        return deployment

    async def _deploy_mirrors(
            self,
            request: ProvisioningRequest,
            destinations: List[ChainDescriptor],
            progress: ProvisioningProgress,
    ) -> List[Tuple[ChainDescriptor, MirrorDeployment]]:
        deployments: List[Tuple[ChainDescriptor, MirrorDeployment]] = []
        for chain in destinations:
            log.info("[PIPELINE][STEP2] Deploying mirror OFT on %s", chain.logical_id)
            try:
                deployment = await self.tasks.deploy_mirror(
                    chain=chain.logical_id,
                    network=chain.network_name,
                    name=request.token_name,
                    symbol=request.token_symbol,
                )
            except Exception as exc:
                log.error("[PIPELINE][STEP2] Deployment on %s failed — %s", chain.logical_id, exc)
                raise ProvisioningStepError(
                    2, f"Failed to deploy OFT on {chain.logical_id}", progress, exc, chain=chain.logical_id
                ) from exc
            progress.step2_completed[chain.logical_id] = True
            deployments.append((chain, deployment))
        return deployments

    async def _initialize_config(
            self,
            origin: ChainDescriptor,
            progress: ProvisioningProgress,
            deployments: List[Tuple[ChainDescriptor, MirrorDeployment]],
    ) -> OAppConfig:
        log.info("[PIPELINE][STEP3] Initializing configuration for %d mirror(s)", len(deployments))
        try:
            config = build_oapp_config(
                origin_eid=origin.endpoint_id,
                origin_store_address=progress.origin_store_address or "",
                deployments=deployments,
            )
            await self.tasks.init_config(config)
        except Exception as exc:
            log.error("[PIPELINE][STEP3] Configuration initialization failed — %s", exc)
            raise ProvisioningStepError(3, "Failed to initialize config", progress, exc) from exc

        progress.step3_completed = True
        return config

    async def _wire(
            self,
            config: OAppConfig,
            destinations: List[ChainDescriptor],
            progress: ProvisioningProgress,
    ) -> None:
        for chain in destinations:
            log.info("[PIPELINE][STEP4] Wiring configuration on %s", chain.logical_id)
            try:
                await self.tasks.wire(config, chain.network_name)
            except Exception as exc:
                log.error("[PIPELINE][STEP4] Wiring on %s failed — %s", chain.logical_id, exc)
                raise ProvisioningStepError(
                    4, f"Failed to wire configuration on {chain.logical_id}", progress, exc, chain=chain.logical_id
                ) from exc
        progress.step4_completed = True
