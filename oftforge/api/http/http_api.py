from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from oftforge.api.dependencies import (
    get_chain_registry,
    get_lifi_catalog_client,
    get_provisioning_pipeline,
    get_transfer_dispatcher,
)
from oftforge.api.models import CreateTokenRequest, CrossChainTransferRequest, LifiBridgeRequest
from oftforge.core.chains.chain_registry import ChainRegistry
from oftforge.core.errors import ProvisioningStepError
from oftforge.core.provisioning.pipeline import ProvisioningPipeline, ProvisioningRequest
from oftforge.core.structures.structures import TransferExtras, TransferRequest, TransferRoute
from oftforge.core.transfers.transfer_dispatcher import TransferDispatcher
from oftforge.integrations.lifi.lifi_client import LifiBridgeClient
from oftforge.logging.logger import get_logger

router = APIRouter()
log = get_logger(__name__)


@router.get("/api/health", tags=["health"])  # type: ignore[misc]
async def get_health() -> Dict[str, Any]:
    """Liveness payload with a UTC timestamp."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.post("/api/create-token", tags=["provisioning"])  # type: ignore[misc]
async def create_token(
        body: CreateTokenRequest,
        pipeline: ProvisioningPipeline = Depends(get_provisioning_pipeline),
) -> Any:
    """
    Provision an OFT: origin token, mirrors, configuration and wiring.

    On a step failure the response still carries the progress accumulated so far.
    """
    request = ProvisioningRequest(
        token_name=body.token_name,
        token_symbol=body.token_symbol,
        total_supply=body.total_supply,
        metadata_uri=body.metadata_uri,
        destination_chains=tuple(body.destination_chains),
    )
    try:
        progress = await pipeline.run(request)
    except ProvisioningStepError as exc:
        log.error("[HTTP][CREATE_TOKEN] Step %d failed — %s (%s)", exc.step, exc.message, exc.details)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": exc.message,
                "progress": exc.progress.to_plain_dict(),
                "details": exc.details,
            },
        )

    log.info("[HTTP][CREATE_TOKEN] %s provisioned", body.token_symbol)
    return {
        "success": True,
        "message": "Token created and configured successfully",
        "progress": progress.to_plain_dict(),
    }


@router.get("/api/supported-chains", tags=["chains"])  # type: ignore[misc]
async def get_supported_chains(registry: ChainRegistry = Depends(get_chain_registry)) -> Dict[str, Any]:
    chains = {logical_id: chain.to_plain_dict() for logical_id, chain in registry.all().items()}
    return {"success": True, "chains": chains}


@router.post("/api/cross-chain-transfer", tags=["transfers"])  # type: ignore[misc]
async def cross_chain_transfer(
        body: CrossChainTransferRequest,
        dispatcher: TransferDispatcher = Depends(get_transfer_dispatcher),
) -> Dict[str, Any]:
    """Route a transfer through the native send path or the aggregated bridge."""
    request = TransferRequest(
        from_chain=body.from_chain,
        to_chain=body.to_chain,
        amount=body.amount,
        to=body.to,
        route=TransferRoute(body.route),
        extras=TransferExtras(
            contract_address=body.contract_address,
            mint=body.mint,
            escrow=body.escrow,
            to_eid=body.to_eid,
            from_token=body.from_token,
            to_token=body.to_token,
        ),
    )
    receipt = await dispatcher.transfer(request)
    log.info("[HTTP][TRANSFER] %s -> %s via %s tx=%s",
             body.from_chain, body.to_chain, receipt.route.value, receipt.transaction_hash)

    payload: Dict[str, Any] = {
        "success": True,
        "message": "Transfer submitted successfully",
        "route": receipt.route.value,
    }
    if receipt.transaction_hash:
        payload["txHash"] = receipt.transaction_hash
    if receipt.status is not None:
        payload["status"] = receipt.status.value
    return payload


@router.post("/api/li-fi-bridge", tags=["transfers"])  # type: ignore[misc]
async def li_fi_bridge(
        body: LifiBridgeRequest,
        dispatcher: TransferDispatcher = Depends(get_transfer_dispatcher),
) -> Dict[str, Any]:
    """Bridge through LI.FI and follow the transfer until it reaches a terminal status."""
    result = await dispatcher.bridge(
        from_chain=body.from_chain,
        to_chain=body.to_chain,
        from_token=body.from_token,
        to_token=body.to_token,
        amount=body.amount,
        from_address=body.from_address,
        to=body.to,
    )
    log.info("[HTTP][LI.FI][BRIDGE] tx=%s status=%s", result.transaction_hash, result.status.value)
    return {
        "success": True,
        "message": "Bridge transfer completed",
        "txHash": result.transaction_hash,
        "status": result.status.value,
    }


@router.get("/api/li-fi-connections", tags=["transfers"])  # type: ignore[misc]
async def li_fi_connections(
        from_chain: Optional[str] = Query(None, alias="fromChain"),
        to_chain: Optional[str] = Query(None, alias="toChain"),
        from_token: Optional[str] = Query(None, alias="fromToken"),
        to_token: Optional[str] = Query(None, alias="toToken"),
        chain_types: Optional[str] = Query(None, alias="chainTypes"),
        client: LifiBridgeClient = Depends(get_lifi_catalog_client),
) -> Dict[str, Any]:
    connections = await client.get_connections(
        from_chain=from_chain,
        to_chain=to_chain,
        from_token=from_token,
        to_token=to_token,
        chain_types=chain_types,
    )
    return {"success": True, **connections}
