from __future__ import annotations

from typing import Callable, List, Optional

from oftforge.core.chains.chain_registry import ChainRegistry
from oftforge.core.commands.layerzero_tasks import LayerZeroTasks, parse_transaction_hash
from oftforge.core.errors import MissingTransferParameterError, ValidationError
from oftforge.core.structures.structures import (
    BridgeChain,
    BridgeResult,
    ChainFamily,
    TransferExtras,
    TransferReceipt,
    TransferRequest,
    TransferRoute,
)
from oftforge.integrations.lifi.lifi_client import LifiBridgeClient, build_lifi_bridge_client
from oftforge.logging.logger import get_logger

log = get_logger(__name__)

BridgeClientFactory = Callable[[BridgeChain], LifiBridgeClient]


def _require(direction: str, **values: Optional[str]) -> None:
    missing: List[str] = [name for name, value in values.items() if not (value or "").strip()]
    if missing:
        raise MissingTransferParameterError(direction, missing)


def _addresses_match(family: ChainFamily, left: str, right: str) -> bool:
    if family is ChainFamily.EVM:
        return left.lower() == right.lower()
    return left == right


class TransferDispatcher:
    """
    Routes a transfer to the native LayerZero send path or to the LI.FI aggregated bridge.

    Rules, first match wins:
    1) explicit aggregated route -> bridge
    2) source is the origin chain -> native send from the origin chain
    3) destination is the origin chain -> native send from the EVM chain
    4) anything else -> bridge
    """

    def __init__(
            self,
            registry: ChainRegistry,
            tasks: LayerZeroTasks,
            bridge_client_factory: BridgeClientFactory = build_lifi_bridge_client,
    ) -> None:
        self.registry = registry
        self.tasks = tasks
        self.bridge_client_factory = bridge_client_factory

    async def transfer(self, request: TransferRequest) -> TransferReceipt:
        """
        Dispatch `request`.

        Raises:
            ValidationError (including MissingTransferParameterError) before anything is submitted.
        """
        extras = request.extras
        if request.route is TransferRoute.AGGREGATED:
            return await self._aggregated(request, extras)
        if request.route is TransferRoute.NATIVE and not (
                self.registry.is_origin(request.from_chain) or self.registry.is_origin(request.to_chain)):
            raise ValidationError(
                f"Native route requires the origin chain '{self.registry.origin_chain_id}' on one side of the transfer"
            )
        if self.registry.is_origin(request.from_chain):
            return await self._send_from_origin(request, extras)
        if self.registry.is_origin(request.to_chain):
            return await self._send_to_origin(request, extras)
        return await self._aggregated(request, extras)

    async def _send_from_origin(self, request: TransferRequest, extras: TransferExtras) -> TransferReceipt:
        _require("Solana to EVM", mint=extras.mint, escrow=extras.escrow, toEid=extras.to_eid)
        origin = self.registry.origin
        log.info("[TRANSFER][NATIVE] %s -> %s amount=%s", origin.logical_id, request.to_chain, request.amount)
        result = await self.tasks.send_from_origin(
            amount=request.amount,
            to=request.to,
            mint=extras.mint or "",
            escrow=extras.escrow or "",
            to_eid=extras.to_eid or "",
            from_eid=origin.endpoint_id,
        )
        return TransferReceipt(
            route=TransferRoute.NATIVE,
            transaction_hash=parse_transaction_hash(result.stdout),
            output=result.stdout,
        )

    async def _send_to_origin(self, request: TransferRequest, extras: TransferExtras) -> TransferReceipt:
        source = self.registry.resolve(request.from_chain)
        _require("EVM to Solana", contractAddress=extras.contract_address)
        origin = self.registry.origin
        log.info("[TRANSFER][NATIVE] %s -> %s amount=%s", source.logical_id, origin.logical_id, request.amount)
        result = await self.tasks.send_to_origin(
            network=source.network_name,
            amount=request.amount,
            to=request.to,
            contract_address=extras.contract_address or "",
            dst_eid=origin.endpoint_id,
        )
        return TransferReceipt(
            route=TransferRoute.NATIVE,
            transaction_hash=parse_transaction_hash(result.stdout),
            output=result.stdout,
        )

    async def _aggregated(self, request: TransferRequest, extras: TransferExtras) -> TransferReceipt:
        _require("aggregated", fromToken=extras.from_token, toToken=extras.to_token)
        result = await self.bridge(
            from_chain=request.from_chain,
            to_chain=request.to_chain,
            from_token=extras.from_token or "",
            to_token=extras.to_token or "",
            amount=request.amount,
            to=request.to,
        )
        return TransferReceipt(
            route=TransferRoute.AGGREGATED,
            transaction_hash=result.transaction_hash,
            status=result.status,
        )

    async def bridge(
            self,
            *,
            from_chain: str,
            to_chain: str,
            from_token: str,
            to_token: str,
            amount: str,
            from_address: Optional[str] = None,
            to: Optional[str] = None,
    ) -> BridgeResult:
        """
        Run one LI.FI bridge transfer signed by the wallet configured for `from_chain`.

        Raises:
            UnsupportedChainError if no signer is configured for the source chain.
            ValidationError if `from_address` is not the configured signer.
        """
        source = self.registry.resolve_bridge_chain(from_chain)
        log.info("[TRANSFER][BRIDGE] %s -> %s %s %s->%s", source.name, to_chain, amount, from_token, to_token)
        async with self.bridge_client_factory(source) as client:
            signer_address = client.submitter.address
            if from_address and not _addresses_match(source.family, from_address.strip(), signer_address):
                raise ValidationError(f"fromAddress {from_address} does not match the configured signer for {source.name}")
            return await client.bridge(from_chain, to_chain, from_token, to_token, amount, to)

