"""Tests for TransferDispatcher routing rules."""

from types import SimpleNamespace
from typing import List
from unittest.mock import AsyncMock

import pytest

from oftforge.core.errors import MissingTransferParameterError, UnsupportedChainError, ValidationError
from oftforge.core.structures.structures import (
    BridgeChain,
    BridgeResult,
    CommandResult,
    TransferExtras,
    TransferRequest,
    TransferRoute,
    TransferStatus,
)
from oftforge.core.transfers.transfer_dispatcher import TransferDispatcher

EVM_HASH = "0x" + "e" * 64


class FakeBridgeClient:
    def __init__(self, chain: BridgeChain, address: str) -> None:
        self.chain = chain
        self.submitter = SimpleNamespace(address=address)
        self.bridge = AsyncMock(return_value=BridgeResult(EVM_HASH, TransferStatus.DONE, "stargate"))
        self.closed = False

    async def __aenter__(self) -> "FakeBridgeClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.closed = True


class FakeBridgeClientFactory:
    def __init__(self, address: str = "0xAbC0000000000000000000000000000000000001") -> None:
        self.address = address
        self.clients: List[FakeBridgeClient] = []

    def __call__(self, chain: BridgeChain) -> FakeBridgeClient:
        client = FakeBridgeClient(chain, self.address)
        self.clients.append(client)
        return client


@pytest.fixture
def factory() -> FakeBridgeClientFactory:
    return FakeBridgeClientFactory()


@pytest.fixture
def dispatcher(registry, mock_tasks, factory) -> TransferDispatcher:
    mock_tasks.send_from_origin.return_value = CommandResult("pnpm", 0, "Transaction signature: " + "4" * 88, "")
    mock_tasks.send_to_origin.return_value = CommandResult("pnpm", 0, f"sent {EVM_HASH}", "")
    return TransferDispatcher(registry, mock_tasks, factory)


def _request(from_chain: str, to_chain: str, route: TransferRoute = TransferRoute.AUTO, **extras) -> TransferRequest:
    return TransferRequest(
        from_chain=from_chain,
        to_chain=to_chain,
        amount="1000",
        to="recipient",
        extras=TransferExtras(**extras),
        route=route,
    )


@pytest.mark.asyncio
async def test_origin_source_uses_native_solana_send(dispatcher, mock_tasks, factory):
    receipt = await dispatcher.transfer(
        _request("solana", "arbitrum-sepolia", mint="Mint", escrow="Escrow", to_eid="40231")
    )

    assert receipt.route is TransferRoute.NATIVE
    assert receipt.transaction_hash == "4" * 88
    kwargs = mock_tasks.send_from_origin.await_args.kwargs
    assert kwargs["from_eid"] == 40168
    assert kwargs["to_eid"] == "40231"
    assert factory.clients == []


@pytest.mark.asyncio
async def test_origin_source_requires_mint_escrow_and_eid(dispatcher, mock_tasks):
    with pytest.raises(MissingTransferParameterError) as exc_info:
        await dispatcher.transfer(_request("solana", "arbitrum-sepolia", mint="Mint"))

    assert exc_info.value.missing == ["escrow", "toEid"]
    mock_tasks.send_from_origin.assert_not_awaited()


@pytest.mark.asyncio
async def test_origin_destination_uses_native_evm_send(dispatcher, mock_tasks):
    receipt = await dispatcher.transfer(_request("arbitrum-sepolia", "solana", contract_address="0xoft"))

    assert receipt.route is TransferRoute.NATIVE
    assert receipt.transaction_hash == EVM_HASH
    kwargs = mock_tasks.send_to_origin.await_args.kwargs
    assert kwargs["network"] == "arbitrum-sepolia"
    assert kwargs["dst_eid"] == 40168
    assert kwargs["contract_address"] == "0xoft"


@pytest.mark.asyncio
async def test_origin_destination_requires_contract_address(dispatcher, mock_tasks):
    with pytest.raises(MissingTransferParameterError):
        await dispatcher.transfer(_request("arbitrum-sepolia", "solana"))

    mock_tasks.send_to_origin.assert_not_awaited()


@pytest.mark.asyncio
async def test_origin_destination_from_unknown_chain_is_rejected(dispatcher):
    with pytest.raises(UnsupportedChainError):
        await dispatcher.transfer(_request("mars-testnet", "solana", contract_address="0xoft"))


@pytest.mark.asyncio
async def test_non_origin_pair_uses_bridge(dispatcher, mock_tasks, factory):
    receipt = await dispatcher.transfer(_request("arbitrum", "base", from_token="USDC", to_token="USDC"))

    assert receipt.route is TransferRoute.AGGREGATED
    assert receipt.status is TransferStatus.DONE
    assert factory.clients[0].chain.chain_id == 42161
    assert factory.clients[0].closed
    factory.clients[0].bridge.assert_awaited_once_with("arbitrum", "base", "USDC", "USDC", "1000", "recipient")
    mock_tasks.send_from_origin.assert_not_awaited()
    mock_tasks.send_to_origin.assert_not_awaited()


@pytest.mark.asyncio
async def test_explicit_aggregated_route_wins_over_origin(dispatcher, mock_tasks, factory):
    receipt = await dispatcher.transfer(
        _request("solana", "arbitrum", TransferRoute.AGGREGATED, from_token="SOL", to_token="USDC", mint="Mint")
    )

    assert receipt.route is TransferRoute.AGGREGATED
    assert factory.clients[0].chain.chain_id == 1151111081099710
    mock_tasks.send_from_origin.assert_not_awaited()


@pytest.mark.asyncio
async def test_bridge_requires_tokens(dispatcher, factory):
    with pytest.raises(MissingTransferParameterError) as exc_info:
        await dispatcher.transfer(_request("arbitrum", "base"))

    assert exc_info.value.missing == ["fromToken", "toToken"]
    assert factory.clients == []


@pytest.mark.asyncio
async def test_native_route_without_origin_is_rejected(dispatcher):
    with pytest.raises(ValidationError):
        await dispatcher.transfer(_request("arbitrum", "base", TransferRoute.NATIVE, from_token="USDC", to_token="USDC"))


@pytest.mark.asyncio
async def test_bridge_rejects_foreign_from_address(dispatcher, factory):
    with pytest.raises(ValidationError):
        await dispatcher.bridge(
            from_chain="arbitrum", to_chain="base", from_token="USDC", to_token="USDC", amount="1",
            from_address="0x9999999999999999999999999999999999999999",
        )

    factory.clients[0].bridge.assert_not_awaited()


@pytest.mark.asyncio
async def test_bridge_accepts_signer_address_case_insensitively(dispatcher, factory):
    result = await dispatcher.bridge(
        from_chain="arb", to_chain="base", from_token="USDC", to_token="USDC", amount="1",
        from_address=factory.address.lower(),
    )

    assert result.transaction_hash == EVM_HASH
