"""Tests for LifiBridgeClient against an in-process fake of the LI.FI HTTP API."""

import asyncio
from typing import Dict, List, Mapping, Optional

import httpx
import pytest

from oftforge.core.errors import (
    BridgeApiError,
    BridgeInitializationError,
    BridgeStatusTimeoutError,
    BridgeTransferFailedError,
    UnsupportedChainError,
    UnsupportedTokenError,
    ValidationError,
)
from oftforge.core.onchain.transaction_submitter import TransactionSubmitter
from oftforge.core.structures.structures import ChainFamily, TransferStatus
from oftforge.integrations.lifi.lifi_client import LifiBridgeClient

WALLET = "0x1111111111111111111111111111111111111111"
USDC_ARB = "0xaf88d065e77c8cc2239327c5edb3a432268e5831"
USDC_BASE = "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"
SPENDER = "0x1231deb6f5749ef6ce6943a275a1d3e7486f4eae"


class FakeEvmSubmitter(TransactionSubmitter):
    family = ChainFamily.EVM
    requires_token_approval = True

    def __init__(self, allowance: int = 0) -> None:
        self.allowance = allowance
        self.events: List[str] = []
        self.submitted: List[Mapping[str, object]] = []

    @property
    def address(self) -> str:
        return WALLET

    async def submit(self, prepared: Mapping[str, object]) -> str:
        self.events.append("submit")
        self.submitted.append(prepared)
        return "0x" + "b" * 64

    async def wait_for_confirmation(self, tx_hash: str) -> str:
        self.events.append(f"confirm:{tx_hash[:4]}")
        return tx_hash

    async def get_allowance(self, token_address: str, spender: str) -> int:
        return self.allowance

    async def approve(self, token_address: str, spender: str, amount: int) -> str:
        self.events.append("approve")
        return "0x" + "a" * 64


class FakeLifi:
    """Routes LI.FI paths to canned payloads and records every request."""

    def __init__(self, statuses: Optional[List[str]] = None) -> None:
        self.statuses = list(statuses or ["DONE"])
        self.requests: List[httpx.Request] = []
        self.fail_chains = False
        self.chains: List[Dict[str, object]] = [
            {"id": 42161, "key": "arb", "name": "Arbitrum", "chainType": "EVM"},
            {"id": 8453, "key": "bas", "name": "Base", "chainType": "EVM"},
        ]

    def paths(self) -> List[str]:
        return [request.url.path.rsplit("/", 1)[-1] for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        resource = request.url.path.rsplit("/", 1)[-1]
        if resource == "chains":
            if self.fail_chains:
                return httpx.Response(500, json={"message": "internal error"})
            return httpx.Response(200, json={"chains": self.chains})
        if resource == "tokens":
            return httpx.Response(200, json={"tokens": {
                "42161": [{"chainId": 42161, "address": USDC_ARB, "symbol": "USDC", "decimals": 6}],
                "8453": [{"chainId": 8453, "address": USDC_BASE, "symbol": "USDC", "decimals": 6}],
            }})
        if resource == "token":
            if request.url.params.get("token") == "WETH":
                return httpx.Response(200, json={
                    "chainId": 42161, "address": "0x82af49447d8a07e3bd95bd0d56f35241523fbab1",
                    "symbol": "WETH", "decimals": 18,
                })
            return httpx.Response(404, json={"message": "Token not found"})
        if resource == "quote":
            params = request.url.params
            return httpx.Response(200, json={
                "tool": "stargate",
                "action": {
                    "fromChainId": int(params["fromChain"]),
                    "toChainId": int(params["toChain"]),
                    "fromToken": {"address": params["fromToken"]},
                    "toToken": {"address": params["toToken"]},
                    "fromAmount": params["fromAmount"],
                },
                "estimate": {"approvalAddress": SPENDER, "fromAmount": params["fromAmount"], "toAmount": "999000"},
                "transactionRequest": {"to": SPENDER, "data": "0xdeadbeef", "value": "0x0", "gasLimit": "0x30d40"},
            })
        if resource == "status":
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            return httpx.Response(200, json={"status": status, "substatus": "BRIDGE_NOT_AVAILABLE"
                                             if status == "FAILED" else None})
        if resource == "connections":
            return httpx.Response(200, json={"connections": [{"fromChainId": 42161, "toChainId": 8453}]})
        return httpx.Response(404, json={"message": "unknown"})


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _client(fake: FakeLifi, submitter: Optional[TransactionSubmitter] = None, **kwargs) -> LifiBridgeClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake.handler))
    kwargs.setdefault("sleep", RecordingSleep())
    return LifiBridgeClient(
        submitter or FakeEvmSubmitter(),
        base_url="https://li.quest/v1",
        http_client=http_client,
        poll_interval_seconds=5,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_initialize_populates_caches():
    fake = FakeLifi()
    client = _client(fake)

    await client.initialize()

    assert client.resolve_chain("arb").chain_id == 42161
    assert client.resolve_chain("Base").chain_id == 8453
    assert client.resolve_chain("42161").key == "arb"
    assert fake.requests[1].url.params["chains"] == "42161,8453"


@pytest.mark.asyncio
async def test_initialize_failure_raises_and_leaves_cache_empty():
    fake = FakeLifi()
    fake.fail_chains = True
    client = _client(fake)

    with pytest.raises(BridgeInitializationError):
        await client.initialize()

    assert not client.is_initialized


@pytest.mark.asyncio
async def test_unknown_chain_is_reported_by_name():
    client = _client(FakeLifi())
    await client.initialize()

    with pytest.raises(UnsupportedChainError) as exc_info:
        client.resolve_chain("fantom")

    assert "fantom" in str(exc_info.value)


@pytest.mark.asyncio
async def test_token_cache_miss_falls_back_to_token_endpoint():
    fake = FakeLifi()
    client = _client(fake)
    await client.initialize()
    arbitrum = client.resolve_chain("arb")

    assert (await client.resolve_token(arbitrum, "usdc")).address == USDC_ARB
    assert "token" not in fake.paths()

    weth = await client.resolve_token(arbitrum, "WETH")
    assert weth.decimals == 18

    with pytest.raises(UnsupportedTokenError) as exc_info:
        await client.resolve_token(arbitrum, "NOPE")
    assert "NOPE" in str(exc_info.value)


@pytest.mark.asyncio
async def test_get_quote_sends_canonical_identifiers():
    fake = FakeLifi()
    client = _client(fake)
    await client.initialize()

    quote = await client.get_quote("arbitrum", "base", "USDC", "USDC", "1000000", WALLET, "0xrecipient")

    params = fake.requests[-1].url.params
    assert params["fromChain"] == "42161"
    assert params["toChain"] == "8453"
    assert params["fromToken"] == USDC_ARB
    assert params["chainTypes"] == "EVM,SVM"
    assert params["toAddress"] == "0xrecipient"
    assert quote.approval_address == SPENDER
    assert quote.provider_id == "stargate"
    assert (quote.from_chain_id, quote.to_chain_id) == (42161, 8453)


@pytest.mark.asyncio
async def test_http_error_carries_status_and_body():
    fake = FakeLifi()
    client = _client(fake)

    await client.initialize()
    client._http = httpx.AsyncClient(transport=httpx.MockTransport(
        lambda request: httpx.Response(422, json={"message": "No available quotes"})
    ))

    with pytest.raises(BridgeApiError) as exc_info:
        await client.get_quote("arb", "bas", "USDC", "USDC", "1", WALLET)

    assert exc_info.value.status_code == 422
    assert "No available quotes" in str(exc_info.value)


@pytest.mark.asyncio
async def test_ensure_allowance_skips_approval_when_sufficient():
    submitter = FakeEvmSubmitter(allowance=5_000_000)
    client = _client(FakeLifi(), submitter)

    assert await client.ensure_allowance(USDC_ARB, SPENDER, "1000000") is None
    assert "approve" not in submitter.events


@pytest.mark.asyncio
async def test_ensure_allowance_skips_native_assets():
    submitter = FakeEvmSubmitter(allowance=0)
    client = _client(FakeLifi(), submitter)

    assert await client.ensure_allowance("0x0000000000000000000000000000000000000000", SPENDER, "10") is None
    assert submitter.events == []


@pytest.mark.asyncio
async def test_bridge_approves_exactly_once_before_submitting():
    submitter = FakeEvmSubmitter(allowance=10)
    client = _client(FakeLifi(statuses=["DONE"]), submitter)

    result = await client.bridge("arb", "bas", "USDC", "USDC", "1000000")

    assert submitter.events.count("approve") == 1
    assert submitter.events.index("approve") < submitter.events.index("submit")
    assert result.status is TransferStatus.DONE


@pytest.mark.asyncio
async def test_same_chain_bridge_is_done_without_polling():
    fake = FakeLifi()
    client = _client(fake, FakeEvmSubmitter(allowance=10**30))

    result = await client.bridge("arb", "arb", "USDC", "USDC", "1000000")

    assert result.status is TransferStatus.DONE
    assert "status" not in fake.paths()


@pytest.mark.asyncio
async def test_cross_chain_bridge_polls_until_done():
    fake = FakeLifi(statuses=["NOT_FOUND", "PENDING", "DONE"])
    sleep = RecordingSleep()
    client = _client(fake, FakeEvmSubmitter(allowance=10**30), sleep=sleep)

    result = await client.bridge("arb", "bas", "USDC", "USDC", "1000000", to="0xrecipient")

    assert result.status is TransferStatus.DONE
    assert fake.paths().count("status") == 3
    assert sleep.calls == [5, 5]
    status_params = [r.url.params for r in fake.requests if r.url.path.endswith("/status")][0]
    assert status_params["bridge"] == "stargate"
    assert status_params["txHash"] == "0x" + "b" * 64


@pytest.mark.asyncio
async def test_cross_chain_bridge_failure_raises():
    fake = FakeLifi(statuses=["PENDING", "FAILED"])
    client = _client(fake, FakeEvmSubmitter(allowance=10**30))

    with pytest.raises(BridgeTransferFailedError) as exc_info:
        await client.bridge("arb", "bas", "USDC", "USDC", "1000000")

    assert exc_info.value.substatus == "BRIDGE_NOT_AVAILABLE"


@pytest.mark.asyncio
async def test_polling_stops_after_status_timeout():
    fake = FakeLifi(statuses=["PENDING"])

    async def _short_sleep(seconds: float) -> None:
        await asyncio.sleep(0.01)

    client = _client(fake, FakeEvmSubmitter(allowance=10**30), status_timeout_seconds=0.05, sleep=_short_sleep)

    with pytest.raises(BridgeStatusTimeoutError) as exc_info:
        await client.bridge("arb", "bas", "USDC", "USDC", "1000000")

    assert exc_info.value.transaction_hash == "0x" + "b" * 64
    assert not isinstance(exc_info.value, BridgeTransferFailedError)


@pytest.mark.asyncio
async def test_get_connections_translates_known_identifiers():
    fake = FakeLifi()
    client = LifiBridgeClient(None, http_client=httpx.AsyncClient(transport=httpx.MockTransport(fake.handler)))

    payload: Dict[str, object] = await client.get_connections(from_chain="arb", to_chain="unknown", from_token="USDC")

    params = fake.requests[-1].url.params
    assert params["fromChain"] == "42161"
    assert params["toChain"] == "unknown"
    assert params["fromToken"] == USDC_ARB
    assert params["chainTypes"] == "EVM,SVM"
    assert payload["connections"]


def test_read_only_client_has_no_submitter():
    client = LifiBridgeClient(None, http_client=httpx.AsyncClient(transport=httpx.MockTransport(FakeLifi().handler)))

    with pytest.raises(RuntimeError):
        _ = client.submitter


@pytest.mark.asyncio
async def test_bridge_to_another_chain_family_requires_recipient():
    fake = FakeLifi()
    fake.chains.append({"id": 1151111081099710, "key": "sol", "name": "Solana", "chainType": "SVM"})
    submitter = FakeEvmSubmitter(allowance=10**30)
    client = _client(fake, submitter)

    with pytest.raises(ValidationError, match="Solana"):
        await client.bridge("arb", "sol", "USDC", "USDC", "1000000")

    assert "quote" not in fake.paths()
    assert submitter.events == []
