from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Awaitable, Callable, Dict, List, Mapping, Optional

import httpx

from oftforge.configuration.config import settings
from oftforge.core.errors import (
    BridgeApiError,
    BridgeInitializationError,
    BridgeStatusTimeoutError,
    BridgeTransferFailedError,
    UnsupportedChainError,
    UnsupportedTokenError,
    ValidationError,
)
from oftforge.core.onchain.transaction_submitter import TransactionSubmitter, build_transaction_submitter
from oftforge.core.structures.structures import BridgeChain, BridgeResult, Quote, TransferStatus, TransferStatusReport
from oftforge.core.utils.dict_utils import _read_int_like, _read_path, _read_str_path
from oftforge.integrations.lifi.lifi_helpers import (
    _build_lifi_headers,
    _http_get_json,
    _normalize_identifier,
    is_native_token,
)
from oftforge.integrations.lifi.lifi_structures import LifiChain, LifiToken
from oftforge.logging.logger import get_logger

log = get_logger(__name__)

DEFAULT_CHAIN_TYPES = "EVM,SVM"

_STATUS_MAPPING: Dict[str, TransferStatus] = {
    "DONE": TransferStatus.DONE,
    "FAILED": TransferStatus.FAILED,
    "INVALID": TransferStatus.FAILED,
    "PENDING": TransferStatus.PENDING,
    "NOT_FOUND": TransferStatus.PENDING,
}


def _parse_status(payload: Mapping[str, object]) -> TransferStatusReport:
    raw_status = (_read_str_path(payload, ("status",)) or "PENDING").upper()
    return TransferStatusReport(
        status=_STATUS_MAPPING.get(raw_status, TransferStatus.PENDING),
        substatus=_read_str_path(payload, ("substatus",)),
        receiving_transaction_hash=_read_str_path(payload, ("receiving", "txHash")),
    )


def _parse_quote(payload: Mapping[str, object]) -> Quote:
    """
    Validate a LI.FI quote and expose the fields the bridge flow consumes.

    Raises:
        BridgeApiError if the quote carries no executable transaction.
    """
    transaction_request = _read_path(payload, ("transactionRequest",))
    if not isinstance(transaction_request, Mapping):
        raise BridgeApiError("LI.FI quote does not contain an executable transactionRequest")

    return Quote(
        source_token_address=_read_str_path(payload, ("action", "fromToken", "address")) or "",
        dest_token_address=_read_str_path(payload, ("action", "toToken", "address")) or "",
        approval_address=_read_str_path(payload, ("estimate", "approvalAddress")),
        source_amount=_read_str_path(payload, ("estimate", "fromAmount"))
        or _read_str_path(payload, ("action", "fromAmount")) or "0",
        dest_amount=_read_str_path(payload, ("estimate", "toAmount")) or "0",
        transaction_request=transaction_request,
        provider_id=_read_str_path(payload, ("tool",)) or "",
        from_chain_id=_read_int_like(_read_path(payload, ("action", "fromChainId"))) or 0,
        to_chain_id=_read_int_like(_read_path(payload, ("action", "toChainId"))) or 0,
        raw=payload,
    )


class LifiBridgeClient:
    """
    LI.FI aggregated bridge client bound to one signing wallet (one chain family, one RPC).
    Built without a submitter it only serves read-only calls (chains, tokens, quotes, status, connections).

    `initialize()` populates the chain and token caches once; quotes are never cached.
    """

    def __init__(
            self,
            submitter: Optional[TransactionSubmitter],
            *,
            base_url: Optional[str] = None,
            api_key: Optional[str] = None,
            http_client: Optional[httpx.AsyncClient] = None,
            poll_interval_seconds: Optional[float] = None,
            status_timeout_seconds: Optional[float] = None,
            sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._submitter = submitter
        self.base_url = str(base_url or settings.LIFI_BASE_URL).rstrip("/")
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.LIFI_HTTP_TIMEOUT_SECONDS, connect=6.0),
            headers=_build_lifi_headers(api_key),
        )
        self.poll_interval_seconds = (
            settings.LIFI_STATUS_POLL_INTERVAL_SECONDS if poll_interval_seconds is None else poll_interval_seconds
        )
        self.status_timeout_seconds = (
            settings.LIFI_STATUS_TIMEOUT_SECONDS if status_timeout_seconds is None else status_timeout_seconds
        ) or None
        self._sleep = sleep

        self._chains: Dict[str, LifiChain] = {}
        self._tokens: Dict[int, Dict[str, LifiToken]] = {}

    @property
    def submitter(self) -> TransactionSubmitter:
        if self._submitter is None:
            raise RuntimeError("LI.FI client has no transaction submitter, it can only serve read-only calls")
        return self._submitter

    async def __aenter__(self) -> "LifiBridgeClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    def _url(self, resource: str) -> str:
        return f"{self.base_url}/{resource}"

    @property
    def is_initialized(self) -> bool:
        return bool(self._chains)

    async def initialize(self) -> None:
        """
        Fetch the chain list and the token list once.

        Raises:
            BridgeInitializationError if either call fails; the caches are left empty.
        """
        try:
            chains_payload = await _http_get_json(self._http, self._url("chains"), {"chainTypes": DEFAULT_CHAIN_TYPES})
            chains: List[LifiChain] = []
            for raw_chain in _read_path(chains_payload, ("chains",)) or []:
                chain = LifiChain.from_json(raw_chain) if isinstance(raw_chain, Mapping) else None
                if chain is not None:
                    chains.append(chain)
            if not chains:
                raise BridgeApiError("LI.FI returned an empty chain list")

            tokens_payload = await _http_get_json(
                self._http,
                self._url("tokens"),
                {"chains": ",".join(str(chain.chain_id) for chain in chains)},
            )
        except BridgeApiError as exc:
            log.error("[LI.FI][INIT] Initialization failed — %s", exc)
            raise BridgeInitializationError(f"Failed to initialize LI.FI bridge: {exc}") from exc

        chain_cache: Dict[str, LifiChain] = {}
        for chain in chains:
            chain_cache[_normalize_identifier(chain.key)] = chain
            chain_cache[_normalize_identifier(chain.name)] = chain
            chain_cache[str(chain.chain_id)] = chain

        token_cache: Dict[int, Dict[str, LifiToken]] = {}
        tokens_by_chain = _read_path(tokens_payload, ("tokens",))
        if isinstance(tokens_by_chain, Mapping):
            for raw_chain_id, raw_tokens in tokens_by_chain.items():
                chain_id = _read_int_like(raw_chain_id)
                if chain_id is None or not isinstance(raw_tokens, list):
                    continue
                per_chain: Dict[str, LifiToken] = {}
                for raw_token in raw_tokens:
                    token = LifiToken.from_json(raw_token) if isinstance(raw_token, Mapping) else None
                    if token is None:
                        continue
                    per_chain[_normalize_identifier(token.symbol)] = token
                    per_chain[_normalize_identifier(token.address)] = token
                token_cache[chain_id] = per_chain

        self._chains = chain_cache
        self._tokens = token_cache
        log.info("[LI.FI][INIT] Cached %d chains and tokens for %d chains", len(chains), len(token_cache))

    def resolve_chain(self, identifier: str) -> LifiChain:
        """Resolve a chain key, name or numeric id to a cached LI.FI chain."""
        chain = self._chains.get(_normalize_identifier(identifier))
        if chain is None:
            raise UnsupportedChainError(identifier)
        return chain

    async def get_token_info(self, chain: LifiChain, token: str) -> LifiToken:
        """Fetch one token from LI.FI (used when the cache has no match)."""
        try:
            payload = await _http_get_json(self._http, self._url("token"), {"chain": chain.key, "token": token})
        except BridgeApiError as exc:
            if exc.status_code in (400, 404):
                raise UnsupportedTokenError(chain.name, token) from exc
            raise
        resolved = LifiToken.from_json(payload)
        if resolved is None:
            raise UnsupportedTokenError(chain.name, token)
        return resolved

    async def resolve_token(self, chain: LifiChain, token: str) -> LifiToken:
        """Resolve a token symbol or address: cache first, network fallback."""
        cached = self._tokens.get(chain.chain_id, {}).get(_normalize_identifier(token))
        if cached is not None:
            return cached
        log.debug("[LI.FI][TOKEN][RESOLVE] Cache miss for %s on %s, asking LI.FI", token, chain.key)
        return await self.get_token_info(chain, token)

    async def get_quote(
            self,
            from_chain: str,
            to_chain: str,
            from_token: str,
            to_token: str,
            amount: str,
            from_address: str,
            to_address: Optional[str] = None,
    ) -> Quote:
        """
        Request a quote after resolving human identifiers to LI.FI's canonical ones.

        Raises:
            UnsupportedChainError / UnsupportedTokenError when an identifier cannot be resolved.
            BridgeApiError when LI.FI rejects the request.
        """
        source_chain = self.resolve_chain(from_chain)
        destination_chain = self.resolve_chain(to_chain)
        source_token = await self.resolve_token(source_chain, from_token)
        destination_token = await self.resolve_token(destination_chain, to_token)

        params: Dict[str, object] = {
            "fromChain": source_chain.chain_id,
            "toChain": destination_chain.chain_id,
            "fromToken": source_token.address,
            "toToken": destination_token.address,
            "fromAmount": str(amount),
            "fromAddress": from_address,
            "chainTypes": DEFAULT_CHAIN_TYPES,
        }
        if to_address:
            params["toAddress"] = to_address

        log.debug(
            "[LI.FI][QUOTE][REQUEST] %s(%s) -> %s(%s) amount=%s",
            source_chain.key,
            source_token.symbol,
            destination_chain.key,
            destination_token.symbol,
            amount,
        )
        payload = await _http_get_json(self._http, self._url("quote"), params)
        quote = _parse_quote(payload)
        if not quote.from_chain_id:
            quote = replace(quote, from_chain_id=source_chain.chain_id, to_chain_id=destination_chain.chain_id)
        log.info(
            "[LI.FI][QUOTE][RECEIVE] tool=%s fromAmount=%s toAmount=%s",
            quote.provider_id,
            quote.source_amount,
            quote.dest_amount,
        )
        return quote

    async def ensure_allowance(self, token_address: str, spender: str, amount: str) -> Optional[str]:
        """
        Make sure `spender` may move `amount` of `token_address` from the signing wallet.

        Check, then approve, then wait for inclusion: the bridge transaction is rejected if the
        allowance is not in place when it is submitted.

        Returns:
            The approval transaction hash, or None when no approval was needed.
        """
        if is_native_token(token_address) or not self.submitter.requires_token_approval:
            return None

        required = int(amount)
        current = await self.submitter.get_allowance(token_address, spender)
        if current >= required:
            log.debug("[LI.FI][ALLOWANCE] Sufficient allowance %s >= %s", current, required)
            return None

        log.info("[LI.FI][ALLOWANCE] Approving %s for spender %s (current=%s)", required, spender, current)
        approval_hash = await self.submitter.approve(token_address, spender, required)
        await self.submitter.wait_for_confirmation(approval_hash)
        return approval_hash

    async def get_status(self, provider_id: str, from_chain: int | str, to_chain: int | str,
                         tx_hash: str) -> TransferStatusReport:
        """Single status request. Polling is the caller's job."""
        payload = await _http_get_json(
            self._http,
            self._url("status"),
            {"bridge": provider_id, "fromChain": from_chain, "toChain": to_chain, "txHash": tx_hash},
        )
        report = _parse_status(payload)
        log.debug("[LI.FI][STATUS] tx=%s status=%s substatus=%s", tx_hash, report.status.value, report.substatus)
        return report

    async def wait_for_completion(self, quote: Quote, tx_hash: str) -> TransferStatusReport:
        """
        Poll the status endpoint at a fixed interval until DONE or FAILED.

        Raises:
            BridgeTransferFailedError on FAILED.
            BridgeStatusTimeoutError when `status_timeout_seconds` elapses first.
        """
        loop = asyncio.get_running_loop()
        deadline = None if self.status_timeout_seconds is None else loop.time() + self.status_timeout_seconds

        while True:
            report = await self.get_status(quote.provider_id, quote.from_chain_id, quote.to_chain_id, tx_hash)
            if report.status.is_terminal:
                if report.status is TransferStatus.FAILED:
                    raise BridgeTransferFailedError(tx_hash, report.substatus)
                return report
            if deadline is not None and loop.time() >= deadline:
                raise BridgeStatusTimeoutError(tx_hash, float(self.status_timeout_seconds or 0))
            await self._sleep(self.poll_interval_seconds)

    async def bridge(
            self,
            from_chain: str,
            to_chain: str,
            from_token: str,
            to_token: str,
            amount: str,
            to: Optional[str] = None,
    ) -> BridgeResult:
        """
        Quote, approve if needed, submit on the source chain and follow the transfer.

        Same-chain transfers are reported DONE once the submission is confirmed. `to` defaults to the
        signer address and is required when the destination belongs to another chain family.
        """
        if not self.is_initialized:
            await self.initialize()

        from_address = self.submitter.address
        to_address = (to or "").strip()
        if not to_address:
            source = self.resolve_chain(from_chain)
            destination = self.resolve_chain(to_chain)
            if source.chain_type != destination.chain_type:
                raise ValidationError(
                    f"A recipient address is required to bridge from {source.name} to {destination.name}"
                )
            to_address = from_address
        quote = await self.get_quote(from_chain, to_chain, from_token, to_token, amount, from_address, to_address)

        if quote.approval_address:
            await self.ensure_allowance(quote.source_token_address, quote.approval_address, quote.source_amount)

        prepared = quote.raw or {"transactionRequest": quote.transaction_request}
        submitted_hash = await self.submitter.submit(prepared)
        confirmed_hash = await self.submitter.wait_for_confirmation(submitted_hash)
        log.info("[LI.FI][BRIDGE] Source transaction confirmed %s", confirmed_hash)

        if quote.from_chain_id == quote.to_chain_id:
            return BridgeResult(transaction_hash=confirmed_hash, status=TransferStatus.DONE,
                                provider_id=quote.provider_id)

        report = await self.wait_for_completion(quote, confirmed_hash)
        log.info("[LI.FI][BRIDGE] Transfer %s completed (status=%s)", confirmed_hash, report.status.value)
        return BridgeResult(transaction_hash=confirmed_hash, status=report.status, provider_id=quote.provider_id)

    async def get_connections(
            self,
            *,
            from_chain: Optional[str] = None,
            to_chain: Optional[str] = None,
            from_token: Optional[str] = None,
            to_token: Optional[str] = None,
            chain_types: Optional[str] = None,
    ) -> Dict[str, object]:
        """
        List LI.FI connections, translating known chain/token identifiers to canonical ones.
        Unknown identifiers are forwarded unchanged.
        """
        if not self.is_initialized:
            await self.initialize()

        params: Dict[str, object] = {"chainTypes": chain_types or DEFAULT_CHAIN_TYPES}
        source = self._chains.get(_normalize_identifier(from_chain)) if from_chain else None
        destination = self._chains.get(_normalize_identifier(to_chain)) if to_chain else None
        if from_chain:
            params["fromChain"] = source.chain_id if source else from_chain
        if to_chain:
            params["toChain"] = destination.chain_id if destination else to_chain
        if from_token:
            params["fromToken"] = self._cached_token_address(source, from_token)
        if to_token:
            params["toToken"] = self._cached_token_address(destination, to_token)

        log.debug("[LI.FI][CONNECTIONS] params=%s", params)
        return await _http_get_json(self._http, self._url("connections"), params)

    def _cached_token_address(self, chain: Optional[LifiChain], token: str) -> str:
        if chain is None:
            return token
        cached = self._tokens.get(chain.chain_id, {}).get(_normalize_identifier(token))
        return cached.address if cached else token


def build_lifi_bridge_client(chain: BridgeChain) -> LifiBridgeClient:
    """Factory using Settings for convenience: a client signing on `chain`."""
    return LifiBridgeClient(build_transaction_submitter(chain))


def build_lifi_catalog_client() -> LifiBridgeClient:
    """Read-only client (no signer) for catalog and connection lookups."""
    return LifiBridgeClient(None)
