from __future__ import annotations

import asyncio
import base64
import binascii
from abc import ABC, abstractmethod
from typing import Mapping

import base58

from oftforge.core.onchain.evm_signer import EvmSigner, build_default_evm_signer
from oftforge.core.onchain.solana_signer import SolanaSigner, build_default_solana_signer
from oftforge.core.structures.structures import BridgeChain, ChainFamily, EvmTransactionRequest
from oftforge.core.utils.dict_utils import _read_int_like, _read_path, _read_str_path
from oftforge.logging.logger import get_logger

log = get_logger(__name__)


class TransactionSubmitter(ABC):
    """
    Chain-family capability: sign and submit a prepared transaction, wait for inclusion.

    Blocking RPC calls run in a worker thread so the event loop keeps serving other requests.
    """

    family: ChainFamily
    requires_token_approval: bool = False

    @property
    @abstractmethod
    def address(self) -> str:
        """Address of the signing wallet."""

    @abstractmethod
    async def submit(self, prepared: Mapping[str, object]) -> str:
        """Sign and submit the aggregator's prepared transaction. Returns the hash or signature."""

    @abstractmethod
    async def wait_for_confirmation(self, tx_hash: str) -> str:
        """Wait until the transaction is included. Returns the confirmed hash."""

    async def get_allowance(self, token_address: str, spender: str) -> int:
        raise NotImplementedError(f"{self.family.value} submitter does not manage token allowances")

    async def approve(self, token_address: str, spender: str, amount: int) -> str:
        raise NotImplementedError(f"{self.family.value} submitter does not manage token allowances")


def _parse_evm_request(prepared: Mapping[str, object]) -> EvmTransactionRequest:
    transaction_request = _read_path(prepared, ("transactionRequest",)) or prepared
    to = _read_str_path(transaction_request, ("to",))
    data = _read_str_path(transaction_request, ("data",))
    if to is None or data is None:
        raise ValueError("Unsupported EVM transaction shape: missing 'to' or 'data' in transactionRequest.")
    return EvmTransactionRequest(
        to=to,
        data=data,
        value_wei=max(_read_int_like(_read_path(transaction_request, ("value",))) or 0, 0),
        gas_limit=_read_int_like(_read_path(transaction_request, ("gasLimit",)))
        or _read_int_like(_read_path(transaction_request, ("gas",))),
    )


class EvmTransactionSubmitter(TransactionSubmitter):
    """Account/nonce based submission: the request is signed locally and broadcast."""

    family = ChainFamily.EVM
    requires_token_approval = True

    def __init__(self, signer: EvmSigner) -> None:
        self.signer = signer

    @property
    def address(self) -> str:
        return self.signer.address

    async def submit(self, prepared: Mapping[str, object]) -> str:
        raw_rlp = _read_str_path(prepared, ("transactionRequest", "rawTransaction"))
        if raw_rlp is not None:
            tx_hash = await asyncio.to_thread(self.signer.send_raw_transaction, raw_rlp)
            log.info("[SUBMIT][EVM] Pre-signed payload broadcast — tx=%s", tx_hash)
            return tx_hash

        request = _parse_evm_request(prepared)
        log.info("[SUBMIT][EVM] Signing and broadcasting via local signer (to=%s)", request.to)
        tx_hash = await asyncio.to_thread(
            self.signer.send_transaction,
            request.to,
            request.data,
            request.value_wei,
            request.gas_limit,
        )
        log.info("[SUBMIT][EVM] Broadcast success — tx=%s", tx_hash)
        return tx_hash

    async def wait_for_confirmation(self, tx_hash: str) -> str:
        return await asyncio.to_thread(self.signer.wait_for_receipt, tx_hash)

    async def get_allowance(self, token_address: str, spender: str) -> int:
        return await asyncio.to_thread(self.signer.erc20_allowance, token_address, spender)

    async def approve(self, token_address: str, spender: str, amount: int) -> str:
        return await asyncio.to_thread(self.signer.erc20_approve, token_address, spender, amount)


def _decode_blob(raw: str) -> bytes:
    """
    Decode a serialized transaction string, attempting base64 then base58 then hex (0x...).
    Returns empty bytes on failure.
    """
    if not raw:
        return b""
    try:
        decoded = base64.b64decode(raw, validate=True)
        if decoded:
            return decoded
    except (binascii.Error, ValueError):
        pass
    try:
        decoded = base58.b58decode(raw)
        if decoded:
            return decoded
    except ValueError:
        pass
    try:
        return bytes.fromhex(raw.removeprefix("0x"))
    except ValueError:
        return b""


def extract_serialized_transaction(prepared: Mapping[str, object]) -> bytes:
    """
    Extract a serialized Solana transaction from an aggregator payload.

    Accepted shapes:
    - transaction.serializedTransaction
    - transactions[0].serializedTransaction
    - serializedTransaction
    - transactionRequest.data
    """
    candidates = [
        (("transaction", "serializedTransaction"), "transaction.serializedTransaction"),
        (("transactions", 0, "serializedTransaction"), "transactions[0].serializedTransaction"),
        (("serializedTransaction",), "serializedTransaction"),
        (("transactionRequest", "data"), "transactionRequest.data"),
        (("data",), "data"),
    ]
    for path, label in candidates:
        candidate = _read_str_path(prepared, path)
        if candidate is None:
            continue
        decoded = _decode_blob(candidate)
        if decoded:
            log.debug("[SUBMIT][SOL][EXTRACT] Using %s (len(raw)=%d, len(decoded)=%d)",
                      label, len(candidate), len(decoded))
            return decoded
    return b""


class SolanaTransactionSubmitter(TransactionSubmitter):
    """Precomputed serialized transactions: deserialize, re-sign and submit."""

    family = ChainFamily.SOLANA

    def __init__(self, signer: SolanaSigner) -> None:
        self.signer = signer

    @property
    def address(self) -> str:
        return self.signer.address

    async def submit(self, prepared: Mapping[str, object]) -> str:
        serialized = extract_serialized_transaction(prepared)
        if not serialized:
            raise ValueError("Invalid Solana serialized transaction payload.")

        route_from = _read_str_path(prepared, ("action", "fromAddress"))
        if route_from is not None and route_from.strip() != self.signer.address:
            raise ValueError(
                f"Route fromAddress ({route_from}) does not match signer address ({self.signer.address})."
            )

        signature = await asyncio.to_thread(self.signer.send_raw_transaction, serialized)
        log.info("[SUBMIT][SOL] Broadcast success — signature=%s", signature)
        return signature

    async def wait_for_confirmation(self, tx_hash: str) -> str:
        return await asyncio.to_thread(self.signer.confirm_transaction, tx_hash)


def build_transaction_submitter(chain: BridgeChain) -> TransactionSubmitter:
    """Select the submitter implementation for the chain family of `chain`."""
    if chain.family is ChainFamily.SOLANA:
        return SolanaTransactionSubmitter(build_default_solana_signer(chain.rpc_url))
    return EvmTransactionSubmitter(build_default_evm_signer(chain.rpc_url))
