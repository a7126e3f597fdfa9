from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import base58
from solana.rpc.api import Client
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.keypair import Keypair
from solders.presigner import Presigner
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from oftforge.configuration.config import settings
from oftforge.logging.logger import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class SolanaSignerConfig:
    """
    Strongly typed configuration for the Solana signer.
    """
    rpc_url: str
    secret_key_base58: str


class SolanaSigner:
    """
    Signs and broadcasts Solana versioned transactions (solders-based).

    Aggregator routes arrive as serialized, unsigned versioned transactions: they are
    deserialized, re-signed with the local keypair and submitted.
    """

    def __init__(self, config: SolanaSignerConfig) -> None:
        if not config.rpc_url or not config.secret_key_base58:
            raise ValueError(
                "Solana signer requires RPC URL and base58 secret key (SOLANA_SECRET_KEY_BASE58)."
            )

        self.client = Client(config.rpc_url, timeout=30)
        raw_secret = base58.b58decode(config.secret_key_base58)
        self.keypair = Keypair.from_bytes(raw_secret)

        log.info("[SOLANA][SIGNER] Initialized signer. Address=%s", self.keypair.pubkey())

    @property
    def address(self) -> str:
        """Public base58 address derived from the loaded secret key."""
        return str(self.keypair.pubkey())

    def _is_blockhash_valid(self, blockhash: str) -> Optional[bool]:
        """
        Ask the RPC if a given blockhash is still valid.

        Returns True / False when the node answers, None if the check cannot be made.
        """
        if not blockhash:
            return None
        try:
            resp = self.client.is_blockhash_valid(blockhash)
        except Exception as exc:
            log.debug("[SOLANA][SIGNER] is_blockhash_valid failed — %s", exc)
            return None
        value = getattr(resp, "value", None)
        return value if isinstance(value, bool) else None

    def _sign_versioned_bytes(self, raw_bytes: bytes) -> bytes:
        """
        Parse bytes as VersionedTransaction, sign with local keypair, and return
        signed bytes.

        Strategy:
        1) VersionedTransaction(message, [keypair])
        2) VersionedTransaction(message, [Presigner(pubkey, manual_sig)])
        """
        try:
            versioned_tx = VersionedTransaction.from_bytes(raw_bytes)
        except Exception as exc:
            raise ValueError(f"Payload is not a valid VersionedTransaction: {exc}") from exc

        message = versioned_tx.message

        try:
            signed_vtx = VersionedTransaction(message, [self.keypair])
            log.debug("[SOLANA][SIGNER] Signed using constructor(keypairs).")
            return bytes(signed_vtx)
        except Exception as exc_ctor_keypair:
            log.debug("[SOLANA][SIGNER] constructor(keypairs) path failed: %s", exc_ctor_keypair)

        try:
            manual_sig: Signature = self.keypair.sign_message(bytes(message))
            presigner = Presigner(self.keypair.pubkey(), manual_sig)
            signed_vtx = VersionedTransaction(message, [presigner])
            log.debug("[SOLANA][SIGNER] Signed using constructor(Presigner).")
            return bytes(signed_vtx)
        except Exception as exc_ctor_presigner:
            raise ValueError(
                f"[SOLANA][SIGNER] Could not sign VersionedTransaction: {exc_ctor_presigner!r}"
            ) from exc_ctor_presigner

    def send_raw_transaction(self, raw_bytes: bytes) -> str:
        """
        Sign and send an UNSIGNED serialized VersionedTransaction.

        Raises:
            ValueError when the payload is empty, unparseable or its blockhash already expired.
        """
        if len(raw_bytes) == 0:
            raise ValueError("Raw transaction payload is empty.")

        log.info("[SOLANA][SIGNER] Preparing to sign+broadcast serialized transaction (bytes=%d)", len(raw_bytes))

        parsed = VersionedTransaction.from_bytes(raw_bytes)
        blockhash_text = str(parsed.message.recent_blockhash)
        if self._is_blockhash_valid(blockhash_text) is False:
            raise ValueError(
                f"[SOLANA][SIGNER][STALE_BLOCKHASH] The route's recent blockhash is no longer valid "
                f"({blockhash_text}). Request a new quote and retry."
            )

        signed_payload = self._sign_versioned_bytes(raw_bytes)
        response = self.client.send_raw_transaction(
            signed_payload,
            opts=TxOpts(skip_preflight=True, max_retries=5, preflight_commitment=Confirmed),
        )
        signature = str(response.value)
        log.info("[SOLANA][SIGNER] Broadcasted signature %s", signature)
        return signature

    def confirm_transaction(self, signature: str) -> str:
        """
        Block until the signature reaches 'confirmed' commitment.

        Raises:
            RuntimeError if the transaction landed with an error.
        """
        parsed = Signature.from_string(signature)
        self.client.confirm_transaction(parsed, commitment=Confirmed)
        statuses = self.client.get_signature_statuses([parsed]).value
        status = statuses[0] if statuses else None
        if status is not None and status.err is not None:
            raise RuntimeError(f"Solana transaction {signature} failed: {status.err}")
        log.info("[SOLANA][SIGNER] Transaction confirmed %s", signature)
        return signature


def build_default_solana_signer(rpc_url: Optional[str] = None) -> SolanaSigner:
    """Factory using Settings for convenience."""
    config = SolanaSignerConfig(
        rpc_url=rpc_url or settings.SOLANA_RPC_URL,
        secret_key_base58=settings.SOLANA_SECRET_KEY_BASE58,
    )
    return SolanaSigner(config)
