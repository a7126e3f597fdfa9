from __future__ import annotations

from typing import Dict, Iterable, List, Mapping

from oftforge.configuration.config import settings
from oftforge.core.errors import UnsupportedChainError, ValidationError
from oftforge.core.structures.structures import BridgeChain, ChainDescriptor, ChainFamily
from oftforge.logging.logger import get_logger

log = get_logger(__name__)

ORIGIN_CHAIN_ID: str = "solana"

# LI.FI numeric id for Solana
LIFI_SOLANA_CHAIN_ID: int = 1151111081099710


def _default_chains() -> List[ChainDescriptor]:
    return [
        ChainDescriptor("arbitrum", 30110, "arbitrum", settings.ARBITRUM_RPC_URL, "Arbitrum One mainnet"),
        ChainDescriptor("base", 30184, "base", settings.BASE_RPC_URL, "Base mainnet"),
        ChainDescriptor("arbitrum-sepolia", 40231, "arbitrum-sepolia", settings.ARBITRUM_SEPOLIA_RPC_URL,
                        "Arbitrum Sepolia"),
        ChainDescriptor("sepolia", 40161, "sepolia", settings.SEPOLIA_RPC_URL, "Sepolia"),
        ChainDescriptor("base-v2-testnet", 40245, "base-sepolia", settings.BASE_SEPOLIA_RPC_URL, "Base Testnet"),
        ChainDescriptor("optimism-sepolia", 40232, "optimism-sepolia", settings.OPTIMISM_SEPOLIA_RPC_URL,
                        "Optimism Testnet"),
        ChainDescriptor("blast-sepolia", 40243, "blast-sepolia", settings.BLAST_SEPOLIA_RPC_URL, "Blast Testnet"),
        ChainDescriptor("scroll-sepolia", 40170, "scroll-sepolia", settings.SCROLL_SEPOLIA_RPC_URL,
                        "Scroll Testnet"),
        ChainDescriptor("unichain-sepolia", 40333, "unichain-sepolia", settings.UNICHAIN_SEPOLIA_RPC_URL,
                        "Unichain Testnet"),
        ChainDescriptor("bsc-v2-testnet", 40102, "bsc-testnet", settings.BSC_TESTNET_RPC_URL, "BSC Testnet"),
        ChainDescriptor("mumbai", 40109, "mumbai", settings.MUMBAI_RPC_URL, "mumbai testnet"),
        ChainDescriptor(ORIGIN_CHAIN_ID, settings.SOLANA_OFT_EID, "solana-testnet", settings.SOLANA_TESTNET_RPC_URL,
                        "Solana Testnet", ChainFamily.SOLANA),
    ]


def _default_bridge_chains() -> List[BridgeChain]:
    return [
        BridgeChain(42161, settings.ARBITRUM_RPC_URL, "Arbitrum One", ChainFamily.EVM, ("arbitrum", "arb")),
        BridgeChain(8453, settings.BASE_RPC_URL, "Base", ChainFamily.EVM, ("base",)),
        BridgeChain(LIFI_SOLANA_CHAIN_ID, settings.SOLANA_RPC_URL, "Solana", ChainFamily.SOLANA, ("solana", "sol")),
    ]


class ChainRegistry:
    """
    Static lookup of the chains the service can provision and bridge from.

    Read-only after construction, safe for concurrent readers.
    """

    def __init__(
            self,
            chains: Iterable[ChainDescriptor],
            bridge_chains: Iterable[BridgeChain] = (),
            origin_chain_id: str = ORIGIN_CHAIN_ID,
    ) -> None:
        by_id: Dict[str, ChainDescriptor] = {}
        for chain in chains:
            if chain.logical_id in by_id:
                raise ValueError(f"Duplicate chain identifier in registry: '{chain.logical_id}'")
            by_id[chain.logical_id] = chain
        self._chains: Mapping[str, ChainDescriptor] = by_id

        bridge_by_key: Dict[str, BridgeChain] = {}
        for bridge_chain in bridge_chains:
            for key in (str(bridge_chain.chain_id), *bridge_chain.aliases):
                bridge_by_key[key.lower()] = bridge_chain
        self._bridge_chains: Mapping[str, BridgeChain] = bridge_by_key

        self.origin_chain_id = origin_chain_id

    def resolve(self, logical_id: str) -> ChainDescriptor:
        """Return the descriptor for `logical_id` or raise UnsupportedChainError."""
        chain = self._chains.get(logical_id)
        if chain is None:
            log.debug("[CHAINS][RESOLVE] Unsupported chain '%s'", logical_id)
            raise UnsupportedChainError(logical_id)
        return chain

    def resolve_destination(self, logical_id: str) -> ChainDescriptor:
        """Resolve a chain that must host a mirror contract (EVM only)."""
        chain = self.resolve(logical_id)
        if chain.family is not ChainFamily.EVM:
            raise ValidationError(f"Chain '{logical_id}' cannot host a mirror OFT contract")
        return chain

    @property
    def origin(self) -> ChainDescriptor:
        return self.resolve(self.origin_chain_id)

    def is_origin(self, logical_id: str) -> bool:
        return logical_id == self.origin_chain_id

    def all(self) -> Dict[str, ChainDescriptor]:
        return dict(self._chains)

    def resolve_bridge_chain(self, identifier: str) -> BridgeChain:
        """
        Resolve a LI.FI source chain from its numeric id or one of its aliases.

        Raises:
            UnsupportedChainError if the service holds no signer configuration for it.
        """
        key = (identifier or "").strip().lower()
        bridge_chain = self._bridge_chains.get(key)
        if bridge_chain is None:
            log.debug("[CHAINS][BRIDGE][RESOLVE] Unsupported source chain '%s'", identifier)
            raise UnsupportedChainError(identifier)
        return bridge_chain


def build_default_chain_registry() -> ChainRegistry:
    """Factory using Settings for convenience."""
    return ChainRegistry(_default_chains(), _default_bridge_chains())
