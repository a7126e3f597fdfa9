from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

from oftforge.core.utils.format_utils import _tail


class ChainFamily(Enum):
    """Supported chain families (one signing model each)."""
    EVM = "EVM"
    SOLANA = "SOLANA"


@dataclass(frozen=True)
class ChainDescriptor:
    """
    Network parameters of a chain the provisioning tooling can target.

    Attributes:
        logical_id: Identifier used by API callers (e.g. 'arbitrum-sepolia').
        endpoint_id: LayerZero V2 endpoint id (EID).
        network_name: Hardhat network name passed to the tooling.
        rpc_url: JSON-RPC endpoint of the chain.
        display_name: Human readable name.
        family: Chain family, decides which tooling and signer apply.
    """
    logical_id: str
    endpoint_id: int
    network_name: str
    rpc_url: str
    display_name: str
    family: ChainFamily = ChainFamily.EVM

    def to_plain_dict(self) -> Dict[str, object]:
        return {
            "eid": self.endpoint_id,
            "name": self.display_name,
            "network": self.network_name,
            "rpcUrl": self.rpc_url,
            "family": self.family.value,
        }


@dataclass(frozen=True)
class BridgeChain:
    """A LI.FI source chain the service holds a signer for."""
    chain_id: int
    rpc_url: str
    name: str
    family: ChainFamily
    aliases: Tuple[str, ...] = ()


@dataclass
class ProvisioningProgress:
    """
    Per-request record of how far provisioning got.

    Created fresh for every run and mutated only by the pipeline that owns it.
    """
    step1_completed: bool = False
    step2_completed: Dict[str, bool] = field(default_factory=dict)
    step3_completed: bool = False
    step4_completed: bool = False
    origin_token_address: Optional[str] = None
    origin_store_address: Optional[str] = None

    def record_origin(self, token_address: str, store_address: str) -> None:
        """Set origin addresses once; later calls within the same run are ignored."""
        if self.origin_token_address is None:
            self.origin_token_address = token_address
        if self.origin_store_address is None:
            self.origin_store_address = store_address

    def to_plain_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "step1Completed": self.step1_completed,
            "step2Completed": dict(self.step2_completed),
            "step3Completed": self.step3_completed,
            "step4Completed": self.step4_completed,
        }
        if self.origin_token_address is not None:
            payload["originTokenAddress"] = self.origin_token_address
        if self.origin_store_address is not None:
            payload["originStoreAddress"] = self.origin_store_address
        return payload


@dataclass(frozen=True)
class OriginTokenDeployment:
    """Addresses printed by the origin-chain create task."""
    mint: str
    mint_authority: str
    escrow: str
    oft_store: str

    def __str__(self) -> str:
        return f"[mint=…{_tail(self.mint)} oftStore=…{_tail(self.oft_store)} escrow=…{_tail(self.escrow)}]"


@dataclass(frozen=True)
class MirrorDeployment:
    """A mirror OFT contract deployed on one destination chain."""
    chain: str
    address: str
    name: str
    symbol: str
    decimals: str = "18"


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a successful external command (exit status zero)."""
    command: str
    exit_code: int
    stdout: str
    stderr: str


@dataclass(frozen=True)
class Quote:
    """
    Executable LI.FI quote. Fetched immediately before use and never cached.
    """
    source_token_address: str
    dest_token_address: str
    approval_address: Optional[str]
    source_amount: str
    dest_amount: str
    transaction_request: Mapping[str, object]
    provider_id: str
    from_chain_id: int
    to_chain_id: int
    raw: Mapping[str, object] = field(default_factory=dict, repr=False, compare=False)


class TransferStatus(Enum):
    PENDING = "PENDING"
    DONE = "DONE"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not TransferStatus.PENDING


@dataclass(frozen=True)
class TransferStatusReport:
    """One answer of the LI.FI status endpoint."""
    status: TransferStatus
    substatus: Optional[str] = None
    receiving_transaction_hash: Optional[str] = None


@dataclass(frozen=True)
class BridgeResult:
    transaction_hash: str
    status: TransferStatus
    provider_id: str = ""


@dataclass(frozen=True)
class EvmTransactionRequest:
    """Canonical EVM transaction payload extracted from a LI.FI quote."""
    to: str
    data: str
    value_wei: int
    gas_limit: Optional[int] = None


class TransferRoute(Enum):
    AUTO = "auto"
    NATIVE = "native"
    AGGREGATED = "aggregated"


@dataclass(frozen=True)
class TransferExtras:
    """Chain-specific parameters a transfer direction may require."""
    contract_address: Optional[str] = None
    mint: Optional[str] = None
    escrow: Optional[str] = None
    to_eid: Optional[str] = None
    from_token: Optional[str] = None
    to_token: Optional[str] = None


@dataclass(frozen=True)
class TransferRequest:
    from_chain: str
    to_chain: str
    amount: str
    to: str
    extras: TransferExtras = field(default_factory=TransferExtras)
    route: TransferRoute = TransferRoute.AUTO


@dataclass(frozen=True)
class TransferReceipt:
    """Handle returned once a transfer has been submitted."""
    route: TransferRoute
    transaction_hash: Optional[str] = None
    status: Optional[TransferStatus] = None
    output: str = field(default="", repr=False)
