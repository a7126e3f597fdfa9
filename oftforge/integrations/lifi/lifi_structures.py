from dataclasses import dataclass
from typing import Mapping, Optional

from oftforge.core.utils.dict_utils import _read_int_like, _read_path, _read_str_path


@dataclass(frozen=True)
class LifiChain:
    """
    Subset of a LI.FI `/chains` entry.

    Attributes:
        chain_id: LI.FI numeric chain id (EVM chainId, or LI.FI's id for non-EVM chains).
        key: Short LI.FI key (e.g. 'arb', 'sol').
        name: Display name (e.g. 'Arbitrum').
        chain_type: 'EVM' or 'SVM'.
        native_token_address: Address LI.FI uses for the chain's native asset.
    """
    chain_id: int
    key: str
    name: str
    chain_type: str
    native_token_address: Optional[str] = None

    @classmethod
    def from_json(cls, payload: Mapping[str, object]) -> Optional["LifiChain"]:
        chain_id = _read_int_like(_read_path(payload, ("id",)))
        key = _read_str_path(payload, ("key",))
        if chain_id is None or key is None:
            return None
        return cls(
            chain_id=chain_id,
            key=key,
            name=_read_str_path(payload, ("name",)) or key,
            chain_type=_read_str_path(payload, ("chainType",)) or "EVM",
            native_token_address=_read_str_path(payload, ("nativeToken", "address")),
        )


@dataclass(frozen=True)
class LifiToken:
    """Subset of a LI.FI token entry."""
    chain_id: int
    address: str
    symbol: str
    decimals: int
    name: str = ""

    @classmethod
    def from_json(cls, payload: Mapping[str, object]) -> Optional["LifiToken"]:
        chain_id = _read_int_like(_read_path(payload, ("chainId",)))
        address = _read_str_path(payload, ("address",))
        symbol = _read_str_path(payload, ("symbol",))
        if chain_id is None or address is None or symbol is None:
            return None
        return cls(
            chain_id=chain_id,
            address=address,
            symbol=symbol,
            decimals=_read_int_like(_read_path(payload, ("decimals",))) or 0,
            name=_read_str_path(payload, ("name",)) or "",
        )
