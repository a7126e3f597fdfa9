from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Request bodies use camelCase on the wire and snake_case in code."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


def _numeric_to_str(value: object) -> object:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


# JSON clients send amounts and ids either as strings or numbers
NumericStr = Annotated[str, BeforeValidator(_numeric_to_str)]


class CreateTokenRequest(_CamelModel):
    """Provisioning request: origin token plus one mirror per destination chain."""
    token_name: str = Field(..., min_length=1, description="Token name.")
    token_symbol: str = Field(..., min_length=1, description="Token symbol.")
    total_supply: NumericStr = Field(..., min_length=1, description="Initial supply minted on the origin chain.")
    metadata_uri: str = Field(..., min_length=1, description="Token metadata URI.")
    destination_chains: List[str] = Field(..., min_length=1, description="Logical ids of the destination chains.")


class CrossChainTransferRequest(_CamelModel):
    from_chain: str = Field(..., min_length=1)
    to_chain: str = Field(..., min_length=1)
    amount: NumericStr = Field(..., min_length=1)
    to: str = Field(..., min_length=1, description="Recipient address on the destination chain.")
    route: Literal["auto", "native", "aggregated"] = "auto"
    contract_address: Optional[str] = None
    mint: Optional[str] = None
    escrow: Optional[str] = None
    to_eid: Optional[NumericStr] = None
    from_token: Optional[str] = None
    to_token: Optional[str] = None


class LifiBridgeRequest(_CamelModel):
    from_chain: str = Field(..., min_length=1)
    to_chain: str = Field(..., min_length=1)
    from_token: str = Field(..., min_length=1)
    to_token: str = Field(..., min_length=1)
    amount: NumericStr = Field(..., min_length=1, description="Amount in the source token's smallest unit.")
    from_address: str = Field(..., min_length=1)
    to: Optional[str] = None
