from __future__ import annotations

import json
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple

import anyio

from oftforge.core.structures.structures import ChainDescriptor, MirrorDeployment
from oftforge.logging.logger import get_logger

log = get_logger(__name__)

MIRROR_CONTRACT_NAME = "MyOFT"

# LZ_RECEIVE executor option
_EXECUTOR_OPTION_LZ_RECEIVE = 1


@dataclass(frozen=True)
class EnforcedOption:
    """Minimum execution parameters a message type must carry to be accepted on the destination."""
    msg_type: int
    option_type: int
    gas: int
    value: int

    def to_plain_dict(self) -> Dict[str, int]:
        return {"msgType": self.msg_type, "optionType": self.option_type, "gas": self.gas, "value": self.value}


EVM_ENFORCED_OPTIONS: Tuple[EnforcedOption, ...] = (
    EnforcedOption(msg_type=1, option_type=_EXECUTOR_OPTION_LZ_RECEIVE, gas=300_000, value=0),
)

SOLANA_ENFORCED_OPTIONS: Tuple[EnforcedOption, ...] = (
    EnforcedOption(msg_type=1, option_type=_EXECUTOR_OPTION_LZ_RECEIVE, gas=200_000, value=2_500_000),
)


@dataclass(frozen=True)
class OmniPoint:
    """A contract on one endpoint: origin store (by address) or mirror contract (by name + address)."""
    eid: int
    address: str
    contract_name: Optional[str] = None


@dataclass(frozen=True)
class OAppConfig:
    """
    Cross-chain configuration of one provisioning run.

    Immutable and request-scoped: step 3 builds it, step 4 receives it as an argument.
    It only becomes a file for the duration of a single tooling command.
    """
    origin: OmniPoint
    destinations: Tuple[OmniPoint, ...]
    required_dvns: Tuple[str, ...] = ("LayerZero Labs",)
    optional_dvns: Tuple[str, ...] = ()
    block_confirmations: Tuple[int, int] = (15, 32)
    evm_enforced_options: Tuple[EnforcedOption, ...] = EVM_ENFORCED_OPTIONS
    solana_enforced_options: Tuple[EnforcedOption, ...] = SOLANA_ENFORCED_OPTIONS

    def render(self) -> str:
        """Render the configuration as the TypeScript module the LayerZero Hardhat tasks load."""
        chain_blocks = "\n".join(
            f"""
const chain{index}: OmniPointHardhat = {{
    eid: {point.eid},
    contractName: '{point.contract_name or MIRROR_CONTRACT_NAME}',
    address: {json.dumps(point.address)},
}}"""
            for index, point in enumerate(self.destinations)
        )
        pathway_blocks = "\n".join(
            f"""
        [
            chain{index},
            solanaContract,
            [{json.dumps(list(self.required_dvns)).replace('"', "'")}, {json.dumps(list(self.optional_dvns))}],
            [{self.block_confirmations[0]}, {self.block_confirmations[1]}],
            [SOLANA_ENFORCED_OPTIONS, EVM_ENFORCED_OPTIONS],
        ],"""
            for index in range(len(self.destinations))
        )
        contract_entries = ",\n            ".join(
            ["{ contract: solanaContract }"] + [f"{{ contract: chain{index} }}" for index in range(len(self.destinations))]
        )
        evm_options = json.dumps([option.to_plain_dict() for option in self.evm_enforced_options], indent=4)
        solana_options = json.dumps([option.to_plain_dict() for option in self.solana_enforced_options], indent=4)

        return f"""
import {{ EndpointId }} from '@layerzerolabs/lz-definitions'
import {{ ExecutorOptionType }} from '@layerzerolabs/lz-v2-utilities'
import {{ generateConnectionsConfig }} from '@layerzerolabs/metadata-tools'
import {{ OAppEnforcedOption, OmniPointHardhat }} from '@layerzerolabs/toolbox-hardhat'

const solanaContract: OmniPointHardhat = {{
    eid: {self.origin.eid},
    address: {json.dumps(self.origin.address)},
}}
{chain_blocks}

const EVM_ENFORCED_OPTIONS: OAppEnforcedOption[] = {evm_options}

const SOLANA_ENFORCED_OPTIONS: OAppEnforcedOption[] = {solana_options}

export default async function () {{
    const connections = await generateConnectionsConfig([
        {pathway_blocks}
    ])

    return {{
        contracts: [
            {contract_entries}
        ],
        connections,
    }}
}}
"""


def build_oapp_config(
        *,
        origin_eid: int,
        origin_store_address: str,
        deployments: Sequence[Tuple[ChainDescriptor, MirrorDeployment]],
) -> OAppConfig:
    """
    Build the configuration linking the origin store to every mirror deployed in this run.

    Raises:
        ValueError when there is no origin store address or no deployment to link.
    """
    if not origin_store_address:
        raise ValueError("Origin OFT store address is required to build the OApp configuration.")
    if not deployments:
        raise ValueError("At least one mirror deployment is required to build the OApp configuration.")

    destinations: List[OmniPoint] = [
        OmniPoint(eid=chain.endpoint_id, address=deployment.address, contract_name=MIRROR_CONTRACT_NAME)
        for chain, deployment in deployments
    ]
    return OAppConfig(origin=OmniPoint(eid=origin_eid, address=origin_store_address), destinations=tuple(destinations))


@asynccontextmanager
async def materialize_config(config: OAppConfig, directory: str) -> AsyncIterator[str]:
    """
    Write `config` to a uniquely named file for the duration of one command.

    The file is removed afterwards on a best-effort basis; removal failures are logged.
    """
    target_dir = anyio.Path(directory)
    await target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / f"layerzero-config-{uuid.uuid4()}.ts"
    try:
        await target.write_text(config.render(), encoding="utf-8")
        log.debug("[OAPP][CONFIG] Materialized configuration at %s", target)
        yield str(Path(str(target)).resolve())
    finally:
        try:
            await target.unlink(missing_ok=True)
        except OSError as exc:
            log.warning("[OAPP][CONFIG] Could not remove temporary configuration %s — %s", target, exc)
