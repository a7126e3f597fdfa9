from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import List, Optional

from oftforge.configuration.config import settings
from oftforge.core.commands.command_runner import CommandRunner, build_default_command_runner
from oftforge.core.errors import CommandOutputError
from oftforge.core.provisioning.oapp_config import OAppConfig, materialize_config
from oftforge.core.structures.structures import CommandResult, MirrorDeployment, OriginTokenDeployment
from oftforge.core.utils.format_utils import _truncate
from oftforge.logging.logger import get_logger

log = get_logger(__name__)

_DEPLOYED_ADDRESS_PATTERN = re.compile(r"Deployed MyOFT: (0x[a-fA-F0-9]{40})")
_EVM_TX_HASH_PATTERN = re.compile(r"(0x[a-fA-F0-9]{64})")
_SOLANA_SIGNATURE_PATTERN = re.compile(r"(?:[Ss]ignature|[Tt]ransaction)[^:\n]*:\s*([1-9A-HJ-NP-Za-km-z]{64,88})")


@dataclass(frozen=True)
class OriginTokenParameters:
    """Arguments of the origin-chain create task."""
    name: str
    symbol: str
    amount: str
    uri: str
    endpoint_id: int
    program_id: str
    only_oft_store: bool = True
    compute_unit_price_scale_factor: str = "200"


def parse_origin_deployment(output: str) -> OriginTokenDeployment:
    """
    Parse the last JSON object printed by the create task.

    Raises:
        CommandOutputError if no JSON object with the expected addresses is found.
    """
    candidate: Optional[dict] = None
    decoder = json.JSONDecoder()
    index = output.find("{")
    while index != -1:
        try:
            value, end = decoder.raw_decode(output, index)
        except json.JSONDecodeError:
            index = output.find("{", index + 1)
            continue
        if isinstance(value, dict):
            candidate = value
        index = output.find("{", end)

    if candidate is None:
        raise CommandOutputError("No JSON output found in create task output", output=output)

    mint = candidate.get("mint")
    oft_store = candidate.get("oftStore")
    if not isinstance(mint, str) or not isinstance(oft_store, str):
        raise CommandOutputError("Create task output is missing 'mint' or 'oftStore'", output=output)
    return OriginTokenDeployment(
        mint=mint,
        mint_authority=str(candidate.get("mintAuthority") or ""),
        escrow=str(candidate.get("escrow") or ""),
        oft_store=oft_store,
    )


def parse_mirror_address(output: str) -> str:
    match = _DEPLOYED_ADDRESS_PATTERN.search(output)
    if match is None:
        raise CommandOutputError(
            f"Could not find contract address in output: {_truncate(output, 200)}", output=output
        )
    return match.group(1)


def parse_transaction_hash(output: str) -> Optional[str]:
    """Best-effort extraction of the last transaction hash or signature printed by a send task."""
    evm_hashes = _EVM_TX_HASH_PATTERN.findall(output)
    if evm_hashes:
        return evm_hashes[-1]
    signatures = _SOLANA_SIGNATURE_PATTERN.findall(output)
    if signatures:
        return signatures[-1]
    return None


class LayerZeroTasks:
    """
    The LayerZero Hardhat tasks the service drives, one method per task.

    Every call goes through `CommandRunner.run_with_retry` so that only transient chain
    conditions are retried.
    """

    def __init__(
            self,
            runner: CommandRunner,
            *,
            package_runner: str = "pnpm",
            deploy_runner: str = "npx",
            config_dir: str = ".tmp",
            max_retries: Optional[int] = None,
    ) -> None:
        self.runner = runner
        self.package_runner = package_runner
        self.deploy_runner = deploy_runner
        self.config_dir = config_dir
        self.max_retries = max_retries

    async def create_origin_token(self, params: OriginTokenParameters) -> OriginTokenDeployment:
        args = [
            "hardhat",
            "lz:oft:solana:create",
            "--eid", str(params.endpoint_id),
            "--program-id", params.program_id,
            "--name", params.name,
            "--symbol", params.symbol,
            "--amount", params.amount,
            "--uri", params.uri,
            "--only-oft-store", "true" if params.only_oft_store else "false",
            "--compute-unit-price-scale-factor", params.compute_unit_price_scale_factor,
        ]
        result = await self.runner.run_with_retry(self.package_runner, args, self.max_retries)
        deployment = parse_origin_deployment(result.stdout)
        log.info("[LZ][CREATE] Origin OFT created %s", deployment)
        return deployment

    async def deploy_mirror(
            self,
            *,
            chain: str,
            network: str,
            name: str,
            symbol: str,
            decimals: Optional[str] = None,
    ) -> MirrorDeployment:
        args = ["hardhat", "deploy-oft", "--network", network, "--name", name, "--symbol", symbol]
        if decimals:
            args += ["--decimals", decimals]
        result = await self.runner.run_with_retry(self.deploy_runner, args, self.max_retries)
        address = parse_mirror_address(result.stdout)
        log.info("[LZ][DEPLOY] Mirror OFT deployed on %s at %s", chain, address)
        return MirrorDeployment(chain=chain, address=address, name=name, symbol=symbol, decimals=decimals or "18")

    async def init_config(self, config: OAppConfig) -> CommandResult:
        async with materialize_config(config, self.config_dir) as config_path:
            args = ["hardhat", "lz:oft:solana:init-config", "--oapp-config", config_path]
            return await self.runner.run_with_retry(self.package_runner, args, self.max_retries)

    async def wire(self, config: OAppConfig, network: str) -> CommandResult:
        async with materialize_config(config, self.config_dir) as config_path:
            args = ["hardhat", "lz:oapp:wire", "--oapp-config", config_path, "--network", network]
            return await self.runner.run_with_retry(self.package_runner, args, self.max_retries)

    async def send_from_origin(
            self,
            *,
            amount: str,
            to: str,
            mint: str,
            escrow: str,
            to_eid: str,
            from_eid: int,
    ) -> CommandResult:
        args = [
            "hardhat",
            "lz:oft:solana:send",
            "--amount", amount,
            "--from-eid", str(from_eid),
            "--to", to,
            "--mint", mint,
            "--escrow", escrow,
            "--to-eid", to_eid,
        ]
        return await self.runner.run_with_retry(self.package_runner, args, self.max_retries)

    async def send_to_origin(
            self,
            *,
            network: str,
            amount: str,
            to: str,
            contract_address: str,
            dst_eid: int,
    ) -> CommandResult:
        args: List[str] = [
            "hardhat",
            "--network", network,
            "send",
            "--dst-eid", str(dst_eid),
            "--amount", amount,
            "--to", to,
            "--contract-address", contract_address,
        ]
        return await self.runner.run_with_retry(self.package_runner, args, self.max_retries)


def build_default_layerzero_tasks(runner: Optional[CommandRunner] = None) -> LayerZeroTasks:
    """Factory using Settings for convenience."""
    return LayerZeroTasks(
        runner or build_default_command_runner(),
        package_runner=settings.LAYERZERO_PACKAGE_RUNNER,
        deploy_runner=settings.LAYERZERO_DEPLOY_RUNNER,
        config_dir=settings.OAPP_CONFIG_TMP_DIR,
        max_retries=settings.COMMAND_MAX_RETRIES,
    )
