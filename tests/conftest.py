"""Shared test fixtures for the oftforge test suite."""

from unittest.mock import AsyncMock

import pytest

from oftforge.core.chains.chain_registry import ChainRegistry
from oftforge.core.commands.layerzero_tasks import LayerZeroTasks
from oftforge.core.structures.structures import (
    BridgeChain,
    ChainDescriptor,
    ChainFamily,
    CommandResult,
    MirrorDeployment,
    OriginTokenDeployment,
)

ORIGIN_STORE = "4MvUb3rJgqWjKfA9QmjYh1p8dPPp4iRbBz1XcwGGrUrQ"
ORIGIN_MINT = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


@pytest.fixture
def registry() -> ChainRegistry:
    """Small registry with two EVM testnets, one mainnet and the Solana origin."""
    return ChainRegistry(
        [
            ChainDescriptor("arbitrum-sepolia", 40231, "arbitrum-sepolia", "http://arb-sepolia.test", "Arbitrum Sepolia"),
            ChainDescriptor("bsc-v2-testnet", 40102, "bsc-testnet", "http://bsc-testnet.test", "BSC Testnet"),
            ChainDescriptor("base", 30184, "base", "http://base.test", "Base mainnet"),
            ChainDescriptor("solana", 40168, "solana-testnet", "http://solana.test", "Solana Testnet",
                            ChainFamily.SOLANA),
        ],
        [
            BridgeChain(42161, "http://arb.test", "Arbitrum One", ChainFamily.EVM, ("arbitrum", "arb")),
            BridgeChain(1151111081099710, "http://sol.test", "Solana", ChainFamily.SOLANA, ("solana", "sol")),
        ],
    )


def _mirror_address(index: int) -> str:
    return "0x" + f"{index:040x}"


@pytest.fixture
def mock_tasks() -> AsyncMock:
    """LayerZero tasks whose every call succeeds."""
    tasks = AsyncMock(spec=LayerZeroTasks)
    tasks.create_origin_token.return_value = OriginTokenDeployment(
        mint=ORIGIN_MINT, mint_authority="", escrow="EscrowAcct111", oft_store=ORIGIN_STORE
    )

    deployed = {"count": 0}

    async def _deploy_mirror(*, chain, network, name, symbol, decimals=None):
        deployed["count"] += 1
        return MirrorDeployment(chain=chain, address=_mirror_address(deployed["count"]), name=name, symbol=symbol)

    tasks.deploy_mirror.side_effect = _deploy_mirror
    tasks.init_config.return_value = CommandResult("pnpm init-config", 0, "ok", "")
    tasks.wire.return_value = CommandResult("pnpm wire", 0, "ok", "")
    return tasks
