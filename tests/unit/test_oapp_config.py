from pathlib import Path

import anyio
import pytest

from oftforge.core.provisioning.oapp_config import build_oapp_config, materialize_config
from oftforge.core.structures.structures import ChainDescriptor, MirrorDeployment

ARB = ChainDescriptor("arbitrum-sepolia", 40231, "arbitrum-sepolia", "http://arb.test", "Arbitrum Sepolia")
BSC = ChainDescriptor("bsc-v2-testnet", 40102, "bsc-testnet", "http://bsc.test", "BSC Testnet")


def _deployment(chain: ChainDescriptor, address: str) -> MirrorDeployment:
    return MirrorDeployment(chain=chain.logical_id, address=address, name="TestOFT", symbol="TOFT")


def test_build_config_only_contains_deployed_chains():
    config = build_oapp_config(
        origin_eid=40168,
        origin_store_address="StoreAddr111",
        deployments=[(ARB, _deployment(ARB, "0x" + "11" * 20))],
    )

    assert config.origin.eid == 40168
    assert [point.eid for point in config.destinations] == [40231]


def test_render_contains_points_pathways_and_options():
    config = build_oapp_config(
        origin_eid=40168,
        origin_store_address="StoreAddr111",
        deployments=[
            (ARB, _deployment(ARB, "0x" + "11" * 20)),
            (BSC, _deployment(BSC, "0x" + "22" * 20)),
        ],
    )

    text = config.render()

    assert '"StoreAddr111"' in text
    assert "eid: 40231" in text and "eid: 40102" in text
    assert "contractName: 'MyOFT'" in text
    assert text.count("[SOLANA_ENFORCED_OPTIONS, EVM_ENFORCED_OPTIONS]") == 2
    assert '"gas": 300000' in text
    assert '"value": 2500000' in text
    assert "[15, 32]" in text


def test_build_config_requires_store_and_deployments():
    with pytest.raises(ValueError):
        build_oapp_config(origin_eid=40168, origin_store_address="", deployments=[(ARB, _deployment(ARB, "0x1"))])
    with pytest.raises(ValueError):
        build_oapp_config(origin_eid=40168, origin_store_address="StoreAddr111", deployments=[])


@pytest.mark.asyncio
async def test_materialize_config_writes_unique_files_and_cleans_up(tmp_path):
    config = build_oapp_config(
        origin_eid=40168,
        origin_store_address="StoreAddr111",
        deployments=[(ARB, _deployment(ARB, "0x" + "11" * 20))],
    )

    async with materialize_config(config, str(tmp_path)) as first_path:
        async with materialize_config(config, str(tmp_path)) as second_path:
            assert first_path != second_path
            with open(first_path, encoding="utf-8") as handle:
                assert handle.read() == config.render()

    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_materialize_config_removes_partially_written_file(tmp_path, monkeypatch):
    config = build_oapp_config(
        origin_eid=40168,
        origin_store_address="StoreAddr111",
        deployments=[(ARB, _deployment(ARB, "0x" + "11" * 20))],
    )

    async def _partial_write(self, data, *args, **kwargs):
        Path(str(self)).write_text(data[:16], encoding="utf-8")
        raise OSError("No space left on device")

    monkeypatch.setattr(anyio.Path, "write_text", _partial_write)

    with pytest.raises(OSError):
        async with materialize_config(config, str(tmp_path)):
            pytest.fail("configuration path must not be yielded when the write fails")

    assert list(tmp_path.iterdir()) == []
