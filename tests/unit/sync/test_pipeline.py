"""End-to-end pipeline tests against the in-memory chain, for both transfer sources."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from erc20sync.domain.enums import ProgressStage
from erc20sync.domain.models.transfer import DateRange, TokenMeta
from erc20sync.exceptions import RemoteError, ValidationError
from erc20sync.infra.blockchain.evm.alchemy_client import AlchemyClient
from erc20sync.infra.blockchain.evm.asset_transfer_source import AssetTransferSource
from erc20sync.infra.blockchain.evm.log_scan_source import LogScanSource
from erc20sync.infra.blockchain.evm.rpc_client import EVMRPCClient
from erc20sync.sync.pipeline import TransferPipeline, fetch_token_meta
from erc20sync.sync.progress import ProgressReporter
from fakes import HOURLY_BLOCKS, TOKEN, WALLET, tx_hash

MARCH_1_ONLY = DateRange(from_date="2024-03-01", to_date="2024-03-01")


def _log_scan_pipeline(chain, retry, progress=None, chunk_size=10):
    rpc = EVMRPCClient("https://rpc.example", chain, retry)
    return TransferPipeline(rpc, LogScanSource(rpc, chunk_size, progress), progress=progress)


def _asset_pipeline(chain, retry, progress=None, page_size=2):
    client = AlchemyClient("https://eth-mainnet.g.alchemy.com/v2/key", chain, retry)
    return TransferPipeline(client, AssetTransferSource(client, page_size, progress), progress=progress)


BUILDERS = [_log_scan_pipeline, _asset_pipeline]


class TestFetchTokenMeta:
    async def test_reads_decimals_and_symbol(self, chain, fast_retry):
        rpc = EVMRPCClient("https://rpc.example", chain, fast_retry)
        assert await fetch_token_meta(rpc, TOKEN) == TokenMeta(symbol="USDC", decimals=6)

    async def test_empty_decimals(self):
        rpc = AsyncMock(spec=EVMRPCClient)
        rpc.eth_call.return_value = "0x"

        with pytest.raises(RemoteError, match="Could not read token decimals"):
            await fetch_token_meta(rpc, TOKEN)

    async def test_decimals_outside_uint8(self):
        rpc = AsyncMock(spec=EVMRPCClient)
        rpc.eth_call.return_value = "0x" + f"{1_000_000:064x}"

        with pytest.raises(RemoteError, match="out-of-range decimals 1000000"):
            await fetch_token_meta(rpc, TOKEN)


@pytest.mark.parametrize("build", BUILDERS)
class TestTransferPipeline:
    async def test_wallet_day(self, build, chain, fast_retry):
        records = await build(chain, fast_retry).run("mainnet", TOKEN, MARCH_1_ONLY, WALLET)

        assert [(r.tx_hash, r.amount) for r in records] == [
            (tx_hash(1), Decimal("1")),
            (tx_hash(2), Decimal("-2.5")),
            (tx_hash(3), Decimal("0.5")),
        ]
        assert [r.date for r in records] == ["2024-03-01"] * 3
        assert records[0].timestamp == HOURLY_BLOCKS[10]
        assert records[0].unique_id == f"mainnet-{tx_hash(1)}-3"

    async def test_multi_day(self, build, chain, fast_retry):
        date_range = DateRange(from_date="2024-03-01", to_date="2024-03-02")
        records = await build(chain, fast_retry).run("mainnet", TOKEN, date_range, WALLET)

        assert [r.tx_hash for r in records] == [tx_hash(1), tx_hash(2), tx_hash(3), tx_hash(5)]
        assert records[-1].date == "2024-03-02"

    async def test_without_wallet(self, build, chain, fast_retry):
        records = await build(chain, fast_retry).run("mainnet", TOKEN, MARCH_1_ONLY)

        assert [r.tx_hash for r in records] == [tx_hash(n) for n in (1, 2, 3, 4)]
        assert all(r.amount > 0 for r in records)

    async def test_day_without_transfers(self, build, chain, fast_retry):
        date_range = DateRange(from_date="2024-03-05", to_date="2024-03-05")
        assert await build(chain, fast_retry).run("mainnet", TOKEN, date_range, WALLET) == []

    async def test_window_after_head(self, build, chain, fast_retry):
        date_range = DateRange(from_date="2024-04-01", to_date="2024-04-02")
        assert await build(chain, fast_retry).run("mainnet", TOKEN, date_range, WALLET) == []
        assert chain.total_calls == 1

    async def test_invalid_range_makes_no_request(self, build, chain, fast_retry):
        date_range = DateRange(from_date="2024-03-02", to_date="2024-03-01")
        with pytest.raises(ValidationError):
            await build(chain, fast_retry).run("mainnet", TOKEN, date_range, WALLET)
        assert chain.total_calls == 0

    async def test_deterministic(self, build, chain, fast_retry):
        first = await build(chain, fast_retry).run("mainnet", TOKEN, MARCH_1_ONLY, WALLET)
        second = await build(chain, fast_retry).run("mainnet", TOKEN, MARCH_1_ONLY, WALLET)
        assert first == second

    async def test_transient_failures_do_not_change_result(self, build, chain, fast_retry):
        clean = await build(chain, fast_retry).run("mainnet", TOKEN, MARCH_1_ONLY, WALLET)

        for method in ("eth_getBlockByNumber", "eth_call", "eth_getLogs", "alchemy_getAssetTransfers"):
            chain.failures[method] = 2
        retried = await build(chain, fast_retry).run("mainnet", TOKEN, MARCH_1_ONLY, WALLET)

        assert retried == clean

    async def test_exhausted_retries_abort(self, build, chain, fast_retry):
        chain.failures["eth_call"] = 3
        with pytest.raises(RemoteError, match="read token decimals"):
            await build(chain, fast_retry).run("mainnet", TOKEN, MARCH_1_ONLY, WALLET)

    async def test_progress_stages(self, build, chain, fast_retry):
        events = []
        pipeline = build(chain, fast_retry, ProgressReporter(events.append))

        await pipeline.run("mainnet", TOKEN, MARCH_1_ONLY, WALLET)

        stages = [e.stage for e in events]
        assert stages[0] is ProgressStage.BLOCK_RANGE
        assert ProgressStage.TOKEN_META in stages
        assert ProgressStage.FETCH in stages
        assert stages[-2] is ProgressStage.NORMALIZE
        assert stages[-1] is ProgressStage.DONE
        assert events[-1].context["count"] == 3


async def test_sources_produce_identical_records(chain, fast_retry):
    date_range = DateRange(from_date="2024-03-01", to_date="2024-03-08")
    scanned = await _log_scan_pipeline(chain, fast_retry).run("mainnet", TOKEN, date_range, WALLET)
    indexed = await _asset_pipeline(chain, fast_retry).run("mainnet", TOKEN, date_range, WALLET)

    assert scanned == indexed
    assert len(scanned) == 4


async def test_log_scan_backfills_each_block_once(chain, fast_retry):
    await _log_scan_pipeline(chain, fast_retry).run("mainnet", TOKEN, MARCH_1_ONLY, WALLET)

    block_requests = [
        r["params"][0] for r in chain.requests if r["method"] == "eth_getBlockByNumber"
    ]
    # block 10 is never probed by the bisection, so this is the backfill
    assert block_requests.count(hex(10)) == 1


async def test_asset_transfers_skip_backfill_when_metadata_present(chain, fast_retry):
    await _asset_pipeline(chain, fast_retry).run("mainnet", TOKEN, MARCH_1_ONLY, WALLET)
    block_requests = [r["params"][0] for r in chain.requests if r["method"] == "eth_getBlockByNumber"]
    assert hex(10) not in block_requests
