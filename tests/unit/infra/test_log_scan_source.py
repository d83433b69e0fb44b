"""Tests for LogScanSource — chunked eth_getLogs retrieval."""

from unittest.mock import AsyncMock

import pytest

from erc20sync.domain.enums import Direction
from erc20sync.domain.models.transfer import BlockRange
from erc20sync.exceptions import RemoteError
from erc20sync.infra.blockchain.evm.abi import TRANSFER_TOPIC, address_topic
from erc20sync.infra.blockchain.evm.log_scan_source import (
    LogScanSource,
    iter_chunks,
    log_to_event,
    transfer_topics,
)
from erc20sync.infra.blockchain.evm.rpc_client import EVMRPCClient
from erc20sync.sync.progress import ProgressReporter
from fakes import OTHER, TOKEN, WALLET, tx_hash


@pytest.fixture()
def rpc(chain, fast_retry):
    return EVMRPCClient("https://rpc.example", chain, fast_retry)


class TestChunks:
    def test_covers_range_exactly(self):
        chunks = list(iter_chunks(BlockRange(from_block=5, to_block=28), 10))
        assert chunks == [(5, 14), (15, 24), (25, 28)]

    def test_single_block(self):
        assert list(iter_chunks(BlockRange(from_block=7, to_block=7), 2000)) == [(7, 7)]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            list(iter_chunks(BlockRange(from_block=0, to_block=1), 0))


class TestTopics:
    def test_incoming_filters_receiver(self):
        assert transfer_topics(WALLET, Direction.INCOMING) == [TRANSFER_TOPIC, None, address_topic(WALLET)]

    def test_outgoing_filters_sender(self):
        assert transfer_topics(WALLET, Direction.OUTGOING) == [TRANSFER_TOPIC, address_topic(WALLET)]

    def test_unfiltered(self):
        assert transfer_topics(None, None) == [TRANSFER_TOPIC]


class TestLogToEvent:
    def _log(self, **overrides):
        log = {
            "topics": [TRANSFER_TOPIC, address_topic(OTHER), address_topic(WALLET)],
            "data": "0x" + f"{1_000_000:064x}",
            "blockNumber": "0xa",
            "logIndex": "0x3",
            "transactionHash": tx_hash(1).upper().replace("0X", "0x"),
        }
        log.update(overrides)
        return log

    def test_decodes_transfer(self):
        event = log_to_event(self._log())
        assert event.from_address == OTHER
        assert event.to_address == WALLET
        assert event.raw_amount == 1_000_000
        assert event.block_number == 10
        assert event.log_index == 3
        assert event.tx_hash == tx_hash(1)
        assert event.timestamp is None

    def test_uses_block_timestamp_when_present(self):
        assert log_to_event(self._log(blockTimestamp="0x65e11a00")).timestamp == 0x65E11A00

    def test_erc721_style_log_has_no_amount(self):
        topics = [TRANSFER_TOPIC, address_topic(OTHER), address_topic(WALLET), "0x" + "0" * 63 + "1"]
        event = log_to_event(self._log(topics=topics, data="0x"))
        assert event.raw_amount is None

    def test_missing_hash(self):
        assert log_to_event(self._log(transactionHash=None)).tx_hash is None


class TestLogScanSource:
    async def test_empty_range_makes_no_request(self, rpc, chain):
        source = LogScanSource(rpc)
        assert await source.fetch_transfers(TOKEN, None, WALLET, Direction.INCOMING) == []
        assert chain.total_calls == 0

    async def test_incoming_chunks(self, rpc, chain):
        source = LogScanSource(rpc, chunk_size=10)

        events = await source.fetch_transfers(
            TOKEN, BlockRange(from_block=5, to_block=28), WALLET, Direction.INCOMING
        )

        assert chain.calls["eth_getLogs"] == 3
        assert [e.tx_hash for e in events] == [tx_hash(1), tx_hash(3)]
        windows = [
            (r["params"][0]["fromBlock"], r["params"][0]["toBlock"]) for r in chain.requests
        ]
        assert windows == [("0x5", "0xe"), ("0xf", "0x18"), ("0x19", "0x1c")]

    async def test_outgoing(self, rpc):
        source = LogScanSource(rpc, chunk_size=100)

        events = await source.fetch_transfers(
            TOKEN, BlockRange(from_block=0, to_block=199), WALLET, Direction.OUTGOING
        )

        assert sorted(e.tx_hash for e in events) == [tx_hash(2), tx_hash(3)]

    async def test_unfiltered_returns_all(self, rpc):
        source = LogScanSource(rpc, chunk_size=50)
        events = await source.fetch_transfers(TOKEN, BlockRange(from_block=0, to_block=199))
        assert len(events) == 5

    async def test_empty_chunks_do_not_stop_scan(self, rpc, chain):
        source = LogScanSource(rpc, chunk_size=1)

        events = await source.fetch_transfers(
            TOKEN, BlockRange(from_block=30, to_block=45), WALLET, Direction.INCOMING
        )

        assert chain.calls["eth_getLogs"] == 16
        assert [e.tx_hash for e in events] == [tx_hash(5)]

    async def test_transient_chunk_failure_is_retried(self, rpc, chain):
        source = LogScanSource(rpc, chunk_size=10)
        block_range = BlockRange(from_block=5, to_block=28)
        clean = await source.fetch_transfers(TOKEN, block_range, WALLET, Direction.INCOMING)

        chain.failures["eth_getLogs"] = 1
        retried = await source.fetch_transfers(TOKEN, block_range, WALLET, Direction.INCOMING)

        assert retried == clean

    async def test_exhausted_chunk_aborts(self, rpc, chain):
        source = LogScanSource(rpc, chunk_size=10)
        chain.failures["eth_getLogs"] = 3

        with pytest.raises(RemoteError) as exc_info:
            await source.fetch_transfers(
                TOKEN, BlockRange(from_block=5, to_block=28), WALLET, Direction.INCOMING
            )
        assert exc_info.value.context["from_block"] == 5

    async def test_emits_chunk_progress(self, rpc):
        events = []
        source = LogScanSource(rpc, chunk_size=10, progress=ProgressReporter(events.append))

        await source.fetch_transfers(TOKEN, BlockRange(from_block=5, to_block=28), WALLET, Direction.INCOMING)

        assert [(e.current, e.total) for e in events] == [(1, 3), (2, 3), (3, 3)]
        assert events[-1].context["direction"] == "incoming"

    async def test_direction_requires_wallet(self, rpc):
        source = LogScanSource(rpc)
        with pytest.raises(ValueError):
            await source.fetch_transfers(TOKEN, BlockRange(from_block=0, to_block=1), None, Direction.INCOMING)


class TestMalformedLogs:
    GOOD = {
        "topics": [TRANSFER_TOPIC, address_topic(OTHER), address_topic(WALLET)],
        "data": "0x" + f"{5:064x}",
        "blockNumber": "0xa",
        "logIndex": "0x0",
        "transactionHash": tx_hash(1),
    }

    @pytest.mark.parametrize(
        "bad",
        [None, "0xdead", {**GOOD, "data": 5}, {**GOOD, "topics": 7}, {**GOOD, "topics": [None, 1, 2]}],
    )
    def test_log_to_event_never_raises(self, bad):
        event = log_to_event(bad)
        assert event.raw_amount is None or event.from_address is None

    @pytest.mark.parametrize("bad", [None, {**GOOD, "data": 5}, {**GOOD, "topics": 7}])
    async def test_bad_entry_does_not_fail_batch(self, bad):
        rpc = AsyncMock(spec=EVMRPCClient)
        rpc.get_logs.return_value = [self.GOOD, bad]
        source = LogScanSource(rpc)

        events = await source.fetch_transfers(TOKEN, BlockRange(from_block=0, to_block=20))

        assert len(events) == 2
        assert events[0].raw_amount == 5
