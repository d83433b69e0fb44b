"""Direct log scan — chunked eth_getLogs over the Transfer event."""

import logging
import math
from collections.abc import Iterator

from erc20sync.domain.enums import Direction, ProgressLevel, ProgressStage
from erc20sync.domain.models.transfer import BlockRange, RawTransferEvent
from erc20sync.infra.blockchain.base import TransferSource, check_direction
from erc20sync.infra.blockchain.evm.abi import (
    TRANSFER_TOPIC,
    address_topic,
    hex_to_int,
    topic_to_address,
)
from erc20sync.infra.blockchain.evm.rpc_client import EVMRPCClient
from erc20sync.sync.progress import ProgressReporter

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 2_000


def iter_chunks(block_range: BlockRange, chunk_size: int) -> Iterator[tuple[int, int]]:
    """Yield inclusive (start, end) windows covering the range, at most chunk_size blocks each."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    current = block_range.from_block
    while current <= block_range.to_block:
        end = min(current + chunk_size - 1, block_range.to_block)
        yield current, end
        current = end + 1


def transfer_topics(wallet: str | None, direction: Direction | None) -> list[str | None]:
    if direction is Direction.INCOMING:
        return [TRANSFER_TOPIC, None, address_topic(wallet)]
    if direction is Direction.OUTGOING:
        return [TRANSFER_TOPIC, address_topic(wallet)]
    return [TRANSFER_TOPIC]


def log_to_event(log: dict) -> RawTransferEvent:
    """Decode a raw Transfer log. Undecodable fields stay None and are dropped downstream."""
    if not isinstance(log, dict):
        return RawTransferEvent()
    topics = log.get("topics")
    if not isinstance(topics, list):
        topics = []
    from_addr = to_addr = None
    raw_amount = None
    # ERC-20 Transfer: 3 topics + one data word; ERC-721 indexes tokenId as a 4th topic
    if len(topics) == 3:
        from_addr = topic_to_address(topics[1])
        to_addr = topic_to_address(topics[2])
        data = log.get("data")
        if isinstance(data, str) and len(data) == 66:
            raw_amount = hex_to_int(data)

    tx_hash = log.get("transactionHash")
    return RawTransferEvent(
        tx_hash=tx_hash.lower() if isinstance(tx_hash, str) and tx_hash else None,
        from_address=from_addr,
        to_address=to_addr,
        raw_amount=raw_amount,
        block_number=hex_to_int(log.get("blockNumber")),
        log_index=hex_to_int(log.get("logIndex")),
        # Some nodes include the block timestamp on logs
        timestamp=hex_to_int(log.get("blockTimestamp")),
    )


def _is_removed(log) -> bool:
    return isinstance(log, dict) and bool(log.get("removed"))


class LogScanSource(TransferSource):
    """Scans Transfer logs chunk by chunk using indexed from/to topic filters."""

    def __init__(
        self,
        rpc: EVMRPCClient,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        progress: ProgressReporter | None = None,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self._rpc = rpc
        self._chunk_size = chunk_size
        self._progress = progress or ProgressReporter()

    async def fetch_transfers(
        self,
        token: str,
        block_range: BlockRange | None,
        wallet: str | None = None,
        direction: Direction | None = None,
    ) -> list[RawTransferEvent]:
        check_direction(wallet, direction)
        if block_range is None:
            return []

        topics = transfer_topics(wallet, direction)
        label = direction.value if direction else "all"
        total = math.ceil(block_range.size / self._chunk_size)
        events: list[RawTransferEvent] = []

        # One chunk in flight at a time
        for index, (start, end) in enumerate(iter_chunks(block_range, self._chunk_size), start=1):
            logs = await self._rpc.get_logs(token, start, end, topics)
            events.extend(log_to_event(log) for log in logs if not _is_removed(log))
            logger.debug(
                "Chunk %d/%d [%d, %d] %s: %d logs (total %d)",
                index, total, start, end, label, len(logs), len(events),
            )
            self._progress.emit(
                ProgressStage.FETCH,
                f"Scanned blocks {start}-{end} ({label})",
                level=ProgressLevel.DEBUG,
                current=index,
                total=total,
                direction=label,
                found=len(events),
            )

        logger.info(
            "Log scan %s: %d events in blocks [%d, %d] for token %s",
            label, len(events), block_range.from_block, block_range.to_block, token,
        )
        return events
