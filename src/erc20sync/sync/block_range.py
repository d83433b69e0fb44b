"""Translate a UTC calendar window into an inclusive block range by binary search."""

import logging
import re
from datetime import UTC, date, datetime, time

from erc20sync.domain.enums import ProgressStage
from erc20sync.domain.models.transfer import BlockHeader, BlockRange, DateRange
from erc20sync.exceptions import ValidationError
from erc20sync.infra.blockchain.evm.rpc_client import EVMRPCClient
from erc20sync.sync.progress import ProgressReporter

logger = logging.getLogger(__name__)

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_SECONDS_PER_DAY = 86_400


def parse_utc_date(value: str, end_of_day: bool = False) -> int:
    """Unix seconds of 00:00:00 (or 23:59:59.999, floored) UTC on the given day."""
    normalized = (value or "").strip()
    try:
        if not _ISO_DATE_RE.match(normalized):
            raise ValueError(normalized)
        day = date.fromisoformat(normalized)
    except ValueError:
        raise ValidationError(f'Invalid date "{value}". Use YYYY-MM-DD format.', context={"date": value}) from None

    start = int(datetime.combine(day, time.min, tzinfo=UTC).timestamp())
    return start + _SECONDS_PER_DAY - 1 if end_of_day else start


def parse_date_range(date_range: DateRange) -> tuple[int, int]:
    from_ts = parse_utc_date(date_range.from_date)
    to_ts = parse_utc_date(date_range.to_date, end_of_day=True)
    if from_ts > to_ts:
        raise ValidationError(
            "`from` date must be earlier than or equal to `to` date.",
            context={"from_date": date_range.from_date, "to_date": date_range.to_date},
        )
    return from_ts, to_ts


class BlockRangeResolver:
    """Finds [fromBlock, toBlock] covering a date window on a snapshot of the chain head.

    Block timestamps are non-decreasing, so the lowest block with
    timestamp >= target is found by bisection over [low, head]. Probes are
    cached for the duration of one resolve() call.
    """

    def __init__(self, rpc: EVMRPCClient, progress: ProgressReporter | None = None) -> None:
        self._rpc = rpc
        self._progress = progress or ProgressReporter()
        self._cache: dict[int, int] = {}
        self.probe_count = 0

    async def resolve(self, date_range: DateRange) -> BlockRange | None:
        """Return the block range, or None when the window contains no blocks."""
        from_ts, to_ts = parse_date_range(date_range)
        self._cache = {}

        head = await self._rpc.get_latest_block()
        self._cache[head.number] = head.timestamp

        if from_ts > head.timestamp:
            logger.info("Window starts after chain head (head=%d @ %d)", head.number, head.timestamp)
            return None

        from_block = await self.find_block_at_or_after(from_ts, head)

        if to_ts >= head.timestamp:
            to_block = head.number
        else:
            to_block = await self.find_block_at_or_after(to_ts + 1, head, low=from_block) - 1

        if from_block > to_block:
            logger.info("No blocks between %s and %s", date_range.from_date, date_range.to_date)
            return None

        block_range = BlockRange(from_block=from_block, to_block=to_block)
        logger.info(
            "Resolved %s..%s to blocks [%d, %d] (%d probes)",
            date_range.from_date, date_range.to_date, from_block, to_block, self.probe_count,
        )
        self._progress.emit(
            ProgressStage.BLOCK_RANGE,
            f"Block range {from_block}-{to_block}",
            from_block=from_block,
            to_block=to_block,
        )
        return block_range

    async def find_block_at_or_after(self, target_ts: int, head: BlockHeader, low: int = 0) -> int:
        """Lowest block in [low, head] whose timestamp >= target_ts (head if none)."""
        lo, hi = max(0, low), head.number
        while lo < hi:
            mid = (lo + hi) // 2
            if await self._timestamp(mid) < target_ts:
                lo = mid + 1
            else:
                hi = mid
        return lo

    async def _timestamp(self, block_number: int) -> int:
        cached = self._cache.get(block_number)
        if cached is not None:
            return cached
        self.probe_count += 1
        ts = await self._rpc.get_block_timestamp(block_number)
        self._cache[block_number] = ts
        return ts
