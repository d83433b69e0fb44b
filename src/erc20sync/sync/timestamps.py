"""Backfill block timestamps for events the source delivered without one."""

import asyncio
import logging
from collections.abc import Iterable

from erc20sync.domain.enums import ProgressLevel, ProgressStage
from erc20sync.domain.models.transfer import RawTransferEvent
from erc20sync.infra.blockchain.evm.rpc_client import EVMRPCClient
from erc20sync.sync.progress import ProgressReporter

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8


def blocks_missing_timestamps(events: Iterable[RawTransferEvent]) -> list[int]:
    return sorted({
        e.block_number for e in events
        if e.timestamp is None and e.block_number is not None
    })


class TimestampResolver:
    """One block fetch per distinct block number, at most ``concurrency`` in flight."""

    def __init__(
        self,
        rpc: EVMRPCClient,
        concurrency: int = DEFAULT_CONCURRENCY,
        progress: ProgressReporter | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._rpc = rpc
        self._concurrency = concurrency
        self._progress = progress or ProgressReporter()

    async def resolve(self, events: Iterable[RawTransferEvent]) -> dict[int, int]:
        """Return {block_number: timestamp}. Any block failing after retries aborts the whole call."""
        blocks = blocks_missing_timestamps(events)
        if not blocks:
            return {}

        semaphore = asyncio.Semaphore(self._concurrency)
        timestamps: dict[int, int] = {}

        async def fetch(block_number: int) -> None:
            async with semaphore:
                # Keys are distinct, each written exactly once
                timestamps[block_number] = await self._rpc.get_block_timestamp(block_number)
            self._progress.emit(
                ProgressStage.TIMESTAMPS,
                f"Loaded block {block_number}",
                level=ProgressLevel.DEBUG,
                current=len(timestamps),
                total=len(blocks),
            )

        logger.debug("Resolving timestamps for %d blocks (concurrency=%d)", len(blocks), self._concurrency)
        tasks = [asyncio.create_task(fetch(b)) for b in blocks]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        logger.info("Resolved timestamps for %d blocks", len(timestamps))
        return timestamps
