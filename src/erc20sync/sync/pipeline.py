"""TransferPipeline — one resolution engine shared by every TransferSource."""

import logging
import time

from erc20sync.domain.enums import Direction, ProgressStage
from erc20sync.domain.models.transfer import DateRange, TokenMeta, TransferRecord
from erc20sync.exceptions import RemoteError
from erc20sync.infra.blockchain.base import TransferSource
from erc20sync.infra.blockchain.evm.abi import (
    DECIMALS_SELECTOR,
    SYMBOL_SELECTOR,
    decode_string,
    decode_uint,
)
from erc20sync.infra.blockchain.evm.rpc_client import EVMRPCClient
from erc20sync.sync.block_range import BlockRangeResolver, parse_date_range
from erc20sync.sync.normalize import merge_events, normalize_transfers
from erc20sync.sync.progress import ProgressReporter
from erc20sync.sync.timestamps import DEFAULT_CONCURRENCY, TimestampResolver

logger = logging.getLogger(__name__)

# decimals() is a uint8
MAX_DECIMALS = 255


async def fetch_token_meta(rpc: EVMRPCClient, token_address: str) -> TokenMeta:
    """Read decimals() and symbol() from the token contract."""
    decimals_data = await rpc.eth_call(
        token_address, DECIMALS_SELECTOR, operation=f"read token decimals from {token_address}"
    )
    symbol_data = await rpc.eth_call(
        token_address, SYMBOL_SELECTOR, operation=f"read token symbol from {token_address}"
    )
    try:
        decimals = decode_uint(decimals_data)
    except ValueError as e:
        raise RemoteError(
            f"Could not read token decimals from {token_address}: {e}",
            context={"address": token_address},
        ) from e
    if not 0 <= decimals <= MAX_DECIMALS:
        raise RemoteError(
            f"Token {token_address} reports out-of-range decimals {decimals}",
            context={"address": token_address, "decimals": decimals},
        )
    try:
        symbol = decode_string(symbol_data)
    except ValueError as e:
        raise RemoteError(
            f"Could not read token symbol from {token_address}: {e}",
            context={"address": token_address},
        ) from e
    return TokenMeta(symbol=symbol, decimals=decimals)


class TransferPipeline:
    """Dates -> block range -> directional fetch -> merge -> timestamps -> records."""

    def __init__(
        self,
        rpc: EVMRPCClient,
        source: TransferSource,
        timestamp_concurrency: int = DEFAULT_CONCURRENCY,
        progress: ProgressReporter | None = None,
    ) -> None:
        self._rpc = rpc
        self._source = source
        self._progress = progress or ProgressReporter()
        self._block_resolver = BlockRangeResolver(rpc, self._progress)
        self._timestamp_resolver = TimestampResolver(rpc, timestamp_concurrency, self._progress)

    async def run(
        self,
        network: str,
        token_address: str,
        date_range: DateRange,
        wallet: str | None = None,
    ) -> list[TransferRecord]:
        """Resolve every transfer of ``token_address`` touching ``wallet`` in the date window.

        ``network`` is the canonical key embedded in unique ids. Any remote
        failure aborts the whole run; there is no partial result.
        """
        started = time.monotonic()
        parse_date_range(date_range)

        block_range = await self._block_resolver.resolve(date_range)
        if block_range is None:
            self._finish(0, started)
            return []

        token_meta = await fetch_token_meta(self._rpc, token_address)
        self._progress.emit(
            ProgressStage.TOKEN_META,
            f"Token {token_meta.symbol} ({token_meta.decimals} decimals)",
            symbol=token_meta.symbol,
            decimals=token_meta.decimals,
        )

        if wallet is not None:
            incoming = await self._source.fetch_transfers(
                token_address, block_range, wallet, Direction.INCOMING
            )
            outgoing = await self._source.fetch_transfers(
                token_address, block_range, wallet, Direction.OUTGOING
            )
            events = merge_events(incoming, outgoing)
            logger.info(
                "Fetched %d incoming + %d outgoing events, %d unique",
                len(incoming), len(outgoing), len(events),
            )
        else:
            events = merge_events(await self._source.fetch_transfers(token_address, block_range))
            logger.info("Fetched %d unique events", len(events))

        self._progress.emit(ProgressStage.FETCH, f"Found {len(events)} transfer event(s)", found=len(events))
        if not events:
            self._finish(0, started)
            return []

        block_timestamps = await self._timestamp_resolver.resolve(events)
        records = normalize_transfers(
            events,
            network=network,
            token_address=token_address,
            token_meta=token_meta,
            wallet=wallet,
            block_timestamps=block_timestamps,
        )
        self._progress.emit(ProgressStage.NORMALIZE, f"Normalized {len(records)} record(s)", count=len(records))
        self._finish(len(records), started)
        return records

    def _finish(self, count: int, started: float) -> None:
        elapsed = time.monotonic() - started
        logger.info("Resolved %d transfer record(s) in %.1fs", count, elapsed)
        self._progress.emit(
            ProgressStage.DONE,
            f"Transfer fetch finished after {elapsed:.1f}s",
            count=count,
            elapsed=round(elapsed, 3),
        )
