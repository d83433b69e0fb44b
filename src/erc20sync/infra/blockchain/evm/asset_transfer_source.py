"""Indexer aggregation — Transfer events from alchemy_getAssetTransfers with pageKey pagination."""

import logging
from datetime import UTC, datetime

from erc20sync.domain.enums import Direction, ProgressLevel, ProgressStage
from erc20sync.domain.models.transfer import BlockRange, RawTransferEvent
from erc20sync.exceptions import RemoteError
from erc20sync.infra.blockchain.base import TransferSource, check_direction
from erc20sync.infra.blockchain.evm.abi import hex_to_int
from erc20sync.infra.blockchain.evm.alchemy_client import AlchemyClient
from erc20sync.sync.progress import ProgressReporter

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1_000


def parse_log_index(unique_id: str | None) -> int | None:
    """Extract the log ordinal from an Alchemy uniqueId ("<hash>:log:<index>")."""
    if not isinstance(unique_id, str) or not unique_id:
        return None
    parts = unique_id.split(":")
    if len(parts) != 3 or parts[1] != "log":
        return None
    return hex_to_int(parts[2])


def parse_block_timestamp(value: str | None) -> int | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    # Naive values are UTC, never local time
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return int(parsed.timestamp())


def _lower(value) -> str | None:
    return value.lower() if isinstance(value, str) and value else None


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def transfer_to_event(transfer: dict) -> RawTransferEvent:
    if not isinstance(transfer, dict):
        return RawTransferEvent()
    raw_contract = _as_dict(transfer.get("rawContract"))
    metadata = _as_dict(transfer.get("metadata"))
    return RawTransferEvent(
        tx_hash=_lower(transfer.get("hash")),
        from_address=_lower(transfer.get("from")),
        to_address=_lower(transfer.get("to")),
        raw_amount=hex_to_int(raw_contract.get("value")),
        block_number=hex_to_int(transfer.get("blockNum")),
        log_index=parse_log_index(transfer.get("uniqueId")),
        timestamp=parse_block_timestamp(metadata.get("blockTimestamp")),
    )


class AssetTransferSource(TransferSource):
    """One logical query per direction, looping over pages until no pageKey is returned."""

    def __init__(
        self,
        client: AlchemyClient,
        page_size: int = DEFAULT_PAGE_SIZE,
        progress: ProgressReporter | None = None,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self._client = client
        self._page_size = page_size
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

        from_address = wallet if direction is Direction.OUTGOING else None
        to_address = wallet if direction is Direction.INCOMING else None
        label = direction.value if direction else "all"

        events: list[RawTransferEvent] = []
        seen_keys: set[str] = set()
        page_key: str | None = None
        page = 0

        while True:
            page += 1
            transfers, page_key = await self._client.get_asset_transfers(
                token,
                block_range.from_block,
                block_range.to_block,
                from_address=from_address,
                to_address=to_address,
                page_key=page_key,
                max_count=self._page_size,
                page=page,
            )
            events.extend(transfer_to_event(t) for t in transfers)
            logger.debug("Page %d %s: %d transfers (total %d)", page, label, len(transfers), len(events))
            self._progress.emit(
                ProgressStage.FETCH,
                f"Fetched page {page} ({label})",
                level=ProgressLevel.DEBUG,
                current=page,
                direction=label,
                found=len(events),
            )

            if not page_key:
                break
            if page_key in seen_keys:
                raise RemoteError(
                    "Provider returned a repeated page key",
                    context={"page": page, "address": wallet or token},
                )
            seen_keys.add(page_key)

        logger.info(
            "Asset transfers %s: %d events in blocks [%d, %d] for token %s",
            label, len(events), block_range.from_block, block_range.to_block, token,
        )
        return events
