"""Merge directional event batches and turn them into signed, ordered TransferRecords."""

import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from decimal import Context, Decimal

from erc20sync.domain.models.transfer import RawTransferEvent, TokenMeta, TransferRecord

logger = logging.getLogger(__name__)

# uint256 has at most 78 digits
_EXACT = Context(prec=100)


def merge_events(*batches: Iterable[RawTransferEvent]) -> list[RawTransferEvent]:
    """Union batches keyed by (tx_hash, log_index); each physical event is kept once.

    When duplicates disagree, the copy carrying a timestamp wins. Events that
    cannot be keyed are dropped.
    """
    merged: dict[tuple[str, int], RawTransferEvent] = {}
    unkeyed = 0
    for batch in batches:
        for event in batch:
            key = event.dedup_key
            if key is None:
                unkeyed += 1
                continue
            existing = merged.get(key)
            if existing is None or (existing.timestamp is None and event.timestamp is not None):
                merged[key] = event

    if unkeyed:
        logger.warning("Dropped %d events without tx hash or log index", unkeyed)
    return list(merged.values())


def scale_amount(raw_amount: int, decimals: int) -> Decimal:
    """Exact decimal value of a raw integer amount."""
    return Decimal(raw_amount).scaleb(-decimals, context=_EXACT)


def make_unique_id(network: str, tx_hash: str, log_index: int) -> str:
    return f"{network}-{tx_hash.lower()}-{log_index}"


def utc_date(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, UTC).date().isoformat()


def sort_key(record: TransferRecord) -> tuple[int, int, int]:
    return record.timestamp, record.block_number, record.log_index


def _is_complete(event: RawTransferEvent) -> bool:
    return (
        bool(event.tx_hash)
        and bool(event.from_address)
        and bool(event.to_address)
        and event.raw_amount is not None
        and event.block_number is not None
        and event.log_index is not None
    )


def normalize_transfers(
    events: Iterable[RawTransferEvent],
    *,
    network: str,
    token_address: str,
    token_meta: TokenMeta,
    wallet: str | None = None,
    block_timestamps: Mapping[int, int] | None = None,
) -> list[TransferRecord]:
    """Build records sorted by (timestamp, block, log index).

    Amounts are positive when ``wallet`` receives, negative when it sends.
    Without a wallet all amounts are positive. Malformed events and events
    whose timestamp cannot be resolved are skipped.
    """
    wallet_lower = wallet.lower() if wallet else None
    block_timestamps = block_timestamps or {}
    token_lower = token_address.lower()

    records: list[TransferRecord] = []
    malformed = unresolved = 0
    for event in events:
        if not _is_complete(event):
            malformed += 1
            continue

        timestamp = event.timestamp
        if timestamp is None:
            timestamp = block_timestamps.get(event.block_number)
        if timestamp is None:
            unresolved += 1
            continue

        tx_hash = event.tx_hash.lower()
        from_addr = event.from_address.lower()
        to_addr = event.to_address.lower()

        amount = scale_amount(event.raw_amount, token_meta.decimals)
        if wallet_lower is not None and to_addr != wallet_lower and amount:
            amount = -amount

        records.append(TransferRecord(
            network=network,
            token_address=token_lower,
            token_symbol=token_meta.symbol,
            amount=amount,
            amount_raw=str(event.raw_amount),
            block_number=event.block_number,
            log_index=event.log_index,
            date=utc_date(timestamp),
            timestamp=timestamp,
            tx_hash=tx_hash,
            from_address=from_addr,
            to_address=to_addr,
            unique_id=make_unique_id(network, tx_hash, event.log_index),
        ))

    if malformed:
        logger.warning("Dropped %d malformed transfer events", malformed)
    if unresolved:
        logger.warning("Dropped %d transfer events with unresolvable timestamps", unresolved)

    records.sort(key=sort_key)
    return records
