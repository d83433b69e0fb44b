"""Domain types for resolving ERC-20 transfers of one wallet over a date window."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, model_validator


class DateRange(BaseModel):
    """Inclusive calendar window, both ends as YYYY-MM-DD strings."""

    from_date: str
    to_date: str


class BlockRange(BaseModel):
    """Inclusive block window on the remote ledger."""

    model_config = ConfigDict(frozen=True)

    from_block: int
    to_block: int

    @model_validator(mode="after")
    def _check_order(self) -> "BlockRange":
        if self.from_block < 0 or self.from_block > self.to_block:
            raise ValueError(f"Invalid block range {self.from_block}-{self.to_block}")
        return self

    @property
    def size(self) -> int:
        return self.to_block - self.from_block + 1


class BlockHeader(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: int
    timestamp: int  # Unix seconds


class TokenMeta(BaseModel):
    """Token symbol + decimals, read once per resolution."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    decimals: int


class RawTransferEvent(BaseModel):
    """One Transfer event as a backend reported it (before merge/normalize).

    Structural fields are optional so a malformed entry can still be carried
    to the normalizer, which drops it instead of failing the batch.
    """

    model_config = ConfigDict(frozen=True)

    tx_hash: str | None = None
    from_address: str | None = None
    to_address: str | None = None
    raw_amount: int | None = None  # smallest unit, unbounded
    block_number: int | None = None
    log_index: int | None = None
    timestamp: int | None = None  # None = resolve from block later

    @property
    def dedup_key(self) -> tuple[str, int] | None:
        if self.tx_hash is None or self.log_index is None:
            return None
        return self.tx_hash.lower(), self.log_index


class TransferRecord(BaseModel):
    """Ledger-ready transfer, signed relative to the queried wallet."""

    model_config = ConfigDict(frozen=True)

    network: str
    token_address: str
    token_symbol: str
    amount: Decimal  # positive = received, negative = sent
    amount_raw: str  # authoritative unscaled value
    block_number: int
    log_index: int
    date: str  # YYYY-MM-DD, UTC
    timestamp: int
    tx_hash: str
    from_address: str
    to_address: str
    unique_id: str  # {network}-{tx_hash}-{log_index}
