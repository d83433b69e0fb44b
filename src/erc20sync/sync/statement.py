"""Map TransferRecords to bank-statement lines for the downstream ledger."""

from decimal import Decimal
from typing import TypeVar

from pydantic import BaseModel

from erc20sync.domain.models.transfer import TransferRecord
from erc20sync.infra.blockchain.evm.networks import explorer_tx_url

T = TypeVar("T")

IMPORT_ID_PREFIX = "ERC20-"


class StatementLine(BaseModel):
    """Payload for one ledger statement line. unique_import_id makes inserts idempotent."""

    amount: Decimal
    date: str
    journal_id: int
    company_id: int | None = None
    narration: str
    payment_ref: str
    unique_import_id: str

    def to_json(self) -> str:
        """Serialized payload; unset optional keys are omitted."""
        return self.model_dump_json(exclude_none=True)


def build_statement_line(
    record: TransferRecord, journal_id: int, company_id: int | None = None
) -> StatementLine:
    narration = f"{record.from_address} -> {record.to_address}"
    url = explorer_tx_url(record.network, record.tx_hash)
    if url:
        narration += f" | {url}"

    return StatementLine(
        amount=record.amount,
        date=record.date,
        journal_id=journal_id,
        company_id=company_id,
        narration=narration,
        payment_ref=f"{record.token_symbol} {record.tx_hash[:12]}",
        unique_import_id=f"{IMPORT_ID_PREFIX}{record.unique_id}",
    )


def chunked(items: list[T], size: int) -> list[list[T]]:
    if size < 1:
        raise ValueError("size must be >= 1")
    return [items[i:i + size] for i in range(0, len(items), size)]
