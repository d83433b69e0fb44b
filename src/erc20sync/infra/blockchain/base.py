"""Abstract base for backends that retrieve raw ERC-20 Transfer events."""

from abc import ABC, abstractmethod

from erc20sync.domain.enums import Direction
from erc20sync.domain.models.transfer import BlockRange, RawTransferEvent


class TransferSource(ABC):
    """Strategy interface for loading Transfer events of one token over a block range."""

    @abstractmethod
    async def fetch_transfers(
        self,
        token: str,
        block_range: BlockRange | None,
        wallet: str | None = None,
        direction: Direction | None = None,
    ) -> list[RawTransferEvent]:
        """Return every Transfer event of ``token`` inside ``block_range``.

        With ``wallet`` and ``direction`` set, only events where the wallet is the
        receiver (INCOMING) or the sender (OUTGOING) are returned. ``None`` range
        means the window is empty and no request is made.
        """


def check_direction(wallet: str | None, direction: Direction | None) -> None:
    if (wallet is None) != (direction is None):
        raise ValueError("wallet and direction must be given together")
