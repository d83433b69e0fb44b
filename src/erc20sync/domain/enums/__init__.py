from erc20sync.domain.enums.direction import Direction
from erc20sync.domain.enums.progress import ProgressLevel, ProgressStage
from erc20sync.domain.enums.source import TransferSourceKind

__all__ = [
    "Direction",
    "ProgressLevel",
    "ProgressStage",
    "TransferSourceKind",
]
