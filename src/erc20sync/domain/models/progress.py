from typing import Any

from pydantic import BaseModel

from erc20sync.domain.enums import ProgressLevel, ProgressStage


class ProgressEvent(BaseModel):
    """One progress notification emitted by the resolution pipeline."""

    stage: ProgressStage
    level: ProgressLevel = ProgressLevel.INFO
    message: str
    current: int | None = None  # e.g. chunk / page number
    total: int | None = None  # None = unknown upfront (paginated sources)
    context: dict[str, Any] = {}
