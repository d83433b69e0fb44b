"""Progress reporting to an injected observer callback."""

from typing import Any, Callable

from erc20sync.domain.enums import ProgressLevel, ProgressStage
from erc20sync.domain.models.progress import ProgressEvent

ProgressObserver = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Builds ProgressEvents and hands them to the observer, if any."""

    def __init__(self, observer: ProgressObserver | None = None) -> None:
        self._observer = observer

    @property
    def enabled(self) -> bool:
        return self._observer is not None

    def emit(
        self,
        stage: ProgressStage,
        message: str,
        *,
        level: ProgressLevel = ProgressLevel.INFO,
        current: int | None = None,
        total: int | None = None,
        **context: Any,
    ) -> None:
        if self._observer is None:
            return
        self._observer(ProgressEvent(
            stage=stage,
            level=level,
            message=message,
            current=current,
            total=total,
            context=context,
        ))
