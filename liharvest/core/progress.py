"""Explicit progress state for one running job."""

from enum import Enum
from typing import Callable

from liharvest.exceptions import ProgressError


class Stage(str, Enum):
    """User-visible job stages."""
    STARTING = "starting"
    SCRAPING_COMMENTS = "scraping_comments"
    EXTRACTING_PROFILES = "extracting_profiles"
    SCRAPING_PROFILES = "scraping_profiles"
    SAVING_DATA = "saving_data"
    COMPLETED = "completed"
    ERROR = "error"


# ERROR is reachable from every non-terminal stage and is not listed here.
TRANSITIONS: dict[Stage, frozenset[Stage]] = {
    Stage.STARTING: frozenset({Stage.SCRAPING_COMMENTS, Stage.SCRAPING_PROFILES}),
    Stage.SCRAPING_COMMENTS: frozenset({Stage.EXTRACTING_PROFILES, Stage.SAVING_DATA}),
    Stage.EXTRACTING_PROFILES: frozenset({Stage.SCRAPING_PROFILES, Stage.SAVING_DATA}),
    Stage.SCRAPING_PROFILES: frozenset({Stage.SAVING_DATA}),
    Stage.SAVING_DATA: frozenset({Stage.COMPLETED}),
    Stage.COMPLETED: frozenset(),
    Stage.ERROR: frozenset(),
}

ProgressCallback = Callable[[str, int, str], None]


class JobProgress:
    """
    Finite-state progress tracker passed through a job run.

    Every change is recorded in ``history`` and forwarded to the optional
    callback as ``(stage, percent, message)``.
    """

    def __init__(self, callback: ProgressCallback | None = None):
        self.stage = Stage.STARTING
        self.percent = 0
        self.message = ""
        self.history: list[tuple[str, int, str]] = []
        self._callback = callback

    @property
    def is_terminal(self) -> bool:
        return self.stage in (Stage.COMPLETED, Stage.ERROR)

    def _emit(self) -> None:
        self.history.append((self.stage.value, self.percent, self.message))
        if self._callback is not None:
            self._callback(self.stage.value, self.percent, self.message)

    def start(self, message: str = "") -> None:
        """Report the initial stage."""
        if self.history:
            raise ProgressError("Progress already started")
        self.message = message
        self._emit()

    def advance(self, stage: Stage, percent: int, message: str = "") -> None:
        """Move to the next stage."""
        stage = Stage(stage)
        if stage == Stage.ERROR:
            self.fail(message)
            return
        if stage not in TRANSITIONS[self.stage]:
            raise ProgressError(f"Illegal progress transition {self.stage.value} -> {stage.value}")

        self.stage = stage
        self.percent = max(0, min(100, percent))
        self.message = message
        self._emit()

    def note(self, message: str) -> None:
        """Update the message without leaving the current stage."""
        if self.is_terminal:
            raise ProgressError(f"Progress already {self.stage.value}")
        self.message = message
        self._emit()

    def fail(self, message: str) -> None:
        """Move to the error stage."""
        if self.is_terminal:
            raise ProgressError(f"Progress already {self.stage.value}")
        self.stage = Stage.ERROR
        self.percent = 0
        self.message = message
        self._emit()
