"""Remote run handle."""

from enum import Enum

from pydantic import BaseModel


class RunStatus(str, Enum):
    """Status values reported by the actor-runs endpoint."""
    READY = "READY"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    TIMING_OUT = "TIMING-OUT"
    TIMED_OUT = "TIMED-OUT"
    ABORTING = "ABORTING"
    ABORTED = "ABORTED"


class ExternalRun(BaseModel):
    """Handle to one remote actor run. Never persisted."""

    run_id: str
    dataset_id: str
    status: str = RunStatus.READY.value
