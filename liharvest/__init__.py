"""liharvest - LinkedIn comment and profile harvesting with a shared profile cache."""

from liharvest.models.job import Job, JobKind, JobStatus
from liharvest.models.profile import CachedProfile, StoredProfile
from liharvest.models.result import JobResult, ProfileResolution
from liharvest.config import HarvestConfig
from liharvest.core.orchestrator import Harvester
from liharvest.core.exporter import to_json, to_dict, save_json, load_json

__version__ = "0.1.0"

__all__ = [
    # Main interface
    "Harvester",
    "HarvestConfig",
    # Models
    "Job",
    "JobKind",
    "JobStatus",
    "CachedProfile",
    "StoredProfile",
    "JobResult",
    "ProfileResolution",
    # Export utilities
    "to_json",
    "to_dict",
    "save_json",
    "load_json",
    "__version__",
]
