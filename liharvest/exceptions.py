"""Custom exception hierarchy for liharvest."""


class HarvestError(Exception):
    """Base exception for all liharvest errors."""


class InvalidInputError(HarvestError):
    """Missing or malformed URL, empty target list, bad job kind."""


class CredentialError(InvalidInputError):
    """No usable API token for the request."""


class RemoteError(HarvestError):
    """The remote scraping API call failed."""


class RemoteClientError(RemoteError):
    """Remote API rejected the request (HTTP 4xx). Never retried."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class TransientRemoteError(RemoteError):
    """Failure worth retrying."""


class RemoteServerError(TransientRemoteError):
    """Remote API returned HTTP 5xx."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class RemoteTimeoutError(TransientRemoteError):
    """Request exceeded the per-request timeout."""


class RemoteConnectionError(TransientRemoteError):
    """Could not reach the remote API."""


class RunFailedError(RemoteError):
    """Remote run finished with FAILED (or TIMED-OUT) status."""


class RunAbortedError(RemoteError):
    """Remote run was aborted."""


class RunTimeoutError(RemoteError):
    """Remote run did not finish within the polling ceiling."""


class StoreError(HarvestError):
    """Persistence operation failed."""


class NotFoundError(StoreError):
    """Requested row does not exist or is not visible to the owner."""


class JobStateError(HarvestError):
    """Job row is terminal and cannot be changed."""


class JobCancelledError(HarvestError):
    """Job was cancelled while it was running."""


class ProgressError(HarvestError):
    """Illegal progress stage transition."""


class ConfigError(HarvestError):
    """Invalid configuration."""
