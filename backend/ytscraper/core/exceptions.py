"""Error taxonomy for the ingestion service.

``InvalidRequest``, ``UpstreamUnavailable`` and ``JobNotFound`` are raised to
API callers synchronously. The remaining errors are only ever seen by a worker
and end up as the ``Failed`` message of the job that hit them.
"""


class ScraperError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class InvalidRequest(ScraperError):
    """Malformed source URL, empty search query or out-of-range parameter."""


class UpstreamUnavailable(ScraperError):
    """The extraction / search backend could not be reached."""


class ExtractionFailed(ScraperError):
    """The extraction tool ran but did not produce a usable video."""


class StorageFailed(ScraperError):
    """Uploading to (or talking to) the object store failed."""


class PersistenceFailed(ScraperError):
    """A database write failed."""


class JobNotFound(ScraperError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id
