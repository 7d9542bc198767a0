"""
Error taxonomy shared by every worker.

Processors wrap library errors (httpx, selenium, SQLAlchemy, storage client,
subprocess) into one of these at the boundary and let them propagate. The
orchestrator reads ``retryable`` to decide between backoff and terminal failure.
"""


class PipelineError(Exception):
    """Base class for all job-level failures."""

    retryable = True

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class NetworkError(PipelineError):
    """External API or website could not be reached."""


class NavigationError(NetworkError):
    """The audited page did not load within the navigation timeout."""


class AuditToolError(PipelineError):
    """The page-quality audit tool crashed or returned an unusable report."""


class StorageError(PipelineError):
    """Screenshot upload to object storage failed."""


class DatabaseError(PipelineError):
    """Read or write against the database failed."""


class ValidationError(PipelineError):
    """Malformed job payload. Retrying cannot fix it."""

    retryable = False
