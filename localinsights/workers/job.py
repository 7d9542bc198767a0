import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from localinsights.platform.exceptions import ValidationError

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class JobType(str, enum.Enum):
    GRID_SEARCH = "grid-search"
    AUDIT_WEBSITE = "audit-website"
    PROCESS_RAW_DATA = "process-raw-data"

    @property
    def queue(self) -> str:
        return self.value


class JobStatus(str, enum.Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Job:
    """
    Immutable view of a queued job as seen by a processor.

    ``attempt`` is 1-based. Identity belongs to the broker; processors only
    read it.
    """

    id: str
    queue: str
    payload: Dict[str, Any] = field(default_factory=dict)
    attempt: int = 1
    max_attempts: int = 3
    status: JobStatus = JobStatus.ACTIVE

    @property
    def is_retry(self) -> bool:
        return self.attempt > 1

    @property
    def attempts_left(self) -> int:
        return max(0, self.max_attempts - self.attempt)


def parse_payload(schema: Type[PayloadT], payload: Dict[str, Any]) -> PayloadT:
    """Validate a job payload, turning pydantic errors into a non-retryable ValidationError."""
    try:
        return schema.model_validate(payload or {})
    except PydanticValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'payload'}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(f"Invalid {schema.__name__}: {details}") from e
