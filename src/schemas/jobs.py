"""Offline job lifecycle schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

JobStatus = Literal["queued", "processing", "completed", "failed"]

# Forward-only ordering; completed and failed share the terminal rank.
JOB_STATUS_RANK: dict[str, int] = {
    "queued": 0,
    "processing": 1,
    "completed": 2,
    "failed": 2,
}


class JobError(BaseModel):
    message: str
    code: Optional[str] = None
    type: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


def normalize_job_error(value: Any) -> JobError | None:
    """Coerce a string, exception or mapping into a ``JobError``."""
    if value is None or isinstance(value, JobError):
        return value
    if isinstance(value, str):
        return JobError(message=value)
    if isinstance(value, BaseException):
        return JobError(
            message=str(value) or type(value).__name__,
            code=getattr(value, "code", None),
            type=type(value).__name__,
        )
    if isinstance(value, dict):
        return JobError.model_validate({"message": "", **value})
    return JobError(message=str(value))


class OfflineJob(BaseModel):
    job_id: str
    session_id: Optional[str] = None
    status: JobStatus = "queued"
    enqueued_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    attempts: int = Field(default=0, ge=0)
    error: Optional[JobError] = None
    result: Optional[dict[str, Any]] = None
    closed_at: Optional[datetime] = None
    audit_ref: Optional[str] = None
    reason: Optional[str] = None

    @field_validator("error", mode="before")
    @classmethod
    def _coerce_error(cls, value: Any) -> JobError | None:
        return normalize_job_error(value)


class OfflineJobEvent(BaseModel):
    """Lifecycle event handed to transport and telemetry collaborators."""

    type: str
    job_id: str
    status: JobStatus
    attempts: int = 0
    session_id: Optional[str] = None
    enqueued_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    error: Optional[JobError] = None
    result: Optional[dict[str, Any]] = None

    @field_validator("error", mode="before")
    @classmethod
    def _coerce_error(cls, value: Any) -> JobError | None:
        return normalize_job_error(value)

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready payload with unset optional fields dropped."""
        return self.model_dump(mode="json", exclude_none=True)


__all__ = [
    "JOB_STATUS_RANK",
    "JobError",
    "JobStatus",
    "OfflineJob",
    "OfflineJobEvent",
    "normalize_job_error",
]
