"""Error taxonomy for the continuity subsystem.

Every error carries a stable ``code`` (also used as the exception message)
and the HTTP status an outer transport should answer with. Precondition and
policy failures are raised locally and never retried; transient storage
failures (``sqlite3.Error``) are not wrapped and reach the caller as-is.
"""

from __future__ import annotations


class ContinuityError(ValueError):
    http_status = 400

    def __init__(self, code: str, *, detail: str | None = None) -> None:
        super().__init__(code)
        self.code = code
        self.detail = detail

    def to_payload(self) -> dict[str, str]:
        payload = {"error": self.code}
        if self.detail:
            payload["detail"] = self.detail
        return payload


class PreconditionError(ContinuityError):
    """Missing identifiers, malformed input or an impossible transition."""


class NotFoundError(PreconditionError):
    http_status = 404


class ConflictError(ContinuityError):
    """The request clashes with current state (existing session, stale version)."""

    http_status = 409


class PolicyViolationError(ContinuityError):
    """A bounded policy (such as the override defer limit) was exceeded."""

    http_status = 422


__all__ = [
    "ConflictError",
    "ContinuityError",
    "NotFoundError",
    "PolicyViolationError",
    "PreconditionError",
]
