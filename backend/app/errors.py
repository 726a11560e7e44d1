"""Error taxonomy shared by the training engine and the API layer.

Domain rules raise these close to where they are detected and they pass
through unchanged to the HTTP boundary, where ``main.py`` renders them
with the same ``{"code", "message"}`` body the global handler uses.
Storage failures are never raised as-is; the engine wraps them in
:class:`InternalError` so driver details stay out of responses.
"""

from datetime import datetime


class TrainingError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    code = "training_error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(TrainingError):
    """Malformed input such as a wrong answer count or bad option layout."""

    status_code = 422
    code = "validation_error"


class NotFound(TrainingError):
    """Resource does not resolve within the caller's restaurant."""

    status_code = 404
    code = "not_found"


class Forbidden(TrainingError):
    """Caller is known but not allowed, e.g. an ineligible staff role."""

    status_code = 403
    code = "forbidden"


class Conflict(TrainingError):
    """Concurrent or repeated submission for the same attempt."""

    status_code = 409
    code = "conflict"


class TooSoon(Conflict):
    """Retake cooldown is still running."""

    code = "too_soon"

    def __init__(self, next_eligible_at: datetime, message: str | None = None):
        super().__init__(
            message
            or f"Quiz can be retaken after {next_eligible_at.isoformat()}"
        )
        self.next_eligible_at = next_eligible_at

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["next_eligible_at"] = self.next_eligible_at.isoformat()
        return data


class InternalError(TrainingError):
    """Opaque failure; details are logged, never returned."""

    status_code = 500
    code = "internal_server_error"

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message)
