"""Retake cooldown between attempts on the same quiz."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from app.models import StaffQuizProgress


@dataclass(frozen=True)
class CooldownStatus:
    allowed: bool
    next_eligible_at: datetime | None = None


def check_cooldown(
    last_attempt_at: datetime | None, cooldown_hours: int, now: datetime
) -> CooldownStatus:
    """Whether a new attempt may start at ``now``.

    No previous attempt, or a cooldown of zero hours, always allows.
    Otherwise the full cooldown must have elapsed since the last
    submission.
    """
    if last_attempt_at is None or cooldown_hours <= 0:
        return CooldownStatus(allowed=True)
    next_eligible_at = last_attempt_at + timedelta(hours=cooldown_hours)
    if now >= next_eligible_at:
        return CooldownStatus(allowed=True)
    return CooldownStatus(allowed=False, next_eligible_at=next_eligible_at)


def cooldown_for_progress(
    progress: StaffQuizProgress | None, cooldown_hours: int, now: datetime
) -> CooldownStatus:
    last = progress.last_attempt_timestamp if progress else None
    return check_cooldown(last, cooldown_hours, now)
