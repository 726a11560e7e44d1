"""Per-staff coverage tracking and question selection.

The seen set only grows: :func:`record_seen` unions new ids into it
inside the caller's transaction and never overwrites what another
submission added.  Selection prefers questions the staff member has not
been shown yet and falls back to reusing seen ones once the pool runs
dry.
"""

import logging
from datetime import datetime
from typing import Protocol, Sequence

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.cooldown import check_cooldown
from app.errors import Conflict, TooSoon
from app.models import Quiz, StaffQuizProgress

logger = logging.getLogger(__name__)

MAX_UNION_RETRIES = 3


class RandomSource(Protocol):
    def sample(self, population: Sequence, k: int) -> list: ...

    def shuffle(self, x: list) -> None: ...


def select_questions_for_attempt(
    pool: Sequence[int],
    seen: Sequence[int],
    per_attempt: int,
    rng: RandomSource,
) -> list[int]:
    """Pick the next batch of question ids for one attempt.

    Unseen questions are drawn first.  When fewer than ``per_attempt``
    remain, all of them are taken and the rest of the batch is filled
    from questions already seen (and still in the pool).  The batch is
    shuffled and never contains the same id twice.
    """
    pool_ids = list(dict.fromkeys(pool))
    seen_set = set(seen)
    unseen = [q for q in pool_ids if q not in seen_set]
    target = min(max(per_attempt, 0), len(pool_ids))

    if len(unseen) >= target:
        batch = rng.sample(unseen, target)
    else:
        reusable = [q for q in pool_ids if q in seen_set]
        batch = list(unseen) + rng.sample(reusable, target - len(unseen))
    rng.shuffle(batch)
    return batch


async def get_progress(
    db: AsyncSession, staff_user_id: int, quiz_id: int
) -> StaffQuizProgress | None:
    result = await db.execute(
        select(StaffQuizProgress)
        .where(
            StaffQuizProgress.staff_user_id == staff_user_id,
            StaffQuizProgress.quiz_id == quiz_id,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def coverage_percentage(progress: StaffQuizProgress | None) -> float:
    if progress is None or progress.total_unique_questions_in_source <= 0:
        return 0.0
    seen = len(progress.seen_question_ids or [])
    return round(seen / progress.total_unique_questions_in_source * 100, 1)


def _coverage_fields(seen: list[int], total: int) -> tuple[int, bool]:
    # The denominator only moves when coverage outgrows it, which happens
    # if questions were added to the banks without a re-snapshot.
    total = max(total, len(seen))
    return total, total > 0 and len(seen) >= total


async def record_seen(
    db: AsyncSession,
    staff_user_id: int,
    quiz: Quiz,
    question_ids: Sequence[int],
    attempted_at: datetime,
    cooldown_hours: int | None = None,
) -> StaffQuizProgress:
    """Union ``question_ids`` into the staff member's seen set.

    Creates the ledger on first use with the quiz's current snapshot as
    the denominator.  Runs inside the caller's transaction and does not
    commit.  Updates are guarded by the row's ``version`` so a stale read
    is retried instead of overwriting a concurrent union.

    With ``cooldown_hours`` set, every read of the ledger is checked
    against the retake cooldown, so a submission that lands after another
    one for the same quiz is rejected with :class:`TooSoon`.
    """
    quiz_id = quiz.id
    new_ids = set(question_ids)
    for _ in range(MAX_UNION_RETRIES):
        progress = await get_progress(db, staff_user_id, quiz_id)
        if progress is not None and cooldown_hours is not None:
            gate = check_cooldown(
                progress.last_attempt_timestamp, cooldown_hours, attempted_at
            )
            if not gate.allowed:
                raise TooSoon(gate.next_eligible_at)
        if progress is None:
            seen = sorted(new_ids)
            total, completed = _coverage_fields(
                seen, quiz.total_unique_questions_in_source_snapshot
            )
            progress = StaffQuizProgress(
                staff_user_id=staff_user_id,
                quiz_id=quiz_id,
                restaurant_id=quiz.restaurant_id,
                seen_question_ids=seen,
                total_unique_questions_in_source=total,
                is_completed_overall=completed,
                last_attempt_timestamp=attempted_at,
                created_at=attempted_at,
                updated_at=attempted_at,
            )
            db.add(progress)
            try:
                await db.flush()
            except IntegrityError:
                logger.warning(
                    "Concurrent progress creation for staff %s quiz %s",
                    staff_user_id,
                    quiz_id,
                )
                raise Conflict(
                    "Another submission for this quiz is in progress"
                )
            return progress

        seen = sorted(set(progress.seen_question_ids or []) | new_ids)
        total, completed = _coverage_fields(
            seen, progress.total_unique_questions_in_source
        )
        last = progress.last_attempt_timestamp
        if last is None or attempted_at > last:
            last = attempted_at
        result = await db.execute(
            update(StaffQuizProgress)
            .where(
                StaffQuizProgress.id == progress.id,
                StaffQuizProgress.version == progress.version,
            )
            .values(
                seen_question_ids=seen,
                total_unique_questions_in_source=total,
                is_completed_overall=completed,
                last_attempt_timestamp=last,
                version=progress.version + 1,
                updated_at=attempted_at,
            )
        )
        if result.rowcount == 1:
            await db.refresh(progress)
            return progress
        logger.info(
            "Progress version moved for staff %s quiz %s, retrying union",
            staff_user_id,
            quiz_id,
        )
    raise Conflict("Another submission for this quiz is in progress")
