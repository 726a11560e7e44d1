"""Grading and persistence of quiz attempts.

A submission is one unit of work: claiming the attempt token, writing
the immutable :class:`~app.models.QuizAttempt` and unioning the presented
questions into the staff member's progress all commit together or not
at all.  The cascades that remove attempts and progress also live here.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, delete

from app.errors import Conflict, ValidationError
from app.models import (
    Notification,
    PendingAttempt,
    Question,
    Quiz,
    QuizAttempt,
    StaffQuizProgress,
    User,
    UserPermissionLink,
)
from app.progress import record_seen
from app.questions import answer_key, correct_option_indices

logger = logging.getLogger(__name__)


@dataclass
class GradedQuestion:
    question_id: int
    answer_given: Any
    is_correct: bool
    correct_answer: int | list[int]


def normalize_answer(answer: Any) -> frozenset[int]:
    """Turn a submitted answer into the set of chosen option indices.

    ``None`` means unanswered.  A bare index and a one-element list are
    equivalent.
    """
    if answer is None:
        return frozenset()
    if isinstance(answer, bool):
        raise ValidationError("Answers must be option indices")
    if isinstance(answer, int):
        return frozenset({answer})
    if isinstance(answer, (list, tuple, set, frozenset)):
        if any(isinstance(a, bool) or not isinstance(a, int) for a in answer):
            raise ValidationError("Answers must be option indices")
        return frozenset(answer)
    raise ValidationError("Answers must be an option index or a list of indices")


def grade_answers(
    questions: Sequence[Question], answers: Sequence[Any]
) -> tuple[int, list[GradedQuestion]]:
    """Score ``answers`` against ``questions`` position by position.

    A question counts only when the chosen set equals the correct set
    exactly.  Multiple-answer questions earn no partial credit.
    """
    if len(answers) != len(questions):
        raise ValidationError(
            f"Number of answers ({len(answers)}) does not match number of "
            f"questions ({len(questions)})"
        )
    graded = []
    score = 0
    for question, answer in zip(questions, answers):
        given = normalize_answer(answer)
        correct = frozenset(correct_option_indices(question.options))
        is_correct = given == correct
        if is_correct:
            score += 1
        if isinstance(answer, (list, tuple, set, frozenset)):
            answer = sorted(answer)
        graded.append(
            GradedQuestion(
                question_id=question.id,
                answer_given=answer,
                is_correct=is_correct,
                correct_answer=answer_key(question.question_type, question.options),
            )
        )
    return score, graded


async def get_pending_attempt(db: AsyncSession, token: str) -> PendingAttempt | None:
    result = await db.execute(
        select(PendingAttempt)
        .where(PendingAttempt.token == token)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_open_attempt(
    db: AsyncSession, staff_user_id: int, quiz_id: int
) -> PendingAttempt | None:
    result = await db.execute(
        select(PendingAttempt)
        .where(
            PendingAttempt.staff_user_id == staff_user_id,
            PendingAttempt.quiz_id == quiz_id,
            PendingAttempt.status == "open",
        )
        .order_by(PendingAttempt.started_at.desc())
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def abandon_open_attempts(
    db: AsyncSession, staff_user_id: int, quiz_id: int
) -> None:
    """Close any unsubmitted attempt for the pair; caller commits."""
    await db.execute(
        update(PendingAttempt)
        .where(
            PendingAttempt.staff_user_id == staff_user_id,
            PendingAttempt.quiz_id == quiz_id,
            PendingAttempt.status == "open",
        )
        .values(status="abandoned")
    )


async def _claim(db: AsyncSession, token: str, now: datetime) -> None:
    result = await db.execute(
        update(PendingAttempt)
        .where(PendingAttempt.token == token, PendingAttempt.status == "open")
        .values(status="submitted", submitted_at=now)
    )
    if result.rowcount != 1:
        raise Conflict("This attempt has already been submitted")


async def record_attempt(
    db: AsyncSession,
    quiz: Quiz,
    pending: PendingAttempt,
    score: int,
    graded: list[GradedQuestion],
    submitted_at: datetime,
    duration_in_seconds: int | None = None,
) -> tuple[QuizAttempt, StaffQuizProgress]:
    """Persist a graded attempt and its progress update atomically."""
    try:
        await _claim(db, pending.token, submitted_at)
        attempt = QuizAttempt(
            staff_user_id=pending.staff_user_id,
            quiz_id=quiz.id,
            restaurant_id=quiz.restaurant_id,
            questions_presented=[
                {
                    "question_id": g.question_id,
                    "answer_given": g.answer_given,
                    "is_correct": g.is_correct,
                    "sort_order": i,
                }
                for i, g in enumerate(graded)
            ],
            score=score,
            attempt_date=submitted_at,
            duration_in_seconds=duration_in_seconds,
        )
        db.add(attempt)
        await db.flush()
        progress = await record_seen(
            db,
            pending.staff_user_id,
            quiz,
            [g.question_id for g in graded],
            submitted_at,
            cooldown_hours=quiz.retake_cooldown_hours,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(attempt)
    return attempt, progress


async def delete_quiz_cascade(db: AsyncSession, quiz: Quiz) -> None:
    """Remove a quiz with every attempt, progress row and token for it."""
    quiz_id = quiz.id
    try:
        await db.execute(delete(PendingAttempt).where(PendingAttempt.quiz_id == quiz_id))
        await db.execute(
            delete(StaffQuizProgress).where(StaffQuizProgress.quiz_id == quiz_id)
        )
        await db.execute(delete(QuizAttempt).where(QuizAttempt.quiz_id == quiz_id))
        await db.execute(
            delete(Notification).where(Notification.related_quiz_id == quiz_id)
        )
        await db.execute(delete(Quiz).where(Quiz.id == quiz_id))
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Deleted quiz %s with its attempts and progress", quiz_id)


async def delete_staff_cascade(db: AsyncSession, staff: User) -> None:
    """Remove a staff member together with their training records."""
    staff_id = staff.id
    try:
        await db.execute(
            delete(PendingAttempt).where(PendingAttempt.staff_user_id == staff_id)
        )
        await db.execute(
            delete(StaffQuizProgress).where(StaffQuizProgress.staff_user_id == staff_id)
        )
        await db.execute(
            delete(QuizAttempt).where(QuizAttempt.staff_user_id == staff_id)
        )
        await db.execute(
            delete(Notification).where(Notification.recipient_user_id == staff_id)
        )
        await db.execute(
            delete(UserPermissionLink).where(UserPermissionLink.user_id == staff_id)
        )
        await db.execute(delete(User).where(User.id == staff_id))
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Deleted staff member %s with their training records", staff_id)
