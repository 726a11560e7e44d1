"""Training engine: quiz lifecycle, attempts and progress in one place.

The engine is built once at application start with its collaborators
(question source, random source, clock and notifier) and handed to
route handlers through :func:`get_engine`.  Domain rule violations are
raised as :mod:`app.errors` exceptions; storage exceptions are logged
here and replaced by :class:`~app.errors.InternalError`.
"""

import functools
import logging
import random
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Sequence

from fastapi import Request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app import attempts, scoring
from app.attempts import GradedQuestion
from app.cooldown import CooldownStatus, cooldown_for_progress
from app.crud import (
    get_question_bank,
    get_questions_by_ids,
    get_quiz,
    get_quizzes_for_restaurant,
    get_settings,
    get_staff_for_restaurant,
    get_staff_member,
    get_staff_role,
)
from app.errors import Conflict, Forbidden, InternalError, NotFound, TooSoon, ValidationError
from app.models import PendingAttempt, Question, Quiz, StaffQuizProgress, User
from app.notifications import DatabaseNotifier, TrainingNotifier
from app.progress import (
    RandomSource,
    coverage_percentage,
    get_progress,
    select_questions_for_attempt,
)
from app.question_source import QuestionSource

logger = logging.getLogger(__name__)

QUIZ_FIELDS = {
    "title",
    "description",
    "source_question_bank_ids",
    "number_of_questions_per_attempt",
    "eligible_role_ids",
    "retake_cooldown_hours",
    "is_available",
}


def storage_errors(operation: str):
    """Log storage failures with context and surface them as InternalError."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, db: AsyncSession, *args, **kwargs):
            try:
                return await func(self, db, *args, **kwargs)
            except SQLAlchemyError:
                logger.exception(
                    "Storage failure during %s args=%r kwargs=%r",
                    operation,
                    args,
                    kwargs,
                )
                await db.rollback()
                raise InternalError()

        return wrapper

    return decorator


@dataclass
class StartedAttempt:
    attempt_token: str
    quiz_id: int
    expires_at: datetime
    questions: list[Question]


@dataclass
class SubmissionResult:
    attempt_id: int
    quiz_id: int
    score: int
    total_questions: int
    correct_answers: list[int | list[int]]
    results: list[GradedQuestion]
    overall_progress_percentage: float
    is_completed_overall: bool


@dataclass
class AvailableQuiz:
    quiz: Quiz
    cooldown: CooldownStatus
    progress: StaffQuizProgress | None


class TrainingEngine:
    def __init__(
        self,
        question_source: QuestionSource,
        rng: RandomSource | None = None,
        clock: Callable[[], datetime] | None = None,
        notifier: TrainingNotifier | None = None,
    ):
        self.question_source = question_source
        self.rng = rng or random.Random()
        self.clock = clock or datetime.utcnow
        self.notifier = notifier or DatabaseNotifier()

    # -- lookups -----------------------------------------------------------

    async def _require_staff(
        self, db: AsyncSession, staff_id: int, restaurant_id: int
    ) -> User:
        staff = await get_staff_member(db, staff_id, restaurant_id)
        if not staff:
            raise NotFound("Staff member not found")
        return staff

    async def _require_quiz(
        self, db: AsyncSession, quiz_id: int, restaurant_id: int
    ) -> Quiz:
        quiz = await get_quiz(db, quiz_id, restaurant_id)
        if not quiz:
            raise NotFound("Quiz not found")
        return quiz

    async def _check_sources(
        self,
        db: AsyncSession,
        restaurant_id: int,
        bank_ids: Sequence[int] | None,
        role_ids: Sequence[int] | None,
    ) -> None:
        for bank_id in bank_ids or []:
            if not await get_question_bank(db, bank_id, restaurant_id):
                raise NotFound(f"Question bank {bank_id} not found")
        for role_id in role_ids or []:
            if not await get_staff_role(db, role_id, restaurant_id):
                raise NotFound(f"Staff role {role_id} not found")

    # -- quiz lifecycle ----------------------------------------------------

    @storage_errors("create_quiz")
    async def create_quiz(
        self,
        db: AsyncSession,
        restaurant_id: int,
        *,
        title: str,
        source_question_bank_ids: list[int],
        description: str | None = None,
        number_of_questions_per_attempt: int | None = None,
        eligible_role_ids: list[int] | None = None,
        retake_cooldown_hours: int | None = None,
        is_available: bool = False,
    ) -> Quiz:
        if not source_question_bank_ids:
            raise ValidationError("A quiz needs at least one source question bank")
        await self._check_sources(
            db, restaurant_id, source_question_bank_ids, eligible_role_ids
        )
        settings = await get_settings(db)
        now = self.clock()
        quiz = Quiz(
            restaurant_id=restaurant_id,
            title=title,
            description=description,
            source_question_bank_ids=list(dict.fromkeys(source_question_bank_ids)),
            number_of_questions_per_attempt=(
                number_of_questions_per_attempt
                or settings.default_questions_per_attempt
            ),
            eligible_role_ids=list(dict.fromkeys(eligible_role_ids or [])),
            retake_cooldown_hours=(
                settings.default_retake_cooldown_hours
                if retake_cooldown_hours is None
                else retake_cooldown_hours
            ),
            is_available=is_available,
            created_at=now,
            updated_at=now,
        )
        _validate_quiz_fields(
            quiz.title, quiz.number_of_questions_per_attempt, quiz.retake_cooldown_hours
        )
        db.add(quiz)
        await db.flush()
        quiz.total_unique_questions_in_source_snapshot = (
            await self.question_source.count(db, quiz)
        )
        await db.commit()
        await db.refresh(quiz)
        logger.info(
            "Created quiz %s for restaurant %s with %d source questions",
            quiz.id,
            restaurant_id,
            quiz.total_unique_questions_in_source_snapshot,
        )
        return quiz

    @storage_errors("update_quiz")
    async def update_quiz(
        self, db: AsyncSession, quiz_id: int, restaurant_id: int, changes: dict[str, Any]
    ) -> Quiz:
        quiz = await self._require_quiz(db, quiz_id, restaurant_id)
        unknown = set(changes) - QUIZ_FIELDS
        if unknown:
            raise ValidationError(f"Unknown quiz fields: {', '.join(sorted(unknown))}")
        if "source_question_bank_ids" in changes and not changes["source_question_bank_ids"]:
            raise ValidationError("A quiz needs at least one source question bank")
        await self._check_sources(
            db,
            restaurant_id,
            changes.get("source_question_bank_ids"),
            changes.get("eligible_role_ids"),
        )
        changes = {
            name: list(dict.fromkeys(value or []))
            if name in ("source_question_bank_ids", "eligible_role_ids")
            else value
            for name, value in changes.items()
        }
        banks_changed = (
            "source_question_bank_ids" in changes
            and changes["source_question_bank_ids"] != quiz.source_question_bank_ids
        )
        _validate_quiz_fields(
            changes.get("title", quiz.title),
            changes.get("number_of_questions_per_attempt", quiz.number_of_questions_per_attempt),
            changes.get("retake_cooldown_hours", quiz.retake_cooldown_hours),
        )
        for name, value in changes.items():
            setattr(quiz, name, value)
        if banks_changed:
            quiz.total_unique_questions_in_source_snapshot = (
                await self.question_source.count(db, quiz)
            )
        quiz.updated_at = self.clock()
        db.add(quiz)
        await db.commit()
        await db.refresh(quiz)
        return quiz

    @storage_errors("resnapshot_quiz")
    async def resnapshot_quiz(
        self, db: AsyncSession, quiz_id: int, restaurant_id: int
    ) -> Quiz:
        """Refresh the quiz's question count from its source banks.

        Existing progress keeps the denominator it was created with.
        """
        quiz = await self._require_quiz(db, quiz_id, restaurant_id)
        previous = quiz.total_unique_questions_in_source_snapshot
        quiz.total_unique_questions_in_source_snapshot = (
            await self.question_source.count(db, quiz)
        )
        quiz.updated_at = self.clock()
        db.add(quiz)
        await db.commit()
        await db.refresh(quiz)
        logger.info(
            "Re-snapshotted quiz %s: %d -> %d questions",
            quiz.id,
            previous,
            quiz.total_unique_questions_in_source_snapshot,
        )
        return quiz

    @storage_errors("get_quiz")
    async def get_quiz(self, db: AsyncSession, quiz_id: int, restaurant_id: int) -> Quiz:
        return await self._require_quiz(db, quiz_id, restaurant_id)

    @storage_errors("delete_quiz")
    async def delete_quiz(self, db: AsyncSession, quiz_id: int, restaurant_id: int) -> None:
        quiz = await self._require_quiz(db, quiz_id, restaurant_id)
        await attempts.delete_quiz_cascade(db, quiz)

    @storage_errors("delete_staff")
    async def delete_staff(self, db: AsyncSession, staff_id: int, restaurant_id: int) -> None:
        staff = await self._require_staff(db, staff_id, restaurant_id)
        await attempts.delete_staff_cascade(db, staff)

    # -- taking quizzes ----------------------------------------------------

    @storage_errors("list_available_quizzes")
    async def list_available_quizzes(
        self, db: AsyncSession, staff_id: int, restaurant_id: int
    ) -> list[AvailableQuiz]:
        staff = await self._require_staff(db, staff_id, restaurant_id)
        quizzes = await get_quizzes_for_restaurant(db, restaurant_id, available_only=True)
        result = await db.execute(
            select(StaffQuizProgress).where(StaffQuizProgress.staff_user_id == staff.id)
        )
        progress_by_quiz = {p.quiz_id: p for p in result.scalars().all()}
        now = self.clock()
        available = []
        for quiz in quizzes:
            if not scoring.role_is_eligible(quiz, staff.assigned_role_id):
                continue
            progress = progress_by_quiz.get(quiz.id)
            available.append(
                AvailableQuiz(
                    quiz=quiz,
                    cooldown=cooldown_for_progress(progress, quiz.retake_cooldown_hours, now),
                    progress=progress,
                )
            )
        return available

    @storage_errors("can_attempt")
    async def can_attempt(
        self, db: AsyncSession, staff_id: int, quiz_id: int, restaurant_id: int
    ) -> CooldownStatus:
        await self._require_staff(db, staff_id, restaurant_id)
        quiz = await self._require_quiz(db, quiz_id, restaurant_id)
        progress = await get_progress(db, staff_id, quiz.id)
        return cooldown_for_progress(progress, quiz.retake_cooldown_hours, self.clock())

    @storage_errors("start_attempt")
    async def start_attempt(
        self, db: AsyncSession, quiz_id: int, staff_id: int, restaurant_id: int
    ) -> StartedAttempt:
        staff = await self._require_staff(db, staff_id, restaurant_id)
        quiz = await self._require_quiz(db, quiz_id, restaurant_id)
        if not quiz.is_available:
            raise NotFound("Quiz not found")
        if not scoring.role_is_eligible(quiz, staff.assigned_role_id):
            raise Forbidden("Your role is not eligible for this quiz")

        now = self.clock()
        progress = await get_progress(db, staff.id, quiz.id)
        gate = cooldown_for_progress(progress, quiz.retake_cooldown_hours, now)
        if not gate.allowed:
            raise TooSoon(gate.next_eligible_at)

        pool = await self.question_source.active_question_ids(db, quiz)
        if not pool:
            raise ValidationError("This quiz has no active questions")
        seen = progress.seen_question_ids if progress else []
        batch = select_questions_for_attempt(
            pool, seen, quiz.number_of_questions_per_attempt, self.rng
        )
        questions = await get_questions_by_ids(db, batch)
        missing = [qid for qid in batch if qid not in questions]
        if missing:
            logger.error("Question source returned unknown ids %s for quiz %s", missing, quiz.id)
            raise InternalError()

        settings = await get_settings(db)
        await attempts.abandon_open_attempts(db, staff.id, quiz.id)
        pending = PendingAttempt(
            token=uuid.uuid4().hex,
            staff_user_id=staff.id,
            quiz_id=quiz.id,
            restaurant_id=restaurant_id,
            question_ids=batch,
            started_at=now,
            expires_at=now + timedelta(minutes=settings.attempt_window_minutes),
        )
        db.add(pending)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning(
                "Concurrent start for staff %s quiz %s", staff_id, quiz_id
            )
            raise Conflict("Another attempt for this quiz was just started")
        return StartedAttempt(
            attempt_token=pending.token,
            quiz_id=quiz.id,
            expires_at=pending.expires_at,
            questions=[questions[qid] for qid in batch],
        )

    @storage_errors("submit_attempt")
    async def submit_attempt(
        self,
        db: AsyncSession,
        staff_id: int,
        restaurant_id: int,
        answers: Sequence[Any],
        *,
        attempt_token: str | None = None,
        quiz_id: int | None = None,
        duration_in_seconds: int | None = None,
    ) -> SubmissionResult:
        staff = await self._require_staff(db, staff_id, restaurant_id)
        if attempt_token:
            pending = await attempts.get_pending_attempt(db, attempt_token)
            if (
                pending is None
                or pending.staff_user_id != staff.id
                or pending.restaurant_id != restaurant_id
                or (quiz_id is not None and pending.quiz_id != quiz_id)
            ):
                raise NotFound("Attempt not found")
        elif quiz_id is not None:
            pending = await attempts.get_open_attempt(db, staff.id, quiz_id)
            if pending is None:
                raise NotFound("No attempt in progress for this quiz")
        else:
            raise ValidationError("An attempt token or quiz id is required")

        if pending.status != "open":
            raise Conflict("This attempt has already been submitted")
        now = self.clock()
        if now > pending.expires_at:
            raise Conflict("This attempt has expired, please start a new one")

        quiz = await self._require_quiz(db, pending.quiz_id, restaurant_id)
        quiz_id = quiz.id
        progress = await get_progress(db, staff_id, quiz_id)
        gate = cooldown_for_progress(progress, quiz.retake_cooldown_hours, now)
        if not gate.allowed:
            logger.warning(
                "Rejected submission for staff %s quiz %s during cooldown",
                staff_id,
                quiz_id,
            )
            raise TooSoon(gate.next_eligible_at)

        questions = await get_questions_by_ids(db, pending.question_ids)
        if any(qid not in questions for qid in pending.question_ids):
            raise Conflict("Questions in this attempt are no longer available")
        presented = [questions[qid] for qid in pending.question_ids]
        score, graded = attempts.grade_answers(presented, answers)

        # record_attempt rolls back on failure, which expires every loaded
        # instance; only plain values are used from here on.
        try:
            attempt, progress = await attempts.record_attempt(
                db, quiz, pending, score, graded, now, duration_in_seconds
            )
        except Conflict as exc:
            logger.warning(
                "Rejected concurrent submission for staff %s quiz %s: %s",
                staff_id,
                quiz_id,
                exc.message,
            )
            raise
        attempt_id = attempt.id
        coverage = coverage_percentage(progress)
        completed = progress.is_completed_overall
        logger.info(
            "Staff %s scored %d/%d on quiz %s (attempt %s)",
            staff_id,
            score,
            len(graded),
            quiz_id,
            attempt_id,
        )

        try:
            await self.notifier.training_completed(db, staff, quiz, attempt)
            await db.commit()
        except Exception:
            logger.exception(
                "Failed to send completion notification for attempt %s", attempt_id
            )
            await db.rollback()

        return SubmissionResult(
            attempt_id=attempt_id,
            quiz_id=quiz_id,
            score=score,
            total_questions=len(graded),
            correct_answers=[g.correct_answer for g in graded],
            results=graded,
            overall_progress_percentage=coverage,
            is_completed_overall=completed,
        )

    # -- reporting ---------------------------------------------------------

    @storage_errors("average_score_for_staff")
    async def average_score_for_staff(
        self, db: AsyncSession, staff_id: int, restaurant_id: int
    ) -> scoring.StaffScore:
        await self._require_staff(db, staff_id, restaurant_id)
        return await scoring.average_score_for_staff(db, staff_id, restaurant_id)

    @storage_errors("per_quiz_summary")
    async def per_quiz_summary(
        self, db: AsyncSession, staff_id: int, quiz_id: int, restaurant_id: int
    ) -> scoring.QuizProgressSummary:
        await self._require_staff(db, staff_id, restaurant_id)
        return await scoring.per_quiz_summary(db, staff_id, quiz_id, restaurant_id)

    @storage_errors("get_staff_progress")
    async def get_staff_progress(
        self, db: AsyncSession, staff_id: int, restaurant_id: int
    ) -> scoring.StaffProgress:
        await self._require_staff(db, staff_id, restaurant_id)
        return await scoring.staff_progress(db, staff_id, restaurant_id)

    @storage_errors("get_restaurant_rollup")
    async def get_restaurant_rollup(
        self, db: AsyncSession, restaurant_id: int
    ) -> list[scoring.StaffSummary]:
        staff = await get_staff_for_restaurant(db, restaurant_id)
        return await scoring.restaurant_rollup(db, staff, restaurant_id)

    @storage_errors("staff_ranking")
    async def staff_ranking(
        self, db: AsyncSession, staff_id: int, restaurant_id: int
    ) -> scoring.StaffRanking:
        await self._require_staff(db, staff_id, restaurant_id)
        staff = await get_staff_for_restaurant(db, restaurant_id)
        return await scoring.staff_ranking(db, staff_id, staff, restaurant_id)

    @storage_errors("knowledge_category_breakdown")
    async def knowledge_category_breakdown(
        self, db: AsyncSession, staff_id: int, restaurant_id: int
    ) -> list[scoring.CategoryPerformance]:
        await self._require_staff(db, staff_id, restaurant_id)
        return await scoring.knowledge_category_breakdown(db, staff_id, restaurant_id)

    @storage_errors("attempt_history")
    async def attempt_history(
        self, db: AsyncSession, staff_id: int, restaurant_id: int
    ) -> list[scoring.AttemptSummary]:
        await self._require_staff(db, staff_id, restaurant_id)
        return await scoring.attempt_history(db, staff_id, restaurant_id)

    @storage_errors("attempt_detail")
    async def attempt_detail(
        self,
        db: AsyncSession,
        attempt_id: int,
        restaurant_id: int,
        staff_id: int | None = None,
    ) -> scoring.AttemptDetail:
        return await scoring.attempt_detail(db, attempt_id, restaurant_id, staff_id)


def _validate_quiz_fields(title: str, per_attempt: int, cooldown_hours: int) -> None:
    if per_attempt is None or per_attempt < 1:
        raise ValidationError("Quiz must have at least one question per attempt")
    if cooldown_hours is None or cooldown_hours < 0:
        raise ValidationError("Retake cooldown cannot be negative")
    if not title or not title.strip():
        raise ValidationError("Quiz title is required")


def get_engine(request: Request) -> TrainingEngine:
    """FastAPI dependency returning the engine built at startup."""
    return request.app.state.training_engine
