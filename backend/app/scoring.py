"""Score aggregation over recorded attempts.

Every attempt counts as a percentage of the questions it presented, so a
5-question quiz weighs as much as a 20-question one.  Overall averages
only include quizzes that are currently available in the staff member's
restaurant; hiding a quiz drops its attempts from the average and
republishing it brings them back.

Quizzes are joined onto attempts explicitly.  An attempt whose quiz
cannot be found is reported under :data:`DELETED_QUIZ_TITLE` rather than
silently vanishing from history views.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.errors import NotFound
from app.models import Question, Quiz, QuizAttempt, StaffQuizProgress, User
from app.progress import coverage_percentage
from app.questions import answer_key

DELETED_QUIZ_TITLE = "[Deleted Quiz]"
UNCATEGORIZED = "uncategorized"


@dataclass
class StaffScore:
    average_score: float | None
    quizzes_taken: int


@dataclass
class QuizProgressSummary:
    quiz_id: int
    title: str
    is_available: bool
    overall_progress_percentage: float
    is_completed_overall: bool
    average_score_for_quiz: float | None
    attempts_count: int
    last_attempt_timestamp: datetime | None


@dataclass
class StaffProgress:
    staff_id: int
    average_score: float | None
    quizzes_taken: int
    per_quiz: list[QuizProgressSummary] = field(default_factory=list)


@dataclass
class StaffSummary:
    staff_id: int
    name: str
    email: str
    assigned_role_id: int | None
    average_score: float | None
    quizzes_taken: int
    assignable_quizzes_count: int
    per_quiz: list[QuizProgressSummary] = field(default_factory=list)


@dataclass
class StaffRanking:
    staff_id: int
    average_score: float | None
    rank: int | None
    total_ranked_staff: int


@dataclass
class CategoryPerformance:
    knowledge_category: str
    questions_answered: int
    correct_answers: int
    accuracy: float


@dataclass
class AttemptSummary:
    attempt_id: int
    quiz_id: int
    quiz_title: str
    score: int
    total_questions: int
    percentage: float | None
    attempt_date: datetime


@dataclass
class AttemptQuestionDetail:
    question_id: int
    question_text: str
    options: list[str]
    answer_given: object
    correct_answer: int | list[int] | None
    is_correct: bool


@dataclass
class AttemptDetail:
    attempt_id: int
    staff_id: int
    quiz_id: int
    quiz_title: str
    score: int
    total_questions: int
    attempt_date: datetime
    questions: list[AttemptQuestionDetail] = field(default_factory=list)


def attempt_percentage(attempt: QuizAttempt) -> float | None:
    total = len(attempt.questions_presented or [])
    if total == 0:
        return None
    return attempt.score / total * 100


def mean_percentage(percentages: Iterable[float | None]) -> float | None:
    values = [p for p in percentages if p is not None]
    if not values:
        return None
    return round(sum(values) / len(values), 1)


def role_is_eligible(quiz: Quiz, assigned_role_id: int | None) -> bool:
    """Empty eligibility means every role; otherwise the role must be listed."""
    eligible = quiz.eligible_role_ids or []
    return not eligible or assigned_role_id in eligible


def _counts_toward_average(quiz: Quiz | None, restaurant_id: int) -> bool:
    return (
        quiz is not None
        and quiz.is_available
        and quiz.restaurant_id == restaurant_id
    )


def score_from_rows(
    rows: Sequence[tuple[QuizAttempt, Quiz | None]], restaurant_id: int
) -> StaffScore:
    qualifying = [a for a, q in rows if _counts_toward_average(q, restaurant_id)]
    return StaffScore(
        average_score=mean_percentage(attempt_percentage(a) for a in qualifying),
        quizzes_taken=len({a.quiz_id for a in qualifying}),
    )


def _quiz_summary(
    quiz_id: int,
    quiz: Quiz | None,
    attempts: Sequence[QuizAttempt],
    progress: StaffQuizProgress | None,
) -> QuizProgressSummary:
    last = progress.last_attempt_timestamp if progress else None
    if last is None and attempts:
        last = max(a.attempt_date for a in attempts)
    return QuizProgressSummary(
        quiz_id=quiz_id,
        title=quiz.title if quiz else DELETED_QUIZ_TITLE,
        is_available=bool(quiz and quiz.is_available),
        overall_progress_percentage=coverage_percentage(progress),
        is_completed_overall=bool(progress and progress.is_completed_overall),
        average_score_for_quiz=mean_percentage(attempt_percentage(a) for a in attempts),
        attempts_count=len(attempts),
        last_attempt_timestamp=last,
    )


def _per_quiz(
    rows: Sequence[tuple[QuizAttempt, Quiz | None]],
    progress_rows: Sequence[StaffQuizProgress],
    quizzes: dict[int, Quiz],
) -> list[QuizProgressSummary]:
    attempts_by_quiz: dict[int, list[QuizAttempt]] = defaultdict(list)
    for attempt, quiz in rows:
        attempts_by_quiz[attempt.quiz_id].append(attempt)
        if quiz is not None:
            quizzes.setdefault(quiz.id, quiz)
    progress_by_quiz = {p.quiz_id: p for p in progress_rows}
    quiz_ids = sorted(set(attempts_by_quiz) | set(progress_by_quiz))
    return [
        _quiz_summary(
            quiz_id,
            quizzes.get(quiz_id),
            attempts_by_quiz.get(quiz_id, []),
            progress_by_quiz.get(quiz_id),
        )
        for quiz_id in quiz_ids
    ]


async def _attempt_rows(
    db: AsyncSession,
    restaurant_id: int,
    staff_id: int | None = None,
    quiz_id: int | None = None,
) -> list[tuple[QuizAttempt, Quiz | None]]:
    stmt = (
        select(QuizAttempt, Quiz)
        .join(Quiz, Quiz.id == QuizAttempt.quiz_id, isouter=True)
        .where(QuizAttempt.restaurant_id == restaurant_id)
    )
    if staff_id is not None:
        stmt = stmt.where(QuizAttempt.staff_user_id == staff_id)
    if quiz_id is not None:
        stmt = stmt.where(QuizAttempt.quiz_id == quiz_id)
    stmt = stmt.order_by(QuizAttempt.attempt_date.desc(), QuizAttempt.id.desc())
    result = await db.execute(stmt)
    return [(attempt, quiz) for attempt, quiz in result.all()]


async def _progress_rows(
    db: AsyncSession, restaurant_id: int, staff_id: int | None = None
) -> list[StaffQuizProgress]:
    stmt = select(StaffQuizProgress).where(
        StaffQuizProgress.restaurant_id == restaurant_id
    )
    if staff_id is not None:
        stmt = stmt.where(StaffQuizProgress.staff_user_id == staff_id)
    result = await db.execute(stmt)
    return result.scalars().all()


async def _quizzes_by_id(db: AsyncSession, quiz_ids: Iterable[int]) -> dict[int, Quiz]:
    ids = list(set(quiz_ids))
    if not ids:
        return {}
    result = await db.execute(select(Quiz).where(Quiz.id.in_(ids)))
    return {q.id: q for q in result.scalars().all()}


async def average_score_for_staff(
    db: AsyncSession, staff_id: int, restaurant_id: int
) -> StaffScore:
    rows = await _attempt_rows(db, restaurant_id, staff_id=staff_id)
    return score_from_rows(rows, restaurant_id)


async def per_quiz_summary(
    db: AsyncSession, staff_id: int, quiz_id: int, restaurant_id: int
) -> QuizProgressSummary:
    """Progress and score for one quiz, whether or not it is available."""
    rows = await _attempt_rows(db, restaurant_id, staff_id=staff_id, quiz_id=quiz_id)
    result = await db.execute(
        select(StaffQuizProgress).where(
            StaffQuizProgress.staff_user_id == staff_id,
            StaffQuizProgress.quiz_id == quiz_id,
            StaffQuizProgress.restaurant_id == restaurant_id,
        )
    )
    progress = result.scalar_one_or_none()
    quiz = (await _quizzes_by_id(db, [quiz_id])).get(quiz_id)
    if quiz is not None and quiz.restaurant_id != restaurant_id:
        quiz = None
    if quiz is None and progress is None and not rows:
        raise NotFound("Quiz not found")
    return _quiz_summary(quiz_id, quiz, [a for a, _ in rows], progress)


async def staff_progress(
    db: AsyncSession, staff_id: int, restaurant_id: int
) -> StaffProgress:
    rows = await _attempt_rows(db, restaurant_id, staff_id=staff_id)
    progress_rows = await _progress_rows(db, restaurant_id, staff_id=staff_id)
    quizzes = await _quizzes_by_id(db, [p.quiz_id for p in progress_rows])
    score = score_from_rows(rows, restaurant_id)
    return StaffProgress(
        staff_id=staff_id,
        average_score=score.average_score,
        quizzes_taken=score.quizzes_taken,
        per_quiz=_per_quiz(rows, progress_rows, quizzes),
    )


async def restaurant_rollup(
    db: AsyncSession, staff: Sequence[User], restaurant_id: int
) -> list[StaffSummary]:
    """Summaries for every staff member, loaded in a fixed number of queries."""
    rows = await _attempt_rows(db, restaurant_id)
    progress_rows = await _progress_rows(db, restaurant_id)
    result = await db.execute(select(Quiz).where(Quiz.restaurant_id == restaurant_id))
    quizzes = {q.id: q for q in result.scalars().all()}
    available = [q for q in quizzes.values() if q.is_available]

    rows_by_staff: dict[int, list] = defaultdict(list)
    for attempt, quiz in rows:
        rows_by_staff[attempt.staff_user_id].append((attempt, quiz))
    progress_by_staff: dict[int, list] = defaultdict(list)
    for progress in progress_rows:
        progress_by_staff[progress.staff_user_id].append(progress)

    summaries = []
    for member in staff:
        member_rows = rows_by_staff.get(member.id, [])
        score = score_from_rows(member_rows, restaurant_id)
        summaries.append(
            StaffSummary(
                staff_id=member.id,
                name=member.name,
                email=member.email,
                assigned_role_id=member.assigned_role_id,
                average_score=score.average_score,
                quizzes_taken=score.quizzes_taken,
                assignable_quizzes_count=sum(
                    1 for q in available if role_is_eligible(q, member.assigned_role_id)
                ),
                per_quiz=_per_quiz(
                    member_rows, progress_by_staff.get(member.id, []), dict(quizzes)
                ),
            )
        )
    return summaries


def rank_scores(averages: dict[int, float | None]) -> dict[int, int]:
    """Competition ranking (1, 2, 2, 4) of staff with a score."""
    scored = sorted(
        ((avg, staff_id) for staff_id, avg in averages.items() if avg is not None),
        key=lambda item: -item[0],
    )
    ranks: dict[int, int] = {}
    previous = None
    for position, (avg, staff_id) in enumerate(scored, start=1):
        if previous is None or avg != previous[0]:
            previous = (avg, position)
        ranks[staff_id] = previous[1]
    return ranks


async def staff_ranking(
    db: AsyncSession, staff_id: int, staff: Sequence[User], restaurant_id: int
) -> StaffRanking:
    rows = await _attempt_rows(db, restaurant_id)
    rows_by_staff: dict[int, list] = defaultdict(list)
    for attempt, quiz in rows:
        rows_by_staff[attempt.staff_user_id].append((attempt, quiz))
    averages = {
        member.id: score_from_rows(rows_by_staff.get(member.id, []), restaurant_id).average_score
        for member in staff
    }
    ranks = rank_scores(averages)
    return StaffRanking(
        staff_id=staff_id,
        average_score=averages.get(staff_id),
        rank=ranks.get(staff_id),
        total_ranked_staff=len(ranks),
    )


async def knowledge_category_breakdown(
    db: AsyncSession, staff_id: int, restaurant_id: int
) -> list[CategoryPerformance]:
    rows = await _attempt_rows(db, restaurant_id, staff_id=staff_id)
    qualifying = [a for a, q in rows if _counts_toward_average(q, restaurant_id)]
    question_ids = {
        item["question_id"] for a in qualifying for item in a.questions_presented or []
    }
    categories: dict[int, str | None] = {}
    if question_ids:
        result = await db.execute(
            select(Question.id, Question.knowledge_category).where(
                Question.id.in_(list(question_ids))
            )
        )
        categories = dict(result.all())

    answered: dict[str, int] = defaultdict(int)
    correct: dict[str, int] = defaultdict(int)
    for attempt in qualifying:
        for item in attempt.questions_presented or []:
            category = categories.get(item["question_id"]) or UNCATEGORIZED
            answered[category] += 1
            if item.get("is_correct"):
                correct[category] += 1
    return [
        CategoryPerformance(
            knowledge_category=category,
            questions_answered=answered[category],
            correct_answers=correct[category],
            accuracy=round(correct[category] / answered[category] * 100, 1),
        )
        for category in sorted(answered)
    ]


async def attempt_history(
    db: AsyncSession, staff_id: int, restaurant_id: int
) -> list[AttemptSummary]:
    rows = await _attempt_rows(db, restaurant_id, staff_id=staff_id)
    history = []
    for attempt, quiz in rows:
        pct = attempt_percentage(attempt)
        history.append(
            AttemptSummary(
                attempt_id=attempt.id,
                quiz_id=attempt.quiz_id,
                quiz_title=quiz.title if quiz else DELETED_QUIZ_TITLE,
                score=attempt.score,
                total_questions=len(attempt.questions_presented or []),
                percentage=round(pct, 1) if pct is not None else None,
                attempt_date=attempt.attempt_date,
            )
        )
    return history


async def attempt_detail(
    db: AsyncSession,
    attempt_id: int,
    restaurant_id: int,
    staff_id: int | None = None,
) -> AttemptDetail:
    """Question-level breakdown of one attempt.

    Pass ``staff_id`` to restrict the lookup to that staff member's own
    attempts.
    """
    stmt = (
        select(QuizAttempt, Quiz)
        .join(Quiz, Quiz.id == QuizAttempt.quiz_id, isouter=True)
        .where(
            QuizAttempt.id == attempt_id,
            QuizAttempt.restaurant_id == restaurant_id,
        )
    )
    if staff_id is not None:
        stmt = stmt.where(QuizAttempt.staff_user_id == staff_id)
    row = (await db.execute(stmt)).first()
    if row is None:
        raise NotFound("Attempt not found")
    attempt, quiz = row

    presented = sorted(
        attempt.questions_presented or [], key=lambda item: item.get("sort_order", 0)
    )
    ids = [item["question_id"] for item in presented]
    questions = {}
    if ids:
        result = await db.execute(select(Question).where(Question.id.in_(ids)))
        questions = {q.id: q for q in result.scalars().all()}

    details = []
    for item in presented:
        question = questions.get(item["question_id"])
        details.append(
            AttemptQuestionDetail(
                question_id=item["question_id"],
                question_text=question.question_text if question else "",
                options=[o["text"] for o in question.options] if question else [],
                answer_given=item.get("answer_given"),
                correct_answer=(
                    answer_key(question.question_type, question.options)
                    if question
                    else None
                ),
                is_correct=bool(item.get("is_correct")),
            )
        )
    return AttemptDetail(
        attempt_id=attempt.id,
        staff_id=attempt.staff_user_id,
        quiz_id=attempt.quiz_id,
        quiz_title=quiz.title if quiz else DELETED_QUIZ_TITLE,
        score=attempt.score,
        total_questions=len(presented),
        attempt_date=attempt.attempt_date,
        questions=details,
    )
