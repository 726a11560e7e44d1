"""Quiz authoring for managers and quiz taking for staff."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.acl import PERM_MANAGE_QUIZZES, PERM_TAKE_QUIZZES
from app.auth import require_permissions, restaurant_id_of
from app.crud import get_quizzes_for_restaurant
from app.database import get_session
from app.engine import TrainingEngine, get_engine
from app.models import User
from app.progress import coverage_percentage
from app.schemas import (
    AttemptResult,
    AttemptStartResponse,
    AttemptSubmit,
    AvailableQuizRead,
    PresentedQuestion,
    QuizCreate,
    QuizEligibility,
    QuizProgressRead,
    QuizRead,
    QuizUpdate,
)

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


@router.post("/", response_model=QuizRead)
async def create_quiz(
    data: QuizCreate,
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_MANAGE_QUIZZES)),
):
    return await engine.create_quiz(
        db, restaurant_id_of(current_user), **data.model_dump()
    )


@router.get("/", response_model=List[QuizRead])
async def list_quizzes(
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_QUIZZES)),
):
    return await get_quizzes_for_restaurant(db, restaurant_id_of(current_user))


@router.get("/available", response_model=List[AvailableQuizRead])
async def list_available_quizzes(
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
):
    """Quizzes the current staff member can see, with cooldown and progress."""
    available = await engine.list_available_quizzes(
        db, current_user.id, restaurant_id_of(current_user)
    )
    return [
        AvailableQuizRead(
            quiz=QuizRead.model_validate(item.quiz),
            can_attempt=item.cooldown.allowed,
            next_eligible_at=item.cooldown.next_eligible_at,
            overall_progress_percentage=coverage_percentage(item.progress),
            is_completed_overall=bool(
                item.progress and item.progress.is_completed_overall
            ),
        )
        for item in available
    ]


@router.get("/{quiz_id}", response_model=QuizRead)
async def read_quiz(
    quiz_id: int,
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_MANAGE_QUIZZES)),
):
    return await engine.get_quiz(db, quiz_id, restaurant_id_of(current_user))


@router.put("/{quiz_id}", response_model=QuizRead)
async def update_quiz(
    quiz_id: int,
    data: QuizUpdate,
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_MANAGE_QUIZZES)),
):
    changes = data.model_dump(exclude_unset=True)
    # null only makes sense for the optional description
    changes = {k: v for k, v in changes.items() if v is not None or k == "description"}
    return await engine.update_quiz(
        db, quiz_id, restaurant_id_of(current_user), changes
    )


@router.delete("/{quiz_id}")
async def delete_quiz(
    quiz_id: int,
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_MANAGE_QUIZZES)),
):
    await engine.delete_quiz(db, quiz_id, restaurant_id_of(current_user))
    return {"message": "Quiz deleted"}


@router.post("/{quiz_id}/snapshot", response_model=QuizRead)
async def resnapshot_quiz(
    quiz_id: int,
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_MANAGE_QUIZZES)),
):
    """Recount the active questions in the quiz's source banks."""
    return await engine.resnapshot_quiz(db, quiz_id, restaurant_id_of(current_user))


@router.get("/{quiz_id}/eligibility", response_model=QuizEligibility)
async def quiz_eligibility(
    quiz_id: int,
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
):
    status = await engine.can_attempt(
        db, current_user.id, quiz_id, restaurant_id_of(current_user)
    )
    return QuizEligibility(allowed=status.allowed, next_eligible_at=status.next_eligible_at)


@router.post("/{quiz_id}/start", response_model=AttemptStartResponse)
async def start_attempt(
    quiz_id: int,
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
):
    started = await engine.start_attempt(
        db, quiz_id, current_user.id, restaurant_id_of(current_user)
    )
    return AttemptStartResponse(
        attempt_token=started.attempt_token,
        quiz_id=started.quiz_id,
        expires_at=started.expires_at,
        questions=[
            PresentedQuestion(
                id=q.id,
                question_text=q.question_text,
                question_type=q.question_type,
                options=[o["text"] for o in q.options],
            )
            for q in started.questions
        ],
    )


@router.post("/{quiz_id}/submit", response_model=AttemptResult)
async def submit_attempt(
    quiz_id: int,
    data: AttemptSubmit,
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
):
    """Grade the answers for the attempt started on this quiz.

    Without an ``attempt_token`` the staff member's open attempt for the
    quiz is used.
    """
    return await engine.submit_attempt(
        db,
        current_user.id,
        restaurant_id_of(current_user),
        data.answers,
        attempt_token=data.attempt_token,
        quiz_id=quiz_id,
        duration_in_seconds=data.duration_in_seconds,
    )


@router.get("/{quiz_id}/progress", response_model=QuizProgressRead)
async def my_quiz_progress(
    quiz_id: int,
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
):
    return await engine.per_quiz_summary(
        db, current_user.id, quiz_id, restaurant_id_of(current_user)
    )
