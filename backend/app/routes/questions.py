"""Question bank and question management for managers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.acl import PERM_MANAGE_QUESTIONS
from app.auth import require_permissions, restaurant_id_of
from app.crud import (
    count_bank_questions,
    create_question,
    create_question_bank,
    get_question,
    get_question_bank,
    get_question_banks,
    get_questions_by_bank,
    save_question,
)
from app.database import get_session
from app.models import Question, QuestionBank, User
from app.schemas import (
    QuestionBankCreate,
    QuestionBankRead,
    QuestionCreate,
    QuestionRead,
    QuestionStatusUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["questions"])


def _bank_read(bank: QuestionBank, counts: dict[int, int]) -> QuestionBankRead:
    return QuestionBankRead(
        id=bank.id,
        restaurant_id=bank.restaurant_id,
        name=bank.name,
        description=bank.description,
        categories=bank.categories or [],
        question_count=counts.get(bank.id, 0),
    )


@router.post("/question-banks/", response_model=QuestionBankRead)
async def add_question_bank(
    data: QuestionBankCreate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_QUESTIONS)),
):
    bank = QuestionBank(
        restaurant_id=restaurant_id_of(current_user),
        name=data.name,
        description=data.description,
        categories=data.categories,
    )
    bank = await create_question_bank(db, bank)
    return _bank_read(bank, {})


@router.get("/question-banks/", response_model=List[QuestionBankRead])
async def list_question_banks(
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_QUESTIONS)),
):
    banks = await get_question_banks(db, restaurant_id_of(current_user))
    counts = await count_bank_questions(db, [b.id for b in banks])
    return [_bank_read(b, counts) for b in banks]


@router.post("/question-banks/{bank_id}/questions", response_model=QuestionRead)
async def add_question(
    bank_id: int,
    data: QuestionCreate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_QUESTIONS)),
):
    bank = await get_question_bank(db, bank_id, restaurant_id_of(current_user))
    if not bank:
        raise HTTPException(status_code=404, detail="Question bank not found")
    question = Question(
        restaurant_id=bank.restaurant_id,
        question_bank_id=bank.id,
        question_text=data.question_text,
        question_type=data.question_type.value,
        options=[o.model_dump() for o in data.options],
        categories=data.categories,
        knowledge_category=(
            data.knowledge_category.value if data.knowledge_category else None
        ),
        explanation=data.explanation,
        created_by=data.created_by,
        status=data.status.value,
    )
    question = await create_question(db, question)
    logger.info("Question %s added to bank %s", question.id, bank.id)
    return question


@router.get("/question-banks/{bank_id}/questions", response_model=List[QuestionRead])
async def list_questions(
    bank_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_QUESTIONS)),
):
    bank = await get_question_bank(db, bank_id, restaurant_id_of(current_user))
    if not bank:
        raise HTTPException(status_code=404, detail="Question bank not found")
    return await get_questions_by_bank(db, bank.id)


@router.put("/questions/{question_id}/status", response_model=QuestionRead)
async def set_question_status(
    question_id: int,
    data: QuestionStatusUpdate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_QUESTIONS)),
):
    """Move a question through review; only active questions reach quizzes."""
    question = await get_question(db, question_id, restaurant_id_of(current_user))
    if not question:
        raise HTTPException(status_code=404, detail="Question not found")
    question.status = data.status.value
    return await save_question(db, question)
