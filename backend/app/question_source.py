"""Question pools that quizzes draw from.

The engine never queries questions for a quiz directly; it asks a
``QuestionSource``.  The production source reads active questions out of
the quiz's banks, and tests swap in :class:`StaticQuestionSource` to get
a fixed pool.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models import Question, Quiz
from app.questions import QuestionStatus


class QuestionSource(Protocol):
    async def active_question_ids(
        self, db: AsyncSession, quiz: Quiz
    ) -> list[int]: ...

    async def count(self, db: AsyncSession, quiz: Quiz) -> int: ...


class BankQuestionSource:
    """Active questions in the quiz's source banks, same restaurant only."""

    async def active_question_ids(self, db: AsyncSession, quiz: Quiz) -> list[int]:
        bank_ids = list(quiz.source_question_bank_ids or [])
        if not bank_ids:
            return []
        result = await db.execute(
            select(Question.id)
            .where(
                Question.question_bank_id.in_(bank_ids),
                Question.restaurant_id == quiz.restaurant_id,
                Question.status == QuestionStatus.ACTIVE.value,
            )
            .order_by(Question.id)
        )
        return list(result.scalars().all())

    async def count(self, db: AsyncSession, quiz: Quiz) -> int:
        return len(await self.active_question_ids(db, quiz))


class StaticQuestionSource:
    """Fixed pool per quiz id, for tests and offline tooling."""

    def __init__(self, pools: dict[int, list[int]] | None = None):
        self.pools = pools or {}

    def set_pool(self, quiz_id: int, question_ids: list[int]) -> None:
        self.pools[quiz_id] = list(question_ids)

    async def active_question_ids(self, db: AsyncSession, quiz: Quiz) -> list[int]:
        return list(self.pools.get(quiz.id, []))

    async def count(self, db: AsyncSession, quiz: Quiz) -> int:
        return len(self.pools.get(quiz.id, []))
