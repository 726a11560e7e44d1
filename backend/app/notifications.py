"""Hooks fired after a staff member completes a quiz."""

import logging
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from app.crud import get_managers_for_restaurant
from app.models import Notification, Quiz, QuizAttempt, User

logger = logging.getLogger(__name__)


class TrainingNotifier(Protocol):
    async def training_completed(
        self, db: AsyncSession, staff: User, quiz: Quiz, attempt: QuizAttempt
    ) -> None: ...


class DatabaseNotifier:
    """Record a ``training_completed`` notification for each manager.

    Rows are only added to the session; the caller commits.
    """

    async def training_completed(
        self, db: AsyncSession, staff: User, quiz: Quiz, attempt: QuizAttempt
    ) -> None:
        managers = await get_managers_for_restaurant(db, quiz.restaurant_id)
        total = len(attempt.questions_presented or [])
        for manager in managers:
            db.add(
                Notification(
                    restaurant_id=quiz.restaurant_id,
                    recipient_user_id=manager.id,
                    type="training_completed",
                    message=(
                        f"{staff.name} completed '{quiz.title}' "
                        f"scoring {attempt.score}/{total}"
                    ),
                    related_quiz_id=quiz.id,
                    related_attempt_id=attempt.id,
                )
            )
        logger.debug(
            "Notified %d managers about attempt %s", len(managers), attempt.id
        )
