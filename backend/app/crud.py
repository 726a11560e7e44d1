"""Asynchronous CRUD helpers for the application's data models.

Each function in this module encapsulates a specific database operation
using SQLModel and SQLAlchemy.  Centralizing the logic keeps route
handlers light and makes behavior easier to test.  Anything that touches
the training ledger (attempts, progress, scoring) lives in the engine
modules instead.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from sqlalchemy.orm import selectinload
from sqlalchemy import func
from app.models import (
    User,
    Restaurant,
    StaffRole,
    Permission,
    UserPermissionLink,
    Settings,
    QuestionBank,
    Question,
    Quiz,
    Notification,
)
from app.auth import get_password_hash
from app.acl import get_default_permissions_for_role


async def ensure_permissions_exist(db: AsyncSession, names: list[str]) -> None:
    """Ensure that a set of permission records exists in the database."""

    for name in names:
        result = await db.execute(
            select(Permission).where(Permission.name == name)
        )
        perm = result.scalar_one_or_none()
        if not perm:
            db.add(Permission(name=name))
    await db.commit()


async def assign_permissions_by_names(
    db: AsyncSession, user: User, names: list[str]
) -> None:
    """Assign named permissions to a user if not already granted."""
    for name in names:
        result = await db.execute(
            select(Permission).where(Permission.name == name)
        )
        perm = result.scalar_one_or_none()
        if perm:
            link_result = await db.execute(
                select(UserPermissionLink)
                    .where(
                        UserPermissionLink.user_id == user.id,
                        UserPermissionLink.permission_id == perm.id,
                    )
            )
            link = link_result.scalar_one_or_none()
            if not link:
                db.add(
                    UserPermissionLink(user_id=user.id, permission_id=perm.id)
                )
    await db.commit()


async def get_settings(db: AsyncSession) -> Settings:
    """Fetch the singleton settings record, creating it if necessary."""
    result = await db.execute(select(Settings).where(Settings.id == 1))
    settings = result.scalar_one_or_none()
    if not settings:
        settings = Settings()
        db.add(settings)
        await db.commit()
        await db.refresh(settings)
    return settings


async def save_settings(db: AsyncSession, settings: Settings) -> Settings:
    """Persist settings changes and return the refreshed object."""

    db.add(settings)
    await db.commit()
    await db.refresh(settings)
    return settings


async def create_restaurant(db: AsyncSession, name: str) -> Restaurant:
    restaurant = Restaurant(name=name)
    db.add(restaurant)
    await db.commit()
    await db.refresh(restaurant)
    return restaurant


async def create_user(db: AsyncSession, user: User):
    """Create a new user, hashing the password and assigning defaults."""

    if not user.password_hash.startswith("$2b$"):
        user.password_hash = get_password_hash(user.password_hash)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    defaults = get_default_permissions_for_role(user.role)
    if defaults:
        await assign_permissions_by_names(db, user, defaults)
    return user


async def get_user_by_email(db: AsyncSession, email: str):
    """Return a user by email or ``None`` if not found."""
    result = await db.execute(
        select(User)
        .where(User.email == email)
        .options(selectinload(User.permissions))
    )
    return result.scalar_one_or_none()


async def get_staff_member(
    db: AsyncSession, staff_id: int, restaurant_id: int
) -> User | None:
    """Load a staff user only if they belong to ``restaurant_id``."""
    result = await db.execute(
        select(User).where(
            User.id == staff_id,
            User.restaurant_id == restaurant_id,
            User.role == "staff",
        )
    )
    return result.scalar_one_or_none()


async def get_staff_for_restaurant(
    db: AsyncSession, restaurant_id: int
) -> list[User]:
    result = await db.execute(
        select(User)
        .where(User.restaurant_id == restaurant_id, User.role == "staff")
        .order_by(User.name, User.id)
    )
    return result.scalars().all()


async def get_managers_for_restaurant(
    db: AsyncSession, restaurant_id: int
) -> list[User]:
    result = await db.execute(
        select(User).where(
            User.restaurant_id == restaurant_id,
            User.role == "manager",
            User.status == "active",
        )
    )
    return result.scalars().all()


async def save_user(db: AsyncSession, user: User) -> User:
    """Persist changes to an existing user."""

    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def create_staff_role(db: AsyncSession, role: StaffRole) -> StaffRole:
    db.add(role)
    await db.commit()
    await db.refresh(role)
    return role


async def get_staff_role(
    db: AsyncSession, role_id: int, restaurant_id: int
) -> StaffRole | None:
    result = await db.execute(
        select(StaffRole).where(
            StaffRole.id == role_id, StaffRole.restaurant_id == restaurant_id
        )
    )
    return result.scalar_one_or_none()


async def get_staff_roles(db: AsyncSession, restaurant_id: int) -> list[StaffRole]:
    result = await db.execute(
        select(StaffRole)
        .where(StaffRole.restaurant_id == restaurant_id)
        .order_by(StaffRole.name)
    )
    return result.scalars().all()


async def create_question_bank(db: AsyncSession, bank: QuestionBank) -> QuestionBank:
    db.add(bank)
    await db.commit()
    await db.refresh(bank)
    return bank


async def get_question_bank(
    db: AsyncSession, bank_id: int, restaurant_id: int
) -> QuestionBank | None:
    result = await db.execute(
        select(QuestionBank).where(
            QuestionBank.id == bank_id, QuestionBank.restaurant_id == restaurant_id
        )
    )
    return result.scalar_one_or_none()


async def get_question_banks(
    db: AsyncSession, restaurant_id: int
) -> list[QuestionBank]:
    result = await db.execute(
        select(QuestionBank)
        .where(QuestionBank.restaurant_id == restaurant_id)
        .order_by(QuestionBank.id)
    )
    return result.scalars().all()


async def count_bank_questions(db: AsyncSession, bank_ids: list[int]) -> dict[int, int]:
    """Number of questions per bank, any review status."""
    if not bank_ids:
        return {}
    result = await db.execute(
        select(Question.question_bank_id, func.count(Question.id))
        .where(Question.question_bank_id.in_(bank_ids))
        .group_by(Question.question_bank_id)
    )
    return {bank_id: count for bank_id, count in result.all()}


async def create_question(db: AsyncSession, question: Question) -> Question:
    db.add(question)
    await db.commit()
    await db.refresh(question)
    return question


async def get_question(
    db: AsyncSession, question_id: int, restaurant_id: int
) -> Question | None:
    result = await db.execute(
        select(Question).where(
            Question.id == question_id, Question.restaurant_id == restaurant_id
        )
    )
    return result.scalar_one_or_none()


async def get_questions_by_bank(db: AsyncSession, bank_id: int) -> list[Question]:
    result = await db.execute(
        select(Question)
        .where(Question.question_bank_id == bank_id)
        .order_by(Question.id)
    )
    return result.scalars().all()


async def get_questions_by_ids(
    db: AsyncSession, question_ids: list[int]
) -> dict[int, Question]:
    """Map of id to question for the given ids; missing ids are omitted."""
    if not question_ids:
        return {}
    result = await db.execute(
        select(Question).where(Question.id.in_(list(set(question_ids))))
    )
    return {q.id: q for q in result.scalars().all()}


async def save_question(db: AsyncSession, question: Question) -> Question:
    db.add(question)
    await db.commit()
    await db.refresh(question)
    return question


async def get_quiz(db: AsyncSession, quiz_id: int, restaurant_id: int) -> Quiz | None:
    """Return a quiz only if it belongs to ``restaurant_id``."""
    result = await db.execute(
        select(Quiz).where(Quiz.id == quiz_id, Quiz.restaurant_id == restaurant_id)
    )
    return result.scalar_one_or_none()


async def get_quizzes_for_restaurant(
    db: AsyncSession, restaurant_id: int, available_only: bool = False
) -> list[Quiz]:
    stmt = select(Quiz).where(Quiz.restaurant_id == restaurant_id)
    if available_only:
        stmt = stmt.where(Quiz.is_available == True)  # noqa: E712
    result = await db.execute(stmt.order_by(Quiz.id))
    return result.scalars().all()


async def list_notifications(
    db: AsyncSession, user_id: int, unread_only: bool = False
) -> list[Notification]:
    stmt = select(Notification).where(Notification.recipient_user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.read == False)  # noqa: E712
    result = await db.execute(
        stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    return result.scalars().all()


async def get_notification(
    db: AsyncSession, notification_id: int, user_id: int
) -> Notification | None:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.recipient_user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def mark_notification_read(
    db: AsyncSession, notification: Notification
) -> Notification:
    notification.read = True
    db.add(notification)
    await db.commit()
    await db.refresh(notification)
    return notification
