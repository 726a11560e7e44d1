"""Database models used by the staff training backend.

The models are defined with SQLModel (built on SQLAlchemy and Pydantic)
and represent restaurants, their users, question banks, quizzes and the
per-staff training ledger.  Comments are kept concise to avoid
distracting from the field definitions.
"""

from typing import Optional, List
from datetime import datetime
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, JSON, Index, UniqueConstraint, text


class UserPermissionLink(SQLModel, table=True):
    """Association table linking users and their granted permissions."""

    user_id: int = Field(foreign_key="user.id", primary_key=True)
    permission_id: int = Field(foreign_key="permission.id", primary_key=True)

    user: "User" = Relationship(back_populates="permission_links")
    permission: "Permission" = Relationship(back_populates="user_links")


class Permission(SQLModel, table=True):
    """Named permission that can be assigned to users."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    user_links: List["UserPermissionLink"] = Relationship(
        back_populates="permission"
    )
    users: List["User"] = Relationship(
        back_populates="permissions",
        link_model=UserPermissionLink,
        sa_relationship_kwargs={"overlaps": "user_links,permission,user"},
    )


class Restaurant(SQLModel, table=True):
    """Organizational unit owning staff, question banks and quizzes."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class StaffRole(SQLModel, table=True):
    """Professional role within a restaurant (e.g. server, bartender)."""
    id: Optional[int] = Field(default=None, primary_key=True)
    restaurant_id: int = Field(foreign_key="restaurant.id", index=True)
    name: str
    description: Optional[str] = None


class User(SQLModel, table=True):
    """Platform admin, restaurant manager or staff member."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(unique=True, index=True)
    password_hash: str
    role: str  # 'admin', 'manager', 'staff'
    status: str = "active"
    restaurant_id: Optional[int] = Field(
        default=None, foreign_key="restaurant.id", index=True
    )
    assigned_role_id: Optional[int] = Field(
        default=None, foreign_key="staffrole.id"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    permission_links: List["UserPermissionLink"] = Relationship(
        back_populates="user",
        sa_relationship_kwargs={"overlaps": "users"},
    )
    permissions: List[Permission] = Relationship(
        back_populates="users",
        link_model=UserPermissionLink,
        sa_relationship_kwargs={"overlaps": "permission_links,user"},
    )


class QuestionBank(SQLModel, table=True):
    """Named pool of questions a quiz can draw from."""
    id: Optional[int] = Field(default=None, primary_key=True)
    restaurant_id: int = Field(foreign_key="restaurant.id", index=True)
    name: str
    description: Optional[str] = None
    categories: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Question(SQLModel, table=True):
    """Single assessable item belonging to a question bank."""
    id: Optional[int] = Field(default=None, primary_key=True)
    restaurant_id: int = Field(foreign_key="restaurant.id", index=True)
    question_bank_id: int = Field(foreign_key="questionbank.id", index=True)
    question_text: str
    question_type: str  # see app.questions.QuestionType
    # [{"text": str, "is_correct": bool}, ...]
    options: List[dict] = Field(sa_column=Column(JSON), default_factory=list)
    categories: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    knowledge_category: Optional[str] = None
    explanation: Optional[str] = None
    created_by: str = "manual"  # 'manual' or 'ai'
    status: str = Field(default="active", index=True)  # active, pending_review, rejected
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Quiz(SQLModel, table=True):
    """Assessment drawing a fixed-size sample from one or more banks."""
    id: Optional[int] = Field(default=None, primary_key=True)
    restaurant_id: int = Field(foreign_key="restaurant.id", index=True)
    title: str
    description: Optional[str] = None
    source_question_bank_ids: List[int] = Field(
        sa_column=Column(JSON), default_factory=list
    )
    total_unique_questions_in_source_snapshot: int = 0
    number_of_questions_per_attempt: int = 10
    is_available: bool = Field(default=False, index=True)
    # Empty list means every staff role may take the quiz.
    eligible_role_ids: List[int] = Field(
        sa_column=Column(JSON), default_factory=list
    )
    retake_cooldown_hours: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class StaffQuizProgress(SQLModel, table=True):
    """Coverage ledger for one (staff member, quiz) pair."""

    __table_args__ = (
        UniqueConstraint("staff_user_id", "quiz_id", name="uq_progress_staff_quiz"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    staff_user_id: int = Field(foreign_key="user.id", index=True)
    quiz_id: int = Field(foreign_key="quiz.id", index=True)
    restaurant_id: int = Field(foreign_key="restaurant.id", index=True)
    seen_question_ids: List[int] = Field(
        sa_column=Column(JSON), default_factory=list
    )
    total_unique_questions_in_source: int = 0
    is_completed_overall: bool = False
    last_attempt_timestamp: Optional[datetime] = None
    version: int = 0  # bumped on every update, guards concurrent unions
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class QuizAttempt(SQLModel, table=True):
    """Immutable record of one scored submission."""

    __table_args__ = (
        Index("ix_quizattempt_staff_quiz", "staff_user_id", "quiz_id"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    staff_user_id: int = Field(foreign_key="user.id")
    quiz_id: int = Field(foreign_key="quiz.id")
    restaurant_id: int = Field(foreign_key="restaurant.id", index=True)
    # [{"question_id", "answer_given", "is_correct", "sort_order"}, ...]
    questions_presented: List[dict] = Field(
        sa_column=Column(JSON), default_factory=list
    )
    score: int
    attempt_date: datetime = Field(default_factory=datetime.utcnow)
    duration_in_seconds: Optional[int] = None


class PendingAttempt(SQLModel, table=True):
    """Attempt token carrying the presented questions from start to submit."""

    __table_args__ = (
        Index(
            "uq_pendingattempt_open_pair",
            "staff_user_id",
            "quiz_id",
            unique=True,
            sqlite_where=text("status = 'open'"),
            postgresql_where=text("status = 'open'"),
        ),
    )

    token: str = Field(primary_key=True)
    staff_user_id: int = Field(foreign_key="user.id", index=True)
    quiz_id: int = Field(foreign_key="quiz.id", index=True)
    restaurant_id: int = Field(foreign_key="restaurant.id")
    question_ids: List[int] = Field(sa_column=Column(JSON), default_factory=list)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    expires_at: datetime
    status: str = "open"  # open, submitted, abandoned
    submitted_at: Optional[datetime] = None


class Notification(SQLModel, table=True):
    """Notification recorded for a manager (delivery happens elsewhere)."""

    id: Optional[int] = Field(default=None, primary_key=True)
    restaurant_id: int = Field(foreign_key="restaurant.id", index=True)
    recipient_user_id: int = Field(foreign_key="user.id", index=True)
    type: str  # 'training_completed'
    message: str
    related_quiz_id: Optional[int] = None
    related_attempt_id: Optional[int] = None
    read: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Settings(SQLModel, table=True):
    """Singleton table storing site‑wide configuration values."""
    id: Optional[int] = Field(default=1, primary_key=True)
    site_name: str = "Staff Training"
    default_retake_cooldown_hours: int = 24
    default_questions_per_attempt: int = 10
    attempt_window_minutes: int = 120
