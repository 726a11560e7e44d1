"""Aggregate import for all API route modules."""

from . import (
    auth,
    users,
    staff,
    roles,
    questions,
    quizzes,
    attempts,
    notifications,
    settings,
)

__all__ = [
    "auth",
    "users",
    "staff",
    "roles",
    "questions",
    "quizzes",
    "attempts",
    "notifications",
    "settings",
]
