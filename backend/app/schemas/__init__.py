"""Convenience imports for all schema classes used by the API."""

from .user import (
    UserCreate,
    RegisterRequest,
    UserResponse,
    UserMeResponse,
    UserLogin,
)
from .staff import (
    StaffCreate,
    StaffRead,
    StaffAssignment,
    StaffRoleCreate,
    StaffRoleRead,
)
from .question import (
    QuestionOption,
    QuestionBankCreate,
    QuestionBankRead,
    QuestionCreate,
    QuestionRead,
    QuestionStatusUpdate,
)
from .quiz import (
    QuizCreate,
    QuizUpdate,
    QuizRead,
    QuizEligibility,
    AvailableQuizRead,
)
from .attempt import (
    PresentedQuestion,
    AttemptStartResponse,
    AttemptSubmit,
    GradedAnswer,
    AttemptResult,
    AttemptSummaryRead,
    AttemptQuestionRead,
    AttemptDetailRead,
)
from .progress import (
    QuizProgressRead,
    StaffProgressRead,
    StaffSummaryRead,
    StaffRankingRead,
    CategoryPerformanceRead,
)
from .notification import NotificationRead
from .settings import SettingsRead, SettingsUpdate

__all__ = [
    "UserCreate",
    "RegisterRequest",
    "UserResponse",
    "UserMeResponse",
    "UserLogin",
    "StaffCreate",
    "StaffRead",
    "StaffAssignment",
    "StaffRoleCreate",
    "StaffRoleRead",
    "QuestionOption",
    "QuestionBankCreate",
    "QuestionBankRead",
    "QuestionCreate",
    "QuestionRead",
    "QuestionStatusUpdate",
    "QuizCreate",
    "QuizUpdate",
    "QuizRead",
    "QuizEligibility",
    "AvailableQuizRead",
    "PresentedQuestion",
    "AttemptStartResponse",
    "AttemptSubmit",
    "GradedAnswer",
    "AttemptResult",
    "AttemptSummaryRead",
    "AttemptQuestionRead",
    "AttemptDetailRead",
    "QuizProgressRead",
    "StaffProgressRead",
    "StaffSummaryRead",
    "StaffRankingRead",
    "CategoryPerformanceRead",
    "NotificationRead",
    "SettingsRead",
    "SettingsUpdate",
]
