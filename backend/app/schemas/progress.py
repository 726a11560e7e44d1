from datetime import datetime

from pydantic import BaseModel


class QuizProgressRead(BaseModel):
    quiz_id: int
    title: str
    is_available: bool
    overall_progress_percentage: float
    is_completed_overall: bool
    average_score_for_quiz: float | None = None
    attempts_count: int
    last_attempt_timestamp: datetime | None = None


class StaffProgressRead(BaseModel):
    staff_id: int
    average_score: float | None = None
    quizzes_taken: int
    per_quiz: list[QuizProgressRead]


class StaffSummaryRead(BaseModel):
    staff_id: int
    name: str
    email: str
    assigned_role_id: int | None = None
    average_score: float | None = None
    quizzes_taken: int
    assignable_quizzes_count: int
    per_quiz: list[QuizProgressRead]


class StaffRankingRead(BaseModel):
    staff_id: int
    average_score: float | None = None
    rank: int | None = None
    total_ranked_staff: int


class CategoryPerformanceRead(BaseModel):
    knowledge_category: str
    questions_answered: int
    correct_answers: int
    accuracy: float
