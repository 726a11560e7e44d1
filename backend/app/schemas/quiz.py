from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class QuizCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str | None = None
    source_question_bank_ids: list[int] = Field(min_length=1)
    number_of_questions_per_attempt: int | None = Field(default=None, ge=1)
    eligible_role_ids: list[int] = []
    retake_cooldown_hours: int | None = Field(default=None, ge=0)
    is_available: bool = False


class QuizUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    source_question_bank_ids: list[int] | None = Field(default=None, min_length=1)
    number_of_questions_per_attempt: int | None = Field(default=None, ge=1)
    eligible_role_ids: list[int] | None = None
    retake_cooldown_hours: int | None = Field(default=None, ge=0)
    is_available: bool | None = None


class QuizRead(BaseModel):
    id: int
    restaurant_id: int
    title: str
    description: str | None = None
    source_question_bank_ids: list[int]
    total_unique_questions_in_source_snapshot: int
    number_of_questions_per_attempt: int
    is_available: bool
    eligible_role_ids: list[int]
    retake_cooldown_hours: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class QuizEligibility(BaseModel):
    allowed: bool
    next_eligible_at: datetime | None = None


class AvailableQuizRead(BaseModel):
    quiz: QuizRead
    can_attempt: bool
    next_eligible_at: datetime | None = None
    overall_progress_percentage: float
    is_completed_overall: bool
