"""Schemas for taking a quiz and reviewing past attempts."""

from datetime import datetime

from pydantic import BaseModel, Field

Answer = int | list[int] | None


class PresentedQuestion(BaseModel):
    """Question as shown to a staff member; correctness is never included."""

    id: int
    question_text: str
    question_type: str
    options: list[str]


class AttemptStartResponse(BaseModel):
    attempt_token: str
    quiz_id: int
    expires_at: datetime
    questions: list[PresentedQuestion]


class AttemptSubmit(BaseModel):
    attempt_token: str | None = None
    answers: list[Answer]
    duration_in_seconds: int | None = Field(default=None, ge=0)


class GradedAnswer(BaseModel):
    question_id: int
    answer_given: Answer
    is_correct: bool
    correct_answer: int | list[int]


class AttemptResult(BaseModel):
    attempt_id: int
    quiz_id: int
    score: int
    total_questions: int
    correct_answers: list[int | list[int]]
    results: list[GradedAnswer]
    overall_progress_percentage: float
    is_completed_overall: bool


class AttemptSummaryRead(BaseModel):
    attempt_id: int
    quiz_id: int
    quiz_title: str
    score: int
    total_questions: int
    percentage: float | None = None
    attempt_date: datetime


class AttemptQuestionRead(BaseModel):
    question_id: int
    question_text: str
    options: list[str]
    answer_given: Answer
    correct_answer: int | list[int] | None = None
    is_correct: bool


class AttemptDetailRead(BaseModel):
    attempt_id: int
    staff_id: int
    quiz_id: int
    quiz_title: str
    score: int
    total_questions: int
    attempt_date: datetime
    questions: list[AttemptQuestionRead]
