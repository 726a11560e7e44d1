"""Schemas for question banks and the questions inside them."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator

from app.errors import ValidationError
from app.questions import KnowledgeCategory, QuestionStatus, QuestionType, validate_options


class QuestionOption(BaseModel):
    text: str
    is_correct: bool = False


class QuestionBankCreate(BaseModel):
    name: str
    description: str | None = None
    categories: list[str] = []


class QuestionBankRead(QuestionBankCreate):
    id: int
    restaurant_id: int
    question_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class QuestionCreate(BaseModel):
    question_text: str
    question_type: QuestionType
    options: list[QuestionOption]
    categories: list[str] = []
    knowledge_category: KnowledgeCategory | None = None
    explanation: str | None = None
    created_by: Literal["manual", "ai"] = "manual"
    status: QuestionStatus = QuestionStatus.ACTIVE

    @model_validator(mode="after")
    def check_options(self):
        try:
            validate_options(
                self.question_type.value, [o.model_dump() for o in self.options]
            )
        except ValidationError as exc:
            raise ValueError(exc.message)
        return self


class QuestionRead(BaseModel):
    id: int
    question_bank_id: int
    question_text: str
    question_type: str
    options: list[QuestionOption]
    categories: list[str]
    knowledge_category: str | None = None
    explanation: str | None = None
    created_by: str
    status: str

    model_config = ConfigDict(from_attributes=True)


class QuestionStatusUpdate(BaseModel):
    status: QuestionStatus
