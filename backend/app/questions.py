"""Question types and their option invariants.

Every question is one of three closed variants.  The option rules for
each variant live here and are applied when a question is built, so
grading code can rely on them without re-checking.
"""

from enum import Enum

from app.errors import ValidationError

MIN_CHOICE_OPTIONS = 2
MAX_CHOICE_OPTIONS = 6


class QuestionType(str, Enum):
    SINGLE_CHOICE = "multiple-choice-single"
    MULTIPLE_CHOICE = "multiple-choice-multiple"
    TRUE_FALSE = "true-false"


class KnowledgeCategory(str, Enum):
    FOOD = "food-knowledge"
    BEVERAGE = "beverage-knowledge"
    WINE = "wine-knowledge"
    PROCEDURES = "procedures-knowledge"


class QuestionStatus(str, Enum):
    ACTIVE = "active"
    PENDING_REVIEW = "pending_review"
    REJECTED = "rejected"


def validate_options(question_type: str, options: list[dict]) -> QuestionType:
    """Check the option layout for ``question_type``.

    ``options`` is a list of ``{"text": str, "is_correct": bool}``.
    Returns the parsed :class:`QuestionType`; raises
    :class:`~app.errors.ValidationError` on any violation.
    """
    try:
        qtype = QuestionType(question_type)
    except ValueError:
        raise ValidationError(f"Unknown question type '{question_type}'")

    count = len(options)
    if qtype is QuestionType.TRUE_FALSE:
        if count != 2:
            raise ValidationError("True/false questions must have exactly 2 options")
    elif not MIN_CHOICE_OPTIONS <= count <= MAX_CHOICE_OPTIONS:
        raise ValidationError(
            f"Multiple choice questions must have {MIN_CHOICE_OPTIONS}-"
            f"{MAX_CHOICE_OPTIONS} options"
        )

    for option in options:
        if not str(option.get("text", "")).strip():
            raise ValidationError("Option text cannot be empty")

    correct = sum(1 for o in options if o.get("is_correct"))
    if qtype is QuestionType.MULTIPLE_CHOICE:
        if correct < 1:
            raise ValidationError(
                "Multiple-answer questions need at least one correct option"
            )
    elif correct != 1:
        raise ValidationError(
            f"{qtype.value} questions need exactly one correct option"
        )
    return qtype


def correct_option_indices(options: list[dict]) -> tuple[int, ...]:
    """Indices of the correct options, in ascending order."""
    return tuple(i for i, o in enumerate(options) if o.get("is_correct"))


def answer_key(question_type: str, options: list[dict]) -> int | list[int]:
    """Correct answer as shown to the taker: an index, or a list for multi-select."""
    indices = correct_option_indices(options)
    if question_type == QuestionType.MULTIPLE_CHOICE.value:
        return list(indices)
    return indices[0]
