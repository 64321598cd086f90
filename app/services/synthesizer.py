import logging
from dataclasses import dataclass
from typing import Any

from groq import APIError
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from app.clients import GroqClient
from app.config import settings
from app.errors import LLMResponseError, SynthesisError

logger = logging.getLogger(__name__)

MIN_CATEGORIES = 3
MAX_CATEGORIES = 4
QUIZZES_PER_CATEGORY = 5
CHOICES_PER_QUIZ = 4

# ---------------------------------------------------------------------------
# JSON Schema: Groq strict mode requires additionalProperties: false
# everywhere and all properties in "required".
# ---------------------------------------------------------------------------

QUIZ_SCHEMA = {
    "type": "object",
    "properties": {
        "question": {"type": "string"},
        "choices": {
            "type": "array",
            "items": {"type": "string"},
            "minItems": CHOICES_PER_QUIZ,
            "maxItems": CHOICES_PER_QUIZ,
        },
        "correct_answer": {"type": "string"},
    },
    "required": ["question", "choices", "correct_answer"],
    "additionalProperties": False,
}

COURSE_SCHEMA = {
    "type": "object",
    "properties": {
        "course_title": {"type": "string"},
        "categories": {
            "type": "array",
            "minItems": MIN_CATEGORIES,
            "maxItems": MAX_CATEGORIES,
            "items": {
                "type": "object",
                "properties": {
                    "category_title": {"type": "string"},
                    "quizzes": {
                        "type": "array",
                        "items": QUIZ_SCHEMA,
                        "minItems": QUIZZES_PER_CATEGORY,
                        "maxItems": QUIZZES_PER_CATEGORY,
                    },
                },
                "required": ["category_title", "quizzes"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["course_title", "categories"],
    "additionalProperties": False,
}


# ---------------------------------------------------------------------------
# Validated draft
# ---------------------------------------------------------------------------


class QuizDraft(BaseModel):
    question: str = Field(min_length=1)
    choices: list[str] = Field(min_length=CHOICES_PER_QUIZ, max_length=CHOICES_PER_QUIZ)
    correct_answer: str

    @model_validator(mode="after")
    def _answer_is_a_choice(self) -> "QuizDraft":
        if self.choices.count(self.correct_answer) != 1:
            raise ValueError(
                f"correct_answer {self.correct_answer!r} must match exactly one choice"
            )
        return self


class CategoryDraft(BaseModel):
    category_title: str = Field(min_length=1)
    quizzes: list[QuizDraft] = Field(
        min_length=QUIZZES_PER_CATEGORY, max_length=QUIZZES_PER_CATEGORY
    )


class CourseDraft(BaseModel):
    course_title: str
    categories: list[CategoryDraft] = Field(
        min_length=MIN_CATEGORIES, max_length=MAX_CATEGORIES
    )

    @field_validator("course_title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("course_title is empty")
        return value


@dataclass(frozen=True)
class SchemaError:
    """Model output that failed validation. Nothing downstream may use it."""

    details: str
    raw: Any = None


def validate_course(raw: Any) -> CourseDraft | SchemaError:
    if not isinstance(raw, dict):
        return SchemaError(f"expected a JSON object, got {type(raw).__name__}", raw)
    if not raw.get("course_title"):
        return SchemaError("output is missing course_title", raw)
    try:
        return CourseDraft.model_validate(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'course'}: {err['msg']}"
            for err in e.errors()
        )
        return SchemaError(problems, raw)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class CourseSynthesizer:
    """Turn aggregated onboarding text into a categorised multiple-choice course."""

    def __init__(self, groq: GroqClient, temperature: float | None = None) -> None:
        self.groq = groq
        self.temperature = (
            temperature if temperature is not None else settings.generation_temperature
        )

    @staticmethod
    def build_messages(full_text: str) -> list[dict]:
        return [
            {
                "role": "system",
                "content": (
                    "You are an expert HR instructional designer. Analyze the combined "
                    "onboarding documents you are given. Segment the content into "
                    f"{MIN_CATEGORIES} to {MAX_CATEGORIES} distinct categories relevant to HR "
                    "onboarding (e.g. Financial Policies, Technical Setup, Workplace Conduct). "
                    f"For each category, write exactly {QUIZZES_PER_CATEGORY} non-repetitive "
                    "multiple-choice questions that test critical knowledge from the text. "
                    f"Every question has {CHOICES_PER_QUIZ} distinct choices, and "
                    "correct_answer must repeat the exact text of one of them. "
                    "Give the whole course a title such as 'General New Hire Onboarding'."
                ),
            },
            {
                "role": "user",
                "content": f"Documents Content:\n---\n{full_text}\n---\n\nGenerate the course.",
            },
        ]

    async def synthesize(self, full_text: str) -> CourseDraft | SchemaError:
        """Call the model and validate its answer.

        Returns a :class:`CourseDraft`, or a :class:`SchemaError` when the
        output is empty, not JSON, or breaks the course shape. There is no
        repair and no retry. Raises :class:`SynthesisError` when the API call
        itself fails.
        """
        try:
            raw = await self.groq.chat_json(
                self.build_messages(full_text),
                COURSE_SCHEMA,
                schema_name="course",
                temperature=self.temperature,
            )
        except LLMResponseError as e:
            return SchemaError(e.message)
        except APIError as e:
            raise SynthesisError(f"Course generation request failed: {e}") from e

        result = validate_course(raw)
        if isinstance(result, SchemaError):
            logger.error("Rejected model output: %s", result.details)
        else:
            logger.info(
                "Synthesized course '%s' with %d categories",
                result.course_title,
                len(result.categories),
            )
        return result
