"""
Assessment schemas.

Every assessment type runs through the same SessionController; a schema
supplies only what differs between them: provider endpoints, the local
storage key, the answer-value validator, the wire encoding of answers and
the fallback time limit used when the provider declares ``time_limit: 0``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from .models import TPA_OPTION_LETTERS, Answer, AnswerValue, Question


class AnswerKind(str, Enum):
    POINTS = "points"  # integer 0..max_weight (VARK style slider)
    SCORE = "score"  # one-decimal score in [score_min, score_max]
    CHOICE = "choice"  # one of A-E


@dataclass(frozen=True)
class AssessmentSchema:
    """Per-assessment configuration of the generic session engine."""

    key: str
    display_name: str
    resource: str
    question_set_field: str
    storage_key: str
    answer_kind: AnswerKind
    fallback_time_limit: int = 3600
    score_min: float = 1.0
    score_max: float = 5.0
    default_max_weight: int = 5
    requires_order: bool = False

    # -------------------------------------------------------------------------
    # Provider endpoints
    # -------------------------------------------------------------------------

    @property
    def base_path(self) -> str:
        return f"/users/{self.resource}"

    @property
    def active_question_set_path(self) -> str:
        return f"{self.base_path}/active_question_set"

    def test_path(self, session_id: str) -> str:
        return f"{self.base_path}/{session_id}"

    def submit_path(self, session_id: str) -> str:
        return f"{self.base_path}/{session_id}/submit_answers"

    def create_payload(self, question_set_id: str, order_id: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {self.question_set_field: question_set_id}
        if order_id:
            payload["order_id"] = order_id
        return payload

    # -------------------------------------------------------------------------
    # Time budget
    # -------------------------------------------------------------------------

    def time_limit_for(self, declared: int | None) -> int:
        """A declared limit of zero means "use the fallback", never "unlimited"."""
        if declared and declared > 0:
            return int(declared)
        return self.fallback_time_limit

    def with_fallback(self, seconds: int) -> AssessmentSchema:
        return replace(self, fallback_time_limit=seconds)

    # -------------------------------------------------------------------------
    # Answers
    # -------------------------------------------------------------------------

    def validate_value(self, question: Question, value: Any) -> AnswerValue:
        """Normalize a raw answer value or raise ValueError."""
        if self.answer_kind is AnswerKind.CHOICE:
            letter = str(value).strip().upper()
            allowed = tuple(question.options) or TPA_OPTION_LETTERS
            if letter not in allowed:
                raise ValueError(f"Option must be one of {', '.join(allowed)}, got {value!r}")
            return letter

        if isinstance(value, bool):
            raise ValueError(f"Expected a number, got {value!r}")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"Expected a number, got {value!r}") from None
        if math.isnan(number):
            raise ValueError("Answer value cannot be NaN")

        if self.answer_kind is AnswerKind.POINTS:
            max_weight = question.max_weight or self.default_max_weight
            if not number.is_integer() or not 0 <= number <= max_weight:
                raise ValueError(f"Points must be a whole number between 0 and {max_weight}")
            return int(number)

        score = round(number, 1)
        if not self.score_min <= score <= self.score_max:
            raise ValueError(f"Score must be between {self.score_min} and {self.score_max}")
        return score

    def build_answer(self, question: Question, value: Any) -> Answer:
        return Answer(
            question_id=question.id,
            category_id=question.category_id,
            value=self.validate_value(question, value),
        )

    def answer_to_wire(self, answer: Answer) -> dict[str, Any]:
        if self.answer_kind is AnswerKind.CHOICE:
            return {"tpa_question_id": answer.question_id, "selected_option": answer.value}
        return {
            "question_id": answer.question_id,
            "category_id": answer.category_id,
            "point": answer.value,
        }

    def describe_value(self, question: Question) -> str:
        """Short input hint for terminal hosts."""
        if self.answer_kind is AnswerKind.CHOICE:
            return "/".join(tuple(question.options) or TPA_OPTION_LETTERS)
        if self.answer_kind is AnswerKind.POINTS:
            return f"0-{question.max_weight or self.default_max_weight}"
        return f"{self.score_min:.1f}-{self.score_max:.1f}"


VARK = AssessmentSchema(
    key="vark",
    display_name="VARK Learning Style",
    resource="vark_tests",
    question_set_field="vark_question_set_id",
    storage_key="vark_test_progress",
    answer_kind=AnswerKind.POINTS,
)

AI_KNOWLEDGE = AssessmentSchema(
    key="ai_knowledge",
    display_name="AI Knowledge",
    resource="ai_knowledge_tests",
    question_set_field="ai_knowledge_question_set_id",
    storage_key="ai_knowledge_test_progress",
    answer_kind=AnswerKind.POINTS,
)

BEHAVIORAL = AssessmentSchema(
    key="behavioral",
    display_name="Behavioral Assessment",
    resource="behavioral_learning_tests",
    question_set_field="behavioral_learning_question_set_id",
    storage_key="behavioral_test_progress",
    answer_kind=AnswerKind.SCORE,
)

COMPREHENSIVE = AssessmentSchema(
    key="comprehensive",
    display_name="Comprehensive Assessment",
    resource="comprehensive_assessment_tests",
    question_set_field="comprehensive_question_set_id",
    storage_key="comprehensive_test_progress",
    answer_kind=AnswerKind.SCORE,
    fallback_time_limit=5400,
)

TPA = AssessmentSchema(
    key="tpa",
    display_name="TPA Aptitude",
    resource="tpa_tests",
    question_set_field="tpa_question_set_id",
    storage_key="tpa_test_progress",
    answer_kind=AnswerKind.CHOICE,
    requires_order=True,
)

SCHEMAS: dict[str, AssessmentSchema] = {
    schema.key: schema for schema in (VARK, AI_KNOWLEDGE, BEHAVIORAL, COMPREHENSIVE, TPA)
}


def get_schema(key: str, fallback_overrides: dict[str, int] | None = None) -> AssessmentSchema:
    """Look up a schema by key, applying any configured fallback override."""
    try:
        schema = SCHEMAS[key]
    except KeyError:
        raise ValueError(
            f"Unknown assessment type {key!r}; expected one of {', '.join(SCHEMAS)}"
        ) from None
    if fallback_overrides and key in fallback_overrides:
        schema = schema.with_fallback(fallback_overrides[key])
    return schema
