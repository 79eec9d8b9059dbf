"""
Unit tests for assessment schemas: endpoints, time limits and answer values.
"""

import pytest

from src.assessment.models import Answer, Question
from src.assessment.schemas import (
    AI_KNOWLEDGE,
    BEHAVIORAL,
    COMPREHENSIVE,
    SCHEMAS,
    TPA,
    VARK,
    AnswerKind,
    get_schema,
)

SLIDER_QUESTION = Question(id="Q1", text="I like diagrams", category_id="V", max_weight=4)
TPA_QUESTION = Question(
    id="T1",
    text="Pick one",
    category_id="Logic",
    options={"A": "a", "B": "b", "C": "c", "D": "d", "E": "e"},
)


class TestRegistry:
    """Tests for the schema registry."""

    def test_all_types_registered(self):
        assert set(SCHEMAS) == {"vark", "ai_knowledge", "behavioral", "comprehensive", "tpa"}

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown assessment type"):
            get_schema("iq")

    def test_fallback_override(self):
        schema = get_schema("behavioral", {"behavioral": 1200})

        assert schema.fallback_time_limit == 1200
        assert BEHAVIORAL.fallback_time_limit == 3600

    def test_answer_kinds(self):
        assert VARK.answer_kind is AnswerKind.POINTS
        assert AI_KNOWLEDGE.answer_kind is AnswerKind.POINTS
        assert BEHAVIORAL.answer_kind is AnswerKind.SCORE
        assert COMPREHENSIVE.answer_kind is AnswerKind.SCORE
        assert TPA.answer_kind is AnswerKind.CHOICE
        assert TPA.requires_order is True


class TestEndpoints:
    """Tests for provider paths and payloads."""

    def test_paths(self):
        assert VARK.active_question_set_path == "/users/vark_tests/active_question_set"
        assert VARK.base_path == "/users/vark_tests"
        assert VARK.test_path("42") == "/users/vark_tests/42"
        assert VARK.submit_path("42") == "/users/vark_tests/42/submit_answers"

    def test_create_payload(self):
        assert BEHAVIORAL.create_payload("QS-1") == {"behavioral_learning_question_set_id": "QS-1"}
        assert TPA.create_payload("QS-2", "ORD-9") == {
            "tpa_question_set_id": "QS-2",
            "order_id": "ORD-9",
        }

    def test_storage_keys(self):
        assert VARK.storage_key == "vark_test_progress"
        assert TPA.storage_key == "tpa_test_progress"


class TestTimeLimit:
    """A declared limit of zero falls back to the per-type default."""

    @pytest.mark.parametrize("declared", [0, None])
    def test_zero_uses_fallback(self, declared):
        assert BEHAVIORAL.time_limit_for(declared) == 3600
        assert COMPREHENSIVE.time_limit_for(declared) == 5400

    def test_declared_limit_wins(self):
        assert COMPREHENSIVE.time_limit_for(1800) == 1800


class TestValues:
    """Tests for answer value validation."""

    def test_points_accepts_whole_numbers(self):
        assert VARK.validate_value(SLIDER_QUESTION, "4") == 4
        assert VARK.validate_value(SLIDER_QUESTION, 0) == 0

    @pytest.mark.parametrize("value", [5, -1, 2.5, "many", True])
    def test_points_rejects(self, value):
        with pytest.raises(ValueError):
            VARK.validate_value(SLIDER_QUESTION, value)

    def test_score_rounds_to_one_decimal(self):
        assert BEHAVIORAL.validate_value(SLIDER_QUESTION, "3.46") == 3.5
        assert BEHAVIORAL.validate_value(SLIDER_QUESTION, 5) == 5.0

    @pytest.mark.parametrize("value", [0.5, 5.2, "nan", None])
    def test_score_rejects(self, value):
        with pytest.raises(ValueError):
            BEHAVIORAL.validate_value(SLIDER_QUESTION, value)

    def test_choice_normalizes_case(self):
        assert TPA.validate_value(TPA_QUESTION, " c ") == "C"

    def test_choice_rejects_unknown_option(self):
        with pytest.raises(ValueError, match="Option must be one of"):
            TPA.validate_value(TPA_QUESTION, "F")

    def test_describe_value(self):
        assert VARK.describe_value(SLIDER_QUESTION) == "0-4"
        assert BEHAVIORAL.describe_value(SLIDER_QUESTION) == "1.0-5.0"
        assert TPA.describe_value(TPA_QUESTION) == "A/B/C/D/E"


class TestWireEncoding:
    """Tests for the submission wire format."""

    def test_slider_answer(self):
        answer = VARK.build_answer(SLIDER_QUESTION, 3)

        assert VARK.answer_to_wire(answer) == {"question_id": "Q1", "category_id": "V", "point": 3}

    def test_tpa_answer(self):
        answer = Answer(question_id="T1", category_id="Logic", value="B")

        assert TPA.answer_to_wire(answer) == {"tpa_question_id": "T1", "selected_option": "B"}
