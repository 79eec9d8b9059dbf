"""In-memory record of the single answer given to each question."""

from __future__ import annotations

from typing import Iterable

from .errors import InvalidQuestion
from .models import Answer


class AnswerLedger:
    """
    One answer per question id, overwritable only by recording again.

    Answers for ids outside the session's ordered question list are
    rejected with InvalidQuestion.
    """

    def __init__(self, ordered_question_ids: Iterable[str]):
        self._order = tuple(ordered_question_ids)
        self._known = frozenset(self._order)
        self._answers: dict[str, Answer] = {}

    def record(self, question_id: str, answer: Answer) -> bool:
        """Insert or overwrite. Returns True when the question had no answer yet."""
        if question_id not in self._known:
            raise InvalidQuestion(question_id)
        if answer.question_id != question_id:
            raise InvalidQuestion(answer.question_id)
        is_new = question_id not in self._answers
        self._answers[question_id] = answer
        return is_new

    def get(self, question_id: str) -> Answer | None:
        return self._answers.get(question_id)

    def snapshot(self) -> tuple[Answer, ...]:
        """Recorded answers in original question order."""
        return tuple(self._answers[qid] for qid in self._order if qid in self._answers)

    def count_answered(self) -> int:
        return len(self._answers)

    def is_complete(self) -> bool:
        return len(self._answers) == len(self._order)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._answers

    def __len__(self) -> int:
        return len(self._answers)

    def to_dict(self) -> dict[str, Answer]:
        return {answer.question_id: answer for answer in self.snapshot()}

    @classmethod
    def from_answers(
        cls, ordered_question_ids: Iterable[str], answers: dict[str, Answer]
    ) -> AnswerLedger:
        ledger = cls(ordered_question_ids)
        for question_id, answer in answers.items():
            ledger.record(question_id, answer)
        return ledger
