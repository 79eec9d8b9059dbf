"""
Domain models for assessment sessions.

Provider payloads are parsed into plain dataclasses with ``from_dict``
constructors; anything written to local storage goes through ``to_dict``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

AnswerValue = Union[int, float, str]

TPA_OPTION_LETTERS = ("A", "B", "C", "D", "E")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Step(str, Enum):
    """Session lifecycle step."""

    LOADING = "loading"
    READY = "ready"
    TESTING = "testing"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (Step.COMPLETED, Step.ERROR)


@dataclass(frozen=True)
class Question:
    """A single question as delivered by the Test Provider."""

    id: str
    text: str
    category_id: str
    category_name: str = ""
    category_code: str = ""
    max_weight: int | None = None
    options: dict[str, str] = field(default_factory=dict)
    image_url: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Question:
        """Parse either the slider shape (body/category object) or the TPA shape."""
        category = data.get("category")
        if isinstance(category, dict):
            category_id = str(category.get("id", ""))
            category_name = category.get("name", "")
            category_code = category.get("code", "")
        else:
            # TPA questions carry the reasoning category as a bare name
            category_id = str(category or "")
            category_name = str(category or "")
            category_code = ""

        options = {
            letter: data[f"option_{letter.lower()}"]
            for letter in TPA_OPTION_LETTERS
            if data.get(f"option_{letter.lower()}") is not None
        }

        return cls(
            id=str(data["id"]),
            text=data.get("body") or data.get("question_text") or "",
            category_id=category_id,
            category_name=category_name,
            category_code=category_code,
            max_weight=data.get("max_weight"),
            options=options,
            image_url=data.get("question_image_url"),
        )


@dataclass
class QuestionSet:
    """The provider's currently active question set for one assessment type."""

    id: str
    name: str
    time_limit: int = 0
    version: int | str | None = None
    questions: list[Question] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuestionSet:
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            time_limit=int(data.get("time_limit") or 0),
            version=data.get("version"),
            questions=[Question.from_dict(q) for q in data.get("questions", [])],
        )


@dataclass
class ProviderTest:
    """A test instance created or fetched from the Test Provider."""

    id: str
    status: str
    expires_at: datetime | None
    time_limit: int = 0
    started_at: datetime | None = None
    questions: list[Question] = field(default_factory=list)
    question_set_id: str | None = None
    question_set_name: str | None = None

    IN_PROGRESS = "in_progress"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProviderTest:
        question_set = data.get("question_set") or {}
        return cls(
            id=str(data["id"]),
            status=data.get("status", ""),
            expires_at=parse_timestamp(data.get("expires_at")),
            time_limit=int(data.get("time_limit") or 0),
            started_at=parse_timestamp(data.get("started_at")),
            questions=[Question.from_dict(q) for q in data.get("questions", [])],
            question_set_id=str(question_set["id"]) if question_set.get("id") else None,
            question_set_name=question_set.get("name"),
        )

    @property
    def is_in_progress(self) -> bool:
        return self.status == self.IN_PROGRESS

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())

    def is_resumable(self, now: datetime | None = None) -> bool:
        return self.is_in_progress and not self.is_expired(now)


@dataclass(frozen=True)
class Answer:
    """The single recorded answer for one question."""

    question_id: str
    category_id: str
    value: AnswerValue

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_id": self.question_id,
            "category_id": self.category_id,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Answer:
        return cls(
            question_id=str(data["question_id"]),
            category_id=str(data.get("category_id", "")),
            value=data["value"],
        )


@dataclass(frozen=True)
class TranscriptEntry:
    """One line of the chat-style transcript shown to the user."""

    sender: str  # "ai" | "user"
    kind: str  # "question" | "answer" | "notice"
    text: str = ""
    question_id: str | None = None
    value: AnswerValue | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sender": self.sender,
            "kind": self.kind,
            "text": self.text,
            "question_id": self.question_id,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TranscriptEntry:
        return cls(
            sender=data.get("sender", "ai"),
            kind=data.get("kind", "notice"),
            text=data.get("text", ""),
            question_id=data.get("question_id"),
            value=data.get("value"),
        )


@dataclass
class Session:
    """The live state of one attempt at one assessment."""

    session_id: str
    owner_id: str
    assessment: str
    question_set_id: str
    question_set_name: str
    questions: list[Question]
    seconds_remaining: int
    started_at: datetime = field(default_factory=utcnow)
    last_persisted_at: datetime | None = None
    current_index: int = 0
    step: Step = Step.READY
    transcript: list[TranscriptEntry] = field(default_factory=list)

    @property
    def ordered_question_ids(self) -> tuple[str, ...]:
        return tuple(q.id for q in self.questions)

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Question | None:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    def question(self, question_id: str) -> Question | None:
        return next((q for q in self.questions if q.id == question_id), None)


@dataclass
class PersistedSnapshot:
    """Durable projection of a Session kept in the ProgressStore."""

    session_id: str
    owner_id: str
    assessment: str
    question_set_id: str
    question_set_name: str
    ordered_question_ids: list[str]
    current_index: int
    answers: dict[str, Answer]
    seconds_remaining: int
    started_at: datetime
    last_persisted_at: datetime
    step: str = Step.TESTING.value
    transcript: list[TranscriptEntry] = field(default_factory=list)
    schema_version: int = 1
    saved_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "owner_id": self.owner_id,
            "assessment": self.assessment,
            "question_set_id": self.question_set_id,
            "question_set_name": self.question_set_name,
            "ordered_question_ids": list(self.ordered_question_ids),
            "current_index": self.current_index,
            "answers": {qid: a.to_dict() for qid, a in self.answers.items()},
            "seconds_remaining": self.seconds_remaining,
            "started_at": self.started_at.isoformat(),
            "last_persisted_at": self.last_persisted_at.isoformat(),
            "step": self.step,
            "transcript": [entry.to_dict() for entry in self.transcript],
            "schema_version": self.schema_version,
            "saved_at": self.saved_at.isoformat() if self.saved_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PersistedSnapshot:
        """Parse a stored snapshot. Raises ValueError when it contradicts itself."""
        snapshot = cls(
            session_id=str(data["session_id"]),
            owner_id=str(data["owner_id"]),
            assessment=data["assessment"],
            question_set_id=str(data.get("question_set_id", "")),
            question_set_name=data.get("question_set_name", ""),
            ordered_question_ids=[str(q) for q in data["ordered_question_ids"]],
            current_index=int(data["current_index"]),
            answers={
                str(qid): Answer.from_dict(a) for qid, a in data.get("answers", {}).items()
            },
            seconds_remaining=int(data["seconds_remaining"]),
            started_at=parse_timestamp(data["started_at"]),
            last_persisted_at=parse_timestamp(data["last_persisted_at"]),
            step=data.get("step", Step.TESTING.value),
            transcript=[TranscriptEntry.from_dict(t) for t in data.get("transcript", [])],
            schema_version=int(data.get("schema_version", 0)),
            saved_at=parse_timestamp(data.get("saved_at")),
        )
        snapshot.validate()
        return snapshot

    def validate(self) -> None:
        known = set(self.ordered_question_ids)
        for question_id, answer in self.answers.items():
            if question_id not in known or answer.question_id != question_id:
                raise ValueError(f"Stored answer for unknown question {question_id!r}")
        if not 0 <= self.current_index <= len(self.ordered_question_ids):
            raise ValueError(f"Stored cursor {self.current_index} is out of range")
