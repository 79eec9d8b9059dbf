"""
Assessment: timed questionnaire sessions with local resume.

Components:
- controller: SessionController state machine shared by every assessment type
- schemas: per-type endpoints, answer validation and fallback time limits
- clock: polled countdown
- ledger: one answer per question
- progress_store: single-slot snapshot persistence with 24h retention
- resume: ResumeResolver and its tagged decisions
- submission: one-shot submission with a single automatic retry
"""

from .clock import Clock, format_clock, format_duration, format_remaining
from .controller import SessionController, SessionListener
from .errors import (
    AssessmentError,
    InvalidQuestion,
    InvalidTransition,
    OrderRequired,
    ProviderError,
    ProviderUnavailable,
    SessionExpired,
    SessionNotResumable,
    SubmissionRejected,
    TimedOut,
)
from .ledger import AnswerLedger
from .models import (
    Answer,
    PersistedSnapshot,
    ProviderTest,
    Question,
    QuestionSet,
    Session,
    Step,
    TranscriptEntry,
)
from .progress_store import JsonFileStorage, MemoryStorage, ProgressStore, completion_percentage
from .resume import (
    CrossDeviceConflict,
    NoAction,
    ResumeDecision,
    ResumeResolver,
    ResumeWithSnapshot,
    Unresumable,
)
from .schemas import SCHEMAS, AnswerKind, AssessmentSchema, get_schema
from .submission import SubmissionCoordinator, SubmissionOutcome

__all__ = [
    # Engine
    "SessionController",
    "SessionListener",
    "Clock",
    "AnswerLedger",
    "ProgressStore",
    "JsonFileStorage",
    "MemoryStorage",
    "ResumeResolver",
    "SubmissionCoordinator",
    "SubmissionOutcome",
    # Resume decisions
    "ResumeDecision",
    "ResumeWithSnapshot",
    "CrossDeviceConflict",
    "Unresumable",
    "NoAction",
    # Schemas
    "SCHEMAS",
    "AnswerKind",
    "AssessmentSchema",
    "get_schema",
    # Models
    "Answer",
    "PersistedSnapshot",
    "ProviderTest",
    "Question",
    "QuestionSet",
    "Session",
    "Step",
    "TranscriptEntry",
    # Errors
    "AssessmentError",
    "InvalidQuestion",
    "InvalidTransition",
    "OrderRequired",
    "ProviderError",
    "ProviderUnavailable",
    "SessionExpired",
    "SessionNotResumable",
    "SubmissionRejected",
    "TimedOut",
    # Helpers
    "completion_percentage",
    "format_clock",
    "format_duration",
    "format_remaining",
]
