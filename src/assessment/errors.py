"""
Error kinds raised by the assessment engine.

Provider failures are mapped to these at the HTTP boundary
(src.integrations.test_provider) so the controller never sees httpx types.
"""

from __future__ import annotations


class AssessmentError(Exception):
    """Base class for all assessment engine errors."""

    kind = "assessment_error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ProviderError(AssessmentError):
    """The Test Provider answered with an error we do not retry."""

    kind = "provider_error"

    def __init__(self, message: str = "", status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderUnavailable(ProviderError):
    """Network failure or 5xx from the Test Provider."""

    kind = "provider_unavailable"


class TimedOut(ProviderUnavailable):
    """A provider call exceeded the configured request timeout."""

    kind = "timed_out"


class SubmissionRejected(ProviderError):
    """The provider refused the submitted answers (validation failure)."""

    kind = "submission_rejected"


class SessionNotResumable(ProviderError):
    """The provider reports the session as completed or unknown."""

    kind = "session_not_resumable"


class SessionExpired(AssessmentError):
    """The session ran out of time, on the provider or on the local clock."""

    kind = "session_expired"


class InvalidQuestion(AssessmentError, AssertionError):
    """An answer referenced a question id outside the session's question list.

    This is a contract violation by the caller, not a user-facing error.
    """

    kind = "invalid_question"

    def __init__(self, question_id: str):
        super().__init__(f"Question {question_id!r} is not part of this session")
        self.question_id = question_id


class OrderRequired(AssessmentError):
    """A TPA test was started without the paid order that unlocks it."""

    kind = "order_required"


class InvalidTransition(AssessmentError):
    """A host intent was issued in a step that never permits it."""

    kind = "invalid_transition"


def is_transient(error: BaseException) -> bool:
    """Network-level failure, as opposed to the provider refusing the request."""
    return isinstance(error, ProviderUnavailable)
