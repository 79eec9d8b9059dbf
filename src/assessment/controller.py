"""
Assessment session controller.

One state machine drives every assessment type:

    loading -> ready -> testing -> submitting -> completed | error

Architecture:
- Resume decisions -> src.assessment.resume
- Countdown -> src.assessment.clock (polled, never a callback)
- Answers -> src.assessment.ledger
- Persistence -> src.assessment.progress_store
- Submission -> src.assessment.submission
- Per-type differences -> src.assessment.schemas

The host (terminal UI, tests) sends intents: initialize, start, select,
advance/answer, tick/poll_clock, retry_submission. It observes the
controller through a SessionListener.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Callable, Optional

from loguru import logger

from .clock import Clock
from .errors import (
    AssessmentError,
    InvalidQuestion,
    InvalidTransition,
    OrderRequired,
    ProviderError,
    SessionExpired,
    SessionNotResumable,
)
from .ledger import AnswerLedger
from .models import (
    Answer,
    PersistedSnapshot,
    ProviderTest,
    Question,
    Session,
    Step,
    TranscriptEntry,
    utcnow,
)
from .progress_store import ProgressStore
from .provider import TestProvider
from .resume import (
    CrossDeviceConflict,
    ResumeDecision,
    ResumeResolver,
    ResumeWithSnapshot,
    Unresumable,
)
from .schemas import AssessmentSchema
from .submission import SubmissionCoordinator, SubmissionOutcome

RESUME_FAILED_MESSAGE = (
    "The test you're trying to resume is no longer available or has expired. "
    "Please start a new test."
)
TIME_UP_MESSAGE = "Time is up. Your answers so far are being submitted."
COMPLETED_MESSAGE = "You have completed the assessment. Your results are being processed."


class SessionListener:
    """Host-side observer. Override what you need; every hook is optional."""

    def on_step(self, step: Step, session: Optional[Session]) -> None:
        pass

    def on_question(self, question: Question, index: int, total: int) -> None:
        pass

    def on_tick(self, seconds_remaining: int) -> None:
        pass

    def on_notice(self, message: str) -> None:
        pass


class SessionController:
    """Generic session engine parametrized by an AssessmentSchema."""

    def __init__(
        self,
        schema: AssessmentSchema,
        provider: TestProvider,
        store: ProgressStore,
        owner_id: str,
        listener: Optional[SessionListener] = None,
        auto_retries: int = 1,
        retry_delay_seconds: float = 1.0,
        time_source: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = utcnow,
    ):
        self.schema = schema
        self.provider = provider
        self.store = store
        self.owner_id = owner_id
        self.listener = listener or SessionListener()
        self.resolver = ResumeResolver(provider, store, now=now)
        self.coordinator = SubmissionCoordinator(
            provider,
            schema,
            store,
            auto_retries=auto_retries,
            retry_delay_seconds=retry_delay_seconds,
        )
        self._time_source = time_source
        self._now = now

        self.step: Step = Step.LOADING
        self.session: Optional[Session] = None
        self.ledger: Optional[AnswerLedger] = None
        self.clock: Optional[Clock] = None
        self.pending: Optional[Answer] = None
        self.conflict: Optional[CrossDeviceConflict] = None
        self.error: Optional[AssessmentError] = None
        self.outcome: Optional[SubmissionOutcome] = None
        self.expired = False
        self.resumed = False
        self._retry_available = False

    # =========================================================================
    # Host-facing state
    # =========================================================================

    @property
    def current_question(self) -> Optional[Question]:
        return self.session.current_question if self.session else None

    @property
    def seconds_remaining(self) -> int:
        return self.clock.remaining if self.clock else 0

    @property
    def answered_count(self) -> int:
        return self.ledger.count_answered() if self.ledger else 0

    @property
    def can_retry(self) -> bool:
        return self.step is Step.ERROR and self._retry_available

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error else None

    @property
    def error_title(self) -> Optional[str]:
        """Expiry is an expected outcome and is titled apart from failures."""
        if self.error is None:
            return None
        if isinstance(self.error, SessionExpired):
            return "Test expired"
        return "Something went wrong"

    # =========================================================================
    # Initialization
    # =========================================================================

    async def initialize(
        self,
        resume_session_id: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> Optional[ResumeDecision]:
        """
        Load or create the session.

        Returns the resume decision so hosts can react to a
        CrossDeviceConflict; provider failures end in the error step.
        """
        self._reset()
        self._set_step(Step.LOADING)

        try:
            decision = await self.resolver.resolve(resume_session_id, self.owner_id)

            if isinstance(decision, ResumeWithSnapshot):
                self._restore(decision.snapshot, decision.test)
            elif isinstance(decision, CrossDeviceConflict):
                self.conflict = decision
                self._notice(
                    "This test was started on another device or browser. "
                    "Your previous answers are not available here."
                )
            elif isinstance(decision, Unresumable):
                logger.warning(f"Session {decision.session_id} cannot be resumed: {decision.error.message}")
                self._fail(_resume_error(decision.error))
            else:
                await self._create_new(order_id)
            return decision

        except InvalidQuestion:
            raise
        except AssessmentError as e:
            logger.error(f"[{self.schema.key}] initialization failed: {e.message}")
            self._fail(e)
            return None

    async def resolve_conflict(self, start_over: bool, order_id: Optional[str] = None) -> None:
        """
        Settle a cross-device conflict.

        Args:
            start_over: True keeps the session id and question order but starts
                with no answers and the full time budget; False abandons it and
                creates an unrelated new session.
        """
        if self.conflict is None or self.step is not Step.LOADING:
            raise InvalidTransition("No cross-device conflict to resolve")
        conflict, self.conflict = self.conflict, None

        try:
            if start_over:
                test = await self.provider.get_test(conflict.session_id)
                self._ensure_live(test)
                self._open_session(test, question_set_id=test.question_set_id or "")
                logger.info(f"Restarting session {test.id} without saved progress")
            else:
                # The slot is overwritten by the new session's first save
                await self._create_new(order_id)
        except InvalidQuestion:
            raise
        except AssessmentError as e:
            self._fail(e)

    async def _create_new(self, order_id: Optional[str]) -> None:
        if self.schema.requires_order and not order_id:
            raise OrderRequired(
                f"A paid order is required to start the {self.schema.display_name} test"
            )
        question_set = await self.provider.get_active_question_set()
        test = await self.provider.create_test(question_set.id, order_id)
        self._ensure_live(test)
        if not test.questions:
            test.questions = list(question_set.questions)
        self._open_session(
            test,
            question_set_id=question_set.id,
            question_set_name=question_set.name,
        )
        logger.info(f"New {self.schema.key} test {test.id} ready")

    def _ensure_live(self, test: ProviderTest) -> None:
        if not test.is_in_progress:
            raise SessionNotResumable(f"Test {test.id} is no longer in progress")
        if test.is_expired(self._now()):
            raise SessionExpired(f"Test {test.id} has expired")

    def _open_session(
        self,
        test: ProviderTest,
        question_set_id: str,
        question_set_name: Optional[str] = None,
    ) -> None:
        if not test.questions:
            raise ProviderError(f"Test {test.id} has no questions")
        seconds = self.schema.time_limit_for(test.time_limit)
        self.session = Session(
            session_id=test.id,
            owner_id=self.owner_id,
            assessment=self.schema.key,
            question_set_id=question_set_id,
            question_set_name=question_set_name or test.question_set_name or self.schema.display_name,
            questions=list(test.questions),
            seconds_remaining=seconds,
            started_at=test.started_at or self._now(),
        )
        self.ledger = AnswerLedger(self.session.ordered_question_ids)
        self.clock = Clock(seconds, time_source=self._time_source)
        self._set_step(Step.READY)

    def _restore(self, snapshot: PersistedSnapshot, test: ProviderTest) -> None:
        questions = list(test.questions)
        if not questions:
            raise ProviderError(f"Test {test.id} has no questions")
        self.session = Session(
            session_id=snapshot.session_id,
            owner_id=snapshot.owner_id,
            assessment=self.schema.key,
            question_set_id=snapshot.question_set_id,
            question_set_name=snapshot.question_set_name,
            questions=questions,
            seconds_remaining=snapshot.seconds_remaining,
            started_at=snapshot.started_at,
            last_persisted_at=snapshot.last_persisted_at,
            current_index=min(max(snapshot.current_index, 0), len(questions)),
            transcript=list(snapshot.transcript),
        )
        self.ledger = AnswerLedger.from_answers(self.session.ordered_question_ids, snapshot.answers)
        self.clock = Clock(snapshot.seconds_remaining, time_source=self._time_source)
        self.resumed = True
        self._set_step(Step.READY)

    # =========================================================================
    # Testing
    # =========================================================================

    async def start(self) -> None:
        """ready -> testing; emits the current question and starts the clock."""
        if self.step is not Step.READY or self.session is None or self.clock is None:
            raise InvalidTransition(f"Cannot start from step {self.step.value}")

        self._set_step(Step.TESTING)
        self.clock.arm()

        question = self.current_question
        if question is None:
            # Every question was answered before the last shutdown
            if self._leave_testing():
                self._persist()
                await self._submit()
            return

        if not self._transcript_has_question(question.id):
            self._transcript(TranscriptEntry("ai", "question", question.text, question.id))
        self._emit_question()

        if self.clock.expired:
            await self.tick()

    def select(self, value: Any) -> bool:
        """
        Hold a not-yet-confirmed answer for the current question.

        Returns False when the session no longer accepts input.

        Raises:
            ValueError: The value is not valid for this assessment type
        """
        if self.step is not Step.TESTING or self.current_question is None:
            return False
        self.pending = self.schema.build_answer(self.current_question, value)
        return True

    async def advance(self) -> bool:
        """Confirm the pending selection and move on (or submit after the last question)."""
        if self.step is not Step.TESTING or self.pending is None:
            return False
        assert self.session is not None and self.ledger is not None

        answer, self.pending = self.pending, None
        self.ledger.record(answer.question_id, answer)
        self._transcript(TranscriptEntry("user", "answer", question_id=answer.question_id, value=answer.value))
        logger.debug(
            f"Answered {self.schema.key} question {self.session.current_index + 1}/"
            f"{self.session.total_questions}: {answer.value}"
        )

        next_index = self.session.current_index + 1
        if next_index < self.session.total_questions:
            self.session.current_index = next_index
            question = self.session.questions[next_index]
            self._transcript(TranscriptEntry("ai", "question", question.text, question.id))
            self._persist()
            self._emit_question()
            return True

        self.session.current_index = self.session.total_questions
        if self._leave_testing():
            self._persist()
            await self._submit()
        return True

    async def answer(self, question_id: str, value: Any) -> bool:
        """Select and confirm in one step.

        Re-answering an earlier question overwrites its answer without moving
        the cursor.
        """
        if self.step is not Step.TESTING or self.session is None or self.ledger is None:
            return False

        current = self.current_question
        if current is not None and question_id == current.id:
            self.select(value)
            return await self.advance()

        ordered = self.session.ordered_question_ids
        if question_id not in ordered:
            raise InvalidQuestion(question_id)
        position = ordered.index(question_id)
        if position > self.session.current_index:
            raise InvalidTransition(f"Question {question_id} has not been reached yet")

        question = self.session.questions[position]
        self.ledger.record(question_id, self.schema.build_answer(question, value))
        self._persist()
        return True

    async def tick(self) -> None:
        """Consume one second of the countdown."""
        await self._tick(persist=True)

    async def _tick(self, persist: bool) -> None:
        if self.step is not Step.TESTING or self.clock is None or self.session is None:
            return
        if self.clock.expired:
            await self._expire()
            return

        remaining = self.clock.tick()
        self.session.seconds_remaining = remaining
        self.listener.on_tick(remaining)
        if remaining == 0:
            await self._expire()
        elif persist:
            self._persist()

    async def poll_clock(self) -> int:
        """Deliver every whole second elapsed since the last poll. Returns ticks consumed."""
        if self.step is not Step.TESTING or self.clock is None:
            return 0
        if self.clock.expired:
            await self.tick()
            return 0

        consumed = 0
        for _ in range(self.clock.pending_ticks()):
            if self.step is not Step.TESTING:
                break
            await self._tick(persist=False)
            consumed += 1
        # One snapshot per batch, however long the host was away
        if consumed:
            self._persist()
        return consumed

    # =========================================================================
    # Submission
    # =========================================================================

    async def retry_submission(self) -> None:
        """The one retry of a failed submission, reusing the recorded answers."""
        if not self.can_retry:
            raise InvalidTransition("No submission retry available")
        self._retry_available = False
        self.error = None
        self._set_step(Step.SUBMITTING)
        self._persist()
        await self._submit(manual=True)

    async def _expire(self) -> None:
        if not self._leave_testing():
            return
        assert self.session is not None and self.ledger is not None
        self.expired = True
        self.session.seconds_remaining = 0

        # A selected-but-unconfirmed answer still counts at expiry
        if self.pending is not None:
            answer, self.pending = self.pending, None
            self.ledger.record(answer.question_id, answer)
            self._transcript(TranscriptEntry("user", "answer", question_id=answer.question_id, value=answer.value))

        logger.info(f"[{self.schema.key}] time up for session {self.session.session_id}")
        self._notice(TIME_UP_MESSAGE)
        self._persist()
        await self._submit()

    def _leave_testing(self) -> bool:
        """Only the first transition out of testing is honoured."""
        if self.step is not Step.TESTING:
            logger.debug(f"Ignoring second exit from testing (step={self.step.value})")
            return False
        if self.clock is not None:
            self.clock.disarm()
        self._set_step(Step.SUBMITTING)
        return True

    async def _submit(self, manual: bool = False) -> None:
        assert self.session is not None and self.ledger is not None
        if manual:
            outcome = await self.coordinator.retry_once(self.session.session_id, self.ledger)
        else:
            outcome = await self.coordinator.submit(self.session.session_id, self.ledger)
        self.outcome = outcome

        if outcome.completed:
            self._transcript(TranscriptEntry("ai", "notice", COMPLETED_MESSAGE))
            self._set_step(Step.COMPLETED)
            self._notice(COMPLETED_MESSAGE)
            return

        self._retry_available = not manual
        self._fail(outcome.error or AssessmentError("Submission failed"))

    # =========================================================================
    # Internals
    # =========================================================================

    def _reset(self) -> None:
        if self.clock is not None:
            self.clock.disarm()
        self.session = None
        self.ledger = None
        self.clock = None
        self.pending = None
        self.conflict = None
        self.error = None
        self.outcome = None
        self.expired = False
        self.resumed = False
        self._retry_available = False

    def _set_step(self, step: Step) -> None:
        previous, self.step = self.step, step
        if self.session is not None:
            self.session.step = step
        if previous is not step:
            logger.info(f"[{self.schema.key}] {previous.value} -> {step.value}")
        self.listener.on_step(step, self.session)

    def _fail(self, error: AssessmentError) -> None:
        self.error = error
        if self.clock is not None:
            self.clock.disarm()
        self._set_step(Step.ERROR)

    def _notice(self, message: str) -> None:
        self.listener.on_notice(message)

    def _emit_question(self) -> None:
        assert self.session is not None
        question = self.session.current_question
        if question is not None:
            self.listener.on_question(question, self.session.current_index, self.session.total_questions)

    def _transcript(self, entry: TranscriptEntry) -> None:
        if self.session is not None:
            self.session.transcript.append(entry)

    def _transcript_has_question(self, question_id: str) -> bool:
        assert self.session is not None
        return any(
            e.kind == "question" and e.question_id == question_id for e in self.session.transcript
        )

    def _persist(self) -> bool:
        """Write a snapshot; refused once the session is terminal."""
        if self.session is None or self.ledger is None:
            return False
        if self.step not in (Step.TESTING, Step.SUBMITTING):
            logger.debug(f"Snapshot write rejected in step {self.step.value}")
            return False

        session = self.session
        session.last_persisted_at = max(self._now(), session.started_at)
        self.store.save(
            PersistedSnapshot(
                session_id=session.session_id,
                owner_id=session.owner_id,
                assessment=session.assessment,
                question_set_id=session.question_set_id,
                question_set_name=session.question_set_name,
                ordered_question_ids=list(session.ordered_question_ids),
                current_index=session.current_index,
                answers=self.ledger.to_dict(),
                seconds_remaining=session.seconds_remaining,
                started_at=session.started_at,
                last_persisted_at=session.last_persisted_at,
                step=self.step.value,
                transcript=list(session.transcript),
            )
        )
        return True


def _resume_error(error: AssessmentError) -> AssessmentError:
    """Keep the error kind but use the message users understand."""
    if isinstance(error, SessionExpired):
        return SessionExpired(RESUME_FAILED_MESSAGE)
    return SessionNotResumable(RESUME_FAILED_MESSAGE)
