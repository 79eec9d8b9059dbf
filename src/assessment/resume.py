"""
Resume resolution.

Decides how a session should be initialized from a (possibly implicit)
resume request, the local progress slot and the provider's view of the
session. The result is a tagged value for the host to act on; nothing
here navigates or prompts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Union

from loguru import logger

from .errors import AssessmentError, SessionExpired, SessionNotResumable
from .models import PersistedSnapshot, ProviderTest, Step, utcnow
from .progress_store import ProgressStore
from .provider import TestProvider


@dataclass(frozen=True)
class ResumeWithSnapshot:
    """Local progress matches a live provider session: restore it verbatim."""

    snapshot: PersistedSnapshot
    test: ProviderTest
    implicit: bool = False


@dataclass(frozen=True)
class CrossDeviceConflict:
    """Provider says in progress, but this client holds no record of it.

    The host must ask the user to either start over within the same session
    or abandon it for an unrelated new one.
    """

    session_id: str
    test: ProviderTest


@dataclass(frozen=True)
class Unresumable:
    """The session is completed, unknown or expired."""

    session_id: str
    error: AssessmentError


@dataclass(frozen=True)
class NoAction:
    """Nothing to resume; create a new session."""


ResumeDecision = Union[ResumeWithSnapshot, CrossDeviceConflict, Unresumable, NoAction]


class ResumeResolver:
    """Combines ProgressStore and Test Provider state into a ResumeDecision."""

    def __init__(
        self,
        provider: TestProvider,
        store: ProgressStore,
        now: Callable[[], datetime] = utcnow,
    ):
        self.provider = provider
        self.store = store
        self._now = now

    async def resolve(self, resume_session_id: Optional[str], owner_id: str) -> ResumeDecision:
        """
        Resolve a resume request.

        Args:
            resume_session_id: Session the host asked to resume, if any
            owner_id: Authenticated user; other users' snapshots are ignored

        Raises:
            ProviderError: Provider failures other than "not found" propagate
        """
        implicit = False
        if resume_session_id is None:
            existing = self.store.load()
            if existing is None or existing.step == Step.COMPLETED.value:
                return NoAction()
            if existing.owner_id != owner_id:
                logger.info(f"Ignoring saved progress owned by another user ({existing.owner_id})")
                return NoAction()
            # Redirect to the unfinished session instead of starting a second one
            logger.info(f"Found saved progress for session {existing.session_id}, resuming")
            resume_session_id = existing.session_id
            implicit = True

        try:
            test = await self.provider.get_test(resume_session_id)
        except SessionNotResumable as e:
            self._discard_stale(resume_session_id)
            return Unresumable(resume_session_id, e)

        if not test.is_in_progress:
            self._discard_stale(resume_session_id)
            return Unresumable(
                resume_session_id,
                SessionNotResumable(f"Test {resume_session_id} is no longer in progress"),
            )

        if test.is_expired(self._now()):
            self._discard_stale(resume_session_id)
            return Unresumable(resume_session_id, SessionExpired(f"Test {resume_session_id} has expired"))

        snapshot = self.store.load(resume_session_id)
        if snapshot is not None and self._belongs_to(snapshot, owner_id, test):
            logger.info(
                f"Resuming session {resume_session_id} at question {snapshot.current_index + 1}"
            )
            return ResumeWithSnapshot(snapshot, test, implicit=implicit)

        logger.warning(f"No local progress for in-progress session {resume_session_id}")
        return CrossDeviceConflict(resume_session_id, test)

    def _belongs_to(self, snapshot: PersistedSnapshot, owner_id: str, test: ProviderTest) -> bool:
        if snapshot.owner_id != owner_id:
            return False
        provider_order = [q.id for q in test.questions]
        if provider_order and provider_order != snapshot.ordered_question_ids:
            logger.warning(
                f"Saved progress for {snapshot.session_id} does not match the provider's questions"
            )
            return False
        return True

    def _discard_stale(self, session_id: str) -> None:
        if self.store.load(session_id) is not None:
            logger.info(f"Clearing stale progress for session {session_id}")
            self.store.clear()
