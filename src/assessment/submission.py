"""
Submission of a session's answers to the Test Provider.

The coordinator is the only place that clears the ProgressStore on the
happy path, and it does so only after the provider has accepted the answers.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from loguru import logger

from .errors import AssessmentError, ProviderError, is_transient
from .ledger import AnswerLedger
from .progress_store import ProgressStore
from .provider import TestProvider
from .schemas import AssessmentSchema


@dataclass
class SubmissionOutcome:
    """Terminal result of one submission round."""

    completed: bool
    attempts: int
    answers_sent: int
    response: dict[str, Any] | None = None
    error: AssessmentError | None = None


class SubmissionCoordinator:
    """Turns an AnswerLedger into a single provider submission."""

    def __init__(
        self,
        provider: TestProvider,
        schema: AssessmentSchema,
        store: ProgressStore,
        auto_retries: int = 1,
        retry_delay_seconds: float = 1.0,
    ):
        self.provider = provider
        self.schema = schema
        self.store = store
        self.auto_retries = auto_retries
        self.retry_delay_seconds = retry_delay_seconds

    def build_payload(self, ledger: AnswerLedger) -> dict[str, Any]:
        return {"answers": [self.schema.answer_to_wire(a) for a in ledger.snapshot()]}

    async def submit(self, session_id: str, ledger: AnswerLedger) -> SubmissionOutcome:
        """Submit, retrying any provider failure ``auto_retries`` times."""
        return await self._attempt(session_id, ledger, attempts=1 + self.auto_retries)

    async def retry_once(self, session_id: str, ledger: AnswerLedger) -> SubmissionOutcome:
        """The single manual retry offered after a surfaced failure."""
        return await self._attempt(session_id, ledger, attempts=1)

    async def _attempt(self, session_id: str, ledger: AnswerLedger, attempts: int) -> SubmissionOutcome:
        payload = self.build_payload(ledger)
        sent = len(payload["answers"])
        last_error: AssessmentError | None = None

        for attempt in range(attempts):
            try:
                response = await self.provider.submit_answers(session_id, payload)

            except ProviderError as e:
                last_error = e
                log = logger.warning if is_transient(e) else logger.error
                log(
                    f"Submission of {session_id} failed on attempt {attempt + 1}/{attempts}: "
                    f"{e.message}"
                )
                if attempt < attempts - 1:
                    await asyncio.sleep(self.retry_delay_seconds)
                continue

            self.store.clear()
            logger.info(f"Submitted {sent} answers for session {session_id}")
            return SubmissionOutcome(True, attempt + 1, sent, response=response)

        logger.error(f"Submission of {session_id} failed after {attempts} attempt(s)")
        return SubmissionOutcome(False, attempts, sent, error=last_error)
