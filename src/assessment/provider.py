"""Interface of the remote Test Provider as seen by the engine."""

from __future__ import annotations

from typing import Any, Protocol

from .models import ProviderTest, QuestionSet


class TestProvider(Protocol):
    """Remote service that owns question sets, test instances and scoring.

    Implementations raise the error kinds from ``errors`` only.
    """

    async def get_active_question_set(self) -> QuestionSet: ...

    async def create_test(self, question_set_id: str, order_id: str | None = None) -> ProviderTest: ...

    async def get_test(self, session_id: str) -> ProviderTest: ...

    async def submit_answers(self, session_id: str, payload: dict[str, Any]) -> dict[str, Any]: ...
