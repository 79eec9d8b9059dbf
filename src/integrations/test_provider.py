"""
Test Provider API client.

Handles HTTP communication with the assessment backend: fetching the
active question set, creating and fetching test instances, and submitting
answers. All transport failures are translated into the engine's error
kinds here, so nothing above this module deals with httpx.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from src.assessment.errors import (
    ProviderError,
    ProviderUnavailable,
    SessionNotResumable,
    SubmissionRejected,
    TimedOut,
)
from src.assessment.models import ProviderTest, QuestionSet
from src.assessment.schemas import AssessmentSchema


class TestProviderClient:
    """HTTP client for one assessment type's provider endpoints."""

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        api_url: str,
        schema: AssessmentSchema,
        token: str | None = None,
        timeout_seconds: float = 10.0,
    ):
        """
        Initialize the provider client.

        Args:
            api_url: Base URL of the provider API (e.g. https://host/api/v1)
            schema: Assessment schema that selects the endpoints
            token: Bearer token of the authenticated user
            timeout_seconds: Per-request timeout, surfaced as TimedOut
        """
        self.api_url = api_url.rstrip("/")
        self.schema = schema
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.client = httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
        )

    async def __aenter__(self) -> "TestProviderClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def get_active_question_set(self) -> QuestionSet:
        data = await self._send("GET", self.schema.active_question_set_path)
        question_set = QuestionSet.from_dict(data)
        logger.info(
            f"Active {self.schema.key} question set: {question_set.name} "
            f"({len(question_set.questions)} questions)"
        )
        return question_set

    async def create_test(self, question_set_id: str, order_id: str | None = None) -> ProviderTest:
        payload = self.schema.create_payload(question_set_id, order_id)
        data = await self._send("POST", self.schema.base_path, json=payload)
        test = ProviderTest.from_dict(data)
        logger.info(f"Created {self.schema.key} test {test.id} (limit {test.time_limit}s)")
        return test

    async def get_test(self, session_id: str) -> ProviderTest:
        data = await self._send(
            "GET",
            self.schema.test_path(session_id),
            not_found=SessionNotResumable,
        )
        return ProviderTest.from_dict(data)

    async def submit_answers(self, session_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        logger.info(
            f"Submitting {len(payload.get('answers', []))} {self.schema.key} answers "
            f"for test {session_id}"
        )
        data = await self._send(
            "POST",
            self.schema.submit_path(session_id),
            json=payload,
            client_error=SubmissionRejected,
        )
        return data if isinstance(data, dict) else {"data": data}

    # =========================================================================
    # Transport
    # =========================================================================

    async def _send(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        not_found: type[ProviderError] = ProviderError,
        client_error: type[ProviderError] = ProviderError,
    ) -> Any:
        url = f"{self.api_url}{path}"
        try:
            if method == "GET":
                response = await self.client.get(url)
            else:
                response = await self.client.post(url, json=json)
            response.raise_for_status()

        except httpx.TimeoutException as e:
            logger.warning(f"Provider timeout on {method} {path}")
            raise TimedOut(f"Request to {path} timed out") from e

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            message = _error_message(e.response) or f"Provider returned {status}"
            if status >= 500:
                logger.warning(f"Provider server error {status} on {method} {path}")
                raise ProviderUnavailable(message, status_code=status) from e
            logger.error(f"Provider client error {status} on {method} {path}: {message}")
            if status == 404:
                raise not_found(message, status_code=status) from e
            raise client_error(message, status_code=status) from e

        except httpx.RequestError as e:
            logger.warning(f"Provider request error on {method} {path}: {e}")
            raise ProviderUnavailable(f"Could not reach provider: {e}") from e

        return _unwrap(response)


def _error_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    if body.get("message"):
        return str(body["message"])
    error = body.get("error")
    return error if isinstance(error, str) else None


def _unwrap(response: httpx.Response) -> Any:
    """Strip the ``{"data": ..., "status": ..., "error": ...}`` envelope."""
    try:
        body = response.json()
    except ValueError as e:
        raise ProviderError("Provider returned a non-JSON response") from e

    if isinstance(body, dict) and "data" in body:
        if body.get("error") is True:
            raise ProviderError(body.get("message") or "Provider reported an error")
        return body["data"]
    return body
