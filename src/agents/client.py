# src/agents/client.py

import asyncio
from typing import Any, Dict, Optional

import httpx
from langsmith import uuid7

from src.agents.config import AgentSettings
from src.agents.errors import (
    AgentCallError,
    AgentConnectionError,
    AgentHTTPError,
    AgentResponseParseError,
    AgentTimeoutError,
)
from src.utils import setup_logger_with_tracing, setup_tracing, get_tracer

setup_tracing("agent-client", enable_console_export=False)
LOGGER = setup_logger_with_tracing(__name__, service_name="agent-client")
TRACER = get_tracer(__name__)

MAX_ERROR_BODY = 500


def generate_random_id() -> str:
    """Short random token used for the per-call user and session ids."""
    return uuid7().hex[-13:]


def build_envelope(agent_id: str, message: str) -> Dict[str, str]:
    """The JSON body the agent inference endpoint expects."""
    return {
        "user_id": f"user-{generate_random_id()}@portfolio.ai",
        "agent_id": agent_id,
        "session_id": f"session-{generate_random_id()}",
        "message": message,
    }


class AgentClient:
    """
    Calls remote agents over HTTP, one POST per call.

    Timeouts, connection failures, HTTP 429 and 5xx are retried with
    exponential backoff; every other failure is raised on the first attempt.
    """

    def __init__(self, settings: AgentSettings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.api_key = settings.require_api_key()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=settings.timeout_seconds)

    async def __aenter__(self) -> "AgentClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def backoff_delay(self, attempt: int) -> float:
        return min(self.settings.retry_base_delay * (2 ** attempt), self.settings.retry_max_delay)

    async def call(self, agent_id: str, message: str, *, timeout: Optional[float] = None) -> Any:
        """
        Send ``message`` to ``agent_id`` and return the decoded JSON body.

        Args:
            agent_id: Remote agent identifier
            message: Natural-language prompt
            timeout: Per-attempt timeout in seconds (defaults to settings.timeout_seconds)

        Returns:
            Whatever JSON the agent answered with; no schema is enforced

        Raises:
            AgentCallError: after the last attempt, or immediately if not retryable
        """
        max_retries = self.settings.max_retries

        for attempt in range(max_retries):
            try:
                return await self._post(agent_id, message, timeout, attempt)
            except AgentCallError as e:
                if not e.retryable:
                    LOGGER.error(f"Agent {agent_id} failed (not retryable): {e}")
                    raise
                if attempt >= max_retries - 1:
                    LOGGER.error(f"All {max_retries} attempts for agent {agent_id} failed: {e}")
                    raise
                delay = self.backoff_delay(attempt)
                LOGGER.warning(f"Attempt {attempt + 1} for agent {agent_id} failed: {e}. Retrying in {delay}s...")
                await asyncio.sleep(delay)

    async def _post(self, agent_id: str, message: str, timeout: Optional[float], attempt: int) -> Any:
        with TRACER.start_as_current_span("agent_call") as span:
            span.set_attribute("agent_id", agent_id)
            span.set_attribute("attempt", attempt + 1)
            span.set_attribute("message", message[:50])

            LOGGER.debug(f"POST {self.settings.api_url} agent={agent_id} attempt={attempt + 1}")

            try:
                response = await self._client.post(
                    self.settings.api_url,
                    json=build_envelope(agent_id, message),
                    headers={
                        "Content-Type": "application/json",
                        "x-api-key": self.api_key,
                    },
                    timeout=timeout if timeout is not None else self.settings.timeout_seconds,
                )
            except httpx.TimeoutException as e:
                raise AgentTimeoutError(f"Agent {agent_id} timed out", agent_id=agent_id) from e
            except httpx.TransportError as e:
                raise AgentConnectionError(f"Could not reach agent {agent_id}: {e}", agent_id=agent_id) from e

            span.set_attribute("status_code", response.status_code)

            if not response.is_success:
                raise AgentHTTPError(response.status_code, response.text[:MAX_ERROR_BODY], agent_id=agent_id)

            try:
                payload = response.json()
            except ValueError as e:
                raise AgentResponseParseError(
                    f"Agent {agent_id} returned a non-JSON body",
                    body=response.text[:MAX_ERROR_BODY],
                    agent_id=agent_id,
                ) from e

            LOGGER.info(f"✅ Agent {agent_id} answered ({len(response.content)} bytes)")
            return payload
