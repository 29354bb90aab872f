# src/agents/errors.py

from typing import List, Optional


class PortfolioManagerError(Exception):
    """Base class for every error raised by the portfolio manager."""


class ConfigurationError(PortfolioManagerError):
    """Required settings (e.g. the agent API key) are missing or invalid."""


class PortfolioParseError(PortfolioManagerError, ValueError):
    """User-supplied portfolio input could not be turned into a PortfolioRequest."""


# --- Agent call failures ---

class AgentCallError(PortfolioManagerError):
    """A single call to a remote agent failed."""

    retryable = False

    def __init__(self, message: str, agent_id: Optional[str] = None):
        super().__init__(message)
        self.agent_id = agent_id


class AgentHTTPError(AgentCallError):
    """The agent endpoint answered with a non-success status."""

    def __init__(self, status_code: int, body: str = "", agent_id: Optional[str] = None):
        super().__init__(f"Agent API error: HTTP {status_code}", agent_id=agent_id)
        self.status_code = status_code
        self.body = body

    @property
    def retryable(self) -> bool:
        # Rate limiting and server-side failures are worth another attempt
        return self.status_code == 429 or self.status_code >= 500


class AgentTimeoutError(AgentCallError):
    retryable = True


class AgentConnectionError(AgentCallError):
    retryable = True


class AgentResponseParseError(AgentCallError):
    """The agent answered 2xx but the body was not JSON."""

    def __init__(self, message: str, body: str = "", agent_id: Optional[str] = None):
        super().__init__(message, agent_id=agent_id)
        self.body = body


class AgentResponseValidationError(PortfolioManagerError):
    """The manager agent's payload does not carry the fields the dashboard needs."""

    def __init__(self, missing_fields: List[str]):
        super().__init__(f"Agent response is missing fields: {', '.join(missing_fields)}")
        self.missing_fields = list(missing_fields)


# --- Orchestration ---

class OrchestrationError(PortfolioManagerError):
    """A pipeline stage failed and fallback to placeholder data is disabled."""

    def __init__(self, stage: str, cause: Exception):
        super().__init__(f"Analysis failed during the {stage} stage: {cause}")
        self.stage = stage
        self.cause = cause


class OrchestrationCancelled(PortfolioManagerError):
    """The analysis was cancelled before all stages completed."""

    def __init__(self, stage: str):
        super().__init__(f"Analysis cancelled before the {stage} stage completed")
        self.stage = stage
