# src/agents/config.py

import os
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from src.agents.errors import ConfigurationError


# --- DEFAULTS ---
DEFAULT_API_URL = "https://agent-prod.studio.lyzr.ai/v3/inference/chat/"

DEFAULT_AGENT_IDS = {
    "internal": "68f242bf811f17edf77d4538",
    "external": "68f242d38fad1867ae5cf748",
    "manager": "68f242e68fad1867ae5cf74d",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {raw!r}")


def _env_number(env: Mapping[str, str], key: str, default, cast):
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from None


class AgentSettings(BaseModel):
    """
    Connection and pipeline settings for the three remote agents.

    There is no default API key: it must come from the
    environment (PORTFOLIO_AGENT_API_KEY) or be passed explicitly.
    """
    api_url: str = DEFAULT_API_URL
    api_key: Optional[str] = None
    internal_agent_id: str = DEFAULT_AGENT_IDS["internal"]
    external_agent_id: str = DEFAULT_AGENT_IDS["external"]
    manager_agent_id: str = DEFAULT_AGENT_IDS["manager"]
    timeout_seconds: float = Field(default=60.0, gt=0)
    max_retries: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=30.0, ge=0)
    fallback_on_error: bool = True
    compose_market_prompt: bool = False
    strict_response: bool = False

    @field_validator("api_key")
    @classmethod
    def blank_key_is_missing(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def agent_ids(self) -> Dict[str, str]:
        return {
            "internal": self.internal_agent_id,
            "external": self.external_agent_id,
            "manager": self.manager_agent_id,
        }

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError(
                "No agent API key configured. Set PORTFOLIO_AGENT_API_KEY."
            )
        return self.api_key

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AgentSettings":
        """Build settings from environment variables (os.environ by default)."""
        env = os.environ if env is None else env
        return cls(
            api_url=env.get("PORTFOLIO_AGENT_API_URL", DEFAULT_API_URL),
            api_key=env.get("PORTFOLIO_AGENT_API_KEY"),
            internal_agent_id=env.get("PORTFOLIO_INTERNAL_AGENT_ID", DEFAULT_AGENT_IDS["internal"]),
            external_agent_id=env.get("PORTFOLIO_EXTERNAL_AGENT_ID", DEFAULT_AGENT_IDS["external"]),
            manager_agent_id=env.get("PORTFOLIO_MANAGER_AGENT_ID", DEFAULT_AGENT_IDS["manager"]),
            timeout_seconds=_env_number(env, "PORTFOLIO_AGENT_TIMEOUT", 60.0, float),
            max_retries=_env_number(env, "PORTFOLIO_AGENT_MAX_RETRIES", 3, int),
            retry_base_delay=_env_number(env, "PORTFOLIO_AGENT_RETRY_DELAY", 1.0, float),
            fallback_on_error=_env_bool(env, "PORTFOLIO_FALLBACK_ON_ERROR", True),
            compose_market_prompt=_env_bool(env, "PORTFOLIO_COMPOSE_MARKET_PROMPT", False),
            strict_response=_env_bool(env, "PORTFOLIO_STRICT_RESPONSE", False),
        )
