# src/agents/orchestrator.py

import asyncio
from typing import Any, Optional

from src.agents.client import AgentClient
from src.agents.config import AgentSettings
from src.agents.errors import (
    AgentCallError,
    AgentResponseValidationError,
    OrchestrationCancelled,
    OrchestrationError,
)
from src.agents.response import AgentReply, PipelineRun, Stage
from src.portfolio.defaults import DEFAULT_SYMBOLS
from src.portfolio.models import AnalysisResult, PortfolioRequest
from src.utils import setup_logger_with_tracing, setup_tracing, get_tracer

setup_tracing("orchestrator", enable_console_export=False)
LOGGER = setup_logger_with_tracing(__name__, service_name="orchestrator")
TRACER = get_tracer(__name__)


# --- PROMPTS ---

def symbol_list(request: PortfolioRequest) -> str:
    return ",".join(request.symbols) or DEFAULT_SYMBOLS


def internal_prompt(request: PortfolioRequest) -> str:
    return (
        f"Analyze portfolio {request.portfolio_id} for client {request.client_id}. "
        f"Return client profile, holdings, and basic allocations."
    )


def market_prompt(request: PortfolioRequest, internal: Optional[AgentReply] = None) -> str:
    prompt = f"Get current market data and recent news for these holdings: {symbol_list(request)}"
    if internal is not None:
        prompt += f"\n\nPortfolio context from internal data:\n{internal.text}"
    return prompt


def manager_prompt(request: PortfolioRequest, internal: AgentReply, external: AgentReply) -> str:
    return (
        f"Analyze portfolio {request.portfolio_id} with holdings {symbol_list(request)}. "
        f"Combine market data and provide risk assessment, performance metrics, allocation summary."
        f"\n\nInternal data:\n{internal.text}"
        f"\n\nMarket data:\n{external.text}"
    )


class CancellationToken:
    """Set once to abandon an in-flight analysis at the next stage boundary or mid-call."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


class PortfolioOrchestrator:
    """
    Runs the three agents in a fixed order: internal data, external market,
    then the manager which receives both earlier replies as text.
    """

    def __init__(self, settings: Optional[AgentSettings] = None, client: Optional[AgentClient] = None):
        self.settings = settings or AgentSettings.from_env()
        self.client = client or AgentClient(self.settings)

    @classmethod
    def from_env(cls) -> "PortfolioOrchestrator":
        return cls(AgentSettings.from_env())

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _race_cancel(self, coro, cancel: Optional[CancellationToken], stage: Stage) -> Any:
        if cancel is None:
            return await coro

        call_task = asyncio.ensure_future(coro)
        cancel_task = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait({call_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
            if call_task in done:
                return call_task.result()
            call_task.cancel()
            await asyncio.gather(call_task, return_exceptions=True)
            raise OrchestrationCancelled(stage)
        finally:
            for task in (call_task, cancel_task):
                if not task.done():
                    task.cancel()

    async def _run_stage(self, stage: Stage, prompt: str, cancel: Optional[CancellationToken]) -> AgentReply:
        if cancel is not None and cancel.cancelled:
            raise OrchestrationCancelled(stage)

        agent_id = self.settings.agent_ids[stage]
        with TRACER.start_as_current_span(f"stage:{stage}") as span:
            span.set_attribute("stage", stage)
            span.set_attribute("agent_id", agent_id)
            LOGGER.info(f"🔧 Stage {stage}: calling agent {agent_id}")
            LOGGER.debug(f"💬 Prompt: {prompt[:100]}...")

            try:
                payload = await self._race_cancel(
                    self.client.call(agent_id, prompt, timeout=self.settings.timeout_seconds),
                    cancel,
                    stage,
                )
            except AgentCallError as e:
                span.set_attribute("error", str(e))
                raise OrchestrationError(stage, e) from e

            LOGGER.debug(f"✅ Stage {stage} complete")
            return AgentReply(stage=stage, agent_id=agent_id, prompt=prompt, payload=payload)

    async def run(self, request: PortfolioRequest, cancel: Optional[CancellationToken] = None) -> PipelineRun:
        """
        Execute the pipeline and return every stage reply plus the result.

        Raises:
            OrchestrationCancelled: if ``cancel`` fires, regardless of the fallback policy
            OrchestrationError: on any stage failure when fallback_on_error is off
        """
        run = PipelineRun()

        with TRACER.start_as_current_span("orchestrate_analysis") as span:
            span.set_attribute("portfolio_id", request.portfolio_id)
            span.set_attribute("holdings", len(request.holdings))
            LOGGER.info(f"Analyzing portfolio {request.portfolio_id} for client {request.client_id}")

            try:
                internal = await self._run_stage("internal", internal_prompt(request), cancel)
                run.replies.append(internal)

                context = internal if self.settings.compose_market_prompt else None
                external = await self._run_stage("external", market_prompt(request, context), cancel)
                run.replies.append(external)

                manager = await self._run_stage("manager", manager_prompt(request, internal, external), cancel)
                run.replies.append(manager)

                try:
                    run.result = AnalysisResult.from_agent_payload(
                        manager.payload, strict=self.settings.strict_response
                    )
                except AgentResponseValidationError as e:
                    raise OrchestrationError("manager", e) from e

            except OrchestrationError as e:
                run.failed_stage = e.stage
                run.error = str(e)
                span.set_attribute("failed_stage", e.stage)
                if not self.settings.fallback_on_error:
                    LOGGER.error(f"❌ {e}")
                    raise
                LOGGER.warning(f"⚠️  {e}. Showing placeholder analysis.")
                run.result = AnalysisResult.placeholder()
                return run

            if run.result.fallback_fields:
                LOGGER.warning(f"Manager reply missing {run.result.fallback_fields}, defaults substituted")
            LOGGER.info(f"🎯 Analysis of {request.portfolio_id} complete")
            return run

    async def analyze(self, request: PortfolioRequest, cancel: Optional[CancellationToken] = None) -> AnalysisResult:
        run = await self.run(request, cancel)
        return run.result
