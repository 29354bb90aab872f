# src/ui/state.py

from typing import Callable, Optional

from src.agents.errors import (
    ConfigurationError,
    OrchestrationCancelled,
    OrchestrationError,
    PortfolioParseError,
)
from src.agents.orchestrator import CancellationToken, PortfolioOrchestrator
from src.portfolio import collector
from src.portfolio.models import AnalysisResult, PortfolioRequest
from src.utils import setup_logger_with_tracing, setup_tracing, traced

setup_tracing("portfolio-ui", enable_console_export=False)
LOGGER = setup_logger_with_tracing(__name__, service_name="portfolio-ui")


class AnalysisSession:
    """
    View state for one dashboard session: the displayed analysis, the error
    banner and the loading flag.

    Submissions are not serialized. If a second analysis starts before the
    first finishes, both run and whichever resolves last is displayed. The
    dashboard avoids this by disabling the submit button while ``loading``.

    A fresh orchestrator (and HTTP client) is built per submission since
    Streamlit may drive each rerun on a different event loop.
    """

    def __init__(self, orchestrator_factory: Callable[[], PortfolioOrchestrator]):
        self.orchestrator_factory = orchestrator_factory
        self.analysis: Optional[AnalysisResult] = None
        self.error: Optional[str] = None
        self.request: Optional[PortfolioRequest] = None
        self._in_flight = 0

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @traced("dashboard_submit")
    async def submit(self, request: PortfolioRequest, cancel: Optional[CancellationToken] = None) -> Optional[AnalysisResult]:
        """
        Run one analysis and display its result.

        Returns the displayed result, or the unchanged previous one when the
        orchestrator could not be built (missing API key).
        """
        self.error = None
        self.request = request

        try:
            orchestrator = self.orchestrator_factory()
        except ConfigurationError as e:
            LOGGER.error(f"Cannot start analysis: {e}")
            self.error = str(e)
            return self.analysis

        self._in_flight += 1
        try:
            try:
                result = await orchestrator.analyze(request, cancel)
            finally:
                await orchestrator.aclose()
        except OrchestrationError as e:
            LOGGER.error(f"Analysis of {request.portfolio_id} failed: {e}")
            self.error = str(e)
            result = AnalysisResult.placeholder()
        except OrchestrationCancelled as e:
            LOGGER.info(f"Analysis of {request.portfolio_id} cancelled: {e}")
            self.error = str(e)
            return self.analysis
        finally:
            self._in_flight -= 1

        self.analysis = result
        return result

    # --- INPUT ROUTING ---
    # Parse failures land in ``error``; the displayed analysis is left alone.

    def load_portfolio_text(self, text: str) -> Optional[PortfolioRequest]:
        try:
            return collector.from_text(text)
        except PortfolioParseError as e:
            self.error = str(e)
            return None

    def load_portfolio_file(self, data) -> Optional[PortfolioRequest]:
        try:
            return collector.from_file(data)
        except PortfolioParseError as e:
            self.error = str(e)
            return None

    def clear(self) -> None:
        self.analysis = None
        self.error = None
        self.request = None
