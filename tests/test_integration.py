# tests/test_integration.py

import asyncio
import json
from pathlib import Path

import httpx
import pytest
from unittest.mock import AsyncMock, Mock, patch
from fastapi.testclient import TestClient
from streamlit.testing.v1 import AppTest

from src.agents.client import AgentClient
from src.agents.config import AgentSettings
from src.agents.errors import OrchestrationError
from src.agents.orchestrator import CancellationToken, PortfolioOrchestrator
from src.portfolio import collector
from src.portfolio.defaults import MOCK_ANALYSIS
from src.portfolio.exporter import export_analysis
from src.portfolio.models import AnalysisResult
from src.servers import analysis_server
from src.ui.state import AnalysisSession

P1_JSON = '{"portfolio_id":"P1","client_id":"C1","holdings":[{"symbol":"AAPL","quantity":10,"price":100}]}'


# --- Integration Test Fixtures ---

@pytest.fixture
def settings():
    return AgentSettings(api_key="test-key", retry_base_delay=0, max_retries=2)


def failing_orchestrator(settings):
    """Real orchestrator whose agents are all down"""
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="unavailable"))
    return PortfolioOrchestrator(settings, AgentClient(settings, httpx.AsyncClient(transport=transport)))


def result_with_summary(summary: str) -> AnalysisResult:
    return AnalysisResult.from_agent_payload({"summary": summary})


def delayed_orchestrator(summary: str, delay: float):
    orchestrator = Mock()

    async def analyze(request, cancel=None):
        await asyncio.sleep(delay)
        return result_with_summary(summary)

    orchestrator.analyze = AsyncMock(side_effect=analyze)
    orchestrator.aclose = AsyncMock()
    return orchestrator


# --- Full Workflow Integration Tests ---

class TestAnalysisWorkflow:
    """Collector -> orchestrator -> displayed result -> export"""

    @pytest.mark.asyncio
    async def test_agent_failure_yields_placeholder(self, settings):
        """P1 with every agent failing displays exactly the mock analysis"""
        session = AnalysisSession(lambda: failing_orchestrator(settings))
        request = collector.from_text(P1_JSON)

        result = await session.submit(request)

        assert session.analysis is result
        assert session.error is None
        assert not session.loading
        assert result.to_export_dict() == MOCK_ANALYSIS
        assert export_analysis(session.analysis) == json.dumps(MOCK_ANALYSIS, indent=2, ensure_ascii=False)

    @pytest.mark.asyncio
    async def test_agent_failure_without_fallback_shows_banner(self):
        """With fallback off the error is surfaced and the mock analysis still displayed"""
        settings = AgentSettings(api_key="k", retry_base_delay=0, max_retries=1, fallback_on_error=False)
        session = AnalysisSession(lambda: failing_orchestrator(settings))

        await session.submit(collector.from_text(P1_JSON))

        assert "internal stage" in session.error
        assert session.analysis.to_export_dict() == MOCK_ANALYSIS

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        """Without a key the error banner is set and the previous analysis stays"""
        session = AnalysisSession(lambda: PortfolioOrchestrator(AgentSettings()))
        previous = result_with_summary("previous")
        session.analysis = previous

        result = await session.submit(collector.from_text(P1_JSON))

        assert result is previous
        assert session.analysis is previous
        assert "PORTFOLIO_AGENT_API_KEY" in session.error

    @pytest.mark.asyncio
    async def test_orchestrator_closed_after_submit(self):
        orchestrator = delayed_orchestrator("done", 0)
        session = AnalysisSession(lambda: orchestrator)

        await session.submit(collector.sample_portfolio())

        orchestrator.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cancelled_submit_keeps_previous_analysis(self, settings):
        session = AnalysisSession(lambda: failing_orchestrator(settings))
        previous = result_with_summary("previous")
        session.analysis = previous
        cancel = CancellationToken()
        cancel.cancel()

        result = await session.submit(collector.from_text(P1_JSON), cancel)

        assert result is previous
        assert "cancelled" in session.error
        assert not session.loading

    @pytest.mark.asyncio
    async def test_overlapping_submissions_last_resolved_wins(self):
        """
        Known race: submissions are not serialized, so the one that resolves
        last is displayed even if it was started first.
        """
        orchestrators = iter([delayed_orchestrator("slow first", 0.05), delayed_orchestrator("fast second", 0)])
        session = AnalysisSession(lambda: next(orchestrators))
        request = collector.from_text(P1_JSON)

        first = asyncio.create_task(session.submit(request))
        await asyncio.sleep(0)
        assert session.loading
        second = asyncio.create_task(session.submit(request))

        await second
        assert session.analysis.summary == "fast second"
        assert session.loading

        await first
        assert session.analysis.summary == "slow first"
        assert not session.loading

    def test_invalid_upload_keeps_previous_analysis(self):
        """A bad file shows an error and leaves the displayed analysis untouched"""
        session = AnalysisSession(Mock())
        previous = result_with_summary("previous")
        session.analysis = previous

        request = session.load_portfolio_file(b'{"portfolio_id": "P1", "client_id": ')

        assert request is None
        assert "Invalid JSON" in session.error
        assert session.analysis is previous

    def test_valid_paste_routes_request(self):
        session = AnalysisSession(Mock())

        request = session.load_portfolio_text(f"my portfolio: {P1_JSON}")

        assert request.portfolio_id == "P1"
        assert session.error is None


# --- HTTP Service Tests ---

class TestAnalysisServer:
    """Test the FastAPI endpoints"""

    @pytest.fixture
    def client(self, settings):
        analysis_server.app.dependency_overrides[analysis_server.get_settings] = lambda: settings
        yield TestClient(analysis_server.app)
        analysis_server.app.dependency_overrides.clear()

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_parse_portfolio(self, client):
        response = client.post("/portfolio/parse", json={"text": f"```json\n{P1_JSON}\n```"})

        assert response.status_code == 200
        assert response.json() == json.loads(P1_JSON)

    def test_parse_portfolio_rejects_bad_input(self, client):
        response = client.post("/portfolio/parse", json={"text": '{"portfolio_id": "P1"}'})

        assert response.status_code == 422
        assert "client_id" in response.json()["detail"]

    def test_analyze(self, client):
        """The result comes back in export shape"""
        with patch.object(analysis_server, "PortfolioOrchestrator") as MockOrchestrator:
            instance = MockOrchestrator.return_value
            instance.analyze = AsyncMock(return_value=AnalysisResult.placeholder())
            instance.aclose = AsyncMock()

            response = client.post("/analyze", json=json.loads(P1_JSON))

        assert response.status_code == 200
        assert response.json() == MOCK_ANALYSIS
        instance.aclose.assert_awaited_once()

    def test_analyze_stage_failure(self, client):
        with patch.object(analysis_server, "PortfolioOrchestrator") as MockOrchestrator:
            instance = MockOrchestrator.return_value
            instance.analyze = AsyncMock(side_effect=OrchestrationError("manager", RuntimeError("boom")))
            instance.aclose = AsyncMock()

            response = client.post("/analyze", json=json.loads(P1_JSON))

        assert response.status_code == 502
        assert "manager" in response.json()["detail"]

    def test_analyze_without_api_key(self):
        analysis_server.app.dependency_overrides[analysis_server.get_settings] = lambda: AgentSettings()
        try:
            response = TestClient(analysis_server.app).post("/analyze", json=json.loads(P1_JSON))
        finally:
            analysis_server.app.dependency_overrides.clear()

        assert response.status_code == 503

    def test_analyze_requires_identifiers(self, client):
        response = client.post("/analyze", json={"portfolio_id": "P1"})
        assert response.status_code == 422

    def test_export(self, client):
        response = client.post("/export", json=MOCK_ANALYSIS)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert "portfolio-analysis.json" in response.headers["content-disposition"]
        assert response.text == json.dumps(MOCK_ANALYSIS, indent=2)


# --- Dashboard Tests ---

class TestDashboard:
    """Drive the Streamlit script headlessly"""

    @pytest.fixture
    def app(self):
        app_path = Path(__file__).resolve().parent.parent / "src" / "ui" / "app.py"
        at = AppTest.from_file(str(app_path), default_timeout=30)
        at.run()
        return at

    def test_invalid_paste_shows_error_beside_input(self, app):
        app.text_area(key="pasted_json").input('{"portfolio_id": "P1", "client_id": ').run()
        app.button(key="analyze_pasted").click().run()

        assert any("Invalid JSON" in e.value for e in app.sidebar.error)
        assert app.session_state.analysis_session.analysis is None
