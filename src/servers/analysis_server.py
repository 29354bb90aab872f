# src/servers/analysis_server.py

from typing import Any, Dict

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

from src.agents.config import AgentSettings
from src.agents.errors import ConfigurationError, OrchestrationError, PortfolioParseError
from src.agents.orchestrator import PortfolioOrchestrator
from src.portfolio import collector
from src.portfolio.exporter import EXPORT_FILENAME, EXPORT_MEDIA_TYPE, export_analysis
from src.portfolio.models import PortfolioRequest
from src.utils.logging import setup_global_logging
from src.utils.tracing import setup_tracing, setup_logger_with_tracing

# Setup tracing and logging
setup_tracing("analysis-server", enable_console_export=False)
LOGGER = setup_logger_with_tracing(__name__, service_name="analysis-server")


app = FastAPI(title="Portfolio Analysis Server", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class PortfolioText(BaseModel):
    text: str


def get_settings() -> AgentSettings:
    return AgentSettings.from_env()


@app.get("/")
def root():
    """Health check endpoint."""
    return {
        "service": "Portfolio Analysis Server",
        "status": "running",
        "endpoints": {
            "parse_portfolio": "/portfolio/parse",
            "analyze": "/analyze",
            "export": "/export"
        }
    }


@app.post("/portfolio/parse")
def parse_portfolio(body: PortfolioText):
    """
    Normalize pasted portfolio text (JSON, possibly wrapped in prose).

    Example:
        POST /portfolio/parse {"text": "```json {\"portfolio_id\": \"P1\", \"client_id\": \"C1\"} ```"}
    """
    try:
        request = collector.from_text(body.text)
    except PortfolioParseError as e:
        LOGGER.warning(f"Rejected portfolio text: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    return request.to_payload()


@app.post("/analyze")
async def analyze(request: PortfolioRequest, settings: AgentSettings = Depends(get_settings)):
    """
    Run the three-agent analysis and return the result in export shape.

    Returns 503 when no API key is configured and 502 when a stage fails with
    placeholder fallback disabled.
    """
    try:
        orchestrator = PortfolioOrchestrator(settings)
    except ConfigurationError as e:
        LOGGER.error(f"Analysis unavailable: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    try:
        result = await orchestrator.analyze(request)
    except OrchestrationError as e:
        LOGGER.error(f"Analysis failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    finally:
        await orchestrator.aclose()

    return result.to_export_dict()


@app.post("/export")
def export(analysis: Dict[str, Any]):
    """Return the posted analysis as a downloadable, 2-space indented JSON file."""
    return Response(
        content=export_analysis(analysis),
        media_type=EXPORT_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"}
    )


if __name__ == "__main__":
    import uvicorn

    setup_global_logging()
    LOGGER.info("Starting Portfolio Analysis Server on http://localhost:8020")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8020,
        log_level="info"
    )
