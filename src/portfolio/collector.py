# src/portfolio/collector.py

import copy
import io
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from src.agents.errors import PortfolioParseError
from src.portfolio.defaults import DEFAULT_FORM_HOLDINGS, SAMPLE_PORTFOLIO
from src.portfolio.models import PortfolioRequest
from src.utils.json_parser import JSONExtractionError, parse_llm_json
from src.utils import setup_logger_with_tracing, setup_tracing

setup_tracing("portfolio-collector", enable_console_export=False)
LOGGER = setup_logger_with_tracing(__name__, service_name="portfolio-collector")

FileInput = Union[bytes, bytearray, str, io.IOBase]


def _describe(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "portfolio"
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)


def from_record(record: Any) -> PortfolioRequest:
    """
    Build a PortfolioRequest from an already-decoded JSON value.

    Only the two identifiers are required. Holdings, when present, must be a
    list of objects with a symbol; everything else is passed through untouched.
    """
    if not isinstance(record, dict):
        raise PortfolioParseError("Portfolio JSON must be an object with portfolio_id and client_id")

    missing = [
        key for key in ("portfolio_id", "client_id")
        if record.get(key) is None or (isinstance(record.get(key), str) and not record[key].strip())
    ]
    if missing:
        raise PortfolioParseError(f"Missing required field(s): {', '.join(missing)}")

    holdings = record.get("holdings")
    if holdings is not None and not isinstance(holdings, list):
        raise PortfolioParseError("holdings must be a list")

    try:
        request = PortfolioRequest.model_validate(record)
    except ValidationError as e:
        raise PortfolioParseError(f"Invalid portfolio: {_describe(e)}") from e

    LOGGER.info(f"Collected portfolio {request.portfolio_id} for client {request.client_id} "
                f"({len(request.holdings)} holdings)")
    return request


def from_form(portfolio_id: str, client_id: str, holdings: Optional[List[Dict[str, Any]]] = None) -> PortfolioRequest:
    """Manual entry. Without holdings the form submits the default AAPL position."""
    record = {
        "portfolio_id": portfolio_id,
        "client_id": client_id,
        "holdings": copy.deepcopy(DEFAULT_FORM_HOLDINGS) if holdings is None else holdings,
    }
    return from_record(record)


def from_text(text: str) -> PortfolioRequest:
    """Pasted JSON, possibly surrounded by prose or wrapped in a code fence."""
    try:
        record = parse_llm_json(text)
    except JSONExtractionError as e:
        LOGGER.warning(f"Could not parse pasted portfolio: {e}")
        raise PortfolioParseError(f"Invalid JSON: {e}") from e
    return from_record(record)


def from_file(data: FileInput) -> PortfolioRequest:
    """
    An uploaded JSON file: raw bytes, text, or any object with ``read()``
    (Streamlit's UploadedFile included).
    """
    if hasattr(data, "read"):
        data = data.read()

    if isinstance(data, (bytes, bytearray)):
        try:
            data = bytes(data).decode("utf-8-sig")
        except UnicodeDecodeError as e:
            LOGGER.warning(f"Uploaded portfolio is not UTF-8: {e}")
            raise PortfolioParseError("Uploaded file is not valid UTF-8 text") from e

    if not isinstance(data, str):
        raise PortfolioParseError(f"Unsupported upload type: {type(data).__name__}")

    return from_text(data)


def sample_portfolio() -> PortfolioRequest:
    return from_record(copy.deepcopy(SAMPLE_PORTFOLIO))
