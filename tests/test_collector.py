# tests/test_collector.py

import io
import json

import pytest

from src.agents.errors import PortfolioParseError
from src.portfolio import collector
from src.portfolio.defaults import SAMPLE_PORTFOLIO
from src.utils.json_parser import JSONExtractionError, parse_llm_json, try_parse_llm_json


# --- Fixtures ---

@pytest.fixture
def portfolio_record():
    return {
        "portfolio_id": "P1",
        "client_id": "C1",
        "holdings": [
            {"symbol": "AAPL", "quantity": 10, "price": 100},
            {"symbol": "MSFT", "quantity": 5, "price": 338.11, "allocation_percent": 40, "sector": "Tech"},
        ],
    }


# --- JSON Extraction Tests ---

class TestJsonParser:
    """Test permissive JSON extraction"""

    def test_plain_json(self):
        assert parse_llm_json('{"a": 1}') == {"a": 1}

    def test_code_fence(self):
        """JSON inside a markdown fence surrounded by prose"""
        text = 'Sure! Here is the portfolio:\n```json\n{"portfolio_id": "P1"}\n```\nLet me know.'
        assert parse_llm_json(text) == {"portfolio_id": "P1"}

    def test_embedded_object(self):
        """First balanced object wins, braces inside strings are ignored"""
        text = 'Result -> {"note": "use {curly} braces", "n": [1, 2]} and {"second": true}'
        assert parse_llm_json(text) == {"note": "use {curly} braces", "n": [1, 2]}

    def test_trailing_comma(self):
        assert parse_llm_json('{"a": [1, 2,], "b": 3,}') == {"a": [1, 2], "b": 3}

    def test_no_json(self):
        with pytest.raises(JSONExtractionError):
            parse_llm_json("no structured data here")
        with pytest.raises(JSONExtractionError):
            parse_llm_json("   ")
        assert try_parse_llm_json("nothing {here") is None
        assert try_parse_llm_json(None) is None


# --- Collector Tests ---

class TestCollector:
    """Test the three portfolio input modes"""

    def test_from_text_preserves_record(self, portfolio_record):
        """Identifiers and holdings survive verbatim, extra keys included"""
        request = collector.from_text(json.dumps(portfolio_record))

        assert request.portfolio_id == "P1"
        assert request.client_id == "C1"
        assert request.to_payload() == portfolio_record
        assert request.symbols == ["AAPL", "MSFT"]

    def test_from_text_noisy(self, portfolio_record):
        """Pasted text with prose around the JSON is accepted"""
        text = f"Here's my portfolio, thanks!\n```\n{json.dumps(portfolio_record, indent=2)}\n```"
        assert collector.from_text(text).to_payload() == portfolio_record

    def test_from_file_bytes_and_streams(self, portfolio_record):
        """Uploads may be bytes (with BOM), text, or file-like objects"""
        raw = json.dumps(portfolio_record).encode("utf-8")

        assert collector.from_file(b"\xef\xbb\xbf" + raw).to_payload() == portfolio_record
        assert collector.from_file(raw.decode()).to_payload() == portfolio_record
        assert collector.from_file(io.BytesIO(raw)).to_payload() == portfolio_record

    def test_from_file_invalid_json(self):
        with pytest.raises(PortfolioParseError, match="Invalid JSON"):
            collector.from_file(b"{not json")

    def test_from_file_not_utf8(self):
        with pytest.raises(PortfolioParseError):
            collector.from_file(b"\xff\xfe\x00bad")

    @pytest.mark.parametrize("record, missing", [
        ({"client_id": "C1"}, "portfolio_id"),
        ({"portfolio_id": "P1", "client_id": "   "}, "client_id"),
        ({"portfolio_id": "", "client_id": ""}, "portfolio_id, client_id"),
    ])
    def test_missing_identifiers(self, record, missing):
        """Both identifiers are required and must be non-blank"""
        with pytest.raises(PortfolioParseError, match=missing):
            collector.from_text(json.dumps(record))

    def test_holdings_must_be_list_of_objects(self):
        with pytest.raises(PortfolioParseError, match="holdings must be a list"):
            collector.from_text('{"portfolio_id": "P1", "client_id": "C1", "holdings": "AAPL"}')
        with pytest.raises(PortfolioParseError, match="Invalid portfolio"):
            collector.from_text('{"portfolio_id": "P1", "client_id": "C1", "holdings": ["AAPL"]}')

    def test_top_level_must_be_object(self):
        with pytest.raises(PortfolioParseError):
            collector.from_text("[1, 2, 3]")

    def test_from_form_default_holding(self):
        """The manual form submits a single default AAPL holding"""
        request = collector.from_form("P12345", "C98765")

        assert request.to_payload() == {
            "portfolio_id": "P12345",
            "client_id": "C98765",
            "holdings": [{"symbol": "AAPL", "quantity": 100, "price": 150}],
        }

    def test_from_form_with_holdings(self):
        request = collector.from_form("P1", "C1", [{"symbol": "TSLA", "quantity": 1, "price": 200}])
        assert request.symbols == ["TSLA"]

    def test_sample_portfolio(self):
        request = collector.sample_portfolio()

        assert request.portfolio_id == "PORT-2024-001"
        assert request.client_id == "CLIENT-789"
        assert request.to_payload() == SAMPLE_PORTFOLIO

    def test_request_is_frozen(self, portfolio_record):
        """A submitted request cannot be modified"""
        request = collector.from_text(json.dumps(portfolio_record))

        with pytest.raises(Exception):
            request.portfolio_id = "other"

    @pytest.mark.parametrize("holding", [
        {"symbol": "AAPL", "quantity": "10", "price": "185.40"},
        {"symbol": "AAPL", "quantity": "ten", "price": None},
        {"symbol": "AAPL", "quantity": 1.50, "price": [185, "USD"], "allocation_percent": "n/a"},
    ])
    def test_holding_values_kept_as_given(self, holding):
        """Quantities and prices are passed through untouched, whatever their type"""
        record = {"portfolio_id": "P1", "client_id": "C1", "holdings": [holding], "total_value": "1,000"}
        payload = collector.from_text(json.dumps(record)).to_payload()

        assert payload == record
        assert json.dumps(payload) == json.dumps(record)
