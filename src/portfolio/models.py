# src/portfolio/models.py

import copy
import math
import re
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.agents.errors import AgentResponseValidationError
from src.portfolio.defaults import MOCK_ANALYSIS, PIPELINE_DEFAULTS
from src.utils.json_parser import js_normalize, try_parse_llm_json

Number = Union[int, float]


# ============================================================================
# PORTFOLIO INPUT
# ============================================================================

class Holding(BaseModel):
    """One position as the user supplied it. Unknown keys are kept as-is."""
    model_config = ConfigDict(extra="allow", frozen=True)

    symbol: str
    # Kept exactly as supplied; prices and quantities are never validated
    quantity: Optional[Any] = None
    price: Optional[Any] = None
    allocation_percent: Optional[Any] = None

    @field_validator("symbol")
    @classmethod
    def symbol_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("symbol must not be empty")
        return value


class PortfolioRequest(BaseModel):
    """A portfolio submitted for analysis. Frozen once built."""
    model_config = ConfigDict(extra="allow", frozen=True)

    portfolio_id: str
    client_id: str
    holdings: List[Holding] = Field(default_factory=list)
    total_value: Optional[Any] = None
    currency: Optional[Any] = None

    @field_validator("portfolio_id", "client_id", mode="before")
    @classmethod
    def identifier_required(cls, value: Any, info) -> str:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"{info.field_name} is required")
        return value

    @property
    def symbols(self) -> List[str]:
        return [holding.symbol for holding in self.holdings]

    def to_payload(self) -> Dict[str, Any]:
        """The request as the user wrote it (no keys added for unset fields)."""
        return self.model_dump(mode="json", exclude_unset=True)


# ============================================================================
# ANALYSIS RESULT
# ============================================================================

def _metric_text(value: Any) -> str:
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float)):
        return f"{js_normalize(value)}"
    return value


class AllocationSlice(BaseModel):
    name: str
    value: Number


class Allocation(BaseModel):
    chart_data: List[AllocationSlice] = Field(default_factory=list)


class RiskMetrics(BaseModel):
    overall_risk: str
    volatility: str
    beta: str
    sharpe_ratio: str

    @field_validator("*", mode="before")
    @classmethod
    def coerce_to_text(cls, value: Any) -> Any:
        return _metric_text(value)


class PerformanceMetrics(BaseModel):
    ytd_return: str
    one_year_return: str
    three_year_return: str
    max_drawdown: str

    @field_validator("*", mode="before")
    @classmethod
    def coerce_to_text(cls, value: Any) -> Any:
        return _metric_text(value)


class AnalysisResult(BaseModel):
    """
    What the dashboard displays and exports.

    ``source`` and ``fallback_fields`` are bookkeeping for the UI and are left
    out of the export.
    """
    summary: str
    allocation: Allocation
    risk_metrics: RiskMetrics
    performance_metrics: PerformanceMetrics
    holdings_analysis: Optional[Any] = None
    market_impact: Optional[Any] = None

    source: Literal["agent", "placeholder"] = Field(default="agent", exclude=True)
    fallback_fields: List[str] = Field(default_factory=list, exclude=True)

    @property
    def is_synthetic(self) -> bool:
        return self.source == "placeholder" or bool(self.fallback_fields)

    def to_export_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", exclude={"holdings_analysis", "market_impact"})
        if self.holdings_analysis is not None:
            data["holdings_analysis"] = self.holdings_analysis
        if self.market_impact is not None:
            data["market_impact"] = self.market_impact
        return data

    @classmethod
    def placeholder(cls) -> "AnalysisResult":
        """The fixed mock analysis shown when the agent pipeline fails."""
        return cls(**copy.deepcopy(MOCK_ANALYSIS), source="placeholder")

    @classmethod
    def from_agent_payload(cls, payload: Any, strict: bool = False) -> "AnalysisResult":
        """
        Map the manager agent's loosely-typed reply onto an AnalysisResult.

        Each field is looked up at several nesting levels (top level, and under
        ``response``/``result``/``data``/``analysis``, decoding JSON strings on
        the way). Anything not found is taken from PIPELINE_DEFAULTS and listed
        in ``fallback_fields``. With ``strict=True`` a missing field raises
        AgentResponseValidationError instead.
        """
        containers, loose_text = _containers(payload)
        fallback: List[str] = []

        summary = _first_text(containers, SUMMARY_KEYS)
        if summary is None:
            summary = loose_text
        if summary is None:
            fallback.append("summary")
            summary = PIPELINE_DEFAULTS["summary"]

        chart_data = _normalize_allocation(_first(containers, ALLOCATION_KEYS))
        if not chart_data:
            fallback.append("allocation")
            chart_data = copy.deepcopy(PIPELINE_DEFAULTS["allocation"]["chart_data"])

        risk, missing = _merge_metrics(
            _first(containers, RISK_KEYS), PIPELINE_DEFAULTS["risk_metrics"], "risk_metrics"
        )
        fallback.extend(missing)

        performance, missing = _merge_metrics(
            _first(containers, PERFORMANCE_KEYS), PIPELINE_DEFAULTS["performance_metrics"], "performance_metrics"
        )
        fallback.extend(missing)

        if strict and fallback:
            raise AgentResponseValidationError(fallback)

        return cls(
            summary=summary,
            allocation={"chart_data": chart_data},
            risk_metrics=risk,
            performance_metrics=performance,
            holdings_analysis=_first(containers, ("holdings_analysis",)),
            market_impact=_first(containers, ("market_impact",)),
            source="agent",
            fallback_fields=fallback,
        )


# ============================================================================
# PAYLOAD PROBING
# ============================================================================

SUMMARY_KEYS = ("summary", "portfolio_summary", "analysis_summary")
ALLOCATION_KEYS = ("allocation", "asset_allocation", "allocation_summary")
RISK_KEYS = ("risk_metrics", "risk_assessment")
PERFORMANCE_KEYS = ("performance_metrics", "performance")

# Wrapper keys the agent platform (or the model) tends to nest results under
NESTING_KEYS = ("response", "result", "data", "analysis", "message")
MAX_NESTING = 3

_NAME_KEYS = ("name", "label", "asset_class", "category", "symbol")
_VALUE_KEYS = ("value", "percentage", "percent", "allocation_percent", "weight", "allocation")
_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


def _containers(payload: Any) -> Tuple[List[Dict[str, Any]], Optional[str]]:
    """
    Breadth-first list of every dict reachable through NESTING_KEYS.

    Also returns the first wrapper string that is plain prose rather than
    JSON; the dashboard uses it as the summary when nothing better exists.
    """
    containers: List[Dict[str, Any]] = []
    loose_text: Optional[str] = None
    level = [payload]

    for _ in range(MAX_NESTING):
        next_level = []
        for node in level:
            if isinstance(node, str):
                decoded = try_parse_llm_json(node)
                if isinstance(decoded, dict):
                    node = decoded
                else:
                    if loose_text is None and node.strip():
                        loose_text = node.strip()
                    continue
            if not isinstance(node, dict):
                continue
            containers.append(node)
            next_level.extend(node[key] for key in NESTING_KEYS if key in node)
        if not next_level:
            break
        level = next_level

    return containers, loose_text


def _first(containers: Iterable[Dict[str, Any]], keys: Iterable[str]) -> Any:
    for container in containers:
        for key in keys:
            value = container.get(key)
            if value is None:
                continue
            if isinstance(value, str):
                decoded = try_parse_llm_json(value)
                if isinstance(decoded, (dict, list)):
                    return decoded
            return value
    return None


def _first_text(containers: Iterable[Dict[str, Any]], keys: Iterable[str]) -> Optional[str]:
    for container in containers:
        for key in keys:
            value = container.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return None


def _to_number(value: Any) -> Optional[Number]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return js_normalize(value)
    if isinstance(value, str):
        match = _NUMBER_RE.search(value.replace(",", ""))
        if match:
            text = match.group(0)
            return js_normalize(float(text)) if "." in text else int(text)
    return None


def _normalize_allocation(raw: Any) -> List[Dict[str, Any]]:
    """Accepts chart_data lists, {name: value} maps and lists of labelled items."""
    if isinstance(raw, dict) and "chart_data" in raw:
        raw = raw["chart_data"]

    items: List[Dict[str, Any]] = []
    if isinstance(raw, dict):
        for name, value in raw.items():
            number = _to_number(value)
            if number is not None:
                items.append({"name": str(name), "value": number})
    elif isinstance(raw, list):
        for entry in raw:
            if not isinstance(entry, dict):
                continue
            name = next((entry[k] for k in _NAME_KEYS if entry.get(k) not in (None, "")), None)
            value = next((_to_number(entry[k]) for k in _VALUE_KEYS if _to_number(entry.get(k)) is not None), None)
            if name is not None and value is not None:
                items.append({"name": str(name), "value": value})
    return items


def _is_blank(value: Any) -> bool:
    if isinstance(value, float) and not math.isfinite(value):
        return True
    return value is None or (isinstance(value, str) and not value.strip())


def _merge_metrics(raw: Any, defaults: Dict[str, str], prefix: str) -> Tuple[Dict[str, Any], List[str]]:
    """Fill metric keys missing from ``raw`` with their defaults, reporting which ones."""
    if not isinstance(raw, dict):
        return dict(defaults), [prefix]

    merged: Dict[str, Any] = {}
    missing: List[str] = []
    for key, default in defaults.items():
        value = raw.get(key)
        if _is_blank(value) or isinstance(value, (dict, list)):
            missing.append(f"{prefix}.{key}")
            merged[key] = default
        else:
            merged[key] = value
    return merged, missing
