# src/ui/render.py

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt
from typing import List, Optional, Tuple

from src.portfolio.defaults import STATIC_TREND
from src.portfolio.models import AllocationSlice, AnalysisResult

# Pie slice colors, cycled
ALLOCATION_COLORS = ["#3b82f6", "#10b981", "#f59e0b", "#ef4444"]
PORTFOLIO_LINE_COLOR = "#3b82f6"
BENCHMARK_LINE_COLOR = "#10b981"
GRID_COLOR = "#e5e7eb"

RISK_LABELS = [
    ("Overall Risk", "overall_risk"),
    ("Volatility", "volatility"),
    ("Beta", "beta"),
    ("Sharpe Ratio", "sharpe_ratio"),
]

PERFORMANCE_LABELS = [
    ("YTD Return", "ytd_return"),
    ("1Y Return", "one_year_return"),
    ("3Y Return", "three_year_return"),
    ("Max Drawdown", "max_drawdown"),
]


# ============================================================================
# VIEW MODELS
# ============================================================================

def risk_rows(result: AnalysisResult) -> List[Tuple[str, str]]:
    return [(label, getattr(result.risk_metrics, key)) for label, key in RISK_LABELS]


def performance_rows(result: AnalysisResult) -> List[Tuple[str, str]]:
    return [(label, getattr(result.performance_metrics, key)) for label, key in PERFORMANCE_LABELS]


def allocation_labels(slices: List[AllocationSlice]) -> List[str]:
    """Slice labels as ``"{name} {percent}%"``, percent of the slice total rounded to whole numbers."""
    total = sum(s.value for s in slices)
    if total <= 0:
        return [f"{s.name} 0%" for s in slices]
    return [f"{s.name} {s.value / total * 100:.0f}%" for s in slices]


def fallback_notice(result: AnalysisResult) -> Optional[str]:
    """Text disclosing that some or all figures are placeholders, or None if all came from the agent."""
    if result.source == "placeholder":
        return "The analysis agents were unavailable. All figures below are placeholder values, not derived from your portfolio."
    if result.fallback_fields:
        fields = ", ".join(result.fallback_fields)
        return f"The manager agent did not provide: {fields}. Placeholder values are shown for these."
    return None


# ============================================================================
# CHARTS
# ============================================================================

def allocation_figure(result: AnalysisResult) -> plt.Figure:
    slices = [s for s in result.allocation.chart_data if s.value > 0]

    fig, ax = plt.subplots(figsize=(6, 4))
    if not slices:
        ax.text(0.5, 0.5, "No allocation data", ha="center", va="center")
        ax.axis("off")
        return fig

    colors = [ALLOCATION_COLORS[i % len(ALLOCATION_COLORS)] for i in range(len(slices))]
    ax.pie(
        [s.value for s in slices],
        labels=allocation_labels(slices),
        colors=colors,
        startangle=90,
    )
    ax.axis("equal")
    return fig


def trend_figure() -> plt.Figure:
    """Static six-month portfolio vs benchmark line chart."""
    months = [point["month"] for point in STATIC_TREND]

    fig, ax = plt.subplots(figsize=(7, 3))
    ax.plot(months, [p["portfolio"] for p in STATIC_TREND], color=PORTFOLIO_LINE_COLOR, linewidth=2, label="Portfolio")
    ax.plot(months, [p["benchmark"] for p in STATIC_TREND], color=BENCHMARK_LINE_COLOR, linewidth=2, label="Benchmark")
    ax.grid(True, linestyle="--", color=GRID_COLOR)
    ax.legend()
    return fig


def close_figure(fig: plt.Figure) -> None:
    plt.close(fig)
