# src/portfolio/defaults.py

"""
Hard-coded literals shown by the dashboard.

None of these values are derived from the submitted portfolio. Whenever one of
them ends up on screen the result is flagged (``AnalysisResult.fallback_fields``
or ``source == "placeholder"``) so the UI can say so.
"""

# Shown when the whole pipeline fails
MOCK_ANALYSIS = {
    "summary": (
        "This portfolio demonstrates balanced diversification across multiple asset "
        "classes with moderate risk exposure. Current allocation shows strong "
        "performance relative to benchmark indices."
    ),
    "allocation": {
        "chart_data": [
            {"name": "Stocks", "value": 45},
            {"name": "Bonds", "value": 28},
            {"name": "ETFs", "value": 17},
            {"name": "Cash", "value": 10},
        ]
    },
    "risk_metrics": {
        "overall_risk": "Medium",
        "volatility": "12.1%",
        "beta": "1.02",
        "sharpe_ratio": "1.18",
    },
    "performance_metrics": {
        "ytd_return": "14.8%",
        "one_year_return": "19.2%",
        "three_year_return": "11.7%",
        "max_drawdown": "-7.9%",
    },
}

# Used field by field when the manager agent replied but left something out
PIPELINE_DEFAULTS = {
    "summary": "Portfolio analysis completed successfully.",
    "allocation": {
        "chart_data": [
            {"name": "Stocks", "value": 40},
            {"name": "Bonds", "value": 25},
            {"name": "ETFs", "value": 20},
            {"name": "Cash", "value": 15},
        ]
    },
    "risk_metrics": {
        "overall_risk": "Medium",
        "volatility": "12.5%",
        "beta": "1.05",
        "sharpe_ratio": "1.2",
    },
    "performance_metrics": {
        "ytd_return": "15.3%",
        "one_year_return": "18.7%",
        "three_year_return": "12.4%",
        "max_drawdown": "-8.2%",
    },
}

# Performance Trend card; never sourced from an agent
STATIC_TREND = [
    {"month": "Jan", "portfolio": 2.4, "benchmark": 2.1},
    {"month": "Feb", "portfolio": 3.1, "benchmark": 2.8},
    {"month": "Mar", "portfolio": 2.0, "benchmark": 1.9},
    {"month": "Apr", "portfolio": 2.8, "benchmark": 3.5},
    {"month": "May", "portfolio": 1.9, "benchmark": 2.1},
    {"month": "Jun", "portfolio": 2.4, "benchmark": 2.6},
]

# Submitted by the manual form when no holdings were entered
DEFAULT_FORM_HOLDINGS = [
    {"symbol": "AAPL", "quantity": 100, "price": 150},
]

# Market prompt symbols when the portfolio has no holdings
DEFAULT_SYMBOLS = "AAPL,MSFT,GOOGL"

# "Load Sample Data"
SAMPLE_PORTFOLIO = {
    "portfolio_id": "PORT-2024-001",
    "client_id": "CLIENT-789",
    "holdings": [
        {"symbol": "AAPL", "quantity": 50, "price": 185.40},
        {"symbol": "MSFT", "quantity": 30, "price": 338.11},
        {"symbol": "GOOGL", "quantity": 25, "price": 141.80},
        {"symbol": "TSLA", "quantity": 15, "price": 207.30},
    ],
}

# Form values when the dashboard first loads
DEFAULT_PORTFOLIO_ID = "P12345"
DEFAULT_CLIENT_ID = "C98765"
