# src/portfolio/exporter.py

import json
from typing import Any, Dict, Union

from src.portfolio.models import AnalysisResult
from src.utils.json_parser import js_normalize

EXPORT_FILENAME = "portfolio-analysis.json"
EXPORT_MEDIA_TYPE = "application/json"


def export_analysis(result: Union[AnalysisResult, Dict[str, Any]]) -> str:
    """
    Serialize the displayed analysis the way ``JSON.stringify(x, null, 2)`` does:
    2-space indent, ``": "`` between keys and values, non-ASCII left as-is,
    whole-number floats written without a fraction and NaN/Infinity as null.
    """
    data = result.to_export_dict() if isinstance(result, AnalysisResult) else result
    return json.dumps(js_normalize(data), indent=2, ensure_ascii=False, allow_nan=False)


def export_bytes(result: Union[AnalysisResult, Dict[str, Any]]) -> bytes:
    return export_analysis(result).encode("utf-8")
