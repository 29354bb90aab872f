# src/utils/__init__.py

from .logging import (
    setup_logger,
    setup_global_logging
)

from .tracing import (
    setup_tracing,
    setup_logger_with_tracing,
    get_tracer,
    traced
)

from .json_parser import (
    parse_llm_json,
    try_parse_llm_json,
    js_normalize,
    JSONExtractionError
)

__all__ = [
    'setup_logger',
    'setup_global_logging',
    'setup_tracing',
    'setup_logger_with_tracing',
    'get_tracer',
    'traced',
    'parse_llm_json',
    'try_parse_llm_json',
    'js_normalize',
    'JSONExtractionError'
]
