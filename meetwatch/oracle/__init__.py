"""Intent oracle: classification and ranking of meeting requests."""

from meetwatch.oracle.base import IntentOracle
from meetwatch.oracle.claude import ClaudeIntentOracle
from meetwatch.oracle.responses import (
    LegacyDateList,
    StructuredContext,
    extract_json,
    interpret,
    normalize,
    parse_oracle_output,
)

__all__ = [
    "IntentOracle",
    "ClaudeIntentOracle",
    "LegacyDateList",
    "StructuredContext",
    "extract_json",
    "interpret",
    "normalize",
    "parse_oracle_output",
]
