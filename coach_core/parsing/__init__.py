"""模型输出恢复层：清洗（sanitizer）与解析（parser）。"""

from coach_core.parsing.sanitizer import (
    NO_JSON_FOUND,
    SanitizationError,
    SanitizedText,
    sanitize,
    strip_code_fence,
)
from coach_core.parsing.parser import ParseFailure, is_failure, parse, recover_json

__all__ = [
    "NO_JSON_FOUND",
    "SanitizationError",
    "SanitizedText",
    "sanitize",
    "strip_code_fence",
    "ParseFailure",
    "is_failure",
    "parse",
    "recover_json",
]
