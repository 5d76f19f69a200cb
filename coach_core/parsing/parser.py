"""结构化结果解析。

把清洗后的文本严格解码为 JSON；只检查顶层容器类型，
不做字段级校验（必填字段由具体操作自行检查）。
"""

import json
from dataclasses import dataclass
from typing import Any, Type, Union

from .sanitizer import SanitizationError, SanitizedText, sanitize


@dataclass(frozen=True)
class ParseFailure:
    """解析失败；raw 为清洗后的文本，error 为解码错误描述。"""

    raw: str
    error: str


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def parse(sanitized: Union[SanitizedText, SanitizationError, str], shape: Type = dict) -> Any:
    """解码清洗后的文本。

    - 传入 SanitizationError 时原样返回，便于链式调用。
    - 成功时返回解码结果；失败时返回 ParseFailure，从不抛出。
    - shape 为期望的顶层类型（dict / list），传 object 表示不限制。
    """

    if isinstance(sanitized, SanitizationError):
        return sanitized
    text = sanitized.text if isinstance(sanitized, SanitizedText) else str(sanitized)
    try:
        value = json.loads(text, parse_constant=_reject_constant)
    except ValueError as exc:
        # JSONDecodeError 是 ValueError 的子类
        return ParseFailure(raw=text, error=str(exc))
    if not isinstance(value, shape):
        return ParseFailure(raw=text, error=f"Expected {shape.__name__}, got {type(value).__name__}")
    return value


def recover_json(raw: str, shape: Type = dict) -> Any:
    """sanitize(expect_json=True) + parse 的组合。"""

    return parse(sanitize(raw, expect_json=True), shape)


def is_failure(result: Any) -> bool:
    return isinstance(result, (SanitizationError, ParseFailure))
