"""模型输出清洗。

模型经常把 JSON 包在 markdown 代码块或前后说明文字里，
这里负责剥掉这些包装，定位出其中唯一的 JSON 对象文本。
失败时返回 SanitizationError 值而不是抛异常，调用方可以选择降级。
"""

import json
import re
from dataclasses import dataclass
from typing import Union

NO_JSON_FOUND = "NoJsonFound"

_OPENING_FENCE = re.compile(r"^```[\w+-]*[ \t]*\r?\n?")
_CLOSING_FENCE = re.compile(r"\r?\n?```\s*$")
_decoder = json.JSONDecoder()


@dataclass(frozen=True)
class SanitizedText:
    text: str


@dataclass(frozen=True)
class SanitizationError:
    """清洗失败；raw 保留原始文本用于诊断。"""

    kind: str
    raw: str


SanitizeResult = Union[SanitizedText, SanitizationError]


def strip_code_fence(text: str) -> str:
    """去掉开头的 ```lang 和结尾的 ```；没有开头围栏时原样返回。"""

    stripped = text.strip()
    if not _OPENING_FENCE.match(stripped):
        return stripped
    body = _OPENING_FENCE.sub("", stripped, count=1)
    return _CLOSING_FENCE.sub("", body, count=1).strip()


def sanitize(raw: str, expect_json: bool) -> SanitizeResult:
    """清洗模型文本。

    Args:
        raw: 模型原始输出。
        expect_json: 为 False 时只做 trim；为 True 时定位 JSON 对象。

    Returns:
        SanitizedText，或在找不到 "{" / "}" 时返回 SanitizationError(NoJsonFound)。

    先从第一个 "{" 开始做增量解码，取第一个语法完整的对象；
    增量解码失败时回退到“第一个 { 到最后一个 }”的截取。
    """

    text = raw or ""
    if not expect_json:
        return SanitizedText(text.strip())

    body = strip_code_fence(text)
    start = body.find("{")
    end = body.rfind("}")
    if start == -1 or end == -1 or end < start:
        return SanitizationError(kind=NO_JSON_FOUND, raw=text)

    try:
        _, stop = _decoder.raw_decode(body, start)
    except json.JSONDecodeError:
        return SanitizedText(body[start:end + 1])
    return SanitizedText(body[start:stop])
