"""工具数据结构定义。

这些 dataclass 描述了“工具调用”的 schema，既用于：
- 将可用工具清单暴露给模型（ToolManifest / ToolDef / ToolParam）。
- 在编排器中保存和执行模型触发的工具调用（ToolCall / ActionOutcome）。
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Iterable, Iterator, List, Optional

from coach_core.domain.exceptions import ValidationError


@dataclass
class ToolParam:
    """单个工具参数的定义。

    schema 使用 OpenAPI 风格的类型描述，例如 {"type": "STRING"}。
    """

    name: str
    description: str
    required: bool
    schema: Dict[str, Any]


@dataclass
class ToolDef:
    """一个可供模型调用的工具定义。description 仅供模型参考。"""

    name: str
    description: str
    params: Dict[str, ToolParam]


class ToolManifest:
    """一次会话允许模型请求的工具集合，工具名在清单内唯一。"""

    def __init__(self, tools: Optional[Iterable[ToolDef]] = None):
        self._tools: Dict[str, ToolDef] = {}
        for tool in tools or []:
            if tool.name in self._tools:
                raise ValidationError(code="DUPLICATE_TOOL", message=f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def __iter__(self) -> Iterator[ToolDef]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def get(self, name: str) -> Optional[ToolDef]:
        return self._tools.get(name)

    @property
    def names(self) -> List[str]:
        return list(self._tools)


@dataclass
class ToolCall:
    """模型发起的一次工具调用请求。"""

    name: str
    arguments: Dict[str, Any]


@dataclass
class ActionOutcome:
    """工具执行结果，会作为 tool 轮次回填给模型。"""

    tool_name: str
    success: bool
    fields: Dict[str, Any] = field(default_factory=dict)

    def as_payload(self) -> Dict[str, Any]:
        payload = dict(self.fields)
        payload["success"] = self.success
        return payload
