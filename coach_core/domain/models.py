"""统一的对话与结果数据模型。

本模块定义了编排器与 Provider 之间共享的标准数据结构：

- ChatMessage: 一条对话轮次（user / model / tool）。
- ChatRequest: 发给底层模型 Provider 的完整请求，发送后不可变。
- TextResponse / ToolInvocation: 模型响应的两种形态（ModelResponse）。
- ChatResult: 从 Provider 解析后的统一响应结果。

所有 Provider 适配器（如 GeminiClient）都必须只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Any, Dict, Tuple, Union, TYPE_CHECKING

if TYPE_CHECKING:
    # 仅在类型检查时导入，避免运行时循环依赖
    from coach_core.tools.definitions import ActionOutcome, ToolCall, ToolManifest


# 对话轮次角色；"tool" 表示工具执行结果回填
Role = Literal["user", "model", "tool"]


@dataclass
class ChatMessage:
    """一条对话轮次。

    - role: 轮次角色。
    - content: 纯文本内容（工具调用/工具结果轮次可以为空）。
    - tool_call: role 为 "model" 且模型请求工具时，保存该调用。
    - tool_result: role 为 "tool" 时，保存回填给模型的动作结果。
    - meta: 附加元数据，不发给 Provider，仅用于日志。
    """

    role: Role
    content: str = ""
    tool_call: Optional["ToolCall"] = None
    tool_result: Optional["ActionOutcome"] = None
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChatRequest:
    """一次完整的模型请求。

    provider/model 为逻辑名，由 registry 映射为真实模型 ID。
    tools 只在需要模型决定是否调用工具的轮次携带。
    """

    provider: str
    model: str
    messages: Tuple[ChatMessage, ...]
    temperature: float = 0.7
    top_p: float = 0.95
    max_tokens: Optional[int] = None
    tools: Optional["ToolManifest"] = None


@dataclass(frozen=True)
class TextResponse:
    """模型给出的最终文本。"""

    text: str


@dataclass(frozen=True)
class ToolInvocation:
    """模型请求宿主执行某个工具。"""

    tool_name: str
    arguments: Dict[str, Any]


ModelResponse = Union[TextResponse, ToolInvocation]


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatResult:
    """一次模型调用的最终结果。

    - response: 第一个候选的第一个 part 解析出的响应。
    - finish_reason: 候选结束原因（如 "STOP"、"SAFETY"）。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    provider: str
    model: str
    response: ModelResponse
    finish_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None
