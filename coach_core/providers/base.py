"""Provider 抽象接口。

上层编排器与 API 服务不直接依赖具体厂商的 HTTP 协议，而是依赖此协议：

- 每个后端实现一个 ProviderClient（如 GeminiClient、VertexClient）。
- 负责：将 ChatRequest 转成具体 API 请求，并把响应 JSON 解析为 ChatResult。
"""

from typing import Protocol
from coach_core.domain.models import ChatRequest, ChatResult


class ProviderClient(Protocol):
    """模型 Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志/统计。
    - chat(req): 执行一次非流式调用，返回统一的 ChatResult。
    - close(): 释放长连接，在进程退出时调用。
    """

    name: str

    def chat(self, req: ChatRequest) -> ChatResult:
        ...

    def close(self) -> None:
        ...
