"""模型网关：在 ProviderClient 之上提供单轮生成与多轮会话两种用法。

- generate(prompt_or_messages, tools=None): 单轮调用，返回 ModelResponse。
- start_chat(tools): 开启一个会话；工具清单只随开场轮次发送。

网关本身不做重试，调用失败直接抛出 Provider 的 BusinessError。
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from coach_core.domain.models import ChatMessage, ChatRequest, ChatResult, ModelResponse, ToolInvocation
from coach_core.infrastructure.logging.logger import logger
from coach_core.providers.base import ProviderClient
from coach_core.tools.definitions import ActionOutcome, ToolCall, ToolManifest


class ModelGateway:
    def __init__(
        self,
        provider_client: ProviderClient,
        model: str = "coach-chat",
        temperature: float = 0.7,
    ):
        self._provider_client = provider_client
        self.model = model
        self.temperature = temperature

    @property
    def provider_name(self) -> str:
        return self._provider_client.name

    def generate(
        self,
        prompt: Union[str, Sequence[ChatMessage]],
        tools: Optional[ToolManifest] = None,
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> ModelResponse:
        if isinstance(prompt, str):
            messages: Sequence[ChatMessage] = [ChatMessage(role="user", content=prompt)]
        else:
            messages = prompt
        return self.call(messages, tools, log_ctx).response

    def call(
        self,
        messages: Sequence[ChatMessage],
        tools: Optional[ToolManifest] = None,
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> ChatResult:
        req = ChatRequest(
            provider=self._provider_client.name,
            model=self.model,
            messages=tuple(messages),
            temperature=self.temperature,
            tools=tools,
        )
        self._log(
            logging.INFO,
            "Calling provider",
            log_ctx or {},
            provider=req.provider,
            model=req.model,
            message_count=len(req.messages),
            tool_count=len(tools) if tools else 0,
        )
        result = self._provider_client.chat(req)
        if result.usage:
            self._log(
                logging.INFO,
                "Token usage",
                log_ctx or {},
                prompt_tokens=result.usage.prompt_tokens,
                completion_tokens=result.usage.completion_tokens,
                total_tokens=result.usage.total_tokens,
            )
        return result

    def start_chat(self, tools: Optional[ToolManifest] = None, log_ctx: Optional[Dict[str, Any]] = None) -> "ChatSession":
        return ChatSession(self, tools, log_ctx)

    def close(self) -> None:
        self._provider_client.close()

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})


class ChatSession:
    """一次多轮会话；history 只在本会话内存在，不做持久化。"""

    def __init__(self, gateway: ModelGateway, tools: Optional[ToolManifest], log_ctx: Optional[Dict[str, Any]] = None):
        self._gateway = gateway
        self._tools = tools
        self._log_ctx = dict(log_ctx or {})
        self.history: List[ChatMessage] = []

    def send(self, text: str) -> ModelResponse:
        return self._send(ChatMessage(role="user", content=text))

    def send_tool_result(self, outcome: ActionOutcome) -> ModelResponse:
        return self._send(ChatMessage(role="tool", tool_result=outcome))

    def _send(self, message: ChatMessage) -> ModelResponse:
        # 工具清单只在开场轮次发送
        tools = self._tools if not self.history else None
        messages = self.history + [message]
        response = self._gateway.call(messages, tools, self._log_ctx).response
        self.history = messages + [self._as_model_turn(response)]
        return response

    @staticmethod
    def _as_model_turn(response: ModelResponse) -> ChatMessage:
        if isinstance(response, ToolInvocation):
            return ChatMessage(role="model", tool_call=ToolCall(name=response.tool_name, arguments=response.arguments))
        return ChatMessage(role="model", content=response.text)
