"""工具调用编排器入口。

run() 驱动一次“开场 → (可选) 执行动作 → 跟进”的会话：
- 开场轮次返回文本：直接作为结果，不执行任何动作。
- 开场轮次请求工具：执行一次动作，把结果回填给模型，取跟进轮次的文本。

任何模型调用失败或动作执行失败都会中止本次会话并抛出 OrchestrationError，
不重试，也不把动作失败告知模型。
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from uuid import uuid4

from coach_core.domain.exceptions import (
    ActionExecutionError,
    BusinessError,
    OrchestrationError,
    UnsupportedToolRecursion,
)
from coach_core.flows.graph import ActionRunner, build_graph
from coach_core.flows.state import ToolCallState
from coach_core.infrastructure.logging.logger import logger
from coach_core.providers.gateway import ModelGateway
from coach_core.tools.definitions import ToolManifest


class ToolCallOrchestrator:
    def __init__(self, gateway: ModelGateway, executor: ActionRunner):
        self._gateway = gateway
        self._executor = executor
        self._graph = build_graph(gateway, executor)

    def run(
        self,
        user_message: str,
        manifest: ToolManifest,
        *,
        uid: Optional[str] = None,
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> str:
        """执行一次工具调用会话并返回最终文本。

        Args:
            user_message: 用户开场消息
            manifest: 本次会话允许模型请求的工具
            uid: 动作执行时使用的用户标识
            log_ctx: 日志上下文（trace_id 等）

        Raises:
            OrchestrationError: 模型调用或动作执行失败
        """

        ctx = dict(log_ctx or {})
        ctx.setdefault("trace_id", f"tr-{uuid4().hex}")
        state: ToolCallState = {
            "user_message": user_message,
            "manifest": manifest,
            "uid": uid,
            "session": None,
            "phase": "awaiting_initial",
            "invocation": None,
            "outcome": None,
            "final_text": None,
            "log_ctx": ctx,
        }
        try:
            result = self._graph.invoke(state)
        except UnsupportedToolRecursion as exc:
            self._log(logging.ERROR, "Unsupported nested tool call", ctx, **exc.extra)
            raise
        except ActionExecutionError as exc:
            self._log(logging.ERROR, "Action execution failed", ctx, code=exc.code, error=exc.message)
            raise OrchestrationError("Action execution failed", cause=exc.code) from exc
        except BusinessError as exc:
            self._log(logging.ERROR, "Model gateway call failed", ctx, code=exc.code, error=exc.message)
            raise OrchestrationError("Model gateway call failed", cause=exc.code) from exc
        except Exception as exc:
            self._log(logging.ERROR, "Tool calling flow crashed", ctx, error=str(exc), error_type=type(exc).__name__)
            raise OrchestrationError("Tool calling flow failed", cause=type(exc).__name__) from exc
        return result.get("final_text") or ""

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
