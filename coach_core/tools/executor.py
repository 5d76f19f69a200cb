"""工具动作执行器。

模型给出的参数先按工具解码成对应的 pydantic 模型（禁止未知字段），
再交给注册的 handler 执行真正的副作用（例如写文档存储）。
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Type

from pydantic import BaseModel, ValidationError as PydanticValidationError

from coach_core.domain.exceptions import ActionExecutionError, BusinessError
from coach_core.infrastructure.logging.logger import logger
from .definitions import ActionOutcome, ToolDef, ToolManifest


ToolHandler = Callable[[BaseModel, Optional[str]], Dict[str, Any]]


@dataclass
class RegisteredTool:
    definition: ToolDef
    args_model: Type[BaseModel]
    handler: ToolHandler


class ActionExecutor:
    def __init__(self):
        self._tools: Dict[str, RegisteredTool] = {}

    def register(self, definition: ToolDef, args_model: Type[BaseModel], handler: ToolHandler) -> None:
        if definition.name in self._tools:
            raise ActionExecutionError(code="DUPLICATE_TOOL", message=definition.name)
        self._tools[definition.name] = RegisteredTool(definition, args_model, handler)

    def manifest(self) -> ToolManifest:
        return ToolManifest(t.definition for t in self._tools.values())

    def decode(self, tool_name: str, arguments: Dict[str, Any]) -> BaseModel:
        """把原始参数解码为该工具的参数模型。"""
        tool = self._tools.get(tool_name)
        if tool is None:
            raise ActionExecutionError(code="UNKNOWN_TOOL", message=f"Tool not registered: {tool_name}")
        try:
            return tool.args_model.model_validate(arguments or {})
        except PydanticValidationError as exc:
            raise ActionExecutionError(
                code="INVALID_TOOL_ARGUMENTS",
                message=f"{tool_name}: {exc.error_count()} invalid argument(s)",
                errors=exc.errors(include_url=False),
            ) from exc

    def execute(self, tool_name: str, arguments: Dict[str, Any], *, uid: Optional[str] = None) -> ActionOutcome:
        args = self.decode(tool_name, arguments)
        handler = self._tools[tool_name].handler
        try:
            fields = handler(args, uid)
        except ActionExecutionError:
            raise
        except BusinessError as exc:
            logger.error(
                "Action handler failed",
                extra={"extra": {"tool_name": tool_name, "code": exc.code, "error": exc.message}},
            )
            raise ActionExecutionError(code="ACTION_FAILED", message=exc.message, cause=exc.code) from exc
        except Exception as exc:
            logger.error(
                "Action handler crashed",
                exc_info=True,
                extra={"extra": {"tool_name": tool_name, "error": str(exc), "error_type": type(exc).__name__}},
            )
            raise ActionExecutionError(code="ACTION_FAILED", message=str(exc), cause=type(exc).__name__) from exc
        return ActionOutcome(tool_name=tool_name, success=True, fields=fields)
