"""Gemini / Vertex AI Provider 适配器。

两者使用同一个 generateContent 请求体，只有端点和认证方式不同：
- Gemini API: {base_url}/models/{model}:generateContent，Header x-goog-api-key。
- Vertex AI: {base_url}/projects/{p}/locations/{l}/publishers/google/models/{model}:generateContent，
  Header Authorization: Bearer <token>。

本实现只依赖公共字段：contents/tools/safetySettings/generationConfig，
响应只读取第一个候选的第一个 part。
"""

from typing import Any, Dict, List

import httpx

from coach_core.config.settings import settings
from coach_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from coach_core.domain.models import (
    ChatMessage,
    ChatRequest,
    ChatResult,
    ChatUsage,
    ModelResponse,
    TextResponse,
    ToolInvocation,
)
from coach_core.infrastructure.logging.logger import logger
from coach_core.providers.registry import GEMINI_CONFIG, VERTEX_CONFIG, ModelConfig, safety_settings
from coach_core.tools.definitions import ToolDef, ToolManifest


class GeminiClient:
    """Gemini API Provider 客户端实现（API Key 认证）。"""

    name = "gemini"
    provider_config = GEMINI_CONFIG

    def __init__(self, cfg=settings):
        self._settings = cfg
        self._safety = safety_settings(getattr(cfg, "safety_threshold", "BLOCK_MEDIUM_AND_ABOVE"))
        # 长连接在进程内复用，由 close() 释放
        self._client = httpx.Client(timeout=cfg.http_timeout, trust_env=False)

    def chat(self, req: ChatRequest) -> ChatResult:
        self._check_credentials()
        model_cfg = self.provider_config.models.get(req.model)
        if model_cfg is None:
            raise ValidationError(code="UNKNOWN_MODEL", message=f"Unknown model: {req.model}")
        payload = self._build_payload(req, model_cfg)
        try:
            resp = self._client.post(self._endpoint(model_cfg), json=payload, headers=self._headers())
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message=f"{self.name} rate limit", http_status=429)
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(code="INVALID_RESPONSE", message=str(e), http_status=502)
        return self._parse_response(data, req)

    def close(self) -> None:
        self._client.close()

    # ---- 端点与认证 ----

    def _check_credentials(self) -> None:
        if not getattr(self._settings, "gemini_api_key", None):
            raise ValidationError(code="MISSING_API_KEY", message="GEMINI_API_KEY not set")

    def _endpoint(self, model_cfg: ModelConfig) -> str:
        base = getattr(self._settings, "gemini_base_url", None) or self.provider_config.base_url
        return f"{base}/models/{model_cfg.provider_model}:generateContent"

    def _headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self._settings.gemini_api_key,
            "Content-Type": "application/json",
        }

    # ---- 请求构造 ----

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        """将 ChatRequest 转成 generateContent 请求 JSON。"""

        payload: Dict[str, Any] = {
            "contents": [self._message_to_content(m) for m in req.messages],
            "safetySettings": self._safety,
            "generationConfig": {
                "temperature": req.temperature if req.temperature is not None else model_cfg.default_temperature,
                "topP": req.top_p,
                "maxOutputTokens": req.max_tokens or model_cfg.max_tokens,
            },
        }
        if req.tools:
            payload["tools"] = self._serialize_tools(req.tools)
        return payload

    @staticmethod
    def _message_to_content(message: ChatMessage) -> Dict[str, Any]:
        if message.role == "tool" and message.tool_result is not None:
            outcome = message.tool_result
            return {
                "role": "user",
                "parts": [{"functionResponse": {"name": outcome.tool_name, "response": outcome.as_payload()}}],
            }
        if message.role == "model" and message.tool_call is not None:
            call = message.tool_call
            return {"role": "model", "parts": [{"functionCall": {"name": call.name, "args": call.arguments}}]}
        role = "model" if message.role == "model" else "user"
        return {"role": role, "parts": [{"text": message.content}]}

    def _serialize_tools(self, manifest: ToolManifest) -> List[Dict[str, Any]]:
        return [{"functionDeclarations": [self._serialize_tool(tool) for tool in manifest]}]

    @staticmethod
    def _serialize_tool(tool: ToolDef) -> Dict[str, Any]:
        """把内部的 ToolDef 转成 functionDeclaration。"""

        properties: Dict[str, Any] = {}
        required: List[str] = []
        for name, param in tool.params.items():
            properties[name] = param.schema or {"type": "STRING"}
            if param.description:
                properties[name] = {**properties[name], "description": param.description}
            if param.required:
                required.append(name)
        return {
            "name": tool.name,
            "description": tool.description,
            "parameters": {"type": "OBJECT", "properties": properties, "required": required},
        }

    # ---- 响应解析 ----

    def _parse_response(self, data: dict, req: ChatRequest) -> ChatResult:
        """将原始响应 JSON 解析为统一的 ChatResult。"""

        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            logger.warning(
                "Model returned no candidates",
                extra={"extra": {"provider": self.name, "block_reason": block_reason}},
            )
            return ChatResult(
                provider=self.name,
                model=req.model,
                response=TextResponse(""),
                finish_reason=block_reason,
                usage=self._parse_usage(data),
                raw=data,
            )
        first = candidates[0] or {}
        parts = (first.get("content") or {}).get("parts") or []
        return ChatResult(
            provider=self.name,
            model=req.model,
            response=self._parse_part(parts[0] if parts else {}),
            finish_reason=first.get("finishReason"),
            usage=self._parse_usage(data),
            raw=data,
        )

    @staticmethod
    def _parse_part(part: Dict[str, Any]) -> ModelResponse:
        call = part.get("functionCall")
        if call:
            args = call.get("args")
            return ToolInvocation(tool_name=call.get("name") or "", arguments=args if isinstance(args, dict) else {})
        return TextResponse(part.get("text") or "")

    @staticmethod
    def _parse_usage(data: dict) -> ChatUsage | None:
        usage_raw = data.get("usageMetadata") or {}
        if not usage_raw:
            return None
        return ChatUsage(
            prompt_tokens=usage_raw.get("promptTokenCount", 0),
            completion_tokens=usage_raw.get("candidatesTokenCount", 0),
            total_tokens=usage_raw.get("totalTokenCount", 0),
        )


class VertexClient(GeminiClient):
    """Vertex AI Provider 客户端实现（GCP 项目 + OAuth 访问令牌）。"""

    name = "vertex"
    provider_config = VERTEX_CONFIG

    def _check_credentials(self) -> None:
        if not getattr(self._settings, "vertex_project", None):
            raise ValidationError(code="MISSING_PROJECT", message="GCLOUD_PROJECT environment variable not set")
        if not getattr(self._settings, "vertex_access_token", None):
            raise ValidationError(code="MISSING_ACCESS_TOKEN", message="VERTEX_ACCESS_TOKEN not set")

    def _endpoint(self, model_cfg: ModelConfig) -> str:
        location = self._settings.vertex_location
        base = self.provider_config.base_url.format(location=location)
        return (
            f"{base}/projects/{self._settings.vertex_project}/locations/{location}"
            f"/publishers/google/models/{model_cfg.provider_model}:generateContent"
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.vertex_access_token}",
            "Content-Type": "application/json",
        }
