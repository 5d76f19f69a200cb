"""模型 Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供各后端的具体实现 (gemini_client)。
- 在 Provider 之上提供单轮/会话式调用 (gateway)。
"""

from typing import Literal, Optional

from coach_core.config.settings import settings
from coach_core.providers.base import ProviderClient
from coach_core.providers.gemini_client import GeminiClient, VertexClient


def create_provider(name: Optional[str] = None, cfg=None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    cfg = cfg or settings
    provider_name = (name or getattr(cfg, "default_provider", "gemini")).lower()
    if provider_name == "vertex":
        return VertexClient(cfg)
    if provider_name == "gemini":
        return GeminiClient(cfg)
    raise KeyError(f"Unknown provider: {provider_name!r}")


DefaultProviderName = Literal["gemini", "vertex"]
