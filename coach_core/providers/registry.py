"""Provider 与模型配置。

本模块将“逻辑模型名”与“具体厂商模型名”解耦：

- 逻辑名（logical_name）：在代码里使用的统一名称，例如 "coach-chat"。
- provider_model：厂商实际提供的模型 ID，例如 "gemini-2.5-flash"。

上层只关心逻辑名，具体用哪个底层模型由这里集中配置。"""

from dataclasses import dataclass
from typing import Dict, List, Mapping


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: int
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]


_COACH_MODELS = {
    "coach-chat": ModelConfig(
        logical_name="coach-chat",
        provider_model="gemini-2.5-flash",
        max_tokens=8192,
        default_temperature=0.7,
    ),
}

GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    base_url="https://generativelanguage.googleapis.com/v1beta",
    models=dict(_COACH_MODELS),
)

# base_url 中的 {location} 在运行时替换
VERTEX_CONFIG = ProviderConfig(
    name="vertex",
    base_url="https://{location}-aiplatform.googleapis.com/v1",
    models=dict(_COACH_MODELS),
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "gemini": GEMINI_CONFIG,
    "vertex": VERTEX_CONFIG,
}

# 安全过滤只配置这两类，其它类别使用服务端默认值
SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
)


def safety_settings(threshold: str) -> List[Dict[str, str]]:
    return [{"category": c, "threshold": threshold} for c in SAFETY_CATEGORIES]


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
