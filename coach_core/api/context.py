from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class AuthContext:
    """已认证的调用方身份；token 为身份提供方给出的声明（可选）。"""

    uid: str
    token: Dict[str, Any] = field(default_factory=dict)
