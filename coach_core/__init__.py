"""Coach Core 顶层包。

该包把用户的训练/饮食数据交给托管的生成式模型处理，
包括配置加载、领域模型、Provider 适配、模型输出恢复（清洗与解析）、
工具调用编排、动作执行与文档存储、以及面向调用方的操作分发。
"""

from coach_core.api.context import AuthContext
from coach_core.api.service import CoachService, create_service

__all__ = ["AuthContext", "CoachService", "create_service"]
