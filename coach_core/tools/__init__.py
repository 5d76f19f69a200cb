"""工具系统：工具清单定义、动作执行器与内置工具。"""
