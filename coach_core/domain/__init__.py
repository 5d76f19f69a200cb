"""领域层模型与协议。

包含：
- models: 统一的 ChatMessage / ChatRequest / ChatResult 以及模型响应类型。
- documents: 文档存储抽象 DocumentStore。
- exceptions: 业务异常与调用方错误类型定义。
"""
