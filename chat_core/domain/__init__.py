"""领域层模型与协议。

包含：
- models: 统一的 Turn / ToolCallRequest / ToolCallResult / ChatOptions 模型。
- arguments: 工具参数的 JSON 值类型与编解码。
- conversation: 只追加的 ChatHistory 与持有工具缓存的 Conversation。
- exceptions: 业务异常类型定义。
"""
