"""领域层模型与协议。

包含：
- models: ChatMessage / StreamFragment / RunState 等数据模型。
- conversation: ConversationHistory 与 ThreadStore 抽象。
- exceptions: 业务异常与 Provider 错误分类。
"""
