"""领域层模型与协议。

包含：
- models: ExchangeEntry / ConversationContext 等数据模型。
- conversation: 可观察的 ConversationState 容器。
- exceptions: 业务异常类型与失败分类。
"""
