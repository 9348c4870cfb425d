"""领域层模型与协议。

包含：
- models: ChatMessage / ChatRequest / StreamDelta / AssembledResponse。
- plan: Action / ActionPlan / Observation / ExecutionResult。
- transcript: 有界对话历史。
- exceptions: 业务异常类型定义。
"""
