"""统一的对话与流式数据模型。

本模块定义了在 Provider、流式解码与编排层之间共享的标准数据结构：

- ChatMessage: 一条对话消息（system/user/assistant），追加到对话历史后不可变。
- ChatRequest: 发给 Chat Completion 服务的一次完整请求。
- StreamDelta: 单个 SSE 事件中解析出的增量（正文片段 / 思考片段）。
- AssembledResponse: 流结束后拼装好的完整回复。

所有 Provider 适配器都只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass
from typing import List, Literal, Optional


# LLM 消息角色类型（与 OpenAI 兼容接口的 role 字段对应）
Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    """一条对话消息。"""

    role: Role
    content: str

    def to_payload(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatRequest:
    """一次完整的聊天请求。

    system prompt 不保存在对话历史中，而是每次请求时由编排层注入到 messages 首位。
    """

    model: str
    messages: List[ChatMessage]
    temperature: float = 0.7
    stream: bool = True


@dataclass(frozen=True)
class StreamDelta:
    """一次服务端事件携带的增量，纯临时对象。"""

    content: Optional[str] = None
    reasoning: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.content and not self.reasoning


@dataclass
class AssembledResponse:
    """流式回复拼装结果。

    - content: 完整正文。
    - reasoning: 完整思考内容（仅部分推理模型会返回 reasoning_content）。
    - reasoning_duration_seconds: 思考耗时（整秒），没有思考内容时为 None。
    """

    content: str = ""
    reasoning: str = ""
    reasoning_duration_seconds: Optional[int] = None
