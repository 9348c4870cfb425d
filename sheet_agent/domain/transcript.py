"""会话内的有界对话历史。"""

from collections import deque
from typing import Deque, Iterator, List, Tuple

from .models import ChatMessage, Role


DEFAULT_MAX_MESSAGES = 20


class Transcript:
    """按时间顺序保存 user/assistant 消息，超过上限时先丢弃最旧的消息。

    system prompt 不进入历史，每次请求时单独注入。
    """

    def __init__(self, max_messages: int = DEFAULT_MAX_MESSAGES):
        if max_messages < 1:
            raise ValueError("max_messages must be >= 1")
        self.max_messages = max_messages
        self._messages: Deque[ChatMessage] = deque(maxlen=max_messages)

    def append(self, role: Role, content: str) -> ChatMessage:
        if role == "system":
            raise ValueError("system prompt is injected per request and never stored")
        message = ChatMessage(role=role, content=content)
        self._messages.append(message)
        return message

    def messages(self) -> Tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def to_payload(self) -> List[dict]:
        return [m.to_payload() for m in self._messages]

    def discard_from(self, message: ChatMessage) -> None:
        """撤回 message 及其之后的所有消息；message 已不在历史中时不做任何事。"""

        kept: List[ChatMessage] = []
        for existing in self._messages:
            if existing is message:
                break
            kept.append(existing)
        else:
            return
        self._messages = deque(kept, maxlen=self.max_messages)

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(tuple(self._messages))
