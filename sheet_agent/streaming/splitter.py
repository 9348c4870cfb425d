"""思考内容与正文的拆分与累积。

部分推理模型（如 deepseek-reasoner）会在 delta 中返回 reasoning_content，
这里把它与正文分开累积，并产生按顺序排列的事件：

- reasoning_start: 第一次收到非空思考片段。
- reasoning_update: 每次追加思考内容后，携带累计思考文本与已用秒数（取整）。
- content: 每个正文片段，携带片段和累计正文。正文片段无条件输出，绝不丢弃。

解码器不会给出“思考结束”事件；调用方在正文开始到达或流结束时自行推断。
"""

import time
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Callable, List, Literal, Optional

from sheet_agent.domain.models import AssembledResponse, StreamDelta


StreamEventKind = Literal["reasoning_start", "reasoning_update", "content"]


@dataclass(frozen=True)
class StreamEvent:
    kind: StreamEventKind
    fragment: str = ""
    cumulative: str = ""
    elapsed_seconds: Optional[int] = None


class ReasoningSplitter:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._content: List[str] = []
        self._reasoning: List[str] = []
        self._reasoning_started_at: Optional[float] = None
        self._reasoning_elapsed: Optional[int] = None

    @property
    def content(self) -> str:
        return "".join(self._content)

    @property
    def reasoning(self) -> str:
        return "".join(self._reasoning)

    @property
    def reasoning_started(self) -> bool:
        return self._reasoning_started_at is not None

    @property
    def reasoning_active(self) -> bool:
        """已经开始思考且正文尚未到达。"""

        return self.reasoning_started and not self._content

    def feed(self, delta: StreamDelta) -> List[StreamEvent]:
        events: List[StreamEvent] = []
        if delta.reasoning:
            if self._reasoning_started_at is None:
                self._reasoning_started_at = self._clock()
                events.append(StreamEvent(kind="reasoning_start"))
            self._reasoning.append(delta.reasoning)
            self._reasoning_elapsed = int(self._clock() - self._reasoning_started_at + 0.5)
            events.append(
                StreamEvent(
                    kind="reasoning_update",
                    fragment=delta.reasoning,
                    cumulative=self.reasoning,
                    elapsed_seconds=self._reasoning_elapsed,
                )
            )
        if delta.content:
            self._content.append(delta.content)
            events.append(StreamEvent(kind="content", fragment=delta.content, cumulative=self.content))
        return events

    def finish(self) -> AssembledResponse:
        return AssembledResponse(
            content=self.content,
            reasoning=self.reasoning,
            reasoning_duration_seconds=self._reasoning_elapsed,
        )


async def split_stream(
    deltas: AsyncIterable[StreamDelta],
    splitter: ReasoningSplitter,
) -> AsyncIterator[StreamEvent]:
    """把增量流转换为事件流；结束后可从 splitter.finish() 取得完整回复。"""

    async for delta in deltas:
        for event in splitter.feed(delta):
            yield event
