"""Server-Sent Events 解码。

Chat Completion 的流式响应是一行一个事件::

    data: {"choices": [{"delta": {"content": "hel"}}]}
    data: {"choices": [{"delta": {"reasoning_content": "..."}}]}
    data: [DONE]

网络读取的边界与逻辑行无关，所以解码器会把行尾不完整的部分缓存到下一次读取。
单行 JSON 解析失败只记录日志并跳过，不影响整个流。
"""

import codecs
import json
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, Optional, Union

from sheet_agent.domain.models import StreamDelta
from sheet_agent.infrastructure.logging.logger import logger


DONE_SENTINEL = "[DONE]"
DATA_PREFIX = "data:"


class SSEDecoder:
    """增量 SSE 解码器；每个请求新建一个，不可重用。"""

    def __init__(self) -> None:
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.done = False

    def feed(self, chunk: Union[bytes, str]) -> List[Dict[str, Any]]:
        """喂入一段原始数据，返回其中所有完整行解析出的 JSON 对象。"""

        if self.done:
            return []
        text = self._utf8.decode(chunk) if isinstance(chunk, bytes) else chunk
        self._buffer += text
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._consume(lines)

    def flush(self) -> List[Dict[str, Any]]:
        """流结束时处理缓冲区里最后一行（没有换行结尾的情况）。"""

        if self.done:
            return []
        tail = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        return self._consume([tail])

    def _consume(self, lines: List[str]) -> List[Dict[str, Any]]:
        payloads: List[Dict[str, Any]] = []
        for line in lines:
            trimmed = line.strip()
            if not trimmed.startswith(DATA_PREFIX):
                continue
            data = trimmed[len(DATA_PREFIX):].strip()
            if data == DONE_SENTINEL:
                self.done = True
                break
            if not data:
                continue
            try:
                payload = json.loads(data)
            except json.JSONDecodeError as exc:
                logger.warning("sse.malformed_frame", extra={"extra": {"error": str(exc), "frame": data[:200]}})
                continue
            if not isinstance(payload, dict):
                logger.warning("sse.unexpected_frame", extra={"extra": {"frame": data[:200]}})
                continue
            payloads.append(payload)
        return payloads


async def decode_sse(chunks: AsyncIterable[Union[bytes, str]]) -> AsyncIterator[Dict[str, Any]]:
    """把字节流转换为按顺序产出的 JSON 事件，遇到 [DONE] 即停止。"""

    decoder = SSEDecoder()
    async for chunk in chunks:
        for payload in decoder.feed(chunk):
            yield payload
        if decoder.done:
            return
    for payload in decoder.flush():
        yield payload


def delta_from_payload(payload: Dict[str, Any]) -> Optional[StreamDelta]:
    """从 ``{choices: [{delta: {content?, reasoning_content?}}]}`` 中取出增量。"""

    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0] if isinstance(choices[0], dict) else {}
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    reasoning = delta.get("reasoning_content")
    result = StreamDelta(
        content=content if isinstance(content, str) else None,
        reasoning=reasoning if isinstance(reasoning, str) else None,
    )
    return None if result.is_empty else result
