"""流式响应解码：SSE 帧解析与思考/正文拆分。"""

from .splitter import ReasoningSplitter, StreamEvent, split_stream
from .sse import SSEDecoder, decode_sse, delta_from_payload

__all__ = ["ReasoningSplitter", "SSEDecoder", "StreamEvent", "decode_sse", "delta_from_payload", "split_stream"]
