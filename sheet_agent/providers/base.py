"""Provider 抽象接口。

编排层不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- 每个厂商（或一类兼容接口）实现一个 ProviderClient。
- 负责：把 ChatRequest 转成具体 API 请求，并把流式响应解析为 StreamDelta 序列。

目前所有预设服务商都兼容 OpenAI 的 chat/completions 接口，共用 OpenAICompatibleClient。
"""

from typing import AsyncIterator, List, Protocol

from sheet_agent.domain.models import ChatRequest, StreamDelta


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志。
    - stream_chat(req): 执行一次流式对话调用，按顺序产出增量。
    - list_models(): 列出可用模型 ID，失败时返回空列表。
    """

    name: str

    def stream_chat(self, req: ChatRequest) -> AsyncIterator[StreamDelta]:
        ...

    async def list_models(self) -> List[str]:
        ...
