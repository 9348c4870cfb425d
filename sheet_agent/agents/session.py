"""表格助手会话。

会话是显式的上下文对象：持有对话历史、Provider、当前工作表与编排参数。
新建会话即开始新对话，reset() 清空历史。同一会话内的请求由调用方保证串行。
"""

import asyncio
from typing import AsyncIterator, Optional

from sheet_agent.config.settings import settings
from sheet_agent.domain.exceptions import ValidationError
from sheet_agent.domain.transcript import Transcript
from sheet_agent.flows.graph import EventCallback
from sheet_agent.flows.runner import ReActOrchestrator
from sheet_agent.flows.state import AgentEvent, ReActConfig, TurnResult
from sheet_agent.grid.base import Grid
from sheet_agent.infrastructure.logging.logger import logger
from sheet_agent.providers import create_provider
from sheet_agent.providers.base import ProviderClient
from sheet_agent.providers.registry import get_provider_config


def _default_model(provider: ProviderClient, cfg) -> str:
    configured = getattr(cfg, "default_model", None)
    if configured:
        return configured
    try:
        model = get_provider_config(provider.name).default_model
    except KeyError:
        model = ""
    if not model:
        raise ValidationError(code="MISSING_MODEL", message=f"No model configured for provider {provider.name!r}")
    return model


class AgentSession:
    """一个工作表上的对话会话。"""

    def __init__(
        self,
        grid: Grid,
        provider: Optional[ProviderClient] = None,
        *,
        provider_name: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_rounds: Optional[int] = None,
        collision_policy: Optional[str] = None,
        system_prompt: Optional[str] = None,
        max_history: Optional[int] = None,
        cfg=settings,
    ):
        """初始化会话。

        Args:
            grid: 当前活动工作表
            provider: Provider 客户端（可选，不提供则按 provider_name / 配置创建）
            model: 模型 ID（可选，默认取配置或服务商预设的第一个模型）
            max_rounds: 单次请求最多的模型调用轮数，默认 2
            collision_policy: 写入防撞策略，见 CollisionResolver
            system_prompt: 覆盖默认 system prompt
        """
        self.grid = grid
        self.provider = provider or create_provider(provider_name, cfg=cfg)
        self.transcript = Transcript(max_messages=max_history or cfg.max_history_messages)
        self.config = ReActConfig(
            model=model or _default_model(self.provider, cfg),
            temperature=cfg.temperature if temperature is None else temperature,
            max_rounds=max_rounds or cfg.max_react_rounds,
            collision_policy=collision_policy or cfg.collision_policy,
            system_prompt=system_prompt,
            context_preview_rows=cfg.context_preview_rows,
            context_selection_max_cells=cfg.context_selection_max_cells,
        )
        self._orchestrator = ReActOrchestrator(self.provider, grid, self.transcript, self.config)
        logger.info(
            "session.created",
            extra={"extra": {"provider": self.provider.name, "model": self.config.model}},
        )

    async def run(self, user_input: str, on_event: Optional[EventCallback] = None) -> TurnResult:
        return await self._orchestrator.run(user_input, on_event=on_event)

    async def stream(self, user_input: str) -> AsyncIterator[AgentEvent]:
        """以异步迭代的方式产出本次请求的全部事件，最后一个事件的 kind 为 "final"。"""

        queue: "asyncio.Queue[Optional[AgentEvent]]" = asyncio.Queue()
        task = asyncio.create_task(self.run(user_input, on_event=queue.put))
        task.add_done_callback(lambda _: queue.put_nowait(None))
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
            # 让 run() 中未被捕获的异常传播给调用方
            await task
        finally:
            if not task.done():
                task.cancel()

    def reset(self) -> None:
        """开始新对话：清空历史，保留 Provider 与工作表。"""

        self.transcript.clear()
        logger.info("session.reset", extra={"extra": {"provider": self.provider.name}})
