"""High-level entry point for the ReAct turn."""

from __future__ import annotations

from typing import Optional

from sheet_agent.actions.collision import CollisionResolver
from sheet_agent.actions.executor import ActionExecutor
from sheet_agent.domain.transcript import Transcript
from sheet_agent.flows.graph import EventCallback, FlowDeps, build_graph
from sheet_agent.flows.state import AgentEvent, ReActConfig, ReActState, TurnResult
from sheet_agent.grid.base import Grid
from sheet_agent.grid.context import build_context_summary
from sheet_agent.infrastructure.logging.logger import logger
from sheet_agent.prompts import load_system_prompt
from sheet_agent.providers.base import ProviderClient


class ReActOrchestrator:
    """一次用户请求：生成 -> 计划 -> 执行，读取到观察结果时最多再追加到 max_rounds 轮。

    传输错误和文档事务错误只终止当前请求，转换为 status="failed" 的 TurnResult，
    会话本身保持可用，用户可以直接重试。
    """

    def __init__(
        self,
        provider: ProviderClient,
        grid: Grid,
        transcript: Transcript,
        config: ReActConfig,
    ):
        self._grid = grid
        self._transcript = transcript
        self._config = config
        self._deps = FlowDeps(
            provider=provider,
            executor=ActionExecutor(grid, CollisionResolver(config.collision_policy)),
            transcript=transcript,
            config=config,
            build_system_prompt=self.build_system_prompt,
        )
        self._graph = build_graph(self._deps)

    async def build_system_prompt(self) -> str:
        if self._config.system_prompt:
            return self._config.system_prompt
        context = await build_context_summary(
            self._grid,
            preview_rows=self._config.context_preview_rows,
            selection_max_cells=self._config.context_selection_max_cells,
        )
        return load_system_prompt(context, locale=self._config.locale)

    async def run(self, user_input: str, on_event: Optional[EventCallback] = None) -> TurnResult:
        """执行一次用户请求并返回结果；on_event 可以是同步或异步回调。"""

        message = self._transcript.append("user", user_input)
        self._deps.on_event = on_event
        state: ReActState = {
            "user_request": user_input,
            "round": 0,
            "max_rounds": self._config.max_rounds,
            "followup_prompt": None,
            "observation_text": None,
            "content": "",
            "reasoning": "",
            "reasoning_seconds": None,
            "plan": None,
            "observations": [],
            "observation_log": [],
            "written_targets": [],
            "outcomes": [],
            "executed": False,
            "error": None,
            "error_code": None,
        }
        logger.info(
            "react.start",
            extra={"extra": {"model": self._config.model, "max_rounds": self._config.max_rounds}},
        )
        try:
            try:
                final = await self._graph.ainvoke(
                    state,
                    config={"recursion_limit": 4 * self._config.max_rounds + 5},
                )
            except Exception:
                # 未转换为失败结果的异常，撤回本轮写入的历史
                self._transcript.discard_from(message)
                raise
            result = self._to_result(final)
            logger.info(
                "react.done",
                extra={
                    "extra": {
                        "status": result.status,
                        "rounds": result.rounds,
                        "written": result.written_targets,
                        "error": result.error,
                    }
                },
            )
            await self._deps.emit(AgentEvent(kind="final", round=result.rounds, text=result.display_text, result=result))
            return result
        finally:
            self._deps.on_event = None

    @staticmethod
    def _to_result(final: ReActState) -> TurnResult:
        if final.get("error"):
            status = "failed"
        elif final.get("executed"):
            status = "executed"
        else:
            status = "answered"
        plan = final.get("plan")
        return TurnResult(
            status=status,
            content=final.get("content", ""),
            reasoning=final.get("reasoning", ""),
            reasoning_seconds=final.get("reasoning_seconds"),
            message=plan.message if plan is not None else None,
            rounds=final.get("round", 0),
            observations=list(final.get("observation_log", [])),
            written_targets=list(final.get("written_targets", [])),
            outcomes=list(final.get("outcomes", [])),
            error=final.get("error"),
            error_code=final.get("error_code"),
        )
