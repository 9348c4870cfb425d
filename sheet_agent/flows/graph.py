"""LangGraph construction and node implementations for the ReAct turn.

generate -> plan_check -> execute -> observe -> generate ... -> END

- generate: 注入 system prompt，流式请求模型并拆分思考/正文。
- plan_check: 从完整正文中提取计划；没有计划即为普通回答。
- execute: 防撞偏移 + 顺序执行动作，一次提交。
- observe: 有观察结果且轮数未用完时，构造追加轮的用户消息。
"""

from __future__ import annotations

import inspect
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from sheet_agent.actions.executor import ActionExecutor
from sheet_agent.domain.exceptions import DocumentTransactionError, TransportError
from sheet_agent.domain.models import ChatMessage, ChatRequest
from sheet_agent.domain.transcript import Transcript
from sheet_agent.flows.state import AgentEvent, ReActConfig, ReActState
from sheet_agent.infrastructure.logging.logger import logger
from sheet_agent.planning.extractor import parse_plan
from sheet_agent.prompts import build_observation_prompt
from sheet_agent.providers.base import ProviderClient
from sheet_agent.streaming.splitter import ReasoningSplitter, split_stream


EventCallback = Callable[[AgentEvent], Any]
OBSERVATION_PREFIX = "System Observation:\n"


@dataclass
class FlowDeps:
    """节点运行所需的会话依赖。on_event 在每次 run 时替换。"""

    provider: ProviderClient
    executor: ActionExecutor
    transcript: Transcript
    config: ReActConfig
    build_system_prompt: Callable[[], Awaitable[str]]
    on_event: Optional[EventCallback] = None

    async def emit(self, event: AgentEvent) -> None:
        if self.on_event is None:
            return
        result = self.on_event(event)
        if inspect.isawaitable(result):
            await result


async def generate_node(state: ReActState, deps: FlowDeps) -> ReActState:
    round_no = state.get("round", 0) + 1
    state["round"] = round_no
    system_prompt = await deps.build_system_prompt()
    messages = [ChatMessage(role="system", content=system_prompt), *deps.transcript.messages()]
    if state.get("followup_prompt"):
        messages.append(ChatMessage(role="user", content=state["followup_prompt"]))
    req = ChatRequest(model=deps.config.model, messages=messages, temperature=deps.config.temperature)

    logger.info("generate_node.start", extra={"extra": {"round": round_no, "messages": len(messages)}})
    await deps.emit(AgentEvent(kind="status", round=round_no, text="requesting"))
    splitter = ReasoningSplitter()
    try:
        async with aclosing(deps.provider.stream_chat(req)) as deltas:
            async for event in split_stream(deltas, splitter):
                await deps.emit(
                    AgentEvent(
                        kind=event.kind,
                        round=round_no,
                        text=event.cumulative,
                        fragment=event.fragment,
                        elapsed_seconds=event.elapsed_seconds,
                    )
                )
    except TransportError as exc:
        logger.error(
            "generate_node.transport_error",
            extra={"extra": {"round": round_no, "code": exc.code, "error": exc.message}},
        )
        state["error"] = exc.message
        state["error_code"] = exc.code
        return state

    response = splitter.finish()
    state["content"] = response.content
    state["reasoning"] = response.reasoning
    state["reasoning_seconds"] = response.reasoning_duration_seconds
    if round_no > 1 and state.get("observation_text"):
        deps.transcript.append("user", OBSERVATION_PREFIX + state["observation_text"])
    if response.content:
        deps.transcript.append("assistant", response.content)
    logger.info(
        "generate_node.end",
        extra={
            "extra": {
                "round": round_no,
                "content_chars": len(response.content),
                "reasoning_chars": len(response.reasoning),
            }
        },
    )
    return state


async def plan_check_node(state: ReActState, deps: FlowDeps) -> ReActState:
    plan = parse_plan(state.get("content", ""))
    state["plan"] = plan
    if plan is None:
        logger.info("plan_check_node.plain_answer", extra={"extra": {"round": state["round"]}})
    return state


async def execute_node(state: ReActState, deps: FlowDeps) -> ReActState:
    plan = state["plan"]
    round_no = state["round"]
    await deps.emit(AgentEvent(kind="status", round=round_no, text="executing"))
    try:
        result = await deps.executor.execute_plan(plan, user_request=state.get("user_request", ""))
    except DocumentTransactionError as exc:
        action_type = exc.extra.get("action_type", "")
        logger.error(
            "execute_node.document_error",
            extra={"extra": {"round": round_no, "action_type": action_type, "error": exc.message}},
        )
        state["error"] = f"{action_type}: {exc.message}" if action_type else exc.message
        state["error_code"] = exc.code
        return state

    state["executed"] = True
    state["observations"] = [o.text for o in result.observations]
    state["observation_text"] = result.observation_text() if result.observations else None
    state.setdefault("observation_log", []).extend(state["observations"])
    state.setdefault("written_targets", []).extend(result.written_targets)
    state.setdefault("outcomes", []).extend(result.outcomes)
    logger.info(
        "execute_node.end",
        extra={
            "extra": {
                "round": round_no,
                "observations": len(result.observations),
                "written": result.written_targets,
                "failed": len(result.failures),
            }
        },
    )
    return state


async def observe_node(state: ReActState, deps: FlowDeps) -> ReActState:
    state["followup_prompt"] = build_observation_prompt(
        state.get("user_request", ""),
        state.get("observation_text") or "",
        locale=deps.config.locale,
    )
    logger.info(
        "react.followup",
        extra={"extra": {"round": state["round"], "observations": len(state.get("observations", []))}},
    )
    await deps.emit(AgentEvent(kind="status", round=state["round"], text="observing"))
    return state


def generate_router(state: ReActState) -> str:
    return "end" if state.get("error") else "plan_check"


def plan_router(state: ReActState) -> str:
    return "execute" if state.get("plan") is not None else "end"


def observation_router(state: ReActState) -> str:
    if state.get("error"):
        return "end"
    if state.get("observations") and state["round"] < state.get("max_rounds", 2):
        return "observe"
    return "end"


def build_graph(deps: FlowDeps) -> CompiledStateGraph:
    async def generate(state: ReActState) -> ReActState:
        return await generate_node(state, deps)

    async def plan_check(state: ReActState) -> ReActState:
        return await plan_check_node(state, deps)

    async def execute(state: ReActState) -> ReActState:
        return await execute_node(state, deps)

    async def observe(state: ReActState) -> ReActState:
        return await observe_node(state, deps)

    graph = StateGraph(ReActState)
    graph.add_node("generate", generate)
    graph.add_node("plan_check", plan_check)
    graph.add_node("execute", execute)
    graph.add_node("observe", observe)
    graph.set_entry_point("generate")
    graph.add_conditional_edges("generate", generate_router, {"plan_check": "plan_check", "end": END})
    graph.add_conditional_edges("plan_check", plan_router, {"execute": "execute", "end": END})
    graph.add_conditional_edges("execute", observation_router, {"observe": "observe", "end": END})
    graph.add_edge("observe", "generate")
    return graph.compile()
