"""Sheet Agent 顶层包。

该包提供电子表格 AI 助手的核心实现，
包括配置加载、领域模型、Provider 适配、流式解码、计划提取、
写入防撞、动作执行与 ReAct 编排等能力。
"""

from sheet_agent.agents.session import AgentSession
from sheet_agent.flows.state import AgentEvent, TurnResult

__all__ = ["AgentEvent", "AgentSession", "TurnResult"]
