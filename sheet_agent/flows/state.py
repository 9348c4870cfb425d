"""State, config and event types for the ReAct graph."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Optional, TypedDict

from sheet_agent.domain.plan import ActionOutcome, ActionPlan
from sheet_agent.planning.extractor import strip_plan_blocks


AgentEventKind = Literal["reasoning_start", "reasoning_update", "content", "status", "final"]
TurnStatus = Literal["answered", "executed", "failed"]


@dataclass
class ReActConfig:
    """单个会话的编排参数。"""

    model: str
    temperature: float = 0.7
    max_rounds: int = 2
    collision_policy: str = "respect_user_addresses"
    system_prompt: Optional[str] = None
    context_preview_rows: int = 5
    context_selection_max_cells: int = 50
    locale: str = "zh"


@dataclass
class TurnResult:
    """一次用户请求（可能包含两轮模型调用）的最终结果。"""

    status: TurnStatus
    content: str = ""
    reasoning: str = ""
    reasoning_seconds: Optional[int] = None
    message: Optional[str] = None
    rounds: int = 0
    observations: List[str] = field(default_factory=list)
    written_targets: List[str] = field(default_factory=list)
    outcomes: List[ActionOutcome] = field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def display_text(self) -> str:
        """展示给用户的文本：去掉 JSON 计划块后的正文，为空时退回计划里的 message。"""

        if self.status == "failed":
            return f"❌ {self.error}"
        text = strip_plan_blocks(self.content)
        return text or (self.message or "")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["display_text"] = self.display_text
        return data


@dataclass
class AgentEvent:
    """推送给宿主 UI 的事件，严格按产生顺序投递。

    - reasoning_start / reasoning_update: 思考过程，text 为累计思考内容。
    - content: 正文片段 fragment 与累计正文 text。
    - status: 阶段变化（requesting / executing / observing ...）。
    - final: 本次请求结束，result 携带 TurnResult。
    """

    kind: AgentEventKind
    round: int = 1
    text: str = ""
    fragment: str = ""
    elapsed_seconds: Optional[int] = None
    result: Optional[TurnResult] = None

    @property
    def display_text(self) -> str:
        return strip_plan_blocks(self.text) if self.kind == "content" else self.text


class ReActState(TypedDict, total=False):
    """State shared across LangGraph nodes."""

    user_request: str
    round: int
    max_rounds: int
    followup_prompt: Optional[str]
    observation_text: Optional[str]
    content: str
    reasoning: str
    reasoning_seconds: Optional[int]
    plan: Optional[ActionPlan]
    observations: List[str]
    observation_log: List[str]
    written_targets: List[str]
    outcomes: List[ActionOutcome]
    executed: bool
    error: Optional[str]
    error_code: Optional[str]
