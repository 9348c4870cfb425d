"""动作计划与执行结果模型。

模型在回答中输出的结构化计划形如::

    {"thought": "...", "actions": [{"type": "setCell", "params": {...}}], "message": "..."}

actions 为空或缺失的计划不可执行，按普通回答处理。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional


ActionStatus = Literal["ok", "failed", "skipped"]


@dataclass(frozen=True)
class Action:
    """一个原子表格操作：类型标签 + 命名参数。"""

    type: str
    params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["Action"]:
        if not isinstance(payload, dict):
            return None
        action_type = payload.get("type")
        if not isinstance(action_type, str) or not action_type:
            return None
        params = payload.get("params")
        return cls(type=action_type, params=dict(params) if isinstance(params, dict) else {})


@dataclass
class ActionPlan:
    actions: List[Action]
    thought: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["ActionPlan"]:
        """从已解析的 JSON 构造计划；没有可执行动作时返回 None。"""

        if not isinstance(payload, dict):
            return None
        raw_actions = payload.get("actions")
        if not isinstance(raw_actions, list):
            return None
        actions = [a for a in (Action.from_payload(item) for item in raw_actions) if a is not None]
        if not actions:
            return None
        thought = payload.get("thought")
        message = payload.get("message")
        return cls(
            actions=actions,
            thought=thought if isinstance(thought, str) else None,
            message=message if isinstance(message, str) else None,
        )


@dataclass(frozen=True)
class Observation:
    """读取类动作结果的文本摘要，会回传给模型。"""

    text: str


@dataclass
class ActionOutcome:
    """单个动作的执行情况。"""

    index: int
    action_type: str
    status: ActionStatus
    written: Optional[str] = None
    observation: Optional[Observation] = None
    error: Optional[str] = None
    detail: Optional[str] = None


@dataclass
class ExecutionResult:
    observations: List[Observation] = field(default_factory=list)
    written_targets: List[str] = field(default_factory=list)
    outcomes: List[ActionOutcome] = field(default_factory=list)
    row_offset: int = 0

    @property
    def failures(self) -> List[ActionOutcome]:
        return [o for o in self.outcomes if o.status == "failed"]

    def observation_text(self, separator: str = "\n---\n") -> str:
        return separator.join(o.text for o in self.observations)
