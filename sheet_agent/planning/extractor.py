"""从模型回复中提取动作计划。

提取是刻意的启发式做法（模型输出不保证是合法 JSON，流也可能被截断），
不要把它改成严格解析器：

1. 优先找 ```json 代码块，取到闭合的 ``` 为止；没有闭合时取到文本末尾。
   捕获内容必须同时包含 "{" 和 "}"。
2. 否则取第一个 "{" 到最后一个 "}" 之间的文本，且必须包含 "actions" 键。
3. 都不满足时视为没有计划。

提取出的文本再做一次严格 json.loads，失败同样视为普通回答（只记录日志）。
"""

import json
import re
from typing import Optional

from sheet_agent.domain.plan import ActionPlan
from sheet_agent.infrastructure.logging.logger import logger


_FENCED_JSON_RE = re.compile(r"```json\s*([\s\S]*?)(?:```|\Z)", re.IGNORECASE)
_BARE_PLAN_RE = re.compile(r"\{[\s\S]*?\"actions\"\s*:\s*\[[\s\S]*?\]\s*\}")
_ACTIONS_KEY = '"actions"'


def extract_plan_json(content: str) -> Optional[str]:
    """返回可能是计划的 JSON 子串，没有找到时返回 None。"""

    if not content:
        return None

    fenced = _FENCED_JSON_RE.search(content)
    if fenced and fenced.group(1):
        captured = fenced.group(1)
        if "{" in captured and "}" in captured:
            return captured

    start = content.find("{")
    end = content.rfind("}")
    if start >= 0 and end > start:
        candidate = content[start:end + 1]
        if _ACTIONS_KEY in candidate:
            return candidate

    return None


def parse_plan(content: str) -> Optional[ActionPlan]:
    """提取并解析计划；没有计划、JSON 非法或 actions 为空都返回 None。"""

    raw = extract_plan_json(content)
    if raw is None:
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("plan.parse_failed", extra={"extra": {"error": str(exc), "preview": raw[:200]}})
        return None
    plan = ActionPlan.from_payload(payload)
    if plan is None:
        logger.info("plan.not_executable", extra={"extra": {"preview": raw[:200]}})
        return None
    logger.info("plan.extracted", extra={"extra": {"actions": [a.type for a in plan.actions]}})
    return plan


def strip_plan_blocks(content: str) -> str:
    """去掉展示文本中的 JSON 计划，避免流式输出时界面闪烁。"""

    cleaned = _FENCED_JSON_RE.sub("", content or "")
    cleaned = _BARE_PLAN_RE.sub("", cleaned)
    return cleaned.strip()
