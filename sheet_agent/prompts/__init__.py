"""提示词加载工具。

按语言(locale) 从 prompts/zh 目录读取模板文本，使用 ``string.Template``
替换其中的 $context / $today / $actions 等占位符。
"""

from datetime import date
from pathlib import Path
from string import Template
from typing import Optional

from sheet_agent.actions.definitions import describe_actions


PROMPTS_DIR = Path(__file__).resolve().parent


def _load_template(name: str, locale: str = "zh") -> Template:
    fname = PROMPTS_DIR / locale / f"{name}.md"
    return Template(fname.read_text(encoding="utf-8"))


def load_system_prompt(context: str, locale: str = "zh", today: Optional[date] = None) -> str:
    """渲染表格助手的 system prompt：当前日期、表格上下文与动作清单。"""

    return _load_template("sheet_agent_system", locale).safe_substitute(
        today=(today or date.today()).isoformat(),
        context=context,
        actions=describe_actions(),
    )


def build_observation_prompt(user_request: str, observation_text: str, locale: str = "zh") -> str:
    """ReAct 追加轮的用户消息：原始请求 + 观察结果 + 必须输出动作的要求。"""

    return _load_template("react_followup", locale).safe_substitute(
        user_request=user_request,
        observations=observation_text,
    )
