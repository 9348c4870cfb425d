"""动作数据结构定义。

这些 dataclass 描述了模型可以输出的动作 schema，既用于：
- 在 system prompt 中向模型列出可用动作（ActionDef / ActionParam）。
- 在 ActionExecutor 中校验必填参数、区分读/写动作。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Literal, Mapping, Optional, Tuple

from sheet_agent.domain.plan import Action


ActionFamily = Literal["write", "read", "maintenance"]
# 写入动作相对于已有数据的落点：
# new 写入新内容，参与碰撞检测并随偏移下移；
# follow 作用于计划自己写的内容或已有内容，不触发偏移，但计划整体偏移时跟随下移；
# in_place 修改已有单元格，永不偏移。
Placement = Literal["new", "follow", "in_place"]

# 写入动作中可能携带目标地址的参数名（按优先级）
ADDRESS_PARAM_KEYS: Tuple[str, ...] = ("range", "address", "sourceData")


class ActionType(str, Enum):
    SET_CELL = "setCell"
    SET_RANGE = "setRange"
    CREATE_TABLE = "createTable"
    CREATE_CHART = "createChart"
    FORMAT_RANGE = "formatRange"
    AUTO_FIT = "autoFit"
    FIX_ERROR = "fixError"
    READ_RANGE = "readRange"
    FIND_DATA = "findData"
    GET_USED_RANGE_INFO = "getUsedRangeInfo"
    SCAN_FOR_ERRORS = "scanForErrors"


@dataclass
class ActionParam:
    """单个动作参数的定义。

    aliases 中的任一名称出现即视为已提供（如 setRange 兼容 range 和 address）。
    """

    name: str
    description: str
    required: bool = False
    aliases: Tuple[str, ...] = ()

    @property
    def names(self) -> Tuple[str, ...]:
        return (self.name,) + self.aliases


@dataclass
class ActionDef:
    type: ActionType
    family: ActionFamily
    description: str
    params: List[ActionParam] = field(default_factory=list)
    placement: Placement = "new"


ACTION_DEFS: Mapping[str, ActionDef] = {
    d.type.value: d
    for d in [
        ActionDef(
            ActionType.SET_CELL,
            "write",
            "设置单元格",
            [
                ActionParam("address", "目标单元格，如 B2", required=True),
                ActionParam("value", "值或公式文本"),
                ActionParam("formula", "为 true 时按公式写入"),
            ],
        ),
        ActionDef(
            ActionType.SET_RANGE,
            "write",
            "设置区域",
            [
                ActionParam("range", "目标区域，如 A1:C3", required=True, aliases=("address",)),
                ActionParam("values", "与区域同形的二维数组"),
                ActionParam("value", "填充整个区域的单个值或公式"),
                ActionParam("formula", "为 true 时按公式写入"),
            ],
        ),
        ActionDef(
            ActionType.CREATE_TABLE,
            "write",
            "创建表格",
            [
                ActionParam("range", "表格区域", required=True),
                ActionParam("name", "表名"),
                ActionParam("header", "首行是否为表头，默认 true"),
            ],
        ),
        ActionDef(
            ActionType.CREATE_CHART,
            "write",
            "创建图表",
            [
                ActionParam("sourceData", "数据区域", required=True),
                ActionParam("type", "图表类型，如 ColumnClustered、Line、Pie"),
                ActionParam("title", "图表标题"),
            ],
            placement="follow",
        ),
        ActionDef(
            ActionType.FORMAT_RANGE,
            "write",
            "格式化",
            [
                ActionParam("range", "目标区域", required=True),
                ActionParam("style", "input | calculation | external | header | link"),
                ActionParam("bold", "加粗"),
                ActionParam("color", "字体颜色"),
                ActionParam("fill", "填充颜色"),
            ],
            placement="follow",
        ),
        ActionDef(
            ActionType.AUTO_FIT,
            "write",
            "自动调整列宽",
            [ActionParam("range", "列范围，如 A:C", required=True)],
            placement="follow",
        ),
        ActionDef(
            ActionType.FIX_ERROR,
            "write",
            "修复错误",
            [
                ActionParam("address", "错误单元格", required=True),
                ActionParam("value", "新的值或公式"),
            ],
            placement="in_place",
        ),
        ActionDef(
            ActionType.READ_RANGE,
            "read",
            "读取区域",
            [ActionParam("address", "读取区域，如 A1:C10", required=True)],
        ),
        ActionDef(
            ActionType.FIND_DATA,
            "read",
            "查找数据",
            [ActionParam("keyword", "要查找的关键词", required=True)],
        ),
        ActionDef(ActionType.GET_USED_RANGE_INFO, "read", "获取使用范围信息"),
        ActionDef(ActionType.SCAN_FOR_ERRORS, "maintenance", "扫描错误值并标红，无参数"),
    ]
}


def get_action_def(action_type: str) -> Optional[ActionDef]:
    return ACTION_DEFS.get(action_type)


def placement_of(action: Action) -> Optional[Placement]:
    """写入动作的落点；读取、维护和未知动作返回 None。"""

    action_def = get_action_def(action.type)
    if action_def is None or action_def.family != "write":
        return None
    return action_def.placement


def find_missing_param(action: Action) -> Optional[str]:
    """返回第一个缺失的必填参数名；全部齐全时返回 None。"""

    action_def = get_action_def(action.type)
    if action_def is None:
        return None
    for param in action_def.params:
        if not param.required:
            continue
        if not any(_is_present(action.params.get(name)) for name in param.names):
            return param.name
    return None


def target_address(action: Action) -> Optional[str]:
    """写入动作的目标地址（range / address / sourceData 中第一个字符串）。"""

    for key in ADDRESS_PARAM_KEYS:
        value = action.params.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def describe_actions() -> str:
    """渲染给模型看的动作清单。"""

    titles: Dict[str, str] = {"write": "写入操作", "read": "读取操作", "maintenance": "维护操作"}
    lines: List[str] = []
    for family, title in titles.items():
        lines.append(f"**{title}:**")
        for action_def in ACTION_DEFS.values():
            if action_def.family != family:
                continue
            params = ", ".join(
                f"{p.name}{'*' if p.required else ''}" for p in action_def.params
            )
            suffix = f" (params: {params})" if params else ""
            lines.append(f"- {action_def.type.value}: {action_def.description}{suffix}")
    return "\n".join(lines)


def _is_present(value: object) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True
