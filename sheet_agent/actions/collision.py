"""写入防撞：判断计划的写入目标是否会覆盖已有数据。

只要任意一个写入目标与已用区域相交，就把整份计划的所有写入目标统一下移
``occupied.row + occupied.row_count + 2`` 行（留两行空白），保持各动作之间的相对布局。
读取动作没有空间目标，不参与检测。
只有写入新内容的动作（placement 为 new）参与检测：formatRange / autoFit / createChart 不触发偏移，
只在计划整体偏移时跟随；fixError 修改的是已有的错误单元格，永不偏移。

是否真正应用偏移由 CollisionPolicy 决定：

- offset: 检测到碰撞就偏移。
- respect_user_addresses: 与 offset 相同，但如果写入地址是用户在请求里亲自点名的
  （例如“把结果写到 A153”），则认为该地址是权威的，不做偏移。
- off: 从不偏移。

两轮 ReAct 使用同一策略。
"""

import re
from typing import List, Literal, Sequence, Set

from sheet_agent.actions.definitions import placement_of, target_address
from sheet_agent.domain.plan import ActionPlan
from sheet_agent.grid.address import AddressError, GridRegion, parse_region, split_sheet
from sheet_agent.infrastructure.logging.logger import logger


CollisionPolicy = Literal["offset", "respect_user_addresses", "off"]
COLLISION_MARGIN_ROWS = 2

_A1_TOKEN_RE = re.compile(r"(?<![A-Za-z0-9])\$?([A-Za-z]{1,3})\$?(\d+)(?![A-Za-z0-9])")


def compute_row_offset(
    occupied: GridRegion,
    targets: Sequence[GridRegion],
    *,
    sheet_empty: bool = False,
) -> int:
    """纯函数：空表或无碰撞返回 0，否则返回整体下移的行数。"""

    if sheet_empty or not targets:
        return 0
    if any(target.intersects(occupied) for target in targets):
        return occupied.row + occupied.row_count + COLLISION_MARGIN_ROWS
    return 0


def is_sheet_empty(occupied: GridRegion, top_left_value: object) -> bool:
    """已用区域只有一个单元格且内容为空，即为空表。"""

    return occupied.is_single_cell and (top_left_value is None or top_left_value == "")


def _cell_tokens(text: str) -> Set[str]:
    return {f"{m.group(1).upper()}{int(m.group(2))}" for m in _A1_TOKEN_RE.finditer(text or "")}


class CollisionResolver:
    def __init__(self, policy: CollisionPolicy = "respect_user_addresses"):
        self.policy = policy

    @staticmethod
    def write_targets(plan: ActionPlan) -> List[GridRegion]:
        """计划中写入新内容的动作的目标区域；无法解析的地址留给执行阶段报错。"""

        regions: List[GridRegion] = []
        for action in plan.actions:
            if placement_of(action) != "new":
                continue
            address = target_address(action)
            if address is None:
                continue
            try:
                regions.append(parse_region(address))
            except AddressError as exc:
                logger.info(
                    "collision.unparsable_target",
                    extra={"extra": {"action_type": action.type, "address": address, "error": str(exc)}},
                )
        return regions

    @staticmethod
    def user_named_addresses(plan: ActionPlan, user_request: str) -> List[str]:
        """写入目标里被用户在请求中明确提到的地址。"""

        mentioned = _cell_tokens(user_request)
        if not mentioned:
            return []
        named: List[str] = []
        for action in plan.actions:
            if placement_of(action) != "new":
                continue
            address = target_address(action)
            if address and _cell_tokens(split_sheet(address)[1]) & mentioned:
                named.append(address)
        return named

    def resolve(
        self,
        plan: ActionPlan,
        occupied: GridRegion,
        *,
        sheet_empty: bool = False,
        user_request: str = "",
    ) -> int:
        if self.policy == "off":
            return 0
        targets = self.write_targets(plan)
        offset = compute_row_offset(occupied, targets, sheet_empty=sheet_empty)
        if offset == 0:
            return 0
        if self.policy == "respect_user_addresses":
            named = self.user_named_addresses(plan, user_request)
            if named:
                logger.info(
                    "collision.offset_skipped",
                    extra={"extra": {"reason": "user_named_address", "addresses": named, "offset": offset}},
                )
                return 0
        logger.info(
            "collision.offset_applied",
            extra={"extra": {"occupied": occupied.to_a1(), "offset": offset}},
        )
        return offset
