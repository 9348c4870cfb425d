"""动作执行器。

按顺序把计划中的每个动作应用到 Grid 上：

- 写入动作使用（可能已偏移的）地址，成功后返回该地址作为 written。
- 读取动作（readRange / findData / getUsedRangeInfo）不参与偏移，返回 Observation。
- fixError 修改已有单元格，始终使用模型给出的原地址。
- 必填参数缺失只让该动作失败，其余动作继续执行。
- 未知动作类型记录警告后跳过，不算错误。
- DocumentTransactionError 会中止整份计划。

整份计划共用一个文档事务，全部动作尝试完毕后统一 ``sync()`` 提交一次。
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sheet_agent.actions.collision import CollisionResolver, is_sheet_empty
from sheet_agent.actions.definitions import (
    ADDRESS_PARAM_KEYS,
    ActionType,
    find_missing_param,
    placement_of,
)
from sheet_agent.actions.styles import ERROR_HIGHLIGHT_FILL, build_format
from sheet_agent.domain.exceptions import ActionParamError, BusinessError, DocumentTransactionError
from sheet_agent.domain.plan import Action, ActionOutcome, ActionPlan, ExecutionResult, Observation
from sheet_agent.grid.address import GridRegion, cell_address, offset_address, parse_region
from sheet_agent.grid.base import CellFormat, CellValueType, Grid
from sheet_agent.infrastructure.logging.logger import logger


DEFAULT_CHART_TYPE = "ColumnClustered"


@dataclass
class HandlerResult:
    written: Optional[str] = None
    observation: Optional[Observation] = None
    detail: Optional[str] = None


Handler = Callable[[Dict[str, Any], int], Awaitable[HandlerResult]]


def offset_params(params: Dict[str, Any], row_offset: int) -> Dict[str, Any]:
    """返回把 address / range / sourceData 下移 row_offset 行后的参数副本。"""

    adjusted = dict(params)
    if row_offset <= 0:
        return adjusted
    for key in ADDRESS_PARAM_KEYS:
        value = adjusted.get(key)
        if isinstance(value, str) and value:
            adjusted[key] = offset_address(value, row_offset)
    return adjusted


def _to_csv(rows: List[List[Any]]) -> str:
    return "\n".join(",".join("" if v is None else str(v) for v in row) for row in rows)


def _is_formula(params: Dict[str, Any], value: Any) -> bool:
    return bool(params.get("formula")) or (isinstance(value, str) and value.startswith("="))


class ActionExecutor:
    def __init__(self, grid: Grid, resolver: Optional[CollisionResolver] = None):
        self._grid = grid
        self._resolver = resolver or CollisionResolver()
        self._handlers: Dict[str, Handler] = {
            ActionType.SET_CELL.value: self._set_cell,
            ActionType.SET_RANGE.value: self._set_range,
            ActionType.CREATE_TABLE.value: self._create_table,
            ActionType.CREATE_CHART.value: self._create_chart,
            ActionType.FORMAT_RANGE.value: self._format_range,
            ActionType.AUTO_FIT.value: self._auto_fit,
            ActionType.FIX_ERROR.value: self._fix_error,
            ActionType.SCAN_FOR_ERRORS.value: self._scan_for_errors,
            ActionType.READ_RANGE.value: self._read_range,
            ActionType.FIND_DATA.value: self._find_data,
            ActionType.GET_USED_RANGE_INFO.value: self._get_used_range_info,
        }

    async def execute_plan(self, plan: ActionPlan, *, user_request: str = "") -> ExecutionResult:
        occupied = await self._grid.get_used_region()
        top_left = (await self._grid.get_values(GridRegion(occupied.row, occupied.column)))[0][0]
        row_offset = self._resolver.resolve(
            plan,
            occupied,
            sheet_empty=is_sheet_empty(occupied, top_left),
            user_request=user_request,
        )

        result = ExecutionResult(row_offset=row_offset)
        for index, action in enumerate(plan.actions):
            outcome = await self.execute_action(action, row_offset=row_offset, index=index)
            result.outcomes.append(outcome)
            if outcome.observation is not None:
                result.observations.append(outcome.observation)
            if outcome.written:
                result.written_targets.append(outcome.written)

        try:
            await self._grid.sync()
        except DocumentTransactionError as exc:
            exc.extra.setdefault("action_type", "sync")
            raise
        logger.info(
            "executor.plan_done",
            extra={
                "extra": {
                    "actions": len(plan.actions),
                    "failed": len(result.failures),
                    "observations": len(result.observations),
                    "written": result.written_targets,
                    "row_offset": row_offset,
                }
            },
        )
        return result

    async def execute_action(self, action: Action, *, row_offset: int = 0, index: int = 0) -> ActionOutcome:
        handler = self._handlers.get(action.type)
        if handler is None:
            logger.warning("executor.unknown_action", extra={"extra": {"action_type": action.type}})
            return ActionOutcome(index=index, action_type=action.type, status="skipped")

        try:
            missing = find_missing_param(action)
            if missing:
                raise ActionParamError(action.type, missing)
            effective_offset = row_offset if placement_of(action) in ("new", "follow") else 0
            params = offset_params(action.params, effective_offset)
            logger.info(
                "executor.action",
                extra={"extra": {"action_type": action.type, "params": params, "row_offset": effective_offset}},
            )
            handled = await handler(params, effective_offset)
        except DocumentTransactionError as exc:
            exc.extra.setdefault("action_type", action.type)
            logger.error(
                "executor.document_error",
                extra={"extra": {"action_type": action.type, "error": exc.message}},
            )
            raise
        except (BusinessError, ValueError, KeyError, TypeError) as exc:
            message = exc.message if isinstance(exc, BusinessError) else f"{action.type}: {exc}"
            logger.warning(
                "executor.action_failed",
                extra={"extra": {"action_type": action.type, "index": index, "error": message}},
            )
            return ActionOutcome(index=index, action_type=action.type, status="failed", error=message)

        return ActionOutcome(
            index=index,
            action_type=action.type,
            status="ok",
            written=handled.written,
            observation=handled.observation,
            detail=handled.detail,
        )

    # ---- 写入动作 ----

    async def _set_cell(self, params: Dict[str, Any], row_offset: int) -> HandlerResult:
        address = params["address"]
        region = parse_region(address)
        if not region.is_single_cell:
            raise ActionParamError("setCell", "address", f"setCell expects a single cell, got {address!r}")
        value = params.get("value", "")
        if _is_formula(params, value):
            await self._grid.set_formulas(region, [[value]])
        else:
            await self._grid.set_values(region, [[value]])
        return HandlerResult(written=address)

    async def _set_range(self, params: Dict[str, Any], row_offset: int) -> HandlerResult:
        address = params.get("range") or params.get("address")
        region = parse_region(address)
        if params.get("values") is not None:
            await self._grid.set_values(region, params["values"])
        elif "value" in params:
            value = params["value"]
            filled = [[value] * region.column_count for _ in range(region.row_count)]
            if _is_formula(params, value):
                await self._grid.set_formulas(region, filled)
            else:
                await self._grid.set_values(region, filled)
        else:
            raise ActionParamError("setRange", "values", "Action 'setRange' requires 'values' or 'value'")
        return HandlerResult(written=address)

    async def _create_table(self, params: Dict[str, Any], row_offset: int) -> HandlerResult:
        address = params["range"]
        name = params.get("name")
        if row_offset > 0 and name:
            name = f"{name}_{row_offset}"
        final_name = await self._grid.create_table(parse_region(address), name, params.get("header") is not False)
        return HandlerResult(written=address, detail=f"table {final_name}")

    async def _create_chart(self, params: Dict[str, Any], row_offset: int) -> HandlerResult:
        address = params["sourceData"]
        chart_type = params.get("type") or DEFAULT_CHART_TYPE
        anchor = await self._grid.create_chart(parse_region(address), str(chart_type), params.get("title"))
        return HandlerResult(written=address, detail=f"chart at {anchor}")

    async def _format_range(self, params: Dict[str, Any], row_offset: int) -> HandlerResult:
        address = params["range"]
        fmt = build_format(params)
        if not fmt.is_empty:
            await self._grid.set_format(parse_region(address), fmt)
        return HandlerResult(written=address)

    async def _auto_fit(self, params: Dict[str, Any], row_offset: int) -> HandlerResult:
        address = params["range"]
        await self._grid.autofit_columns(parse_region(address))
        return HandlerResult(written=address)

    async def _fix_error(self, params: Dict[str, Any], row_offset: int) -> HandlerResult:
        address = params["address"]
        region = parse_region(address)
        value = params.get("value", "")
        if _is_formula(params, value):
            await self._grid.set_formulas(region, [[value] * region.column_count for _ in range(region.row_count)])
        else:
            await self._grid.set_values(region, [[value] * region.column_count for _ in range(region.row_count)])
        await self._grid.clear_fill(region)
        return HandlerResult(written=address)

    # ---- 维护动作 ----

    async def _scan_for_errors(self, params: Dict[str, Any], row_offset: int) -> HandlerResult:
        used = await self._grid.get_used_region()
        types = await self._grid.get_value_types(used)
        flagged: List[str] = []
        for i, row in enumerate(types):
            for j, value_type in enumerate(row):
                if value_type == CellValueType.ERROR:
                    cell = GridRegion(used.row + i, used.column + j)
                    await self._grid.set_format(cell, CellFormat(fill_color=ERROR_HIGHLIGHT_FILL))
                    flagged.append(cell.to_a1())
        if flagged:
            logger.warning("executor.errors_found", extra={"extra": {"count": len(flagged), "cells": flagged}})
        return HandlerResult(detail=f"Found {len(flagged)} errors.")

    # ---- 读取动作 ----

    async def _read_range(self, params: Dict[str, Any], row_offset: int) -> HandlerResult:
        address = params["address"]
        region = parse_region(address)
        if region.is_unbounded:
            used = await self._grid.get_used_region()
            clipped = region.intersection(used)
            rows = await self._grid.get_values(clipped) if clipped else []
        else:
            rows = await self._grid.get_values(region)
        return HandlerResult(observation=Observation(f"Range {address} contents:\n{_to_csv(rows)}"))

    async def _find_data(self, params: Dict[str, Any], row_offset: int) -> HandlerResult:
        keyword = str(params["keyword"])
        used = await self._grid.get_used_region()
        values = await self._grid.get_values(used)
        found = [
            cell_address(used.row + i, used.column + j)
            for i, row in enumerate(values)
            for j, value in enumerate(row)
            if keyword in str(value)
        ]
        if found:
            return HandlerResult(observation=Observation(f'Found "{keyword}" in cells: {", ".join(found)}'))
        return HandlerResult(observation=Observation(f'"{keyword}" not found in the active sheet.'))

    async def _get_used_range_info(self, params: Dict[str, Any], row_offset: int) -> HandlerResult:
        used = await self._grid.get_used_region()
        summary = f"Used range: {used.to_a1()}, {used.row_count} rows x {used.column_count} cols."
        return HandlerResult(observation=Observation(summary))


__all__ = ["ActionExecutor", "offset_params"]
