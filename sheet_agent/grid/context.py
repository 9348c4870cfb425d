"""表格上下文摘要，每次请求前注入 system prompt。"""

from typing import Any, List

from sheet_agent.domain.exceptions import DocumentTransactionError
from sheet_agent.infrastructure.logging.logger import logger

from .address import GridRegion
from .base import Grid


EMPTY_SHEET_TEXT = "当前表格为空。"
UNREADABLE_SHEET_TEXT = "无法读取表格上下文。"


def _join_rows(rows: List[List[Any]], sep: str) -> str:
    return "\n".join(sep.join("" if v is None else str(v) for v in row) for row in rows)


async def build_context_summary(grid: Grid, preview_rows: int = 5, selection_max_cells: int = 50) -> str:
    """选区内容（单元格数不超过 selection_max_cells 时）+ 已用区域前 preview_rows 行 CSV。"""

    try:
        parts: List[str] = []
        selection = await grid.get_selection()
        if selection is not None:
            if selection.cell_count <= selection_max_cells:
                values = await grid.get_values(selection)
                parts.append(f"==当前选中区域: {selection.to_a1()}==\n{_join_rows(values, ', ')}\n\n")
            else:
                parts.append(f"==当前选中区域: {selection.to_a1()}== (区域过大，仅显示地址)\n\n")

        used = await grid.get_used_region()
        top_left = (await grid.get_values(GridRegion(used.row, used.column)))[0][0]
        if used.is_single_cell and top_left in (None, ""):
            parts.append(EMPTY_SHEET_TEXT)
            return "".join(parts)

        count = min(used.row_count, preview_rows)
        preview = await grid.get_values(GridRegion(used.row, used.column, count, used.column_count))
        parts.append(f"==表格数据概览 (前 {count} 行)==\n{_join_rows(preview, ',')}")
        return "".join(parts)
    except DocumentTransactionError as exc:
        logger.warning("context.unavailable", extra={"extra": {"error": exc.message}})
        return UNREADABLE_SHEET_TEXT
