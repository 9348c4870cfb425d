"""内存版表格实现。

用一个 (row, column) -> Cell 的字典模拟活动工作表，写操作先排队，
``sync()`` 或任意读操作时按顺序提交。测试与离线演示都使用它。
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from .address import MAX_COLUMNS, GridRegion, bounding_region, parse_region
from .base import CellFormat, CellValueType, classify_value


@dataclass
class Cell:
    value: Any = None
    formula: Optional[str] = None
    fmt: CellFormat = field(default_factory=CellFormat)

    @property
    def is_empty(self) -> bool:
        return self.formula is None and (self.value is None or self.value == "")

    @property
    def display(self) -> Any:
        if self.formula is not None:
            return self.formula
        return "" if self.value is None else self.value


@dataclass
class ChartRecord:
    chart_type: str
    source: str
    anchor: str
    title: Optional[str] = None


def check_shape(region: GridRegion, values: List[List[Any]]) -> None:
    if not isinstance(values, list) or not all(isinstance(row, list) for row in values):
        raise ValueError("values must be a two-dimensional list")
    if len(values) != region.row_count or any(len(row) != region.column_count for row in values):
        got = f"{len(values)}x{max((len(r) for r in values), default=0)}"
        raise ValueError(
            f"values shape {got} does not match range {region.to_a1()} "
            f"({region.row_count}x{region.column_count})"
        )


class InMemoryGrid:
    """Grid 协议的内存实现。"""

    def __init__(self, rows: Optional[List[List[Any]]] = None, selection: Optional[str] = None):
        self._cells: Dict[Tuple[int, int], Cell] = {}
        self._pending: List[Callable[[], None]] = []
        self._reserved_tables: set[str] = set()
        self.tables: Dict[str, Tuple[GridRegion, bool]] = {}
        self.charts: List[ChartRecord] = []
        self.column_widths: Dict[int, float] = {}
        self.sync_count = 0
        self._selection = parse_region(selection) if selection else None
        for r, row in enumerate(rows or []):
            for c, value in enumerate(row):
                if value is None or value == "":
                    continue
                cell = self._cell(r, c)
                if isinstance(value, str) and value.startswith("="):
                    cell.formula = value
                else:
                    cell.value = value

    # ---- 测试辅助（只看已提交内容）----

    def value_at(self, address: str) -> Any:
        region = parse_region(address)
        cell = self._cells.get((region.row, region.column))
        return cell.display if cell else ""

    def format_at(self, address: str) -> CellFormat:
        region = parse_region(address)
        cell = self._cells.get((region.row, region.column))
        return cell.fmt if cell else CellFormat()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ---- 内部 ----

    def _cell(self, row: int, column: int) -> Cell:
        cell = self._cells.get((row, column))
        if cell is None:
            cell = Cell()
            self._cells[(row, column)] = cell
        return cell

    def _flush(self) -> None:
        ops, self._pending = self._pending, []
        for op in ops:
            op()

    def _used(self) -> Optional[GridRegion]:
        return bounding_region(GridRegion(r, c) for (r, c), cell in self._cells.items() if not cell.is_empty)

    def _clip(self, region: GridRegion) -> Optional[GridRegion]:
        """整行/整列区域裁剪到已用区域，避免逐格遍历上百万个单元格。"""

        if not region.is_unbounded:
            return region
        used = self._used()
        return used.intersection(region) if used else None

    # ---- Grid 协议 ----

    async def get_used_region(self) -> GridRegion:
        self._flush()
        return self._used() or GridRegion(0, 0)

    async def get_values(self, region: GridRegion) -> List[List[Any]]:
        self._flush()
        rows: List[List[Any]] = []
        for r in range(region.row, region.row + region.row_count):
            row = []
            for c in range(region.column, region.column + region.column_count):
                cell = self._cells.get((r, c))
                row.append(cell.display if cell else "")
            rows.append(row)
        return rows

    async def set_values(self, region: GridRegion, values: List[List[Any]]) -> None:
        check_shape(region, values)

        def _apply() -> None:
            for i, row in enumerate(values):
                for j, value in enumerate(row):
                    cell = self._cell(region.row + i, region.column + j)
                    if isinstance(value, str) and value.startswith("="):
                        cell.formula, cell.value = value, None
                    else:
                        cell.formula, cell.value = None, value

        self._pending.append(_apply)

    async def get_formulas(self, region: GridRegion) -> List[List[Any]]:
        return await self.get_values(region)

    async def set_formulas(self, region: GridRegion, formulas: List[List[Any]]) -> None:
        await self.set_values(region, formulas)

    async def get_value_types(self, region: GridRegion) -> List[List[CellValueType]]:
        self._flush()
        types: List[List[CellValueType]] = []
        for r in range(region.row, region.row + region.row_count):
            row_types = []
            for c in range(region.column, region.column + region.column_count):
                cell = self._cells.get((r, c))
                if cell is None or cell.is_empty:
                    row_types.append(CellValueType.EMPTY)
                elif cell.formula is not None and cell.value is None:
                    row_types.append(CellValueType.STRING)
                else:
                    row_types.append(classify_value(cell.value))
            types.append(row_types)
        return types

    async def get_format(self, row: int, column: int) -> CellFormat:
        self._flush()
        cell = self._cells.get((row, column))
        return cell.fmt if cell else CellFormat()

    async def set_format(self, region: GridRegion, fmt: CellFormat) -> None:
        def _apply() -> None:
            target = self._clip(region)
            if target is None:
                return
            for r, c in target.cells():
                cell = self._cell(r, c)
                cell.fmt = cell.fmt.merged(fmt)

        self._pending.append(_apply)

    async def clear_fill(self, region: GridRegion) -> None:
        def _apply() -> None:
            target = self._clip(region)
            if target is None:
                return
            for r, c in target.cells():
                cell = self._cells.get((r, c))
                if cell is not None:
                    cell.fmt = replace(cell.fmt, fill_color=None)

        self._pending.append(_apply)

    async def create_table(self, region: GridRegion, name: Optional[str], has_headers: bool = True) -> str:
        taken = set(self.tables) | self._reserved_tables
        final_name = name if name and name not in taken else None
        if final_name is None:
            n = len(taken) + 1
            while f"Table{n}" in taken:
                n += 1
            final_name = f"Table{n}"
        self._reserved_tables.add(final_name)

        def _apply() -> None:
            self.tables[final_name] = (region, has_headers)

        self._pending.append(_apply)
        return final_name

    async def create_chart(self, region: GridRegion, chart_type: str, title: Optional[str] = None) -> str:
        anchor = GridRegion(region.row, min(region.last_column + 2, MAX_COLUMNS - 1)).to_a1()
        record = ChartRecord(chart_type=chart_type, source=region.to_a1(), anchor=anchor, title=title)
        self._pending.append(lambda: self.charts.append(record))
        return anchor

    async def autofit_columns(self, region: GridRegion) -> None:
        def _apply() -> None:
            for c in range(region.column, region.column + region.column_count):
                lengths = [
                    len(str(cell.display))
                    for (r, col), cell in self._cells.items()
                    if col == c and region.row <= r <= region.last_row and not cell.is_empty
                ]
                if lengths:
                    self.column_widths[c] = max(max(lengths) + 2, 8)

        self._pending.append(_apply)

    async def get_selection(self) -> Optional[GridRegion]:
        return self._selection

    async def sync(self) -> None:
        self._flush()
        self.sync_count += 1
