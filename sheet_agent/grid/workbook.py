"""基于 openpyxl 的 .xlsx 表格实现。

修改直接作用在内存中的 Workbook 上，``sync()`` 时整体保存到磁盘，
因此一次计划的所有写入对文件来说是一起生效的。
加载和保存属于阻塞 I/O，通过 ``asyncio.to_thread`` 放到线程里执行。
"""

import asyncio
import copy
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from openpyxl import Workbook, load_workbook
from openpyxl.chart import AreaChart, BarChart, LineChart, PieChart, Reference, ScatterChart, Series
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils.exceptions import IllegalCharacterError, InvalidFileException
from openpyxl.worksheet.table import Table, TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet

from sheet_agent.domain.exceptions import DocumentTransactionError
from sheet_agent.infrastructure.logging.logger import logger

from .address import MAX_COLUMNS, GridRegion, parse_region
from .base import CellFormat, CellValueType, classify_value


_TABLE_NAME_RE = re.compile(r"[^0-9A-Za-z_]")


def _chart_for(chart_type: str):
    """宿主图表类型名 -> openpyxl 图表对象。未知类型按簇状柱形图处理。"""

    key = (chart_type or "").lower()
    if key in ("barclustered", "bar"):
        chart = BarChart()
        chart.type = "bar"
        return chart
    if key in ("line", "linemarkers"):
        return LineChart()
    if key in ("pie", "doughnut"):
        return PieChart()
    if key == "area":
        return AreaChart()
    if key in ("xyscatter", "scatter"):
        return ScatterChart()
    chart = BarChart()
    chart.type = "col"
    return chart


def _hex(color: Optional[str]) -> Optional[str]:
    return color.lstrip("#").upper() if color else None


def _rgb_of(color: Any) -> Optional[str]:
    # 主题色 / 索引色没有可用的 rgb 值
    if color is None or getattr(color, "type", None) != "rgb":
        return None
    rgb = color.rgb
    if isinstance(rgb, str) and len(rgb) >= 6:
        return "#" + rgb[-6:].upper()
    return None


class WorkbookGrid:
    """Grid 协议的 openpyxl 实现，操作工作簿中的一个工作表。"""

    def __init__(self, workbook: Workbook, path: Union[str, Path], sheet: Optional[str] = None):
        self._wb = workbook
        self.path = Path(path)
        if sheet and sheet not in workbook.sheetnames:
            raise DocumentTransactionError(
                code="SHEET_NOT_FOUND",
                message=f"Sheet '{sheet}' not found in {self.path.name}",
                path=str(self.path),
            )
        self._ws: Worksheet = workbook[sheet] if sheet else workbook.active

    @classmethod
    async def open(cls, path: Union[str, Path], sheet: Optional[str] = None, create: bool = False) -> "WorkbookGrid":
        """加载工作簿；create=True 且文件不存在时新建空工作簿。"""

        target = Path(path)

        def _load() -> Workbook:
            if create and not target.exists():
                return Workbook()
            return load_workbook(target)

        try:
            workbook = await asyncio.to_thread(_load)
        except (OSError, InvalidFileException, KeyError) as exc:
            raise DocumentTransactionError(
                code="DOCUMENT_OPEN_FAILED",
                message=f"Failed to open workbook {target}: {exc}",
                path=str(target),
            ) from exc
        logger.info("workbook.opened", extra={"extra": {"path": str(target), "sheet": sheet}})
        return cls(workbook, target, sheet)

    @property
    def worksheet(self) -> Worksheet:
        return self._ws

    # ---- 内部 ----

    def _used(self) -> Optional[GridRegion]:
        min_r = min_c = None
        max_r = max_c = 0
        for row in self._ws.iter_rows():
            for cell in row:
                if cell.value is None or cell.value == "":
                    continue
                min_r = cell.row if min_r is None else min(min_r, cell.row)
                min_c = cell.column if min_c is None else min(min_c, cell.column)
                max_r = max(max_r, cell.row)
                max_c = max(max_c, cell.column)
        if min_r is None:
            return None
        return GridRegion(min_r - 1, min_c - 1, max_r - min_r + 1, max_c - min_c + 1)

    def _clip(self, region: GridRegion) -> Optional[GridRegion]:
        if not region.is_unbounded:
            return region
        used = self._used()
        return used.intersection(region) if used else None

    def _iter_cells(self, region: GridRegion):
        target = self._clip(region)
        if target is None:
            return
        for row in self._ws.iter_rows(
            min_row=target.row + 1,
            max_row=target.last_row + 1,
            min_col=target.column + 1,
            max_col=target.last_column + 1,
        ):
            for cell in row:
                yield cell

    def _write(self, region: GridRegion, values: List[List[Any]]) -> None:
        if len(values) != region.row_count or any(len(row) != region.column_count for row in values):
            raise ValueError(
                f"values shape does not match range {region.to_a1()} "
                f"({region.row_count}x{region.column_count})"
            )
        for i, row in enumerate(values):
            for j, value in enumerate(row):
                try:
                    self._ws.cell(row=region.row + i + 1, column=region.column + j + 1, value=value)
                except IllegalCharacterError as exc:
                    cell = GridRegion(region.row + i, region.column + j).to_a1()
                    raise ValueError(f"value for {cell} contains characters not allowed in worksheets") from exc

    def _table_names(self) -> set:
        names = set()
        for ws in self._wb.worksheets:
            names.update(ws.tables.keys())
        return names

    # ---- Grid 协议 ----

    async def get_used_region(self) -> GridRegion:
        return self._used() or GridRegion(0, 0)

    async def get_values(self, region: GridRegion) -> List[List[Any]]:
        rows: List[List[Any]] = []
        for row in self._ws.iter_rows(
            min_row=region.row + 1,
            max_row=region.last_row + 1,
            min_col=region.column + 1,
            max_col=region.last_column + 1,
        ):
            rows.append(["" if cell.value is None else cell.value for cell in row])
        return rows

    async def set_values(self, region: GridRegion, values: List[List[Any]]) -> None:
        self._write(region, values)

    async def get_formulas(self, region: GridRegion) -> List[List[Any]]:
        return await self.get_values(region)

    async def set_formulas(self, region: GridRegion, formulas: List[List[Any]]) -> None:
        self._write(region, formulas)

    async def get_value_types(self, region: GridRegion) -> List[List[CellValueType]]:
        types: List[List[CellValueType]] = []
        for row in self._ws.iter_rows(
            min_row=region.row + 1,
            max_row=region.last_row + 1,
            min_col=region.column + 1,
            max_col=region.last_column + 1,
        ):
            row_types = []
            for cell in row:
                if cell.data_type == "e":
                    row_types.append(CellValueType.ERROR)
                elif cell.data_type == "f":
                    row_types.append(CellValueType.STRING)
                else:
                    row_types.append(classify_value(cell.value))
            types.append(row_types)
        return types

    async def get_format(self, row: int, column: int) -> CellFormat:
        cell = self._ws.cell(row=row + 1, column=column + 1)
        fill_color = _rgb_of(cell.fill.fgColor) if cell.fill.fill_type == "solid" else None
        return CellFormat(
            font_color=_rgb_of(cell.font.color),
            bold=bool(cell.font.bold),
            fill_color=fill_color,
            horizontal_alignment=cell.alignment.horizontal,
        )

    async def set_format(self, region: GridRegion, fmt: CellFormat) -> None:
        font_kwargs: Dict[str, Any] = {}
        if fmt.bold is not None:
            font_kwargs["bold"] = fmt.bold
        if fmt.font_color is not None:
            font_kwargs["color"] = _hex(fmt.font_color)
        fill = PatternFill(fill_type="solid", fgColor=_hex(fmt.fill_color)) if fmt.fill_color else None

        for cell in self._iter_cells(region):
            if font_kwargs:
                font = copy.copy(cell.font)
                for key, value in font_kwargs.items():
                    setattr(font, key, value)
                cell.font = font
            if fill is not None:
                cell.fill = fill
            if fmt.horizontal_alignment:
                alignment = copy.copy(cell.alignment)
                alignment.horizontal = fmt.horizontal_alignment
                cell.alignment = alignment

    async def clear_fill(self, region: GridRegion) -> None:
        for cell in self._iter_cells(region):
            cell.fill = PatternFill(fill_type=None)

    async def create_table(self, region: GridRegion, name: Optional[str], has_headers: bool = True) -> str:
        taken = self._table_names()
        candidate = _TABLE_NAME_RE.sub("_", name) if name else ""
        if candidate and not candidate[0].isalpha() and candidate[0] != "_":
            candidate = f"T_{candidate}"
        if not candidate or candidate in taken:
            n = len(taken) + 1
            while f"Table{n}" in taken:
                n += 1
            candidate = f"Table{n}"

        table = Table(displayName=candidate, ref=region.to_a1())
        table.tableStyleInfo = TableStyleInfo(name="TableStyleMedium2", showRowStripes=True)
        if not has_headers:
            table.headerRowCount = 0
        self._ws.add_table(table)
        return candidate

    async def create_chart(self, region: GridRegion, chart_type: str, title: Optional[str] = None) -> str:
        chart = _chart_for(chart_type)
        if title:
            chart.title = title
        min_row, max_row = region.row + 1, region.last_row + 1
        min_col, max_col = region.column + 1, region.last_column + 1

        if isinstance(chart, ScatterChart):
            x_ref = Reference(self._ws, min_row=min_row + 1, max_row=max_row, min_col=min_col)
            for col in range(min_col + 1, max_col + 1):
                y_ref = Reference(self._ws, min_row=min_row, max_row=max_row, min_col=col)
                chart.series.append(Series(y_ref, x_ref, title_from_data=True))
        elif max_col > min_col:
            # 首列作为分类，其余列作为数据系列，首行为系列名
            data_ref = Reference(self._ws, min_row=min_row, max_row=max_row, min_col=min_col + 1, max_col=max_col)
            chart.add_data(data_ref, titles_from_data=True)
            chart.set_categories(Reference(self._ws, min_row=min_row + 1, max_row=max_row, min_col=min_col))
        else:
            chart.add_data(Reference(self._ws, min_row=min_row, max_row=max_row, min_col=min_col), titles_from_data=True)

        anchor = GridRegion(region.row, min(region.last_column + 2, MAX_COLUMNS - 1)).to_a1()
        self._ws.add_chart(chart, anchor)
        return anchor

    async def autofit_columns(self, region: GridRegion) -> None:
        target = self._clip(region)
        if target is None:
            return
        widths: Dict[str, int] = {}
        for cell in self._iter_cells(target):
            if cell.value is None or cell.value == "":
                continue
            widths[cell.column_letter] = max(widths.get(cell.column_letter, 0), len(str(cell.value)))
        for letter, max_len in widths.items():
            self._ws.column_dimensions[letter].width = max(max_len + 2, 8)

    async def get_selection(self) -> Optional[GridRegion]:
        selection = self._ws.sheet_view.selection
        if not selection:
            return None
        sqref = str(selection[0].sqref or selection[0].activeCell or "").split()
        return parse_region(sqref[0]) if sqref else None

    async def sync(self) -> None:
        try:
            await asyncio.to_thread(self._wb.save, self.path)
        except OSError as exc:
            raise DocumentTransactionError(
                code="DOCUMENT_SAVE_FAILED",
                message=f"Failed to save workbook {self.path}: {exc}",
                path=str(self.path),
            ) from exc
        logger.info("workbook.saved", extra={"extra": {"path": str(self.path)}})
