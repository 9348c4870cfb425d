"""表格文档抽象接口。

ActionExecutor 只依赖此协议，不直接依赖 openpyxl 或任何宿主 API：

- InMemoryGrid：内存实现，用于测试与演示。
- WorkbookGrid：基于 openpyxl 的 .xlsx 文件实现。

写操作进入当前事务，``sync()`` 时统一提交；读操作会先提交此前排队的写操作，
再返回最新内容（与 Office 宿主的 load + sync 语义一致）。
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, List, Optional, Protocol

from .address import GridRegion


ERROR_LITERALS = frozenset({
    "#DIV/0!",
    "#N/A",
    "#NAME?",
    "#NULL!",
    "#NUM!",
    "#REF!",
    "#VALUE!",
    "#SPILL!",
    "#CALC!",
})


class CellValueType(str, Enum):
    EMPTY = "Empty"
    STRING = "String"
    DOUBLE = "Double"
    BOOLEAN = "Boolean"
    ERROR = "Error"


def classify_value(value: Any) -> CellValueType:
    if value is None or value == "":
        return CellValueType.EMPTY
    if isinstance(value, bool):
        return CellValueType.BOOLEAN
    if isinstance(value, (int, float)):
        return CellValueType.DOUBLE
    if isinstance(value, str) and value.strip().upper() in ERROR_LITERALS:
        return CellValueType.ERROR
    return CellValueType.STRING


@dataclass(frozen=True)
class CellFormat:
    """单元格格式；None 字段表示不修改。颜色统一为 "#RRGGBB"。"""

    font_color: Optional[str] = None
    bold: Optional[bool] = None
    fill_color: Optional[str] = None
    horizontal_alignment: Optional[str] = None

    def merged(self, other: "CellFormat") -> "CellFormat":
        """用 other 中非 None 的字段覆盖当前格式。"""

        updates = {k: v for k, v in other.__dict__.items() if v is not None}
        return replace(self, **updates)

    @property
    def is_empty(self) -> bool:
        return all(v is None for v in self.__dict__.values())


class Grid(Protocol):
    """ActionExecutor 使用的表格接口（当前活动工作表）。"""

    async def get_used_region(self) -> GridRegion:
        """返回包含所有非空单元格的最小矩形；空表返回 A1。"""
        ...

    async def get_values(self, region: GridRegion) -> List[List[Any]]:
        ...

    async def set_values(self, region: GridRegion, values: List[List[Any]]) -> None:
        ...

    async def get_formulas(self, region: GridRegion) -> List[List[Any]]:
        ...

    async def set_formulas(self, region: GridRegion, formulas: List[List[Any]]) -> None:
        ...

    async def get_value_types(self, region: GridRegion) -> List[List[CellValueType]]:
        ...

    async def get_format(self, row: int, column: int) -> CellFormat:
        ...

    async def set_format(self, region: GridRegion, fmt: CellFormat) -> None:
        ...

    async def clear_fill(self, region: GridRegion) -> None:
        ...

    async def create_table(self, region: GridRegion, name: Optional[str], has_headers: bool = True) -> str:
        """创建表格并返回最终使用的表名（名称冲突时由实现自动改名）。"""
        ...

    async def create_chart(self, region: GridRegion, chart_type: str, title: Optional[str] = None) -> str:
        """基于数据区域创建图表，返回图表锚点地址。"""
        ...

    async def autofit_columns(self, region: GridRegion) -> None:
        ...

    async def get_selection(self) -> Optional[GridRegion]:
        ...

    async def sync(self) -> None:
        """提交当前事务中排队的修改。"""
        ...
