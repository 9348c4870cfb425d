"""表格抽象与实现。

- address: A1 地址解析与 GridRegion。
- base: Grid 协议。
- memory / workbook: 内存实现与 openpyxl 实现。
- context: 注入 system prompt 的表格上下文摘要。
"""

from .address import AddressError, GridRegion, offset_address, parse_region
from .base import CellFormat, CellValueType, Grid
from .memory import InMemoryGrid

__all__ = [
    "AddressError",
    "CellFormat",
    "CellValueType",
    "Grid",
    "GridRegion",
    "InMemoryGrid",
    "offset_address",
    "parse_region",
]
