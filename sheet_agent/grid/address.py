"""A1 地址工具。

所有坐标都是从 0 开始的行/列下标，区域是半开矩形
``[row, row + row_count) x [column, column + column_count)``。

支持的地址写法::

    B2          单个单元格
    $B$2        绝对引用
    A1:C5       矩形区域
    A:C         整列
    3:5         整行
    Sheet1!A1   带工作表前缀（前缀会被保留，但不参与坐标计算）
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Tuple


MAX_ROWS = 1_048_576
MAX_COLUMNS = 16_384

_CELL_RE = re.compile(r"^\$?([A-Za-z]{1,3})\$?(\d+)$")
_COLUMN_RE = re.compile(r"^\$?([A-Za-z]{1,3})$")
_ROW_RE = re.compile(r"^\$?(\d+)$")
_CELL_REF_RE = re.compile(r"(\$?[A-Za-z]{1,3}\$?)(\d+)")
_ROW_RANGE_RE = re.compile(r"^(\$?)(\d+):(\$?)(\d+)$")


class AddressError(ValueError):
    """地址无法解析或超出工作表范围。"""


@dataclass(frozen=True)
class GridRegion:
    row: int
    column: int
    row_count: int = 1
    column_count: int = 1

    def __post_init__(self) -> None:
        if self.row < 0 or self.column < 0:
            raise AddressError(f"negative coordinates: ({self.row}, {self.column})")
        if self.row_count < 1 or self.column_count < 1:
            raise AddressError("region must span at least one cell")
        if self.row + self.row_count > MAX_ROWS or self.column + self.column_count > MAX_COLUMNS:
            raise AddressError(f"region exceeds sheet bounds: {self!r}")

    @property
    def last_row(self) -> int:
        return self.row + self.row_count - 1

    @property
    def last_column(self) -> int:
        return self.column + self.column_count - 1

    @property
    def is_single_cell(self) -> bool:
        return self.row_count == 1 and self.column_count == 1

    @property
    def cell_count(self) -> int:
        return self.row_count * self.column_count

    def intersects(self, other: "GridRegion") -> bool:
        """两个区域互不在对方的左、右、上、下时即相交。"""

        return not (
            self.column + self.column_count <= other.column
            or other.column + other.column_count <= self.column
            or self.row + self.row_count <= other.row
            or other.row + other.row_count <= self.row
        )

    def intersection(self, other: "GridRegion") -> Optional["GridRegion"]:
        if not self.intersects(other):
            return None
        top = max(self.row, other.row)
        left = max(self.column, other.column)
        bottom = min(self.last_row, other.last_row)
        right = min(self.last_column, other.last_column)
        return GridRegion(top, left, bottom - top + 1, right - left + 1)

    @property
    def is_unbounded(self) -> bool:
        """整行或整列引用。"""

        return self.row_count == MAX_ROWS or self.column_count == MAX_COLUMNS

    def shifted(self, rows: int) -> "GridRegion":
        return GridRegion(self.row + rows, self.column, self.row_count, self.column_count)

    def cells(self) -> Iterator[Tuple[int, int]]:
        for r in range(self.row, self.row + self.row_count):
            for c in range(self.column, self.column + self.column_count):
                yield r, c

    def to_a1(self) -> str:
        if self.row == 0 and self.row_count == MAX_ROWS:
            return f"{index_to_column(self.column)}:{index_to_column(self.last_column)}"
        start = cell_address(self.row, self.column)
        if self.is_single_cell:
            return start
        return f"{start}:{cell_address(self.last_row, self.last_column)}"


def column_to_index(letters: str) -> int:
    """"A" -> 0, "Z" -> 25, "AA" -> 26。"""

    index = 0
    for ch in letters.upper():
        if not "A" <= ch <= "Z":
            raise AddressError(f"invalid column letters: {letters!r}")
        index = index * 26 + (ord(ch) - ord("A") + 1)
    if index < 1 or index > MAX_COLUMNS:
        raise AddressError(f"column out of range: {letters!r}")
    return index - 1


def index_to_column(index: int) -> str:
    if index < 0:
        raise AddressError(f"negative column index: {index}")
    letters = ""
    c = index
    while c >= 0:
        letters = chr(ord("A") + c % 26) + letters
        c = c // 26 - 1
    return letters


def cell_address(row: int, column: int) -> str:
    return f"{index_to_column(column)}{row + 1}"


def split_sheet(address: str) -> Tuple[Optional[str], str]:
    """拆分 "Sheet1!A1:B2" 为 ("Sheet1", "A1:B2")。"""

    text = address.strip()
    if "!" in text:
        sheet, ref = text.rsplit("!", 1)
        return sheet.strip("'"), ref.strip()
    return None, text


def parse_cell(ref: str) -> Tuple[int, int]:
    match = _CELL_RE.match(ref.strip())
    if not match:
        raise AddressError(f"invalid cell reference: {ref!r}")
    row = int(match.group(2))
    if row < 1 or row > MAX_ROWS:
        raise AddressError(f"row out of range: {ref!r}")
    return row - 1, column_to_index(match.group(1))


def parse_region(address: str) -> GridRegion:
    if not isinstance(address, str) or not address.strip():
        raise AddressError(f"empty address: {address!r}")
    _, ref = split_sheet(address)
    parts = ref.split(":")
    if len(parts) == 1:
        row, column = parse_cell(parts[0])
        return GridRegion(row, column)
    if len(parts) != 2:
        raise AddressError(f"invalid range: {address!r}")
    start, end = parts[0].strip(), parts[1].strip()

    if _COLUMN_RE.match(start) and _COLUMN_RE.match(end):
        c1 = column_to_index(_COLUMN_RE.match(start).group(1))
        c2 = column_to_index(_COLUMN_RE.match(end).group(1))
        c1, c2 = min(c1, c2), max(c1, c2)
        return GridRegion(0, c1, MAX_ROWS, c2 - c1 + 1)
    if _ROW_RE.match(start) and _ROW_RE.match(end):
        r1 = int(_ROW_RE.match(start).group(1)) - 1
        r2 = int(_ROW_RE.match(end).group(1)) - 1
        if min(r1, r2) < 0:
            raise AddressError(f"row out of range: {address!r}")
        r1, r2 = min(r1, r2), max(r1, r2)
        return GridRegion(r1, 0, r2 - r1 + 1, MAX_COLUMNS)

    r1, c1 = parse_cell(start)
    r2, c2 = parse_cell(end)
    top, bottom = min(r1, r2), max(r1, r2)
    left, right = min(c1, c2), max(c1, c2)
    return GridRegion(top, left, bottom - top + 1, right - left + 1)


def offset_address(address: str, rows: int) -> str:
    """把地址中的所有行号下移 rows 行："A1:B2" + 10 -> "A11:B12"。

    整列引用（"A:C"）不含行号，原样返回；工作表前缀保持不变。
    """

    if not address or rows == 0:
        return address
    sheet, ref = split_sheet(address)

    def _shift(row_text: str) -> str:
        row = int(row_text) + rows
        if row < 1 or row > MAX_ROWS:
            raise AddressError(f"offset moves {address!r} outside the sheet")
        return str(row)

    row_range = _ROW_RANGE_RE.match(ref)
    if row_range:
        shifted = (
            f"{row_range.group(1)}{_shift(row_range.group(2))}:"
            f"{row_range.group(3)}{_shift(row_range.group(4))}"
        )
    else:
        shifted = _CELL_REF_RE.sub(lambda m: m.group(1) + _shift(m.group(2)), ref)
    if sheet is None:
        return shifted
    prefix = address.strip().rsplit("!", 1)[0]
    return f"{prefix}!{shifted}"


def bounding_region(regions: Iterable[GridRegion]) -> Optional[GridRegion]:
    """返回包含所有区域的最小矩形；输入为空时返回 None。"""

    items = list(regions)
    if not items:
        return None
    top = min(r.row for r in items)
    left = min(r.column for r in items)
    bottom = max(r.last_row for r in items)
    right = max(r.last_column for r in items)
    return GridRegion(top, left, bottom - top + 1, right - left + 1)
