"""财务建模常用的样式约定。

- input: 蓝色字体（手工输入值）
- calculation: 黑色字体（公式）
- external: 红色字体（外部链接）
- link: 绿色字体（内部链接）
- header: 加粗、浅灰填充、居中
"""

import re
from typing import Any, Dict, Mapping

from sheet_agent.grid.base import CellFormat


STYLE_PRESETS: Mapping[str, CellFormat] = {
    "input": CellFormat(font_color="#0000FF"),
    "calculation": CellFormat(font_color="#000000"),
    "external": CellFormat(font_color="#FF0000"),
    "link": CellFormat(font_color="#008000"),
    "header": CellFormat(bold=True, fill_color="#E0E0E0", horizontal_alignment="center"),
}

ERROR_HIGHLIGHT_FILL = "#FFCCCC"

NAMED_COLORS: Dict[str, str] = {
    "black": "#000000",
    "white": "#FFFFFF",
    "red": "#FF0000",
    "green": "#008000",
    "blue": "#0000FF",
    "yellow": "#FFFF00",
    "orange": "#FFA500",
    "gray": "#808080",
    "grey": "#808080",
    "lightgray": "#D3D3D3",
    "purple": "#800080",
}

_HEX_RE = re.compile(r"^#?([0-9A-Fa-f]{6})$")
_SHORT_HEX_RE = re.compile(r"^#?([0-9A-Fa-f]{3})$")


def normalize_color(value: Any) -> str:
    """"blue" / "#00f" / "0000FF" -> "#0000FF"；无法识别时抛 ValueError。"""

    text = str(value).strip()
    named = NAMED_COLORS.get(text.lower())
    if named:
        return named
    match = _HEX_RE.match(text)
    if match:
        return "#" + match.group(1).upper()
    match = _SHORT_HEX_RE.match(text)
    if match:
        return "#" + "".join(ch * 2 for ch in match.group(1)).upper()
    raise ValueError(f"unsupported color: {value!r}")


def build_format(params: Mapping[str, Any]) -> CellFormat:
    """先套用 style 预设，再叠加 bold / color / fill 等显式覆盖。"""

    fmt = CellFormat()
    style = params.get("style")
    if isinstance(style, str) and style in STYLE_PRESETS:
        fmt = fmt.merged(STYLE_PRESETS[style])
    overrides = CellFormat(
        bold=True if params.get("bold") else None,
        font_color=normalize_color(params["color"]) if params.get("color") else None,
        fill_color=normalize_color(params["fill"]) if params.get("fill") else None,
    )
    return fmt.merged(overrides)
