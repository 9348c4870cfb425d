from datetime import date

import pytest

from sheet_agent.domain.exceptions import DocumentTransactionError
from sheet_agent.grid.context import build_context_summary
from sheet_agent.grid.memory import InMemoryGrid
from sheet_agent.prompts import build_observation_prompt, load_system_prompt


ROWS = [["Name", "Amount"], ["a", 10], ["b", 20], ["c", 30]]


@pytest.mark.asyncio
async def test_context_with_selection_and_preview():
    grid = InMemoryGrid(ROWS, selection="A1:B2")
    summary = await build_context_summary(grid, preview_rows=2)
    assert summary == (
        "==当前选中区域: A1:B2==\nName, Amount\na, 10\n\n"
        "==表格数据概览 (前 2 行)==\nName,Amount\na,10"
    )


@pytest.mark.asyncio
async def test_large_selection_shows_address_only():
    grid = InMemoryGrid(ROWS, selection="A:A")
    summary = await build_context_summary(grid)
    assert summary.startswith("==当前选中区域: A:A== (区域过大，仅显示地址)")
    assert "==表格数据概览 (前 4 行)==" in summary


@pytest.mark.asyncio
async def test_empty_and_unreadable_sheet():
    assert await build_context_summary(InMemoryGrid()) == "当前表格为空。"

    class BrokenGrid(InMemoryGrid):
        async def get_used_region(self):
            raise DocumentTransactionError(code="DOCUMENT_READ_FAILED", message="gone")

    assert await build_context_summary(BrokenGrid()) == "无法读取表格上下文。"


def test_system_prompt_placeholders():
    prompt = load_system_prompt("==表格数据概览==", today=date(2026, 1, 2))
    assert "2026-01-02" in prompt
    assert "==表格数据概览==" in prompt
    assert "- setCell:" in prompt
    assert "$context" not in prompt
    assert "$actions" not in prompt


def test_observation_prompt():
    text = build_observation_prompt("sum column B", "Used range: A1:B4, 4 rows x 2 cols.")
    assert text.startswith('Original user request: "sum column B"')
    assert "Here is what I found:\nUsed range: A1:B4, 4 rows x 2 cols." in text
    assert "you MUST now generate the JSON actions" in text
