import pytest
from openpyxl import Workbook, load_workbook

from sheet_agent.actions.executor import ActionExecutor
from sheet_agent.domain.exceptions import DocumentTransactionError
from sheet_agent.domain.plan import Action, ActionPlan
from sheet_agent.grid.context import build_context_summary
from sheet_agent.grid.workbook import WorkbookGrid


@pytest.mark.asyncio
async def test_plan_is_saved_to_xlsx(tmp_path):
    path = tmp_path / "book.xlsx"
    grid = await WorkbookGrid.open(path, create=True)
    plan = ActionPlan(actions=[
        Action("setRange", {"range": "A1:B3", "values": [["Name", "Amount"], ["a", 10], ["b", 20]]}),
        Action("setCell", {"address": "B4", "value": "=SUM(B2:B3)"}),
        Action("formatRange", {"range": "A1:B1", "style": "header"}),
        Action("createTable", {"range": "A1:B3", "name": "Sales"}),
        Action("createChart", {"sourceData": "A1:B3", "type": "Line", "title": "Amounts"}),
        Action("autoFit", {"range": "A:B"}),
    ])

    result = await ActionExecutor(grid).execute_plan(plan)

    assert result.failures == []
    assert result.row_offset == 0
    assert result.outcomes[3].detail == "table Sales"
    assert result.outcomes[4].detail == "chart at D1"

    ws = load_workbook(path).active
    assert ws["A2"].value == "a"
    assert ws["B4"].value == "=SUM(B2:B3)"
    assert ws["A1"].font.b is True
    assert ws["B1"].fill.fgColor.rgb.endswith("E0E0E0")
    assert ws["A1"].alignment.horizontal == "center"
    assert "Sales" in ws.tables
    assert ws.column_dimensions["B"].width == 13


@pytest.mark.asyncio
async def test_format_round_trip_in_memory(tmp_path):
    grid = WorkbookGrid(Workbook(), tmp_path / "x.xlsx")
    plan = ActionPlan(actions=[
        Action("setCell", {"address": "A1", "value": 5}),
        Action("formatRange", {"range": "A1", "style": "input", "bold": True}),
    ])
    await ActionExecutor(grid).execute_plan(plan)
    fmt = await grid.get_format(0, 0)
    assert fmt.font_color == "#0000FF"
    assert fmt.bold is True
    assert fmt.fill_color is None


@pytest.mark.asyncio
async def test_scan_marks_error_literals(tmp_path):
    wb = Workbook()
    ws = wb.active
    ws["A1"] = "Ratio"
    ws["A2"] = "#DIV/0!"
    ws["A3"] = "=1/0"
    grid = WorkbookGrid(wb, tmp_path / "errors.xlsx")

    result = await ActionExecutor(grid).execute_plan(ActionPlan(actions=[Action("scanForErrors")]))

    assert result.outcomes[0].detail == "Found 1 errors."
    assert (await grid.get_format(1, 0)).fill_color == "#FFCCCC"
    assert (await grid.get_format(2, 0)).fill_color is None


@pytest.mark.asyncio
async def test_open_missing_file_fails(tmp_path):
    with pytest.raises(DocumentTransactionError) as exc_info:
        await WorkbookGrid.open(tmp_path / "nope.xlsx")
    assert exc_info.value.code == "DOCUMENT_OPEN_FAILED"


def test_unknown_sheet(tmp_path):
    with pytest.raises(DocumentTransactionError) as exc_info:
        WorkbookGrid(Workbook(), tmp_path / "x.xlsx", sheet="Nope")
    assert exc_info.value.code == "SHEET_NOT_FOUND"


@pytest.mark.asyncio
async def test_save_failure_is_a_document_error(tmp_path):
    grid = WorkbookGrid(Workbook(), tmp_path / "missing-dir" / "x.xlsx")
    with pytest.raises(DocumentTransactionError) as exc_info:
        await grid.sync()
    assert exc_info.value.code == "DOCUMENT_SAVE_FAILED"


@pytest.mark.asyncio
async def test_new_workbook_context_is_empty(tmp_path):
    grid = await WorkbookGrid.open(tmp_path / "new.xlsx", create=True)
    summary = await build_context_summary(grid)
    assert summary.endswith("当前表格为空。")


@pytest.mark.asyncio
async def test_control_characters_fail_only_that_action(tmp_path):
    path = tmp_path / "book.xlsx"
    grid = await WorkbookGrid.open(path, create=True)
    plan = ActionPlan(actions=[
        Action("setCell", {"address": "A1", "value": "bad\x01text"}),
        Action("setCell", {"address": "A2", "value": "ok"}),
    ])

    result = await ActionExecutor(grid).execute_plan(plan)

    assert [o.status for o in result.outcomes] == ["failed", "ok"]
    assert result.outcomes[0].error == "setCell: value for A1 contains characters not allowed in worksheets"
    assert result.written_targets == ["A2"]
    assert load_workbook(path).active["A2"].value == "ok"
