import json

import pytest

from sheet_agent.domain.exceptions import ApiError, DocumentTransactionError, NetworkError, ValidationError
from sheet_agent.domain.models import StreamDelta
from sheet_agent.domain.transcript import Transcript
from sheet_agent.flows.runner import ReActOrchestrator
from sheet_agent.flows.state import ReActConfig
from sheet_agent.grid.memory import InMemoryGrid


ROWS = [["Name", "Amount"], ["a", 10], ["b", 20], ["c", 30]]


class ScriptedProvider:
    """按顺序回放预设回复；回复中的异常对象在到达时抛出。"""

    name = "fake"

    def __init__(self, *turns):
        self.turns = list(turns)
        self.requests = []

    async def stream_chat(self, req):
        self.requests.append(req)
        for item in self.turns.pop(0):
            if isinstance(item, BaseException):
                raise item
            yield item

    async def list_models(self):
        return []


def _plan(*actions, message=None):
    body = {"thought": "t", "actions": [{"type": t, "params": p} for t, p in actions]}
    if message:
        body["message"] = message
    return f"```json\n{json.dumps(body, ensure_ascii=False)}\n```"


def _say(text, chunk=7):
    return [StreamDelta(content=text[i:i + chunk]) for i in range(0, len(text), chunk)]


def _orchestrator(provider, grid=None, **config):
    grid = grid or InMemoryGrid([list(r) for r in ROWS])
    transcript = Transcript()
    orchestrator = ReActOrchestrator(provider, grid, transcript, ReActConfig(model="fake-model", **config))
    return orchestrator, grid, transcript


@pytest.mark.asyncio
async def test_read_then_write_takes_two_rounds():
    provider = ScriptedProvider(
        [StreamDelta(reasoning="先看看数据范围")] + _say(_plan(("getUsedRangeInfo", {}))),
        _say(_plan(("setCell", {"address": "B5", "value": "=SUM(B2:B4)"}), message="已在 B5 写入合计。")),
    )
    orchestrator, grid, transcript = _orchestrator(provider)
    events = []

    result = await orchestrator.run("sum column B", on_event=events.append)

    assert result.status == "executed"
    assert result.rounds == 2
    assert result.written_targets == ["B5"]
    assert result.observations == ["Used range: A1:B4, 4 rows x 2 cols."]
    assert result.display_text == "已在 B5 写入合计。"
    assert grid.value_at("B5") == "=SUM(B2:B4)"

    assert len(provider.requests) == 2
    first, second = provider.requests
    assert first.model == "fake-model"
    assert first.messages[0].role == "system"
    assert "Name,Amount" in first.messages[0].content
    assert [m.role for m in second.messages] == ["system", "user", "assistant", "user"]
    followup = second.messages[-1].content
    assert followup.startswith('Original user request: "sum column B"')
    assert "Used range: A1:B4, 4 rows x 2 cols." in followup

    assert [m.role for m in transcript] == ["user", "assistant", "user", "assistant"]
    assert transcript.messages()[2].content == "System Observation:\nUsed range: A1:B4, 4 rows x 2 cols."

    kinds = [e.kind for e in events]
    assert kinds[-1] == "final"
    assert kinds.index("reasoning_start") < kinds.index("reasoning_update") < kinds.index("content")
    assert events[-1].result is result
    assert {e.round for e in events if e.kind == "content"} == {1, 2}


@pytest.mark.asyncio
async def test_round_limit_stops_further_reads():
    provider = ScriptedProvider(
        _say(_plan(("findData", {"keyword": "b"}))),
        _say(_plan(("readRange", {"address": "A1:B2"}))),
        _say("unused"),
    )
    orchestrator, _, _ = _orchestrator(provider)
    result = await orchestrator.run("where is b?")
    assert len(provider.requests) == 2
    assert result.rounds == 2
    assert result.observations == ['Found "b" in cells: A3', "Range A1:B2 contents:\nName,Amount\na,10"]

    provider = ScriptedProvider(_say(_plan(("getUsedRangeInfo", {}))))
    orchestrator, _, _ = _orchestrator(provider, max_rounds=1)
    result = await orchestrator.run("how big?")
    assert len(provider.requests) == 1
    assert result.status == "executed"


@pytest.mark.asyncio
async def test_plain_answer():
    provider = ScriptedProvider(_say("你好！我可以帮你处理表格。"))
    orchestrator, grid, transcript = _orchestrator(provider)
    result = await orchestrator.run("你好")
    assert result.status == "answered"
    assert result.display_text == "你好！我可以帮你处理表格。"
    assert result.rounds == 1
    assert len(transcript) == 2
    assert grid.sync_count == 0


@pytest.mark.asyncio
async def test_transport_failure_keeps_session_usable():
    provider = ScriptedProvider(
        [ApiError(code="API_ERROR", message="Invalid model", http_status=400)],
        _say("半截回复") + [NetworkError(code="NETWORK_ERROR", message="connection reset")],
        _say("ok"),
    )
    orchestrator, _, transcript = _orchestrator(provider)

    result = await orchestrator.run("hi")
    assert result.status == "failed"
    assert result.error_code == "API_ERROR"
    assert result.display_text == "❌ Invalid model"

    result = await orchestrator.run("hi again")
    assert result.status == "failed"
    assert result.error == "connection reset"
    assert [m.content for m in transcript] == ["hi", "hi again"]

    result = await orchestrator.run("third time")
    assert result.status == "answered"
    assert result.content == "ok"


@pytest.mark.asyncio
async def test_failure_in_second_round():
    provider = ScriptedProvider(
        _say(_plan(("getUsedRangeInfo", {}))),
        [NetworkError(code="NETWORK_ERROR", message="timeout")],
    )
    orchestrator, _, _ = _orchestrator(provider)
    result = await orchestrator.run("sum column B")
    assert result.status == "failed"
    assert result.rounds == 2
    assert result.observations == ["Used range: A1:B4, 4 rows x 2 cols."]
    assert result.written_targets == []


class FailingGrid(InMemoryGrid):
    async def set_values(self, region, values):
        raise DocumentTransactionError(code="DOCUMENT_WRITE_FAILED", message="connection lost")


@pytest.mark.asyncio
async def test_document_error_fails_the_turn():
    provider = ScriptedProvider(_say(_plan(("setCell", {"address": "D1", "value": 1}))))
    orchestrator, _, _ = _orchestrator(provider, grid=FailingGrid([list(r) for r in ROWS]))
    result = await orchestrator.run("write 1 to D1")
    assert result.status == "failed"
    assert result.error == "setCell: connection lost"
    assert result.error_code == "DOCUMENT_WRITE_FAILED"


@pytest.mark.asyncio
async def test_collision_policy_applies_to_user_named_cells():
    plan = _say(_plan(("setCell", {"address": "B2", "value": 99})))

    orchestrator, grid, _ = _orchestrator(ScriptedProvider(list(plan)))
    result = await orchestrator.run("把 B2 改成 99")
    assert result.written_targets == ["B2"]
    assert grid.value_at("B2") == 99

    orchestrator, grid, _ = _orchestrator(ScriptedProvider(list(plan)), collision_policy="offset")
    result = await orchestrator.run("把 B2 改成 99")
    assert result.written_targets == ["B8"]
    assert grid.value_at("B2") == 10


@pytest.mark.asyncio
async def test_scan_and_fix_errors_in_place():
    provider = ScriptedProvider(
        _say(_plan(("scanForErrors", {}), ("readRange", {"address": "A1:B3"}))),
        _say(_plan(("fixError", {"address": "B2", "value": 0}), message="已修复 B2。")),
    )
    grid = InMemoryGrid([["Name", "Ratio"], ["a", "#DIV/0!"], ["b", 0.5]])
    orchestrator, grid, _ = _orchestrator(provider, grid=grid)

    result = await orchestrator.run("检查并修复表格中的错误")

    assert result.status == "executed"
    assert result.rounds == 2
    assert result.observations == ["Range A1:B3 contents:\nName,Ratio\na,#DIV/0!\nb,0.5"]
    assert result.written_targets == ["B2"]
    assert grid.value_at("B2") == 0
    assert grid.format_at("B2").fill_color is None
    assert grid.value_at("B7") == ""


class BrokenProvider(ScriptedProvider):
    async def stream_chat(self, req):
        self.requests.append(req)
        raise ValidationError(code="MISSING_API_KEY", message="LLM_API_KEY not set")
        yield


@pytest.mark.asyncio
async def test_configuration_error_rolls_back_user_message():
    orchestrator, _, transcript = _orchestrator(BrokenProvider())
    transcript.append("user", "hi")
    transcript.append("assistant", "hello")

    with pytest.raises(ValidationError):
        await orchestrator.run("sum column B")

    assert [m.content for m in transcript] == ["hi", "hello"]


@pytest.mark.asyncio
async def test_system_prompt_override():
    provider = ScriptedProvider(_say("ok"))
    orchestrator, _, _ = _orchestrator(provider, system_prompt="You are terse.")
    await orchestrator.run("hi")
    assert provider.requests[0].messages[0].content == "You are terse."
