import pytest

from sheet_agent.agents.session import AgentSession, _default_model
from sheet_agent.domain.exceptions import ValidationError
from sheet_agent.domain.models import StreamDelta
from sheet_agent.grid.memory import InMemoryGrid


class EchoProvider:
    def __init__(self, name="fake", fail=None):
        self.name = name
        self.fail = fail
        self.requests = []

    async def stream_chat(self, req):
        self.requests.append(req)
        if self.fail is not None:
            raise self.fail
        yield StreamDelta(reasoning="嗯")
        yield StreamDelta(content="收到：" + req.messages[-1].content)

    async def list_models(self):
        return []


class SettingsStub:
    default_model = None


def _session(provider, **kwargs):
    return AgentSession(InMemoryGrid([["x"]]), provider, model="fake-model", **kwargs)


@pytest.mark.asyncio
async def test_stream_yields_events_then_final():
    session = _session(EchoProvider())
    events = [event async for event in session.stream("hi")]
    kinds = [e.kind for e in events]
    assert kinds[0] == "status"
    assert "reasoning_start" in kinds
    assert kinds[-1] == "final"
    assert events[-1].result.display_text == "收到：hi"


@pytest.mark.asyncio
async def test_history_is_shared_and_reset():
    provider = EchoProvider()
    session = _session(provider, max_history=3)
    await session.run("one")
    await session.run("two")
    assert [m.content for m in session.transcript] == ["收到：one", "two", "收到：two"]
    assert [m.role for m in provider.requests[1].messages] == ["system", "user", "assistant", "user"]

    session.reset()
    await session.run("three")
    assert len(provider.requests[2].messages) == 2


@pytest.mark.asyncio
async def test_stream_propagates_unexpected_errors():
    session = _session(EchoProvider(fail=RuntimeError("boom")))
    with pytest.raises(RuntimeError, match="boom"):
        async for _ in session.stream("hi"):
            pass


def test_default_model_resolution():
    assert _default_model(EchoProvider("zhipu"), SettingsStub()) == "glm-4-flash"

    class Configured:
        default_model = "deepseek-reasoner"

    assert _default_model(EchoProvider("zhipu"), Configured()) == "deepseek-reasoner"
    with pytest.raises(ValidationError) as exc_info:
        _default_model(EchoProvider("my-gateway"), SettingsStub())
    assert exc_info.value.code == "MISSING_MODEL"
