import pytest

from sheet_agent.domain.models import StreamDelta
from sheet_agent.streaming.splitter import ReasoningSplitter, split_stream


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_reasoning_then_content_events():
    clock = FakeClock()
    splitter = ReasoningSplitter(clock=clock)

    clock.now = 10.0
    events = splitter.feed(StreamDelta(reasoning="思考1"))
    assert [e.kind for e in events] == ["reasoning_start", "reasoning_update"]
    assert events[1].cumulative == "思考1"
    assert events[1].elapsed_seconds == 0
    assert splitter.reasoning_active

    clock.now = 11.6
    events = splitter.feed(StreamDelta(reasoning="思考2", content="答"))
    assert [e.kind for e in events] == ["reasoning_update", "content"]
    assert events[0].cumulative == "思考1思考2"
    assert events[0].elapsed_seconds == 2
    assert events[1].fragment == "答"
    assert not splitter.reasoning_active

    events = splitter.feed(StreamDelta(content="案"))
    assert [(e.kind, e.fragment, e.cumulative) for e in events] == [("content", "案", "答案")]

    response = splitter.finish()
    assert response.content == "答案"
    assert response.reasoning == "思考1思考2"
    assert response.reasoning_duration_seconds == 2


def test_elapsed_seconds_round_half_up():
    clock = FakeClock()
    splitter = ReasoningSplitter(clock=clock)
    splitter.feed(StreamDelta(reasoning="a"))
    clock.now = 2.5
    assert splitter.feed(StreamDelta(reasoning="b"))[0].elapsed_seconds == 3
    clock.now = 0.5
    assert splitter.feed(StreamDelta(reasoning="c"))[0].elapsed_seconds == 1


def test_content_only_stream_has_no_reasoning():
    splitter = ReasoningSplitter()
    events = splitter.feed(StreamDelta(content="hello"))
    assert [e.kind for e in events] == ["content"]
    response = splitter.finish()
    assert response.content == "hello"
    assert response.reasoning == ""
    assert response.reasoning_duration_seconds is None
    assert not splitter.reasoning_started


def test_no_fragment_is_dropped_for_any_interleaving():
    deltas = [
        StreamDelta(reasoning="r1"),
        StreamDelta(content="c1"),
        StreamDelta(reasoning="r2", content="c2"),
        StreamDelta(),
        StreamDelta(content="c3"),
        StreamDelta(reasoning="r3"),
    ]
    orders = [deltas, list(reversed(deltas)), deltas[2:] + deltas[:2]]
    for order in orders:
        splitter = ReasoningSplitter()
        for delta in order:
            splitter.feed(delta)
        response = splitter.finish()
        assert response.content == "".join(d.content for d in order if d.content)
        assert response.reasoning == "".join(d.reasoning for d in order if d.reasoning)


@pytest.mark.asyncio
async def test_split_stream_async():
    async def deltas():
        yield StreamDelta(reasoning="r")
        yield StreamDelta(content="a")
        yield StreamDelta(content="b")

    splitter = ReasoningSplitter()
    events = [e async for e in split_stream(deltas(), splitter)]
    assert [e.kind for e in events] == ["reasoning_start", "reasoning_update", "content", "content"]
    assert events[-1].cumulative == "ab"
    assert splitter.finish().content == "ab"
