"""Tests for stream frames and the detached server-side pump."""

import asyncio

import pytest

from cnpj_pull.api.streaming import DetachedStream, wait_for_background_runs
from cnpj_pull.models import (
    CompleteEvent,
    ErrorEvent,
    MatchEvent,
    ProgressSnapshot,
    ResolvedEntity,
    RunStats,
    SearchProgressEvent,
    StatusEvent,
)
from cnpj_pull.models.events import FrameDecoder, decode_event, encode_frame, is_terminal


def make_match() -> MatchEvent:
    entity = ResolvedEntity(cnpj="11222333000181", legal_name="Teste Ltda", status="ATIVA", source="test")
    return MatchEvent(entity=entity, progress=ProgressSnapshot(processed=1, matched=1))


class TestFrames:
    """Tests for frame encoding and decoding."""

    def test_encode_frame(self):
        frame = encode_frame(StatusEvent(message="hello"))
        assert frame.startswith("data: {")
        assert frame.endswith("\n\n")
        assert '"type":"status"' in frame

    def test_decode_picks_event_type(self):
        event = decode_event(encode_frame(make_match())[len("data: "):].strip())
        assert isinstance(event, MatchEvent)
        assert event.entity.cnpj == "11222333000181"

    def test_decoder_handles_split_frames(self):
        frames = encode_frame(StatusEvent(message="a")) + encode_frame(make_match())
        decoder = FrameDecoder()
        events = []
        for i in range(0, len(frames), 7):
            events.extend(decoder.feed(frames[i:i + 7]))
        assert [e.type for e in events] == ["status", "match"]
        assert decoder.pending == ""

    def test_decoder_keeps_incomplete_frame(self):
        decoder = FrameDecoder()
        frame = encode_frame(StatusEvent(message="a"))
        assert decoder.feed(frame[:-1]) == []
        assert [e.type for e in decoder.feed(frame[-1:])] == ["status"]

    def test_decoder_skips_garbage(self):
        decoder = FrameDecoder()
        chunk = "data: not json\n\n" + encode_frame(ErrorEvent(message="boom"))
        events = decoder.feed(chunk)
        assert [e.type for e in events] == ["error"]

    def test_decoder_accepts_crlf(self):
        frame = encode_frame(StatusEvent(message="a")).replace("\n", "\r\n")
        assert len(FrameDecoder().feed(frame)) == 1

    def test_terminal_events(self):
        assert is_terminal(CompleteEvent(stats=RunStats()))
        assert is_terminal(ErrorEvent(message="x"))
        assert not is_terminal(SearchProgressEvent(queries_completed=1, total_queries=4, candidates_found=0))


class TestDetachedStream:
    """Tests for run continuation after the reader leaves."""

    @pytest.mark.asyncio
    async def test_frames_in_order(self):
        async def events():
            yield StatusEvent(message="start")
            yield make_match()
            yield CompleteEvent(stats=RunStats(matched=1))

        stream = DetachedStream(events())
        frames = [frame async for frame in stream.frames()]
        assert [decode_event(f[len("data: "):].strip()).type for f in frames] == ["status", "match", "complete"]

    @pytest.mark.asyncio
    async def test_run_continues_after_disconnect(self):
        produced = []

        async def events():
            for i in range(5):
                await asyncio.sleep(0.01)
                produced.append(i)
                yield StatusEvent(message=str(i))
            produced.append("done")
            yield CompleteEvent(stats=RunStats())

        stream = DetachedStream(events())
        reader = stream.frames()
        first = await reader.__anext__()
        assert '"message":"0"' in first

        await reader.aclose()
        assert stream.detached

        await asyncio.wait_for(stream.task, timeout=2)
        assert produced == [0, 1, 2, 3, 4, "done"]

    @pytest.mark.asyncio
    async def test_failing_run_still_ends_stream(self):
        async def events():
            yield StatusEvent(message="start")
            raise RuntimeError("boom")

        stream = DetachedStream(events())
        frames = [frame async for frame in stream.frames()]
        assert len(frames) == 1

    @pytest.mark.asyncio
    async def test_wait_for_background_runs(self):
        produced = []

        async def events():
            yield StatusEvent(message="start")
            for i in range(3):
                await asyncio.sleep(0.01)
                produced.append(i)
            yield CompleteEvent(stats=RunStats())

        stream = DetachedStream(events())
        reader = stream.frames()
        await reader.__anext__()
        await reader.aclose()

        await wait_for_background_runs()
        assert stream.task.done()
        assert produced == [0, 1, 2]
