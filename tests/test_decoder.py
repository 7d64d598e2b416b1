"""Tests for the resynchronizing frame decoder."""

import asyncio

import pytest

from sirf_binary_mcp.protocol.framing import (
    END_SEQUENCE,
    START_SEQUENCE,
    FrameDecoder,
    build_frame,
)


def _chunks_reader(chunks):
    """Coroutine function returning each chunk in turn, then b''."""
    pending = list(chunks)

    async def read() -> bytes:
        await asyncio.sleep(0)
        return pending.pop(0) if pending else b""

    return read


def test_garbage_before_frames_is_dropped():
    """Leading noise is discarded and both frames come out in order."""
    decoder = FrameDecoder()
    decoder.feed(
        b"\x13\x37\xB3\x00"
        + START_SEQUENCE + b"frame1" + END_SEQUENCE
        + START_SEQUENCE + b"frame2" + END_SEQUENCE
    )
    assert list(decoder.frames()) == [b"frame1", b"frame2"]
    assert decoder.bytes_discarded == 4
    assert decoder.frames_decoded == 2


def test_stale_end_marker_before_start():
    """A partial frame ending before the next start marker is dropped."""
    decoder = FrameDecoder()
    decoder.feed(b"tail" + END_SEQUENCE + START_SEQUENCE + b"good" + END_SEQUENCE)
    assert list(decoder.frames()) == [b"good"]


def test_truncated_frame_across_reads():
    """A frame split across two feeds is emitted once, intact."""
    decoder = FrameDecoder()
    decoder.feed(START_SEQUENCE + b"frame1")
    assert list(decoder.frames()) == []
    decoder.feed(b"_tail" + END_SEQUENCE)
    assert list(decoder.frames()) == [b"frame1_tail"]
    assert decoder.buffered == 0


def test_marker_split_across_reads():
    """Start and end markers split byte-by-byte still frame correctly."""
    decoder = FrameDecoder()
    frame = build_frame(b"\x06abc")
    bodies = []
    for i in range(len(frame)):
        decoder.feed(frame[i : i + 1])
        bodies.extend(decoder.frames())
    assert bodies == [frame[2:-2]]


def test_noise_without_markers_does_not_accumulate():
    """Bytes that can never start a frame are not kept around."""
    decoder = FrameDecoder()
    decoder.feed(b"\x00" * 5000)
    assert list(decoder.frames()) == []
    assert decoder.buffered <= 1


def test_bytes_before_unfinished_frame_are_dropped():
    """Noise ahead of a start marker goes while the frame waits for its end."""
    decoder = FrameDecoder()
    decoder.feed(b"noise" + START_SEQUENCE + b"part")
    assert list(decoder.frames()) == []
    assert decoder.buffered == len(START_SEQUENCE) + 4
    decoder.feed(END_SEQUENCE)
    assert list(decoder.frames()) == [b"part"]


def test_end_marker_without_start_waits():
    """An end marker with no start yet emits nothing."""
    decoder = FrameDecoder()
    decoder.feed(b"xx" + END_SEQUENCE)
    assert list(decoder.frames()) == []
    decoder.feed(START_SEQUENCE + b"ok" + END_SEQUENCE)
    assert list(decoder.frames()) == [b"ok"]


def test_empty_body_between_markers():
    decoder = FrameDecoder()
    decoder.feed(START_SEQUENCE + END_SEQUENCE)
    assert list(decoder.frames()) == [b""]


def test_async_iteration_across_chunks():
    """Async iteration suspends for more input and stops at end of stream."""
    stream = (
        b"\xFF\xFF"
        + build_frame(b"\x02\x01")
        + build_frame(b"\x06\x02")
    )
    chunks = [stream[i : i + 3] for i in range(0, len(stream), 3)]
    decoder = FrameDecoder(read=_chunks_reader(chunks))

    async def collect():
        return [body async for body in decoder]

    bodies = asyncio.run(collect())
    assert bodies == [build_frame(b"\x02\x01")[2:-2], build_frame(b"\x06\x02")[2:-2]]


def test_async_iteration_requires_reader():
    decoder = FrameDecoder()

    async def first():
        return await decoder.__anext__()

    with pytest.raises(TypeError):
        asyncio.run(first())
