"""Tests for message dispatch and one-shot correlated waits."""

import asyncio

import pytest

from sirf_binary_mcp.protocol.framing import Message
from sirf_binary_mcp.protocol.router import MessageRouter, MessageTimeout


def test_dispatch_to_listeners_by_id():
    """Listeners only see messages with their ID; wildcard sees everything."""
    router = MessageRouter()
    navigation, version, everything = [], [], []
    router.subscribe(0x02, navigation.append)
    router.subscribe(0x06, version.append)
    router.subscribe(None, everything.append)

    router.dispatch(Message(b"\x02\x01"))
    router.dispatch(Message(b"\x06GSW"))
    router.dispatch(Message(b"\x09"))

    assert navigation == [Message(b"\x02\x01")]
    assert version == [Message(b"\x06GSW")]
    assert len(everything) == 3


def test_unsubscribe():
    router = MessageRouter()
    seen = []
    router.subscribe(0x02, seen.append)
    router.unsubscribe(0x02, seen.append)
    router.dispatch(Message(b"\x02"))
    assert seen == []


def test_failing_listener_does_not_stop_dispatch():
    """An exception in one listener is logged and the others still run."""
    router = MessageRouter()
    seen = []

    def broken(message):
        raise RuntimeError("boom")

    router.subscribe(0x02, broken)
    router.subscribe(0x02, seen.append)
    router.dispatch(Message(b"\x02"))
    assert seen == [Message(b"\x02")]


def test_empty_message_reaches_wildcard_only():
    router = MessageRouter()
    everything = []
    router.subscribe(None, everything.append)
    router.dispatch(Message(b""))
    assert everything == [Message(b"")]


def test_subscribe_rejects_bad_id():
    with pytest.raises(ValueError):
        MessageRouter().subscribe(256, print)


def test_await_once_resolves_with_next_match():
    """A waiter takes the next matching message and is then removed."""

    async def scenario():
        router = MessageRouter()
        reply = router.await_once(0x06, timeout=1.0)
        assert router.pending(0x06) == 1
        router.dispatch(Message(b"\x02nav"))
        assert not reply.done()
        router.dispatch(Message(b"\x06GSW3"))
        message = await reply
        await asyncio.sleep(0)
        return router, message

    router, message = asyncio.run(scenario())
    assert message == Message(b"\x06GSW3")
    assert router.pending(0x06) == 0


def test_await_once_oldest_waiter_first():
    """Each dispatch resolves only the single oldest pending waiter."""

    async def scenario():
        router = MessageRouter()
        first = router.await_once(0x06, timeout=1.0)
        second = router.await_once(0x06, timeout=1.0)
        router.dispatch(Message(b"\x06A"))
        assert first.done() and not second.done()
        router.dispatch(Message(b"\x06B"))
        return await first, await second

    first, second = asyncio.run(scenario())
    assert first == Message(b"\x06A")
    assert second == Message(b"\x06B")


def test_await_once_times_out():
    """No match within the window fails with MessageTimeout no earlier than the deadline."""

    async def scenario():
        router = MessageRouter()
        loop = asyncio.get_running_loop()
        started = loop.time()
        reply = router.await_once(0x06, timeout=0.05)
        with pytest.raises(MessageTimeout) as info:
            await reply
        elapsed = loop.time() - started

        # A late reply must not resolve the expired waiter
        router.dispatch(Message(b"\x06late"))
        return router, reply, info.value, elapsed

    router, reply, error, elapsed = asyncio.run(scenario())
    assert elapsed >= 0.05
    assert elapsed < 1.0
    assert error.message_id == 0x06
    assert isinstance(error, TimeoutError)
    assert isinstance(reply.exception(), MessageTimeout)
    assert router.pending(0x06) == 0


def test_expired_waiter_does_not_consume_message():
    """After one waiter expires, a newer waiter still gets the next message."""

    async def scenario():
        router = MessageRouter()
        stale = router.await_once(0x06, timeout=0.01)
        fresh = router.await_once(0x06, timeout=1.0)
        with pytest.raises(MessageTimeout):
            await stale
        router.dispatch(Message(b"\x06ok"))
        return await fresh

    assert asyncio.run(scenario()) == Message(b"\x06ok")


def test_cancelled_waiter_is_deregistered():
    async def scenario():
        router = MessageRouter()
        reply = router.await_once(0x06, timeout=1.0)
        reply.cancel()
        await asyncio.sleep(0)
        return router.pending(0x06)

    assert asyncio.run(scenario()) == 0


def test_await_once_rejects_bad_timeout():
    async def scenario():
        MessageRouter().await_once(0x06, timeout=0)

    with pytest.raises(ValueError):
        asyncio.run(scenario())


def test_fail_pending_fails_every_waiter():
    async def scenario():
        router = MessageRouter()
        first = router.await_once(0x06, timeout=1.0)
        second = router.await_once(0x07, timeout=1.0)
        failed = router.fail_pending(ConnectionError("port closed"))
        results = await asyncio.gather(first, second, return_exceptions=True)
        return router, failed, results

    router, failed, results = asyncio.run(scenario())
    assert failed == 2
    assert all(isinstance(r, ConnectionError) for r in results)
    assert router.pending(0x06) == 0
    assert router.pending(0x07) == 0
