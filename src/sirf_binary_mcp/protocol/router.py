"""Fan-out of validated messages by ID and one-shot correlated waits.

Listeners registered with :meth:`MessageRouter.subscribe` see every message
with their ID. Waiters created by :meth:`MessageRouter.await_once` are
resolved at most once: the oldest pending waiter for an ID takes the next
matching message, or fails with :class:`MessageTimeout` when its deadline
passes. A waiter is removed from the registry as soon as it completes, so a
late message can never resolve an expired waiter.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict, deque
from typing import Callable

from .framing import Message

logger = logging.getLogger(__name__)

Listener = Callable[[Message], None]


class MessageTimeout(TimeoutError):
    """No message with the awaited ID arrived before the deadline."""

    def __init__(self, message_id: int, timeout: float) -> None:
        self.message_id = message_id
        self.timeout = timeout
        super().__init__(
            f"No message 0x{message_id:02X} received within {timeout:g}s"
        )


def _check_message_id(message_id: int) -> None:
    if not 0 <= message_id <= 0xFF:
        raise ValueError(f"Message ID must be 0-255, got {message_id}")


class MessageRouter:
    """Dispatches messages to listeners and pending one-shot waiters."""

    def __init__(self) -> None:
        self._listeners: dict[int | None, list[Listener]] = defaultdict(list)
        self._waiters: dict[int, deque[asyncio.Future[Message]]] = defaultdict(deque)

    def subscribe(self, message_id: int | None, callback: Listener) -> None:
        """Call ``callback`` for every dispatched message with ``message_id``.

        Pass ``None`` to receive every message.
        """
        if message_id is not None:
            _check_message_id(message_id)
        self._listeners[message_id].append(callback)

    def unsubscribe(self, message_id: int | None, callback: Listener) -> None:
        listeners = self._listeners.get(message_id)
        if listeners and callback in listeners:
            listeners.remove(callback)
            if not listeners:
                del self._listeners[message_id]

    def pending(self, message_id: int) -> int:
        """Number of outstanding one-shot waiters for ``message_id``."""
        waiters = self._waiters.get(message_id)
        return len(waiters) if waiters else 0

    def dispatch(self, message: Message) -> None:
        """Deliver a message to its listeners and to the oldest waiter for its ID."""
        message_id = message.id
        callbacks = list(self._listeners.get(None, ()))
        if message_id is not None:
            callbacks += self._listeners.get(message_id, ())

        for callback in callbacks:
            try:
                callback(message)
            except Exception:
                logger.exception("Listener %r failed on %r", callback, message)

        if message_id is None:
            return
        waiters = self._waiters.get(message_id)
        while waiters:
            future = waiters.popleft()
            if not future.done():
                future.set_result(message)
                break
        if waiters is not None and not waiters:
            self._waiters.pop(message_id, None)

    def await_once(self, message_id: int, timeout: float) -> asyncio.Future[Message]:
        """Register a one-shot waiter for the next message with ``message_id``.

        Registration happens immediately, so a caller can register first and
        then write the command that triggers the reply::

            reply = router.await_once(0x06, timeout=3.0)
            await connection.write(build_command(0x84, b"\x00"))
            message = await reply

        Args:
            message_id: Message ID to wait for (0-255).
            timeout: Seconds before the waiter fails. Must be positive.

        Returns:
            A future resolving to the ``Message``, or failing with
            ``MessageTimeout``. Cancelling it deregisters the waiter.
        """
        _check_message_id(message_id)
        if timeout <= 0:
            raise ValueError(f"Timeout must be positive, got {timeout}")

        loop = asyncio.get_running_loop()
        future: asyncio.Future[Message] = loop.create_future()
        self._waiters[message_id].append(future)
        timer = loop.call_later(timeout, self._expire, message_id, future, timeout)

        def _finished(fut: asyncio.Future[Message]) -> None:
            timer.cancel()
            self._forget(message_id, fut)

        future.add_done_callback(_finished)
        return future

    def fail_pending(self, error: BaseException) -> int:
        """Fail every outstanding waiter with ``error``.

        Returns:
            Number of waiters failed.
        """
        futures = [future for waiters in self._waiters.values() for future in waiters]
        self._waiters.clear()
        failed = 0
        for future in futures:
            if not future.done():
                future.set_exception(error)
                failed += 1
        return failed

    def _expire(
        self, message_id: int, future: asyncio.Future[Message], timeout: float
    ) -> None:
        if future.done():
            return
        logger.warning("Timed out waiting %gs for message 0x%02X", timeout, message_id)
        self._forget(message_id, future)
        future.set_exception(MessageTimeout(message_id, timeout))

    def _forget(self, message_id: int, future: asyncio.Future[Message]) -> None:
        waiters = self._waiters.get(message_id)
        if waiters is None:
            return
        if future in waiters:
            waiters.remove(future)
        if not waiters:
            del self._waiters[message_id]
