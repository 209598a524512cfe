"""
Connection primitives shared by the compute host and the remote stepper.

A connection carries JSON text frames in both directions. ``recv`` raises
``TransportClosed`` once the peer is gone; any other failure surfaces as
``TransportError``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol, Tuple, Type, Union

from .errors import TransportClosed


class Connection(Protocol):
    async def send(self, text: str) -> None: ...

    async def recv(self) -> str: ...


class WebSocketConnection:
    """
    ``Connection`` over a WebSocket from either side of the wire. ``send_frame``
    and ``recv_frame`` are the socket's text frame coroutines and
    ``closed_errors`` the exceptions it raises once the peer is gone.
    """

    def __init__(
        self,
        send_frame: Callable[[str], Awaitable[None]],
        recv_frame: Callable[[], Awaitable[Union[str, bytes]]],
        closed_errors: Tuple[Type[BaseException], ...],
    ) -> None:
        self._send_frame = send_frame
        self._recv_frame = recv_frame
        self._closed_errors = closed_errors

    async def send(self, text: str) -> None:
        try:
            await self._send_frame(text)
        except self._closed_errors as exc:
            raise TransportClosed(str(exc)) from exc

    async def recv(self) -> str:
        try:
            message = await self._recv_frame()
        except self._closed_errors as exc:
            raise TransportClosed(str(exc)) from exc
        if isinstance(message, bytes):
            message = message.decode("utf-8")
        return message


@dataclass
class ReconnectPolicy:
    """
    Exponential backoff between reconnect attempts. ``max_attempts=None``
    retries forever.
    """

    initial_delay: float = 0.5
    factor: float = 2.0
    max_delay: float = 10.0
    max_attempts: Optional[int] = None

    def delay(self, attempt: int) -> Optional[float]:
        """Seconds to wait before retry number ``attempt`` (0-based), or None to give up."""
        if self.max_attempts is not None and attempt >= self.max_attempts:
            return None
        return min(self.max_delay, self.initial_delay * self.factor**attempt)


class MemoryConnection:
    """One end of an in-process pipe; see ``memory_pipe``."""

    def __init__(self, inbox: asyncio.Queue, outbox: asyncio.Queue) -> None:
        self._inbox = inbox
        self._outbox = outbox
        self.closed = False

    async def send(self, text: str) -> None:
        if self.closed:
            raise TransportClosed("connection is closed")
        await self._outbox.put(text)

    async def recv(self) -> str:
        text = await self._inbox.get()
        if text is None:
            self.closed = True
            raise TransportClosed("peer closed the connection")
        return text

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Wake both our own pending recv and the peer's.
        await self._inbox.put(None)
        await self._outbox.put(None)


def memory_pipe() -> Tuple[MemoryConnection, MemoryConnection]:
    """Two connected ends, e.g. to run a stepper against an in-process session."""
    left_to_right: asyncio.Queue = asyncio.Queue()
    right_to_left: asyncio.Queue = asyncio.Queue()
    return (
        MemoryConnection(inbox=right_to_left, outbox=left_to_right),
        MemoryConnection(inbox=left_to_right, outbox=right_to_left),
    )
