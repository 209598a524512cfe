"""
WebSocket client side of the remote stepping protocol.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .errors import TransportError
from .steppers import RemoteStepper
from .transport import ReconnectPolicy, WebSocketConnection


@asynccontextmanager
async def connect_websocket(url: str) -> AsyncIterator[WebSocketConnection]:
    try:
        async with websockets.connect(url) as websocket:
            yield WebSocketConnection(websocket.send, websocket.recv, (ConnectionClosed,))
    except TransportError:
        raise
    except (OSError, WebSocketException) as exc:
        raise TransportError(f"WebSocket connection to {url} failed: {exc}") from exc


def remote_stepper(url: str, policy: Optional[ReconnectPolicy] = None) -> RemoteStepper:
    """A ``RemoteStepper`` talking to the compute host's ``/ws`` endpoint at ``url``."""
    return RemoteStepper(lambda: connect_websocket(url), policy)
