"""
Server side of the remote stepping protocol: one simulation per connection.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence, Tuple

from pydantic import ValidationError

from .body import Body
from .errors import TransportClosed
from .presets import DEFAULT_PRESET_ID, get_preset
from .schemas import (
    BodiesUpdateMessage,
    ErrorMessage,
    PauseMessage,
    ResetMessage,
    SetBodiesMessage,
    SetTimeSpeedMessage,
    StartMessage,
    body_models,
    control_message_adapter,
)
from .settings import TICK_HZ
from .steppers import LocalStepper
from .system import SimulationDriver
from .transport import Connection

logger = logging.getLogger(__name__)

_UPDATE = object()  # Queue marker: send the latest snapshot


class SimulationSession:
    """
    Steps a private ``SimulationDriver`` locally and streams its state to the
    connected client, which steers it with control messages.

    Outbound snapshots are conflated: if the client falls behind, only the
    most recent ``bodies_update`` is sent.

    Each snapshot echoes the epoch of the last ``reset`` or ``set_bodies``
    so the client can tell it apart from snapshots of replaced state.
    """

    def __init__(
        self,
        connection: Connection,
        bodies: Optional[Sequence[Body]] = None,
        tick_hz: float = TICK_HZ,
    ) -> None:
        self.connection = connection
        if bodies is None:
            bodies = get_preset(DEFAULT_PRESET_ID).bodies
        self.driver = SimulationDriver(bodies, stepper=LocalStepper(tick_hz))
        self._outbound: asyncio.Queue = asyncio.Queue()
        self._latest: Optional[str] = None
        self._epoch = 0
        self.driver.subscribe(self._on_update)

    def _on_update(self, bodies: Tuple[Body, ...], iterations: int) -> None:
        pending = self._latest is not None
        self._latest = BodiesUpdateMessage(
            bodies=body_models(bodies), iterations=iterations, epoch=self._epoch
        ).model_dump_json()
        if not pending:
            self._outbound.put_nowait(_UPDATE)

    def _queue_error(self, detail: str) -> None:
        self._outbound.put_nowait(ErrorMessage(detail=detail).model_dump_json())

    async def _send_outbound(self) -> None:
        while True:
            item = await self._outbound.get()
            if item is _UPDATE:
                item, self._latest = self._latest, None
                if item is None:
                    continue
            await self.connection.send(item)

    def handle(self, text: str) -> None:
        """Apply one control message; malformed input is answered with an error message."""
        try:
            message = control_message_adapter.validate_json(text)
        except ValidationError as exc:
            logger.info("Rejected control message: %s", exc.errors()[0]["msg"])
            self._queue_error(f"Invalid control message: {exc}")
            return

        driver = self.driver
        if isinstance(message, StartMessage):
            driver.start()
        elif isinstance(message, PauseMessage):
            driver.pause()
        elif isinstance(message, ResetMessage):
            self._epoch = message.epoch
            driver.reset()
        elif isinstance(message, SetBodiesMessage):
            self._epoch = message.epoch
            bodies = [body.to_body() for body in message.bodies]
            try:
                driver.load_bodies(bodies)
            except ValueError as exc:
                self._queue_error(str(exc))
        elif isinstance(message, SetTimeSpeedMessage):
            driver.set_speed(message.timeSpeed)

    async def serve(self) -> None:
        """Run until the client disconnects, then tear the simulation down."""
        sender = asyncio.create_task(self._send_outbound())
        receive: Optional[asyncio.Task] = None
        try:
            while True:
                receive = asyncio.create_task(self.connection.recv())
                done, _ = await asyncio.wait(
                    {receive, sender}, return_when=asyncio.FIRST_COMPLETED
                )
                if sender in done:
                    sender.result()
                    raise TransportClosed("outbound stream ended")
                self.handle(receive.result())
        except TransportClosed:
            logger.info("Client disconnected after %d iterations", self.driver.iterations)
        finally:
            self.driver.close()
            pending = [task for task in (sender, receive) if task is not None]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
