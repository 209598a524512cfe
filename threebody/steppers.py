"""
Stepping sources decide who advances a driver's bodies.

``LocalStepper`` calls ``driver.tick()`` from an asyncio task at the display
cadence. ``RemoteStepper`` leaves the integration to a compute peer: it
forwards control intent over a connection and hands published snapshots back
to the driver. The driver talks to both through ``SteppingSource``.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, AsyncContextManager, Callable, List, Optional, Sequence

from pydantic import BaseModel, ValidationError

from .body import Body
from .errors import TransportClosed, TransportError
from .schemas import (
    ErrorMessage,
    PauseMessage,
    ResetMessage,
    SetBodiesMessage,
    SetTimeSpeedMessage,
    StartMessage,
    body_models,
    peer_message_adapter,
)
from .settings import TICK_HZ
from .transport import Connection, ReconnectPolicy

if TYPE_CHECKING:  # Avoid circular import during runtime
    from .system import SimulationDriver

logger = logging.getLogger(__name__)


class SteppingSource(ABC):
    def __init__(self) -> None:
        self.driver: Optional[SimulationDriver] = None

    def attach(self, driver: SimulationDriver) -> None:
        if self.driver is not None and self.driver is not driver:
            raise RuntimeError(f"{type(self).__name__} is already attached to a driver")
        self.driver = driver

    def detach(self) -> None:
        self.stop()
        self.driver = None

    @abstractmethod
    def start(self) -> None:
        """Begin advancing the attached driver."""

    @abstractmethod
    def stop(self) -> None:
        """Stop advancing; must be safe to call when already stopped."""

    def bodies_loaded(self, bodies: Sequence[Body]) -> None:
        pass

    def speed_changed(self, speed: float) -> None:
        pass

    def reset(self, bodies: Sequence[Body]) -> None:
        pass


class LocalStepper(SteppingSource):
    """Ticks the driver in-process, one ``multi_step`` per display refresh."""

    def __init__(self, tick_hz: float = TICK_HZ) -> None:
        super().__init__()
        if tick_hz <= 0:
            raise ValueError("tick_hz must be positive")
        self.interval = 1.0 / tick_hz
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.driver is None:
            raise RuntimeError("LocalStepper is not attached to a driver")
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(self.driver))

    def stop(self) -> None:
        # tick() never awaits, so cancellation only lands between ticks.
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, driver: SimulationDriver) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        try:
            while driver.tick():
                next_tick += self.interval
                delay = next_tick - loop.time()
                if delay < 0:
                    # Behind schedule: skip the missed ticks instead of bursting.
                    next_tick = loop.time()
                    delay = 0.0
                await asyncio.sleep(delay)
        except Exception:
            logger.exception("Local stepping stopped by an error")
            self._task = None
            driver.pause()


ConnectionFactory = Callable[[], AsyncContextManager[Connection]]


class RemoteStepper(SteppingSource):
    """
    Delegates integration to a compute peer reached through ``connect``.

    A supervising task keeps the connection alive, reconnecting according to
    ``policy``. Each new connection is first brought up to date with the
    driver's current bodies, speed and run intent; control calls made while
    disconnected are dropped since that resync supersedes them. The peer's
    iteration counter is converted to sub-step deltas so the driver's own
    counter stays continuous across mode switches.

    Every reset and body load starts a new epoch, which the peer echoes in its
    snapshots. Snapshots from an older epoch were computed from state the
    driver has since replaced and are dropped.

    Call ``aclose()`` once the stepper is no longer needed.
    """

    def __init__(self, connect: ConnectionFactory, policy: Optional[ReconnectPolicy] = None) -> None:
        super().__init__()
        self._connect = connect
        self.policy = policy or ReconnectPolicy()
        self.connected = asyncio.Event()
        self._supervisor: Optional[asyncio.Task] = None
        self._outbox: Optional[asyncio.Queue] = None
        self._remote_iterations = 0
        self._epoch = 0
        self._closed = False

    def start(self) -> None:
        if self.driver is None:
            raise RuntimeError("RemoteStepper is not attached to a driver")
        self._ensure_supervisor()
        self._send(StartMessage())

    def stop(self) -> None:
        self._send(PauseMessage())

    def bodies_loaded(self, bodies: Sequence[Body]) -> None:
        self._epoch += 1
        self._send(SetBodiesMessage(bodies=body_models(bodies), epoch=self._epoch))

    def speed_changed(self, speed: float) -> None:
        self._send(SetTimeSpeedMessage(timeSpeed=speed))

    def reset(self, bodies: Sequence[Body]) -> None:
        # The peer's own checkpoint may be stale: reset it, then overwrite it.
        self._epoch += 1
        self._send(ResetMessage(epoch=self._epoch))
        self._send(SetBodiesMessage(bodies=body_models(bodies), epoch=self._epoch))
        self._remote_iterations = 0

    def _send(self, message: BaseModel) -> None:
        if self._outbox is None:
            logger.debug("Not connected; dropping %s message", message.type)
            return
        self._outbox.put_nowait(message.model_dump_json())

    def _ensure_supervisor(self) -> None:
        if self._closed:
            raise RuntimeError("RemoteStepper is closed")
        if self._supervisor is None or self._supervisor.done():
            self._supervisor = asyncio.get_running_loop().create_task(self._supervise())

    def _resync_messages(self) -> List[BaseModel]:
        driver = self.driver
        if driver is None:
            return []
        messages: List[BaseModel] = [
            SetBodiesMessage(bodies=body_models(driver.bodies), epoch=self._epoch),
            SetTimeSpeedMessage(timeSpeed=driver.time_speed),
        ]
        if driver.is_running:
            messages.append(StartMessage())
        return messages

    async def _supervise(self) -> None:
        attempt = 0
        while not self._closed:
            try:
                async with self._connect() as connection:
                    logger.info("Connected to compute peer")
                    attempt = 0
                    await self._run_connection(connection)
            except (TransportError, OSError) as exc:
                logger.warning("Compute peer connection lost: %s", exc)
            finally:
                self._outbox = None
                self.connected.clear()
            if self._closed:
                break
            delay = self.policy.delay(attempt)
            if delay is None:
                logger.error("Giving up on compute peer after %d reconnect attempts", attempt)
                break
            attempt += 1
            logger.info("Reconnecting to compute peer in %.2fs", delay)
            await asyncio.sleep(delay)

    async def _run_connection(self, connection: Connection) -> None:
        outbox: asyncio.Queue = asyncio.Queue()
        self._remote_iterations = 0
        for message in self._resync_messages():
            outbox.put_nowait(message.model_dump_json())
        self._outbox = outbox
        self.connected.set()

        sender = asyncio.create_task(self._pump(connection, outbox))
        receiver = asyncio.create_task(self._receive(connection))
        try:
            done, _ = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sender, receiver):
                task.cancel()
            await asyncio.gather(sender, receiver, return_exceptions=True)
        for task in done:
            task.result()
        raise TransportClosed("connection ended")

    async def _pump(self, connection: Connection, outbox: asyncio.Queue) -> None:
        while True:
            text = await outbox.get()
            try:
                await connection.send(text)
            finally:
                outbox.task_done()

    async def _receive(self, connection: Connection) -> None:
        while True:
            self._handle(await connection.recv())

    def _handle(self, text: str) -> None:
        try:
            message = peer_message_adapter.validate_json(text)
        except ValidationError as exc:
            logger.warning("Ignoring malformed message from compute peer: %s", exc)
            return
        if isinstance(message, ErrorMessage):
            logger.warning("Compute peer rejected a control message: %s", message.detail)
            return
        if message.epoch != self._epoch:
            logger.debug(
                "Dropping snapshot from epoch %d, current epoch is %d", message.epoch, self._epoch
            )
            return

        iterations = message.iterations
        if iterations >= self._remote_iterations:
            completed = iterations - self._remote_iterations
        else:
            completed = iterations  # Peer counter restarted.
        self._remote_iterations = iterations

        driver = self.driver
        if driver is not None:
            driver.receive_remote_update([body.to_body() for body in message.bodies], completed)

    async def aclose(self, timeout: float = 1.0) -> None:
        """Flush pending control messages, then stop supervising the connection."""
        self._closed = True
        outbox = self._outbox
        if outbox is not None:
            try:
                await asyncio.wait_for(outbox.join(), timeout)
            except asyncio.TimeoutError:
                logger.warning("Discarding unsent control messages on close")
        if self._supervisor is not None:
            self._supervisor.cancel()
            await asyncio.gather(self._supervisor, return_exceptions=True)
            self._supervisor = None
