"""
Simulation driver: owns a body collection and decides when it advances.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Tuple

from .body import Body
from .physics import BASE_DT, G, SUB_STEPS, multi_step
from .steppers import LocalStepper, SteppingSource

if TYPE_CHECKING:  # Avoid circular import during runtime
    from .configuration import Configuration

logger = logging.getLogger(__name__)

Observer = Callable[[Tuple[Body, ...], int], None]


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


def _checked_speed(multiplier: float) -> float:
    multiplier = float(multiplier)
    if not math.isfinite(multiplier) or multiplier <= 0:
        raise ValueError("speed multiplier must be a positive finite number")
    return multiplier


class SimulationDriver:
    """
    Run/pause/reset state machine around the integrator.

    The driver is the single writer of its body collection, checkpoint and
    iteration counter. Who calls ``multi_step`` is decided by the attached
    stepping source: a ``LocalStepper`` ticks on the event loop, a
    ``RemoteStepper`` forwards control intent to a compute peer and feeds its
    snapshots back through ``receive_remote_update``. Only one source is
    attached at a time.

    The driver is loop-affine; call it from the event loop thread.
    """

    def __init__(
        self,
        bodies: Iterable[Body],
        time_speed: float = 1.0,
        stepper: Optional[SteppingSource] = None,
        sub_steps: int = SUB_STEPS,
        base_dt: float = BASE_DT,
        gravitational_constant: float = G,
    ) -> None:
        self._bodies: Tuple[Body, ...] = tuple(bodies)
        self._checkpoint: Tuple[Body, ...] = self._bodies
        self._iterations = 0
        self._time_speed = _checked_speed(time_speed)
        self._state = RunState.IDLE
        self._observers: List[Observer] = []
        self.sub_steps = sub_steps
        self.base_dt = base_dt
        self.gravitational_constant = gravitational_constant
        self._stepper = stepper if stepper is not None else LocalStepper()
        self._stepper.attach(self)

    @property
    def bodies(self) -> Tuple[Body, ...]:
        return self._bodies

    @property
    def checkpoint(self) -> Tuple[Body, ...]:
        return self._checkpoint

    @property
    def iterations(self) -> int:
        return self._iterations

    @property
    def time_speed(self) -> float:
        return self._time_speed

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is RunState.RUNNING

    @property
    def stepper(self) -> SteppingSource:
        return self._stepper

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer(bodies, iterations)``; returns an unsubscribe callable."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _publish(self) -> None:
        bodies, iterations = self._bodies, self._iterations
        for observer in list(self._observers):
            try:
                observer(bodies, iterations)
            except Exception:
                logger.exception("Observer %r failed while receiving an update", observer)

    def load_bodies(self, bodies: Iterable[Body]) -> None:
        """
        Replace the current bodies. Outside a run this also becomes the new
        checkpoint. The iteration counter is left alone.
        """
        bodies = tuple(bodies)
        if self.is_running and len(bodies) != len(self._bodies):
            raise ValueError("body count cannot change while the simulation is running")
        self._bodies = bodies
        if not self.is_running:
            self._checkpoint = bodies
        self._stepper.bodies_loaded(bodies)

    def set_checkpoint(self, bodies: Iterable[Body]) -> None:
        self._checkpoint = tuple(bodies)

    def load_configuration(self, config: Configuration) -> None:
        """Stop any run, adopt the configuration's bodies and speed, then reset."""
        self.pause()
        self.set_speed(config.time_speed)
        self.load_bodies(config.bodies)
        self.set_checkpoint(config.bodies)
        self.reset()

    def start(self) -> None:
        if self.is_running:
            return
        previous = self._state
        self._state = RunState.RUNNING
        try:
            self._stepper.start()
        except Exception:
            self._state = previous
            raise
        logger.debug("Simulation started with %s", type(self._stepper).__name__)

    def pause(self) -> None:
        if not self.is_running:
            return
        self._stepper.stop()
        self._state = RunState.PAUSED
        logger.debug("Simulation paused at iteration %d", self._iterations)

    def reset(self) -> None:
        if self.is_running:
            self._stepper.stop()
        self._state = RunState.IDLE
        self._bodies = self._checkpoint
        self._iterations = 0
        self._stepper.reset(self._bodies)
        self._publish()

    def set_speed(self, multiplier: float) -> None:
        self._time_speed = _checked_speed(multiplier)
        self._stepper.speed_changed(self._time_speed)

    def _count_sub_step(self) -> None:
        self._iterations += 1

    def tick(self) -> bool:
        """
        Advance one cadence tick (``sub_steps`` RK4 steps) and publish. Returns
        False without doing anything when the simulation is not running.
        """
        if not self.is_running:
            return False
        self._bodies = multi_step(
            self._bodies,
            self._time_speed,
            sub_steps=self.sub_steps,
            on_sub_step=self._count_sub_step,
            base_dt=self.base_dt,
            gravitational_constant=self.gravitational_constant,
        )
        self._publish()
        return True

    def receive_remote_update(self, bodies: Iterable[Body], completed_sub_steps: int) -> bool:
        """Adopt a snapshot computed by a remote peer. Stale snapshots outside a run are dropped."""
        if not self.is_running:
            logger.debug("Dropping remote update received while %s", self._state.value)
            return False
        self._bodies = tuple(bodies)
        self._iterations += max(0, int(completed_sub_steps))
        self._publish()
        return True

    def use_stepper(self, stepper: SteppingSource) -> None:
        """
        Swap the stepping source. A running simulation is stopped on the old
        source before the new one is started, so two sources never advance the
        same bodies.
        """
        if stepper is self._stepper:
            return
        was_running = self.is_running
        if was_running:
            self._stepper.stop()
        self._stepper.detach()
        self._stepper = stepper
        stepper.attach(self)
        if was_running:
            try:
                stepper.start()
            except Exception:
                self._state = RunState.PAUSED
                raise
        logger.info("Switched stepping source to %s", type(stepper).__name__)

    def close(self) -> None:
        if self.is_running:
            self._stepper.stop()
            self._state = RunState.PAUSED
        self._stepper.detach()
        self._observers.clear()
