"""
Fixed-step RK4 integration of planar Newtonian gravity.

Everything here is a pure function of a body collection: nothing is mutated in
place and no state is kept between calls, so the functions are safe to call
concurrently for different collections. Units follow the Chenciner-Montgomery
figure-eight solution (G = 1, unit masses), not SI.

Masses must be strictly positive. They are not checked here; a zero mass
divides by zero on every step and a negative mass yields repulsive nonsense.
Non-finite positions or velocities are not filtered either and simply
propagate into the returned state.
"""

from __future__ import annotations

import math
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .body import Body

G = 1.0
BASE_DT = 0.001  # Simulated time per sub-step at speed multiplier 1
SUB_STEPS = 5  # RK4 sub-steps per published tick
MIN_SEPARATION = 1e-10  # Pairs closer than this exert no force on each other


def _state_array(bodies: Sequence[Body]) -> np.ndarray:
    """Rows of (x, y, vx, vy), one per body."""
    return np.array([(b.x, b.y, b.vx, b.vy) for b in bodies], dtype=float).reshape(
        len(bodies), 4
    )


def _mass_array(bodies: Sequence[Body]) -> np.ndarray:
    return np.array([b.mass for b in bodies], dtype=float)


def _accelerations(
    positions: np.ndarray, masses: np.ndarray, gravitational_constant: float
) -> np.ndarray:
    accel = np.zeros((len(masses), 2), dtype=float)
    count = len(masses)
    for i in range(count):
        for j in range(i + 1, count):
            dx = positions[j, 0] - positions[i, 0]
            dy = positions[j, 1] - positions[i, 1]
            distance = math.sqrt(dx * dx + dy * dy)
            if distance < MIN_SEPARATION:
                continue  # Near-collision: treat the pair as exerting no force.
            magnitude = gravitational_constant * masses[i] * masses[j] / distance**2
            fx = magnitude * dx / distance
            fy = magnitude * dy / distance
            accel[i, 0] += fx / masses[i]
            accel[i, 1] += fy / masses[i]
            accel[j, 0] -= fx / masses[j]
            accel[j, 1] -= fy / masses[j]
    return accel


def _derivatives(
    state: np.ndarray, masses: np.ndarray, gravitational_constant: float
) -> np.ndarray:
    deriv = np.empty_like(state)
    deriv[:, 0:2] = state[:, 2:4]
    deriv[:, 2:4] = _accelerations(state[:, 0:2], masses, gravitational_constant)
    return deriv


def _rk4(
    state: np.ndarray, masses: np.ndarray, dt: float, gravitational_constant: float
) -> np.ndarray:
    k1 = _derivatives(state, masses, gravitational_constant)
    k2 = _derivatives(state + k1 * (dt / 2), masses, gravitational_constant)
    k3 = _derivatives(state + k2 * (dt / 2), masses, gravitational_constant)
    k4 = _derivatives(state + k3 * dt, masses, gravitational_constant)
    return state + (dt / 6) * (k1 + 2 * k2 + 2 * k3 + k4)


def _with_state(bodies: Sequence[Body], state: np.ndarray) -> Tuple[Body, ...]:
    return tuple(
        body.with_state(*row) for body, row in zip(bodies, state.tolist())
    )


def accelerations(
    bodies: Sequence[Body], gravitational_constant: float = G
) -> List[Tuple[float, float]]:
    """
    Return one (ax, ay) pair per body, in input order. Each unordered pair is
    visited once and the equal and opposite forces are applied to both bodies.
    Pairs closer than MIN_SEPARATION are skipped entirely.
    """
    if not bodies:
        return []
    accel = _accelerations(
        _state_array(bodies)[:, 0:2], _mass_array(bodies), gravitational_constant
    )
    return [(float(ax), float(ay)) for ax, ay in accel]


def derivatives(
    bodies: Sequence[Body], gravitational_constant: float = G
) -> List[Tuple[float, float, float, float]]:
    """State derivative (vx, vy, ax, ay) for each body."""
    return [
        (body.vx, body.vy, ax, ay)
        for body, (ax, ay) in zip(bodies, accelerations(bodies, gravitational_constant))
    ]


def step(
    bodies: Sequence[Body],
    speed_multiplier: float,
    base_dt: float = BASE_DT,
    gravitational_constant: float = G,
) -> Tuple[Body, ...]:
    """
    Advance the bodies by one classical RK4 step of ``base_dt * speed_multiplier``.
    Returns a new tuple; ids, masses and colors are carried through unchanged.
    """
    if not bodies:
        return ()
    dt = base_dt * speed_multiplier
    state = _rk4(_state_array(bodies), _mass_array(bodies), dt, gravitational_constant)
    return _with_state(bodies, state)


def multi_step(
    bodies: Sequence[Body],
    speed_multiplier: float,
    sub_steps: int = SUB_STEPS,
    on_sub_step: Optional[Callable[[], None]] = None,
    base_dt: float = BASE_DT,
    gravitational_constant: float = G,
) -> Tuple[Body, ...]:
    """
    Apply ``step`` ``sub_steps`` times. Several small steps per tick keep the
    truncation error well below that of one step covering the same interval.
    ``on_sub_step`` is called after every completed sub-step.
    """
    if not bodies:
        return ()
    masses = _mass_array(bodies)
    state = _state_array(bodies)
    dt = base_dt * speed_multiplier
    for _ in range(sub_steps):
        state = _rk4(state, masses, dt, gravitational_constant)
        if on_sub_step is not None:
            on_sub_step()
    return _with_state(bodies, state)


def total_momentum(bodies: Sequence[Body]) -> Tuple[float, float]:
    px = sum(body.mass * body.vx for body in bodies)
    py = sum(body.mass * body.vy for body in bodies)
    return px, py


def total_energy(bodies: Sequence[Body], gravitational_constant: float = G) -> float:
    """Kinetic plus pairwise potential energy, skipping near-collided pairs."""
    kinetic = sum(0.5 * body.mass * (body.vx**2 + body.vy**2) for body in bodies)
    potential = 0.0
    for i, primary in enumerate(bodies):
        for secondary in bodies[i + 1 :]:
            distance = primary.distance_to(secondary)
            if distance < MIN_SEPARATION:
                continue
            potential -= gravitational_constant * primary.mass * secondary.mass / distance
    return kinetic + potential


def center_of_mass(bodies: Sequence[Body]) -> Tuple[float, float]:
    total_mass = sum(body.mass for body in bodies)
    if total_mass == 0:
        raise ValueError("center of mass is undefined for zero total mass")
    x = sum(body.mass * body.x for body in bodies) / total_mass
    y = sum(body.mass * body.y for body in bodies) / total_mass
    return x, y
