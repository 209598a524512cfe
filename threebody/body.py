"""
Immutable representation of a body taking part in a simulation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Tuple

BODY_FIELDS = ("id", "x", "y", "vx", "vy", "mass", "color")


@dataclass(frozen=True)
class Body:
    """
    A point mass in the plane. Bodies are values: every integration step
    produces new instances, so a collection can be shared or stored as a
    checkpoint without copying each body.
    """

    id: int
    x: float
    y: float
    vx: float
    vy: float
    mass: float
    color: str = "#ffffff"

    def with_state(self, x: float, y: float, vx: float, vy: float) -> Body:
        return replace(self, x=float(x), y=float(y), vx=float(vx), vy=float(vy))

    def distance_to(self, other: Body) -> float:
        """Return Euclidean distance to another body."""
        return math.hypot(other.x - self.x, other.y - self.y)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "vx": self.vx,
            "vy": self.vy,
            "mass": self.mass,
            "color": self.color,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Body:
        return cls(
            id=int(data["id"]),
            x=float(data["x"]),
            y=float(data["y"]),
            vx=float(data["vx"]),
            vy=float(data["vy"]),
            mass=float(data["mass"]),
            color=str(data.get("color", "#ffffff")),
        )


def bodies_from_dicts(records: Iterable[Dict[str, Any]]) -> Tuple[Body, ...]:
    return tuple(Body.from_dict(record) for record in records)


def bodies_to_dicts(bodies: Iterable[Body]):
    return [body.to_dict() for body in bodies]
