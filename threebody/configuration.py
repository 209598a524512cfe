"""
Import and export of simulation configurations: a body list bundled with the
speed multiplier and the display settings the UI persists alongside it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .body import BODY_FIELDS, Body
from .errors import ConfigurationError
from .schemas import BodyModel
from .settings import BODY_COUNT, EXPORT_PRECISION

DEFAULT_DESCRIPTION = "3-Body Problem Configuration"


@dataclass(frozen=True)
class Configuration:
    bodies: Tuple[Body, ...]
    time_speed: float = 1.0
    trail_length: int = 100
    infinite_trails: bool = False
    show_velocity_vectors: bool = False
    use_server_computation: bool = False
    description: str = DEFAULT_DESCRIPTION


class _Settings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    timeSpeed: float = Field(1.0, gt=0, allow_inf_nan=False)
    trailLength: int = Field(100, ge=1)
    infiniteTrails: bool = False
    showVelocityVectors: bool = False
    useServerComputation: bool = False
    description: str = DEFAULT_DESCRIPTION


def _error_reason(error: Dict[str, Any]) -> str:
    if error["type"] == "value_error":
        return str(error["ctx"]["error"])
    return error["msg"]


def _validate_body(index: int, record: Any) -> Body:
    number = index + 1
    if not isinstance(record, Mapping):
        raise ConfigurationError(f"Body {number} must be an object", index)
    for field in BODY_FIELDS:
        if record.get(field) is None:
            raise ConfigurationError(
                f"Body {number} missing required field: {field}", index, field
            )
    try:
        return BodyModel.model_validate(dict(record)).to_body()
    except ValidationError as exc:
        error = exc.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else None
        raise ConfigurationError(
            f"Body {number} field {field} {_error_reason(error)}", index, field
        ) from exc


def validate_bodies(
    records: Any, body_count: Optional[int] = BODY_COUNT
) -> Tuple[Body, ...]:
    """
    Validate raw body records and convert them to ``Body`` values. With
    ``body_count=None`` any collection of two or more bodies is accepted.
    """
    if not isinstance(records, list):
        raise ConfigurationError("Configuration must contain a list of bodies")
    if body_count is not None and len(records) != body_count:
        raise ConfigurationError(f"Configuration must contain exactly {body_count} bodies")
    if len(records) < 2:
        raise ConfigurationError("Configuration must contain at least 2 bodies")

    bodies = [_validate_body(index, record) for index, record in enumerate(records)]

    seen: Dict[int, int] = {}
    for index, body in enumerate(bodies):
        if body.id in seen:
            raise ConfigurationError(
                f"Body {index + 1} field id duplicates body {seen[body.id] + 1}",
                index,
                "id",
            )
        seen[body.id] = index
    return tuple(bodies)


def import_configuration(
    source: Union[str, bytes, Mapping[str, Any]],
    body_count: Optional[int] = BODY_COUNT,
) -> Configuration:
    """
    Parse and validate an exported configuration (JSON text or an already
    decoded mapping). Raises ``ConfigurationError`` naming the offending body
    and field; nothing is applied on failure.
    """
    if isinstance(source, (str, bytes)):
        try:
            data = json.loads(source)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Configuration is not valid JSON: {exc}") from exc
    else:
        data = source

    if not isinstance(data, Mapping):
        raise ConfigurationError("Configuration must be a JSON object")

    bodies = validate_bodies(data.get("bodies"), body_count)

    settings_data = {
        key: value for key, value in data.items() if key != "bodies" and value is not None
    }
    try:
        settings = _Settings.model_validate(settings_data)
    except ValidationError as exc:
        error = exc.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else None
        raise ConfigurationError(
            f"Configuration field {field}: {_error_reason(error)}", field=field
        ) from exc

    return Configuration(
        bodies=bodies,
        time_speed=settings.timeSpeed,
        trail_length=settings.trailLength,
        infinite_trails=settings.infiniteTrails,
        show_velocity_vectors=settings.showVelocityVectors,
        use_server_computation=settings.useServerComputation,
        description=settings.description,
    )


def _rounded(value: float) -> float:
    return round(float(value), EXPORT_PRECISION)


def export_bodies(bodies: Sequence[Body]) -> List[Dict[str, Any]]:
    return [
        {
            "id": body.id,
            "x": _rounded(body.x),
            "y": _rounded(body.y),
            "vx": _rounded(body.vx),
            "vy": _rounded(body.vy),
            "mass": _rounded(body.mass),
            "color": body.color,
        }
        for body in bodies
    ]


def export_configuration(
    config: Configuration, exported_at: Optional[datetime] = None
) -> Dict[str, Any]:
    if exported_at is None:
        exported_at = datetime.now(timezone.utc)
    return {
        "bodies": export_bodies(config.bodies),
        "timeSpeed": config.time_speed,
        "trailLength": config.trail_length,
        "infiniteTrails": config.infinite_trails,
        "showVelocityVectors": config.show_velocity_vectors,
        "useServerComputation": config.use_server_computation,
        "exportedAt": exported_at.isoformat(),
        "description": config.description,
    }


def dumps_configuration(config: Configuration) -> str:
    return json.dumps(export_configuration(config), indent=2)
