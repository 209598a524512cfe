from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from ..body import Body, bodies_from_dicts
from ..configuration import Configuration
from ..errors import UnknownPresetError
from .orbits import PRESET_DEFINITIONS


@dataclass(frozen=True)
class Preset:
    id: str
    name: str
    description: str
    category: str
    bodies: Tuple[Body, ...]
    time_speed: float = 1.0
    trail_length: int = 100
    infinite_trails: bool = False
    show_velocity_vectors: bool = False

    def configuration(self) -> Configuration:
        return Configuration(
            bodies=self.bodies,
            time_speed=self.time_speed,
            trail_length=self.trail_length,
            infinite_trails=self.infinite_trails,
            show_velocity_vectors=self.show_velocity_vectors,
            description=self.description,
        )

    def summary(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
        }


def _build_preset(definition: Dict[str, Any]) -> Preset:
    settings = definition.get("settings", {})
    return Preset(
        id=definition["id"],
        name=definition["name"],
        description=definition["description"],
        category=definition["category"],
        bodies=bodies_from_dicts(definition["bodies"]),
        time_speed=float(settings.get("timeSpeed", 1.0)),
        trail_length=int(settings.get("trailLength", 100)),
        infinite_trails=bool(settings.get("infiniteTrails", False)),
        show_velocity_vectors=bool(settings.get("showVelocityVectors", False)),
    )


PRESETS: Dict[str, Preset] = {
    definition["id"]: _build_preset(definition) for definition in PRESET_DEFINITIONS
}

DEFAULT_PRESET_ID = "figure-eight"


def get_preset(preset_id: str) -> Preset:
    try:
        return PRESETS[preset_id]
    except KeyError:
        raise UnknownPresetError(preset_id) from None


def presets_by_category(category: str) -> List[Preset]:
    return [preset for preset in PRESETS.values() if preset.category == category]


def categories() -> List[str]:
    return sorted({preset.category for preset in PRESETS.values()})
