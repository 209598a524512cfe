from .catalog import (
    DEFAULT_PRESET_ID,
    PRESETS,
    Preset,
    categories,
    get_preset,
    presets_by_category,
)

__all__ = [
    "DEFAULT_PRESET_ID",
    "PRESETS",
    "Preset",
    "categories",
    "get_preset",
    "presets_by_category",
]
