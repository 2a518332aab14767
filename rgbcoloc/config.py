"""
Analysis settings for RGB Colocalizer.

Settings are an immutable value passed into every analysis call. The UI
builds a new ColocConfig from its controls on each run.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

# -----------------------
# Defaults
# -----------------------
DEFAULT_THRESHOLD: int = 75
# Colocalization masks are binary (0/255); any threshold in 1..255 separates them
MASK_THRESHOLD: int = 100
HIST_SIZE: int = 256

RED_LABEL = "Red"
GREEN_LABEL = "Green"
BLUE_LABEL = "Blue"
MASK_LABEL = "Red+Green_colocalized"
MASK_TITLE = "Colocalized_Red_and_Green_channels"

# Property names used by the ImageJ plugin's RGB_Colocalizer.cfg
PROPERTY_KEYS = {
    "red_threshold": "red_threshold",
    "green_threshold": "green_threshold",
    "blue_threshold": "blue_threshold",
    "show_color_coded_colocalization_plot": "show_color_coloc",
    "show_intensity_coded_colocalization_plot": "show_intensity_coloc",
    "show_colocalized_image": "show_coloc_image",
    "show_channels_in_one_row": "channels_in_one_row",
    "skip_pixels_below_threshold_for_Pearson_correlasion": "skip_pearson_below_threshold",
    "skip_pixels_below_threshold_for_Pearson_correlation": "skip_pearson_below_threshold",
}


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


@dataclass(frozen=True)
class ColocConfig:
    red_threshold: int = DEFAULT_THRESHOLD
    green_threshold: int = DEFAULT_THRESHOLD
    blue_threshold: int = DEFAULT_THRESHOLD
    mask_threshold: int = MASK_THRESHOLD
    # Visualization planes; the colocalization mask is always built
    show_color_coloc: bool = False
    show_intensity_coloc: bool = False
    show_coloc_image: bool = False
    # True: one report line per slice across all channel pairs
    channels_in_one_row: bool = True
    skip_pearson_below_threshold: bool = False
    max_workers: int = 1

    def with_thresholds(self, red: int | None = None, green: int | None = None, blue: int | None = None) -> "ColocConfig":
        changes = {}
        if red is not None:
            changes["red_threshold"] = int(red)
        if green is not None:
            changes["green_threshold"] = int(green)
        if blue is not None:
            changes["blue_threshold"] = int(blue)
        return replace(self, **changes)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "ColocConfig":
        """Build a config from field names or plugin property names.

        Unknown keys are ignored. String values such as "true"/"75" are
        converted to the field type.
        """
        types = {f.name: f.type for f in fields(cls)}
        values = {}
        for key, raw in mapping.items():
            name = PROPERTY_KEYS.get(key, key)
            if name not in types or raw is None:
                continue
            if types[name] in (bool, "bool"):
                values[name] = _parse_bool(raw)
            else:
                values[name] = int(float(raw))
        return cls(**values)
