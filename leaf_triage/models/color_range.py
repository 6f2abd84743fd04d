"""
Static HSV configuration tables.

All hue values use the half-range convention (0..180) with S and V in
0..255. Detection sensitivity is changed by editing these tables or by
selecting another named profile, never by request parameters.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Tuple

HSV = Tuple[int, int, int]


class PixelLabel(IntEnum):
    BACKGROUND = 0
    HEALTHY = 1
    RUST = 2
    SCAB = 3


@dataclass(frozen=True)
class ColorRange:
    """Inclusive HSV box."""
    name: str
    lower: HSV
    upper: HSV

    def __post_init__(self) -> None:
        if len(self.lower) != 3 or len(self.upper) != 3:
            raise ValueError(f"{self.name}: bounds must be (h, s, v) triples")
        for lo, hi in zip(self.lower, self.upper):
            if lo > hi:
                raise ValueError(f"{self.name}: lower {self.lower} exceeds upper {self.upper}")

    def contains(self, h: int, s: int, v: int) -> bool:
        return (self.lower[0] <= h <= self.upper[0]
                and self.lower[1] <= s <= self.upper[1]
                and self.lower[2] <= v <= self.upper[2])


@dataclass(frozen=True)
class ColorProfile:
    """
    One complete labelling policy.

    Each category may hold several buckets; a pixel belongs to the
    category when it falls in any of them. Pixels below
    ``saturation_floor`` are left unlabelled before any bucket is tested.
    """
    name: str
    healthy: Tuple[ColorRange, ...]
    rust: Tuple[ColorRange, ...]
    scab: Tuple[ColorRange, ...]
    saturation_floor: int = 0

    def buckets(self, label: PixelLabel) -> Tuple[ColorRange, ...]:
        return {
            PixelLabel.HEALTHY: self.healthy,
            PixelLabel.RUST: self.rust,
            PixelLabel.SCAB: self.scab,
        }[label]


# Single box per category. Canonical profile.
SHARED_BOX = ColorProfile(
    name="shared_box",
    healthy=(ColorRange("healthy", (35, 40, 40), (85, 255, 255)),),
    rust=(ColorRange("rust", (10, 100, 80), (35, 255, 255)),),
    scab=(ColorRange("scab", (0, 0, 0), (180, 120, 160)),),
)

# Two hue buckets per disease, gated on luminance, with a saturation
# floor that rejects near-gray pixels.
DUAL_BUCKET = ColorProfile(
    name="dual_bucket",
    healthy=(ColorRange("healthy", (30, 20, 20), (90, 255, 255)),),
    rust=(
        ColorRange("rust_orange", (5, 80, 80), (25, 255, 255)),
        ColorRange("rust_yellow", (20, 40, 80), (40, 255, 255)),
    ),
    scab=(
        ColorRange("scab_dark", (0, 0, 0), (180, 255, 60)),
        ColorRange("scab_brown", (5, 40, 20), (30, 255, 160)),
    ),
    saturation_floor=10,
)

COLOR_PROFILES: Dict[str, ColorProfile] = {p.name: p for p in (SHARED_BOX, DUAL_BUCKET)}

# Wide tolerances used only to find the leaf: green OR brown/orange
# families with a minimum saturation and value.
FOREGROUND_RANGES: Tuple[ColorRange, ...] = (
    ColorRange("vegetation_green", (25, 30, 30), (95, 255, 255)),
    ColorRange("vegetation_brown_orange", (0, 40, 40), (35, 255, 255)),
)


@dataclass(frozen=True)
class SeverityThresholds:
    """Lesion area as a percentage of the leaf: below ``low_below`` is low,
    above ``high_above`` is high, anything in between is medium."""
    name: str
    low_below: float
    high_above: float

    def __post_init__(self) -> None:
        if not 0 <= self.low_below <= self.high_above:
            raise ValueError(f"{self.name}: thresholds must satisfy 0 <= low <= high")


STANDARD_SEVERITY = SeverityThresholds("standard", low_below=1.0, high_above=5.0)
CONSERVATIVE_SEVERITY = SeverityThresholds("conservative", low_below=2.0, high_above=5.0)

SEVERITY_PROFILES: Dict[str, SeverityThresholds] = {
    t.name: t for t in (STANDARD_SEVERITY, CONSERVATIVE_SEVERITY)
}


def get_color_profile(name: str) -> ColorProfile:
    try:
        return COLOR_PROFILES[name]
    except KeyError:
        raise ValueError(f"unknown color profile {name!r}, expected one of {sorted(COLOR_PROFILES)}")


def get_severity_thresholds(name: str) -> SeverityThresholds:
    try:
        return SEVERITY_PROFILES[name]
    except KeyError:
        raise ValueError(f"unknown severity profile {name!r}, expected one of {sorted(SEVERITY_PROFILES)}")
