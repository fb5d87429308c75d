"""
NAVIGUIDE Climatology — Settings, Units and Display Ranges
==========================================================
One ``Setting`` per overlay, its base unit (the unit the grids store), the
display units it can be converted to, and the value range used by the
renderer for colour scales.
"""

from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .grid import GridResolution


class Setting(str, Enum):
    WIND              = "wind"
    CURRENT           = "current"
    PRESSURE          = "pressure"
    SEA_TEMPERATURE   = "sea_temperature"
    AIR_TEMPERATURE   = "air_temperature"
    CLOUD             = "cloud"
    PRECIPITATION     = "precipitation"
    RELATIVE_HUMIDITY = "relative_humidity"
    LIGHTNING         = "lightning"
    SEA_DEPTH         = "sea_depth"
    CYCLONE           = "cyclone"


# Native grid of each scalar setting
STANDARD_RESOLUTIONS: Dict[Setting, GridResolution] = {
    Setting.PRESSURE:          GridResolution(2.0, 2.0),
    Setting.SEA_TEMPERATURE:   GridResolution(1.0, 1.0),
    Setting.AIR_TEMPERATURE:   GridResolution(2.0, 2.0),
    Setting.CLOUD:             GridResolution(2.0, 2.0),
    Setting.PRECIPITATION:     GridResolution(2.5, 2.5),
    Setting.RELATIVE_HUMIDITY: GridResolution(1.0, 1.0),
    Setting.LIGHTNING:         GridResolution(1.0, 1.0),
    Setting.SEA_DEPTH:         GridResolution(1.0, 1.0),
}


def _linear(factor: float, offset: float = 0.0) -> Callable[[float], float]:
    return lambda v: v * factor + offset


_SPEED = {
    "knots": _linear(1.0),
    "m/s":   _linear(0.514444),
    "mph":   _linear(1.150779),
    "km/h":  _linear(1.852),
}

# base unit first
UNITS: Dict[Setting, Dict[str, Callable[[float], float]]] = {
    Setting.WIND:              _SPEED,
    Setting.CURRENT:           _SPEED,
    Setting.PRESSURE:          {"mbar": _linear(1.0), "mmHg": _linear(0.750062),
                                "inHg": _linear(0.02953)},
    Setting.SEA_TEMPERATURE:   {"celsius": _linear(1.0), "fahrenheit": _linear(1.8, 32.0)},
    Setting.AIR_TEMPERATURE:   {"celsius": _linear(1.0), "fahrenheit": _linear(1.8, 32.0)},
    Setting.CLOUD:             {"percent": _linear(1.0)},
    Setting.PRECIPITATION:     {"mm/day": _linear(1.0), "in/day": _linear(1.0 / 25.4)},
    Setting.RELATIVE_HUMIDITY: {"percent": _linear(1.0)},
    Setting.LIGHTNING:         {"strikes/km2/day": _linear(1.0)},
    Setting.SEA_DEPTH:         {"m": _linear(1.0), "ft": _linear(3.28084),
                                "fathoms": _linear(0.546807)},
    Setting.CYCLONE:           {"crossings": _linear(1.0)},
}

# Colour-scale range per setting, in base units
VALUE_RANGES: Dict[Setting, Tuple[float, float]] = {
    Setting.WIND:              (0.0, 50.0),
    Setting.CURRENT:           (0.0, 3.0),
    Setting.PRESSURE:          (960.0, 1050.0),
    Setting.SEA_TEMPERATURE:   (-2.0, 32.0),
    Setting.AIR_TEMPERATURE:   (-40.0, 40.0),
    Setting.CLOUD:             (0.0, 100.0),
    Setting.PRECIPITATION:     (0.0, 15.0),
    Setting.RELATIVE_HUMIDITY: (0.0, 100.0),
    Setting.LIGHTNING:         (0.0, 1.0),
    Setting.SEA_DEPTH:         (0.0, 8000.0),
    Setting.CYCLONE:           (0.0, 10.0),
}


def unit_names(setting: Setting) -> List[str]:
    return list(UNITS[Setting(setting)])


def base_unit(setting: Setting) -> str:
    return unit_names(setting)[0]


def convert(setting: Setting, value: float, unit: str) -> float:
    """Convert *value* from the setting's base unit to *unit*."""
    table = UNITS[Setting(setting)]
    if unit not in table:
        raise ValueError(f"unknown unit {unit!r} for {Setting(setting).value}; "
                         f"expected one of {list(table)}")
    return table[unit](value)


def value_range(setting: Setting, unit: Optional[str] = None) -> Tuple[float, float]:
    lo, hi = VALUE_RANGES[Setting(setting)]
    if unit is None:
        return (lo, hi)
    return (convert(setting, lo, unit), convert(setting, hi, unit))
