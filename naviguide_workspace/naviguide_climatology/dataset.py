"""
NAVIGUIDE Climatology — Climate Dataset Context
===============================================
The session object that owns every loaded grid and the cyclone index.

Phases
------
1. Load:   ``add_field`` / ``load_field`` / ``set_wind_atlas`` /
            ``set_currents`` / ``set_cyclones`` / ``set_el_nino_years``.
            A failing loader is reported once; its setting stays
            unavailable (every query → None) and the other settings keep
            working.
2. Query:  ``value`` / ``value_month`` / ``calibrated_value`` /
            ``isobar_map`` / ``cyclone_crossings``. Read-only, safe from
            several threads once loading is finished.
3. Close:  ``close`` drops every reference.
"""

import logging
from typing import Callable, Dict, Iterable, Mapping, Optional

from .contours import IsobarMap
from .currents import VectorFieldGrid
from .cyclones import Basin, CycloneTrackIndex, ElNinoYear, EnsoPhase
from .grid import DatasetLoadError, GriddedField
from .units import STANDARD_RESOLUTIONS, Setting, convert
from .wind_atlas import Coord, WindAtlasGrid

log = logging.getLogger("climatology.dataset")


class ClimateDataset:

    def __init__(self):
        self.fields:    Dict[Setting, GriddedField] = {}
        self.wind:      Optional[WindAtlasGrid]     = None
        self.currents:  Optional[VectorFieldGrid]   = None
        self.cyclones:  Optional[CycloneTrackIndex] = None
        self.failures:  Dict[Setting, str]          = {}

    # ── Load phase ───────────────────────────────────────────────────────────

    def add_field(self, setting: Setting, field: GriddedField) -> None:
        setting = Setting(setting)
        expected = STANDARD_RESOLUTIONS.get(setting)
        if expected is not None and field.resolution != expected:
            raise DatasetLoadError(
                f"{setting.value}: resolution {field.resolution.lat_step}x"
                f"{field.resolution.lon_step} differs from the native "
                f"{expected.lat_step}x{expected.lon_step}"
            )
        self.fields[setting] = field
        log.info(f"Loaded {field!r}")

    def load_field(self, setting: Setting, loader: Callable[[], GriddedField]) -> bool:
        """
        Run *loader* and install its field. On failure the error is logged
        once, recorded in ``failures`` and the setting becomes permanently
        unavailable for this session. Returns True on success.
        """
        setting = Setting(setting)
        try:
            self.add_field(setting, loader())
            return True
        except (DatasetLoadError, OSError, ValueError) as exc:
            self.fail(setting, str(exc))
            return False

    def fail(self, setting: Setting, message: str) -> None:
        setting = Setting(setting)
        self.failures[setting] = message
        log.error(f"Failed loading {setting.value}: {message}")
        resolution = STANDARD_RESOLUTIONS.get(setting)
        if resolution is not None:
            self.fields[setting] = GriddedField.unavailable(setting.value, resolution)
        elif setting is Setting.WIND:
            self.wind = None
        elif setting is Setting.CURRENT:
            self.currents = None
        elif setting is Setting.CYCLONE:
            self.cyclones = None

    def set_wind_atlas(self, atlas: WindAtlasGrid) -> None:
        self.wind = atlas
        log.info(f"Loaded wind atlas ({atlas.direction_count} directions)")

    def set_currents(self, currents: VectorFieldGrid) -> None:
        self.currents = currents
        log.info("Loaded current field")

    def set_cyclones(self, index: CycloneTrackIndex) -> None:
        self.cyclones = index
        log.info(f"Loaded cyclone tracks for {len(index.basins)} basins")

    def set_el_nino_years(self, years: Mapping[int, ElNinoYear]) -> None:
        """Attach monthly ENSO indices to the cyclone index (replaces any already set)."""
        if self.cyclones is None:
            raise DatasetLoadError("ENSO years need a loaded cyclone index")
        self.cyclones.el_nino_years = dict(years)
        log.info(f"Loaded ENSO indices for {len(years)} years")

    @property
    def failed_message(self) -> str:
        return "\n".join(f"{s.value}: {m}" for s, m in self.failures.items())

    def available(self, setting: Setting) -> bool:
        setting = Setting(setting)
        if setting is Setting.WIND:
            return self.wind is not None
        if setting is Setting.CURRENT:
            return self.currents is not None
        if setting is Setting.CYCLONE:
            return self.cyclones is not None
        field = self.fields.get(setting)
        return field is not None and field.available

    # ── Query phase ──────────────────────────────────────────────────────────

    def value(self, setting: Setting, lat: float, lon: float, date=None,
              coord: Coord = Coord.MAG) -> Optional[float]:
        """Interpolated value in base units; None when missing or unavailable."""
        setting = Setting(setting)
        if setting is Setting.WIND:
            return self.wind.value(coord, lat, lon, date) if self.wind else None
        if setting is Setting.CURRENT:
            return self.currents.sample(coord, lat, lon, date) if self.currents else None
        field = self.fields.get(setting)
        if field is None:
            return None
        return field.sample_at_date(lat, lon, date)

    def value_month(self, setting: Setting, lat: float, lon: float, month: int,
                    coord: Coord = Coord.MAG) -> Optional[float]:
        """Value of one slice (0–11 months, 12 annual) without time blending."""
        setting = Setting(setting)
        if setting is Setting.WIND:
            if self.wind is None:
                return None
            return self.wind.value_slice(coord, lat, lon, month)
        if setting is Setting.CURRENT:
            if self.currents is None:
                return None
            vector = self.currents.interpolate_vector(lat, lon, month)
            return None if vector is None else self.currents.coordinate_value(vector, coord)
        field = self.fields.get(setting)
        return None if field is None else field.sample(month, lat, lon)

    def calibrated_value(self, setting: Setting, lat: float, lon: float, date=None,
                         coord: Coord = Coord.MAG, unit: Optional[str] = None) -> Optional[float]:
        """``value`` converted to a display *unit* (directions and probabilities pass through)."""
        v = self.value(setting, lat, lon, date, coord)
        if v is None or unit is None or Coord(coord) not in (Coord.MAG, Coord.U, Coord.V):
            return v
        return convert(setting, v, unit)

    def isobar_map(self, setting: Setting, spacing: float, step: float, date=None,
                   coord: Coord = Coord.MAG, unit: Optional[str] = None,
                   **contour_options) -> IsobarMap:
        """Contour settings bound to this dataset's value function for *setting*."""
        setting = Setting(setting)

        def func(lat: float, lon: float) -> Optional[float]:
            return self.calibrated_value(setting, lat, lon, date, coord, unit)

        return IsobarMap(setting.value, spacing, step, func, unit=unit, date=date,
                         coord=Coord(coord), **contour_options)

    def cyclone_crossings(self, lat1: float, lon1: float, lat2: float, lon2: float,
                          date=None, day_range: int = 30, min_wind_knots: float = 0.0,
                          data_start=None, basin: Optional[Basin] = None,
                          enso_phases: Optional[Iterable[EnsoPhase]] = None) -> Optional[int]:
        if self.cyclones is None:
            return None
        return self.cyclones.count_crossings(lat1, lon1, lat2, lon2, date, day_range,
                                             min_wind_knots, data_start, basin, enso_phases)

    # ── Teardown ─────────────────────────────────────────────────────────────

    def close(self) -> None:
        self.fields.clear()
        self.wind = self.currents = self.cyclones = None
        log.info("Climate dataset closed")
