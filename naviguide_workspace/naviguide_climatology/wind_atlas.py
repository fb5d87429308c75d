"""
NAVIGUIDE Climatology — Wind Atlas
==================================
Per-cell wind roses: for every grid cell and month, a probability-weighted
distribution over ``direction_count`` direction bins (occurrence + mean speed)
plus storm and calm probabilities.

Distributions are value types (``WindDistribution``). The grid stores them
in contiguous numpy arrays and builds a distribution only on query.

A cell whose storm byte is the 255 sentinel has no valid rose. Any query that
touches such a cell returns ``None``: wind-atlas statistics under partial
coverage are not trusted, so nothing is zero-filled.

Directions are meteorological ("FROM"); bin ``i`` is centred on
``i * 360 / direction_count`` degrees true.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from .grid import DatasetLoadError, GridResolution
from .temporal import MONTHS, SLICE_COUNT, locate

log = logging.getLogger("climatology.wind_atlas")

NO_DATA = 255   # storm byte marking a cell without observations


class Coord(str, Enum):
    """Scalar readouts of a wind rose or current vector."""
    U         = "u"
    V         = "v"
    MAG       = "mag"
    DIRECTION = "direction"
    STORM     = "storm"
    CALM      = "calm"


@dataclass(frozen=True)
class WindDistribution:
    storm:   float                # probability of gale-force wind, 0–1
    calm:    float                # probability of calm, 0–1
    weights: Tuple[float, ...]    # occurrence per direction bin, 0–1
    speeds:  Tuple[float, ...]    # mean speed per direction bin, knots

    @property
    def direction_count(self) -> int:
        return len(self.weights)

    def bin_direction(self, index: int) -> float:
        return index * 360.0 / self.direction_count

    def resultant(self) -> Tuple[float, float]:
        """Occurrence-weighted mean wind vector (u toward east, v toward north of the FROM bearing)."""
        total = sum(self.weights)
        if total <= 0.0:
            return (0.0, 0.0)
        u = v = 0.0
        for i, (w, s) in enumerate(zip(self.weights, self.speeds)):
            a = math.radians(self.bin_direction(i))
            u += w * s * math.sin(a)
            v += w * s * math.cos(a)
        return (u / total, v / total)

    def mean_speed(self) -> float:
        total = sum(self.weights)
        if total <= 0.0:
            return 0.0
        return sum(w * s for w, s in zip(self.weights, self.speeds)) / total


def coordinate_value(distribution: WindDistribution, coord: Coord) -> float:
    """Reduce a wind rose to one number along *coord*."""
    coord = Coord(coord)
    if coord is Coord.MAG:
        return distribution.mean_speed()
    if coord is Coord.STORM:
        return distribution.storm
    if coord is Coord.CALM:
        return distribution.calm
    u, v = distribution.resultant()
    if coord is Coord.U:
        return u
    if coord is Coord.V:
        return v
    return (math.degrees(math.atan2(u, v)) + 360.0) % 360.0


# ── Grid ─────────────────────────────────────────────────────────────────────

class WindAtlasGrid:
    """
    Monthly wind roses on a fixed grid.

    Arrays (NaN in ``storm`` marks an invalid cell):
      storm, calm       [slices, lat, lon]
      weights, speeds   [slices, lat, lon, directions]
    """

    def __init__(self, resolution: GridResolution, storm: np.ndarray, calm: np.ndarray,
                 weights: np.ndarray, speeds: np.ndarray):
        storm   = np.array(storm, dtype=np.float64)
        calm    = np.array(calm, dtype=np.float64)
        weights = np.array(weights, dtype=np.float64)
        speeds  = np.array(speeds, dtype=np.float64)

        cells = storm.shape
        if len(cells) != 3 or cells[1:] != resolution.shape:
            raise DatasetLoadError(f"wind atlas: shape {cells} does not match {resolution.shape}")
        if cells[0] not in (MONTHS, SLICE_COUNT):
            raise DatasetLoadError(f"wind atlas: unexpected slice count {cells[0]}")
        if calm.shape != cells or weights.shape[:3] != cells or speeds.shape != weights.shape:
            raise DatasetLoadError("wind atlas: storm/calm/direction arrays disagree in shape")

        valid = ~np.isnan(storm)
        for label, arr in (("storm", storm), ("calm", calm), ("direction weight", weights)):
            cells_ok = arr[valid].ravel()
            if cells_ok.size and (np.nanmin(cells_ok) < 0.0 or np.nanmax(cells_ok) > 1.0):
                raise DatasetLoadError(f"wind atlas: {label} probability outside [0, 1]")

        self.resolution      = resolution
        self.direction_count = weights.shape[3]
        self.storm, self.calm, self.weights, self.speeds = storm, calm, weights, speeds
        if cells[0] == MONTHS:
            self._append_annual()
        for arr in (self.storm, self.calm, self.weights, self.speeds):
            arr.setflags(write=False)

    @classmethod
    def from_fixed_point(cls, resolution: GridResolution, storm, calm,
                         directions, speeds) -> "WindAtlasGrid":
        """
        Build from the byte layout of the atlas files: storm, calm and
        direction occurrence in percent, speeds in knots, storm == 255 for
        "no data".
        """
        storm_raw = np.asarray(storm)
        invalid   = storm_raw == NO_DATA
        storm_p   = storm_raw.astype(np.float64) / 100.0
        calm_p    = np.asarray(calm, dtype=np.float64) / 100.0
        weights   = np.asarray(directions, dtype=np.float64) / 100.0
        speeds_kn = np.asarray(speeds, dtype=np.float64)

        storm_p[invalid] = np.nan
        calm_p[invalid]  = np.nan
        weights[invalid] = np.nan
        speeds_kn[invalid] = np.nan
        log.debug(f"wind atlas: {int(invalid.sum())} cells without data")
        return cls(resolution, storm_p, calm_p, weights, speeds_kn)

    def _append_annual(self) -> None:
        """Average the 12 monthly roses into slice 12 (a cell invalid in any month stays invalid)."""
        self.storm   = np.concatenate([self.storm,   self.storm.mean(axis=0)[np.newaxis]])
        self.calm    = np.concatenate([self.calm,    self.calm.mean(axis=0)[np.newaxis]])
        self.weights = np.concatenate([self.weights, self.weights.mean(axis=0)[np.newaxis]])
        self.speeds  = np.concatenate([self.speeds,  self.speeds.mean(axis=0)[np.newaxis]])

    def with_annual_mean(self) -> "WindAtlasGrid":
        return WindAtlasGrid(self.resolution, self.storm[:MONTHS], self.calm[:MONTHS],
                             self.weights[:MONTHS], self.speeds[:MONTHS])

    # ── Queries ──────────────────────────────────────────────────────────────

    def cell(self, slice_index: int, row: int, col: int) -> Optional[WindDistribution]:
        if math.isnan(self.storm[slice_index, row, col]):
            return None
        return WindDistribution(
            storm   = float(self.storm[slice_index, row, col]),
            calm    = float(self.calm[slice_index, row, col]),
            weights = tuple(float(w) for w in self.weights[slice_index, row, col]),
            speeds  = tuple(float(s) for s in self.speeds[slice_index, row, col]),
        )

    def _interpolate_slice(self, stencil, slice_index: int):
        storm = calm = 0.0
        weights = np.zeros(self.direction_count)
        speeds  = np.zeros(self.direction_count)
        for row, col, w in stencil:
            if math.isnan(self.storm[slice_index, row, col]):
                return None
            storm   += w * self.storm[slice_index, row, col]
            calm    += w * self.calm[slice_index, row, col]
            weights += w * self.weights[slice_index, row, col]
            speeds  += w * self.speeds[slice_index, row, col]
        return storm, calm, weights, speeds

    def interpolate_atlas(self, lat: float, lon: float, month: int,
                          next_month: int, weight: float) -> Optional[WindDistribution]:
        """
        Bilinear rose at (lat, lon) for *month*, blended toward *next_month*
        by *weight*. None if any contributing cell lacks data.
        """
        stencil = self.resolution.neighbours(lat, lon)
        if stencil is None:
            return None
        first = self._interpolate_slice(stencil, month)
        if first is None:
            return None
        if next_month == month:
            storm, calm, weights, speeds = first
        else:
            second = self._interpolate_slice(stencil, next_month)
            if second is None:
                return None
            storm, calm, weights, speeds = (
                a * (1.0 - weight) + b * weight for a, b in zip(first, second)
            )
        return WindDistribution(
            storm   = float(storm),
            calm    = float(calm),
            weights = tuple(float(w) for w in weights),
            speeds  = tuple(float(s) for s in speeds),
        )

    def interpolate_at_date(self, lat: float, lon: float, date=None) -> Optional[WindDistribution]:
        t = locate(date)
        return self.interpolate_atlas(lat, lon, t.month, t.next_month, t.weight)

    def value(self, coord: Coord, lat: float, lon: float, date=None) -> Optional[float]:
        distribution = self.interpolate_at_date(lat, lon, date)
        if distribution is None:
            return None
        return coordinate_value(distribution, coord)

    def value_slice(self, coord: Coord, lat: float, lon: float,
                    slice_index: int) -> Optional[float]:
        distribution = self.interpolate_atlas(lat, lon, slice_index, slice_index, 0.0)
        if distribution is None:
            return None
        return coordinate_value(distribution, coord)
