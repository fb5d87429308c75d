"""
NAVIGUIDE Climatology — Gridded Fields
======================================
Fixed-resolution global scalar grids with 13 time slices
(12 months + annual mean), or a single slice for static fields such as
sea depth.

Each variable keeps its native resolution; one ``GriddedField`` type covers
them all, parameterised by ``GridResolution``.

Missing data
------------
Fixed-point inputs carry a sentinel ("no observation"). It is decoded once,
at construction, into NaN; every public query returns ``None`` for missing.
Interpolation never blends a missing neighbour: sparse coastal data would
otherwise be silently pulled toward zero.

Coordinates
-----------
Row ``i`` lies at ``lat_origin + i * lat_step``, column ``j`` at
``lon_origin + j * lon_step``. Longitude wraps modulo 360 (the last column
interpolates with column 0). Latitude outside ±90° or beyond the first/last
stored row is missing: nothing is extrapolated.
"""

import logging
import math
from typing import List, NamedTuple, Optional, Tuple

import numpy as np

from .temporal import MONTHS, SLICE_COUNT, locate

log = logging.getLogger("climatology.grid")


class DatasetLoadError(Exception):
    """A dataset could not be turned into a usable grid (bad shape, truncated, …)."""


# ── Resolution ───────────────────────────────────────────────────────────────

class GridResolution(NamedTuple):
    lat_step:   float
    lon_step:   float
    lat_origin: float = -90.0
    lon_origin: float = 0.0

    @property
    def lat_count(self) -> int:
        return int(round(180.0 / self.lat_step))

    @property
    def lon_count(self) -> int:
        return int(round(360.0 / self.lon_step))

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.lat_count, self.lon_count)

    def cell_position(self, row: int, col: int) -> Tuple[float, float]:
        """(lat, lon) of a lattice point."""
        return (self.lat_origin + row * self.lat_step,
                self.lon_origin + col * self.lon_step)

    def neighbours(self, lat: float, lon: float) -> Optional[List[Tuple[int, int, float]]]:
        """
        Bilinear stencil for (lat, lon): ``[(row, col, weight), …]``.

        Only cells with a non-zero weight are returned, so a lattice point
        yields a single cell with weight 1. ``None`` when the latitude lies
        outside the stored rows.
        """
        if not (-90.0 <= lat <= 90.0) or math.isnan(lon):
            return None

        y = (lat - self.lat_origin) / self.lat_step
        rows = self.lat_count
        if y < 0.0 or y > rows - 1:
            return None
        y0 = min(int(math.floor(y)), rows - 2) if rows > 1 else 0
        fy = y - y0

        cols = self.lon_count
        x = ((lon - self.lon_origin) % 360.0) / self.lon_step
        x0 = int(math.floor(x))
        fx = x - x0
        x0 %= cols
        x1 = (x0 + 1) % cols

        stencil = []
        for row, wy in ((y0, 1.0 - fy), (y0 + 1, fy)):
            if wy == 0.0:
                continue
            for col, wx in ((x0, 1.0 - fx), (x1, fx)):
                if wx == 0.0:
                    continue
                stencil.append((row, col, wy * wx))
        return stencil


def _append_annual(months: np.ndarray) -> np.ndarray:
    """Stack the 12 monthly slices with their mean; NaN in any month propagates."""
    annual = months.mean(axis=0)
    return np.concatenate([months, annual[np.newaxis]], axis=0)


# ── Gridded scalar field ─────────────────────────────────────────────────────

class GriddedField:
    """
    Immutable scalar grid ``values[slice][row][col]`` (NaN = missing).

    Usage
    -----
    field = GriddedField.from_fixed_point("pressure", raw, GridResolution(2, 2),
                                          scale=0.1, sentinel=-32768)
    field.sample(0, 45.5, -12.0)          # January value or None
    field.sample_at_date(45.5, -12.0, date(2024, 3, 20))
    """

    def __init__(self, name: str, values: np.ndarray,
                 resolution: GridResolution, available: bool = True):
        values = np.asarray(values, dtype=np.float64)
        if values.ndim == 2:
            values = values[np.newaxis, :, :]
        if values.ndim != 3 or values.shape[1:] != resolution.shape:
            raise DatasetLoadError(
                f"{name}: grid shape {values.shape} does not match "
                f"resolution {resolution.lat_step}x{resolution.lon_step} "
                f"{resolution.shape}"
            )
        if values.shape[0] not in (1, MONTHS, SLICE_COUNT):
            raise DatasetLoadError(f"{name}: unexpected slice count {values.shape[0]}")

        if values.shape[0] == MONTHS:
            values = _append_annual(values)
        else:
            values = values.copy()
        values.setflags(write=False)
        self.name       = name
        self.resolution = resolution
        self.values     = values
        self.available  = available

    # ── Construction ─────────────────────────────────────────────────────────

    @classmethod
    def from_fixed_point(cls, name: str, samples, resolution: GridResolution,
                         scale: float = 1.0, offset: float = 0.0,
                         sentinel: Optional[int] = None) -> "GriddedField":
        """Decode scaled integer samples; *sentinel* becomes missing."""
        raw = np.asarray(samples)
        values = raw.astype(np.float64) * scale + offset
        if sentinel is not None:
            values[raw == sentinel] = np.nan
        log.debug(f"{name}: decoded {raw.size} samples, "
                  f"{int(np.isnan(values).sum())} missing")
        return cls(name, values, resolution)

    @classmethod
    def unavailable(cls, name: str, resolution: GridResolution,
                    slices: int = SLICE_COUNT) -> "GriddedField":
        """A field whose load failed: missing everywhere, for the whole session."""
        values = np.full((slices,) + resolution.shape, np.nan)
        return cls(name, values, resolution, available=False)

    def with_annual_mean(self) -> "GriddedField":
        """
        Copy with slice 12 = mean of the 12 monthly slices.
        A cell missing in any month stays missing in the mean.
        """
        if self.slice_count == 1:
            return self
        values = _append_annual(self.values[:MONTHS])
        return GriddedField(self.name, values, self.resolution, self.available)

    # ── Queries ──────────────────────────────────────────────────────────────

    @property
    def slice_count(self) -> int:
        return self.values.shape[0]

    def _slice(self, index: int) -> int:
        return 0 if self.slice_count == 1 else index

    def value_at_cell(self, slice_index: int, row: int, col: int) -> Optional[float]:
        v = self.values[self._slice(slice_index), row, col % self.resolution.lon_count]
        return None if math.isnan(v) else float(v)

    def sample(self, slice_index: int, lat: float, lon: float) -> Optional[float]:
        """Bilinear value at (lat, lon) in one time slice, or None if missing."""
        stencil = self.resolution.neighbours(lat, lon)
        if stencil is None:
            return None
        grid = self.values[self._slice(slice_index)]
        total = 0.0
        for row, col, w in stencil:
            v = grid[row, col]
            if math.isnan(v):
                return None
            total += w * v
        return float(total)

    def sample_at_date(self, lat: float, lon: float, date=None) -> Optional[float]:
        """Value at (lat, lon) blended between the two monthly slices bracketing *date*."""
        t = locate(date)
        current = self.sample(t.month, lat, lon)
        if current is None:
            return None
        if t.month == t.next_month:
            return current
        adjacent = self.sample(t.next_month, lat, lon)
        if adjacent is None:
            return None
        return t.blend(current, adjacent)

    def __repr__(self) -> str:
        r = self.resolution
        return (f"GriddedField({self.name!r}, {r.lat_step}x{r.lon_step} deg, "
                f"slices={self.slice_count}, available={self.available})")
