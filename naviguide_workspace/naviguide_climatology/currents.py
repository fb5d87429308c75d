"""
NAVIGUIDE Climatology — Ocean Currents
======================================
Two-component (eastward u, northward v) monthly current field.

Components are interpolated separately, then converted to magnitude or
direction, so a current veering between two cells keeps its strength.
Directions follow the oceanographic convention (the bearing the water flows
TOWARD). ``multiplier`` converts raw samples to knots.
"""

import math
from typing import Optional, Tuple

import numpy as np

from .grid import DatasetLoadError, GridResolution
from .temporal import MONTHS, SLICE_COUNT, locate
from .wind_atlas import Coord


Vector = Tuple[float, float]


class VectorFieldGrid:

    def __init__(self, resolution: GridResolution, u: np.ndarray, v: np.ndarray,
                 multiplier: float = 1.0):
        u = np.array(u, dtype=np.float64)
        v = np.array(v, dtype=np.float64)
        if u.ndim == 2:
            u, v = u[np.newaxis], v[np.newaxis]
        if u.shape != v.shape or u.shape[1:] != resolution.shape:
            raise DatasetLoadError(
                f"currents: component shapes {u.shape}/{v.shape} "
                f"do not match {resolution.shape}"
            )
        if u.shape[0] not in (1, MONTHS, SLICE_COUNT):
            raise DatasetLoadError(f"currents: unexpected slice count {u.shape[0]}")
        if u.shape[0] == MONTHS:
            u = np.concatenate([u, u.mean(axis=0)[np.newaxis]])
            v = np.concatenate([v, v.mean(axis=0)[np.newaxis]])
        # a cell is only usable when both components are present
        gap = np.isnan(u) | np.isnan(v)
        u[gap] = np.nan
        v[gap] = np.nan
        u.setflags(write=False)
        v.setflags(write=False)

        self.resolution = resolution
        self.u, self.v  = u, v
        self.multiplier = multiplier

    def with_annual_mean(self) -> "VectorFieldGrid":
        if self.u.shape[0] == 1:
            return self
        return VectorFieldGrid(self.resolution, self.u[:MONTHS], self.v[:MONTHS],
                               self.multiplier)

    def _slice(self, index: int) -> int:
        return 0 if self.u.shape[0] == 1 else index

    def interpolate_vector(self, lat: float, lon: float, slice_index: int) -> Optional[Vector]:
        """Bilinear (u, v) in raw units; None when any contributing cell is missing."""
        stencil = self.resolution.neighbours(lat, lon)
        if stencil is None:
            return None
        s = self._slice(slice_index)
        u = v = 0.0
        for row, col, w in stencil:
            cu = self.u[s, row, col]
            if math.isnan(cu):
                return None
            u += w * cu
            v += w * self.v[s, row, col]
        return (float(u), float(v))

    def coordinate_value(self, vector: Vector, coord: Coord) -> float:
        u, v = vector
        coord = Coord(coord)
        if coord is Coord.U:
            return u * self.multiplier
        if coord is Coord.V:
            return v * self.multiplier
        if coord is Coord.MAG:
            return math.hypot(u, v) * self.multiplier
        if coord is Coord.DIRECTION:
            return (math.degrees(math.atan2(u, v)) + 360.0) % 360.0
        raise ValueError(f"currents have no {coord.value} readout")

    def vector_at_date(self, lat: float, lon: float, date=None) -> Optional[Vector]:
        t = locate(date)
        first = self.interpolate_vector(lat, lon, t.month)
        if first is None or t.month == t.next_month:
            return first
        second = self.interpolate_vector(lat, lon, t.next_month)
        if second is None:
            return None
        return (t.blend(first[0], second[0]), t.blend(first[1], second[1]))

    def sample(self, coord: Coord, lat: float, lon: float, date=None) -> Optional[float]:
        vector = self.vector_at_date(lat, lon, date)
        if vector is None:
            return None
        return self.coordinate_value(vector, coord)
