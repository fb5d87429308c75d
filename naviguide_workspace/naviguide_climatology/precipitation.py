"""
NAVIGUIDE Climatology — Condensed Precipitation Grid
====================================================
Codec for the compact precipitation file produced offline from the CMAP
monthly-mean dataset.

Layout
------
  N × 72 × 144 unsigned bytes, time-major then row-major (N = 12 or 13)
  2.5° grid, row 0 at 90°S, column 0 at 0°E
  byte 255      → missing
  any other b   → b / 5 mm/day   (0.2 mm/day resolution)

Twelve-slice files get their annual slice computed on decode.
"""

import logging
from typing import Union

import numpy as np

from .grid import DatasetLoadError, GridResolution, GriddedField
from .temporal import MONTHS, SLICE_COUNT

log = logging.getLogger("climatology.precipitation")

PRECIP_RESOLUTION = GridResolution(2.5, 2.5)
SCALE    = 5.0
SENTINEL = 255
MAX_BYTE = 254


def decode_condensed(data: Union[bytes, bytearray, memoryview],
                     resolution: GridResolution = PRECIP_RESOLUTION,
                     name: str = "precipitation") -> GriddedField:
    """Decode a condensed byte grid into a ``GriddedField`` (mm/day)."""
    lats, lons = resolution.shape
    cells = lats * lons
    size  = len(data)
    if size not in (MONTHS * cells, SLICE_COUNT * cells):
        raise DatasetLoadError(
            f"{name}: {size} bytes is neither 12 nor 13 slices of {lats}x{lons}"
        )
    raw = np.frombuffer(bytes(data), dtype=np.uint8).reshape(size // cells, lats, lons)
    field = GriddedField.from_fixed_point(name, raw, resolution,
                                          scale=1.0 / SCALE, sentinel=SENTINEL)
    log.info(f"{name}: decoded {raw.shape[0]} slices at {resolution.lat_step}°")
    return field


def encode_condensed(values) -> bytes:
    """
    Encode a ``[slices][lat][lon]`` array (mm/day, NaN = missing) or a
    ``GriddedField`` into the condensed layout. Values round to the nearest
    0.2 mm/day and clip to the 0–50.8 range that fits below the sentinel.
    """
    if isinstance(values, GriddedField):
        values = values.values
    values = np.asarray(values, dtype=np.float64)
    missing = np.isnan(values)
    scaled = np.clip(np.rint(np.where(missing, 0.0, values) * SCALE), 0, MAX_BYTE)
    out = scaled.astype(np.uint8)
    out[missing] = SENTINEL
    return out.tobytes()
