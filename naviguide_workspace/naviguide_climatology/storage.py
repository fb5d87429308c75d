"""
NAVIGUIDE Climatology — Dataset Files
=====================================
Thin adapters from already-prepared files to the core objects.

Expected layout of ``data_dir``
-------------------------------
  precipitation.bin    condensed precipitation bytes (see precipitation.py)
  <setting>.npy        float grid [13|12|1][lat][lon], NaN = missing,
                       at the setting's native resolution
  wind_atlas.npz       storm, calm, directions, speeds (atlas byte layout)
                       + resolution = [lat_step, lon_step]
  currents.npz         u, v, resolution, multiplier
  cyclones.csv         one row per track state:
                       storm_id, basin, year, month, day, hour, lat, lon,
                       wind_knots[, pressure, category, name]
  el_nino.csv          year, m1 … m12

Absent files are skipped; unreadable ones mark their setting as failed.
"""

import logging
from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd

from .config import ClimatologyConfig
from .currents import VectorFieldGrid
from .cyclones import (Basin, Cyclone, CycloneDateTime, CycloneState,
                       CycloneTrackIndex, ElNinoYear, StormCategory)
from .dataset import ClimateDataset
from .grid import DatasetLoadError, GridResolution, GriddedField
from .precipitation import decode_condensed
from .units import STANDARD_RESOLUTIONS, Setting
from .wind_atlas import WindAtlasGrid

log = logging.getLogger("climatology.storage")

_TRACK_COLUMNS = ("storm_id", "basin", "year", "month", "day", "hour", "lat", "lon", "wind_knots")


# ── Grids ────────────────────────────────────────────────────────────────────

def load_condensed_precipitation(path: Path) -> GriddedField:
    return decode_condensed(Path(path).read_bytes())


def _open_array(path: Path, label: str):
    """``np.load`` with unreadable/truncated files reported as DatasetLoadError."""
    try:
        return np.load(path, allow_pickle=False)
    except (ValueError, EOFError) as exc:
        raise DatasetLoadError(f"{label}: unreadable file {path} ({exc})")


def load_npy_field(path: Path, setting: Setting) -> GriddedField:
    setting = Setting(setting)
    values = _open_array(path, setting.value)
    return GriddedField(setting.value, values, STANDARD_RESOLUTIONS[setting])


def _resolution(archive) -> GridResolution:
    lat_step, lon_step = (float(x) for x in archive["resolution"][:2])
    return GridResolution(lat_step, lon_step)


def load_wind_atlas(path: Path) -> WindAtlasGrid:
    with _open_array(path, "wind atlas") as archive:
        try:
            return WindAtlasGrid.from_fixed_point(
                _resolution(archive), archive["storm"], archive["calm"],
                archive["directions"], archive["speeds"],
            )
        except KeyError as exc:
            raise DatasetLoadError(f"wind atlas: missing array {exc}")


def load_currents(path: Path) -> VectorFieldGrid:
    with _open_array(path, "currents") as archive:
        try:
            multiplier = float(archive["multiplier"]) if "multiplier" in archive.files else 1.0
            return VectorFieldGrid(_resolution(archive), archive["u"], archive["v"], multiplier)
        except KeyError as exc:
            raise DatasetLoadError(f"currents: missing array {exc}")


# ── Cyclones ─────────────────────────────────────────────────────────────────

def tracks_from_frame(frame: pd.DataFrame) -> Dict[Basin, List[Cyclone]]:
    """Group a one-row-per-state table into time-ordered tracks per basin."""
    missing = [c for c in _TRACK_COLUMNS if c not in frame.columns]
    if missing:
        raise DatasetLoadError(f"cyclone table lacks columns {missing}")

    frame = frame.sort_values(["storm_id", "year", "month", "day", "hour"])
    tracks: Dict[Basin, List[Cyclone]] = {}
    for storm_id, rows in frame.groupby("storm_id", sort=False):
        basin = Basin(str(rows["basin"].iloc[0]).lower())
        states = []
        for row in rows.itertuples(index=False):
            pressure = getattr(row, "pressure", None)
            category = getattr(row, "category", None)
            states.append(CycloneState(
                timestamp  = CycloneDateTime(int(row.year), int(row.month), int(row.day), int(row.hour)),
                latitude   = float(row.lat),
                longitude  = float(row.lon),
                wind_knots = float(row.wind_knots),
                pressure   = None if pressure is None or pd.isna(pressure) else float(pressure),
                category   = StormCategory(category) if isinstance(category, str) else StormCategory.UNKNOWN,
            ))
        name = str(rows["name"].iloc[0]) if "name" in rows.columns else str(storm_id)
        try:
            cyclone = Cyclone(tuple(states), name)
        except ValueError as exc:
            log.warning(f"Skipping track {storm_id}: {exc}")
            continue
        tracks.setdefault(basin, []).append(cyclone)
    return tracks


def load_cyclone_csv(path: Path) -> Dict[Basin, List[Cyclone]]:
    return tracks_from_frame(pd.read_csv(path))


def load_el_nino_csv(path: Path) -> Dict[int, ElNinoYear]:
    frame = pd.read_csv(path)
    months = [f"m{i}" for i in range(1, 13)]
    missing = [c for c in ["year"] + months if c not in frame.columns]
    if missing:
        raise DatasetLoadError(f"ENSO table lacks columns {missing}")
    years = {}
    for row in frame.itertuples(index=False):
        values = tuple(float(getattr(row, m)) for m in months)
        years[int(row.year)] = ElNinoYear(int(row.year), values)
    return years


# ── Whole dataset ────────────────────────────────────────────────────────────

def load_dataset(config: ClimatologyConfig) -> ClimateDataset:
    """Load everything present in ``config.data_dir`` into a ClimateDataset."""
    data_dir = Path(config.data_dir)
    dataset  = ClimateDataset()

    precip = data_dir / "precipitation.bin"
    if precip.exists():
        dataset.load_field(Setting.PRECIPITATION, lambda: load_condensed_precipitation(precip))

    for setting in STANDARD_RESOLUTIONS:
        path = data_dir / f"{setting.value}.npy"
        if path.exists():
            dataset.load_field(setting, lambda p=path, s=setting: load_npy_field(p, s))

    for setting, name, loader, install in (
        (Setting.WIND,    "wind_atlas.npz", load_wind_atlas, dataset.set_wind_atlas),
        (Setting.CURRENT, "currents.npz",   load_currents,   dataset.set_currents),
    ):
        path = data_dir / name
        if not path.exists():
            continue
        try:
            install(loader(path))
        except (DatasetLoadError, OSError, ValueError) as exc:
            dataset.fail(setting, str(exc))

    tracks = data_dir / "cyclones.csv"
    if tracks.exists():
        try:
            dataset.set_cyclones(CycloneTrackIndex(load_cyclone_csv(tracks)))
        except (DatasetLoadError, OSError, ValueError) as exc:
            dataset.fail(Setting.CYCLONE, str(exc))

    el_nino = data_dir / "el_nino.csv"
    if el_nino.exists() and dataset.cyclones is not None:
        # tracks stay usable without ENSO; phase filters then match nothing
        try:
            dataset.set_el_nino_years(load_el_nino_csv(el_nino))
        except (DatasetLoadError, OSError, ValueError) as exc:
            log.error(f"Failed loading ENSO indices: {exc}")

    log.info(f"Dataset loaded from {data_dir}: "
             f"{len(dataset.fields)} fields, {len(dataset.failures)} failure(s)")
    return dataset
