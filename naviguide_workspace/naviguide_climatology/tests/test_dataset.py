"""
Climate dataset context, units, configuration, file loading and the CLI.
"""
import json
from datetime import date

import numpy as np
import pandas as pd
import pytest

from naviguide_climatology import main as cli
from naviguide_climatology.config import ClimatologyConfig
from naviguide_climatology.contours import IsobarMap
from naviguide_climatology.cyclones import Basin
from naviguide_climatology.dataset import ClimateDataset
from naviguide_climatology.grid import DatasetLoadError, GridResolution, GriddedField
from naviguide_climatology.precipitation import encode_condensed
from naviguide_climatology.storage import load_dataset, load_el_nino_csv, tracks_from_frame
from naviguide_climatology.units import (Setting, base_unit, convert, unit_names,
                                         value_range)
from naviguide_climatology.wind_atlas import Coord

ONE_DEGREE = GridResolution(1.0, 1.0)


def _constant(value, slices=13, resolution=ONE_DEGREE):
    return np.full((slices,) + resolution.shape, value, dtype=float)


def _broken_loader():
    raise DatasetLoadError("truncated file")


# ── Dataset context ──────────────────────────────────────────────────────────

def test_failed_setting_does_not_affect_others():
    dataset = ClimateDataset()
    assert not dataset.load_field(Setting.PRESSURE, _broken_loader)
    assert dataset.load_field(
        Setting.SEA_TEMPERATURE,
        lambda: GriddedField("sst", _constant(20.0), ONE_DEGREE),
    )
    assert Setting.PRESSURE in dataset.failures
    assert "truncated" in dataset.failed_message
    assert not dataset.available(Setting.PRESSURE)
    assert dataset.value(Setting.PRESSURE, 45.0, -20.0, date(2023, 5, 1)) is None
    assert dataset.available(Setting.SEA_TEMPERATURE)
    assert dataset.value(Setting.SEA_TEMPERATURE, 45.0, -20.0) == pytest.approx(20.0)


def test_wrong_resolution_rejected():
    dataset = ClimateDataset()
    with pytest.raises(DatasetLoadError):
        dataset.add_field(Setting.PRESSURE,
                          GriddedField("slp", _constant(1013.0), ONE_DEGREE))


def test_calibrated_value_and_month():
    dataset = ClimateDataset()
    dataset.add_field(Setting.AIR_TEMPERATURE,
                      GriddedField("at", _constant(20.0, resolution=GridResolution(2.0, 2.0)),
                                   GridResolution(2.0, 2.0)))
    assert dataset.calibrated_value(Setting.AIR_TEMPERATURE, 10.0, 10.0,
                                    unit="fahrenheit") == pytest.approx(68.0)
    assert dataset.value_month(Setting.AIR_TEMPERATURE, 10.0, 10.0, 4) == pytest.approx(20.0)
    with pytest.raises(ValueError):
        dataset.calibrated_value(Setting.AIR_TEMPERATURE, 10.0, 10.0, unit="kelvin")


def test_settings_without_data_are_missing():
    dataset = ClimateDataset()
    assert dataset.value(Setting.WIND, 0.0, 0.0) is None
    assert dataset.value(Setting.CURRENT, 0.0, 0.0, coord=Coord.DIRECTION) is None
    assert dataset.value(Setting.LIGHTNING, 0.0, 0.0) is None
    assert dataset.cyclone_crossings(15.0, -60.0, 20.0, -55.0) is None


def test_isobar_map_over_dataset():
    dataset = ClimateDataset()
    dataset.add_field(Setting.SEA_TEMPERATURE,
                      GriddedField("sst", _constant(20.0), ONE_DEGREE))
    isobars = dataset.isobar_map(Setting.SEA_TEMPERATURE, 1.0, 0.0, cells=8)
    assert isinstance(isobars, IsobarMap)
    assert isobars.same_settings(1.0, 0.0, coord=Coord.MAG)
    assert isobars.func(10.0, 10.0) == pytest.approx(20.0)


def test_isobar_map_settings_include_unit_date_and_coord():
    dataset = ClimateDataset()
    dataset.add_field(Setting.SEA_TEMPERATURE,
                      GriddedField("sst", _constant(20.0), ONE_DEGREE))
    when = date(2023, 8, 1)
    isobars = dataset.isobar_map(Setting.SEA_TEMPERATURE, 1.0, 0.0, when,
                                 unit="fahrenheit")
    assert isobars.func(10.0, 10.0) == pytest.approx(68.0)
    assert isobars.same_settings(1.0, 0.0, "fahrenheit", date(2023, 8, 1), Coord.MAG)
    assert not isobars.same_settings(1.0, 0.0, "celsius", when, Coord.MAG)
    assert not isobars.same_settings(1.0, 0.0, "fahrenheit", date(2023, 8, 2), Coord.MAG)
    assert not isobars.same_settings(1.0, 0.0, "fahrenheit", None, Coord.MAG)
    assert not isobars.same_settings(1.0, 0.0, "fahrenheit", when, Coord.U)


def test_enso_years_need_cyclone_index():
    dataset = ClimateDataset()
    with pytest.raises(DatasetLoadError):
        dataset.set_el_nino_years({})


def test_close_drops_everything():
    dataset = ClimateDataset()
    dataset.add_field(Setting.SEA_DEPTH, GriddedField("depth", _constant(4000.0, 1), ONE_DEGREE))
    dataset.close()
    assert dataset.fields == {}
    assert dataset.value(Setting.SEA_DEPTH, 0.0, 0.0) is None


# ── Units ────────────────────────────────────────────────────────────────────

def test_units():
    assert base_unit(Setting.PRESSURE) == "mbar"
    assert unit_names(Setting.WIND)[0] == "knots"
    assert convert(Setting.WIND, 10.0, "m/s") == pytest.approx(5.14444)
    assert convert(Setting.SEA_DEPTH, 100.0, "ft") == pytest.approx(328.084)
    lo, hi = value_range(Setting.SEA_TEMPERATURE, "fahrenheit")
    assert lo == pytest.approx(28.4)
    assert hi == pytest.approx(89.6)


# ── Configuration ────────────────────────────────────────────────────────────

def test_config_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("CLIMATOLOGY_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("CLIMATOLOGY_CONTOUR_CELLS", "24")
    monkeypatch.delenv("CLIMATOLOGY_CONTOUR_MIN_STEP", raising=False)
    config = ClimatologyConfig.from_env()
    assert config.data_dir == tmp_path
    assert config.contour_cells == 24
    assert config.contour_options["min_step"] == 0.25


def test_config_rejects_bad_values():
    with pytest.raises(ValueError):
        ClimatologyConfig(contour_cells=0)


# ── Files ────────────────────────────────────────────────────────────────────

def _track_rows():
    return pd.DataFrame([
        {"storm_id": "AL012000", "basin": "atl", "year": 2000, "month": 9, "day": 10,
         "hour": 0, "lat": 20.0, "lon": -60.0, "wind_knots": 80, "name": "ALPHA"},
        {"storm_id": "AL012000", "basin": "atl", "year": 2000, "month": 9, "day": 11,
         "hour": 0, "lat": 15.0, "lon": -55.0, "wind_knots": 90, "name": "ALPHA"},
        # duplicate timestamp: rejected
        {"storm_id": "AL022000", "basin": "atl", "year": 2000, "month": 9, "day": 12,
         "hour": 6, "lat": 25.0, "lon": -70.0, "wind_knots": 40, "name": "BAD"},
        {"storm_id": "AL022000", "basin": "atl", "year": 2000, "month": 9, "day": 12,
         "hour": 6, "lat": 26.0, "lon": -70.0, "wind_knots": 40, "name": "BAD"},
    ])


def test_tracks_from_frame():
    tracks = tracks_from_frame(_track_rows())
    assert list(tracks) == [Basin.ATLANTIC]
    assert [c.name for c in tracks[Basin.ATLANTIC]] == ["ALPHA"]
    with pytest.raises(DatasetLoadError):
        tracks_from_frame(pd.DataFrame({"storm_id": ["x"]}))


@pytest.fixture
def data_dir(tmp_path):
    np.save(tmp_path / "sea_temperature.npy", _constant(20.0))
    np.save(tmp_path / "pressure.npy", np.zeros((13, 10, 10)))          # wrong shape
    (tmp_path / "precipitation.bin").write_bytes(
        encode_condensed(np.full((12, 72, 144), 3.0)))

    square = GridResolution(90.0, 180.0)
    dirs = np.zeros((12, 2, 2, 8), dtype=np.uint8)
    dirs[..., 2] = 100                                                    # from the east
    np.savez(tmp_path / "wind_atlas.npz",
             storm=np.full((12, 2, 2), 3, dtype=np.uint8),
             calm=np.full((12, 2, 2), 2, dtype=np.uint8),
             directions=dirs,
             speeds=np.full((12, 2, 2, 8), 15, dtype=np.uint8),
             resolution=np.array([square.lat_step, square.lon_step]))
    np.savez(tmp_path / "currents.npz",
             u=np.ones((2, 2)), v=np.zeros((2, 2)),
             resolution=np.array([square.lat_step, square.lon_step]),
             multiplier=np.array(1.5))

    _track_rows().to_csv(tmp_path / "cyclones.csv", index=False)
    pd.DataFrame([{"year": 2000, **{f"m{i}": 0.8 for i in range(1, 13)}}]).to_csv(
        tmp_path / "el_nino.csv", index=False)
    return tmp_path


def test_load_dataset(data_dir):
    dataset = load_dataset(ClimatologyConfig(data_dir=data_dir))
    assert set(dataset.failures) == {Setting.PRESSURE}
    assert dataset.value(Setting.SEA_TEMPERATURE, 0.0, 0.0) == pytest.approx(20.0)
    assert dataset.value(Setting.PRECIPITATION, 0.0, 0.0, date(2023, 2, 1)) == pytest.approx(3.0)
    assert dataset.value(Setting.WIND, -45.0, 90.0) == pytest.approx(15.0)
    assert dataset.value(Setting.WIND, -45.0, 90.0, coord=Coord.DIRECTION) == pytest.approx(90.0)
    assert dataset.value(Setting.CURRENT, -45.0, 90.0) == pytest.approx(1.5)
    assert dataset.cyclones.el_nino_years[2000].months[0] == pytest.approx(0.8)
    assert dataset.cyclone_crossings(15.0, -60.0, 20.0, -55.0) == 1


def test_empty_files_only_disable_their_setting(data_dir):
    (data_dir / "pressure.npy").write_bytes(b"")
    (data_dir / "wind_atlas.npz").write_bytes(b"")
    dataset = load_dataset(ClimatologyConfig(data_dir=data_dir))
    assert set(dataset.failures) == {Setting.PRESSURE, Setting.WIND}
    assert dataset.value(Setting.PRESSURE, 0.0, 0.0) is None
    assert dataset.value(Setting.WIND, -45.0, 90.0) is None
    assert dataset.value(Setting.SEA_TEMPERATURE, 0.0, 0.0) == pytest.approx(20.0)
    assert dataset.value(Setting.CURRENT, -45.0, 90.0) == pytest.approx(1.5)


def test_enso_table_with_missing_months_keeps_tracks(data_dir):
    pd.DataFrame([{"year": 2000, "m1": 0.8}]).to_csv(data_dir / "el_nino.csv", index=False)
    dataset = load_dataset(ClimatologyConfig(data_dir=data_dir))
    assert dataset.available(Setting.CYCLONE)
    assert dataset.cyclones.el_nino_years == {}
    assert dataset.cyclone_crossings(15.0, -60.0, 20.0, -55.0) == 1


def test_load_el_nino_csv_checks_columns(tmp_path):
    path = tmp_path / "el_nino.csv"
    pd.DataFrame([{"year": 2000, "m1": 0.8}]).to_csv(path, index=False)
    with pytest.raises(DatasetLoadError):
        load_el_nino_csv(path)


# ── CLI ──────────────────────────────────────────────────────────────────────

def test_cli_point(data_dir, monkeypatch, capsys):
    monkeypatch.setenv("CLIMATOLOGY_DATA_DIR", str(data_dir))
    assert cli.main(["point", "--setting", "sea_temperature", "--lat", "10",
                     "--lon", "-30", "--unit", "fahrenheit"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["value"] == pytest.approx(68.0)
    assert out["date"] is None


def test_cli_crossings(data_dir, monkeypatch, capsys):
    monkeypatch.setenv("CLIMATOLOGY_DATA_DIR", str(data_dir))
    assert cli.main(["crossings", "--from", "15", "-60", "--to", "20", "-55",
                     "--date", "2024-09-15", "--min-wind", "64"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["crossings"] == 1
    assert out["history_years"] == 1
    assert 400 < out["segment_nm"] < 430


def test_cli_contours(data_dir, monkeypatch, capsys):
    monkeypatch.setenv("CLIMATOLOGY_DATA_DIR", str(data_dir))
    assert cli.main(["contours", "--setting", "sea_temperature",
                     "--extent", "0", "10", "0", "10", "--spacing", "2"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["type"] == "FeatureCollection"
    assert out["metadata"]["layer"] == "sea_temperature"


def test_cli_bad_unit_fails(data_dir, monkeypatch):
    monkeypatch.setenv("CLIMATOLOGY_DATA_DIR", str(data_dir))
    assert cli.main(["point", "--setting", "pressure", "--lat", "0", "--lon", "0",
                     "--unit", "furlongs"]) == 0
    assert cli.main(["point", "--setting", "sea_temperature", "--lat", "0", "--lon", "0",
                     "--unit", "furlongs"]) == 2
