"""
Gridded fields: bilinear sampling, longitude wrap, missing-data veto,
annual slice and date blending.
"""
import math
from datetime import date

import numpy as np
import pytest

from naviguide_climatology.grid import DatasetLoadError, GridResolution, GriddedField

# 2 x 2 lattice: rows at -90 / 0, columns at 0 / 180
SQUARE = GridResolution(90.0, 180.0)


def _square(values):
    return GriddedField("test", np.array(values, dtype=float), SQUARE)


def test_resolution_shape():
    assert GridResolution(2.5, 2.5).shape == (72, 144)
    assert GridResolution(1.0, 1.0).shape == (180, 360)
    assert SQUARE.cell_position(1, 1) == (0.0, 180.0)


def test_centre_of_square_is_mean_of_corners():
    field = _square([[0, 10], [10, 20]])
    assert field.sample(0, -45.0, 90.0) == pytest.approx(10.0)


def test_lattice_point_returns_cell_value():
    field = _square([[0, 10], [10, 20]])
    assert field.sample(0, 0.0, 180.0) == 20.0
    assert field.sample(0, -90.0, 0.0) == 0.0


def test_bilinear_formula():
    values = [[1.0, 3.0], [5.0, 11.0]]
    field = _square(values)
    lat, lon = -67.5, 45.0                  # fy = 0.25, fx = 0.25
    fy, fx = 0.25, 0.25
    expected = ((1 - fy) * ((1 - fx) * 1.0 + fx * 3.0)
                + fy * ((1 - fx) * 5.0 + fx * 11.0))
    assert field.sample(0, lat, lon) == pytest.approx(expected)


@pytest.mark.parametrize("lon", [-90.0, 270.0, 630.0])
def test_longitude_wraps(lon):
    field = _square([[0, 10], [10, 20]])
    # between column 180 and column 0 (= 360)
    assert field.sample(0, -45.0, lon) == pytest.approx(10.0)


def test_linear_field_on_one_degree_grid():
    res = GridResolution(1.0, 1.0)
    lats = -90.0 + np.arange(res.lat_count)
    values = np.repeat(lats[:, np.newaxis], res.lon_count, axis=1)
    field = GriddedField("lat", values, res)
    assert field.sample(0, 10.25, 33.7) == pytest.approx(10.25)
    assert field.sample(0, -42.5, 359.5) == pytest.approx(-42.5)


def test_latitude_out_of_range_is_missing():
    field = _square([[0, 10], [10, 20]])
    assert field.sample(0, 45.0, 0.0) is None       # beyond the last stored row
    assert field.sample(0, 91.0, 0.0) is None
    assert field.sample(0, -91.0, 0.0) is None


def test_missing_neighbour_vetoes_interpolation():
    field = _square([[math.nan, 10], [10, 20]])
    assert field.sample(0, -45.0, 90.0) is None
    # the missing corner has zero weight at the opposite lattice point
    assert field.sample(0, 0.0, 180.0) == 20.0


def test_fixed_point_sentinel_decodes_to_missing():
    raw = np.array([[0, 100], [255, 50]], dtype=np.uint8)
    field = GriddedField.from_fixed_point("bytes", raw, SQUARE, scale=0.1, sentinel=255)
    assert field.value_at_cell(0, 1, 0) is None
    assert field.value_at_cell(0, 0, 1) == pytest.approx(10.0)
    assert field.sample(0, -45.0, 90.0) is None


def test_shape_mismatch_raises():
    with pytest.raises(DatasetLoadError):
        GriddedField("bad", np.zeros((3, 3)), SQUARE)
    with pytest.raises(DatasetLoadError):
        GriddedField("bad", np.zeros((5, 2, 2)), SQUARE)


def test_values_are_read_only():
    field = _square([[0, 10], [10, 20]])
    with pytest.raises(ValueError):
        field.values[0, 0, 0] = 1.0


def _monthly():
    # slice m holds the constant m
    return np.arange(12, dtype=float)[:, np.newaxis, np.newaxis] * np.ones((12, 2, 2))


def test_twelve_months_get_annual_mean():
    field = GriddedField("monthly", _monthly(), SQUARE)
    assert field.slice_count == 13
    assert field.sample(12, -45.0, 90.0) == pytest.approx(5.5)


def test_annual_mean_missing_if_any_month_missing():
    values = _monthly()
    values[7, 0, 0] = np.nan
    field = GriddedField("monthly", values, SQUARE)
    assert field.value_at_cell(12, 0, 0) is None
    assert field.value_at_cell(12, 1, 1) == pytest.approx(5.5)


def test_sample_at_date_without_date_uses_annual_slice():
    field = GriddedField("monthly", _monthly(), SQUARE)
    assert field.sample_at_date(-45.0, 90.0) == pytest.approx(5.5)


def test_sample_at_date_mid_month_is_month_value():
    field = GriddedField("monthly", _monthly(), SQUARE)
    assert field.sample_at_date(-45.0, 90.0, date(2023, 1, 16)) == pytest.approx(0.0)


def test_sample_at_date_blends_toward_nearer_month():
    field = GriddedField("monthly", _monthly(), SQUARE)
    # January 1st blends toward December (slice 11)
    w = 0.5 - 0.5 / 31
    assert field.sample_at_date(-45.0, 90.0, date(2023, 1, 1)) == pytest.approx(11 * w)
    # June 30th blends toward July (slice 6)
    w = 29.5 / 30 - 0.5
    assert field.sample_at_date(-45.0, 90.0, date(2023, 6, 30)) == pytest.approx(5 * (1 - w) + 6 * w)


def test_sample_at_date_missing_adjacent_month():
    values = _monthly()
    values[11] = np.nan
    field = GriddedField("monthly", values, SQUARE)
    assert field.sample_at_date(-45.0, 90.0, date(2023, 1, 1)) is None
    assert field.sample_at_date(-45.0, 90.0, date(2023, 1, 20)) is not None


def test_single_slice_field_ignores_date():
    field = _square([[0, 10], [10, 20]])
    assert field.sample_at_date(-45.0, 90.0, date(2023, 4, 2)) == pytest.approx(10.0)
    assert field.sample(12, -45.0, 90.0) == pytest.approx(10.0)


def test_unavailable_field_is_missing_everywhere():
    field = GriddedField.unavailable("gone", SQUARE)
    assert not field.available
    assert field.sample(0, -45.0, 90.0) is None
    assert field.sample_at_date(0.0, 0.0, date(2023, 4, 2)) is None
