import math

import numpy as np
import pytest

from jetstream.wind_field import (
    WindSamplePoint,
    build_grid,
    create_wind_field_from_sample,
    create_wind_field_from_samples,
    find_interval,
    meteo_to_vector,
)


def test_meteo_to_vector_directions():
    # wind from the north blows south
    u, v = meteo_to_vector(10.0, 0.0, scale=1.0)
    assert u == pytest.approx(0.0, abs=1e-12)
    assert v == pytest.approx(-10.0)

    # wind from the west blows east
    u, v = meteo_to_vector(10.0, 270.0, scale=1.0)
    assert u == pytest.approx(10.0)
    assert v == pytest.approx(0.0, abs=1e-9)


def test_default_scale_applied():
    u, v = meteo_to_vector(20.0, 90.0)
    assert u == pytest.approx(-0.2)


def test_single_sample_is_uniform():
    field = create_wind_field_from_samples([WindSamplePoint(lat=10.0, lon=20.0, speed=15.0, direction_deg=45.0)])
    expected = meteo_to_vector(15.0, 45.0)
    for lon, lat in [(20.0, 10.0), (-170.0, -80.0), (179.0, 89.0)]:
        assert field.get_wind(lon, lat) == pytest.approx(expected)


def test_empty_samples_give_no_field():
    assert create_wind_field_from_samples([]) is None


def grid_samples():
    samples = []
    for lat in (0.0, 10.0):
        for lon in (0.0, 10.0, 20.0):
            samples.append(WindSamplePoint(lat=lat, lon=lon, speed=lat + lon / 10 + 1, direction_deg=270.0))
    return samples


def test_corners_reproduced_exactly():
    samples = grid_samples()
    field = create_wind_field_from_samples(samples, scale=1.0)
    for s in samples:
        u, v = field.get_wind(s.lon, s.lat)
        eu, ev = meteo_to_vector(s.speed, s.direction_deg, scale=1.0)
        assert u == pytest.approx(eu)
        assert v == pytest.approx(ev)


def test_bilinear_midpoint():
    field = create_wind_field_from_samples(grid_samples(), scale=1.0)
    # speeds at (0,0)=1, (0,10)=2, (10,0)=11, (10,10)=12 -> centre 6.5
    u, _v = field.get_wind(5.0, 5.0)
    assert u == pytest.approx(6.5)


def test_outside_range_clamps_to_edge():
    field = create_wind_field_from_samples(grid_samples(), scale=1.0)
    assert field.get_wind(50.0, 50.0) == pytest.approx(field.get_wind(20.0, 10.0))
    assert field.get_wind(-50.0, -50.0) == pytest.approx(field.get_wind(0.0, 0.0))


def test_find_interval():
    arr = np.array([0.0, 10.0, 20.0])
    assert find_interval(arr, -1.0) == (0, 0)
    assert find_interval(arr, 25.0) == (2, 2)
    assert find_interval(arr, 5.0) == (0, 1)
    i0, i1 = find_interval(arr, 10.0)
    assert arr[i0] <= 10.0 <= arr[i1]


def test_sparse_grid_zero_filled_and_masked(caplog):
    samples = [
        WindSamplePoint(lat=0.0, lon=0.0, speed=10.0, direction_deg=270.0),
        WindSamplePoint(lat=10.0, lon=10.0, speed=10.0, direction_deg=270.0),
    ]
    with caplog.at_level("WARNING"):
        grid = build_grid(samples)

    assert grid.u.shape == (2, 2)
    assert grid.fill_fraction == pytest.approx(0.5)
    assert not bool(grid.filled.values[0, 1])
    assert grid.u.values[0, 1] == 0.0
    assert "filled" in caplog.text


def test_non_finite_samples_skipped():
    samples = [
        WindSamplePoint(lat=0.0, lon=0.0, speed=math.nan, direction_deg=0.0),
        WindSamplePoint(lat=5.0, lon=5.0, speed=5.0, direction_deg=0.0),
    ]
    grid = build_grid(samples)
    assert grid.lats.tolist() == [5.0]


def test_grid_to_json():
    js = build_grid(grid_samples()).to_json()
    assert js["meta"]["grid"] == "latlon1d"
    assert js["meta"]["nlat"] == 2 and js["meta"]["nlon"] == 3
    assert len(js["u"]) == 2 and len(js["u"][0]) == 3


def test_constant_field():
    field = create_wind_field_from_sample(10.0, 180.0)
    u, v = field.get_wind(123.0, -45.0)
    assert u == pytest.approx(0.0, abs=1e-12)
    assert v == pytest.approx(0.1)
