import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol, Tuple

import numpy as np
import xarray as xr

logger = logging.getLogger(__name__)

DEFAULT_SCALE = 0.01        # m/s -> degrees of lon/lat per animation tick
DEFAULT_MIN_FILL = 0.6


@dataclass(frozen=True)
class WindSamplePoint:
    lat: float
    lon: float
    speed: float            # m/s
    direction_deg: float    # meteorological: 0 = wind from the north


class WindField(Protocol):
    def get_wind(self, lon: float, lat: float) -> Tuple[float, float]: ...


def meteo_to_vector(speed: float, direction_deg: float, scale: float = DEFAULT_SCALE) -> Tuple[float, float]:
    """
    Meteorological (speed, from-direction) -> (u, v) pointing where the air goes.
    u > 0 moves east, v > 0 moves north:
      u = -S * sin(theta)
      v = -S * cos(theta)
    then scaled into per-tick coordinate displacement.
    """
    theta = math.radians(direction_deg)
    u_ms = -speed * math.sin(theta)
    v_ms = -speed * math.cos(theta)
    return u_ms * scale, v_ms * scale


# ---------------------------
# Grid
# ---------------------------

def _zeros(lats: np.ndarray, lons: np.ndarray, name: str, dtype=float) -> xr.DataArray:
    return xr.DataArray(
        np.zeros((len(lats), len(lons)), dtype=dtype),
        coords={"lat": lats, "lon": lons},
        dims=("lat", "lon"),
        name=name,
    )


@dataclass
class WindGrid:
    u: xr.DataArray          # (lat, lon), scaled displacement
    v: xr.DataArray
    filled: xr.DataArray     # False where no sample landed; u/v are zero there

    @property
    def lats(self) -> np.ndarray:
        return self.u["lat"].values

    @property
    def lons(self) -> np.ndarray:
        return self.u["lon"].values

    @property
    def fill_fraction(self) -> float:
        return float(self.filled.values.mean()) if self.filled.size else 0.0

    def to_json(self) -> dict:
        lats = self.lats
        lons = self.lons
        meta = {
            "grid": "latlon1d",
            "lat_min": float(lats.min()),
            "lat_max": float(lats.max()),
            "lon_min": float(lons.min()),
            "lon_max": float(lons.max()),
            "nlat": int(len(lats)),
            "nlon": int(len(lons)),
            "fill_fraction": self.fill_fraction,
            "units": {"u": "deg/tick", "v": "deg/tick"},
        }
        return {
            "meta": meta,
            "lats": lats.tolist(),
            "lons": lons.tolist(),
            "u": self.u.values.astype("float32").tolist(),  # [nlat][nlon]
            "v": self.v.values.astype("float32").tolist(),
            "filled": self.filled.values.tolist(),
        }


def build_grid(
    samples: Iterable[WindSamplePoint],
    scale: float = DEFAULT_SCALE,
    min_fill_fraction: float = DEFAULT_MIN_FILL,
) -> Optional[WindGrid]:
    samples = [
        s for s in samples
        if all(math.isfinite(x) for x in (s.lat, s.lon, s.speed, s.direction_deg))
    ]
    if not samples:
        return None

    lats = np.array(sorted({float(s.lat) for s in samples}), dtype=float)
    lons = np.array(sorted({float(s.lon) for s in samples}), dtype=float)

    u = _zeros(lats, lons, "u")
    v = _zeros(lats, lons, "v")
    filled = _zeros(lats, lons, "filled", dtype=bool)

    for s in samples:
        cell = {"lat": float(s.lat), "lon": float(s.lon)}
        uu, vv = meteo_to_vector(s.speed, s.direction_deg, scale)
        u.loc[cell] = uu
        v.loc[cell] = vv
        filled.loc[cell] = True

    grid = WindGrid(u=u, v=v, filled=filled)
    if grid.fill_fraction < min_fill_fraction:
        logger.warning(
            "wind grid %dx%d only %.0f%% filled; gaps are zero wind",
            len(lats), len(lons), 100 * grid.fill_fraction,
        )
    return grid


def find_interval(arr: np.ndarray, x: float) -> Tuple[int, int]:
    """
    Indices (i0, i1) with arr[i0] <= x <= arr[i1]; both collapse onto the
    nearest edge when x is outside the sampled range.
    """
    last = len(arr) - 1
    if x <= arr[0]:
        return 0, 0
    if x >= arr[last]:
        return last, last
    i0 = int(np.searchsorted(arr, x, side="right")) - 1
    return i0, i0 + 1


class WindGridField:
    def __init__(self, grid: WindGrid):
        self.grid = grid
        self._lats = grid.lats
        self._lons = grid.lons
        self._u = grid.u.values
        self._v = grid.v.values

    def get_wind(self, lon: float, lat: float) -> Tuple[float, float]:
        if len(self._lats) == 1 and len(self._lons) == 1:
            return float(self._u[0, 0]), float(self._v[0, 0])

        i0, i1 = find_interval(self._lats, lat)
        j0, j1 = find_interval(self._lons, lon)

        lat0, lat1 = self._lats[i0], self._lats[i1]
        lon0, lon1 = self._lons[j0], self._lons[j1]

        t = 0.0 if lat1 == lat0 else (lat - lat0) / (lat1 - lat0)
        s = 0.0 if lon1 == lon0 else (lon - lon0) / (lon1 - lon0)

        return self._bilinear(self._u, i0, i1, j0, j1, t, s), self._bilinear(self._v, i0, i1, j0, j1, t, s)

    @staticmethod
    def _bilinear(field: np.ndarray, i0: int, i1: int, j0: int, j1: int, t: float, s: float) -> float:
        q00 = field[i0, j0]
        q01 = field[i0, j1]
        q10 = field[i1, j0]
        q11 = field[i1, j1]

        row0 = q00 * (1 - s) + q01 * s
        row1 = q10 * (1 - s) + q11 * s
        return float(row0 * (1 - t) + row1 * t)


class ConstantWindField:
    """Same vector everywhere; used when only one reference reading exists."""

    def __init__(self, u: float, v: float):
        self.u = u
        self.v = v

    def get_wind(self, lon: float, lat: float) -> Tuple[float, float]:
        return self.u, self.v


def create_wind_field_from_sample(
    speed: float,
    direction_deg: float,
    scale: float = DEFAULT_SCALE,
) -> ConstantWindField:
    u, v = meteo_to_vector(speed, direction_deg, scale)
    return ConstantWindField(u, v)


def create_wind_field_from_samples(
    samples: List[WindSamplePoint],
    scale: float = DEFAULT_SCALE,
    min_fill_fraction: float = DEFAULT_MIN_FILL,
) -> Optional[WindGridField]:
    grid = build_grid(samples, scale=scale, min_fill_fraction=min_fill_fraction)
    if grid is None:
        return None
    return WindGridField(grid)
