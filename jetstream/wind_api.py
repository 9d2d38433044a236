import logging
import math
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import List, Optional, Tuple

import requests

from .config import WindConfig
from .coords import clamp, is_finite_number
from .particles import Bounds
from .utils_time import parse_api_time, target_time
from .wind_field import WindGridField, WindSamplePoint, create_wind_field_from_samples

logger = logging.getLogger(__name__)

KMH_TO_MS = 1 / 3.6


def _nearest_index(times: List[str], target: datetime) -> Optional[int]:
    best_idx = None
    best_diff = math.inf
    for i, ts in enumerate(times):
        try:
            t = parse_api_time(ts)
        except (AttributeError, TypeError, ValueError):
            # non-ISO stamps (e.g. unixtime) are skipped
            continue
        diff = abs((t - target).total_seconds())
        if diff < best_diff:
            best_diff = diff
            best_idx = i
    return best_idx


def fetch_wind_at_point(
    age_hours: float,
    lat: float,
    lon: float,
    cfg: Optional[WindConfig] = None,
    session=None,
    now: datetime | None = None,
) -> Optional[WindSamplePoint]:
    """
    Wind at the configured pressure level for the hour closest to
    now - age_hours. No data for the point/time is a normal None, not an error.
    """
    cfg = cfg or WindConfig()
    http = session or requests
    params = {
        "latitude": lat,
        "longitude": lon,
        "hourly": f"{cfg.speed_key},{cfg.direction_key}",
        "past_days": 1,
        "forecast_days": 1,
        "timezone": "UTC",
    }
    try:
        resp = http.get(cfg.api_url, params=params, timeout=cfg.timeout_s)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("wind fetch failed at (%.3f, %.3f): %s", lat, lon, e)
        return None

    hourly = data.get("hourly") if isinstance(data, dict) else None
    if not isinstance(hourly, dict):
        logger.debug("no hourly block at (%.3f, %.3f)", lat, lon)
        return None
    times = hourly.get("time")
    speeds_kmh = hourly.get(cfg.speed_key)
    dirs = hourly.get(cfg.direction_key)
    if not all(isinstance(x, list) and x for x in (times, speeds_kmh, dirs)):
        logger.debug("no hourly wind at (%.3f, %.3f)", lat, lon)
        return None

    idx = _nearest_index(times, target_time(age_hours, now))
    if idx is None or idx >= len(speeds_kmh) or idx >= len(dirs):
        return None

    speed_kmh = speeds_kmh[idx]
    direction = dirs[idx]
    if not (is_finite_number(speed_kmh) and is_finite_number(direction)):
        return None

    return WindSamplePoint(lat=lat, lon=lon, speed=speed_kmh * KMH_TO_MS, direction_deg=float(direction))


def grid_sample_points(bounds: Bounds, cfg: Optional[WindConfig] = None) -> List[Tuple[float, float]]:
    """
    (lat, lon) sample locations on a rows x cols lattice over the viewport.
    Degenerate or non-finite bounds collapse to the configured fallback point.
    """
    cfg = cfg or WindConfig()
    vals = (bounds.south, bounds.north, bounds.west, bounds.east)
    if (
        not all(math.isfinite(x) for x in vals)
        or bounds.south == bounds.north
        or bounds.west == bounds.east
    ):
        return [(cfg.fallback_lat, cfg.fallback_lon)]

    min_lat = clamp(bounds.south, -cfg.lat_clamp, cfg.lat_clamp)
    max_lat = clamp(bounds.north, -cfg.lat_clamp, cfg.lat_clamp)
    min_lon = clamp(bounds.west, -180.0, 180.0)
    max_lon = clamp(bounds.east, -180.0, 180.0)

    lat_step = (max_lat - min_lat) / (cfg.rows - 1) if cfg.rows > 1 else 0.0
    lon_step = (max_lon - min_lon) / (cfg.cols - 1) if cfg.cols > 1 else 0.0

    points = []
    for r in range(cfg.rows):
        lat = (min_lat + max_lat) / 2 if cfg.rows == 1 else min_lat + lat_step * r
        for c in range(cfg.cols):
            lon = (min_lon + max_lon) / 2 if cfg.cols == 1 else min_lon + lon_step * c
            points.append((lat, lon))
    return points


def fetch_wind_grid(
    age_hours: float,
    bounds: Bounds,
    cfg: Optional[WindConfig] = None,
    session=None,
    now: datetime | None = None,
) -> List[WindSamplePoint]:
    cfg = cfg or WindConfig()
    points = grid_sample_points(bounds, cfg)
    with ThreadPoolExecutor(max_workers=cfg.max_workers) as executor:
        futures = [
            executor.submit(fetch_wind_at_point, age_hours, lat, lon, cfg, session, now)
            for lat, lon in points
        ]
        results = []
        for (lat, lon), fut in zip(points, futures):
            try:
                results.append(fut.result())
            except Exception:
                logger.exception("wind point (%.3f, %.3f) crashed", lat, lon)
                results.append(None)
    samples = [s for s in results if s is not None]
    logger.debug("wind grid: %d/%d points answered", len(samples), len(points))
    return samples


class WindFieldLoader:
    """
    Background wind-grid fetches for the current viewport and time.

    Each request() gets a new generation and supersedes whatever is in
    flight: a request not yet started is cancelled, a running one finishes
    but its result is discarded. poll() is called from the tick loop and
    hands back a field only for the newest generation.
    """

    def __init__(self, cfg: Optional[WindConfig] = None, session=None, executor: Optional[ThreadPoolExecutor] = None):
        self.cfg = cfg or WindConfig()
        self.session = session
        self._executor = executor or ThreadPoolExecutor(max_workers=2)
        self._generation = 0
        self._pending: Optional[Tuple[int, Future]] = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def in_flight(self) -> bool:
        return self._pending is not None

    def _build(self, age_hours: float, bounds: Bounds) -> Optional[WindGridField]:
        samples = fetch_wind_grid(age_hours, bounds, self.cfg, self.session)
        field = create_wind_field_from_samples(
            samples, scale=self.cfg.scale, min_fill_fraction=self.cfg.min_fill_fraction
        )
        if field is None:
            logger.warning("no wind samples for age=%sh; wind field unavailable", age_hours)
        return field

    def request(self, age_hours: float, bounds: Bounds) -> int:
        self.cancel()
        gen = self._generation
        self._pending = (gen, self._executor.submit(self._build, age_hours, bounds))
        return gen

    def cancel(self):
        if self._pending is not None:
            _gen, fut = self._pending
            fut.cancel()
        self._pending = None
        self._generation += 1

    def poll(self) -> Tuple[bool, Optional[WindGridField]]:
        """
        (ready, field). ready is True exactly once per completed newest
        request; field may be None when nothing could be sampled.
        """
        if self._pending is None:
            return False, None
        gen, fut = self._pending
        if not fut.done():
            return False, None
        self._pending = None
        if gen != self._generation or fut.cancelled():
            return False, None
        try:
            return True, fut.result()
        except Exception:
            logger.exception("wind grid build failed")
            return True, None

    def shutdown(self):
        self.cancel()
        self._executor.shutdown(wait=False)
