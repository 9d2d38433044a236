import math
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from .coords import is_valid_position
from .snapshot import BalloonSnapshotItem

INF = "INF"


@dataclass(frozen=True)
class AltitudeBand:
    min: float
    max: Union[float, str]   # float or "INF"


# "ALL" or a half-open band [min, max)
AltitudeRange = Union[str, AltitudeBand]


@dataclass(frozen=True)
class Range1D:
    min: Optional[float] = None
    max: Optional[float] = None


@dataclass(frozen=True)
class BalloonFilter:
    alt: AltitudeRange = "ALL"
    lat: Optional[Range1D] = None
    lon: Optional[Range1D] = None
    only_id: Optional[str] = None   # selection trigger, never a predicate


def match_altitude(rng: AltitudeRange, alt_km: float) -> bool:
    if rng == "ALL":
        return True
    if rng.max == INF:
        return alt_km >= rng.min
    # half-open [min, max) so adjacent buckets never share a balloon
    return rng.min <= alt_km < rng.max


def match_range_1d(rng: Optional[Range1D], value: float) -> bool:
    # closed on both ends, unlike the altitude bands
    if rng is None:
        return True
    if rng.min is not None and value < rng.min:
        return False
    if rng.max is not None and value > rng.max:
        return False
    return True


def matches_filter(flt: BalloonFilter, item: BalloonSnapshotItem) -> bool:
    if not math.isfinite(item.alt_km):
        return False
    if not is_valid_position(item.lon, item.lat):
        return False

    return (
        match_altitude(flt.alt, item.alt_km)
        and match_range_1d(flt.lat, item.lat)
        and match_range_1d(flt.lon, item.lon)
    )


def default_filter() -> BalloonFilter:
    return BalloonFilter(alt="ALL")


def altitude_buckets(step_km: int = 3, top_km: int = 30) -> List[Tuple[str, AltitudeRange]]:
    """
    Selectable altitude bands: All, 0-3 km, 3-6 km, ..., 27-30 km, 30+ km.
    """
    buckets: List[Tuple[str, AltitudeRange]] = [("All", "ALL")]
    for k in range(0, top_km, step_km):
        buckets.append((f"{k}-{k + step_km} km", AltitudeBand(min=k, max=k + step_km)))
    buckets.append((f"{top_km}+ km", AltitudeBand(min=top_km, max=INF)))
    return buckets
