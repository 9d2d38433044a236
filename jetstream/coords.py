import math
from typing import Optional, Tuple

LAT_LIMIT = 90.0
LON_LIMIT = 180.0


def clamp(x, a, b):
    return a if x < a else b if x > b else x


def is_number(x) -> bool:
    # JSON booleans decode to bool, which is an int subclass
    return isinstance(x, (int, float)) and not isinstance(x, bool)


def is_finite_number(x) -> bool:
    if not is_number(x):
        return False
    try:
        return math.isfinite(x)
    except OverflowError:
        # JSON ints have no size limit; one past float range is not a coordinate
        return False


def is_valid_position(lon: float, lat: float) -> bool:
    return (
        math.isfinite(lon)
        and math.isfinite(lat)
        and abs(lat) <= LAT_LIMIT
        and abs(lon) <= LON_LIMIT
    )


def normalize_lon_lat(lon: float, lat: float) -> Tuple[float, float]:
    """
    Undo a suspected lon/lat swap.

    A real longitude may exceed 90 but a real latitude cannot, so a pair whose
    "lat" is in (90, 180] while its "lon" fits in [-90, 90] is taken to be
    reversed. Valid pairs are returned unchanged.
    """
    if abs(lat) > LAT_LIMIT and abs(lon) <= LAT_LIMIT and abs(lat) <= LON_LIMIT:
        return lat, lon
    return lon, lat


def normalize_position(lon: float, lat: float, alt_km: float) -> Optional[Tuple[float, float, float]]:
    """
    Swap-repair (lon, lat) and validate. Returns None when the record must be
    dropped: any value non-finite, or the repaired pair still out of range.
    """
    if not (math.isfinite(lon) and math.isfinite(lat) and math.isfinite(alt_km)):
        return None

    lon, lat = normalize_lon_lat(lon, lat)
    if not is_valid_position(lon, lat):
        return None
    return float(lon), float(lat), float(alt_km)
