from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from .coords import is_valid_position
from .filters import BalloonFilter, matches_filter
from .snapshot import Snapshot

MIN_LINE_POINTS = 2


def empty_feature_collection() -> dict:
    return {"type": "FeatureCollection", "features": []}


@dataclass
class TracksAndLatest:
    tracks: dict   # FeatureCollection of LineString
    latest: dict   # FeatureCollection of Point


# ---------------------------
# GeoJSON writers
# ---------------------------

def _line_feature(balloon_id: str, coords: List[List[float]]) -> dict:
    return {
        "type": "Feature",
        "properties": {"id": balloon_id, "points": len(coords)},
        "geometry": {"type": "LineString", "coordinates": coords},
    }


def _point_feature(balloon_id: str, lon: float, lat: float, alt_km: float, selected: bool) -> dict:
    return {
        "type": "Feature",
        "properties": {"id": balloon_id, "alt_km": float(alt_km), "selected": 1 if selected else 0},
        "geometry": {"type": "Point", "coordinates": [float(lon), float(lat)]},
    }


def _collect_coords(snapshots: Sequence[Snapshot], ids) -> Dict[str, List[List[float]]]:
    # snapshot order is time order; callers pass oldest -> newest
    by_id: Dict[str, List[List[float]]] = {}
    for s in snapshots:
        for it in s.items:
            if it.id not in ids:
                continue
            if not is_valid_position(it.lon, it.lat):
                continue
            by_id.setdefault(it.id, []).append([it.lon, it.lat])
    return by_id


def _lines(by_id: Dict[str, List[List[float]]]) -> dict:
    feats = [
        _line_feature(bid, coords)
        for bid, coords in by_id.items()
        if len(coords) >= MIN_LINE_POINTS
    ]
    return {"type": "FeatureCollection", "features": feats}


# ---------------------------
# Track builders
# ---------------------------

def build_tracks_and_latest_by_filter(
    snapshots: Sequence[Snapshot],
    flt: BalloonFilter,
    reference: Snapshot,
    highlighted_id: Optional[str] = None,
) -> TracksAndLatest:
    """
    latest: one Point per balloon in `reference` that passes the filter.
    tracks: the 24h LineStrings of exactly those balloons.

    A balloon whose track has fewer than two points still gets its Point.
    """
    allowed = set()
    points = []
    for it in reference.items:
        if not matches_filter(flt, it):
            continue
        allowed.add(it.id)
        points.append(_point_feature(it.id, it.lon, it.lat, it.alt_km, it.id == highlighted_id))

    tracks = _lines(_collect_coords(snapshots, allowed))
    latest = {"type": "FeatureCollection", "features": points}
    return TracksAndLatest(tracks=tracks, latest=latest)


def build_track_for_id(snapshots: Sequence[Snapshot], balloon_id: str) -> dict:
    # filter-independent so a selected balloon keeps its track
    return _lines(_collect_coords(snapshots, {balloon_id}))


def build_tracks_for_ids(snapshots: Sequence[Snapshot], ids: Iterable[str]) -> dict:
    return _lines(_collect_coords(snapshots, set(ids)))
