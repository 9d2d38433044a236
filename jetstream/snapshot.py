import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .coords import is_finite_number, normalize_position
from .utils_time import feed_hours, hour_label

logger = logging.getLogger(__name__)


# ---------------------------
# Data model
# ---------------------------

@dataclass(frozen=True)
class BalloonSnapshotItem:
    id: str
    lon: float
    lat: float
    alt_km: float


@dataclass(frozen=True)
class Snapshot:
    t: str                                   # hour label "00".."23"
    items: Tuple[BalloonSnapshotItem, ...] = ()


class DropReason(Enum):
    MALFORMED_RECORD = "malformed_record"
    OUT_OF_RANGE_COORDINATE = "out_of_range_coordinate"


@dataclass
class SnapshotStats:
    hour: str
    total: int = 0
    kept: int = 0
    reasons: Counter = field(default_factory=Counter)

    @property
    def dropped(self) -> int:
        return sum(self.reasons.values())


# ---------------------------
# Snapshot builder
# ---------------------------

def _row_to_item(index: int, row) -> Tuple[Optional[BalloonSnapshotItem], Optional[DropReason]]:
    if not isinstance(row, (list, tuple)) or len(row) < 3:
        return None, DropReason.MALFORMED_RECORD

    raw_lon, raw_lat, raw_alt = row[0], row[1], row[2]
    if not (is_finite_number(raw_lon) and is_finite_number(raw_lat) and is_finite_number(raw_alt)):
        return None, DropReason.MALFORMED_RECORD

    pos = normalize_position(float(raw_lon), float(raw_lat), float(raw_alt))
    if pos is None:
        return None, DropReason.OUT_OF_RANGE_COORDINATE

    lon, lat, alt_km = pos
    # id is the position in the original array, so ids survive dropped rows
    return BalloonSnapshotItem(id=f"B{index}", lon=lon, lat=lat, alt_km=alt_km), None


def build_snapshot(hour: str, rows) -> Tuple[Snapshot, SnapshotStats]:
    """
    Convert one hour of raw rows ([lon, lat, alt_km, ...]) into a Snapshot.
    Never raises; anything that is not a list of rows gives an empty snapshot.
    """
    stats = SnapshotStats(hour=hour)
    if not isinstance(rows, (list, tuple)):
        logger.debug("hour=%s: rows are %s, not a list; empty snapshot", hour, type(rows).__name__)
        return Snapshot(t=hour), stats

    items: List[BalloonSnapshotItem] = []
    for index, row in enumerate(rows):
        stats.total += 1
        item, reason = _row_to_item(index, row)
        if item is None:
            stats.reasons[reason] += 1
            continue
        items.append(item)

    stats.kept = len(items)
    logger.debug(
        "hour=%s: total=%d kept=%d dropped=%d", hour, stats.total, stats.kept, stats.dropped
    )
    return Snapshot(t=hour, items=tuple(items)), stats


def to_snapshot(hour: str, rows) -> Snapshot:
    snap, _stats = build_snapshot(hour, rows)
    return snap


# ---------------------------
# 24 hour series
# ---------------------------

def assemble_series(rows_by_hour: Mapping[str, Sequence]) -> List[Snapshot]:
    """
    Build the ordered series 23, 22, ..., 01, 00 (oldest -> newest).

    If hour "00" came back empty while "01" has rows, hour 01's rows are
    reused as "00" and the real "01" is left out of the series. Callers then
    see a "00" snapshot that is one hour stale; this is preferred over an
    empty latest frame.
    """
    hours = feed_hours()
    packs = {h: rows_by_hour.get(h) or [] for h in hours}

    for h in hours:
        if not packs[h]:
            logger.warning("hour %s is empty", h)

    if not packs["00"] and packs["01"]:
        logger.warning("hour 00 is empty, falling back to hour 01 rows relabelled as 00")
        rest = [to_snapshot(h, packs[h]) for h in hours[:-2]]
        return rest + [to_snapshot("00", packs["01"])]

    return [to_snapshot(h, packs[h]) for h in hours]


def pick_snapshot_for_age(snapshots: Sequence[Snapshot], age_hours: int) -> Snapshot:
    """
    Snapshot for "age_hours ago" (0 -> "00", 23 -> "23"). A missing label
    falls back to the newest snapshot.
    """
    if not snapshots:
        return Snapshot(t="00")

    label = hour_label(age_hours)
    for s in snapshots:
        if s.t == label:
            return s
    return snapshots[-1]


def find_item(snapshot: Snapshot, balloon_id: str) -> Optional[BalloonSnapshotItem]:
    for it in snapshot.items:
        if it.id == balloon_id:
            return it
    return None


def identity_jumps(
    snapshots: Sequence[Snapshot],
    max_step_deg: float = 5.0,
) -> List[Tuple[str, str, str, float]]:
    """
    Positional ids are only trustworthy if the feed keeps row order from hour
    to hour. Report (id, from_t, to_t, distance_deg) for every consecutive
    pair of snapshots where an id jumps further than max_step_deg, which
    usually means two unrelated balloons were spliced under one id.
    """
    jumps = []
    prev: Dict[str, BalloonSnapshotItem] = {}
    prev_t = None
    for s in snapshots:
        cur = {it.id: it for it in s.items}
        for bid, it in cur.items():
            before = prev.get(bid)
            if before is None:
                continue
            dlon = abs(it.lon - before.lon)
            dlon = min(dlon, 360.0 - dlon)
            dist = math.hypot(dlon, it.lat - before.lat)
            if dist > max_step_deg:
                jumps.append((bid, prev_t, s.t, dist))
        prev = cur
        prev_t = s.t

    if jumps:
        logger.info("%d suspicious id jumps (> %.1f deg/hour)", len(jumps), max_step_deg)
    return jumps


def count_items(snapshots: Iterable[Snapshot]) -> int:
    return sum(len(s.items) for s in snapshots)
