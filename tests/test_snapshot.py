import json
import math

from jetstream.snapshot import (
    BalloonSnapshotItem,
    DropReason,
    Snapshot,
    assemble_series,
    build_snapshot,
    find_item,
    identity_jumps,
    pick_snapshot_for_age,
    to_snapshot,
)
from jetstream.utils_time import feed_hours


def test_malformed_rows_dropped_and_ids_positional():
    rows = [
        [10.0, 20.0, 15.0],
        [1.0, 2.0],                      # too short
        [1.0, "x", 3.0],                 # non-numeric
        [1.0, math.nan, 3.0],            # non-finite
        None,
        [30.0, 40.0, 12.0, 99, "extra"],
        [True, 1.0, 1.0],                # bool is not a coordinate
    ]
    snap, stats = build_snapshot("05", rows)

    assert snap.t == "05"
    assert [it.id for it in snap.items] == ["B0", "B5"]
    assert stats.total == 7
    assert stats.kept == 2
    assert stats.dropped == 5
    assert stats.reasons[DropReason.MALFORMED_RECORD] == 5


def test_swapped_row_repaired_and_out_of_range_dropped():
    snap, stats = build_snapshot("00", [[45.0, 120.0, 17.0], [10.0, 95.0, 17.0]])
    assert len(snap.items) == 1
    item = snap.items[0]
    assert (item.id, item.lon, item.lat, item.alt_km) == ("B0", 120.0, 45.0, 17.0)
    assert stats.reasons[DropReason.OUT_OF_RANGE_COORDINATE] == 1


def test_unparsable_hour_gives_empty_snapshot():
    assert to_snapshot("07", None) == Snapshot(t="07")
    assert to_snapshot("07", {"not": "rows"}) == Snapshot(t="07")
    assert to_snapshot("07", []).items == ()


def test_series_order_oldest_to_newest():
    rows = {h: [[1.0, 2.0, 3.0]] for h in feed_hours()}
    snaps = assemble_series(rows)
    assert [s.t for s in snaps] == feed_hours()
    assert snaps[0].t == "23" and snaps[-1].t == "00"


def test_missing_hours_degrade_to_empty():
    snaps = assemble_series({"05": [[1.0, 2.0, 3.0]]})
    assert len(snaps) == 24
    assert sum(len(s.items) for s in snaps) == 1


def test_hour_00_falls_back_to_hour_01():
    rows = {h: [[float(int(h)), 0.0, 10.0]] for h in feed_hours()}
    rows["00"] = []
    snaps = assemble_series(rows)

    labels = [s.t for s in snaps]
    assert labels[-1] == "00"
    assert "01" not in labels
    assert len(snaps) == 23
    # the "00" slot carries hour 01's rows
    assert snaps[-1].items[0].lon == 1.0


def test_no_fallback_when_both_empty():
    rows = {h: [[1.0, 1.0, 1.0]] for h in feed_hours()}
    rows["00"] = []
    rows["01"] = []
    snaps = assemble_series(rows)
    assert [s.t for s in snaps] == feed_hours()
    assert snaps[-1].items == ()


def test_pick_snapshot_for_age(series):
    snaps = series()
    assert pick_snapshot_for_age(snaps, 0).t == "00"
    assert pick_snapshot_for_age(snaps, 7).t == "07"
    assert pick_snapshot_for_age([], 3) == Snapshot(t="00")


def test_pick_snapshot_missing_label_falls_back_to_newest(series):
    snaps = [s for s in series() if s.t != "01"]
    assert pick_snapshot_for_age(snaps, 1).t == "00"


def test_find_item(series):
    snap = series()[-1]
    assert find_item(snap, "B3").id == "B3"
    assert find_item(snap, "B99") is None


def test_identity_jumps_flags_spliced_ids(series):
    snaps = series(n_balloons=2)
    assert identity_jumps(snaps) == []

    # reorder one hour so B0 and B1 trade places
    b0, b1 = snaps[5].items
    snaps[5] = Snapshot(t=snaps[5].t, items=(
        BalloonSnapshotItem(id="B0", lon=b1.lon, lat=b1.lat, alt_km=b1.alt_km),
        BalloonSnapshotItem(id="B1", lon=b0.lon, lat=b0.lat, alt_km=b0.alt_km),
    ))
    jumps = identity_jumps(snaps)
    assert {j[0] for j in jumps} == {"B0", "B1"}


def test_integer_beyond_float_range_is_malformed():
    rows = json.loads("[[" + "1" * 400 + ", 10.0, 5.0], [20.0, 10.0, 5.0]]")
    snap, stats = build_snapshot("00", rows)

    assert [it.id for it in snap.items] == ["B1"]
    assert stats.reasons[DropReason.MALFORMED_RECORD] == 1
