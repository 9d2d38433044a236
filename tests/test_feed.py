import json

import requests

from jetstream.config import FeedConfig
from jetstream.feed import (
    coerce_rows,
    fetch_all_hours,
    fetch_hour,
    fetch_snapshots,
    parse_hour_text,
    try_extract_row,
)


def test_parse_plain_json():
    assert parse_hour_text("[[1, 2, 3]]") == [[1, 2, 3]]


def test_parse_bom_and_trailing_commas():
    assert parse_hour_text("\ufeff[[1, 2, 3],]") == [[1, 2, 3]]
    assert parse_hour_text('{"a": [1, 2,], }') == {"a": [1, 2]}


def test_parse_garbage_is_none():
    assert parse_hour_text("<html>502 Bad Gateway</html>") is None
    assert parse_hour_text("") is None


def test_extract_from_objects():
    assert try_extract_row({"lat": 10, "lon": 20, "alt": 15}) == [20.0, 10.0, 15.0]
    assert try_extract_row({"position": {"latitude": 1, "lng": 2, "altitude": 3}}) == [2.0, 1.0, 3.0]
    # coords given as [lat, lon]
    assert try_extract_row({"coords": [45, 150], "alt": 18}) == [150.0, 45.0, 18.0]
    assert try_extract_row({"geometry": {"coordinates": [5, 6, 7]}}) == [5.0, 6.0, 7.0]
    assert try_extract_row({"lat": 1, "lon": 2}) is None


def test_coerce_rows_list_and_nested_dict():
    rows = coerce_rows([[1, 2, 3], {"lat": 1, "lon": 2, "alt": 3}, "junk"])
    assert rows == [[1, 2, 3], [2.0, 1.0, 3.0], "junk"]

    nested = {"data": {"balloons": [{"lat": 1, "lon": 2, "alt": 3}, {"lat": 4, "lon": 5, "alt": 6}]}}
    assert sorted(coerce_rows(nested)) == [[2.0, 1.0, 3.0], [5.0, 4.0, 6.0]]
    assert coerce_rows(42) == []


def test_fetch_hour_never_raises(fake_session, fake_response):
    def handler(url, params):
        if url.endswith("/03.json"):
            raise requests.ConnectionError("boom")
        if url.endswith("/04.json"):
            return fake_response("not found", status_code=404)
        if url.endswith("/05.json"):
            return fake_response("<html>")
        return fake_response("[[1.0, 2.0, 3.0]]")

    session = fake_session(handler)
    assert fetch_hour("03", session=session) == []
    assert fetch_hour("04", session=session) == []
    assert fetch_hour("05", session=session) == []
    assert fetch_hour("06", session=session) == [[1.0, 2.0, 3.0]]
    assert session.calls[0][0] == "https://a.windbornesystems.com/treasure/03.json"


def test_fetch_all_hours_partial_failure(fake_session, fake_response):
    def handler(url, params):
        hour = url.rsplit("/", 1)[1][:2]
        if hour in ("07", "08"):
            raise requests.Timeout("slow")
        return fake_response(json.dumps([[float(int(hour)), 0.0, 10.0]]))

    rows = fetch_all_hours(FeedConfig(max_workers=4), session=fake_session(handler))
    assert len(rows) == 24
    assert rows["07"] == [] and rows["08"] == []
    assert rows["09"] == [[9.0, 0.0, 10.0]]


def test_fetch_snapshots_applies_hour_00_fallback(fake_session, fake_response):
    def handler(url, params):
        hour = url.rsplit("/", 1)[1][:2]
        if hour == "00":
            return fake_response("[]")
        return fake_response(json.dumps([[float(int(hour)), 0.0, 10.0]]))

    snaps = fetch_snapshots(session=fake_session(handler))
    assert len(snaps) == 23
    assert snaps[-1].t == "00"
    assert snaps[-1].items[0].lon == 1.0


def test_huge_number_in_one_hour_does_not_fail_the_load(fake_session, fake_response):
    def handler(url, params):
        if url.endswith("/05.json"):
            return fake_response("[[" + "9" * 400 + ", 1.0, 2.0], [3.0, 4.0, 5.0]]")
        return fake_response("[[1.0, 2.0, 3.0]]")

    snaps = fetch_snapshots(session=fake_session(handler))
    assert len(snaps) == 24
    hour5 = next(s for s in snaps if s.t == "05")
    assert [it.id for it in hour5.items] == ["B1"]


def test_strict_json_strings_are_left_alone():
    assert parse_hour_text('{"note": "a,]"}') == {"note": "a,]"}
