import pytest
import requests

from jetstream.snapshot import BalloonSnapshotItem, Snapshot
from jetstream.utils_time import feed_hours


class FakeResponse:
    def __init__(self, text="", status_code=200, payload=None):
        self.text = text
        self.status_code = status_code
        self._payload = payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class FakeSession:
    """Routes get() calls through a handler(url, params) -> FakeResponse."""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append((url, params))
        return self.handler(url, params)


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def series():
    """
    Factory for a 23..00 snapshot series. Balloon Bk drifts east 1 degree per
    hour from (10k, k). `missing` maps hour label -> ids absent that hour.
    """

    def build(n_balloons=6, missing=None):
        missing = missing or {}
        snaps = []
        for step, hour in enumerate(feed_hours()):
            items = []
            for k in range(n_balloons):
                bid = f"B{k}"
                if bid in missing.get(hour, ()):
                    continue
                items.append(BalloonSnapshotItem(id=bid, lon=10.0 * k + step, lat=float(k), alt_km=float(k * 3 + 1)))
            snaps.append(Snapshot(t=hour, items=tuple(items)))
        return snaps

    return build
