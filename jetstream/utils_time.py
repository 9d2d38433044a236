from datetime import datetime, timedelta, timezone
from typing import List

HOURS_IN_FEED = 24


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def hour_label(age_hours: int) -> str:
    # feed documents are keyed "00".."23" by how many hours ago they were taken
    return f"{int(age_hours):02d}"


def feed_hours() -> List[str]:
    """
    Feed hour labels ordered oldest -> newest: "23", "22", ..., "01", "00".
    """
    return [hour_label(h) for h in range(HOURS_IN_FEED - 1, -1, -1)]


def target_time(age_hours: float, now: datetime | None = None) -> datetime:
    if now is None:
        now = datetime.now(timezone.utc)
    return ensure_utc(now) - timedelta(hours=age_hours)


def parse_api_time(s: str) -> datetime:
    # Open-Meteo returns UTC timestamps without a zone suffix
    t = datetime.fromisoformat(s.replace("Z", ""))
    return ensure_utc(t)
