import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterator, List, Optional

import requests

from .config import FeedConfig
from .coords import is_finite_number
from .snapshot import Snapshot, assemble_series
from .utils_time import feed_hours

logger = logging.getLogger(__name__)

# Only used after strict parsing failed. Not string-aware: a ",]" inside a
# string literal is rewritten too, which the numeric rows never contain.
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


# ---------------------------
# Tolerant parsing
# ---------------------------

def parse_hour_text(text: str):
    """
    Parse one hour document. The feed is sometimes not valid JSON: strip a BOM,
    try strict JSON, then retry once with trailing commas removed.
    Returns None when nothing usable comes out.
    """
    if not text:
        return None
    text = text.lstrip("\ufeff")
    try:
        return json.loads(text)
    except ValueError:
        pass
    try:
        return json.loads(_TRAILING_COMMA.sub(r"\1", text))
    except ValueError:
        return None


def _walk_all(obj) -> Iterator:
    # depth-first over every dict/list node
    stack = [obj]
    seen = set()
    while stack:
        cur = stack.pop()
        if not isinstance(cur, (dict, list)):
            continue
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur
        if isinstance(cur, list):
            stack.extend(cur)
        else:
            stack.extend(cur.values())


def _first(node: dict, *keys):
    for k in keys:
        if node.get(k) is not None:
            return node[k]
    return None


def try_extract_row(node) -> Optional[List[float]]:
    """
    Pull [lon, lat, alt] out of a balloon-like object. Knows flat lat/lon keys,
    a nested "position", a "coords" pair in either order, and GeoJSON
    geometry.coordinates.
    """
    if not isinstance(node, dict):
        return None

    lat = _first(node, "lat", "latitude")
    lon = _first(node, "lon", "lng", "longitude")
    alt = _first(node, "alt", "altitude", "alt_km")

    pos = node.get("position")
    if not (is_finite_number(lat) and is_finite_number(lon)) and isinstance(pos, dict):
        lat = _first(pos, "lat", "latitude")
        lon = _first(pos, "lon", "lng", "longitude")
        alt = _first(pos, "alt", "altitude") if alt is None else alt

    coords = node.get("coords")
    if not (is_finite_number(lat) and is_finite_number(lon)) and isinstance(coords, list) and len(coords) >= 2:
        a, b = coords[0], coords[1]
        if is_finite_number(a) and is_finite_number(b):
            as_lon_lat = abs(a) <= 180 and abs(b) <= 90
            lon, lat = (a, b) if as_lon_lat else (b, a)

    geom = node.get("geometry")
    if not (is_finite_number(lat) and is_finite_number(lon)) and isinstance(geom, dict):
        c = geom.get("coordinates")
        if isinstance(c, list) and len(c) >= 2 and is_finite_number(c[0]) and is_finite_number(c[1]):
            lon, lat = c[0], c[1]
            if alt is None and len(c) >= 3:
                alt = c[2]

    if is_finite_number(lat) and is_finite_number(lon) and is_finite_number(alt):
        return [float(lon), float(lat), float(alt)]
    return None


def coerce_rows(data) -> list:
    """
    The feed is expected to be a list of [lon, lat, alt_km] rows. Lists pass
    through (elements that are objects are converted when possible, anything
    else is left for the snapshot builder to drop). A top-level object is
    searched for balloon-like nodes.
    """
    if isinstance(data, list):
        out = []
        for el in data:
            if isinstance(el, dict):
                row = try_extract_row(el)
                out.append(row if row is not None else el)
            else:
                out.append(el)
        return out

    if isinstance(data, dict):
        rows = []
        for node in _walk_all(data):
            row = try_extract_row(node)
            if row is not None:
                rows.append(row)
        return rows

    return []


# ---------------------------
# Fetching
# ---------------------------

def fetch_hour(hour: str, cfg: Optional[FeedConfig] = None, session=None) -> list:
    """
    Raw rows for one hour. Never raises: network errors, bad status codes and
    unparsable bodies all come back as [].
    """
    cfg = cfg or FeedConfig()
    http = session or requests
    url = cfg.hour_url(hour)
    try:
        resp = http.get(url, headers={"accept": "application/json,*/*"}, timeout=cfg.timeout_s)
        resp.raise_for_status()
        text = resp.text
    except requests.RequestException as e:
        logger.warning("hour %s: fetch failed: %s", hour, e)
        return []

    data = parse_hour_text(text)
    if data is None:
        logger.warning("hour %s: body is not JSON, treating as empty", hour)
        return []
    return coerce_rows(data)


def fetch_all_hours(cfg: Optional[FeedConfig] = None, session=None) -> Dict[str, list]:
    """
    Fetch all 24 hours concurrently and wait for every one of them. A failing
    hour only ever yields [] and never cancels its siblings.
    """
    cfg = cfg or FeedConfig()
    hours = feed_hours()
    with ThreadPoolExecutor(max_workers=cfg.max_workers) as executor:
        futures = {h: executor.submit(fetch_hour, h, cfg, session) for h in hours}
        rows_by_hour = {}
        for h, fut in futures.items():
            try:
                rows_by_hour[h] = fut.result()
            except Exception:
                logger.exception("hour %s: fetch task crashed", h)
                rows_by_hour[h] = []
    return rows_by_hour


def fetch_snapshots(cfg: Optional[FeedConfig] = None, session=None) -> List[Snapshot]:
    return assemble_series(fetch_all_hours(cfg, session))
