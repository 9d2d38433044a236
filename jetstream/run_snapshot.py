# run_snapshot.py

import json
import logging
import os
from pathlib import Path

from .config import FeedConfig, WindConfig
from .feed import fetch_snapshots
from .filters import default_filter
from .particles import Bounds
from .snapshot import count_items, identity_jumps, pick_snapshot_for_age
from .tracks import build_tracks_and_latest_by_filter
from .utils_time import hour_label
from .wind_api import fetch_wind_grid
from .wind_field import build_grid

logger = logging.getLogger(__name__)

# ================= CONFIG =================
OUTPUT_FOLDER = "jetstream_output"

DEFAULT_AGE_HOURS = 0
# whole-world view; the wind sampler clamps latitude itself
DEFAULT_BOUNDS = Bounds(west=-180.0, south=-60.0, east=180.0, north=60.0)
# ========================================


def _write_json(path: Path, obj):
    with open(path, "w") as f:
        json.dump(obj, f)


def run_snapshot(
    age_hours: int = DEFAULT_AGE_HOURS,
    output_folder: str = OUTPUT_FOLDER,
    with_wind: bool = True,
    feed_cfg: FeedConfig | None = None,
    wind_cfg: WindConfig | None = None,
    session=None,
):
    """
    Fetch the 24h feed, build the map layers for one time slice and write
    them (plus the sampled wind grid) as GeoJSON/JSON files.
    """
    logger.info("Fetching 24 hourly snapshots...")
    snapshots = fetch_snapshots(feed_cfg, session)
    logger.info("Got %d snapshots, %d positions", len(snapshots), count_items(snapshots))
    identity_jumps(snapshots)

    ref = pick_snapshot_for_age(snapshots, age_hours)
    layers = build_tracks_and_latest_by_filter(snapshots, default_filter(), ref)

    out = Path(output_folder)
    out.mkdir(exist_ok=True)

    label = hour_label(age_hours)
    tracks_path = out / f"tracks_{label}.geojson"
    latest_path = out / f"latest_{label}.geojson"
    _write_json(tracks_path, layers.tracks)
    _write_json(latest_path, layers.latest)
    paths = [tracks_path, latest_path]

    if with_wind:
        wind_cfg = wind_cfg or WindConfig()
        logger.info("Sampling wind grid...")
        samples = fetch_wind_grid(age_hours, DEFAULT_BOUNDS, wind_cfg, session)
        grid = build_grid(samples, scale=wind_cfg.scale, min_fill_fraction=wind_cfg.min_fill_fraction)
        if grid is None:
            logger.warning("No wind samples; skipping wind grid output")
        else:
            wind_path = out / f"wind_grid_{label}.json"
            _write_json(wind_path, grid.to_json())
            paths.append(wind_path)

    logger.info("Saved outputs: %s", ", ".join(str(p) for p in paths))
    return paths


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    age = int(os.environ.get("AGE_HOURS", DEFAULT_AGE_HOURS))
    folder = os.environ.get("OUTPUT_FOLDER", OUTPUT_FOLDER)
    with_wind = not os.environ.get("NO_WIND")

    run_snapshot(age, folder, with_wind)


if __name__ == "__main__":
    main()
