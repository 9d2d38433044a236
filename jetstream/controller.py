import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .config import ParticleConfig
from .filters import BalloonFilter, default_filter
from .particles import Bounds, ParticleAdvector, ParticleMove
from .selection import (
    Outcome,
    Popup,
    Reset,
    Select,
    SelectionStateMachine,
    SelectionView,
    TimeChanged,
    UserClose,
)
from .snapshot import Snapshot, pick_snapshot_for_age
from .tracks import (
    build_track_for_id,
    build_tracks_and_latest_by_filter,
    build_tracks_for_ids,
    empty_feature_collection,
)
from .utils_time import HOURS_IN_FEED
from .wind_field import WindField

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderFrame:
    tracks: dict            # "tracks" layer, LineString FeatureCollection
    latest: dict            # "latest" layer, Point FeatureCollection
    popup: Optional[Popup]
    selection: SelectionView


class ViewportController:
    """
    Single owner of the map session state: snapshot series, filter, time
    slider, selection, viewport bounds, wind field and particles. Every
    mutation goes through a method here and must be called from one thread
    (the UI/tick thread); renderers only get read-only frames.
    """

    def __init__(self, wind_loader=None, particle_cfg: Optional[ParticleConfig] = None):
        self._snapshots: Tuple[Snapshot, ...] = ()
        self._filter: BalloonFilter = default_filter()
        self._show_tracks = False
        self._age_hours = 0
        self._bounds: Optional[Bounds] = None

        self._selection = SelectionStateMachine()

        self._wind_loader = wind_loader
        self._wind_enabled = False
        self._wind_field: Optional[WindField] = None
        self._particles = ParticleAdvector(particle_cfg)

    # ---------------------------
    # Read-only views
    # ---------------------------

    @property
    def snapshots(self) -> Tuple[Snapshot, ...]:
        return self._snapshots

    @property
    def filter(self) -> BalloonFilter:
        return self._filter

    @property
    def age_hours(self) -> int:
        return self._age_hours

    @property
    def wind_field(self) -> Optional[WindField]:
        return self._wind_field

    @property
    def particles(self):
        return tuple(self._particles.particles)

    def selection(self) -> SelectionView:
        return self._selection.view()

    def reference_snapshot(self) -> Snapshot:
        return pick_snapshot_for_age(self._snapshots, self._age_hours)

    # ---------------------------
    # Balloon data and selection
    # ---------------------------

    def load_snapshots(self, snapshots: Sequence[Snapshot]):
        # replaced wholesale on every re-fetch
        self._snapshots = tuple(snapshots)
        logger.info("loaded %d snapshots", len(self._snapshots))
        if self._snapshots:
            self._selection.handle(TimeChanged(self.reference_snapshot()))

    def select(self, balloon_id: str) -> Outcome:
        if not self._snapshots:
            logger.warning("select(%s) before snapshots are loaded", balloon_id)
            return Outcome.IGNORED
        return self._selection.handle(Select(balloon_id, self.reference_snapshot()))

    def close_popup(self, balloon_id: str) -> Outcome:
        return self._selection.handle(UserClose(balloon_id))

    def reset(self) -> Outcome:
        return self._selection.handle(Reset())

    def set_filter(self, flt: BalloonFilter) -> Optional[Outcome]:
        """
        Store the filter. A new only_id acts like a click on that balloon; it
        adds to the selection and fires only when the id itself changes.
        """
        previous = self._filter.only_id
        self._filter = flt
        if flt.only_id and flt.only_id != previous:
            return self.select(flt.only_id)
        return None

    def set_show_tracks(self, show: bool):
        self._show_tracks = bool(show)

    def set_age(self, age_hours: int) -> Outcome:
        if not 0 <= int(age_hours) < HOURS_IN_FEED:
            raise ValueError(f"age_hours must be in [0, {HOURS_IN_FEED - 1}], got {age_hours}")
        self._age_hours = int(age_hours)
        outcome = Outcome.IGNORED
        if self._snapshots:
            outcome = self._selection.handle(TimeChanged(self.reference_snapshot()))
        self._request_wind()
        return outcome

    # ---------------------------
    # Wind and particles
    # ---------------------------

    def set_bounds(self, bounds: Bounds):
        self._bounds = bounds
        if self._wind_field is not None:
            self._particles.seed(bounds)
        self._request_wind()

    def set_wind_enabled(self, enabled: bool):
        self._wind_enabled = bool(enabled)
        if self._wind_enabled:
            self._request_wind()
            return
        if self._wind_loader is not None:
            self._wind_loader.cancel()
        self._wind_field = None
        self._particles.clear()

    def install_wind_field(self, field: Optional[WindField]):
        self._wind_field = field
        if field is not None and self._bounds is not None:
            self._particles.seed(self._bounds)
        else:
            self._particles.clear()

    def _request_wind(self):
        if not self._wind_enabled or self._wind_loader is None or self._bounds is None:
            return
        self._wind_loader.request(self._age_hours, self._bounds)

    def tick(self) -> List[ParticleMove]:
        """One animation frame: pick up a finished wind grid, then advect."""
        if self._wind_loader is not None and self._wind_enabled:
            ready, field = self._wind_loader.poll()
            if ready:
                self.install_wind_field(field)

        if not self._wind_enabled or self._wind_field is None or self._bounds is None:
            return []
        return self._particles.step(self._wind_field, self._bounds)

    # ---------------------------
    # Rendering
    # ---------------------------

    def render(self) -> RenderFrame:
        view = self._selection.view()
        if not self._snapshots:
            return RenderFrame(empty_feature_collection(), empty_feature_collection(), view.popup, view)

        ref = self.reference_snapshot()
        built = build_tracks_and_latest_by_filter(self._snapshots, self._filter, ref, view.selected_id)

        latest = built.latest
        for feat in latest["features"]:
            props = feat["properties"]
            props["selected"] = 1 if props["id"] in view.selected_ids else 0

        if view.selected_ids:
            tracks = build_tracks_for_ids(self._snapshots, view.selected_ids)
        elif view.selected_id:
            tracks = build_track_for_id(self._snapshots, view.selected_id)
        elif self._show_tracks:
            tracks = built.tracks
        else:
            tracks = empty_feature_collection()

        return RenderFrame(tracks=tracks, latest=latest, popup=view.popup, selection=view)
