import html
import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Set, Union

from .snapshot import Snapshot, find_item

logger = logging.getLogger(__name__)


def build_popup_html(balloon_id: str, lon: float, lat: float, alt_km) -> str:
    alt_text = f"{alt_km:.2f}" if isinstance(alt_km, (int, float)) else str(alt_km)
    return (
        '<div style="font-size: 12px; line-height: 1.4;">'
        f"<div><b>ID:</b> {html.escape(balloon_id)}</div>"
        f"<div><b>Lon:</b> {lon:.3f}</div>"
        f"<div><b>Lat:</b> {lat:.3f}</div>"
        f"<div><b>Alt:</b> {alt_text} km</div>"
        "</div>"
    )


@dataclass(frozen=True)
class Popup:
    id: str
    lon: float
    lat: float
    html: str


@dataclass(frozen=True)
class SelectionView:
    selected_id: Optional[str]
    selected_ids: FrozenSet[str]
    popup: Optional[Popup]


# ---------------------------
# Input events
# ---------------------------

@dataclass(frozen=True)
class Select:
    """Click on a point, or a programmatic request for an id."""
    balloon_id: str
    reference: Snapshot          # the time slice currently on screen


@dataclass(frozen=True)
class UserClose:
    """The user dismissed the popup of `balloon_id`."""
    balloon_id: str


@dataclass(frozen=True)
class TimeChanged:
    reference: Snapshot


@dataclass(frozen=True)
class Reset:
    pass


Event = Union[Select, UserClose, TimeChanged, Reset]


class Outcome(Enum):
    SELECTED = "selected"
    DESELECTED = "deselected"          # second select of the same id
    NOT_FOUND = "not_found"            # id absent from the active slice
    CLOSED = "closed"                  # user closed the popup
    POPUP_MOVED = "popup_moved"
    POPUP_DROPPED = "popup_dropped"    # selected balloon absent after a time change
    RESET = "reset"
    IGNORED = "ignored"


class SelectionStateMachine:
    """
    Owns selected_id (popup authority), selected_ids (every highlighted
    balloon) and the single visible popup.

    Replacing or removing a popup from inside a transition is a programmatic
    close and never goes through the UserClose handler, so internal
    bookkeeping cannot deselect anything by accident.
    """

    def __init__(self):
        self._selected_id: Optional[str] = None
        self._selected_ids: Set[str] = set()
        self._popup: Optional[Popup] = None

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def selected_ids(self) -> FrozenSet[str]:
        return frozenset(self._selected_ids)

    @property
    def popup(self) -> Optional[Popup]:
        return self._popup

    def view(self) -> SelectionView:
        return SelectionView(self._selected_id, frozenset(self._selected_ids), self._popup)

    def handle(self, event: Event) -> Outcome:
        if isinstance(event, Select):
            outcome = self._on_select(event)
        elif isinstance(event, UserClose):
            outcome = self._on_user_close(event)
        elif isinstance(event, TimeChanged):
            outcome = self._on_time_changed(event)
        elif isinstance(event, Reset):
            outcome = self._on_reset()
        else:
            raise TypeError(f"unknown selection event: {event!r}")

        logger.debug("%s -> %s, selected=%s", type(event).__name__, outcome.value, sorted(self._selected_ids))
        return outcome

    # ---------------------------
    # Transitions
    # ---------------------------

    def _programmatic_close(self):
        self._popup = None

    def _deselect(self, balloon_id: str):
        self._selected_ids.discard(balloon_id)
        if self._selected_id == balloon_id:
            self._selected_id = None

    def _on_select(self, ev: Select) -> Outcome:
        item = find_item(ev.reference, ev.balloon_id)

        if item is None:
            logger.info("balloon %s not present at hour %s; deselecting", ev.balloon_id, ev.reference.t)
            self._deselect(ev.balloon_id)
            self._programmatic_close()
            return Outcome.NOT_FOUND

        if ev.balloon_id in self._selected_ids:
            self._deselect(ev.balloon_id)
            self._programmatic_close()
            return Outcome.DESELECTED

        self._selected_ids.add(ev.balloon_id)
        self._selected_id = ev.balloon_id
        self._programmatic_close()
        self._popup = Popup(
            id=item.id,
            lon=item.lon,
            lat=item.lat,
            html=build_popup_html(item.id, item.lon, item.lat, item.alt_km),
        )
        return Outcome.SELECTED

    def _on_user_close(self, ev: UserClose) -> Outcome:
        # a close for a popup that is no longer shown is stale
        if self._popup is None or self._popup.id != ev.balloon_id:
            return Outcome.IGNORED
        self._popup = None
        self._deselect(ev.balloon_id)
        return Outcome.CLOSED

    def _on_time_changed(self, ev: TimeChanged) -> Outcome:
        if self._popup is None or self._selected_id is None:
            return Outcome.IGNORED

        item = find_item(ev.reference, self._selected_id)
        if item is None:
            self._programmatic_close()
            self._deselect(self._selected_id)
            return Outcome.POPUP_DROPPED

        self._popup = Popup(
            id=item.id,
            lon=item.lon,
            lat=item.lat,
            html=build_popup_html(item.id, item.lon, item.lat, item.alt_km),
        )
        return Outcome.POPUP_MOVED

    def _on_reset(self) -> Outcome:
        self._selected_id = None
        self._selected_ids = set()
        self._programmatic_close()
        return Outcome.RESET
