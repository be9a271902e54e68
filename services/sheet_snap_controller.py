"""
Sheet Snap Controller

Bottom-sheet snap state for the emergency screen. Snap points are derived
from the sheet mode and the device geometry and are locked per mode after
the first computation so re-measured layouts do not make the sheet jump.
Request mode is never locked: its confirming and dispatched phases use
different points.

The controller only reports index changes and the tab-bar / header decision
that goes with them; it never touches requests or visits.
"""

from typing import Callable, Dict, List, Optional

from core.config import settings
from core.logging import get_logger
from schemas.sheet import RequestPhase, SheetChange, SheetGeometry, SheetMode, SheetState
from services.feedback import FeedbackKind

logger = get_logger(__name__)

DEFAULT_SCREEN_HEIGHT = 844
MIN_COLLAPSED_PERCENT = 15
MIN_ACTIVE_COLLAPSED_PERCENT = 35
DEFAULT_SNAP_INDEX = 1


def default_geometry() -> SheetGeometry:
    return SheetGeometry(
        screen_height=DEFAULT_SCREEN_HEIGHT,
        tab_bar_height=settings.TAB_BAR_HEIGHT,
        search_bar_area=settings.SEARCH_BAR_AREA,
        margin_above_tab_bar=settings.MARGIN_ABOVE_TAB_BAR,
    )


def collapsed_percent(geometry: SheetGeometry) -> int:
    collapsed_height = (
        geometry.tab_bar_height
        + geometry.inset_bottom
        + geometry.search_bar_area
        + geometry.margin_above_tab_bar
    )
    return max(MIN_COLLAPSED_PERCENT, round(collapsed_height / geometry.screen_height * 100))


def compute_snap_points(
    mode: SheetMode,
    geometry: SheetGeometry,
    request_phase: Optional[RequestPhase] = None,
) -> List[str]:
    collapsed = collapsed_percent(geometry)
    if mode == SheetMode.DETAIL:
        return ["50%"]
    if mode in (SheetMode.TRIP, SheetMode.BOOKING):
        return [f"{max(collapsed, MIN_ACTIVE_COLLAPSED_PERCENT)}%", "50%", "92%"]
    if mode == SheetMode.REQUEST:
        if request_phase == RequestPhase.DISPATCHED:
            return ["50%", "92%"]
        return ["92%"]
    return [f"{collapsed}%", "50%", "92%"]


def derive_mode(
    has_request: bool = False,
    has_trip: bool = False,
    has_booking: bool = False,
    has_selected_hospital: bool = False,
) -> SheetMode:
    if has_request:
        return SheetMode.REQUEST
    if has_trip:
        return SheetMode.TRIP
    if has_booking:
        return SheetMode.BOOKING
    if has_selected_hospital:
        return SheetMode.DETAIL
    return SheetMode.IDLE


class SheetSnapController:
    def __init__(
        self,
        geometry: Optional[SheetGeometry] = None,
        on_snap_change: Optional[Callable[[int], None]] = None,
    ):
        self.geometry = geometry or default_geometry()
        self.on_snap_change = on_snap_change
        self.mode = SheetMode.IDLE
        self.request_phase: Optional[RequestPhase] = None
        self.current_snap_index = DEFAULT_SNAP_INDEX
        self.tab_bar_visible = True
        self._locked: Dict[SheetMode, List[str]] = {}
        self._last_haptic_index: Optional[int] = None

    @property
    def snap_points(self) -> List[str]:
        if self.mode == SheetMode.REQUEST:
            return compute_snap_points(self.mode, self.geometry, self.request_phase)
        if self.mode not in self._locked:
            self._locked[self.mode] = compute_snap_points(self.mode, self.geometry)
        return self._locked[self.mode]

    @property
    def max_index(self) -> int:
        return max(0, len(self.snap_points) - 1)

    def update_geometry(self, geometry: SheetGeometry) -> None:
        """New measurements only affect modes not yet locked (and request mode)."""
        self.geometry = geometry

    def set_mode(self, mode: SheetMode, request_phase: Optional[RequestPhase] = None) -> SheetState:
        self.mode = SheetMode(mode)
        self.request_phase = request_phase if self.mode == SheetMode.REQUEST else None
        self.current_snap_index = min(self.current_snap_index, self.max_index)
        self.tab_bar_visible = self.mode == SheetMode.IDLE
        logger.debug("Sheet mode changed", mode=self.mode.value, snap_points=self.snap_points)
        return self.snapshot()

    def handle_sheet_change(self, index: int) -> SheetChange:
        max_index = self.max_index
        index = min(index, max_index)
        haptic = None
        if index >= 0 and self._last_haptic_index != index:
            self._last_haptic_index = index
            haptic = FeedbackKind.IMPACT_MEDIUM if index >= max_index else FeedbackKind.IMPACT_LIGHT

        self.current_snap_index = index
        if self.on_snap_change:
            self.on_snap_change(index)

        reset_header = False
        if self.mode != SheetMode.IDLE:
            self.tab_bar_visible = False
            reset_header = self.mode in (SheetMode.TRIP, SheetMode.BOOKING, SheetMode.REQUEST)
        elif index == 0:
            self.tab_bar_visible = True
            reset_header = True
        elif index == max_index:
            self.tab_bar_visible = False

        return SheetChange(
            index=index,
            tab_bar_visible=self.tab_bar_visible,
            reset_header=reset_header,
            haptic=haptic.value if haptic else None,
        )

    def snap_to(self, index: int) -> SheetChange:
        return self.handle_sheet_change(max(0, min(index, self.max_index)))

    def snapshot(self) -> SheetState:
        return SheetState(
            mode=self.mode,
            request_phase=self.request_phase,
            snap_points=self.snap_points,
            current_snap_index=self.current_snap_index,
        )
