import pytest

from schemas.sheet import RequestPhase, SheetGeometry, SheetMode
from services.sheet_snap_controller import (
    SheetSnapController,
    collapsed_percent,
    compute_snap_points,
    derive_mode,
)

PHONE = SheetGeometry(screen_height=844, inset_bottom=34)
TALL_INSETS = SheetGeometry(screen_height=500, inset_bottom=79)


def test_collapsed_percent_from_geometry():
    # (85 + 34 + 120 + 16) / 844
    assert collapsed_percent(PHONE) == 30


def test_collapsed_percent_has_a_floor():
    assert collapsed_percent(SheetGeometry(screen_height=4000)) == 15


@pytest.mark.parametrize("mode,phase,expected", [
    (SheetMode.IDLE, None, ["30%", "50%", "92%"]),
    (SheetMode.DETAIL, None, ["50%"]),
    (SheetMode.TRIP, None, ["35%", "50%", "92%"]),
    (SheetMode.BOOKING, None, ["35%", "50%", "92%"]),
    (SheetMode.REQUEST, RequestPhase.CONFIRMING, ["92%"]),
    (SheetMode.REQUEST, RequestPhase.DISPATCHED, ["50%", "92%"]),
])
def test_snap_points_per_mode(mode, phase, expected):
    assert compute_snap_points(mode, PHONE, phase) == expected


def test_trip_uses_collapsed_height_when_taller_than_minimum():
    assert compute_snap_points(SheetMode.TRIP, TALL_INSETS)[0] == "60%"


@pytest.mark.parametrize("flags,expected", [
    ({}, SheetMode.IDLE),
    ({"has_selected_hospital": True}, SheetMode.DETAIL),
    ({"has_booking": True, "has_selected_hospital": True}, SheetMode.BOOKING),
    ({"has_trip": True, "has_booking": True}, SheetMode.TRIP),
    ({"has_request": True, "has_trip": True}, SheetMode.REQUEST),
])
def test_derive_mode_priority(flags, expected):
    assert derive_mode(**flags) == expected


def test_snap_points_are_locked_after_first_computation():
    controller = SheetSnapController(PHONE)
    first = controller.snap_points

    controller.update_geometry(TALL_INSETS)

    assert controller.snap_points == first
    controller.set_mode(SheetMode.TRIP)
    assert controller.snap_points[0] == "60%"


def test_request_mode_is_never_locked():
    controller = SheetSnapController(PHONE)
    controller.set_mode(SheetMode.REQUEST, RequestPhase.CONFIRMING)
    assert controller.snap_points == ["92%"]

    controller.set_mode(SheetMode.REQUEST, RequestPhase.DISPATCHED)
    assert controller.snap_points == ["50%", "92%"]


def test_index_zero_in_idle_restores_chrome():
    reported = []
    controller = SheetSnapController(PHONE, on_snap_change=reported.append)

    change = controller.handle_sheet_change(0)

    assert reported == [0]
    assert change.tab_bar_visible is True
    assert change.reset_header is True
    assert change.haptic == "impact_light"


def test_max_index_in_idle_hides_tab_bar():
    controller = SheetSnapController(PHONE)

    change = controller.handle_sheet_change(2)

    assert change.tab_bar_visible is False
    assert change.haptic == "impact_medium"


def test_haptic_only_when_index_changes():
    controller = SheetSnapController(PHONE)
    controller.handle_sheet_change(1)

    assert controller.handle_sheet_change(1).haptic is None


@pytest.mark.parametrize("mode,reset_header", [
    (SheetMode.DETAIL, False),
    (SheetMode.TRIP, True),
    (SheetMode.BOOKING, True),
    (SheetMode.REQUEST, True),
])
def test_non_idle_modes_hide_tab_bar(mode, reset_header):
    controller = SheetSnapController(PHONE)
    controller.set_mode(mode)

    change = controller.handle_sheet_change(0)

    assert change.tab_bar_visible is False
    assert change.reset_header is reset_header


def test_set_mode_clamps_index():
    controller = SheetSnapController(PHONE)
    controller.handle_sheet_change(2)

    state = controller.set_mode(SheetMode.DETAIL)

    assert state.current_snap_index == 0
    assert state.snap_points == ["50%"]


def test_snap_to_clamps_into_range():
    controller = SheetSnapController(PHONE)

    assert controller.snap_to(9).index == 2
    assert controller.snap_to(-3).index == 0


def test_default_geometry_comes_from_settings():
    controller = SheetSnapController()
    assert controller.geometry.tab_bar_height == 85
    assert controller.current_snap_index == 1


def test_reported_index_past_last_point_is_clamped():
    controller = SheetSnapController(PHONE)
    controller.set_mode(SheetMode.DETAIL)

    change = controller.handle_sheet_change(7)

    assert change.index == 0
    assert controller.current_snap_index == 0
