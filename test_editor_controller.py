#!/usr/bin/env python3
"""Tests for the layout editor state machine."""

import pytest

from composer.constants import SLOT_IMAGE, SLOT_TEXT_PANEL, SLOT_DIAGRAM_PANEL
from composer.editor import (
    LayoutEditorController, EditorBusyError, Idle, Dragging, Resizing,
)
from composer.layout import Canvas, Region, LayoutModel, create_default, validate


def _editor(width=1000, height=1000, preview_width=None):
    """Editor over the default layout; preview at 1:1 unless told otherwise."""
    canvas = Canvas(width, height)
    return LayoutEditorController(create_default(canvas), preview_width=preview_width or width)


def _pixels(editor, slot):
    """Region rect in canvas pixels."""
    cw, ch = editor.layout.canvas.size
    r = editor.layout.elements[slot]
    return (r.x * cw / 100, r.y * ch / 100, r.width * cw / 100, r.height * ch / 100)


def test_starts_idle_without_selection():
    editor = _editor()
    assert isinstance(editor.state, Idle)
    assert editor.is_idle
    assert editor.selected is None


def test_preview_geometry():
    editor = _editor(1920, 1080, preview_width=800)
    assert editor.preview_scale == pytest.approx(800 / 1920)
    assert editor.preview_size == (800, 450)
    assert editor.preview_rect(SLOT_IMAGE) == pytest.approx((0, 0, 800, 450))
    assert editor.preview_rect(SLOT_TEXT_PANEL) == pytest.approx((40, 351, 720, 76.5))


def test_press_hits_topmost_region():
    editor = _editor()
    # Inside both the full-bleed image and the diagram panel
    assert editor.press((100, 100), pointer_id=1)
    assert isinstance(editor.state, Dragging)
    assert editor.state.slot == SLOT_DIAGRAM_PANEL
    assert editor.selected == SLOT_DIAGRAM_PANEL


def test_press_on_empty_space_clears_selection():
    canvas = Canvas(1000, 1000)
    layout = LayoutModel(canvas=canvas, elements={SLOT_IMAGE: Region(0, 0, 50, 50, 1)})
    editor = LayoutEditorController(layout, preview_width=1000)
    editor.select(SLOT_IMAGE)

    assert editor.press((900, 900)) is False
    assert editor.selected is None
    assert editor.is_idle


def test_press_on_selected_handle_starts_resize():
    editor = _editor()
    editor.select(SLOT_TEXT_PANEL)
    # Text panel bottom-right corner sits at (950, 950)
    assert editor.press((951, 949))
    assert isinstance(editor.state, Resizing)
    assert editor.state.corner == "se"
    assert editor.state.slot == SLOT_TEXT_PANEL


def test_handles_only_offered_for_selection():
    editor = _editor()
    editor.select_none()
    # Without a selection the same point just hits the text panel body
    editor.press((949, 949))
    assert isinstance(editor.state, Dragging)


def test_drag_moves_region():
    editor = _editor()
    editor.press_region(SLOT_DIAGRAM_PANEL, (100, 100))
    assert editor.pointer_move((200, 150))
    assert editor.layout.elements[SLOT_DIAGRAM_PANEL].rect == pytest.approx((15, 10, 60, 40))
    assert editor.layout.type == "custom"


@pytest.mark.parametrize("target, expected", [
    ((10000, 10000), (40.0, 60.0)),
    ((-10000, -10000), (0.0, 0.0)),
    ((10000, -10000), (40.0, 0.0)),
])
def test_drag_clamps_exactly_at_boundary(target, expected):
    editor = _editor()
    editor.press_region(SLOT_DIAGRAM_PANEL, (100, 100))
    editor.pointer_move(target)
    region = editor.layout.elements[SLOT_DIAGRAM_PANEL]
    assert (region.x, region.y) == expected
    assert region.right <= 100
    assert region.bottom <= 100
    assert validate(editor.layout) == []


def test_drag_uses_preview_scale():
    editor = _editor(2000, 1000, preview_width=1000)
    editor.press_region(SLOT_DIAGRAM_PANEL, (100, 100))
    editor.pointer_move((150, 100))
    # 50 preview px -> 100 canvas px -> 5% of 2000
    assert editor.layout.elements[SLOT_DIAGRAM_PANEL].x == pytest.approx(10)


def test_release_keeps_geometry_and_returns_idle():
    editor = _editor()
    editor.press_region(SLOT_DIAGRAM_PANEL, (100, 100))
    editor.pointer_move((110, 100))
    assert editor.release()
    assert editor.is_idle
    assert editor.layout.elements[SLOT_DIAGRAM_PANEL].x == pytest.approx(6)
    assert editor.pointer_move((500, 500)) is False


def test_resize_se_grows_and_clamps_to_canvas():
    editor = _editor()
    editor.select(SLOT_DIAGRAM_PANEL)
    editor.press_handle(SLOT_DIAGRAM_PANEL, "se", (650, 450))
    editor.pointer_move((5000, 5000))
    assert _pixels(editor, SLOT_DIAGRAM_PANEL) == pytest.approx((50, 50, 950, 950))


def test_resize_below_minimum_anchors_opposite_edge_se():
    editor = _editor()
    editor.select(SLOT_DIAGRAM_PANEL)
    editor.press_handle(SLOT_DIAGRAM_PANEL, "se", (650, 450))
    editor.pointer_move((0, 0))
    x, y, w, h = _pixels(editor, SLOT_DIAGRAM_PANEL)
    assert (w, h) == pytest.approx((50, 50))
    assert (x, y) == pytest.approx((50, 50))


def test_resize_below_minimum_anchors_opposite_edge_nw():
    editor = _editor()
    editor.select(SLOT_DIAGRAM_PANEL)
    editor.press_handle(SLOT_DIAGRAM_PANEL, "nw", (50, 50))
    editor.pointer_move((2000, 2000))
    x, y, w, h = _pixels(editor, SLOT_DIAGRAM_PANEL)
    assert (w, h) == pytest.approx((50, 50))
    # Right and bottom edges stay where they were
    assert (x + w, y + h) == pytest.approx((650, 450))


@pytest.mark.parametrize("corner, start, end, expected", [
    ("ne", (650, 50), (700, 0), (50, 0, 650, 450)),
    ("sw", (50, 450), (0, 500), (0, 50, 650, 450)),
    ("nw", (50, 50), (-500, -500), (0, 0, 650, 450)),
])
def test_resize_each_corner(corner, start, end, expected):
    editor = _editor()
    editor.select(SLOT_DIAGRAM_PANEL)
    editor.press_handle(SLOT_DIAGRAM_PANEL, corner, start)
    editor.pointer_move(end)
    assert _pixels(editor, SLOT_DIAGRAM_PANEL) == pytest.approx(expected)


def test_resize_minimum_is_in_canvas_pixels():
    editor = _editor(2000, 2000, preview_width=1000)
    editor.select(SLOT_DIAGRAM_PANEL)
    editor.press_handle(SLOT_DIAGRAM_PANEL, "se", (325, 225))
    editor.pointer_move((-1000, -1000))
    region = editor.layout.elements[SLOT_DIAGRAM_PANEL]
    assert region.width == pytest.approx(2.5)
    assert region.height == pytest.approx(2.5)


def test_invalid_corner_raises():
    editor = _editor()
    with pytest.raises(ValueError):
        editor.press_handle(SLOT_DIAGRAM_PANEL, "north", (0, 0))


def test_handles_only_resize_the_selected_region():
    editor = _editor()
    editor.select(SLOT_TEXT_PANEL)
    before = editor.layout.elements[SLOT_DIAGRAM_PANEL].rect

    assert editor.press_handle(SLOT_DIAGRAM_PANEL, "se", (650, 450)) is False
    assert editor.is_idle
    assert editor.selected == SLOT_TEXT_PANEL
    assert editor.pointer_move((900, 900)) is False
    assert editor.layout.elements[SLOT_DIAGRAM_PANEL].rect == before

    editor.select_none()
    assert editor.press_handle(SLOT_TEXT_PANEL, "se", (950, 950)) is False


def test_normalized_layout_is_edited_in_place():
    layout = create_default(Canvas(1000, 1000))
    editor = LayoutEditorController(layout, preview_width=1000)
    assert editor.layout is layout

    editor.press_region(SLOT_DIAGRAM_PANEL, (100, 100))
    editor.pointer_move((150, 100))
    editor.release()
    assert layout.elements[SLOT_DIAGRAM_PANEL].x == pytest.approx(10)
    assert layout.type == "custom"

    copy = editor.snapshot()
    assert copy is not layout
    assert copy == layout


def test_other_pointers_are_ignored_during_session():
    editor = _editor()
    editor.press_region(SLOT_DIAGRAM_PANEL, (100, 100), pointer_id=7)
    before = editor.layout.elements[SLOT_DIAGRAM_PANEL].rect

    assert editor.press((500, 900), pointer_id=8) is False
    assert editor.pointer_move((400, 400), pointer_id=8) is False
    assert editor.release(pointer_id=8) is False
    assert editor.layout.elements[SLOT_DIAGRAM_PANEL].rect == before
    assert isinstance(editor.state, Dragging)

    assert editor.release(pointer_id=7)
    assert editor.is_idle


def test_busy_editor_rejects_structural_changes():
    editor = _editor()
    editor.select(SLOT_TEXT_PANEL)
    editor.press_handle(SLOT_TEXT_PANEL, "se", (950, 950))
    with pytest.raises(EditorBusyError):
        editor.apply_preset("comic-vertical")
    with pytest.raises(EditorBusyError):
        editor.set_aspect_ratio("16:9")
    with pytest.raises(EditorBusyError):
        editor.toggle_element(SLOT_DIAGRAM_PANEL)
    with pytest.raises(EditorBusyError):
        editor.confirm()


def test_apply_preset_replaces_layout():
    editor = _editor(1080, 1440)
    editor.select(SLOT_TEXT_PANEL)
    layout = editor.apply_preset("comic-sidebyside")
    assert layout.type == "comic-sidebyside"
    assert layout.canvas.size == (1080, 1440)
    assert editor.selected == SLOT_TEXT_PANEL
    with pytest.raises(ValueError):
        editor.apply_preset("unknown")


def test_set_aspect_ratio_keeps_percentages():
    editor = _editor(1080, 1440)
    before = editor.layout.elements[SLOT_TEXT_PANEL].rect
    layout = editor.set_aspect_ratio("16:9")
    assert layout.canvas.size == (1920, 1080)
    assert layout.elements[SLOT_TEXT_PANEL].rect == pytest.approx(before)
    assert editor.preview_scale == pytest.approx(editor.preview_width / 1920)


def test_toggle_image_is_rejected():
    editor = _editor()
    with pytest.raises(ValueError):
        editor.toggle_element(SLOT_IMAGE)


def test_toggle_panel_off_and_on():
    editor = _editor(1920, 1080)
    editor.select(SLOT_DIAGRAM_PANEL)

    assert editor.toggle_element(SLOT_DIAGRAM_PANEL) is False
    assert SLOT_DIAGRAM_PANEL not in editor.layout.elements
    assert editor.selected is None
    assert editor.preview_rect(SLOT_DIAGRAM_PANEL) is None

    assert editor.toggle_element(SLOT_DIAGRAM_PANEL) is True
    assert editor.selected == SLOT_DIAGRAM_PANEL
    region = editor.layout.elements[SLOT_DIAGRAM_PANEL]
    assert (region.x, region.y) == (10.0, 10.0)
    assert region.z_index == 3
    assert _pixels(editor, SLOT_DIAGRAM_PANEL)[2:] == pytest.approx((100, 100))


def test_toggle_is_idempotent_with_explicit_state():
    editor = _editor()
    assert editor.toggle_element(SLOT_TEXT_PANEL, True) is True
    before = editor.layout.elements[SLOT_TEXT_PANEL].rect
    assert editor.toggle_element(SLOT_TEXT_PANEL, True) is True
    assert editor.layout.elements[SLOT_TEXT_PANEL].rect == before


def test_toggled_box_is_clamped_on_small_canvas():
    editor = _editor(150, 150)
    editor.toggle_element(SLOT_TEXT_PANEL, False)
    editor.toggle_element(SLOT_TEXT_PANEL, True)
    region = editor.layout.elements[SLOT_TEXT_PANEL]
    assert region.bottom == pytest.approx(100)
    assert validate(editor.layout) == []


def test_update_region_clamps_values():
    editor = _editor()
    region = editor.update_region(SLOT_DIAGRAM_PANEL, x=90, width=30, height=1, z_index=5)
    assert region.width == 30
    assert region.x == 70
    assert region.height == pytest.approx(5)  # 50px of 1000
    assert region.z_index == 5
    assert editor.layout.type == "custom"

    with pytest.raises(ValueError):
        editor.update_region(SLOT_DIAGRAM_PANEL, rotation=45)


def test_update_disabled_region_raises():
    editor = _editor()
    editor.toggle_element(SLOT_TEXT_PANEL, False)
    with pytest.raises(ValueError):
        editor.update_region(SLOT_TEXT_PANEL, x=10)


def test_snapshot_and_confirm_are_independent_copies():
    editor = _editor()
    snap = editor.snapshot()
    editor.press_region(SLOT_DIAGRAM_PANEL, (100, 100))
    editor.pointer_move((300, 300))
    editor.release()

    assert snap.elements[SLOT_DIAGRAM_PANEL].rect == (5, 5, 60, 40)
    confirmed = editor.confirm()
    assert confirmed == editor.layout
    assert confirmed is not editor.layout
    assert validate(confirmed) == []
