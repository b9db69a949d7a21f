#!/usr/bin/env python3
"""Tests for caption panels, text fit measurement and wrapping."""

import pytest

from composer.diagram import PanelStyle, TextPanelRenderer, measure_text_fit
from composer.diagram.fonts import get_font_manager, split_families
from composer.diagram.text_layout import get_layout_engine

STORY = (
    "Maya cut the pie into eight equal slices and gave three of them to her "
    "friends. How much of the pie was left for the rest of the class to share?"
)


def test_style_defaults():
    style = PanelStyle()
    assert style.resolved_font_size(120) == 20
    assert style.line_height_px(20) == 26
    assert PanelStyle(font_size=32).resolved_font_size(120) == 32


def test_short_text_fits():
    result = measure_text_fit("Hello", 800, 120)
    assert result.fits
    assert result.line_count == 1
    assert result.required_height == 26 + 40
    assert result.required_height_percentage == 55


def test_percentage_relative_to_canvas():
    result = measure_text_fit("Hello", 800, 120, canvas_height=1080)
    assert result.required_height_percentage == 7


def test_blank_lines_are_kept():
    result = measure_text_fit("First\n\nSecond", 800, 120)
    assert result.line_count == 3
    assert result.required_height == 3 * 26 + 40
    assert result.fits


def test_long_text_does_not_fit_narrow_panel():
    result = measure_text_fit(STORY, 200, 100)
    assert not result.fits
    assert result.line_count > 3
    assert result.required_height > 100
    assert result.required_height_percentage > 100


def test_wrapped_lines_respect_width():
    font = get_font_manager().pil_font(split_families("Arial, sans-serif", ["DejaVu Sans"]), 18)
    engine = get_layout_engine("en_US")
    lines = engine.wrap(STORY + " Supercalifragilisticexpialidocious", font, 160)
    assert len(lines) > 1
    assert all(line.width <= 160 + 1e-6 for line in lines)


def test_unknown_hyphenation_language_still_wraps():
    engine = get_layout_engine("xx_XX")
    assert engine.hyphenator is None
    font = get_font_manager().pil_font(["DejaVu Sans"], 16)
    assert [line.text for line in engine.wrap("one two three", font, 10000)] == ["one two three"]


def test_render_panel_size_and_background():
    img = TextPanelRenderer().render("", (400, 120))
    assert img.size == (400, 120)
    assert img.mode == "RGBA"
    # Rounded corner stays clear; the body is the translucent fill
    assert img.getpixel((0, 0))[3] == 0
    assert img.getpixel((200, 110)) == (0, 0, 0, 204)


def test_render_draws_text():
    style = PanelStyle(background_color="#00000000", border_width=0, font_color="#ff0000")
    img = TextPanelRenderer().render("Fractions!", (400, 120), style)
    assert img.getbbox() is not None
    red = [px for px in img.getdata() if px[0] > 200 and px[3] > 200]
    assert red


def test_render_clips_overflowing_text():
    img = TextPanelRenderer().render(STORY * 4, (200, 100))
    assert img.size == (200, 100)


def test_render_rejects_empty_size():
    with pytest.raises(ValueError):
        TextPanelRenderer().render("Hi", (0, 50))
