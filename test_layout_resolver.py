#!/usr/bin/env python3
"""Tests for scene > story > book > default layout resolution."""

import pytest

from composer.constants import SLOT_TEXT_PANEL
from composer.layout import LayoutResolver, LayoutValidationError, apply_preset, canvas_for_aspect_ratio


def _layout(name):
    return apply_preset(name, canvas_for_aspect_ratio("16:9")).to_dict()


SCENE_LAYOUT = _layout("comic-sidebyside")
STORY_LAYOUT = _layout("comic-vertical")
BOOK_LAYOUT = _layout("overlay")


def test_scene_layout_wins():
    scene = {"title": "Opening", "layout": SCENE_LAYOUT}
    story = {"title": "Fractions", "layout": STORY_LAYOUT}
    book = {"title": "Math Tales", "defaultLayout": BOOK_LAYOUT}

    data, source = LayoutResolver.resolve(scene, story, book)
    assert source == "scene"
    assert data is SCENE_LAYOUT
    assert LayoutResolver.describe_source(scene, story, book) == "Scene-specific layout"


def test_story_layout_before_book():
    scene = {"title": "Opening"}
    story = {"title": "Fractions", "layout": STORY_LAYOUT}
    book = {"title": "Math Tales", "defaultLayout": BOOK_LAYOUT}

    assert LayoutResolver.resolve(scene, story, book) == (STORY_LAYOUT, "story")
    assert LayoutResolver.describe_source(scene, story, book) == "Story layout (Fractions)"


def test_book_default_layout():
    scene = {"title": "Opening", "layout": None}
    book = {"title": "Math Tales", "defaultLayout": BOOK_LAYOUT}

    assert LayoutResolver.source(scene, {}, book) == "book"
    assert LayoutResolver.describe_source(scene, None, book) == "Book default layout (Math Tales)"


def test_system_default():
    assert LayoutResolver.resolve({}) == (None, "default")
    assert LayoutResolver.describe_source({}) == "System default (overlay)"


def test_resolve_model_uses_book_aspect_ratio():
    book = {"title": "Math Tales", "aspectRatio": "9:16"}
    model = LayoutResolver.resolve_model({}, None, book)
    assert model.type == "overlay"
    assert model.canvas.size == (1080, 1920)


def test_resolve_model_explicit_aspect_ratio_wins():
    scene = {"layout": SCENE_LAYOUT}
    book = {"aspectRatio": "9:16"}
    model = LayoutResolver.resolve_model(scene, None, book, aspect_ratio="1:1")
    assert model.type == "comic-sidebyside"
    assert model.canvas.size == (1920, 1920)
    assert model.elements[SLOT_TEXT_PANEL].x == pytest.approx(980 / 1920 * 100)


def test_resolve_model_defaults_to_portrait():
    model = LayoutResolver.resolve_model({})
    assert model.canvas.aspect_ratio == "3:4"


def test_resolve_model_rejects_invalid_layout():
    scene = {"layout": {"canvas": {"width": 100, "height": 100}, "elements": {}}}
    with pytest.raises(LayoutValidationError):
        LayoutResolver.resolve_model(scene)
