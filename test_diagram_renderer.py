#!/usr/bin/env python3
"""Tests for diagram, equation, code and formatted text panel rendering."""

import asyncio

import pytest

from composer.constants import DEFAULT_MONO_FAMILIES, FALLBACK_MEASURE_HEIGHT
from composer.diagram import DiagramRenderer, DiagramSpec, default_theme
from composer.diagram import renderer as renderer_module
from composer.diagram.board import content_inset, create_board
from composer.diagram.code import highlight, split_lines
from composer.diagram.equation import to_mathtext
from composer.diagram.flowchart import FlowchartParseError, parse_flowchart
from composer.diagram.markup import parse_markup
from composer.diagram.theme import normalize_board_kind

FLOWCHART = """graph TD
    A[Start] --> B{Is it working?}
    B -->|Yes| C((Done))
    B -.->|No| D(Fix it)
    D ==> B
"""

MARKUP = """# Fractions

A fraction has a **numerator** and a *denominator*.

- halves
- thirds

1. Cut the pie
2. Count the slices
"""


@pytest.fixture(scope="module")
def renderer():
    return DiagramRenderer()


def _render(renderer, spec, theme, width, height):
    return asyncio.run(renderer.render(spec, theme, width, height))


def _measure(renderer, spec, theme, max_width):
    return asyncio.run(renderer.measure_natural_size(spec, theme, max_width))


# Themes ---------------------------------------------------------------------

def test_board_aliases():
    assert normalize_board_kind("blackboard") == "dark"
    assert normalize_board_kind("whiteboard") == "light"
    assert default_theme("whiteboard").background_color == "#ffffff"
    with pytest.raises(ValueError):
        default_theme("chalkboard")


def test_content_inset_includes_border():
    theme = default_theme("dark")
    assert content_inset(theme) == 48
    assert content_inset(theme.with_changes(border_kind="shadow")) == 50
    assert content_inset(default_theme("transparent")) == 40


def test_frame_board_corners_use_border_color():
    board = create_board(120, 80, default_theme("dark"))
    assert board.size == (120, 80)
    assert board.getpixel((0, 0)) == (0x8b, 0x73, 0x55, 255)
    assert board.getpixel((60, 40)) == (0x2d, 0x37, 0x48, 255)


def test_transparent_board_is_clear():
    board = create_board(50, 50, default_theme("transparent"))
    assert board.getpixel((25, 25))[3] == 0


def test_textured_board_stays_close_to_background():
    board = create_board(64, 64, default_theme("dark").with_changes(texture=True, border_kind="none"))
    r, g, b, a = board.getpixel((32, 32))
    assert abs(r - 0x2d) <= 5 and abs(g - 0x37) <= 5 and abs(b - 0x48) <= 5
    assert a == 255


# Flowchart parsing ----------------------------------------------------------

def test_parse_flowchart_shapes_and_edges():
    chart = parse_flowchart(FLOWCHART)
    assert chart.direction == "TD"
    assert {n: node.shape for n, node in chart.nodes.items()} == {
        "A": "rectangle", "B": "diamond", "C": "circle", "D": "rounded",
    }
    assert chart.nodes["B"].label == "Is it working?"
    assert [(e.source, e.target, e.label, e.style) for e in chart.edges] == [
        ("A", "B", None, "solid"),
        ("B", "C", "Yes", "solid"),
        ("B", "D", "No", "dotted"),
        ("D", "B", None, "thick"),
    ]


def test_parse_flowchart_chains_and_groups():
    chart = parse_flowchart("flowchart LR; A & B --> C --- D; %% comment\nstyle A fill:#f00")
    assert chart.direction == "LR"
    assert [(e.source, e.target) for e in chart.edges] == [("A", "C"), ("B", "C"), ("C", "D")]
    assert chart.edges[-1].arrow_end is False


def test_parse_flowchart_keeps_hyphenated_ids():
    chart = parse_flowchart("graph TB\nstep-one-->step-two")
    assert chart.direction == "TD"
    assert set(chart.nodes) == {"step-one", "step-two"}


@pytest.mark.parametrize("source", ["", "  \n", "pie title Pets", "graph TD\nA --> "])
def test_parse_flowchart_rejects_bad_source(source):
    with pytest.raises(FlowchartParseError):
        parse_flowchart(source)


# Other kinds, helpers ------------------------------------------------------

def test_to_mathtext_delimiters():
    assert to_mathtext(r"$$x^2$$") == r"$x^2$"
    assert to_mathtext(r"\[a+b\]") == r"$a+b$"
    assert to_mathtext(r"E = mc^2") == r"$E = mc^2$"
    assert to_mathtext(r"area $\pi r^2$") == r"area $\pi r^2$"


def test_highlight_colors_keywords():
    rows = highlight("def area(r):\n    return 3.14 * r * r\n", "python", "dark", "#ffffff")
    assert len(rows) == 2
    assert rows[0][0] == ("def", "#ff6b9d")


def test_highlight_unknown_language_is_plain():
    rows = highlight("x := 1", "not-a-language", "light", "#000000")
    assert rows == [[("x := 1", "#000000")]]


def test_split_lines_expands_tabs():
    assert split_lines("a\n\tb\n") == ["a", "    b"]


def test_parse_markup_blocks():
    kinds = [(b.kind, b.marker) for b in parse_markup(MARKUP)]
    assert kinds == [
        ("heading", None), ("paragraph", None),
        ("list_item", "•"), ("list_item", "•"),
        ("list_item", "1."), ("list_item", "2."),
    ]


# Rendering ------------------------------------------------------------------

def test_render_diagram_exact_size(renderer):
    result = _render(renderer, DiagramSpec("diagram", FLOWCHART), default_theme("dark"), 640, 480)
    assert result.success, result.error
    assert result.image.size == (640, 480)
    assert result.image.mode == "RGBA"
    assert result.scale > 0


def test_measure_then_render_keeps_unit_scale(renderer):
    theme = default_theme("light")
    spec = DiagramSpec("diagram", FLOWCHART)
    width, height = _measure(renderer, spec, theme, 4000)
    result = _render(renderer, spec, theme, width, height)
    assert result.success, result.error
    assert result.scale == pytest.approx(1.0, abs=0.05)
    assert result.natural_size == (width, height)


def test_measure_diagram_caps_width(renderer):
    theme = default_theme("dark")
    spec = DiagramSpec("diagram", "graph LR\n" + " --> ".join(f"N{i}[Step number {i}]" for i in range(12)))
    size = _measure(renderer, spec, theme, 400)
    assert size.width == 400


def test_small_target_scales_diagram_down(renderer):
    result = _render(renderer, DiagramSpec("diagram", FLOWCHART), default_theme("dark"), 200, 200)
    assert result.success
    assert result.scale < 1.0


def test_render_equations(renderer):
    spec = DiagramSpec("equation", "E = mc^2\n\n\\frac{a}{b} + \\sqrt{x}")
    result = _render(renderer, spec, default_theme("light"), 600, 300)
    assert result.success, result.error
    assert result.image.size == (600, 300)
    assert result.scale <= 1.0


def test_equation_parse_failure_falls_back_to_text(renderer):
    result = _render(renderer, DiagramSpec("equation", r"\frac{"), default_theme("dark"), 400, 200)
    assert result.success
    assert any("Could not typeset" in w for w in result.warnings)


def test_large_equation_shrinks_with_warning(renderer):
    spec = DiagramSpec("equation", " + ".join(f"x_{i}^2" for i in range(40)))
    result = _render(renderer, spec, default_theme("light"), 300, 200)
    assert result.success
    assert result.scale < 1.0
    assert any("scaled" in w for w in result.warnings)


def test_render_code_truncates_long_listings(renderer):
    code = "\n".join(f"print({i})" for i in range(200))
    result = _render(renderer, DiagramSpec("code", code, language="python"), default_theme("dark"), 400, 300)
    assert result.success
    assert result.image.size == (400, 300)
    assert any("truncated" in w for w in result.warnings)


def test_measure_code(renderer):
    theme = default_theme("light")
    size = _measure(renderer, DiagramSpec("code", "a = 1\nb = 2\nc = 3\n"), theme, 800)
    inset = content_inset(theme)
    assert size.height == inset * 2 + 68  # 3 lines at 16px * 1.4, rounded up
    assert size.width <= 800


def test_render_formatted_text(renderer):
    result = _render(renderer, DiagramSpec("formattedText", MARKUP), default_theme("light"), 600, 500)
    assert result.success, result.error
    assert result.warnings == []


def test_formatted_text_overflow_warns(renderer):
    content = "\n\n".join(f"Paragraph {i} of a long lesson." for i in range(60))
    result = _render(renderer, DiagramSpec("formattedText", content), default_theme("light"), 400, 200)
    assert result.success
    assert any("taller than panel" in w for w in result.warnings)


def test_measure_formatted_text_grows_with_content(renderer):
    theme = default_theme("light")
    short = _measure(renderer, DiagramSpec("formattedText", "One line."), theme, 600)
    long = _measure(renderer, DiagramSpec("formattedText", MARKUP), theme, 600)
    assert long.height > short.height


@pytest.mark.parametrize("spec, width, height, error", [
    (DiagramSpec("diagram", ""), 300, 300, "empty content"),
    (DiagramSpec("chart", "x"), 300, 300, "unknown diagram kind"),
    (DiagramSpec("code", "x = 1"), 0, 300, "zero-size target"),
    (DiagramSpec("code", "x = 1"), 90, 90, "no drawable area"),
    (DiagramSpec("diagram", "sequenceDiagram\nA->>B: hi"), 300, 300, "diagram parse failure"),
])
def test_render_failures_are_reported(renderer, spec, width, height, error):
    result = _render(renderer, spec, default_theme("dark"), width, height)
    assert result.success is False
    assert result.image is None
    assert error in result.error


def test_missing_theme_is_reported(renderer):
    result = _render(renderer, DiagramSpec("code", "x"), None, 300, 300)
    assert result.success is False
    assert "missing theme" in result.error


def test_measure_failure_falls_back(renderer):
    size = _measure(renderer, DiagramSpec("diagram", "not a diagram"), default_theme("dark"), 500)
    assert tuple(size) == (500, FALLBACK_MEASURE_HEIGHT)


def test_concurrent_renders(renderer):
    theme = default_theme("dark")
    specs = [
        DiagramSpec("diagram", FLOWCHART),
        DiagramSpec("equation", "a^2 + b^2 = c^2"),
        DiagramSpec("code", "x = 1", language="python"),
        DiagramSpec("formattedText", MARKUP),
    ]

    async def render_all():
        return await asyncio.gather(*(renderer.render(s, theme, 500, 400) for s in specs))

    results = asyncio.run(render_all())
    assert all(r.success for r in results)
    assert all(r.image.size == (500, 400) for r in results)


def test_code_panels_ignore_proportional_theme_fonts(renderer):
    theme = default_theme("dark").with_changes(font_family="Arial, Helvetica")
    text, mono = renderer._families(theme)
    assert text[:2] == ["Arial", "Helvetica"]
    assert "Arial" not in mono
    assert mono == list(DEFAULT_MONO_FAMILIES)


def test_code_panels_prefer_theme_monospace_font(renderer):
    theme = default_theme("light").with_changes(font_family="Consolas, Arial")
    _, mono = renderer._families(theme)
    assert mono[0] == "Consolas"
    assert "Arial" not in mono
    assert mono.count("Consolas") == 1


def test_backend_setup_failure_is_reported(monkeypatch):
    def broken_fonts(custom_dirs=None):
        raise OSError("font directory unreadable")

    monkeypatch.setattr(renderer_module, "_initialized", False)
    monkeypatch.setattr(renderer_module, "get_font_manager", broken_fonts)
    fresh = DiagramRenderer()

    result = _render(fresh, DiagramSpec("code", "x = 1"), default_theme("dark"), 300, 200)
    assert result.success is False
    assert "font directory unreadable" in result.error

    size = _measure(fresh, DiagramSpec("code", "x = 1"), default_theme("dark"), 500)
    assert tuple(size) == (500, FALLBACK_MEASURE_HEIGHT)
