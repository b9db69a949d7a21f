"""
Panel rendering entry points.

DiagramRenderer dispatches a DiagramSpec to the per-kind renderer, draws it
onto a themed board and reports failures as results instead of raising.
Blocking rasterization runs in a worker thread, one render at a time.
"""

import asyncio
import logging
import math
import threading
from pathlib import Path
from typing import Iterable, Optional, Tuple

import matplotlib
from PIL import Image

from ..constants import (
    DEFAULT_TEXT_FAMILIES, DEFAULT_MONO_FAMILIES,
    EQUATION_BLOCK_SPACING, FALLBACK_MEASURE_HEIGHT,
)
from . import code as code_kind
from . import equation as equation_kind
from . import flowchart as flowchart_kind
from . import markup as markup_kind
from .board import create_board, content_inset
from .fonts import FontManager, get_font_manager, split_families
from .theme import (
    DiagramSpec, Theme, RenderResult, NaturalSize,
    KINDS, KIND_DIAGRAM, KIND_EQUATION, KIND_CODE,
)

logger = logging.getLogger(__name__)

# Shared rendering backends (matplotlib state, font discovery) are not re-entrant
_backend_lock = threading.Lock()
_init_lock = threading.Lock()
_initialized = False


class RenderError(Exception):
    """Expected rendering failure, reported through RenderResult."""


def initialize_backends(font_dirs: Optional[Iterable[Path]] = None) -> None:
    """One-time process setup of the typesetting and font backends."""
    global _initialized
    with _init_lock:
        if _initialized:
            return
        matplotlib.rcParams["mathtext.fontset"] = "cm"
        get_font_manager(font_dirs)
        _initialized = True
        logger.info("Diagram rendering backends initialized")


def _check_request(spec: Optional[DiagramSpec], theme: Optional[Theme]) -> None:
    if theme is None:
        raise RenderError("missing theme")
    if spec is None:
        raise RenderError("missing diagram spec")
    if spec.kind not in KINDS:
        raise RenderError(f"unknown diagram kind '{spec.kind}'")
    if not spec.content or not spec.content.strip():
        raise RenderError("empty content")


class DiagramRenderer:
    """Renders diagrams, equations, code and formatted text onto boards."""

    def __init__(self, fonts: Optional[FontManager] = None, font_dirs: Optional[Iterable[Path]] = None):
        self._fonts = fonts
        self._font_dirs = list(font_dirs) if font_dirs else None

    @property
    def fonts(self) -> FontManager:
        if self._fonts is None:
            self._fonts = get_font_manager(self._font_dirs)
        return self._fonts

    # Public coroutine API -------------------------------------------------

    async def render(self, spec: DiagramSpec, theme: Theme,
                     target_width: int, target_height: int) -> RenderResult:
        """
        Render a panel of exactly target_width x target_height pixels.

        Returns:
            RenderResult; on failure ``success`` is False and ``error`` says why
        """
        return await asyncio.to_thread(self._render_serialized, spec, theme, target_width, target_height)

    async def measure_natural_size(self, spec: DiagramSpec, theme: Theme, max_width: int) -> NaturalSize:
        """
        Size the panel would need to show its content without compression.

        Falls back to (max_width, 600) when the content cannot be measured.
        """
        return await asyncio.to_thread(self._measure_serialized, spec, theme, max_width)

    # Worker-thread side ---------------------------------------------------

    def _render_serialized(self, spec, theme, target_width, target_height) -> RenderResult:
        try:
            initialize_backends(self._font_dirs)
            with _backend_lock:
                return self._render(spec, theme, int(target_width), int(target_height))
        except RenderError as e:
            logger.warning(f"Render failed: {e}")
            return RenderResult.failure(str(e))
        except Exception as e:
            logger.error(f"Unexpected error rendering {getattr(spec, 'kind', '?')}: {e}", exc_info=True)
            return RenderResult.failure(f"{type(e).__name__}: {e}")

    def _measure_serialized(self, spec, theme, max_width) -> NaturalSize:
        try:
            initialize_backends(self._font_dirs)
            with _backend_lock:
                return self._measure(spec, theme, int(max_width))
        except RenderError as e:
            logger.warning(f"Measure failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected error measuring {getattr(spec, 'kind', '?')}: {e}", exc_info=True)
        return NaturalSize(max(1, int(max_width)), FALLBACK_MEASURE_HEIGHT)

    def _families(self, theme: Theme) -> Tuple[list, list]:
        text = split_families(theme.font_family, DEFAULT_TEXT_FAMILIES)
        # Only monospace faces from the theme list are used for code
        monospace = {f.lower() for f in DEFAULT_MONO_FAMILIES}
        preferred = [f for f in split_families(theme.font_family, []) if f.lower() in monospace]
        mono = preferred + [f for f in DEFAULT_MONO_FAMILIES if f not in preferred]
        return text, mono

    def _render(self, spec: DiagramSpec, theme: Theme, width: int, height: int) -> RenderResult:
        _check_request(spec, theme)
        if width <= 0 or height <= 0:
            raise RenderError(f"zero-size target {width}x{height}")

        inset = content_inset(theme)
        avail_w, avail_h = width - 2 * inset, height - 2 * inset
        if avail_w <= 0 or avail_h <= 0:
            raise RenderError(f"padding leaves no drawable area in {width}x{height}")

        font_size = theme.effective_font_size
        text_families, mono_families = self._families(theme)
        warnings = []
        scale = 1.0

        if spec.kind == KIND_DIAGRAM:
            layout = self._flow_layout(spec, font_size, text_families)
            natural = (layout.width, layout.height)
            scale = min(avail_w / layout.width, avail_h / layout.height)
            content = flowchart_kind.paint_flowchart(
                layout, scale, self.fonts, text_families,
                theme.foreground_color, theme.background_color,
            )
            origin = (max(0, (avail_w - content.width) // 2), max(0, (avail_h - content.height) // 2))

        elif spec.kind == KIND_EQUATION:
            blocks = equation_kind.build_blocks(
                spec.content, font_size, theme.foreground_color, avail_w,
                self.fonts, text_families, warnings,
            )
            if not blocks:
                raise RenderError("empty content")
            natural = equation_kind.stack_size(blocks, EQUATION_BLOCK_SPACING)
            scale = min(1.0, avail_w / natural[0], avail_h / natural[1])
            if scale < 1.0:
                warnings.append(f"equations scaled to {scale:.2f} to fit the panel")
            content = equation_kind.paint_stack(blocks, EQUATION_BLOCK_SPACING, scale)
            origin = (max(0, (avail_w - content.width) // 2), max(0, (avail_h - content.height) // 2))

        elif spec.kind == KIND_CODE:
            font = self.fonts.pil_font(mono_families, font_size)
            rows = code_kind.highlight(spec.content, spec.language, theme.board_kind, theme.foreground_color)
            natural = code_kind.natural_size(spec.content, font, font_size)
            content, truncated = code_kind.paint_code(
                rows, font, font_size, (avail_w, avail_h), theme.foreground_color
            )
            if truncated:
                warnings.append(f"code truncated to fit {avail_h}px")
            origin = (0, 0)

        else:  # KIND_FORMATTED_TEXT
            layout = self._markup_layout(spec, theme, avail_w, text_families, mono_families)
            natural = (layout.width, layout.height)
            if layout.height > avail_h:
                warnings.append(f"formatted text taller than panel ({layout.height}px > {avail_h}px)")
            content = markup_kind.paint_markup(layout, (avail_w, avail_h))
            origin = (0, 0)

        board = create_board(width, height, theme)
        interior = Image.new("RGBA", (avail_w, avail_h), (0, 0, 0, 0))
        interior.alpha_composite(content.crop((0, 0, avail_w - origin[0], avail_h - origin[1])), origin)
        board.alpha_composite(interior, (inset, inset))

        for message in warnings:
            logger.info(message)
        return RenderResult(
            success=True,
            image=board,
            warnings=warnings,
            scale=scale,
            natural_size=NaturalSize(natural[0] + 2 * inset, natural[1] + 2 * inset),
        )

    def _measure(self, spec: DiagramSpec, theme: Theme, max_width: int) -> NaturalSize:
        _check_request(spec, theme)
        inset = content_inset(theme)
        avail_w = max_width - 2 * inset
        if avail_w <= 0:
            raise RenderError(f"max width {max_width} leaves no drawable area")

        font_size = theme.effective_font_size
        text_families, mono_families = self._families(theme)

        if spec.kind == KIND_DIAGRAM:
            layout = self._flow_layout(spec, font_size, text_families)
            width, height = layout.width, layout.height
            if width > avail_w:
                # Height follows the implied scale
                height = int(math.ceil(height * avail_w / width))
                width = avail_w
        elif spec.kind == KIND_EQUATION:
            blocks = equation_kind.build_blocks(
                spec.content, font_size, theme.foreground_color, avail_w, self.fonts, text_families,
            )
            if not blocks:
                raise RenderError("empty content")
            width, height = equation_kind.stack_size(blocks, EQUATION_BLOCK_SPACING)
            if width > avail_w:
                height = int(math.ceil(height * avail_w / width))
                width = avail_w
        elif spec.kind == KIND_CODE:
            font = self.fonts.pil_font(mono_families, font_size)
            width, height = code_kind.natural_size(spec.content, font, font_size)
            width = min(width, avail_w)
        else:
            layout = self._markup_layout(spec, theme, avail_w, text_families, mono_families)
            width, height = layout.width, layout.height

        return NaturalSize(max(1, width) + 2 * inset, max(1, height) + 2 * inset)

    def _flow_layout(self, spec, font_size, families):
        try:
            chart = flowchart_kind.parse_flowchart(spec.content)
        except flowchart_kind.FlowchartParseError as e:
            raise RenderError(f"diagram parse failure: {e}") from e
        font = self.fonts.pil_font(families, font_size)
        return flowchart_kind.layout_flowchart(chart, font, font_size)

    def _markup_layout(self, spec, theme, avail_w, text_families, mono_families):
        blocks = markup_kind.parse_markup(spec.content)
        if not blocks:
            raise RenderError("empty content")
        engine = markup_kind.MarkupLayoutEngine(
            self.fonts, text_families, mono_families,
            theme.effective_font_size, theme.foreground_color,
        )
        return engine.layout(blocks, avail_w)
