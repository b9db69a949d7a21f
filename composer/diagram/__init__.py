"""Auxiliary panel rendering: diagrams, equations, code, formatted text and captions."""

from .theme import (
    DiagramSpec, Theme, RenderResult, NaturalSize, default_theme,
    KINDS, KIND_DIAGRAM, KIND_EQUATION, KIND_CODE, KIND_FORMATTED_TEXT,
)
from .renderer import DiagramRenderer, initialize_backends
from .text_panel import TextPanelRenderer, PanelStyle, TextFitResult, measure_text_fit

__all__ = [
    'DiagramSpec', 'Theme', 'RenderResult', 'NaturalSize', 'default_theme',
    'KINDS', 'KIND_DIAGRAM', 'KIND_EQUATION', 'KIND_CODE', 'KIND_FORMATTED_TEXT',
    'DiagramRenderer', 'initialize_backends',
    'TextPanelRenderer', 'PanelStyle', 'TextFitResult', 'measure_text_fit',
]
