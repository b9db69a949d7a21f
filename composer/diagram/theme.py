"""
Data models for auxiliary content panels.

Diagram specs, board themes and render results shared by the per-kind
renderers and the compositor.
"""

from dataclasses import dataclass, field, replace
from typing import List, Literal, NamedTuple, Optional

from PIL import Image

KIND_DIAGRAM = "diagram"
KIND_EQUATION = "equation"
KIND_CODE = "code"
KIND_FORMATTED_TEXT = "formattedText"
KINDS = (KIND_DIAGRAM, KIND_EQUATION, KIND_CODE, KIND_FORMATTED_TEXT)

DiagramKind = Literal["diagram", "equation", "code", "formattedText"]
BoardKind = Literal["dark", "light", "transparent"]
BorderKind = Literal["none", "frame", "shadow"]

BOARD_KINDS = ("dark", "light", "transparent")
BORDER_KINDS = ("none", "frame", "shadow")

# Names the story store used for the same boards
BOARD_ALIASES = {"blackboard": "dark", "whiteboard": "light"}


@dataclass
class DiagramSpec:
    """Content of one auxiliary panel."""
    kind: str
    content: str
    language: Optional[str] = None


@dataclass(frozen=True)
class Theme:
    """Board styling for a rendered panel."""
    background_color: str
    foreground_color: str
    board_kind: str = "dark"
    border_kind: str = "frame"
    padding: int = 40
    border_width: Optional[int] = 8
    border_color: Optional[str] = None
    font_size: Optional[int] = 16
    font_family: Optional[str] = None
    texture: bool = False

    def with_changes(self, **changes) -> "Theme":
        return replace(self, **changes)

    @property
    def effective_font_size(self) -> int:
        return int(self.font_size or 16)

    @property
    def effective_border_width(self) -> int:
        return int(self.border_width or 8)


def normalize_board_kind(board_kind: str) -> str:
    """Map store aliases (blackboard/whiteboard) to board kinds."""
    kind = BOARD_ALIASES.get(board_kind, board_kind)
    if kind not in BOARD_KINDS:
        raise ValueError(f"Unknown board kind '{board_kind}', expected one of {BOARD_KINDS}")
    return kind


def default_theme(board_kind: str = "dark") -> Theme:
    """
    Default theme for a board kind.

    Raises:
        ValueError: If the board kind is unknown
    """
    kind = normalize_board_kind(board_kind)
    if kind == "dark":
        return Theme(
            background_color="#2d3748",  # blackboard
            foreground_color="#ffffff",  # chalk
            board_kind=kind,
            border_kind="frame",
            border_color="#8b7355",      # wood
        )
    if kind == "light":
        return Theme(
            background_color="#ffffff",
            foreground_color="#000000",
            board_kind=kind,
            border_kind="frame",
            border_color="#c0c0c0",
        )
    return Theme(
        background_color="transparent",
        foreground_color="#000000",
        board_kind=kind,
        border_kind="none",
    )


class NaturalSize(NamedTuple):
    width: int
    height: int


@dataclass
class RenderResult:
    """Outcome of a panel render; check ``success`` before using ``image``."""
    success: bool
    image: Optional[Image.Image] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    scale: float = 1.0
    natural_size: Optional[NaturalSize] = None

    @classmethod
    def failure(cls, error: str) -> "RenderResult":
        return cls(success=False, error=error)
