"""
Hierarchical layout resolution.

A scene's effective layout comes from the first level that defines one:
scene, then story, then the book default, then the system default.
Scenes, stories and books are plain mappings as read from the story store.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from ..constants import DEFAULT_ASPECT_RATIO
from .models import LayoutModel
from .validation import load_layout

logger = logging.getLogger(__name__)

SOURCE_SCENE = "scene"
SOURCE_STORY = "story"
SOURCE_BOOK = "book"
SOURCE_DEFAULT = "default"


def _title(record: Optional[Mapping[str, Any]]) -> str:
    if not record:
        return "Unknown"
    return str(record.get("title") or "Unknown")


class LayoutResolver:
    """Resolve the layout a scene should use."""

    @staticmethod
    def resolve(scene: Mapping[str, Any],
                story: Optional[Mapping[str, Any]] = None,
                book: Optional[Mapping[str, Any]] = None) -> Tuple[Optional[Dict[str, Any]], str]:
        """
        Find the persisted layout data for a scene.

        Returns:
            (layout data or None, source) where source is one of
            ``scene``, ``story``, ``book`` or ``default``
        """
        if scene.get("layout"):
            logger.debug(f"Using scene-specific layout for '{_title(scene)}'")
            return scene["layout"], SOURCE_SCENE

        if story and story.get("layout"):
            logger.debug(f"Using story layout for scene '{_title(scene)}' (story '{_title(story)}')")
            return story["layout"], SOURCE_STORY

        if book and book.get("defaultLayout"):
            logger.debug(f"Using book default layout for scene '{_title(scene)}' (book '{_title(book)}')")
            return book["defaultLayout"], SOURCE_BOOK

        logger.debug(f"No layout defined for scene '{_title(scene)}', using system default")
        return None, SOURCE_DEFAULT

    @classmethod
    def source(cls, scene, story=None, book=None) -> str:
        return cls.resolve(scene, story, book)[1]

    @classmethod
    def describe_source(cls, scene, story=None, book=None) -> str:
        """Human-readable description of where the layout comes from."""
        source = cls.source(scene, story, book)
        if source == SOURCE_SCENE:
            return "Scene-specific layout"
        if source == SOURCE_STORY:
            return f"Story layout ({_title(story)})"
        if source == SOURCE_BOOK:
            return f"Book default layout ({_title(book)})"
        return "System default (overlay)"

    @classmethod
    def resolve_model(cls, scene, story=None, book=None,
                      aspect_ratio: Optional[str] = None) -> LayoutModel:
        """
        Resolve and load the effective layout as a normalized model.

        The canvas follows ``aspect_ratio``, else the book's ``aspectRatio``,
        else the application default.

        Raises:
            LayoutValidationError: If the resolved data is invalid
        """
        data, _ = cls.resolve(scene, story, book)
        label = aspect_ratio or (book or {}).get("aspectRatio") or DEFAULT_ASPECT_RATIO
        return load_layout(data, label)
