"""
Font discovery and loading for panel rendering.

Scans system and configured font directories, groups files by family and
style, and hands out sized PIL fonts with a built-in fallback.
"""

import logging
import platform
import threading
from pathlib import Path
from typing import Dict, List, Optional, Iterable

from PIL import ImageFont

logger = logging.getLogger(__name__)

FontType = ImageFont.FreeTypeFont

STYLE_REGULAR = "regular"
STYLE_BOLD = "bold"
STYLE_ITALIC = "italic"
STYLE_BOLD_ITALIC = "bolditalic"

_shared_manager: Optional["FontManager"] = None
_shared_lock = threading.Lock()


def style_key(bold: bool = False, italic: bool = False) -> str:
    if bold and italic:
        return STYLE_BOLD_ITALIC
    if bold:
        return STYLE_BOLD
    if italic:
        return STYLE_ITALIC
    return STYLE_REGULAR


def _style_from_stem(stem: str) -> str:
    """Guess the style of a font file from its name (e.g. DejaVuSans-BoldOblique)."""
    lowered = stem.lower()
    bold = "bold" in lowered or "heavy" in lowered or "black" in lowered
    italic = "italic" in lowered or "oblique" in lowered
    return style_key(bold, italic)


def _family_from_stem(stem: str) -> str:
    # Format is typically FamilyName-Weight.ttf
    return stem.split("-")[0] if "-" in stem else stem


class FontManager:
    """
    Manages font discovery and loading.

    Discovers fonts from:
    - System font directories (platform-specific)
    - Custom font directories from config
    """

    def __init__(self, custom_dirs: Optional[Iterable[Path]] = None):
        """
        Initialize the font manager and scan for fonts.

        Args:
            custom_dirs: Additional directories to scan for fonts
        """
        self.custom_dirs = [Path(d) for d in (custom_dirs or [])]
        # family -> {style -> [file paths]}
        self._manifest: Dict[str, Dict[str, List[str]]] = {}
        self._font_cache: Dict[tuple, FontType] = {}

        self.discover_fonts()

    def discover_fonts(self) -> None:
        """Discover fonts from system directories and custom paths."""
        logger.debug("Starting font discovery...")

        font_dirs = self._get_system_font_dirs()
        font_dirs.extend(self.custom_dirs)

        discovered = 0
        for font_dir in font_dirs:
            if not font_dir.exists():
                continue

            logger.debug(f"Scanning font directory: {font_dir}")
            for ext in ["*.ttf", "*.otf", "*.TTF", "*.OTF"]:
                for font_file in font_dir.rglob(ext):
                    self._add_font_to_manifest(font_file)
                    discovered += 1

        logger.info(f"Font discovery complete. Found {discovered} fonts across {len(self._manifest)} families.")

    def _get_system_font_dirs(self) -> List[Path]:
        """Get platform-specific system font directories."""
        system = platform.system()

        if system == "Windows":
            return [
                Path("C:/Windows/Fonts"),
                Path.home() / "AppData/Local/Microsoft/Windows/Fonts"
            ]
        elif system == "Darwin":  # macOS
            return [
                Path("/System/Library/Fonts"),
                Path("/Library/Fonts"),
                Path.home() / "Library/Fonts"
            ]
        else:  # Linux and others
            return [
                Path("/usr/share/fonts"),
                Path("/usr/local/share/fonts"),
                Path.home() / ".fonts",
                Path.home() / ".local/share/fonts"
            ]

    def _add_font_to_manifest(self, font_path: Path) -> None:
        family = _family_from_stem(font_path.stem)
        style = _style_from_stem(font_path.stem)
        styles = self._manifest.setdefault(family, {})
        files = styles.setdefault(style, [])
        if str(font_path) not in files:
            files.append(str(font_path))

    def _match_family(self, family: str) -> Optional[str]:
        """Exact, then case/space-insensitive, then substring family match."""
        if family in self._manifest:
            return family

        wanted = family.lower().replace(" ", "")
        for name in self._manifest:
            if name.lower().replace(" ", "") == wanted:
                return name
        for name in sorted(self._manifest):
            squashed = name.lower().replace(" ", "")
            if wanted in squashed or squashed in wanted:
                return name
        return None

    def select_font_file(self, families: List[str], bold: bool = False, italic: bool = False) -> Optional[Path]:
        """
        Select a font file based on family priority and style.

        Returns:
            Path to the font file, or None if no match found
        """
        wanted = style_key(bold, italic)
        for family in families:
            name = self._match_family(family.strip().strip("'\""))
            if name is None:
                continue
            styles = self._manifest[name]
            for style in (wanted, STYLE_REGULAR):
                files = styles.get(style)
                if files:
                    return Path(sorted(files)[0])
            for files in styles.values():
                if files:
                    return Path(sorted(files)[0])
        return None

    def pil_font(self, families: List[str], size_px: int, bold: bool = False, italic: bool = False) -> FontType:
        """
        Load a PIL font based on family, size and style.

        Falls back to Pillow's built-in scalable font when nothing matches.
        """
        size_px = max(1, int(round(size_px)))
        cache_key = (tuple(families), size_px, bold, italic)
        cached = self._font_cache.get(cache_key)
        if cached is not None:
            return cached

        font = None
        font_path = self.select_font_file(families, bold, italic)
        if font_path and font_path.exists():
            try:
                font = ImageFont.truetype(str(font_path), size_px)
            except OSError as e:
                logger.warning(f"Failed to load font {font_path}: {e}")

        if font is None:
            logger.debug(f"Using default font for families {families}")
            font = ImageFont.load_default(size=size_px)

        self._font_cache[cache_key] = font
        return font


def split_families(font_family: Optional[str], fallback: List[str]) -> List[str]:
    """Turn a CSS-style family list ("Monaco, Consolas, monospace") into names."""
    if not font_family:
        return list(fallback)
    names = [f.strip().strip("'\"") for f in font_family.split(",")]
    return [n for n in names if n] + list(fallback)


def get_font_manager(custom_dirs: Optional[Iterable[Path]] = None) -> FontManager:
    """Process-wide font manager; discovery runs once."""
    global _shared_manager
    with _shared_lock:
        if _shared_manager is None:
            _shared_manager = FontManager(custom_dirs=custom_dirs)
        return _shared_manager


def line_height(font: FontType) -> int:
    """Ascent plus descent of a font, in pixels."""
    ascent, descent = font.getmetrics()
    return ascent + descent
