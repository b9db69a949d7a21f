"""Constants and default values for StoryComposer."""

# Application metadata
APP_NAME = "StoryComposer"
VERSION = "0.4.0"
__version__ = VERSION
__author__ = "StoryComposer Contributors"
__license__ = "MIT"

# Persisted slot names (camelCase to match the story store)
SLOT_IMAGE = "image"
SLOT_TEXT_PANEL = "textPanel"
SLOT_DIAGRAM_PANEL = "diagramPanel"
SLOTS = (SLOT_IMAGE, SLOT_TEXT_PANEL, SLOT_DIAGRAM_PANEL)
OPTIONAL_SLOTS = (SLOT_TEXT_PANEL, SLOT_DIAGRAM_PANEL)

LAYOUT_TYPES = ("overlay", "comic-sidebyside", "comic-vertical", "custom")

# Aspect ratios offered to books (value, label, category)
ASPECT_RATIOS = [
    # Square
    ("1:1", "1:1 (Square)", "Square"),
    # Portrait (taller than wide)
    ("2:3", "2:3 (Portrait)", "Portrait"),
    ("3:4", "3:4 (Portrait)", "Portrait"),
    ("9:16", "9:16 (Portrait)", "Portrait"),
    # Landscape (wider than tall)
    ("3:2", "3:2 (Landscape)", "Landscape"),
    ("4:3", "4:3 (Landscape)", "Landscape"),
    ("16:9", "16:9 (Wide Landscape)", "Landscape"),
]
DEFAULT_ASPECT_RATIO = "3:4"

# Canvas sizing: portrait books use a 1080px short side, the rest a 1920px long side
PORTRAIT_BASE_WIDTH = 1080
LANDSCAPE_BASE_WIDTH = 1920

# Percent space upper bound
NORMALIZED_MAX = 100.0

# Editor defaults
PREVIEW_WIDTH = 800
MIN_REGION_PX = 50
DEFAULT_TOGGLE_BOX_PX = 100
HANDLE_SIZE_PX = 10

# Compositor
COMPOSITE_BACKGROUND = (255, 255, 255, 255)

# Diagram rendering
CODE_LINE_HEIGHT = 1.4
TEXT_LINE_HEIGHT = 1.6
HEADING_SCALES = {1: 1.8, 2: 1.4, 3: 1.2}
EQUATION_BLOCK_SPACING = 20
SHADOW_INSET = 10
FALLBACK_MEASURE_HEIGHT = 600
ELLIPSIS_MARKER = "..."

DEFAULT_TEXT_FAMILIES = ["Arial", "Helvetica", "DejaVu Sans", "Liberation Sans"]
DEFAULT_MONO_FAMILIES = ["Monaco", "Consolas", "DejaVu Sans Mono", "Liberation Mono", "Courier New"]
