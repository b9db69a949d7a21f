"""Scene layout model, presets, validation and resolution."""

from .models import (
    Canvas, Region, LayoutModel, layout_from_dict,
    ENCODING_NORMALIZED, ENCODING_ABSOLUTE,
)
from .presets import (
    PRESET_LAYOUTS, parse_aspect_ratio, canvas_for_aspect_ratio,
    create_default, apply_preset, rescale_layout, preset_names,
)
from .validation import (
    Violation, LayoutValidationError, validate, validate_layout_data,
    load_layout, check_layout_data, ValidationReport,
)
from .resolver import LayoutResolver

__all__ = [
    'Canvas', 'Region', 'LayoutModel', 'layout_from_dict',
    'ENCODING_NORMALIZED', 'ENCODING_ABSOLUTE',
    'PRESET_LAYOUTS', 'parse_aspect_ratio', 'canvas_for_aspect_ratio',
    'create_default', 'apply_preset', 'rescale_layout', 'preset_names',
    'Violation', 'LayoutValidationError', 'validate', 'validate_layout_data',
    'load_layout', 'check_layout_data', 'ValidationReport',
    'LayoutResolver',
]
