"""Layout validation: structural schema checks and geometric invariants."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema

from ..constants import SLOTS, SLOT_IMAGE, NORMALIZED_MAX
from .models import LayoutModel, Canvas, layout_from_dict
from .presets import create_default, canvas_for_aspect_ratio, rescale_layout

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "layout_schema.json"

# Float slack for percentages produced by pixel conversions
_EPSILON = 1e-6

_schema_cache: Optional[Dict[str, Any]] = None


@dataclass
class Violation:
    """One broken layout invariant."""
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


class LayoutValidationError(ValueError):
    """Raised when persisted layout data cannot be used."""

    def __init__(self, violations: List[Violation]):
        self.violations = list(violations)
        summary = "; ".join(str(v) for v in self.violations) or "invalid layout"
        super().__init__(summary)


def load_schema() -> Dict[str, Any]:
    global _schema_cache
    if _schema_cache is None:
        with open(SCHEMA_PATH, 'r', encoding='utf-8') as f:
            _schema_cache = json.load(f)
        logger.debug(f"Loaded layout schema from {SCHEMA_PATH}")
    return _schema_cache


def validate(model: LayoutModel) -> List[Violation]:
    """
    Check a normalized layout against its invariants.

    Reports every violation found; never modifies the model.

    Returns:
        List of violations (empty if valid)
    """
    violations: List[Violation] = []

    if SLOT_IMAGE not in model.elements:
        violations.append(Violation("elements.image", "image region is required"))

    for slot in SLOTS:
        region = model.elements.get(slot)
        if region is None:
            continue
        path = f"elements.{slot}"

        if region.width <= 0 or region.height <= 0:
            violations.append(Violation(
                path, f"size must be positive, got {region.width}x{region.height}"
            ))

        if region.x < -_EPSILON or region.y < -_EPSILON:
            violations.append(Violation(
                path, f"position must be non-negative, got ({region.x}, {region.y})"
            ))

        if region.right > NORMALIZED_MAX + _EPSILON:
            violations.append(Violation(
                path, f"x + width exceeds canvas ({region.right:.3f} > {NORMALIZED_MAX:g})"
            ))
        if region.bottom > NORMALIZED_MAX + _EPSILON:
            violations.append(Violation(
                path, f"y + height exceeds canvas ({region.bottom:.3f} > {NORMALIZED_MAX:g})"
            ))

        if not isinstance(region.z_index, int) or isinstance(region.z_index, bool):
            violations.append(Violation(path, f"zIndex must be an integer, got {region.z_index!r}"))

    for slot in model.elements:
        if slot not in SLOTS:
            violations.append(Violation(f"elements.{slot}", "unknown slot"))

    return violations


def validate_layout_data(data: Any) -> List[Violation]:
    """
    Validate a persisted layout dictionary against the layout schema.

    Returns:
        List of violations (empty if valid)
    """
    validator = jsonschema.Draft7Validator(load_schema())
    violations = []
    for error in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path)):
        path = ".".join(str(p) for p in error.absolute_path) or "$"
        violations.append(Violation(path, error.message))
    return violations


def load_layout(data: Optional[Dict[str, Any]], aspect_ratio: str) -> LayoutModel:
    """
    Produce the working layout for a scene from persisted data.

    Missing data yields the default layout for the book's aspect ratio.
    Legacy absolute-pixel layouts are converted to normalized units once,
    then re-targeted to the book canvas.

    Raises:
        LayoutValidationError: If the data is malformed or breaks invariants
        ValueError: If the aspect ratio label is malformed
    """
    if data is None:
        logger.debug(f"No saved layout, using default for {aspect_ratio}")
        return create_default(aspect_ratio)

    violations = validate_layout_data(data)
    if violations:
        raise LayoutValidationError(violations)

    model = layout_from_dict(data)
    violations = validate(model)
    if violations:
        raise LayoutValidationError(violations)

    target: Canvas = canvas_for_aspect_ratio(aspect_ratio)
    if model.canvas.size != target.size or model.canvas.aspect_ratio != target.aspect_ratio:
        model = rescale_layout(model, target)
    return model


@dataclass
class ValidationReport:
    """Schema and invariant results for one persisted layout."""
    schema: List[Violation] = field(default_factory=list)
    geometry: List[Violation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.schema and not self.geometry

    def all(self) -> List[Violation]:
        return self.schema + self.geometry


def check_layout_data(data: Any) -> ValidationReport:
    """Run both validation stages without raising; geometry runs only if the schema passes."""
    report = ValidationReport(schema=validate_layout_data(data))
    if report.schema:
        return report
    try:
        report.geometry = validate(layout_from_dict(data))
    except ValueError as e:
        report.geometry = [Violation("$", str(e))]
    return report
