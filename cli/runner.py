"""CLI runner for StoryComposer."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from composer.config import ConfigManager
from composer.compositor import compose_detailed, region_to_pixels
from composer.constants import SLOT_IMAGE, SLOT_TEXT_PANEL, SLOT_DIAGRAM_PANEL
from composer.diagram import DiagramRenderer, DiagramSpec, TextPanelRenderer, default_theme
from composer.diagram.theme import Theme
from composer.layout import (
    LayoutModel, LayoutValidationError, apply_preset, canvas_for_aspect_ratio,
    check_layout_data, create_default, load_layout,
)
from composer.logging_config import ErrorLogger, setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


class UsageError(Exception):
    """Bad command line input; reported with exit code 2."""


def _read_text(path: str) -> str:
    fp = Path(path).expanduser()
    if not fp.exists():
        raise UsageError(f"File not found: {fp}")
    return fp.read_text(encoding="utf-8")


def _read_json(path: str) -> Any:
    try:
        return json.loads(_read_text(path))
    except json.JSONDecodeError as e:
        raise UsageError(f"{path} is not valid JSON: {e}") from e


def _read_bytes(path: Optional[str]) -> Optional[bytes]:
    if not path:
        return None
    fp = Path(path).expanduser()
    if not fp.exists():
        raise UsageError(f"File not found: {fp}")
    return fp.read_bytes()


def _emit_layout(model: LayoutModel, out: Optional[str]) -> None:
    text = json.dumps(model.to_dict(), indent=2)
    if out:
        Path(out).expanduser().write_text(text + "\n", encoding="utf-8")
        print(f"Saved layout to {out}")
    else:
        print(text)


def _require_out(args) -> Path:
    if not args.out:
        raise UsageError(f"--out is required for {args.command}")
    out = Path(args.out).expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    return out


def build_theme(args, config: ConfigManager) -> Theme:
    """Board theme from --board and the style overrides, falling back to config."""
    theme = default_theme(args.board or config.default_board)
    changes: Dict[str, Any] = {}
    if args.font_size:
        changes["font_size"] = args.font_size
    if args.padding is not None:
        changes["padding"] = args.padding
    if args.border:
        changes["border_kind"] = args.border
    return theme.with_changes(**changes) if changes else theme


def build_spec(args) -> DiagramSpec:
    content = args.content if args.content is not None else _read_text(args.file)
    return DiagramSpec(kind=args.kind, content=content, language=args.language)


# Commands -------------------------------------------------------------------

def handle_default_layout(args, config: ConfigManager) -> int:
    _emit_layout(create_default(args.aspect), args.out)
    return EXIT_OK


def handle_preset(args, config: ConfigManager) -> int:
    _emit_layout(apply_preset(args.name, canvas_for_aspect_ratio(args.aspect)), args.out)
    return EXIT_OK


def handle_validate(args, config: ConfigManager) -> int:
    data = _read_json(args.layout)
    report = check_layout_data(data)
    if not report.ok:
        print(f"{args.layout}: invalid layout")
        for violation in report.all():
            print(f"  {violation}")
        return EXIT_FAILED

    print(f"{args.layout}: OK")
    if args.normalize:
        _emit_layout(load_layout(data, args.aspect), None)
    return EXIT_OK


def handle_render(args, config: ConfigManager) -> int:
    out = _require_out(args)
    renderer = DiagramRenderer(font_dirs=config.font_dirs)
    result = asyncio.run(renderer.render(build_spec(args), build_theme(args, config), args.width, args.height))
    if not result.success:
        print(f"Render failed: {result.error}")
        return EXIT_FAILED

    for warning in result.warnings:
        print(f"Warning: {warning}")
    result.image.save(out)
    print(f"Saved {args.kind} panel ({args.width}x{args.height}, scale {result.scale:.2f}) to {out}")
    return EXIT_OK


def handle_measure(args, config: ConfigManager) -> int:
    renderer = DiagramRenderer(font_dirs=config.font_dirs)
    size = asyncio.run(renderer.measure_natural_size(build_spec(args), build_theme(args, config), args.max_width))
    print(json.dumps({"width": size.width, "height": size.height}))
    return EXIT_OK


def handle_compose(args, config: ConfigManager) -> int:
    out = _require_out(args)
    data = _read_json(args.layout) if args.layout else None
    model = load_layout(data, args.aspect)

    layers = {
        SLOT_IMAGE: _read_bytes(args.image),
        SLOT_TEXT_PANEL: _read_bytes(args.text_panel),
        SLOT_DIAGRAM_PANEL: _read_bytes(args.diagram_panel),
    }
    if layers[SLOT_TEXT_PANEL] is None and args.caption and model.has(SLOT_TEXT_PANEL):
        _, _, w, h = region_to_pixels(model.elements[SLOT_TEXT_PANEL], model.canvas)
        if w > 0 and h > 0:
            layers[SLOT_TEXT_PANEL] = TextPanelRenderer().render(args.caption, (w, h))

    result = compose_detailed(model.canvas, layers, model)
    for warning in result.warnings:
        print(f"Warning: {warning}")
    result.image.save(out)
    print(f"Saved {model.canvas.width}x{model.canvas.height} scene ({', '.join(result.painted) or 'empty'}) to {out}")
    return EXIT_OK


HANDLERS = {
    "default-layout": handle_default_layout,
    "preset": handle_preset,
    "validate": handle_validate,
    "render": handle_render,
    "measure": handle_measure,
    "compose": handle_compose,
}


def run_cli(args) -> int:
    """
    Run a parsed command.

    Returns:
        Exit code: 0 on success, 1 when the operation failed, 2 for bad input
    """
    config = ConfigManager(Path(args.config_dir) if args.config_dir else None)
    level = getattr(logging, args.log_level) if args.log_level else config.log_level
    setup_logging(level, log_to_file=not args.no_log_file)

    handler = HANDLERS.get(args.command)
    if handler is None:
        print("No command given. Use -h for help.")
        return EXIT_USAGE

    logger.info(f"Running {args.command}")
    try:
        with ErrorLogger(args.command, logger):
            return handler(args, config)
    except UsageError as e:
        print(f"Error: {e}")
        return EXIT_USAGE
    except LayoutValidationError as e:
        print(f"Error: {e}")
        return EXIT_FAILED
    except ValueError as e:
        print(f"Error: {e}")
        return EXIT_USAGE
    except OSError as e:
        print(f"Error: {e}")
        return EXIT_FAILED
