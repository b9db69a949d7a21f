"""Argument parser for StoryComposer CLI."""

import argparse

from composer.constants import VERSION, ASPECT_RATIOS, DEFAULT_ASPECT_RATIO
from composer.diagram.theme import KINDS, BOARD_KINDS, BOARD_ALIASES
from composer.layout.presets import preset_names


def _add_aspect(parser: argparse.ArgumentParser, default=DEFAULT_ASPECT_RATIO) -> None:
    parser.add_argument(
        "-a", "--aspect",
        default=default,
        metavar="W:H",
        help=f"Canvas aspect ratio, e.g. {', '.join(r[0] for r in ASPECT_RATIOS[:4])} "
             f"(default: {default})"
    )


def _add_out(parser: argparse.ArgumentParser, help_text: str) -> None:
    parser.add_argument("-o", "--out", help=help_text)


def _add_panel_source(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--kind",
        choices=KINDS,
        required=True,
        help="Panel content kind"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("-c", "--content", help="Panel content as a string")
    source.add_argument("-f", "--file", help="Read panel content from this file")
    parser.add_argument(
        "--language",
        help="Source language for code panels (e.g. python)"
    )
    parser.add_argument(
        "--board",
        choices=list(BOARD_KINDS) + list(BOARD_ALIASES),
        help="Board style (default: from config, else dark)"
    )
    parser.add_argument("--font-size", type=int, help="Base font size in pixels")
    parser.add_argument("--padding", type=int, help="Board padding in pixels")
    parser.add_argument(
        "--border",
        choices=["frame", "shadow", "none"],
        help="Board border style"
    )


def build_arg_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="storycomposer",
        description="Lay out and composite illustrated story scenes"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {VERSION}"
    )

    # Ambient options
    general = parser.add_argument_group("general")
    general.add_argument(
        "--config-dir",
        help="Configuration directory (default: platform location)"
    )
    general.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: from config, else INFO)"
    )
    general.add_argument(
        "--no-log-file",
        action="store_true",
        help="Do not write a log file"
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = commands.add_parser("default-layout", help="Print the default overlay layout")
    _add_aspect(p)
    _add_out(p, "Write the layout JSON here instead of stdout")

    p = commands.add_parser("preset", help="Print a preset layout scaled to a canvas")
    p.add_argument("name", choices=preset_names(), help="Preset name")
    _add_aspect(p)
    _add_out(p, "Write the layout JSON here instead of stdout")

    p = commands.add_parser("validate", help="Validate a persisted layout JSON file")
    p.add_argument("layout", help="Layout JSON file")
    p.add_argument(
        "--normalize",
        action="store_true",
        help="Also print the layout converted to the canvas for --aspect"
    )
    _add_aspect(p)

    p = commands.add_parser("render", help="Render a diagram, equation, code or text panel")
    _add_panel_source(p)
    p.add_argument("-W", "--width", type=int, required=True, help="Panel width in pixels")
    p.add_argument("-H", "--height", type=int, required=True, help="Panel height in pixels")
    _add_out(p, "Output PNG path (required)")

    p = commands.add_parser("measure", help="Measure the natural size of a panel")
    _add_panel_source(p)
    p.add_argument("--max-width", type=int, default=800, help="Maximum panel width (default: 800)")

    p = commands.add_parser("compose", help="Composite a scene from its layers")
    p.add_argument("--layout", help="Layout JSON file (default: the default overlay layout)")
    p.add_argument("--image", required=True, help="Base scene image")
    p.add_argument("--text-panel", help="Pre-rendered text panel image")
    p.add_argument("--diagram-panel", help="Pre-rendered diagram panel image")
    p.add_argument(
        "--caption",
        help="Caption text to render into the text panel region (ignored with --text-panel)"
    )
    _add_aspect(p)
    _add_out(p, "Output image path (required)")

    return parser
