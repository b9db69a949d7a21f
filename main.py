#!/usr/bin/env python3
"""
StoryComposer - scene layout and compositing for illustrated stories.

Command line entry point: layout presets, validation, panel rendering and
scene compositing.
"""

import logging
import sys
import threading


def main(argv=None):
    """Main entry point for StoryComposer."""
    from cli import build_arg_parser, run_cli

    def _log_unhandled(exc_type, exc_value, exc_traceback):
        logger = logging.getLogger(__name__)
        logger.error("Unhandled exception", exc_info=(exc_type, exc_value, exc_traceback))
        print("\nAn unexpected error occurred. See the log file for details.")
    sys.excepthook = _log_unhandled

    def _thread_excepthook(args):
        logger = logging.getLogger(__name__)
        logger.error("Unhandled thread exception", exc_info=(args.exc_type, args.exc_value, args.exc_traceback))
    threading.excepthook = _thread_excepthook

    parser = build_arg_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 2
    return run_cli(args)


if __name__ == "__main__":
    sys.exit(main())
