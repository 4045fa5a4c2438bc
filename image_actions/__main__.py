"""Command line front end: ``python -m image_actions``."""

from __future__ import annotations

import argparse
import os
import sys

from image_actions.actions import ActionRunner
from image_actions.document import DocumentState, load_document
from image_actions.errors import ActionError
from image_actions.logger import get_logger, setup_logger
from image_actions.notify import LogNotifier
from image_actions.presets import FACTION_ROWS_TOTAL, FileActionPresets
from image_actions.settings_manager import SettingsManager, default_settings_path
from image_actions.tempfiles import TempFileManager

_logger = get_logger("main")


def _apply_cli_logging_options(args: argparse.Namespace) -> None:
    # Reflected in the environment so setup_logger() picks them up on every call
    if args.log_level:
        os.environ["IMAGE_ACTIONS_LOG_LEVEL"] = args.log_level
    if args.log_cats:
        os.environ["IMAGE_ACTIONS_LOG_CATS"] = args.log_cats
    setup_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="image_actions", description="Run image action templates")
    parser.add_argument("--log-level", help="Set log level")
    parser.add_argument("--log-cats", help="Set log categories")
    parser.add_argument("--settings", help="Settings file (default: $IMAGE_ACTIONS_SETTINGS or the user config dir)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("expand", help="Print the expansion of a template")
    p.add_argument("template")
    p.add_argument("--image", help="Image file to act on")
    p.add_argument("--info", action="store_true", help="Info mode: all placeholders, no temp files")

    p = sub.add_parser("run", help="Expand a template and start it")
    p.add_argument("template")
    p.add_argument("--image", help="Image file to act on")
    p.add_argument("--dir", default="", help="Working directory")

    sub.add_parser("presets", help="List the file action menu")

    p = sub.add_parser("preset", help="Run a stored file action")
    p.add_argument("item", type=int, help=f"Row number, 1..{FACTION_ROWS_TOTAL}")
    p.add_argument("--image", help="Image file to act on")
    return parser


def _document_provider(image: str | None):
    document: DocumentState | None = load_document(image) if image else None
    return lambda: document


def run(argv: list[str] | None = None) -> int:
    """Entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)
    _apply_cli_logging_options(args)

    settings = SettingsManager(args.settings or default_settings_path())
    presets = FileActionPresets(settings)
    presets.init_defaults()

    if args.command == "presets":
        for item, action in presets.menu_entries():
            print(f"{item}\t{action.name}\t{action.command}")
        return 0

    with TempFileManager() as temp_files:
        try:
            provider = _document_provider(getattr(args, "image", None))
        except Exception as e:
            _logger.error("cannot load image %s: %s", args.image, e)
            return 1
        runner = ActionRunner(temp_files, provider, notifier=LogNotifier(), settings=settings)

        if args.command == "expand":
            try:
                print(runner.expand(args.template, command=not args.info))
            except ActionError as e:
                runner.report(e)
                return 1
            return 0
        if args.command == "run":
            return 1 if runner.spawn_expansion(args.template, args.dir) else 0
        if args.command == "preset":
            try:
                return 1 if presets.run(args.item, runner) else 0
            except IndexError as e:
                _logger.error("%s", e)
                return 2
    return 2


if __name__ == "__main__":
    sys.exit(run())
