import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from . import constants as const
from . import i18n
from .commands import register_all_commands
from .context import Session
from .device import DeviceController
from .downloader import LocalToolFetcher
from .errors import ToolError
from .i18n import get_string
from .logger import logging_context
from .registry import CommandRegistry, CommandSpec
from .ui import ui

EXIT_CANCELLED = 130


def build_parser(registry: CommandRegistry) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lrbox", description=get_string("cli_description"))
    parser.add_argument("--version", action="version", version=f"%(prog)s {const.APP_VERSION}")
    parser.add_argument("-s", "--serial", help=get_string("cli_help_serial"))
    parser.add_argument("--work-dir", type=Path, help=get_string("cli_help_work_dir"))
    parser.add_argument(
        "--lang",
        default="en",
        choices=[code for code, _ in i18n.get_available_languages()],
        help=get_string("cli_help_lang"),
    )
    parser.add_argument("--log", type=Path, help=get_string("cli_help_log"))
    parser.add_argument("-y", "--yes", action="store_true", help=get_string("cli_help_yes"))
    parser.add_argument("--extractor", type=Path, help=get_string("cli_help_extractor"))

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True
    for spec in registry:
        subparsers.add_parser(spec.name, help=spec.title)
    return parser


def _default_log_file() -> Path:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return const.LOG_DIR / f"lrbox_{timestamp}.txt"


def _build_kwargs(spec: CommandSpec, args: argparse.Namespace) -> dict:
    kwargs = dict(spec.default_kwargs)
    if not spec.require_dev:
        kwargs["work_dir"] = args.work_dir or const.WORK_DIR
        return kwargs

    session = Session.create(serial=args.serial, work_dir=args.work_dir, assume_yes=args.yes)
    kwargs["session"] = session
    kwargs["dev"] = DeviceController(session)
    if args.extractor:
        kwargs["tool_fetcher"] = LocalToolFetcher(args.extractor)
    return kwargs


def run_task(spec: CommandSpec, args: argparse.Namespace) -> int:
    log_file = args.log or (_default_log_file() if spec.keep_log else None)

    with logging_context(log_file):
        ui.echo("=" * 78)
        ui.echo(get_string("starting_task").format(title=spec.title))
        ui.echo("=" * 78)
        if log_file:
            ui.echo(get_string("logging_enabled").format(log_file=log_file))

        try:
            result = spec.func(**_build_kwargs(spec, args))
        except ToolError as e:
            step = getattr(e, "step", None) or e.stage
            ui.error(get_string("task_failed").format(step=step, e=e))
            return e.exit_code
        except KeyboardInterrupt:
            ui.error(get_string("process_cancelled"))
            return EXIT_CANCELLED

        if isinstance(result, str) and result:
            ui.echo(result)
        ui.echo(get_string("task_completed").format(title=spec.title))
        return 0


def entry_point(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--lang", default="en")
    known, _ = pre_parser.parse_known_args(argv)
    i18n.load_lang(known.lang)

    registry = register_all_commands()
    args = build_parser(registry).parse_args(argv)

    try:
        return run_task(registry.get(args.command), args)
    except RuntimeError as e:
        ui.error(get_string("err_fatal_details").format(e=e))
        return 1


def main() -> None:
    sys.exit(entry_point())


if __name__ == "__main__":
    main()
