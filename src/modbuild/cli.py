from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Iterable

from .config import Settings
from .errors import BuildError, exit_code_for
from .logging import get_logger, init_logging
from .tasks import COMPOSITE_HELP, TASKS, BuildContext, parse_task_call, run_tasks
from .version import get_version


def _parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="modbuild",
        description="Lint, style-check, test and measure coverage of a modular codebase",
    )
    ap.add_argument(
        "tasks",
        nargs="*",
        metavar="TASK[:ARG]",
        help="Tasks to run in order (default: check-style, then test)",
    )
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    ap.add_argument("--list", action="store_true", help="List available tasks and exit")
    ap.add_argument("--version", action="store_true", help="Show version and exit")
    return ap


def _write_task_list() -> None:
    out = sys.stdout
    for name, task in TASKS.items():
        out.write(f"{name:<26}{task.help}\n")
    for name, desc in COMPOSITE_HELP.items():
        out.write(f"{name:<26}{desc}\n")


def main(argv: Iterable[str] | None = None) -> int:
    args = _parser().parse_args(list(argv) if argv is not None else None)
    init_logging(level=logging.DEBUG if args.verbose else None)
    log = get_logger()

    if args.list:
        _write_task_list()
        return 0
    if args.version:
        try:
            info = get_version()
        except RuntimeError:
            log.error("version_unavailable")
            return 1
        sys.stdout.write(f"{info.name} {info.version}\n")
        return 0

    tokens: list[str] = list(args.tasks) or ["default"]
    try:
        settings = Settings.load()
        run_tasks(BuildContext(settings=settings), [parse_task_call(t) for t in tokens])
    except BuildError as exc:
        code = exit_code_for(exc)
        log.error("build_failed code=%s exit_code=%d", exc.code.value, code)
        log.error(exc.message)
        return code
    log.info("build_succeeded tasks=%d", len(tokens))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
