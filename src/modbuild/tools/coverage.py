from __future__ import annotations

import shutil
import sys
from pathlib import Path
from typing import Final, Literal

from ..config import Settings
from ..errors import UsageError
from ..logging import get_logger
from .shell import CommandRunner, CommandSpec, run_checked, subprocess_runner
from .testing import grep_from_env, runner_args, runner_targets

ReportFormat = Literal["lcov", "lcovonly"]

_REPORT_FORMATS: Final[frozenset[str]] = frozenset({"lcov", "lcovonly"})
LCOV_FILE: Final[str] = "lcov.info"
HTML_DIR: Final[str] = "lcov-report"
_DATA_FILE: Final[str] = ".coverage"


def parse_report_format(value: str | None) -> ReportFormat:
    # Without an explicit format, lcov produces both lcov.info and the html report
    v = (value or "lcov").strip()
    if v not in _REPORT_FORMATS:
        raise UsageError(f"unknown coverage report format: {v}")
    return "lcovonly" if v == "lcovonly" else "lcov"


def lcov_path(settings: Settings) -> Path:
    return settings.paths.root / settings.paths.target_dir / LCOV_FILE


def html_index(settings: Settings) -> Path:
    """Html report entry point, relative to the project root."""
    return settings.paths.target_dir / HTML_DIR / "index.html"


def instrumented_commands(
    settings: Settings, report: ReportFormat = "lcov", grep: str | None = None
) -> list[CommandSpec]:
    """Build the coverage run + report commands, relative to the project root.

    Returns no commands when there are no test targets.
    """
    targets = runner_targets(settings)
    if not targets:
        return []
    target = settings.paths.target_dir
    data_file = f"--data-file={(target / _DATA_FILE).as_posix()}"
    omit = ",".join(settings.coverage.omit)
    run_argv: list[str] = [sys.executable, "-m", "coverage", "run", data_file, "--source=."]
    if omit:
        run_argv.append(f"--omit={omit}")
    # runner_args starts with "-m pytest"
    run_argv.extend(runner_args(settings, targets, grep))
    cmds = [
        CommandSpec(
            argv=tuple(run_argv),
            cwd=settings.paths.root,
            timeout_s=float(settings.tests.timeout_seconds),
            description="coverage run",
        ),
        CommandSpec(
            argv=(
                sys.executable,
                "-m",
                "coverage",
                "lcov",
                data_file,
                "-o",
                (target / LCOV_FILE).as_posix(),
            ),
            cwd=settings.paths.root,
            description="coverage lcov",
        ),
    ]
    if report == "lcov":
        cmds.append(
            CommandSpec(
                argv=(
                    sys.executable,
                    "-m",
                    "coverage",
                    "html",
                    data_file,
                    "-d",
                    (target / HTML_DIR).as_posix(),
                ),
                cwd=settings.paths.root,
                description="coverage html",
            )
        )
    return cmds


def run_instrumented(
    settings: Settings,
    report: ReportFormat = "lcov",
    *,
    runner: CommandRunner = subprocess_runner,
    grep: str | None = None,
) -> None:
    (settings.paths.root / settings.paths.target_dir).mkdir(parents=True, exist_ok=True)
    filt = grep if grep is not None else grep_from_env()
    cmds = instrumented_commands(settings, report, filt)
    if not cmds:
        get_logger().warning(
            "tests_no_targets modules_root=%s", settings.paths.modules_root.as_posix()
        )
        return
    for spec in cmds:
        run_checked(spec, runner)


def clean(settings: Settings) -> bool:
    target = settings.paths.root / settings.paths.target_dir
    if not target.exists():
        return False
    shutil.rmtree(target)
    get_logger().info("clean_removed path=%s", target.as_posix())
    return True
