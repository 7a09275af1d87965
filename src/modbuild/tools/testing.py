from __future__ import annotations

import os
import re
import sys
from collections.abc import Mapping
from typing import Final

from ..config import Settings
from ..errors import UsageError
from ..logging import get_logger
from .shell import CommandRunner, CommandSpec, join_args, run_checked, subprocess_runner

_GREP_ENV: Final[str] = "MODBUILD_TEST_GREP"
_MODULE_NAME: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_.-]+$")


def grep_from_env(env: Mapping[str, str] | None = None) -> str | None:
    src = os.environ if env is None else env
    v = src.get(_GREP_ENV)
    return v if v is not None and v.strip() != "" else None


def module_test_dirs(settings: Settings) -> list[str]:
    """Return ``<modules_root>/<module>/tests`` for every module that has tests."""
    root = settings.paths.root
    modules_root = root / settings.paths.modules_root
    if not modules_root.is_dir():
        return []
    out: list[str] = []
    for mod in sorted(modules_root.glob(settings.tests.module_glob)):
        tests_dir = mod / "tests"
        if mod.is_dir() and tests_dir.is_dir():
            out.append(tests_dir.relative_to(root).as_posix())
    return out


def runner_targets(settings: Settings, module: str | None = None) -> tuple[str, ...]:
    setup = tuple(settings.tests.setup_files)
    if module is None:
        return setup + tuple(module_test_dirs(settings))
    if not _MODULE_NAME.match(module) or module in {".", ".."}:
        raise UsageError(f"invalid module name: {module!r}")
    tests_dir = settings.paths.modules_root / module / "tests"
    if not (settings.paths.root / tests_dir).is_dir():
        raise UsageError(f"module has no tests directory: {tests_dir.as_posix()}")
    return setup + (tests_dir.as_posix(),)


def runner_args(settings: Settings, targets: tuple[str, ...], grep: str | None) -> tuple[str, ...]:
    filt: tuple[str, ...] = ("-k", grep) if grep else ()
    return join_args(("-m", "pytest"), settings.tests.extra_args, filt, targets)


def runner_command(
    settings: Settings, module: str | None = None, grep: str | None = None
) -> CommandSpec | None:
    targets = runner_targets(settings, module)
    if not targets:
        return None
    return CommandSpec(
        argv=(sys.executable, *runner_args(settings, targets, grep)),
        cwd=settings.paths.root,
        timeout_s=float(settings.tests.timeout_seconds),
        description=f"tests {module}" if module else "tests",
    )


def run_tests(
    settings: Settings,
    module: str | None = None,
    *,
    runner: CommandRunner = subprocess_runner,
    grep: str | None = None,
) -> None:
    spec = runner_command(settings, module, grep if grep is not None else grep_from_env())
    if spec is None:
        get_logger().warning(
            "tests_no_targets modules_root=%s", settings.paths.modules_root.as_posix()
        )
        return
    run_checked(spec, runner)
