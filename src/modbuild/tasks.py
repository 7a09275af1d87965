from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final, TextIO

from .config import Settings
from .errors import (
    BuildError,
    CheckStyleFailed,
    ExternalToolError,
    StyleCheckFailed,
    UsageError,
    exit_code_for,
)
from .logging import get_logger, log_event
from .style import ScanResult, expand_targets, run_style_check
from .tools import coverage as _coverage
from .tools import viewer as _viewer
from .tools.coveralls import upload_lcov
from .tools.lint import run_lint
from .tools.shell import CommandRunner, subprocess_runner
from .tools.testing import run_tests

Uploader = Callable[[Settings, Path], int]


@dataclass(frozen=True)
class BuildContext:
    settings: Settings
    runner: CommandRunner = subprocess_runner
    stream: TextIO | None = None
    env: Mapping[str, str] | None = None
    uploader: Uploader = upload_lcov


@dataclass(frozen=True)
class TaskCall:
    name: str
    arg: str | None = None

    def label(self) -> str:
        return self.name if self.arg is None else f"{self.name}:{self.arg}"


TaskFn = Callable[[BuildContext, str | None], None]


@dataclass(frozen=True)
class Task:
    fn: TaskFn
    help: str


def parse_task_call(token: str) -> TaskCall:
    name, sep, arg = token.partition(":")
    return TaskCall(name=name.strip(), arg=arg if sep and arg != "" else None)


def run_style_scan(ctx: BuildContext) -> ScanResult:
    s = ctx.settings
    targets = expand_targets(s.paths.root, s.style.include, s.style.exclude)
    return run_style_check(targets, stream=ctx.stream, show_paths=s.style.show_paths)


def _check_style(ctx: BuildContext, _: str | None) -> None:
    log = get_logger()
    failed: list[str] = []
    # Both steps always run so one invocation surfaces every defect
    scan_error: StyleCheckFailed | None = None
    try:
        run_style_scan(ctx)
    except StyleCheckFailed as exc:
        scan_error = exc
    try:
        run_lint(ctx.settings, ctx.runner)
    except ExternalToolError as exc:
        log.error(
            "check_style_lint_failed code=%s exit_code=%d", exc.code.value, exit_code_for(exc)
        )
        failed.append("lint")
    if scan_error is not None:
        log.error("Style rule validation failed")
        failed.insert(0, "style-rules")
    if failed:
        raise CheckStyleFailed(failed)


def _test(ctx: BuildContext, _: str | None) -> None:
    run_tests(ctx.settings, runner=ctx.runner)


def _test_module(ctx: BuildContext, module: str | None) -> None:
    if not module:
        raise UsageError("test-module requires a module name, e.g. test-module:core")
    run_tests(ctx.settings, module, runner=ctx.runner)


def _test_instrumented(ctx: BuildContext, report: str | None) -> None:
    _coverage.run_instrumented(
        ctx.settings, _coverage.parse_report_format(report), runner=ctx.runner
    )


def _clean(ctx: BuildContext, _: str | None) -> None:
    _coverage.clean(ctx.settings)


def _coveralls(ctx: BuildContext, _: str | None) -> None:
    ctx.uploader(ctx.settings, _coverage.lcov_path(ctx.settings))


def _show_file(ctx: BuildContext, file: str | None) -> None:
    s = ctx.settings
    rel = Path(file) if file else s.paths.target_dir / "coverage.html"
    _viewer.show_file(s.paths.root / rel, runner=ctx.runner, env=ctx.env)


TASKS: Final[dict[str, Task]] = {
    "check-style": Task(_check_style, "Run the doc-comment rule scan and the linter"),
    "test": Task(_test, "Run every module's tests"),
    "test-module": Task(_test_module, "Run the tests of a single module (test-module:<name>)"),
    "test-instrumented": Task(
        _test_instrumented, "Run the tests under coverage (test-instrumented[:lcov|lcovonly])"
    ),
    "clean": Task(_clean, "Remove the target directory"),
    "coveralls": Task(_coveralls, "Upload target/lcov.info to Coveralls"),
    "show-file": Task(_show_file, "Open a file with the OS default viewer (show-file[:path])"),
}


def _composites(settings: Settings) -> dict[str, list[TaskCall]]:
    report_index = _coverage.html_index(settings).as_posix()
    return {
        "default": [TaskCall("check-style"), TaskCall("test")],
        "test-coverage": [
            TaskCall("clean"),
            TaskCall("test-instrumented"),
            TaskCall("show-file", report_index),
        ],
        "test-coverage-coveralls": [
            TaskCall("clean"),
            TaskCall("test-instrumented", "lcovonly"),
            TaskCall("coveralls"),
        ],
    }


COMPOSITE_HELP: Final[dict[str, str]] = {
    "default": "check-style, then test",
    "test-coverage": "clean, test-instrumented, then open the html report",
    "test-coverage-coveralls": "clean, test-instrumented:lcovonly, then coveralls",
}


def expand_calls(settings: Settings, calls: Iterable[TaskCall]) -> list[TaskCall]:
    """Flatten composite tasks and reject unknown names before anything runs."""
    composites = _composites(settings)
    out: list[TaskCall] = []
    for call in calls:
        if call.name in composites:
            if call.arg is not None:
                raise UsageError(f"task {call.name} takes no argument")
            out.extend(composites[call.name])
        elif call.name in TASKS:
            out.append(call)
        else:
            raise UsageError(f"unknown task: {call.name}")
    return out


def run_tasks(ctx: BuildContext, calls: Sequence[TaskCall]) -> None:
    log = get_logger()
    plan = expand_calls(ctx.settings, calls)
    log.info("build_plan tasks=%s", ",".join(c.label() for c in plan))
    for call in plan:
        t0 = time.perf_counter()
        log.info("build_task_start task=%s", call.label())
        try:
            TASKS[call.name].fn(ctx, call.arg)
        except BuildError as exc:
            log_event(
                "build_task",
                {
                    "task": call.label(),
                    "ok": False,
                    "duration_ms": _elapsed_ms(t0),
                    "exit_code": exit_code_for(exc),
                },
            )
            raise
        log_event(
            "build_task", {"task": call.label(), "ok": True, "duration_ms": _elapsed_ms(t0)}
        )


def _elapsed_ms(t0: float) -> int:
    return int((time.perf_counter() - t0) * 1000)
