from __future__ import annotations

import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..errors import ErrorCode, ExternalToolError
from ..logging import get_logger


@dataclass(frozen=True)
class CommandSpec:
    argv: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    timeout_s: float | None = None
    description: str = ""


class CommandRunner(Protocol):
    def __call__(self, spec: CommandSpec) -> int: ...


def subprocess_runner(spec: CommandSpec) -> int:
    """Run a child process to completion and return its exit status.

    Output is inherited from the parent so tool diagnostics stream through.
    """
    try:
        proc = subprocess.run(
            list(spec.argv),
            cwd=spec.cwd,
            env=dict(spec.env) if spec.env is not None else None,
            timeout=spec.timeout_s,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ExternalToolError(ErrorCode.tool_not_found, spec.argv) from exc
    except subprocess.TimeoutExpired as exc:
        raise ExternalToolError(
            ErrorCode.tool_timeout,
            spec.argv,
            message=f"{spec.description or spec.argv[0]} exceeded {spec.timeout_s}s",
        ) from exc
    return int(proc.returncode)


def run_checked(spec: CommandSpec, runner: CommandRunner = subprocess_runner) -> None:
    """Run ``spec`` and raise ExternalToolError on a non-zero exit status."""
    log = get_logger()
    name = (spec.description or spec.argv[0]).replace(" ", "_")
    log.info("tool_start name=%s argc=%d", name, len(spec.argv))
    log.debug("tool_argv %s", " ".join(spec.argv))
    t0 = time.perf_counter()
    code = runner(spec)
    dt_ms = int((time.perf_counter() - t0) * 1000)
    if code != 0:
        log.error("tool_failed name=%s code=%d duration_ms=%d", name, code, dt_ms)
        raise ExternalToolError(ErrorCode.tool_failed, spec.argv, returncode=code)
    log.info("tool_done name=%s duration_ms=%d", name, dt_ms)


def join_args(base: Sequence[str], *extra: Sequence[str]) -> tuple[str, ...]:
    out: list[str] = list(base)
    for chunk in extra:
        out.extend(chunk)
    return tuple(out)
