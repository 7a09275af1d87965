from __future__ import annotations

import os
import shlex
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Final

from ..errors import ExternalToolError
from ..logging import get_logger
from .shell import CommandRunner, CommandSpec, subprocess_runner

_PLATFORM_OPENERS: Final[dict[str, str]] = {
    "linux": "xdg-open",
    "darwin": "open",
    "win32": "explorer.exe",
}


def resolve_viewer(env: Mapping[str, str], platform: str) -> str | None:
    browser = env.get("BROWSER")
    if browser and browser.strip():
        return browser.strip()
    return _PLATFORM_OPENERS.get(platform)


def show_file(
    path: Path,
    *,
    runner: CommandRunner = subprocess_runner,
    env: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> bool:
    """Open ``path`` with the configured viewer; returns False when none applies."""
    log = get_logger()
    viewer = resolve_viewer(os.environ if env is None else env, platform or sys.platform)
    if viewer is None:
        log.info("viewer_unavailable platform=%s", platform or sys.platform)
        return False
    argv = (*shlex.split(viewer), path.as_posix())
    try:
        code = runner(CommandSpec(argv=argv, description="viewer"))
    except ExternalToolError as exc:
        log.warning("viewer_failed viewer=%s code=%s", argv[0], exc.code.value)
        return False
    if code != 0:
        # Opening a report is a convenience; the build result stands
        log.warning("viewer_exit_nonzero viewer=%s code=%d", argv[0], code)
        return False
    return True
