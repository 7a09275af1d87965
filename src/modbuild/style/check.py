from __future__ import annotations

import fnmatch
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import TextIO

from ..errors import FileReadError, StyleCheckFailed
from ..logging import get_logger
from .locator import locate
from .reporter import Reporter, ScanResult
from .rules import DEFAULT_RULES, Rule
from .scanner import scan


def expand_targets(root: Path, include: Iterable[str], exclude: Iterable[str] = ()) -> list[Path]:
    """Expand include globs under ``root`` and drop anything matching an exclude glob."""
    excludes = list(exclude)
    found: set[Path] = set()
    for pattern in include:
        for p in root.glob(pattern):
            if not p.is_file():
                continue
            rel = p.relative_to(root).as_posix()
            if any(fnmatch.fnmatch(rel, ex) for ex in excludes):
                continue
            found.add(p)
    return sorted(found)


def read_source(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FileReadError(path, str(exc)) from exc


def run_style_check(
    paths: Sequence[Path],
    rules: Sequence[Rule] = DEFAULT_RULES,
    *,
    stream: TextIO | None = None,
    color: bool | None = None,
    show_paths: bool = False,
) -> ScanResult:
    """Scan every file in order and fail once at the end if any rule matched.

    Raises FileReadError as soon as a file cannot be read and
    StyleCheckFailed after all files were reported.
    """
    log = get_logger()
    result = ScanResult()
    reporter = Reporter(result, stream=stream, color=color, show_paths=show_paths)
    for path in paths:
        text = read_source(path)
        for match in scan(text, rules):
            reporter.report(match, locate(text, match.offset), path)
        result.files_scanned += 1
    log.info(
        "style_check_done files=%d violations=%d",
        result.files_scanned,
        len(result.violations),
    )
    if result.any_violations:
        raise StyleCheckFailed(result)
    return result
