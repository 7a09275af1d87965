from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, TextIO

from ..logging import get_logger, stream_is_tty
from .locator import LineInfo
from .scanner import Match

_RED: Final[str] = "\x1b[31m"
_RESET: Final[str] = "\x1b[0m"


@dataclass(frozen=True)
class Violation:
    file: Path | None
    line_no: int
    message: str
    line: str


@dataclass
class ScanResult:
    """Outcome of one style-check run.

    ``any_violations`` only ever moves from False to True; use a fresh
    instance per run.
    """

    files_scanned: int = 0
    violations: list[Violation] = field(default_factory=list)
    _any: bool = field(default=False, init=False)

    @property
    def any_violations(self) -> bool:
        return self._any

    @property
    def passed(self) -> bool:
        return not self._any

    def record(self, violation: Violation) -> None:
        self.violations.append(violation)
        self._any = True


def color_enabled(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    forced = os.environ.get("MODBUILD_COLOR")
    if forced is not None and forced.strip():
        return forced.strip().lower() in {"1", "true", "yes", "on", "y"}
    return stream_is_tty(stream)


class Reporter:
    """Writes one ``<message>: <line>: <text>`` diagnostic per violation."""

    def __init__(
        self,
        result: ScanResult | None = None,
        *,
        stream: TextIO | None = None,
        color: bool | None = None,
        show_paths: bool = False,
    ) -> None:
        self.result = result if result is not None else ScanResult()
        self._stream = stream
        self._color = color
        self._show_paths = show_paths

    def report(self, match: Match, line_info: LineInfo, path: Path | None = None) -> None:
        # Resolve stdout lazily so capture fixtures that swap it are honored
        out = self._stream if self._stream is not None else sys.stdout
        use_color = self._color if self._color is not None else color_enabled(out)
        msg = f"{_RED}{match.rule_message}{_RESET}" if use_color else match.rule_message
        prefix = f"{path.as_posix()}: " if (self._show_paths and path is not None) else ""
        out.write(f"{prefix}{msg}: {line_info.line_number}: {line_info.line_text}\n")
        get_logger().debug(
            "style_violation file=%s line=%d offset=%d",
            path.as_posix() if path is not None else "-",
            line_info.line_number,
            match.offset,
        )
        self.result.record(
            Violation(
                file=path,
                line_no=line_info.line_number,
                message=match.rule_message,
                line=line_info.line_text,
            )
        )
