from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from .style.reporter import ScanResult


class ErrorCode(str, Enum):
    style_violations = "style_violations"
    file_read_failed = "file_read_failed"
    tool_failed = "tool_failed"
    tool_not_found = "tool_not_found"
    tool_timeout = "tool_timeout"
    upload_failed = "upload_failed"
    config_invalid = "config_invalid"
    usage = "usage"


_DEFAULT_MESSAGE: Final[dict[ErrorCode, str]] = {
    ErrorCode.style_violations: "Style rule validation failed",
    ErrorCode.file_read_failed: "Failed to read source file.",
    ErrorCode.tool_failed: "External tool exited with a non-zero status.",
    ErrorCode.tool_not_found: "External tool not found.",
    ErrorCode.tool_timeout: "External tool timed out.",
    ErrorCode.upload_failed: "Coverage upload failed.",
    ErrorCode.config_invalid: "Invalid configuration.",
    ErrorCode.usage: "Invalid usage.",
}


class BuildError(Exception):
    def __init__(self, code: ErrorCode, message: str | None = None) -> None:
        msg = message if message is not None else _DEFAULT_MESSAGE.get(code, "")
        super().__init__(msg)
        self.code = code
        self.message = msg


class StyleCheckFailed(BuildError):
    def __init__(self, result: ScanResult) -> None:
        super().__init__(ErrorCode.style_violations)
        self.result = result


class CheckStyleFailed(BuildError):
    """Raised by check-style when the linter or the rule scan failed."""

    def __init__(self, failed_steps: Sequence[str]) -> None:
        steps = tuple(failed_steps)
        super().__init__(ErrorCode.style_violations, f"check-style failed: {', '.join(steps)}")
        self.failed_steps = steps


class FileReadError(BuildError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(ErrorCode.file_read_failed, f"Failed to read {path}: {reason}")
        self.path = path


class ExternalToolError(BuildError):
    def __init__(
        self,
        code: ErrorCode,
        command: Sequence[str],
        returncode: int | None = None,
        message: str | None = None,
    ) -> None:
        cmd = tuple(command)
        if message is None:
            name = cmd[0] if cmd else "<empty>"
            base = _DEFAULT_MESSAGE.get(code, "")
            message = f"{base} tool={name}"
            if returncode is not None:
                message = f"{message} code={returncode}"
        super().__init__(code, message)
        self.command = cmd
        self.returncode = returncode


class UploadError(BuildError):
    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(ErrorCode.upload_failed, message)
        self.status = status


class ConfigError(BuildError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.config_invalid, message)


class UsageError(BuildError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.usage, message)


def exit_code_for(err: BuildError) -> int:
    if isinstance(err, ExternalToolError) and err.returncode:
        # Propagate the collaborator's own non-zero status
        return int(err.returncode)
    code = err.code
    if code is ErrorCode.file_read_failed:
        return 3
    if code is ErrorCode.tool_not_found:
        return 127
    if code is ErrorCode.tool_timeout:
        return 124
    if code is ErrorCode.config_invalid:
        return 2
    if code is ErrorCode.usage:
        return 2
    return 1
