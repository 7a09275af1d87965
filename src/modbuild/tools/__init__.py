from __future__ import annotations

from .shell import CommandRunner, CommandSpec, run_checked, subprocess_runner

__all__ = ["CommandRunner", "CommandSpec", "run_checked", "subprocess_runner"]
