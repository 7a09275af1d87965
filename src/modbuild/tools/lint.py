from __future__ import annotations

from ..config import Settings
from .shell import CommandRunner, CommandSpec, join_args, run_checked, subprocess_runner


def lint_command(settings: Settings) -> CommandSpec:
    return CommandSpec(
        argv=join_args(settings.lint.command, settings.lint.paths),
        cwd=settings.paths.root,
        description="lint",
    )


def run_lint(settings: Settings, runner: CommandRunner = subprocess_runner) -> None:
    run_checked(lint_command(settings), runner)
