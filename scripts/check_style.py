from __future__ import annotations

import argparse
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from modbuild.config import Settings
from modbuild.errors import ConfigError, FileReadError, StyleCheckFailed, exit_code_for
from modbuild.logging import get_logger, init_logging
from modbuild.style import DEFAULT_RULES, ScanResult, expand_targets, run_style_check


@dataclass(frozen=True)
class RuleReport:
    message: str
    violations: int


def _rule_reports(result: ScanResult) -> list[RuleReport]:
    return [
        RuleReport(
            message=r.message,
            violations=sum(1 for v in result.violations if v.message == r.message),
        )
        for r in DEFAULT_RULES
    ]


def _print_summary(result: ScanResult, verbose: bool) -> None:
    log = get_logger()
    if verbose:
        log.info("Style rule summary:")
        for rep in _rule_reports(result):
            log.info("style_rule violations=%d message=%s", rep.violations, rep.message)
    if result.any_violations:
        log.error(
            "Style checks failed: files=%d violations=%d",
            result.files_scanned,
            len(result.violations),
        )
    else:
        log.info("Style checks passed: files=%d", result.files_scanned)


def _resolve_files(paths: list[str]) -> list[Path]:
    if paths:
        return [Path(p) for p in paths]
    s = Settings.load()
    return expand_targets(s.paths.root, s.style.include, s.style.exclude)


def main(argv: Iterable[str] | None = None) -> int:
    init_logging()
    log = get_logger()
    ap = argparse.ArgumentParser(description="Doc-comment style checks")
    ap.add_argument("paths", nargs="*", help="Files to scan (default: configured style targets)")
    ap.add_argument("--verbose", "-v", action="store_true", help="Show per-rule summary")
    # Be resilient to extraneous argv (e.g., pytest coverage args) by ignoring unknowns
    args, _unknown = ap.parse_known_args(list(argv) if argv is not None else None)
    try:
        files = _resolve_files([str(p) for p in args.paths])
        result = run_style_check(files, show_paths=True)
    except StyleCheckFailed as exc:
        result = exc.result
    except (ConfigError, FileReadError) as exc:
        log.error("style_check_aborted code=%s", exc.code.value)
        log.error(exc.message)
        return exit_code_for(exc)
    _print_summary(result, verbose=bool(args.verbose))
    return 1 if result.any_violations else 0


if __name__ == "__main__":
    raise SystemExit(main())
