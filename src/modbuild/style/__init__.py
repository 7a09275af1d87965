from __future__ import annotations

from .check import expand_targets, read_source, run_style_check
from .locator import LineInfo, locate
from .reporter import Reporter, ScanResult, Violation
from .rules import DEFAULT_RULES, Rule
from .scanner import Match, scan

__all__ = [
    "DEFAULT_RULES",
    "LineInfo",
    "Match",
    "Reporter",
    "Rule",
    "ScanResult",
    "Violation",
    "expand_targets",
    "locate",
    "read_source",
    "run_style_check",
    "scan",
]
