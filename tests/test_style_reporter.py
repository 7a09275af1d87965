from __future__ import annotations

import io
from dataclasses import fields
from pathlib import Path

import pytest

from modbuild.style import LineInfo, Match, Reporter, ScanResult
from modbuild.style.reporter import color_enabled


def _match() -> Match:
    return Match(rule_message="Use @return instead of @returns", offset=10, matched_text="@returns")


def test_report_plain_format_and_records() -> None:
    buf = io.StringIO()
    rep = Reporter(stream=buf, color=False)
    rep.report(_match(), LineInfo(line_number=4, line_text=" * @returns {x}"))
    assert buf.getvalue() == "Use @return instead of @returns: 4:  * @returns {x}\n"
    assert rep.result.any_violations
    assert rep.result.violations[0].line_no == 4


def test_report_colorizes_message_only() -> None:
    buf = io.StringIO()
    Reporter(stream=buf, color=True).report(_match(), LineInfo(1, "x"))
    out = buf.getvalue()
    assert out.startswith("\x1b[31mUse @return instead of @returns\x1b[0m: 1: x")


def test_report_show_paths_prefix() -> None:
    buf = io.StringIO()
    rep = Reporter(stream=buf, color=False, show_paths=True)
    rep.report(_match(), LineInfo(2, "y"), Path("pkg/a.py"))
    assert buf.getvalue() == "pkg/a.py: Use @return instead of @returns: 2: y\n"


def test_scan_result_is_monotonic() -> None:
    result = ScanResult()
    assert not result.any_violations and result.passed
    rep = Reporter(result, stream=io.StringIO(), color=False)
    rep.report(_match(), LineInfo(1, "a"))
    assert result.any_violations
    result.files_scanned += 1
    assert result.any_violations and not result.passed


def test_scan_result_flag_only_set_by_record() -> None:
    assert [f.name for f in fields(ScanResult) if f.init] == ["files_scanned", "violations"]


def test_color_enabled_env(monkeypatch: pytest.MonkeyPatch) -> None:
    buf = io.StringIO()
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("MODBUILD_COLOR", raising=False)
    assert color_enabled(buf) is False
    monkeypatch.setenv("MODBUILD_COLOR", "1")
    assert color_enabled(buf) is True
    monkeypatch.setenv("NO_COLOR", "1")
    assert color_enabled(buf) is False
