from __future__ import annotations

import logging

import pytest

from modbuild.logging import _choose_formatter, _ConsoleFormatter


def _record(msg: str, level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(
        name="modbuild",
        level=level,
        pathname="t",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_console_formatter_evt_line() -> None:
    out = _ConsoleFormatter().format(
        _record("EVT event=build_task task=check-style ok=false duration_ms=12 exit_code=1")
    )
    assert "[INFO]" in out
    assert "build_task" in out
    assert "task" in out and "check-style" in out
    assert "ok" in out and "false" in out
    assert "duration_ms" in out and "12" in out


def test_console_formatter_plain_kv_and_tail() -> None:
    out = _ConsoleFormatter().format(
        _record("tool_failed name=lint code=2 see above", level=logging.ERROR)
    )
    assert "[ERROR]" in out and "tool_failed" in out
    assert "name" in out and "lint" in out and "see above" in out


def test_choose_formatter_explicit() -> None:
    rec = _record("hello world")
    out_json = _choose_formatter("json").format(rec)
    assert out_json.strip().startswith("{") and '"message"' in out_json
    out_pretty = _choose_formatter("pretty").format(rec)
    assert "\x1b[" in out_pretty and "hello" in out_pretty


def test_choose_formatter_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MODBUILD_LOG_JSON", raising=False)
    monkeypatch.setenv("MODBUILD_LOG_PRETTY", "1")
    assert isinstance(_choose_formatter("auto"), _ConsoleFormatter)
    monkeypatch.setenv("MODBUILD_LOG_JSON", "1")
    out = _choose_formatter("auto").format(_record("env json"))
    assert out.startswith("{") and "env json" in out
