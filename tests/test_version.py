from __future__ import annotations

from importlib.metadata import PackageNotFoundError

import pytest

import modbuild.version as version_mod


def test_get_version_reads_metadata_and_commit(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(version_mod, "_pkg_version", lambda: "1.2.3")
    monkeypatch.setenv("GIT_COMMIT", "abc123")
    info = version_mod.get_version()
    assert (info.name, info.version, info.commit) == ("modbuild", "1.2.3", "abc123")


def test_get_version_without_commit(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(version_mod, "_pkg_version", lambda: "1.2.3")
    monkeypatch.delenv("GIT_COMMIT", raising=False)
    monkeypatch.delenv("COMMIT_SHA", raising=False)
    assert version_mod.get_version().commit is None


def test_pkg_version_missing_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    import importlib.metadata as md

    def _missing(_name: str) -> str:
        raise PackageNotFoundError("modbuild")

    monkeypatch.setattr(md, "version", _missing)
    with pytest.raises(RuntimeError):
        version_mod._pkg_version()
