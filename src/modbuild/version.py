from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class VersionInfo:
    name: str
    version: str
    commit: str | None


def get_version() -> VersionInfo:
    return VersionInfo(
        name="modbuild",
        version=_pkg_version(),
        commit=os.getenv("GIT_COMMIT") or os.getenv("COMMIT_SHA"),
    )


def _pkg_version() -> str:
    try:
        from importlib.metadata import PackageNotFoundError, version

        return version("modbuild")
    except PackageNotFoundError as exc:
        from .logging import get_logger

        get_logger().warning("pkg_version_missing error=%s", exc)
        raise RuntimeError("package version not found") from exc
