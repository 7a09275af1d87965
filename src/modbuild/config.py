from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Final

from .errors import ConfigError

_DEFAULT_CONFIG_PATH: Final[Path] = Path("config/modbuild.toml")
_DEFAULT_COVERALLS_ENDPOINT: Final[str] = "https://coveralls.io/api/v1/jobs"


@dataclass(frozen=True)
class PathsConfig:
    root: Path = Path(".")
    target_dir: Path = Path("target")
    modules_root: Path = Path("packages")


@dataclass(frozen=True)
class StyleConfig:
    include: tuple[str, ...] = ("packages/*/**/*.py",)
    exclude: tuple[str, ...] = ("packages/*/.venv/**", "**/__pycache__/**")
    show_paths: bool = False


@dataclass(frozen=True)
class LintConfig:
    command: tuple[str, ...] = ("ruff", "check")
    paths: tuple[str, ...] = ("packages", "scripts")


@dataclass(frozen=True)
class UnitTestsConfig:
    setup_files: tuple[str, ...] = ()
    module_glob: str = "*"
    # Ceiling for the whole test-runner child process
    timeout_seconds: int = 3600
    extra_args: tuple[str, ...] = ("-v",)


@dataclass(frozen=True)
class CoverageConfig:
    omit: tuple[str, ...] = ("*/tests/*", "*/config/*", "*/.venv/*", "*/lib/test/*")


@dataclass(frozen=True)
class CoverallsConfig:
    endpoint: str = _DEFAULT_COVERALLS_ENDPOINT
    max_retries: int = 3
    timeout_seconds: int = 30


@dataclass(frozen=True)
class Settings:
    paths: PathsConfig
    style: StyleConfig
    lint: LintConfig
    tests: UnitTestsConfig
    coverage: CoverageConfig
    coveralls: CoverallsConfig

    @staticmethod
    def _toml_path() -> Path:
        env_val = os.getenv("MODBUILD_CONFIG")
        if env_val:
            return Path(env_val)
        return _DEFAULT_CONFIG_PATH

    @classmethod
    def defaults(cls) -> Settings:
        return cls(
            paths=PathsConfig(),
            style=StyleConfig(),
            lint=LintConfig(),
            tests=UnitTestsConfig(),
            coverage=CoverageConfig(),
            coveralls=CoverallsConfig(),
        )

    @classmethod
    def load(cls) -> Settings:
        # Load env first, then override from TOML if present.
        d = cls.defaults()
        base = replace(
            d,
            paths=_load_paths_from_env(),
            tests=_load_tests_from_env(),
            coveralls=_load_coveralls_from_env(),
        )
        cfg_path = cls._toml_path()
        if not cfg_path.exists():
            return base
        try:
            raw: object = tomllib.loads(cfg_path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigError(f"Failed to read config TOML: {cfg_path}") from exc
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML config: {cfg_path}") from exc
        return cls(
            paths=_merge_paths(base.paths, _toml_table(raw, "paths")),
            style=_merge_style(base.style, _toml_table(raw, "style")),
            lint=_merge_lint(base.lint, _toml_table(raw, "lint")),
            tests=_merge_tests(base.tests, _toml_table(raw, "tests")),
            coverage=_merge_coverage(base.coverage, _toml_table(raw, "coverage")),
            coveralls=_merge_coveralls(base.coveralls, _toml_table(raw, "coveralls")),
        )


def _load_paths_from_env() -> PathsConfig:
    p = PathsConfig()
    root = os.getenv("PATHS__ROOT")
    target = os.getenv("PATHS__TARGET_DIR")
    modules = os.getenv("PATHS__MODULES_ROOT")
    if root:
        p = replace(p, root=Path(root))
    if target:
        p = replace(p, target_dir=Path(target))
    if modules:
        p = replace(p, modules_root=Path(modules))
    return p


def _load_tests_from_env() -> UnitTestsConfig:
    t = UnitTestsConfig()
    to = os.getenv("TESTS__TIMEOUT_SECONDS")
    if to is not None:
        t = replace(t, timeout_seconds=_positive_int("TESTS__TIMEOUT_SECONDS", to))
    return t


def _load_coveralls_from_env() -> CoverallsConfig:
    c = CoverallsConfig()
    ep = os.getenv("COVERALLS_ENDPOINT")
    if ep:
        c = replace(c, endpoint=ep)
    return c


def _merge_paths(base: PathsConfig, data: dict[str, object]) -> PathsConfig:
    out = base
    if "root" in data:
        out = replace(out, root=Path(str(data["root"])))
    if "target_dir" in data:
        out = replace(out, target_dir=Path(str(data["target_dir"])))
    if "modules_root" in data:
        out = replace(out, modules_root=Path(str(data["modules_root"])))
    return out


def _merge_style(base: StyleConfig, data: dict[str, object]) -> StyleConfig:
    out = base
    if "include" in data:
        out = replace(out, include=_str_tuple("style.include", data["include"]))
    if "exclude" in data:
        out = replace(out, exclude=_str_tuple("style.exclude", data["exclude"]))
    if "show_paths" in data:
        out = replace(out, show_paths=bool(data["show_paths"]))
    return out


def _merge_lint(base: LintConfig, data: dict[str, object]) -> LintConfig:
    out = base
    if "command" in data:
        cmd = _str_tuple("lint.command", data["command"])
        if not cmd:
            raise ConfigError("lint.command must not be empty")
        out = replace(out, command=cmd)
    if "paths" in data:
        out = replace(out, paths=_str_tuple("lint.paths", data["paths"]))
    return out


def _merge_tests(base: UnitTestsConfig, data: dict[str, object]) -> UnitTestsConfig:
    out = base
    if "setup_files" in data:
        out = replace(out, setup_files=_str_tuple("tests.setup_files", data["setup_files"]))
    if "module_glob" in data:
        out = replace(out, module_glob=str(data["module_glob"]))
    if "timeout_seconds" in data:
        out = replace(
            out,
            timeout_seconds=_positive_int("tests.timeout_seconds", data["timeout_seconds"]),
        )
    if "extra_args" in data:
        out = replace(out, extra_args=_str_tuple("tests.extra_args", data["extra_args"]))
    return out


def _merge_coverage(base: CoverageConfig, data: dict[str, object]) -> CoverageConfig:
    out = base
    if "omit" in data:
        out = replace(out, omit=_str_tuple("coverage.omit", data["omit"]))
    return out


def _merge_coveralls(base: CoverallsConfig, data: dict[str, object]) -> CoverallsConfig:
    out = base
    if "endpoint" in data:
        out = replace(out, endpoint=str(data["endpoint"]))
    if "max_retries" in data:
        out = replace(out, max_retries=_positive_int("coveralls.max_retries", data["max_retries"]))
    if "timeout_seconds" in data:
        out = replace(
            out,
            timeout_seconds=_positive_int("coveralls.timeout_seconds", data["timeout_seconds"]),
        )
    return out


def _toml_table(raw: object, key: str) -> dict[str, object]:
    if isinstance(raw, dict):
        tab: object = raw.get(key, {})
        if isinstance(tab, dict):
            return {str(k): v for k, v in tab.items()}
    return {}


def _str_tuple(name: str, value: object) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list):
        return tuple(str(v) for v in value)
    raise ConfigError(f"{name} must be a string or a list of strings")


def _positive_int(name: str, value: object) -> int:
    try:
        n = int(str(value))
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer") from exc
    if n < 1:
        raise ConfigError(f"{name} out of range")
    return n
