from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG = """# reviewgate configuration
include_roots:
  - app
  - components
  - lib
  - hooks
  - types
  - services
  - repositories
  - pages
  - src/app
  - src/components
  - src/lib
  - src/hooks
  - src/types
  - src/services
  - src/repositories
  - src/pages
extensions:
  - .ts
  - .tsx
exclude_dirs:
  - node_modules
  - .git
  - .reviewgate
  - test
exclude_globs:
  - "**/*.d.ts"
size_limits:
  components: 150
  hooks: 100
  types: 100
  utils: 50
  routes: 100
  services: 100
  repositories: 100
concurrency: 8
cache_files: true
autofix: false
toolchain_dir: .reviewgate/toolchain
output_dir: .reviewgate/output
report_name: review-results.json
tool_timeout_seconds: 180
lint:
  enabled: true
  batch: true
  chunk_size: 200
  sub_batch_size: 60
  max_command_chars: 100000
  repo_roots:
    - app
    - components
    - lib
    - hooks
    - types
    - pages
    - src/app
    - src/components
    - src/lib
    - src/hooks
    - src/types
    - src/pages
  ignore:
    - .next
    - dist
    - build
    - .reviewgate
    - external
    - lib/generated
compiler:
  scope: auto
  subtree_tsconfig: .reviewgate/tsconfig.review.json
dead_code:
  config: ""
  tsconfig: ""
duplicates:
  min_tokens: 60
  include_roots:
    - app
    - components
    - lib
    - hooks
    - types
  ignore:
    - "**/{.next,node_modules,dist,build}/**"
    - "**/lib/generated/**"
    - "prisma/**"
"""

TS_SCOPES = ("auto", "project", "subtree")
TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(ValueError):
    pass


def _to_positive_int(value: object, fallback: int) -> int:
    if isinstance(value, bool):
        return fallback
    if isinstance(value, int):
        return value if value > 0 else fallback
    if isinstance(value, str):
        try:
            num = int(value)
            return num if num > 0 else fallback
        except ValueError:
            return fallback
    return fallback


def _str_list(value: object, fallback: list[str]) -> list[str]:
    if not isinstance(value, list):
        return list(fallback)
    return [str(item).strip() for item in value if str(item).strip()]


def _parse_flag(value: object) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return {1: True, 0: False}.get(value)
    raw = str(value).strip().lower() if isinstance(value, str) else ""
    if raw in TRUE_VALUES:
        return True
    if raw in FALSE_VALUES:
        return False
    return None


def _to_bool(value: object, fallback: bool) -> bool:
    parsed = _parse_flag(value)
    return fallback if parsed is None else parsed


def _env_flag(name: str) -> bool | None:
    return _parse_flag(os.getenv(name, ""))


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"config section '{name}' must be a mapping")
    return value


@dataclass(slots=True)
class LintConfig:
    enabled: bool = True
    batch: bool = True
    chunk_size: int = 200
    sub_batch_size: int = 60
    max_command_chars: int = 100_000
    repo_roots: list[str] = field(default_factory=list)
    ignore: list[str] = field(default_factory=list)


@dataclass(slots=True)
class CompilerConfig:
    scope: str = "auto"
    subtree_tsconfig: str = ".reviewgate/tsconfig.review.json"


@dataclass(slots=True)
class DeadCodeConfig:
    config: str = ""
    tsconfig: str = ""


@dataclass(slots=True)
class DuplicatesConfig:
    min_tokens: int = 60
    include_roots: list[str] = field(default_factory=list)
    ignore: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ReviewConfig:
    include_roots: list[str]
    extensions: list[str]
    exclude_dirs: list[str]
    exclude_globs: list[str]
    size_limits: dict[str, int]
    concurrency: int
    cache_files: bool
    autofix: bool
    toolchain_dir: str
    output_dir: str
    report_name: str
    tool_timeout_seconds: float
    lint: LintConfig
    compiler: CompilerConfig
    dead_code: DeadCodeConfig
    duplicates: DuplicatesConfig

    @classmethod
    def default(cls) -> ReviewConfig:
        data = yaml.safe_load(DEFAULT_CONFIG)
        return cls.from_dict(data)

    @classmethod
    def from_path(cls, path: Path) -> ReviewConfig:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"cannot read config {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"config {path} must be a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReviewConfig:
        defaults = yaml.safe_load(DEFAULT_CONFIG)

        size_limits = dict(defaults["size_limits"])
        raw_limits = data.get("size_limits", {})
        if isinstance(raw_limits, dict):
            for file_type, limit in raw_limits.items():
                key = str(file_type).strip().lower()
                if key:
                    size_limits[key] = _to_positive_int(limit, size_limits.get(key, 100))

        lint_data = _section(data, "lint")
        lint_defaults = defaults["lint"]
        lint = LintConfig(
            enabled=_to_bool(lint_data.get("enabled"), True),
            batch=_to_bool(lint_data.get("batch"), True),
            chunk_size=_to_positive_int(lint_data.get("chunk_size"), lint_defaults["chunk_size"]),
            sub_batch_size=_to_positive_int(lint_data.get("sub_batch_size"), lint_defaults["sub_batch_size"]),
            max_command_chars=_to_positive_int(
                lint_data.get("max_command_chars"), lint_defaults["max_command_chars"]
            ),
            repo_roots=_str_list(lint_data.get("repo_roots"), lint_defaults["repo_roots"]),
            ignore=_str_list(lint_data.get("ignore"), lint_defaults["ignore"]),
        )

        compiler_data = _section(data, "compiler")
        scope = str(compiler_data.get("scope", "auto")).strip().lower()
        compiler = CompilerConfig(
            scope=scope if scope in TS_SCOPES else "auto",
            subtree_tsconfig=str(
                compiler_data.get("subtree_tsconfig", defaults["compiler"]["subtree_tsconfig"])
            ),
        )

        dead_code_data = _section(data, "dead_code")
        dead_code = DeadCodeConfig(
            config=str(dead_code_data.get("config", "") or ""),
            tsconfig=str(dead_code_data.get("tsconfig", "") or ""),
        )

        dup_data = _section(data, "duplicates")
        dup_defaults = defaults["duplicates"]
        duplicates = DuplicatesConfig(
            min_tokens=_to_positive_int(dup_data.get("min_tokens"), dup_defaults["min_tokens"]),
            include_roots=_str_list(dup_data.get("include_roots"), dup_defaults["include_roots"]),
            ignore=_str_list(dup_data.get("ignore"), dup_defaults["ignore"]),
        )

        config = cls(
            include_roots=_str_list(data.get("include_roots"), defaults["include_roots"]),
            extensions=[ext.lower() for ext in _str_list(data.get("extensions"), defaults["extensions"])],
            exclude_dirs=_str_list(data.get("exclude_dirs"), defaults["exclude_dirs"]),
            exclude_globs=_str_list(data.get("exclude_globs"), defaults["exclude_globs"]),
            size_limits=size_limits,
            concurrency=_to_positive_int(data.get("concurrency"), defaults["concurrency"]),
            cache_files=_to_bool(data.get("cache_files"), True),
            autofix=_to_bool(data.get("autofix"), False),
            toolchain_dir=str(data.get("toolchain_dir", defaults["toolchain_dir"])),
            output_dir=str(data.get("output_dir", defaults["output_dir"])),
            report_name=str(data.get("report_name", defaults["report_name"])),
            tool_timeout_seconds=float(
                _to_positive_int(data.get("tool_timeout_seconds"), defaults["tool_timeout_seconds"])
            ),
            lint=lint,
            compiler=compiler,
            dead_code=dead_code,
            duplicates=duplicates,
        )

        env_concurrency = os.getenv("REVIEWGATE_CONCURRENCY", "").strip()
        env_timeout = os.getenv("REVIEWGATE_TOOL_TIMEOUT", "").strip()
        if env_concurrency:
            config.concurrency = _to_positive_int(env_concurrency, config.concurrency)
        if env_timeout:
            config.tool_timeout_seconds = float(_to_positive_int(env_timeout, int(config.tool_timeout_seconds)))

        cache_flag = _env_flag("REVIEWGATE_CACHE_FILES")
        if cache_flag is not None:
            config.cache_files = cache_flag
        batch_flag = _env_flag("REVIEWGATE_LINT_BATCH")
        if batch_flag is not None:
            config.lint.batch = batch_flag
        autofix_flag = _env_flag("REVIEWGATE_AUTOFIX")
        if autofix_flag is not None:
            config.autofix = autofix_flag

        return config

    def output_path(self, repo_root: Path) -> Path:
        path = Path(self.output_dir)
        return path if path.is_absolute() else repo_root / path

    def toolchain_path(self, repo_root: Path) -> Path:
        path = Path(self.toolchain_dir)
        return path if path.is_absolute() else repo_root / path

    def report_path(self, repo_root: Path) -> Path:
        return self.output_path(repo_root) / self.report_name


def ensure_config(path: Path, force: bool = False) -> None:
    if path.exists() and not force:
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG, encoding="utf-8")


def load_config(path: Path | None) -> ReviewConfig:
    if path is None or not path.exists():
        return ReviewConfig.default()
    return ReviewConfig.from_path(path)
