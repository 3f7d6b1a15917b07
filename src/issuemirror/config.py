from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

import yaml

from .cache import DEFAULT_CACHE_FILE, DEFAULT_TTL_SECONDS
from .github_rest import DEFAULT_API_URL, split_repo
from .references import DEFAULT_HOST, DEFAULT_MAX_WORKERS

CONFIG_DEFAULT = "issue_mirror.config.yaml"
ENV_PREFIX = "ISSUE_MIRROR_"

DEFAULT_SOURCE_REPO = "ubiquity/devpool-directory"
DEFAULT_TARGET_REPO = "ShivTestOrg/repo-price"
DEFAULT_BATCH_SIZE = 3

_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(RuntimeError):
    pass


@dataclass
class MirrorConfig:
    source_repo: str = DEFAULT_SOURCE_REPO
    target_repo: str = DEFAULT_TARGET_REPO
    batch_size: int = DEFAULT_BATCH_SIZE
    cache_file: Path = Path(DEFAULT_CACHE_FILE)
    cache_ttl_seconds: float = DEFAULT_TTL_SECONDS
    reference_host: str = DEFAULT_HOST
    reference_workers: int = DEFAULT_MAX_WORKERS
    api_url: str = DEFAULT_API_URL
    dry_run: bool = False
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    # Output
    summary_json: Path | None = None
    # Environment authentication
    env_auth_load_dotenv: bool = True
    env_auth_dotenv_path: str | None = None

    @property
    def source(self) -> tuple[str, str]:
        return split_repo(self.source_repo)

    @property
    def target(self) -> tuple[str, str]:
        return split_repo(self.target_repo)

    def validate(self) -> None:
        for label, slug in (("source", self.source_repo), ("target", self.target_repo)):
            try:
                split_repo(slug)
            except ValueError as exc:
                raise ConfigError(f"Invalid {label} repository: {exc}") from exc
        if self.batch_size < 1:
            raise ConfigError(f"batch_size must be a positive integer, got {self.batch_size}")
        if self.reference_workers < 1:
            raise ConfigError(
                f"reference_workers must be a positive integer, got {self.reference_workers}"
            )
        if self.cache_ttl_seconds < 0:
            raise ConfigError("cache ttl must not be negative")


def _resolve_env_var(value: Any, env: Mapping[str, str]) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith("$"):
        return env.get(value[1:], value)
    return value


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def _as_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid configuration file {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")
    return cast(dict[str, Any], raw)


def _apply_file(cfg: MirrorConfig, raw: dict[str, Any], env: Mapping[str, str]) -> None:
    def section(name: str) -> dict[str, Any]:
        value = raw.get(name, {}) or {}
        if not isinstance(value, dict):
            raise ConfigError(f"Section '{name}' must be a mapping")
        return {k: _resolve_env_var(v, env) for k, v in value.items()}

    src = section("source")
    tgt = section("target")
    behavior = section("behavior")
    cache = section("cache")
    gh = section("github")
    logging_config = section("logging")
    out = section("output")
    env_auth = section("environment")

    if "repo" in src:
        cfg.source_repo = str(src["repo"])
    if "repo" in tgt:
        cfg.target_repo = str(tgt["repo"])
    if "batch_size" in behavior:
        cfg.batch_size = _as_int(behavior["batch_size"], "behavior.batch_size")
    if "dry_run" in behavior:
        cfg.dry_run = _as_bool(behavior["dry_run"])
    if "reference_host" in behavior:
        cfg.reference_host = str(behavior["reference_host"])
    if "reference_workers" in behavior:
        cfg.reference_workers = _as_int(behavior["reference_workers"], "behavior.reference_workers")
    if "file" in cache:
        cfg.cache_file = Path(str(cache["file"]))
    if "ttl_seconds" in cache:
        cfg.cache_ttl_seconds = _as_float(cache["ttl_seconds"], "cache.ttl_seconds")
    if "api_url" in gh:
        cfg.api_url = str(gh["api_url"])
    if "json_enabled" in logging_config:
        cfg.logging_json_enabled = _as_bool(logging_config["json_enabled"])
    if "level" in logging_config:
        cfg.logging_level = str(logging_config["level"])
    if out.get("summary_json"):
        cfg.summary_json = Path(str(out["summary_json"]))
    if "load_dotenv" in env_auth:
        cfg.env_auth_load_dotenv = _as_bool(env_auth["load_dotenv"])
    if env_auth.get("dotenv_path"):
        cfg.env_auth_dotenv_path = str(env_auth["dotenv_path"])


def _apply_env(cfg: MirrorConfig, env: Mapping[str, str]) -> None:
    def get(name: str) -> str | None:
        value = env.get(ENV_PREFIX + name)
        return value if value not in (None, "") else None

    if (v := get("SOURCE_REPO")) is not None:
        cfg.source_repo = v
    if (v := get("TARGET_REPO")) is not None:
        cfg.target_repo = v
    if (v := get("BATCH_SIZE")) is not None:
        cfg.batch_size = _as_int(v, ENV_PREFIX + "BATCH_SIZE")
    if (v := get("CACHE_FILE")) is not None:
        cfg.cache_file = Path(v)
    if (v := get("CACHE_TTL")) is not None:
        cfg.cache_ttl_seconds = _as_float(v, ENV_PREFIX + "CACHE_TTL")
    if (v := get("REFERENCE_HOST")) is not None:
        cfg.reference_host = v
    if (v := get("REFERENCE_WORKERS")) is not None:
        cfg.reference_workers = _as_int(v, ENV_PREFIX + "REFERENCE_WORKERS")
    if (v := get("API_URL")) is not None:
        cfg.api_url = v
    if (v := get("DRY_RUN")) is not None:
        cfg.dry_run = _as_bool(v)
    if (v := get("LOG_JSON")) is not None:
        cfg.logging_json_enabled = _as_bool(v)
    if (v := get("LOG_LEVEL")) is not None:
        cfg.logging_level = v
    if (v := get("SUMMARY_JSON")) is not None:
        cfg.summary_json = Path(v)


def load_config(
    path: str | Path | None = None, env: Mapping[str, str] | None = None
) -> MirrorConfig:
    """Build a :class:`MirrorConfig` from defaults, an optional YAML file and the environment.

    Precedence (lowest to highest): built-in defaults, YAML file, ``ISSUE_MIRROR_*``
    environment variables. An explicit ``path`` that does not exist is an error;
    the implicit default file is optional.
    """
    env = os.environ if env is None else env
    cfg = MirrorConfig()
    explicit = path if path is not None else env.get(ENV_PREFIX + "CONFIG")
    if explicit:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(f"Configuration file not found: {p}")
        _apply_file(cfg, _read_yaml(p), env)
    elif Path(CONFIG_DEFAULT).exists():
        _apply_file(cfg, _read_yaml(Path(CONFIG_DEFAULT)), env)
    _apply_env(cfg, env)
    cfg.validate()
    return cfg


__all__ = ["CONFIG_DEFAULT", "ConfigError", "MirrorConfig", "load_config"]
