"""Suite configuration loader.

Defaults first, then an optional YAML file, then environment overrides.
Unlike the process-level constants in ``sigconform.config``, a malformed
suite file or override aborts the run with ``ConfigError``.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .. import config as env
from ..errors import ConfigError

_DEF_NAME = os.path.join("config", "sigconform.yml")


@dataclass
class SuiteConfig:
    signer_command: str = env.SIGNER_COMMAND
    signer_url: str = env.SIGNER_URL
    signer_timeout_sec: float = env.SIGNER_TIMEOUT_SEC
    header_delimiter: str = env.HEADER_DELIMITER
    concurrency: int = env.MAX_CONCURRENCY
    keys_manifest: str = env.KEYS_MANIFEST
    registry_file: str = env.REGISTRY_FILE
    vectors_dir: str = env.VECTORS_DIR
    skew_seconds: int = env.TEMPORAL_SKEW_SEC
    baseline_scheme: str = "hs2019"
    baseline_key_type: str = "rsa"
    deprecated_probe_key_type: str = "ed25519"
    key_id: str = "test"
    include_incompatible: bool = True

    def __post_init__(self):
        if self.concurrency < 1:
            raise ConfigError("concurrency must be >= 1")
        if self.signer_timeout_sec <= 0:
            raise ConfigError("signer timeout must be positive")


_ENV_MAP = {
    "signer_command": ("SIGCONFORM_SIGNER_CMD", str),
    "signer_url": ("SIGCONFORM_SIGNER_URL", str),
    "signer_timeout_sec": ("SIGCONFORM_SIGNER_TIMEOUT_SEC", float),
    "header_delimiter": ("SIGCONFORM_HEADER_DELIMITER", str),
    "concurrency": ("SIGCONFORM_CONCURRENCY", int),
    "keys_manifest": ("SIGCONFORM_KEYS", str),
    "registry_file": ("SIGCONFORM_REGISTRY", str),
    "vectors_dir": ("SIGCONFORM_VECTORS_DIR", str),
    "skew_seconds": ("SIGCONFORM_SKEW_SEC", int),
}


def _as_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in ("1", "true", "yes", "y")


def _cast(name: str, value: Any, cast) -> Any:
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid value for {name}: {value!r}") from e


def load_suite_config(path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> SuiteConfig:
    data: Dict[str, Any] = {}
    cfg_path = Path(path) if path else Path.cwd() / _DEF_NAME
    if path and not cfg_path.exists():
        raise ConfigError(f"suite config not found: {cfg_path}")
    if cfg_path.exists():
        try:
            with open(cfg_path, "r", encoding="utf-8") as f:
                file_cfg = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"malformed suite config {cfg_path}") from e
        if not isinstance(file_cfg, dict):
            raise ConfigError(f"suite config {cfg_path} must be a mapping")
        data.update(file_cfg)
    # Env overrides
    for k, (var, cast) in _ENV_MAP.items():
        if var in os.environ:
            data[k] = _cast(var, os.environ[var], cast)
    for k, v in (overrides or {}).items():
        if v is not None:
            data[k] = v

    known = {f.name: f for f in fields(SuiteConfig)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ConfigError(f"unknown suite config keys: {', '.join(unknown)}")
    kwargs: Dict[str, Any] = {}
    for k, v in data.items():
        default = getattr(SuiteConfig, k)
        if isinstance(default, bool):
            kwargs[k] = _as_bool(v)
        elif isinstance(default, (int, float)):
            kwargs[k] = _cast(k, v, type(default))
        else:
            kwargs[k] = "" if v is None else str(v)
    return SuiteConfig(**kwargs)


__all__ = ["SuiteConfig", "load_suite_config"]
