"""Algorithm registry for HTTP Signatures conformance runs.

Default table (HTTP Signatures Algorithms Registry):
  - hs2019        active (negotiated; concrete algorithm derived from key metadata)
  - rsa-sha256    active
  - rsa-sha1      deprecated
  - hmac-sha256   deprecated
  - ecdsa-sha256  deprecated

Every scheme carries the family of key types it may be used with. The
registry exposes pure lookups:
  list_schemes() -> tuple of AlgorithmScheme
  is_known(name) / is_deprecated(name) -> bool
  get(name) -> AlgorithmScheme | None   ("not found" is None, never an exception)

A registry may also be loaded from an external YAML/JSON source:
    - {scheme: "hs2019", deprecated: false}
    - {scheme: "rsa-sha1", deprecated: true, key_types: ["rsa"]}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from ..errors import ConfigError

HS2019 = "hs2019"

# Scheme family -> key types a signer may pair with it
KEY_FAMILIES: Dict[str, Tuple[str, ...]] = {
    "rsa": ("rsa",),
    "hmac": ("hmac",),
    "ecdsa": ("ecdsa-p256",),
    "ed25519": ("ed25519",),
    HS2019: ("rsa", "ed25519", "ecdsa-p256", "ecdsa-p384"),
}

DEFAULT_REGISTRY: List[Dict[str, Any]] = [
    {"scheme": "hs2019", "deprecated": False},
    {"scheme": "rsa-sha256", "deprecated": False},
    {"scheme": "rsa-sha1", "deprecated": True},
    {"scheme": "hmac-sha256", "deprecated": True},
    {"scheme": "ecdsa-sha256", "deprecated": True},
]


def default_key_types(name: str) -> Tuple[str, ...]:
    """Compatible key types for a scheme name, by family prefix."""
    n = name.lower()
    if n in KEY_FAMILIES:
        return KEY_FAMILIES[n]
    family = n.split("-", 1)[0]
    return KEY_FAMILIES.get(family, ())


@dataclass(frozen=True)
class AlgorithmScheme:
    name: str
    deprecated: bool = False
    key_types: Tuple[str, ...] = field(default=())

    def accepts_key_type(self, key_type: str) -> bool:
        return key_type.lower() in self.key_types


class AlgorithmRegistry:
    def __init__(self, schemes: Iterable[AlgorithmScheme]):
        ordered: List[AlgorithmScheme] = []
        index: Dict[str, AlgorithmScheme] = {}
        for s in schemes:
            key = s.name.lower()
            if not key:
                raise ConfigError("registry entry with empty scheme name")
            if key in index:
                raise ConfigError(f"duplicate scheme in registry: {s.name}")
            index[key] = s
            ordered.append(s)
        self._schemes = tuple(ordered)
        self._index = index

    def list_schemes(self) -> Tuple[AlgorithmScheme, ...]:
        return self._schemes

    def get(self, name: str) -> Optional[AlgorithmScheme]:
        return self._index.get((name or "").lower())

    def is_known(self, name: str) -> bool:
        return self.get(name) is not None

    def is_deprecated(self, name: str) -> bool:
        s = self.get(name)
        return bool(s and s.deprecated)

    def classify(self, name: str) -> str:
        s = self.get(name)
        if s is None:
            return "unknown"
        return "deprecated" if s.deprecated else "active"

    def __len__(self) -> int:
        return len(self._schemes)


def _scheme_from_entry(entry: Dict[str, Any]) -> AlgorithmScheme:
    if not isinstance(entry, dict):
        raise ConfigError(f"registry entry must be a mapping, got {type(entry).__name__}")
    name = str(entry.get("scheme") or entry.get("name") or "").strip()
    if not name:
        raise ConfigError("registry entry with empty scheme name")
    key_types = entry.get("key_types")
    if key_types is None:
        kt = default_key_types(name)
    elif isinstance(key_types, (list, tuple)):
        kt = tuple(str(k).lower() for k in key_types)
    else:
        raise ConfigError(f"key_types for {name} must be a list")
    return AlgorithmScheme(name=name.lower(), deprecated=bool(entry.get("deprecated", False)), key_types=kt)


def registry_from_entries(entries: Iterable[Dict[str, Any]]) -> AlgorithmRegistry:
    return AlgorithmRegistry(_scheme_from_entry(e) for e in entries)


def default_registry() -> AlgorithmRegistry:
    return registry_from_entries(DEFAULT_REGISTRY)


def load_registry(path: str | Path) -> AlgorithmRegistry:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read registry source {p}") from e
    try:
        data = json.loads(text) if p.suffix == ".json" else yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"malformed registry source {p}") from e
    # accept either a bare list or {"registry": [...]}
    if isinstance(data, dict):
        data = data.get("registry")
    if not isinstance(data, list):
        raise ConfigError(f"registry source {p} must contain a list of schemes")
    return registry_from_entries(data)


__all__ = [
    "HS2019",
    "KEY_FAMILIES",
    "AlgorithmScheme",
    "AlgorithmRegistry",
    "default_key_types",
    "default_registry",
    "load_registry",
    "registry_from_entries",
]
