"""Catalog of private key material available to a conformance run.

The catalog never opens key files; ``reference`` is handed to the signer
as-is. Manifest shapes accepted by ``load_key_catalog``:

  mapping (key type -> file), relative to the manifest directory:
      rsa: rsa.private
      ed25519: test_ed

  explicit list:
      keys:
        - {key_id: test, key_type: rsa, reference: rsa.private}
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Tuple

import yaml

from ..errors import ConfigError, KeyCatalogError

DEFAULT_KEY_ID = "test"


@dataclass(frozen=True)
class KeyMaterial:
    key_id: str
    key_type: str
    reference: str


class KeyCatalog:
    def __init__(self, keys: Iterable[KeyMaterial]):
        self._keys: Tuple[KeyMaterial, ...] = tuple(keys)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str], base_dir: str | Path | None = None,
                     key_id: str = DEFAULT_KEY_ID) -> "KeyCatalog":
        base = Path(base_dir) if base_dir else None
        keys = []
        for key_type, ref in mapping.items():
            path = Path(ref)
            if base is not None and not path.is_absolute():
                path = base / path
            keys.append(KeyMaterial(key_id=key_id, key_type=str(key_type).lower(), reference=str(path)))
        return cls(keys)

    def keys_of_type(self, key_type: str) -> Tuple[KeyMaterial, ...]:
        kt = key_type.lower()
        return tuple(k for k in self._keys if k.key_type == kt)

    def all_private_key_types(self) -> FrozenSet[str]:
        return frozenset(k.key_type for k in self._keys)

    def resolve(self, key_type: str) -> KeyMaterial:
        found = self.keys_of_type(key_type)
        if not found:
            raise KeyCatalogError(f"no key material of type {key_type!r} in catalog")
        return found[0]

    def __iter__(self):
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)


def _material_from_entry(entry: Dict[str, Any], base: Path) -> KeyMaterial:
    if not isinstance(entry, dict):
        raise ConfigError("key manifest entries must be mappings")
    key_type = str(entry.get("key_type") or entry.get("type") or "").lower()
    ref = entry.get("reference") or entry.get("path")
    if not key_type or not ref:
        raise ConfigError(f"key manifest entry needs key_type and reference: {entry}")
    path = Path(str(ref))
    if not path.is_absolute():
        path = base / path
    return KeyMaterial(key_id=str(entry.get("key_id", DEFAULT_KEY_ID)), key_type=key_type, reference=str(path))


def load_key_catalog(path: str | Path) -> KeyCatalog:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise KeyCatalogError(f"cannot read key manifest {p}") from e
    try:
        data = json.loads(text) if p.suffix == ".json" else yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"malformed key manifest {p}") from e
    base = p.parent
    if isinstance(data, dict) and isinstance(data.get("keys"), list):
        return KeyCatalog(_material_from_entry(e, base) for e in data["keys"])
    if isinstance(data, dict):
        # original suite layout nests the mapping under "private"
        mapping = data.get("private", data)
        if not isinstance(mapping, dict) or not all(isinstance(v, str) for v in mapping.values()):
            raise ConfigError(f"key manifest {p}: mapping values must be file references")
        return KeyCatalog.from_mapping(mapping, base_dir=base)
    raise ConfigError(f"key manifest {p} must be a mapping")


__all__ = ["KeyMaterial", "KeyCatalog", "load_key_catalog", "DEFAULT_KEY_ID"]
