"""Dev key generation (DEV-ONLY).

Writes one private key per supported key type plus a ``keys.yml`` manifest
that ``load_key_catalog`` understands.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict

import yaml
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

KEY_FILES = {
    "rsa": "rsa.private",
    "ed25519": "test_ed",
    "ecdsa-p256": "ecdsa_p256.private",
    "hmac": "hmac.secret",
}


def _pem(sk) -> bytes:
    return sk.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def generate_dev_keys(out_dir: str | Path, rsa_bits: int = 2048) -> Dict[str, Path]:
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    written: Dict[str, Path] = {}

    material = {
        "rsa": _pem(rsa.generate_private_key(public_exponent=65537, key_size=rsa_bits)),
        "ed25519": _pem(ed25519.Ed25519PrivateKey.generate()),
        "ecdsa-p256": _pem(ec.generate_private_key(ec.SECP256R1())),
        "hmac": os.urandom(32).hex().encode(),
    }
    for key_type, data in material.items():
        path = out / KEY_FILES[key_type]
        path.write_bytes(data)
        written[key_type] = path

    manifest = out / "keys.yml"
    with open(manifest, "w", encoding="utf-8") as f:
        yaml.safe_dump({"private": dict(KEY_FILES)}, f, sort_keys=True)
    written["manifest"] = manifest
    return written


__all__ = ["generate_dev_keys", "KEY_FILES"]
