"""Signing helpers for the reference signer (DEV-ONLY).

hs2019 derives the concrete algorithm from the key:
  rsa        -> RSASSA-PSS / SHA-512
  ed25519    -> Ed25519
  ecdsa-p256 -> ECDSA P-256 / SHA-512
  ecdsa-p384 -> ECDSA P-384 / SHA-512
Named schemes pin the digest (rsa-sha256 -> PKCS#1 v1.5 / SHA-256 etc.).
"""
from __future__ import annotations

import base64
import hmac as _hmac
import hashlib

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa

_CURVES = {"secp256r1": "ecdsa-p256", "secp384r1": "ecdsa-p384"}


def load_private_key(data: bytes):
    """Return a pyca private key, or the raw bytes for shared secrets."""
    if data.lstrip().startswith(b"-----BEGIN"):
        return serialization.load_pem_private_key(data, password=None)
    return data.strip()


def key_type_of(sk) -> str:
    if isinstance(sk, rsa.RSAPrivateKey):
        return "rsa"
    if isinstance(sk, ed25519.Ed25519PrivateKey):
        return "ed25519"
    if isinstance(sk, ec.EllipticCurvePrivateKey):
        return _CURVES.get(sk.curve.name, f"ecdsa-{sk.curve.name}")
    if isinstance(sk, (bytes, bytearray)):
        return "hmac"
    return "unknown"


def sign_message(alg: str, sk, message: str) -> str:
    alg_l = alg.lower()
    msg_bytes = message.encode()
    if alg_l == "hs2019":
        if isinstance(sk, rsa.RSAPrivateKey):
            sig = sk.sign(msg_bytes, padding.PSS(mgf=padding.MGF1(hashes.SHA512()), salt_length=64), hashes.SHA512())
        elif isinstance(sk, ed25519.Ed25519PrivateKey):
            sig = sk.sign(msg_bytes)
        elif isinstance(sk, ec.EllipticCurvePrivateKey):
            sig = sk.sign(msg_bytes, ec.ECDSA(hashes.SHA512()))
        else:
            raise ValueError("hs2019 requires an asymmetric key")
        return base64.b64encode(sig).decode()
    if alg_l in ("rsa-sha256", "rsa-sha1"):
        if not isinstance(sk, rsa.RSAPrivateKey):
            raise ValueError(f"{alg_l} requires an RSA key")
        digest = hashes.SHA256() if alg_l == "rsa-sha256" else hashes.SHA1()
        return base64.b64encode(sk.sign(msg_bytes, padding.PKCS1v15(), digest)).decode()
    if alg_l == "ecdsa-sha256":
        if not isinstance(sk, ec.EllipticCurvePrivateKey):
            raise ValueError("ecdsa-sha256 requires an EC key")
        return base64.b64encode(sk.sign(msg_bytes, ec.ECDSA(hashes.SHA256()))).decode()
    if alg_l == "hmac-sha256":
        if not isinstance(sk, (bytes, bytearray)):
            raise ValueError("hmac-sha256 requires a shared secret")
        return base64.b64encode(_hmac.new(bytes(sk), msg_bytes, hashlib.sha256).digest()).decode()
    raise ValueError(f"Unsupported alg: {alg}")


__all__ = ["load_private_key", "key_type_of", "sign_message"]
