"""HTTP message fixtures that signing requests are made over.

Vector content is opaque to the rules; adapters hand the raw message to the
signer. Built-in fixtures follow the draft-cavage test values. A vectors
directory may override them with ``<name>.txt`` / ``<name>.http`` files.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import VectorNotFound

_DRAFT_MESSAGE = (
    "POST /foo?param=value&pet=dog HTTP/1.1\r\n"
    "Host: example.com\r\n"
    "Date: Sun, 05 Jan 2014 21:31:40 GMT\r\n"
    "Content-Type: application/json\r\n"
    "Digest: SHA-256=X48E9qOokqqrvdts8nOJRJN3OWDUoyWxBf7kbu9DBPE=\r\n"
    "Content-Length: 18\r\n"
    "\r\n"
    '{"hello": "world"}'
)

BUILTIN_VECTORS: Dict[str, str] = {
    "default-test": _DRAFT_MESSAGE,
    "basic-request": _DRAFT_MESSAGE,
}


@dataclass(frozen=True)
class HttpMessage:
    method: str
    target: str
    headers: Tuple[Tuple[str, str], ...]
    body: str = ""

    def header(self, name: str) -> Optional[str]:
        # repeated headers are joined per RFC 7230 3.2.2
        vals = [v for k, v in self.headers if k == name.lower()]
        return ", ".join(vals) if vals else None


def load_vector(name: str, vectors_dir: str | Path | None = None) -> str:
    if vectors_dir:
        base = Path(vectors_dir)
        for suffix in (".txt", ".http"):
            p = base / f"{name}{suffix}"
            if p.exists():
                return p.read_text(encoding="utf-8")
    try:
        return BUILTIN_VECTORS[name]
    except KeyError:
        raise VectorNotFound(f"no fixture for test vector {name!r}") from None


def parse_http_message(raw: str) -> HttpMessage:
    text = raw.replace("\r\n", "\n")
    head, _, body = text.partition("\n\n")
    lines = head.split("\n")
    if not lines or not lines[0].strip():
        raise ValueError("empty HTTP message")
    parts = lines[0].split()
    if len(parts) < 2:
        raise ValueError(f"invalid request line: {lines[0]!r}")
    headers: List[Tuple[str, str]] = []
    for ln in lines[1:]:
        if not ln.strip():
            continue
        if ":" not in ln:
            raise ValueError(f"invalid header line: {ln!r}")
        k, v = ln.split(":", 1)
        headers.append((k.strip().lower(), v.strip()))
    return HttpMessage(method=parts[0].upper(), target=parts[1], headers=tuple(headers), body=body)


def build_signing_string(msg: HttpMessage, headers: Sequence[str], created: Optional[int] = None,
                         expires: Optional[int] = None) -> str:
    """Signing string: one ``name: value`` line per covered header, in order.

    Pseudo-headers: (request-target), (created), (expires).
    """
    lines: List[str] = []
    for h in headers:
        lc = h.lower()
        if lc == "(request-target)":
            val = f"{msg.method.lower()} {msg.target}"
        elif lc == "(created)":
            if created is None:
                raise ValueError("(created) covered but no created parameter")
            val = str(created)
        elif lc == "(expires)":
            if expires is None:
                raise ValueError("(expires) covered but no expires parameter")
            val = str(expires)
        else:
            val = msg.header(lc)
            if val is None:
                raise ValueError(f"covered header {lc!r} missing from message")
        lines.append(f"{lc}: {val}")
    return "\n".join(lines)


__all__ = ["HttpMessage", "BUILTIN_VECTORS", "load_vector", "parse_http_message", "build_signing_string"]
