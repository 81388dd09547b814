"""Format contract for a produced signature artifact.

A valid artifact carries a ``signature`` parameter whose quoted value is
base64 (letters, digits, ``+``, ``/``, ``=`` padding). This is a transport
check only; it says nothing about cryptographic correctness.
"""
from __future__ import annotations

import re
from typing import Optional

SIGNATURE_PARAM_RE = re.compile(r"""signature=["']([a-z0-9=/+]+)["']""", re.IGNORECASE)


class SignatureGrammar:
    pattern = SIGNATURE_PARAM_RE

    def matches(self, artifact: str) -> bool:
        if not isinstance(artifact, str):
            return False
        return self.pattern.search(artifact) is not None

    def extract(self, artifact: str) -> Optional[str]:
        if not isinstance(artifact, str):
            return None
        m = self.pattern.search(artifact)
        return m.group(1) if m else None


GRAMMAR = SignatureGrammar()

__all__ = ["SignatureGrammar", "GRAMMAR", "SIGNATURE_PARAM_RE"]
