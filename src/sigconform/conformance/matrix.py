"""Case matrix construction.

The matrix is a pure function of the registry, the key catalog and a
reference time: no signer is consulted and nothing is dispatched here.
Case ids are deterministic, so two builds over the same inputs agree.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..config import TEMPORAL_SKEW_SEC
from ..crypto.alg_registry import HS2019, AlgorithmRegistry, AlgorithmScheme
from ..crypto.keycatalog import DEFAULT_KEY_ID, KeyCatalog
from .models import Case, OutcomeKind, SigningRequest

UNKNOWN_ALGORITHM = "unknown"
UNKNOWN_KEY_TYPE = "unknown"


@dataclass(frozen=True)
class MatrixOptions:
    baseline_scheme: str = HS2019
    baseline_key_type: str = "rsa"
    deprecated_probe_key_type: str = "ed25519"
    key_id: str = DEFAULT_KEY_ID
    include_incompatible: bool = True
    skew_seconds: int = TEMPORAL_SKEW_SEC
    default_vector: str = "default-test"
    basic_vector: str = "basic-request"


def expectation_table(registry: AlgorithmRegistry) -> List[Tuple[AlgorithmScheme, OutcomeKind]]:
    """Registry-driven (scheme, outcome kind) pairs for compatible keys."""
    return [
        (s, OutcomeKind.REJECTED if s.deprecated else OutcomeKind.SIGNED)
        for s in registry.list_schemes()
    ]


def _scheme_key_types(scheme: AlgorithmScheme, catalog_types: Sequence[str], opts: MatrixOptions) -> List[str]:
    compatible = [kt for kt in catalog_types if scheme.accepts_key_type(kt)]
    chosen = list(catalog_types) if opts.include_incompatible else compatible
    if not chosen and scheme.deprecated:
        # deprecation must be probed even with no compatible key material
        if opts.deprecated_probe_key_type in catalog_types:
            chosen = [opts.deprecated_probe_key_type]
        elif catalog_types:
            chosen = [catalog_types[0]]
    return chosen


def build_case_matrix(registry: AlgorithmRegistry, catalog: KeyCatalog, now: int,
                      options: Optional[MatrixOptions] = None) -> List[Case]:
    """Enumerate every case of a conformance run.

    Raises ``KeyCatalogError`` when the baseline key type has no material,
    since every probe below depends on it.
    """
    opts = options or MatrixOptions()
    catalog_types = sorted(catalog.all_private_key_types())
    baseline = catalog.resolve(opts.baseline_key_type)
    cases: List[Case] = []

    def add(case_id: str, title: str, *, vector: str, headers: Sequence[str], algorithm: str,
            key_type: str, reference: str, resolved_key_type: str,
            created: Optional[int] = None, expires: Optional[int] = None) -> None:
        request = SigningRequest(
            target_vector=vector,
            headers=tuple(headers),
            algorithm=algorithm,
            key_type=key_type,
            key_id=opts.key_id,
            private_key=reference,
            created=created,
            expires=expires,
        )
        cases.append(Case(case_id=case_id, request=request, resolved_key_type=resolved_key_type, title=title))

    def add_baseline(case_id: str, title: str, **kw) -> None:
        kw.setdefault("vector", opts.default_vector)
        kw.setdefault("headers", ("date",))
        kw.setdefault("algorithm", opts.baseline_scheme)
        kw.setdefault("key_type", baseline.key_type)
        add(case_id, title, reference=baseline.reference, resolved_key_type=baseline.key_type, **kw)

    add_baseline("encoding/default-test", "signature is the base64 encoding of the algorithm output",
                 headers=("digest",))
    add_baseline("encoding/basic-request", "signature covers the listed headers of the message",
                 vector=opts.basic_vector)

    for scheme, _ in expectation_table(registry):
        for kt in _scheme_key_types(scheme, catalog_types, opts):
            key = catalog.resolve(kt)
            verb = "reject deprecated" if scheme.deprecated else "sign for"
            add(f"scheme/{scheme.name}/{kt}", f"{verb} algorithm {scheme.name} with a {kt} key",
                vector=opts.basic_vector, headers=("date",), algorithm=scheme.name, key_type=kt,
                reference=key.reference, resolved_key_type=key.key_type)

    add_baseline("probe/unknown-algorithm", "scheme must be in the algorithm registry",
                 vector=opts.basic_vector, algorithm=UNKNOWN_ALGORITHM)
    for scheme, kind in expectation_table(registry):
        if kind is OutcomeKind.SIGNED:
            add_baseline(f"probe/key-type-mismatch/{scheme.name}",
                         f"error when algorithm {scheme.name} differs from key metadata",
                         vector=opts.basic_vector, algorithm=scheme.name, key_type=UNKNOWN_KEY_TYPE)

    add_baseline("temporal/no-skew", "no temporal parameters")
    add_baseline("temporal/created-future", "created timestamp in the future is not processed",
                 created=now + opts.skew_seconds)
    add_baseline("temporal/expires-past", "expires timestamp in the past is not processed",
                 expires=now - opts.skew_seconds)

    hs2019 = registry.get(HS2019)
    if hs2019 is not None and not hs2019.deprecated:
        for kt in catalog_types:
            if not hs2019.accepts_key_type(kt):
                continue
            key = catalog.resolve(kt)
            add(f"keys/{HS2019}/{kt}", f"sign with a {kt} private key",
                vector=opts.default_vector, headers=("host", "digest"), algorithm=HS2019, key_type=kt,
                reference=key.reference, resolved_key_type=key.key_type)

    return cases


__all__ = ["MatrixOptions", "build_case_matrix", "expectation_table", "UNKNOWN_ALGORITHM", "UNKNOWN_KEY_TYPE"]
