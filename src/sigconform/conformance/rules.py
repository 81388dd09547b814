"""Normative rules for signature generation, as pure predicates.

Rules, in the order used to pick the reported violation when several apply:

  1. format          Signed artifact must satisfy the signature grammar
  2. algorithm/key   a known scheme's key family must include the requested
                     key type, and the requested type must match the key
  3. registry        the scheme must be in the algorithm registry
  4. deprecation     deprecated schemes must always be rejected
  5. freshness       created > now must be rejected
  6. expiry          expires < now must be rejected

Rules 2-6 only look at the request's static attributes, so the expected
outcome can be fixed before the signer is called. Nothing here raises for a
violation; violations are returned as ``RuleId`` values.
"""
from __future__ import annotations

from typing import Callable, Optional, Tuple

from ..crypto.alg_registry import AlgorithmRegistry, AlgorithmScheme, default_registry
from .grammar import GRAMMAR, SignatureGrammar
from .models import (
    Expectation,
    OutcomeKind,
    Rejected,
    RuleId,
    SignatureOutcome,
    Signed,
    SigningRequest,
    VerdictFragment,
)

Predicate = Callable[[SigningRequest, Optional[AlgorithmScheme], str, int], bool]


def key_mismatch(request: SigningRequest, scheme: Optional[AlgorithmScheme], key_type: str, now: int) -> bool:
    if scheme is None:
        return False
    declared = request.key_type.lower()
    if not scheme.accepts_key_type(declared):
        return True
    return declared != (key_type or "").lower()


def unknown_algorithm(request: SigningRequest, scheme: Optional[AlgorithmScheme], key_type: str, now: int) -> bool:
    return scheme is None


def deprecated_algorithm(request: SigningRequest, scheme: Optional[AlgorithmScheme], key_type: str, now: int) -> bool:
    return scheme is not None and scheme.deprecated


def created_in_future(request: SigningRequest, scheme: Optional[AlgorithmScheme], key_type: str, now: int) -> bool:
    return request.created is not None and request.created > now


def expires_in_past(request: SigningRequest, scheme: Optional[AlgorithmScheme], key_type: str, now: int) -> bool:
    return request.expires is not None and request.expires < now


REJECTION_RULES: Tuple[Tuple[RuleId, Predicate], ...] = (
    (RuleId.ALGORITHM_KEY_MISMATCH, key_mismatch),
    (RuleId.UNKNOWN_ALGORITHM, unknown_algorithm),
    (RuleId.DEPRECATED_ACCEPTED, deprecated_algorithm),
    (RuleId.FUTURE_CREATED_ACCEPTED, created_in_future),
    (RuleId.EXPIRED_ACCEPTED, expires_in_past),
)


class ConformanceRules:
    def __init__(self, registry: AlgorithmRegistry | None = None, grammar: SignatureGrammar | None = None):
        self.registry = registry or default_registry()
        self.grammar = grammar or GRAMMAR

    def scheme_for(self, request: SigningRequest) -> Optional[AlgorithmScheme]:
        return self.registry.get(request.algorithm)

    def expected_outcome(self, request: SigningRequest, scheme: Optional[AlgorithmScheme], key_type: str,
                         now: int) -> Expectation:
        # a scheme the registry does not hold is unknown whatever the caller passed
        if scheme is not None and not self.registry.is_known(scheme.name):
            scheme = None
        for rule, pred in REJECTION_RULES:
            if pred(request, scheme, key_type, now):
                return Expectation(OutcomeKind.REJECTED, rule)
        return Expectation(OutcomeKind.SIGNED)

    def judge(self, request: SigningRequest, expectation: Expectation, outcome: SignatureOutcome) -> VerdictFragment:
        if isinstance(outcome, Signed):
            if not self.grammar.matches(outcome.artifact):
                return VerdictFragment(expectation.kind, False, RuleId.FORMAT)
            if expectation.kind is OutcomeKind.REJECTED:
                return VerdictFragment(expectation.kind, False, expectation.rule)
            return VerdictFragment(expectation.kind, True)
        if isinstance(outcome, Rejected):
            if expectation.kind is OutcomeKind.REJECTED:
                return VerdictFragment(expectation.kind, True)
            rule = RuleId.ADAPTER_TIMEOUT if outcome.timed_out else RuleId.ADAPTER_FAILURE
            return VerdictFragment(expectation.kind, False, rule)
        raise TypeError(f"not a signature outcome: {outcome!r}")

    def evaluate(self, request: SigningRequest, outcome: SignatureOutcome, scheme: Optional[AlgorithmScheme],
                 key_type: str, now: int) -> VerdictFragment:
        return self.judge(request, self.expected_outcome(request, scheme, key_type, now), outcome)


__all__ = [
    "ConformanceRules",
    "REJECTION_RULES",
    "key_mismatch",
    "unknown_algorithm",
    "deprecated_algorithm",
    "created_in_future",
    "expires_in_past",
]
