"""Data model for conformance cases, outcomes and verdicts.

SigningRequest and outcomes are frozen dataclasses: built once per case,
consumed once by the adapter. The report side uses pydantic models so it
serializes straight to JSON.
"""
from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, computed_field

from ..errors import IllegalTransition
from .grammar import GRAMMAR


class OutcomeKind(str, Enum):
    SIGNED = "Signed"
    REJECTED = "Rejected"


class RuleId(str, Enum):
    FORMAT = "FormatViolation"
    ALGORITHM_KEY_MISMATCH = "AlgorithmKeyMismatchViolation"
    UNKNOWN_ALGORITHM = "UnknownAlgorithmViolation"
    DEPRECATED_ACCEPTED = "DeprecatedAlgorithmAccepted"
    FUTURE_CREATED_ACCEPTED = "FutureCreatedAccepted"
    EXPIRED_ACCEPTED = "ExpiredAccepted"
    ADAPTER_TIMEOUT = "AdapterTimeout"
    ADAPTER_FAILURE = "AdapterFailure"


@dataclass(frozen=True)
class SigningRequest:
    target_vector: str
    headers: Tuple[str, ...]
    algorithm: str
    key_type: str
    key_id: str
    private_key: str
    created: Optional[int] = None
    expires: Optional[int] = None


@dataclass(frozen=True)
class Timeout:
    seconds: float

    def __str__(self) -> str:
        return f"timeout after {self.seconds:g}s"


@dataclass(frozen=True)
class SignerError:
    reason: str
    exit_code: Optional[int] = None

    def __str__(self) -> str:
        if self.exit_code is None:
            return self.reason
        return f"exit {self.exit_code}: {self.reason}"


@dataclass(frozen=True)
class Signed:
    artifact: str
    kind = OutcomeKind.SIGNED


@dataclass(frozen=True)
class Rejected:
    cause: Union[Timeout, SignerError, object]
    kind = OutcomeKind.REJECTED

    @property
    def timed_out(self) -> bool:
        return isinstance(self.cause, Timeout)


SignatureOutcome = Union[Signed, Rejected]


class CaseState(str, Enum):
    BUILT = "Built"
    DISPATCHED = "Dispatched"
    SIGNED = "Signed"
    REJECTED = "Rejected"
    VERDICTED = "Verdicted"


_TRANSITIONS = {
    CaseState.BUILT: {CaseState.DISPATCHED},
    CaseState.DISPATCHED: {CaseState.SIGNED, CaseState.REJECTED},
    CaseState.SIGNED: {CaseState.VERDICTED},
    CaseState.REJECTED: {CaseState.VERDICTED},
    CaseState.VERDICTED: set(),
}


@dataclass
class Case:
    case_id: str
    request: SigningRequest
    resolved_key_type: str
    title: str = ""
    state: CaseState = CaseState.BUILT

    def advance(self, new_state: CaseState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise IllegalTransition(f"{self.case_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state


@dataclass(frozen=True)
class Expectation:
    kind: OutcomeKind
    rule: Optional[RuleId] = None  # rule that forces a rejection, if any


@dataclass(frozen=True)
class VerdictFragment:
    expected: OutcomeKind
    passed: bool
    violated_rule: Optional[RuleId] = None


@dataclass(frozen=True)
class ConformanceVerdict:
    case_id: str
    expected: OutcomeKind
    observed: SignatureOutcome
    passed: bool
    violated_rule: Optional[RuleId] = None
    expected_rule: Optional[RuleId] = None
    elapsed_ms: float = 0.0


class VerdictRecord(BaseModel):
    case_id: str
    expected: OutcomeKind
    observed: OutcomeKind
    passed: bool
    violated_rule: Optional[RuleId] = None
    expected_rule: Optional[RuleId] = None
    artifact: Optional[str] = None
    signature: Optional[str] = None  # base64 value of the artifact's signature parameter
    cause: Optional[str] = None
    elapsed_ms: float = 0.0

    @classmethod
    def from_verdict(cls, v: ConformanceVerdict) -> "VerdictRecord":
        obs = v.observed
        return cls(
            case_id=v.case_id,
            expected=v.expected,
            observed=obs.kind,
            passed=v.passed,
            violated_rule=v.violated_rule,
            expected_rule=v.expected_rule,
            artifact=obs.artifact if isinstance(obs, Signed) else None,
            signature=GRAMMAR.extract(obs.artifact) if isinstance(obs, Signed) else None,
            cause=str(obs.cause) if isinstance(obs, Rejected) else None,
            elapsed_ms=round(v.elapsed_ms, 3),
        )


class SuiteReport(BaseModel):
    generated_at: int = Field(default_factory=lambda: int(time.time()))
    total: int = 0
    passed: int = 0
    failed: int = 0
    planned: int = 0
    aborted: bool = False
    violations_by_rule: Dict[str, int] = Field(default_factory=dict)
    verdicts: List[VerdictRecord] = Field(default_factory=list)

    @computed_field
    @property
    def ok(self) -> bool:
        return not self.aborted and self.failed == 0

    @classmethod
    def from_verdicts(cls, verdicts: Iterable[ConformanceVerdict], planned: int | None = None,
                      aborted: bool = False) -> "SuiteReport":
        ordered = sorted(verdicts, key=lambda v: v.case_id)
        records = [VerdictRecord.from_verdict(v) for v in ordered]
        counts = Counter(r.violated_rule.value for r in records if r.violated_rule is not None)
        n_pass = sum(1 for r in records if r.passed)
        return cls(
            total=len(records),
            passed=n_pass,
            failed=len(records) - n_pass,
            planned=planned if planned is not None else len(records),
            aborted=aborted,
            violations_by_rule=dict(sorted(counts.items())),
            verdicts=records,
        )


__all__ = [
    "OutcomeKind",
    "RuleId",
    "SigningRequest",
    "Timeout",
    "SignerError",
    "Signed",
    "Rejected",
    "SignatureOutcome",
    "CaseState",
    "Case",
    "Expectation",
    "VerdictFragment",
    "ConformanceVerdict",
    "VerdictRecord",
    "SuiteReport",
]
