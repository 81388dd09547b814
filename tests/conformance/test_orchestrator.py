import asyncio
import json

import pytest

from sigconform.conformance.adapter import ReferenceSignerAdapter
from sigconform.conformance.models import OutcomeKind, Rejected, RuleId, Signed, SignerError
from sigconform.conformance.orchestrator import CaseMatrixOrchestrator
from sigconform.crypto.alg_registry import default_registry
from sigconform.errors import SignerUnavailable


class AlwaysSign:
    """Non-conforming signer: signs everything it is handed."""

    def __init__(self, artifact='keyId="test",signature="QUJDRA=="'):
        self.artifact = artifact
        self.calls = []

    async def generate(self, vector, request):
        self.calls.append(request)
        return Signed(self.artifact)


class AlwaysReject:
    async def generate(self, vector, request):
        return Rejected(SignerError("no"))


def _orch(catalog, adapter, **kw):
    return CaseMatrixOrchestrator(default_registry(), catalog, adapter, **kw)


def test_reference_signer_is_fully_conformant(catalog):
    orch = _orch(catalog, ReferenceSignerAdapter())
    report = orch.run_sync()
    failed = [v.case_id for v in report.verdicts if not v.passed]
    assert failed == []
    assert report.ok
    assert report.total == report.planned == len(orch.build_cases())
    assert [v.case_id for v in report.verdicts] == sorted(v.case_id for v in report.verdicts)
    by_id = {v.case_id: v for v in report.verdicts}
    assert by_id["scheme/rsa-sha256/rsa"].observed is OutcomeKind.SIGNED
    assert by_id["scheme/rsa-sha1/ed25519"].observed is OutcomeKind.REJECTED
    for kt in ("rsa", "ed25519", "ecdsa-p256"):
        assert by_id[f"keys/hs2019/{kt}"].observed is OutcomeKind.SIGNED


def test_permissive_signer_violations_are_all_reported(catalog):
    adapter = AlwaysSign()
    orch = _orch(catalog, adapter)
    report = orch.run_sync()
    # every case ran; none halted the matrix
    assert len(adapter.calls) == report.total == report.planned
    by_id = {v.case_id: v for v in report.verdicts}
    assert by_id["probe/unknown-algorithm"].violated_rule is RuleId.UNKNOWN_ALGORITHM
    assert by_id["probe/key-type-mismatch/rsa-sha256"].violated_rule is RuleId.ALGORITHM_KEY_MISMATCH
    assert by_id["scheme/rsa-sha1/rsa"].violated_rule is RuleId.DEPRECATED_ACCEPTED
    assert by_id["temporal/created-future"].violated_rule is RuleId.FUTURE_CREATED_ACCEPTED
    assert by_id["temporal/expires-past"].violated_rule is RuleId.EXPIRED_ACCEPTED
    assert by_id["temporal/no-skew"].passed
    assert not report.ok
    assert report.failed == sum(1 for v in report.verdicts if v.expected is OutcomeKind.REJECTED)
    assert report.violations_by_rule["UnknownAlgorithmViolation"] == 1


def test_malformed_artifacts_are_format_violations(catalog):
    report = _orch(catalog, AlwaysSign(artifact="signature=:QUJD:")).run_sync()
    assert report.failed == report.total
    assert set(report.violations_by_rule) == {"FormatViolation"}


def test_rejecting_signer_fails_positive_cases_only(catalog):
    report = _orch(catalog, AlwaysReject()).run_sync()
    for v in report.verdicts:
        if v.expected is OutcomeKind.SIGNED:
            assert v.violated_rule is RuleId.ADAPTER_FAILURE
            assert v.cause == "no"
        else:
            assert v.passed


def test_concurrency_is_bounded(catalog):
    state = {"inflight": 0, "peak": 0}

    class Slow:
        async def generate(self, vector, request):
            state["inflight"] += 1
            state["peak"] = max(state["peak"], state["inflight"])
            await asyncio.sleep(0.01)
            state["inflight"] -= 1
            return Rejected(SignerError("slow"))

    report = _orch(catalog, Slow(), concurrency=3).run_sync()
    assert report.total == report.planned
    assert 1 < state["peak"] <= 3


def test_abort_keeps_completed_verdicts(catalog):
    cancelled = []

    class AbortsOnThirdCall:
        def __init__(self, event):
            self.event = event
            self.n = 0

        async def generate(self, vector, request):
            self.n += 1
            if self.n < 3:
                return Rejected(SignerError("fast"))
            self.event.set()
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                cancelled.append(request)
                raise

    async def go():
        abort = asyncio.Event()
        orch = _orch(catalog, AbortsOnThirdCall(abort), concurrency=1)
        return orch, await orch.run(abort=abort)

    orch, report = asyncio.run(go())
    assert report.aborted
    assert not report.ok
    assert report.total == 2
    assert report.planned > 2
    assert len(orch.completed) == 2
    assert len(cancelled) == 1


def test_infrastructure_failure_aborts_run(catalog):
    class Unreachable:
        async def generate(self, vector, request):
            raise SignerUnavailable("down")

    with pytest.raises(SignerUnavailable):
        _orch(catalog, Unreachable()).run_sync()


def test_duplicate_case_ids_refused(catalog):
    orch = _orch(catalog, AlwaysSign())
    cases = orch.build_cases()
    with pytest.raises(ValueError):
        orch.run_sync(cases + cases[:1])


def test_report_serializes(catalog):
    report = _orch(catalog, AlwaysSign()).run_sync()
    data = report.model_dump(mode="json")
    v = next(r for r in data["verdicts"] if r["case_id"] == "probe/unknown-algorithm")
    assert v["expected"] == "Rejected"
    assert v["observed"] == "Signed"
    assert v["violated_rule"] == "UnknownAlgorithmViolation"
    assert v["artifact"] == 'keyId="test",signature="QUJDRA=="'
    assert v["signature"] == "QUJDRA=="
    assert data["ok"] is False
    assert json.loads(report.model_dump_json())["ok"] is False


def test_report_ok_field_when_conformant(catalog):
    report = _orch(catalog, ReferenceSignerAdapter()).run_sync()
    data = json.loads(report.model_dump_json())
    assert data["ok"] is True
    rejected = next(r for r in data["verdicts"] if r["observed"] == "Rejected")
    assert rejected["signature"] is None
