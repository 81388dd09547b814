import time

import pytest

from sigconform.conformance.models import (
    Expectation,
    OutcomeKind,
    Rejected,
    RuleId,
    Signed,
    SignerError,
    SigningRequest,
    Timeout,
)
from sigconform.conformance.rules import ConformanceRules
from sigconform.crypto.alg_registry import AlgorithmScheme, default_registry

NOW = 1_700_000_000
GOOD = Signed('keyId="test",algorithm="rsa-sha256",headers="date",signature="c2lnbmVk"')
BAD_FORMAT = Signed("signature=:not base64:")
REFUSED = Rejected(SignerError("nope", exit_code=1))

rules = ConformanceRules(default_registry())


def _req(algorithm="rsa-sha256", key_type="rsa", created=None, expires=None, headers=("date",)):
    return SigningRequest(
        target_vector="basic-request",
        headers=headers,
        algorithm=algorithm,
        key_type=key_type,
        key_id="test",
        private_key="/keys/rsa.private",
        created=created,
        expires=expires,
    )


def _eval(req, outcome, resolved="rsa"):
    return rules.evaluate(req, outcome, rules.scheme_for(req), resolved, NOW)


def test_rsa_sha256_with_rsa_key_expects_signed():
    frag = _eval(_req(), GOOD)
    assert frag.expected is OutcomeKind.SIGNED
    assert frag.passed
    assert frag.violated_rule is None


def test_rsa_sha256_with_unknown_key_type():
    req = _req(key_type="unknown")
    assert _eval(req, REFUSED).passed
    frag = _eval(req, GOOD)
    assert frag.expected is OutcomeKind.REJECTED
    assert not frag.passed
    assert frag.violated_rule is RuleId.ALGORITHM_KEY_MISMATCH


def test_declared_key_type_differs_from_resolved_key():
    frag = _eval(_req(algorithm="hs2019", key_type="ed25519"), GOOD, resolved="rsa")
    assert frag.violated_rule is RuleId.ALGORITHM_KEY_MISMATCH


def test_unknown_algorithm():
    req = _req(algorithm="unknown")
    assert rules.scheme_for(req) is None
    assert _eval(req, REFUSED).passed
    assert _eval(req, GOOD).violated_rule is RuleId.UNKNOWN_ALGORITHM


def test_scheme_outside_registry_counts_as_unknown():
    rogue = AlgorithmScheme("rogue-alg", key_types=("rsa",))
    exp = rules.expected_outcome(_req(algorithm="rogue-alg"), rogue, "rsa", NOW)
    assert exp == Expectation(OutcomeKind.REJECTED, RuleId.UNKNOWN_ALGORITHM)


def test_deprecated_rejected_regardless_of_key():
    req = _req(algorithm="rsa-sha1", key_type="rsa")
    frag = _eval(req, GOOD)
    assert frag.violated_rule is RuleId.DEPRECATED_ACCEPTED
    # incompatible key reports the mismatch first, but still expects rejection
    req = _req(algorithm="rsa-sha1", key_type="ed25519")
    frag = _eval(req, GOOD, resolved="ed25519")
    assert frag.expected is OutcomeKind.REJECTED
    assert frag.violated_rule is RuleId.ALGORITHM_KEY_MISMATCH


def test_created_in_future():
    req = _req(algorithm="hs2019", created=NOW + 1000)
    assert _eval(req, REFUSED).passed
    assert _eval(req, GOOD).violated_rule is RuleId.FUTURE_CREATED_ACCEPTED
    # boundary: created == now is fine
    assert _eval(_req(algorithm="hs2019", created=NOW), GOOD).passed


def test_expires_in_past():
    req = _req(algorithm="hs2019", expires=NOW - 1000)
    assert _eval(req, REFUSED).passed
    assert _eval(req, GOOD).violated_rule is RuleId.EXPIRED_ACCEPTED
    assert _eval(_req(algorithm="hs2019", expires=NOW), GOOD).passed


def test_format_violation_reported_first():
    assert _eval(_req(), BAD_FORMAT).violated_rule is RuleId.FORMAT
    assert _eval(_req(algorithm="unknown"), BAD_FORMAT).violated_rule is RuleId.FORMAT


def test_first_violation_in_order():
    req = _req(algorithm="rsa-sha1", key_type="rsa", created=NOW + 5, expires=NOW - 5)
    assert _eval(req, GOOD).violated_rule is RuleId.DEPRECATED_ACCEPTED
    req = _req(algorithm="hs2019", created=NOW + 5, expires=NOW - 5)
    assert _eval(req, GOOD).violated_rule is RuleId.FUTURE_CREATED_ACCEPTED


def test_unexpected_rejection_is_adapter_failure():
    frag = _eval(_req(), REFUSED)
    assert not frag.passed
    assert frag.violated_rule is RuleId.ADAPTER_FAILURE
    frag = _eval(_req(), Rejected(Timeout(2.0)))
    assert frag.violated_rule is RuleId.ADAPTER_TIMEOUT


@pytest.mark.parametrize("outcome", [GOOD, BAD_FORMAT, REFUSED, Rejected(Timeout(1))])
def test_classification_is_idempotent(outcome):
    req = _req(algorithm="hs2019", created=NOW + 1000)
    assert _eval(req, outcome) == _eval(req, outcome)


def test_judge_rejects_non_outcomes():
    with pytest.raises(TypeError):
        rules.judge(_req(), Expectation(OutcomeKind.SIGNED), "signature")


def test_rules_use_supplied_time_only():
    req = _req(algorithm="hs2019", created=int(time.time()) + 1000)
    # evaluated far in the future the same request is fresh
    frag = rules.evaluate(req, GOOD, rules.scheme_for(req), "rsa", int(time.time()) + 5000)
    assert frag.passed
