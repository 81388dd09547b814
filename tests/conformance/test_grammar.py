import re

import pytest

from sigconform.conformance.grammar import GRAMMAR, SignatureGrammar

# regex the conformance suite has always asserted against
BASE64_SIGNATURE = re.compile(r"""signature=["'][a-z0-9=\/\+]+["']""", re.IGNORECASE)


@pytest.mark.parametrize("artifact, ok", [
    ('keyId="test",algorithm="hs2019",headers="date",signature="dGVzdA=="', True),
    ("Signature=\'YWJj+/09\'", True),
    ('SIGNATURE="abc"', True),
    ('signature="abc', False),
    ('signature=abc', False),
    ('signature=""', False),
    ('signature="a-b_c"', False),
    ('sig="abc"', False),
    ("", False),
])
def test_matches(artifact, ok):
    assert GRAMMAR.matches(artifact) is ok
    assert bool(BASE64_SIGNATURE.search(artifact)) is ok


def test_extract():
    g = SignatureGrammar()
    assert g.extract('keyId="k",signature="QUJD"') == "QUJD"
    assert g.extract("nothing here") is None
    assert g.extract(None) is None
    assert g.matches(None) is False
