import json

import pytest

from sigconform.crypto.keycatalog import KeyCatalog, KeyMaterial, load_key_catalog
from sigconform.errors import ConfigError, KeyCatalogError


def test_from_mapping_resolves_relative_paths(tmp_path):
    cat = KeyCatalog.from_mapping({"rsa": "rsa.private", "Ed25519": "/abs/test_ed"}, base_dir=tmp_path)
    assert cat.all_private_key_types() == frozenset({"rsa", "ed25519"})
    (rsa,) = cat.keys_of_type("rsa")
    assert rsa.reference == str(tmp_path / "rsa.private")
    assert rsa.key_id == "test"
    assert cat.resolve("ed25519").reference == "/abs/test_ed"


def test_keys_of_type_may_be_empty():
    cat = KeyCatalog([KeyMaterial("k1", "rsa", "a"), KeyMaterial("k2", "rsa", "b")])
    assert cat.keys_of_type("ed25519") == ()
    assert [k.key_id for k in cat.keys_of_type("RSA")] == ["k1", "k2"]
    assert cat.resolve("rsa").key_id == "k1"


def test_resolve_missing_type_is_infrastructural():
    with pytest.raises(KeyCatalogError):
        KeyCatalog([]).resolve("rsa")


def test_manifest_list_shape(tmp_path):
    p = tmp_path / "keys.json"
    p.write_text(json.dumps({"keys": [{"key_id": "a", "key_type": "rsa", "reference": "rsa.pem"}]}))
    cat = load_key_catalog(p)
    assert cat.resolve("rsa") == KeyMaterial("a", "rsa", str(tmp_path / "rsa.pem"))


def test_manifest_private_mapping(tmp_path):
    p = tmp_path / "keys.yml"
    p.write_text("private:\n  rsa: rsa.private\n  ed25519: test_ed\n")
    cat = load_key_catalog(p)
    assert len(cat) == 2
    assert cat.resolve("ed25519").reference == str(tmp_path / "test_ed")


def test_manifest_errors(tmp_path):
    with pytest.raises(KeyCatalogError):
        load_key_catalog(tmp_path / "missing.yml")
    bad = tmp_path / "bad.yml"
    bad.write_text("- rsa\n")
    with pytest.raises(ConfigError):
        load_key_catalog(bad)
    bad.write_text("keys:\n  - {key_type: rsa}\n")
    with pytest.raises(ConfigError):
        load_key_catalog(bad)


def test_generated_dev_keys(catalog):
    assert {"rsa", "ed25519", "ecdsa-p256", "hmac"} <= catalog.all_private_key_types()
    for key in catalog:
        with open(key.reference, "rb") as f:
            assert f.read()
