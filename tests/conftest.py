import pytest

from sigconform.crypto.keycatalog import load_key_catalog
from sigconform.crypto.keygen import generate_dev_keys


@pytest.fixture(scope="session")
def dev_keys(tmp_path_factory):
    # RSA generation is slow; one key set per session
    return generate_dev_keys(tmp_path_factory.mktemp("keys"))


@pytest.fixture(scope="session")
def catalog(dev_keys):
    return load_key_catalog(dev_keys["manifest"])
