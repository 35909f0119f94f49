import os
import sys

import pytest


# Make the repository root and this directory importable without an editable install.
_TESTS_DIR = os.path.abspath(os.path.dirname(__file__))
_REPO_ROOT = os.path.abspath(os.path.join(_TESTS_DIR, ".."))
for _path in (_REPO_ROOT, _TESTS_DIR):
    if _path not in sys.path:
        sys.path.insert(0, _path)


from fakes import FakeRuntime, FakeTransport  # noqa: E402
from inferlib.providers.llm.cloud import InMemorySecretStore  # noqa: E402
from inferlib.providers.llm.local import LocalInferenceEngine  # noqa: E402


@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def engine(runtime):
    eng = LocalInferenceEngine(name="test-engine")
    eng.attach(runtime)
    yield eng
    eng.close()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def secret_store():
    return InMemorySecretStore({"cloud-apikey-OpenAI": "sk-test-123"})
