import pytest

import inferlib
from inferlib.providers import ProviderRegistry, ProviderType, provider_registry
from inferlib.providers.base import Provider, ProviderSettings
from inferlib.providers.llm import ModelProvider
from inferlib.providers.llm.cloud import CloudInferenceClient, InMemorySecretStore
from inferlib.providers.llm.local import LocalModelProvider


def test_builtin_providers_are_registered():
    names = provider_registry.list_factories(ProviderType.LLM)
    assert "local" in names
    assert "cloud" in names
    assert provider_registry.contains_factory("llm", "local")
    assert provider_registry.get_factory_metadata(ProviderType.LLM, "cloud")["provider_class"] == "CloudInferenceClient"


def test_create_builds_fresh_instances():
    first = provider_registry.create(ProviderType.LLM, "local", expected_type=ModelProvider)
    second = provider_registry.create("llm", "local")
    try:
        assert isinstance(first, LocalModelProvider)
        assert first is not second
        assert first.engine is not second.engine
        assert first.name == "local"
    finally:
        first.engine.close()
        second.engine.close()


def test_create_forwards_kwargs():
    store = InMemorySecretStore({"cloud-apikey-OpenAI": "key"})
    client = provider_registry.create(ProviderType.LLM, "cloud", name="primary", secret_store=store)

    assert isinstance(client, CloudInferenceClient)
    assert client.name == "primary"
    assert client.is_available
    assert provider_registry.create(ProviderType.LLM, "cloud", secret_store=store).name == "cloud"


def test_unknown_provider():
    with pytest.raises(KeyError):
        provider_registry.create(ProviderType.LLM, "does-not-exist")


def test_expected_type_mismatch():
    registry = ProviderRegistry()

    class _Settings(ProviderSettings):
        pass

    class _Other(Provider[_Settings]):
        async def _initialize(self):
            pass

    registry.register_factory("llm", "other", lambda **kwargs: _Other(name="other"))
    with pytest.raises(TypeError):
        registry.create("llm", "other", expected_type=ModelProvider)


def test_version_is_exposed():
    assert inferlib.__version__ == "0.1.0"
