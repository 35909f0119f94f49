import asyncio
import threading

import pytest

from fakes import FakeRuntime
from inferlib.core.errors import ConfigurationError, ResourceError
from inferlib.providers.llm import (
    GenerationAbortedError,
    GenerationParams,
    ModelFileNotFoundError,
    ModelNotLoadedError,
)
from inferlib.providers.llm.local import (
    LocalInferenceEngine,
    LocalModelProvider,
    LocalProviderSettings,
)


def _provider(runtime=None, **settings):
    engine = LocalInferenceEngine()
    if runtime is not None:
        engine.attach(runtime)
    return LocalModelProvider(settings=LocalProviderSettings(**settings), engine=engine)


def test_generate_through_provider():
    provider = _provider(FakeRuntime(script=[10, 11, 2]))
    fragments = []

    async def scenario():
        async with provider:
            return await provider.generate("hello", GenerationParams.deterministic(), on_token=fragments.append)

    try:
        assert asyncio.run(scenario()) == "<10><11>"
        assert fragments == ["<10>", "<11>"]
        assert provider.provider_name == "Local LLaMA"
    finally:
        provider.engine.close()


def test_default_params_come_from_settings():
    provider = _provider(
        FakeRuntime(script=[10, 11, 12]),
        default_params=GenerationParams.deterministic(max_tokens=1),
    )
    try:
        assert asyncio.run(provider.generate("hello")) == "<10>"
    finally:
        provider.engine.close()


def test_availability_follows_loaded_model():
    provider = _provider()
    try:
        assert not provider.is_available
        with pytest.raises(ModelNotLoadedError):
            asyncio.run(provider.generate("hello"))

        provider.engine.attach(FakeRuntime())
        assert provider.is_available
    finally:
        provider.engine.close()


def test_shutdown_unloads_model():
    runtime = FakeRuntime()
    provider = _provider(runtime, display_name="Bench model")

    async def scenario():
        await provider.initialize()
        await provider.shutdown()

    try:
        asyncio.run(scenario())
        assert runtime.closed
        assert not provider.is_available
        assert provider.provider_name == "Bench model"
    finally:
        provider.engine.close()


def test_initialize_with_missing_model_path(tmp_path):
    provider = _provider(model_path=str(tmp_path / "missing.gguf"))
    try:
        with pytest.raises(ModelFileNotFoundError) as exc_info:
            asyncio.run(provider.initialize())
        assert isinstance(exc_info.value, ResourceError)
        assert not provider.initialized
    finally:
        provider.engine.close()


def test_abort_through_provider():
    holder = {}
    runtime = FakeRuntime(script=[10, 11, 12, 13], on_generated_decode=lambda step: holder["provider"].abort())
    provider = _provider(runtime)
    holder["provider"] = provider

    try:
        with pytest.raises(GenerationAbortedError):
            asyncio.run(provider.generate("hello", GenerationParams.deterministic()))
    finally:
        provider.engine.close()


def test_empty_prompt_is_rejected():
    provider = _provider(FakeRuntime())
    try:
        with pytest.raises(ValueError):
            asyncio.run(provider.generate(""))
    finally:
        provider.engine.close()


def test_provider_owns_engine_when_none_given():
    provider = LocalModelProvider(settings=LocalProviderSettings(batch_size=16))
    assert provider.engine.batch_size == 16
    assert provider.engine.name == "Local LLaMA"
    provider.engine.close()


def test_settings_to_model_config():
    settings = LocalProviderSettings(model_path="~/models/a.gguf", n_ctx=4096, n_gpu_layers=-1)
    config = settings.to_model_config()
    assert config.path == "~/models/a.gguf"
    assert config.n_ctx == 4096
    assert config.n_gpu_layers == -1
    assert settings.to_model_config("/tmp/b.gguf").path == "/tmp/b.gguf"


def test_load_model_without_any_path():
    provider = _provider()
    try:
        with pytest.raises(ConfigurationError):
            asyncio.run(provider.load_model())
    finally:
        provider.engine.close()


def test_cancelling_caller_does_not_wait_for_running_callback():
    provider = _provider(FakeRuntime(script=[10, 11, 12, 13]))
    entered = threading.Event()
    release = threading.Event()
    returned = threading.Event()

    def on_token(_fragment):
        entered.set()
        release.wait(timeout=5)
        returned.set()

    async def scenario():
        task = asyncio.create_task(
            provider.generate("hello", GenerationParams.deterministic(), on_token=on_token)
        )
        assert await asyncio.get_running_loop().run_in_executor(None, entered.wait, 5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        # The callback is still blocked on the worker thread
        assert not returned.is_set()
        release.set()

    try:
        asyncio.run(scenario())
    finally:
        release.set()
        provider.engine.close()
