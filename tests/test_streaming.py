import asyncio

import pytest

from fakes import EOG, FakeRuntime
from inferlib.providers.llm import (
    CancellationToken,
    GenerationParams,
    GenerationStream,
    ModelNotLoadedError,
    RequestAbortedError,
)
from inferlib.providers.llm.cloud import OPENAI, CloudInferenceClient, InMemorySecretStore
from inferlib.providers.llm.local import LocalInferenceEngine, LocalModelProvider


def _local_provider(runtime=None):
    engine = LocalInferenceEngine()
    if runtime is not None:
        engine.attach(runtime)
    return LocalModelProvider(engine=engine)


def test_local_stream_fragments_match_result():
    provider = _local_provider(FakeRuntime(script=[10, 11, 12, EOG]))

    async def scenario():
        stream = provider.stream("hello", GenerationParams.deterministic())
        fragments = [fragment async for fragment in stream]
        return fragments, await stream.result()

    try:
        fragments, text = asyncio.run(scenario())
    finally:
        provider.engine.close()

    assert fragments == ["<10>", "<11>", "<12>"]
    assert "".join(fragments) == text


def test_cloud_stream_yields_single_fragment(transport, secret_store):
    client = CloudInferenceClient(OPENAI, secret_store, session_factory=transport.session_factory)

    async def scenario():
        async with client.stream("hi") as stream:
            fragments = [fragment async for fragment in stream]
            return fragments, await stream.result()

    fragments, text = asyncio.run(scenario())
    assert fragments == ["Hello there"]
    assert text == "Hello there"


def test_stream_surfaces_errors():
    provider = _local_provider()

    async def scenario():
        async for _fragment in provider.stream("hello"):
            pass

    try:
        with pytest.raises(ModelNotLoadedError):
            asyncio.run(scenario())
    finally:
        provider.engine.close()


def test_closing_stream_early_cancels_request(transport, secret_store):
    transport.delay = 10
    client = CloudInferenceClient(OPENAI, secret_store, session_factory=transport.session_factory)

    async def scenario():
        async with client.stream("hi") as stream:
            while transport.request_count == 0:
                await asyncio.sleep(0.01)
        return stream

    stream = asyncio.run(scenario())
    assert stream.cancel_token.cancelled


def test_cancelled_stream_raises_aborted_from_result(transport, secret_store):
    transport.delay = 10
    client = CloudInferenceClient(OPENAI, secret_store, session_factory=transport.session_factory)

    async def scenario():
        stream = client.stream("hi")
        stream.cancel()
        return await stream.result()

    with pytest.raises(RequestAbortedError):
        asyncio.run(scenario())
    assert transport.request_count == 0


def test_stream_over_plain_coroutine():
    async def start(on_token, cancel_token):
        for piece in ("a", "b", "c"):
            on_token(piece)
        return "abc"

    async def scenario():
        stream = GenerationStream(start, CancellationToken())
        collected = [fragment async for fragment in stream]
        return collected, stream.fragments, await stream.result()

    collected, fragments, text = asyncio.run(scenario())
    assert collected == ["a", "b", "c"]
    assert fragments == collected
    assert text == "abc"
