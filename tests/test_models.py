import logging

import pytest
from pydantic import ValidationError

from inferlib.core import ConfigurationError, ResourceError, configure_logging
from inferlib.providers.base import ProviderSettings
from inferlib.providers.llm import (
    AbortedError,
    CancellationToken,
    CloudGenerationError,
    GenerationAbortedError,
    GenerationError,
    GenerationParams,
    HttpError,
    LocalGenerationError,
    ModelConfig,
    ModelLoadError,
    RequestAbortedError,
)
from inferlib.providers.llm.cloud import BUILTIN_IDENTITIES, ApiFormat, get_identity


def test_generation_param_defaults():
    params = GenerationParams()
    assert params.max_tokens == 256
    assert params.temperature == 0.7
    assert params.top_p == 0.9
    assert params.top_k == 40
    assert params.repeat_penalty == 1.1
    assert params.repeat_penalty_window == 64
    assert params.seed is None
    assert not params.is_greedy


def test_deterministic_preset():
    params = GenerationParams.deterministic()
    assert (params.temperature, params.top_p, params.top_k) == (0.0, 1.0, 1)
    assert params.is_greedy
    assert GenerationParams.deterministic(max_tokens=8).max_tokens == 8


@pytest.mark.parametrize("field,value", [
    ("max_tokens", 0),
    ("temperature", -0.1),
    ("top_p", 0.0),
    ("top_p", 1.5),
    ("top_k", 0),
    ("repeat_penalty", 0.9),
    ("repeat_penalty_window", -1),
])
def test_out_of_range_params_are_rejected(field, value):
    with pytest.raises(ValidationError):
        GenerationParams(**{field: value})


def test_params_are_immutable():
    params = GenerationParams()
    with pytest.raises(ValidationError):
        params.temperature = 1.0


def test_model_config_requires_path():
    with pytest.raises(ValidationError):
        ModelConfig(path="  ")
    assert ModelConfig(path="m.gguf").n_ctx == 2048


def test_error_hierarchy():
    assert issubclass(GenerationAbortedError, AbortedError)
    assert issubclass(GenerationAbortedError, LocalGenerationError)
    assert issubclass(RequestAbortedError, AbortedError)
    assert issubclass(RequestAbortedError, CloudGenerationError)
    assert issubclass(AbortedError, GenerationError)
    assert issubclass(ModelLoadError, ResourceError)


@pytest.mark.parametrize("status,expected", [
    (401, "Invalid API key"),
    (429, "Rate limit"),
    (500, "service error (500)"),
    (503, "service error (503)"),
    (404, "API error (404): not here"),
])
def test_http_error_user_message(status, expected):
    assert expected in HttpError(status, "not here").user_message


def test_http_error_body_preview_is_truncated():
    error = HttpError(418, "x" * 500)
    assert error.user_message == "API error (418): " + "x" * 200
    assert len(error.context.get("body_preview")) == 200


def test_builtin_identities_use_https():
    for identity in BUILTIN_IDENTITIES.values():
        assert identity.endpoint_url.startswith("https://")
        assert identity.secret_key_name == f"cloud-apikey-{identity.display_name}"


def test_identity_lookup():
    assert get_identity("together ai").default_model_name == "meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo"
    assert get_identity("Anthropic").api_format == ApiFormat.ANTHROPIC
    with pytest.raises(ConfigurationError):
        get_identity("nope")


def test_settings_merge_keeps_unset_values():
    base = ProviderSettings(timeout_seconds=10, custom_settings={"a": 1})
    merged = base.merge({"log_requests": True, "custom_settings": {"b": 2}})

    assert merged.timeout_seconds == 10
    assert merged.log_requests is True
    assert merged.custom_settings == {"a": 1, "b": 2}
    with pytest.raises(ValidationError):
        ProviderSettings(timeout_seconds=0)


def test_settings_with_overrides():
    base = ProviderSettings(timeout_seconds=10, custom_settings={"a": 1})
    updated = base.with_overrides(log_responses=True, custom_settings={"a": 2})

    assert updated is not base
    assert updated.timeout_seconds == 10
    assert updated.log_responses is True
    assert updated.custom_settings == {"a": 2}
    assert base.log_responses is False
    with pytest.raises(ValidationError):
        base.with_overrides(timeout_seconds=-1)


def test_cancellation_token_runs_callbacks_once():
    calls = []
    token = CancellationToken()
    token.add_callback(lambda: calls.append("a"))
    token.cancel()
    token.cancel()
    token.add_callback(lambda: calls.append("late"))

    assert token.cancelled
    assert calls == ["a", "late"]


def test_cancellation_callback_errors_are_contained():
    token = CancellationToken()

    def boom():
        raise RuntimeError("boom")

    token.add_callback(boom)
    token.cancel()
    assert token.cancelled


def test_configure_logging_does_not_stack_handlers():
    logger = configure_logging("DEBUG")
    configure_logging("WARNING")
    tagged = [h for h in logger.handlers if getattr(h, "_inferlib_handler", False)]

    assert len(tagged) == 1
    assert logger.level == logging.WARNING
    with pytest.raises(ValueError):
        configure_logging("LOUD")
