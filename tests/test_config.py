"""Settings tests: defaults, list parsing and fail-fast validation."""

from pathlib import Path

import pytest

from reelforge.core.config import Settings


def test_defaults_in_test_env():
    settings = Settings(APP_ENV="test")

    assert settings.poll_interval_seconds == 10.0
    assert settings.max_poll_attempts == 60
    assert settings.max_extensions == 20
    assert settings.extension_increment_seconds == 7
    assert settings.default_model in settings.valid_models_set


def test_valid_models_parsing():
    settings = Settings(APP_ENV="test", VALID_MODELS=" google/veo-3 , google/veo-2,, ")

    assert settings.valid_models_set == frozenset({"google/veo-3", "google/veo-2"})


def test_cors_origins_list():
    settings = Settings(APP_ENV="test", CORS_ORIGINS="http://a.test, http://b.test")

    assert settings.cors_origins_list == ["http://a.test", "http://b.test"]


def test_output_dir_is_expanded_and_absolute():
    settings = Settings(APP_ENV="test", OUTPUT_DIR="~/veo-out")

    assert settings.resolved_output_dir == (Path.home() / "veo-out").resolve()
    assert settings.resolved_output_dir.is_absolute()


def test_missing_token_fails_outside_test_env():
    with pytest.raises(ValueError, match="REPLICATE_API_TOKEN"):
        Settings(APP_ENV="production", REPLICATE_API_TOKEN="")


def test_default_model_must_be_valid():
    with pytest.raises(ValueError, match="DEFAULT_MODEL"):
        Settings(
            APP_ENV="development",
            REPLICATE_API_TOKEN="r8_token",
            DEFAULT_MODEL="acme/video",
        )


def test_complete_production_config():
    settings = Settings(APP_ENV="production", REPLICATE_API_TOKEN="r8_token")

    assert settings.replicate_api_token == "r8_token"
