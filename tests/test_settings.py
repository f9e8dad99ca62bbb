"""Tests for environment-driven service settings."""

import pytest

from c4_drawio_service import __version__
from c4_drawio_service.settings import DEFAULT_MAX_INPUT_SIZE, Settings


def test_defaults_from_empty_environment() -> None:
    settings = Settings.from_env({})

    assert settings.max_input_size == DEFAULT_MAX_INPUT_SIZE == 102400
    assert settings.cors_origin == "*"
    assert settings.version == __version__
    assert (settings.host, settings.port, settings.reload) == ("0.0.0.0", 8080, False)
    assert settings.log_level == "INFO"
    assert settings.log_format == "console"


def test_reads_environment_values() -> None:
    settings = Settings.from_env({
        "MAX_INPUT_SIZE": "2048",
        "CORS_ORIGIN": "https://diagrams.example",
        "HOST": "127.0.0.1",
        "PORT": "9000",
        "RELOAD": "true",
        "LOG_LEVEL": "debug",
        "LOG_FORMAT": "JSON",
    })

    assert settings.max_input_size == 2048
    assert settings.cors_origin == "https://diagrams.example"
    assert (settings.host, settings.port, settings.reload) == ("127.0.0.1", 9000, True)
    assert settings.log_level == "DEBUG"
    assert settings.log_format == "json"


@pytest.mark.parametrize("raw", ["", "zero", "0", "-10", "1.5", "+2048", "2_048"])
def test_unusable_max_input_size_falls_back(raw: str) -> None:
    assert Settings.from_env({"MAX_INPUT_SIZE": raw}).max_input_size == DEFAULT_MAX_INPUT_SIZE


def test_empty_cors_origin_falls_back_to_wildcard() -> None:
    assert Settings.from_env({"CORS_ORIGIN": ""}).cors_origin == "*"


def test_cors_headers() -> None:
    assert Settings(cors_origin="https://a.example").cors_headers() == {
        "Access-Control-Allow-Origin": "https://a.example",
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
    }
