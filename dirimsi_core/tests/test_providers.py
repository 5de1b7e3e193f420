import pytest

from dirimsi_core.providers import create_provider
from dirimsi_core.providers.gemini_client import GeminiClient
from dirimsi_core.providers.registry import GEMINI_CONFIG, get_provider_config, resolve_model


def test_create_provider_default(monkeypatch):
    class DummySettings:
        default_provider = "gemini"
        gemini_api_key = "g" * 12
        http_timeout = 1.0
        gemini_base_url = "https://example.test/v1beta"

    monkeypatch.setattr("dirimsi_core.providers.settings", DummySettings())
    provider = create_provider()
    assert isinstance(provider, GeminiClient)


def test_create_provider_unknown_name():
    with pytest.raises(KeyError):
        create_provider("kimi")


def test_registry_lookup_is_case_insensitive():
    assert get_provider_config("Gemini") is GEMINI_CONFIG
    assert resolve_model(GEMINI_CONFIG, "culture-chat") == "gemini-2.0-flash"
    assert resolve_model(GEMINI_CONFIG, "gemini-1.5-pro") == "gemini-1.5-pro"
