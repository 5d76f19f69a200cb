import pytest

from coach_core.providers import create_provider
from coach_core.providers.gemini_client import GeminiClient, VertexClient


class DummySettings:
    default_provider = "gemini"
    gemini_api_key = "g" * 20
    gemini_base_url = "https://generativelanguage.googleapis.com/v1beta"
    vertex_project = "p"
    vertex_location = "us-central1"
    vertex_access_token = "t"
    safety_threshold = "BLOCK_MEDIUM_AND_ABOVE"
    http_timeout = 1.0


def test_create_provider_default(monkeypatch):
    monkeypatch.setattr("coach_core.providers.settings", DummySettings())
    provider = create_provider()
    assert isinstance(provider, GeminiClient)
    assert not isinstance(provider, VertexClient)
    provider.close()


def test_create_provider_explicit():
    provider = create_provider("Vertex", cfg=DummySettings())
    assert isinstance(provider, VertexClient)
    provider.close()


def test_create_provider_unknown():
    with pytest.raises(KeyError):
        create_provider("kimi", cfg=DummySettings())
