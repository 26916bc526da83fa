# tests/unit/test_gemini_adapter.py

from __future__ import annotations
import sys
from pathlib import Path
from types import SimpleNamespace
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

import voca.providers.gemini_adapter as ga  # type: ignore
from voca.core.errors import NoCredentialError, ProviderClientError, ProviderTransientError
from voca.resilience.classifier import classify_error
from voca.secrets.sources import SecretsResolver


# -------- Fakes to replace the google-genai client --------

class _FakeModels:
    def __init__(self):
        self.calls = []
        self.raise_on_next = None

    def generate_content(self, *, model, contents, config):
        self.calls.append(("content", model, contents, config))
        if self.raise_on_next:
            err, self.raise_on_next = self.raise_on_next, None
            raise err
        return SimpleNamespace(text='{"meaning": "a fruit"}')

    def generate_images(self, *, model, prompt, config):
        self.calls.append(("images", model, prompt, config))
        image = SimpleNamespace(image_bytes=b"\xff\xd8")
        return SimpleNamespace(generated_images=[SimpleNamespace(image=image)])


class _FakeChat:
    def __init__(self, fail=None):
        self.fail = fail

    def send_message_stream(self, message):
        yield SimpleNamespace(text="he")
        yield SimpleNamespace(text=None)
        if self.fail:
            raise self.fail
        yield SimpleNamespace(text="llo")


class _FakeChats:
    def __init__(self):
        self.created = []
        self.fail = None

    def create(self, *, model, config):
        self.created.append((model, config))
        return _FakeChat(self.fail)


class _FakeClient:
    def __init__(self):
        self.models = _FakeModels()
        self.chats = _FakeChats()


def _api_error(code, status, message):
    return ga.genai_errors.APIError(code, {"error": {"code": code, "status": status, "message": message}})


# -------- tests --------

def test_generate_text_passes_config():
    client = _FakeClient()
    adapter = ga.GeminiAdapter(api_key="k", client=client)

    resp = adapter.generate_text("prompt", model="gemini-x", temperature=0.5,
                                 response_mime_type="application/json")

    assert resp.text == '{"meaning": "a fruit"}'
    kind, model, contents, config = client.models.calls[0]
    assert (kind, model, contents) == ("content", "gemini-x", "prompt")
    assert config.temperature == 0.5
    assert config.response_mime_type == "application/json"


def test_generate_image_passes_config():
    client = _FakeClient()
    adapter = ga.GeminiAdapter(api_key="k", client=client)
    resp = adapter.generate_image("a red apple", model="imagen-x")
    assert resp.generated_images[0].image.image_bytes == b"\xff\xd8"
    config = client.models.calls[0][3]
    assert config.number_of_images == 1
    assert config.output_mime_type == "image/jpeg"


def test_chat_stream_yields_text_pieces():
    client = _FakeClient()
    adapter = ga.GeminiAdapter(api_key="k", client=client, chat_model="chat-default")
    conv = adapter.start_chat("be a tutor")
    assert list(conv.send_stream("hi")) == ["he", "llo"]
    model, config = client.chats.created[0]
    assert model == "chat-default"
    assert config.system_instruction == "be a tutor"


def test_quota_error_keeps_code_and_status():
    client = _FakeClient()
    client.models.raise_on_next = _api_error(429, "RESOURCE_EXHAUSTED", "Resource has been exhausted")
    adapter = ga.GeminiAdapter(api_key="k", client=client)

    with pytest.raises(ProviderTransientError) as exc_info:
        adapter.generate_text("p", model="m")
    err = exc_info.value
    assert err.status_code == 429
    assert err.status == "RESOURCE_EXHAUSTED"
    assert classify_error(err).is_quota_exhausted


def test_client_error_maps_to_client_error():
    client = _FakeClient()
    client.models.raise_on_next = _api_error(400, "INVALID_ARGUMENT", "bad model")
    adapter = ga.GeminiAdapter(api_key="k", client=client)
    with pytest.raises(ProviderClientError):
        adapter.generate_text("p", model="m")


def test_mid_stream_error_is_converted():
    client = _FakeClient()
    client.chats.fail = ConnectionError("reset by peer")
    adapter = ga.GeminiAdapter(api_key="k", client=client)
    gen = iter(adapter.start_chat("sys").send_stream("hi"))
    assert next(gen) == "he"
    with pytest.raises(ProviderTransientError) as exc_info:
        next(gen)
    assert exc_info.value.status_code is None
    assert "reset by peer" in str(exc_info.value)


def _clear_keys(monkeypatch):
    for name in ("gemini", "GEMINI_API_KEY", "google", "GOOGLE_API_KEY"):
        monkeypatch.delenv(name, raising=False)


def test_create_requires_key(monkeypatch):
    _clear_keys(monkeypatch)
    with pytest.raises(NoCredentialError):
        ga.GeminiAdapter.create(provider_cfg={}, secrets=SecretsResolver(method="env"))


def test_create_falls_back_to_google_key(monkeypatch):
    captured = {}

    class _Client:
        def __init__(self, api_key):
            captured["api_key"] = api_key

    _clear_keys(monkeypatch)
    monkeypatch.setenv("GOOGLE_API_KEY", "g-key")
    monkeypatch.setattr(ga.genai, "Client", _Client, raising=True)
    secrets = SecretsResolver(method="env", mapping={"gemini": {"api_key": "GEMINI_API_KEY"}})
    adapter = ga.GeminiAdapter.create(provider_cfg={"chat_model": "c"}, secrets=secrets)
    assert captured["api_key"] == "g-key"
    assert adapter.chat_model == "c"
