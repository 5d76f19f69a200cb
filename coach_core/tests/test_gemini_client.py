import httpx
import pytest

from coach_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from coach_core.domain.models import ChatMessage, ChatRequest, TextResponse, ToolInvocation
from coach_core.providers.gemini_client import GeminiClient, VertexClient
from coach_core.tools.definitions import ActionOutcome, ToolCall, ToolManifest
from coach_core.tools.workout_program import CREATE_PROGRAM_TOOL


class SettingsStub:
    gemini_api_key = "g" * 20
    gemini_base_url = "https://generativelanguage.googleapis.com/v1beta"
    vertex_project = "demo-project"
    vertex_location = "us-central1"
    vertex_access_token = "token"
    safety_threshold = "BLOCK_MEDIUM_AND_ABOVE"
    http_timeout = 1.0


def _fake_client(monkeypatch, status_code=200, body=None, calls=None, error=None):
    class Resp:
        def __init__(self):
            self.status_code = status_code
            self.text = "upstream said no"

        def json(self):
            return body

    class Client:
        def __init__(self, *a, **kw):
            pass

        def post(self, url, json=None, headers=None):
            if error is not None:
                raise error
            if calls is not None:
                calls.append({"url": url, "json": json, "headers": headers})
            return Resp()

        def close(self):
            pass

    monkeypatch.setattr("httpx.Client", Client)


def _request(**kw):
    return ChatRequest(provider="gemini", model="coach-chat", messages=(ChatMessage(role="user", content="hi"),), **kw)


def test_gemini_client_text_response(monkeypatch):
    calls = []
    body = {
        "candidates": [{"content": {"role": "model", "parts": [{"text": "ok"}]}, "finishReason": "STOP"}],
        "usageMetadata": {"promptTokenCount": 1, "candidatesTokenCount": 1, "totalTokenCount": 2},
    }
    _fake_client(monkeypatch, body=body, calls=calls)
    gc = GeminiClient(SettingsStub())
    res = gc.chat(_request())
    assert res.response == TextResponse("ok")
    assert res.finish_reason == "STOP"
    assert res.usage.total_tokens == 2
    call = calls[0]
    assert call["url"].endswith("/models/gemini-2.5-flash:generateContent")
    assert call["headers"]["x-goog-api-key"] == SettingsStub.gemini_api_key
    assert call["json"]["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]
    assert {s["category"] for s in call["json"]["safetySettings"]} == {
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
    }
    assert "tools" not in call["json"]


def test_gemini_client_function_call_and_tools(monkeypatch):
    calls = []
    body = {
        "candidates": [
            {
                "content": {
                    "parts": [
                        {"functionCall": {"name": "createNewWorkoutProgram", "args": {"name": "PPL", "days": 3}}},
                        {"text": "ignored second part"},
                    ]
                }
            }
        ]
    }
    _fake_client(monkeypatch, body=body, calls=calls)
    gc = GeminiClient(SettingsStub())
    res = gc.chat(_request(tools=ToolManifest([CREATE_PROGRAM_TOOL])))
    assert res.response == ToolInvocation(tool_name="createNewWorkoutProgram", arguments={"name": "PPL", "days": 3})
    decl = calls[0]["json"]["tools"][0]["functionDeclarations"][0]
    assert decl["name"] == "createNewWorkoutProgram"
    assert decl["parameters"]["type"] == "OBJECT"
    assert decl["parameters"]["required"] == ["name", "days"]
    assert decl["parameters"]["properties"]["days"]["type"] == "NUMBER"


def test_gemini_client_serializes_tool_turns(monkeypatch):
    calls = []
    body = {"candidates": [{"content": {"parts": [{"text": "Created!"}]}}]}
    _fake_client(monkeypatch, body=body, calls=calls)
    gc = GeminiClient(SettingsStub())
    req = ChatRequest(
        provider="gemini",
        model="coach-chat",
        messages=(
            ChatMessage(role="user", content="make me a program"),
            ChatMessage(role="model", tool_call=ToolCall(name="createNewWorkoutProgram", arguments={"name": "PPL", "days": 3})),
            ChatMessage(role="tool", tool_result=ActionOutcome("createNewWorkoutProgram", True, {"name": "PPL"})),
        ),
    )
    gc.chat(req)
    contents = calls[0]["json"]["contents"]
    assert contents[1] == {
        "role": "model",
        "parts": [{"functionCall": {"name": "createNewWorkoutProgram", "args": {"name": "PPL", "days": 3}}}],
    }
    assert contents[2]["parts"][0]["functionResponse"] == {
        "name": "createNewWorkoutProgram",
        "response": {"name": "PPL", "success": True},
    }


def test_gemini_client_missing_candidates_yields_empty_text(monkeypatch):
    _fake_client(monkeypatch, body={"promptFeedback": {"blockReason": "SAFETY"}})
    res = GeminiClient(SettingsStub()).chat(_request())
    assert res.response == TextResponse("")
    assert res.finish_reason == "SAFETY"


def test_gemini_client_error_mapping(monkeypatch):
    _fake_client(monkeypatch, status_code=429, body={})
    with pytest.raises(RateLimitError):
        GeminiClient(SettingsStub()).chat(_request())

    _fake_client(monkeypatch, status_code=500, body={})
    with pytest.raises(ApiError) as exc:
        GeminiClient(SettingsStub()).chat(_request())
    assert exc.value.http_status == 500

    _fake_client(monkeypatch, error=httpx.ConnectError("boom"))
    with pytest.raises(NetworkError):
        GeminiClient(SettingsStub()).chat(_request())


def test_gemini_client_requires_api_key(monkeypatch):
    _fake_client(monkeypatch, body={})

    class NoKey(SettingsStub):
        gemini_api_key = None

    with pytest.raises(ValidationError) as exc:
        GeminiClient(NoKey()).chat(_request())
    assert exc.value.code == "MISSING_API_KEY"


def test_vertex_client_endpoint_and_auth(monkeypatch):
    calls = []
    _fake_client(monkeypatch, body={"candidates": [{"content": {"parts": [{"text": "hey"}]}}]}, calls=calls)
    vc = VertexClient(SettingsStub())
    res = vc.chat(ChatRequest(provider="vertex", model="coach-chat", messages=(ChatMessage(role="user", content="hi"),)))
    assert res.provider == "vertex"
    assert calls[0]["url"] == (
        "https://us-central1-aiplatform.googleapis.com/v1/projects/demo-project/locations/us-central1"
        "/publishers/google/models/gemini-2.5-flash:generateContent"
    )
    assert calls[0]["headers"]["Authorization"] == "Bearer token"


def test_vertex_client_requires_project(monkeypatch):
    _fake_client(monkeypatch, body={})

    class NoProject(SettingsStub):
        vertex_project = None

    with pytest.raises(ValidationError) as exc:
        VertexClient(NoProject()).chat(_request())
    assert exc.value.code == "MISSING_PROJECT"


def test_gemini_client_keeps_zero_temperature(monkeypatch):
    calls = []
    body = {"candidates": [{"content": {"parts": [{"text": "ok"}]}}]}
    _fake_client(monkeypatch, body=body, calls=calls)
    GeminiClient(SettingsStub()).chat(_request(temperature=0.0))
    assert calls[0]["json"]["generationConfig"]["temperature"] == 0.0
