import json

import httpx
import pytest

from app.exceptions import MetadataGenerationException
from app.services.metadata_inference.gemini_provider import GeminiProvider

IMAGE_PART = {"inline_data": {"mime_type": "image/jpeg", "data": "aGVsbG8="}}


def make_provider(handler, api_key="gemini-key"):
    return GeminiProvider(
        api_key=api_key,
        model="gemini-1.5-flash",
        base_url="https://generativelanguage.googleapis.com/v1",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def answer(text):
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(GeminiProvider._post.retry, "sleep", lambda seconds: None)


def test_generate_text_posts_prompt_and_images():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=answer("**Title:** Hi\n**Description:** There"))

    text = make_provider(handler).generate_text("Describe these", [IMAGE_PART, IMAGE_PART])

    assert text == "**Title:** Hi\n**Description:** There"
    request = requests[0]
    assert request.url.path == "/v1/models/gemini-1.5-flash:generateContent"
    assert request.url.params["key"] == "gemini-key"
    body = json.loads(request.read())
    parts = body["contents"][0]["parts"]
    assert parts[0] == {"text": "Describe these"}
    assert parts[1:] == [IMAGE_PART, IMAGE_PART]


@pytest.mark.parametrize("status_code, message", [
    (403, "Gemini authentication failed. Please check your API key."),
    (429, "Gemini rate limit exceeded. Please try again later."),
    (400, "Gemini API error: 400"),
])
def test_http_errors_become_metadata_errors(status_code, message):
    provider = make_provider(lambda request: httpx.Response(status_code, text="nope"))

    with pytest.raises(MetadataGenerationException) as exc_info:
        provider.generate_text("prompt", [IMAGE_PART])

    assert exc_info.value.message == message


def test_server_error_is_retried_once():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, text="internal")

    with pytest.raises(MetadataGenerationException):
        make_provider(handler).generate_text("prompt", [IMAGE_PART])

    assert len(calls) == 2


def test_response_without_text_is_an_error():
    provider = make_provider(lambda request: httpx.Response(200, json={"candidates": []}))

    with pytest.raises(MetadataGenerationException) as exc_info:
        provider.generate_text("prompt", [IMAGE_PART])

    assert exc_info.value.message == "Gemini response contained no text"


def test_missing_api_key_fails_without_calling_out():
    calls = []
    provider = make_provider(lambda request: calls.append(request), api_key="")
    provider.api_key = ""

    with pytest.raises(MetadataGenerationException):
        provider.generate_text("prompt", [IMAGE_PART])

    assert calls == []


def test_check_health():
    healthy = make_provider(lambda request: httpx.Response(200, json={"name": "models/gemini-1.5-flash"}))
    unhealthy = make_provider(lambda request: httpx.Response(404))

    assert healthy.check_health() is True
    assert unhealthy.check_health() is False
