import base64

import httpx
import pytest

from app.config import settings
from app.services import metadata_service
from app.exceptions import (
    ImageProcessingException,
    MetadataGenerationException,
    ValidationException,
)
from app.services.metadata_service import (
    DEFAULT_DESCRIPTION,
    DEFAULT_TITLE,
    METADATA_PROMPT,
    MAX_FRAME_URLS,
    InferredMetadata,
    MetadataOutcome,
    check_inference_health,
    fetch_frames,
    generate_video_metadata,
    parse_metadata_text,
    try_generate_video_metadata,
)

FRAMES = [
    "https://res.cloudinary.com/demo/video/upload/so_10/v1/abc.jpg",
    "https://res.cloudinary.com/demo/video/upload/so_30/v1/abc.jpg",
    "https://res.cloudinary.com/demo/video/upload/so_60/v1/abc.jpg",
]


def test_parse_metadata_text_extracts_both_fields():
    metadata = parse_metadata_text(
        "**Title:** My Trip to Iceland\n\n**Description:** Glaciers and geysers.\n#travel #iceland"
    )

    assert metadata.title == "My Trip to Iceland"
    assert metadata.description == "Glaciers and geysers.\n#travel #iceland"


def test_parse_metadata_text_strips_emphasis_markers():
    metadata = parse_metadata_text("**Title:** **Bold Title**\n**Description:** **Bold** body")

    assert metadata.title == "Bold Title"
    assert metadata.description == "Bold body"


def test_parse_metadata_text_defaults_each_field_independently():
    only_title = parse_metadata_text("**Title:** Just a title")
    only_description = parse_metadata_text("**Description:** Just a description")

    assert only_title == InferredMetadata(title="Just a title", description=DEFAULT_DESCRIPTION)
    assert only_description == InferredMetadata(title=DEFAULT_TITLE, description="Just a description")


def test_parse_metadata_text_without_markers_uses_defaults():
    assert parse_metadata_text("Here are some options you might like!") == InferredMetadata(
        title=DEFAULT_TITLE,
        description=DEFAULT_DESCRIPTION,
    )


def test_outcome_resolve_prefers_inferred_values():
    outcome = MetadataOutcome.inferred(InferredMetadata(title="AI title", description="AI description"))

    assert not outcome.is_default
    assert outcome.resolve("mine", "my description") == ("AI title", "AI description")


def test_outcome_default_keeps_supplied_values():
    outcome = MetadataOutcome.use_default("provider down")

    assert outcome.is_default
    assert outcome.error == "provider down"
    assert outcome.resolve("mine", "my description") == ("mine", "my description")


def test_fetch_frames_keeps_order_and_reports_failures(frame_client, frame_server):
    frame_server.failing.add(FRAMES[1])

    images = fetch_frames(FRAMES, client=frame_client)

    assert images[0] is not None
    assert images[1] is None
    assert images[2] is not None


def test_generate_video_metadata_sends_prompt_and_encoded_frames(provider, frame_client):
    metadata = generate_video_metadata(FRAMES, provider, client=frame_client)

    assert metadata.title == "Sunset Over Mountains Timelapse"
    assert metadata.description.startswith("A calm timelapse")

    call = provider.calls[0]
    assert call["prompt"] == METADATA_PROMPT
    assert len(call["image_parts"]) == 3
    inline = call["image_parts"][0]["inline_data"]
    assert inline["mime_type"] == "image/jpeg"
    assert base64.b64decode(inline["data"]).startswith(b"\xff\xd8")


def test_generate_video_metadata_skips_failed_frames(provider, frame_client, frame_server):
    frame_server.failing.update(FRAMES[:2])

    generate_video_metadata(FRAMES, provider, client=frame_client)

    assert len(provider.calls[0]["image_parts"]) == 1


def test_generate_video_metadata_requires_frames(provider, frame_client):
    with pytest.raises(ValidationException):
        generate_video_metadata([], provider, client=frame_client)
    assert provider.calls == []


def test_generate_video_metadata_fails_when_no_frame_fetched(provider, frame_client, frame_server):
    frame_server.fail_all = True

    with pytest.raises(ImageProcessingException):
        generate_video_metadata(FRAMES, provider, client=frame_client)
    assert provider.calls == []


def test_generate_video_metadata_wraps_unexpected_provider_errors(provider, frame_client):
    provider.error = RuntimeError("socket closed")

    with pytest.raises(MetadataGenerationException):
        generate_video_metadata(FRAMES, provider, client=frame_client)


def test_try_generate_video_metadata_never_raises(provider, frame_client, frame_server):
    provider.error = MetadataGenerationException("Gemini rate limit exceeded. Please try again later.")

    outcome = try_generate_video_metadata(FRAMES, provider, client=frame_client)

    assert outcome.is_default
    assert "rate limit" in outcome.error

    frame_server.fail_all = True
    assert try_generate_video_metadata(FRAMES, provider, client=frame_client).is_default


def test_try_generate_video_metadata_returns_inferred(provider, frame_client):
    outcome = try_generate_video_metadata(FRAMES, provider, client=frame_client)

    assert outcome.metadata.title == "Sunset Over Mountains Timelapse"


def test_fetch_frame_retries_server_errors_once(monkeypatch):
    monkeypatch.setattr(metadata_service._get_frame.retry, "sleep", lambda seconds: None)
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(503)
        return httpx.Response(200, content=b"jpeg")

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        assert metadata_service.fetch_frame(client, FRAMES[0]) == b"jpeg"
    assert len(calls) == 2


def test_fetch_frames_runs_on_a_bounded_pool(monkeypatch, frame_client):
    pool_sizes = []
    real_executor = metadata_service.ThreadPoolExecutor

    def recording_executor(max_workers):
        pool_sizes.append(max_workers)
        return real_executor(max_workers=max_workers)

    monkeypatch.setattr(metadata_service, "ThreadPoolExecutor", recording_executor)
    monkeypatch.setattr(settings, "frame_fetch_max_workers", 2)

    images = fetch_frames(FRAMES * 3, client=frame_client)

    assert len(images) == 9
    assert pool_sizes == [2]


def test_oversized_frame_is_dropped(monkeypatch):
    monkeypatch.setattr(settings, "frame_max_bytes", 16)

    def handler(request):
        return httpx.Response(200, content=b"x" * 64)

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        assert metadata_service.fetch_frame(client, FRAMES[0]) is None


def test_generate_video_metadata_caps_frame_count(provider, frame_client, frame_server):
    urls = [f"https://res.cloudinary.com/demo/video/upload/so_{i}/v1/abc.jpg" for i in range(MAX_FRAME_URLS + 1)]

    with pytest.raises(ValidationException):
        generate_video_metadata(urls, provider, client=frame_client)
    assert frame_server.requested == []
    assert provider.calls == []


@pytest.mark.parametrize("url", [
    "http://res.cloudinary.com/demo/video/upload/so_10/v1/abc.jpg",
    "https://169.254.169.254/latest/meta-data/",
    "https://res.cloudinary.com.attacker.test/demo/abc.jpg",
    "file:///etc/passwd",
    "not a url",
])
def test_generate_video_metadata_only_fetches_from_media_host(url, provider, frame_client, frame_server):
    with pytest.raises(ValidationException) as exc_info:
        generate_video_metadata([FRAMES[0], url], provider, client=frame_client)

    assert exc_info.value.message == "Frame URLs must point to the media host"
    assert frame_server.requested == []


def test_check_inference_health_reports_failures_as_unhealthy(provider):
    assert check_inference_health(provider) is True

    class BrokenProvider(type(provider)):
        def check_health(self):
            raise RuntimeError("dns failure")

    assert check_inference_health(BrokenProvider()) is False
