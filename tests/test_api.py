"""HTTP-level tests for the FastAPI routes, with a FakeEngine-backed resolver."""

import pytest
from fastapi.testclient import TestClient

from mediagrab.main import app, get_resolver
from mediagrab.ranker import MP3_FORMAT_ID

from .conftest import GENERIC_INFO, INSTAGRAM_URL, YOUTUBE_INFO, YOUTUBE_URL, download_error


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def use_resolver(make_resolver):
    """Install a resolver whose engine returns the given outcomes."""
    def _use(outcomes):
        resolver, engine = make_resolver(outcomes)
        app.dependency_overrides[get_resolver] = lambda: resolver
        return resolver, engine
    return _use


# ─── /api/video-info ─────────────────────────────────────────────────────────

@pytest.mark.parametrize("body", [{}, {"url": ""}, {"url": "ftp://example.com/v.mp4"}, {"url": "youtube.com/watch"}])
def test_video_info_rejects_bad_urls(client, use_resolver, body):
    _, engine = use_resolver([YOUTUBE_INFO])
    response = client.post("/api/video-info", json=body)

    assert response.status_code == 400
    payload = response.json()
    assert payload["success"] is False
    assert payload["error"]["code"] == "INVALID_URL"
    assert engine.extract_calls == []


@pytest.mark.parametrize("kwargs", [
    {},
    {"content": b"not json", "headers": {"Content-Type": "application/json"}},
    {"json": {"url": 123}},
    {"json": {"url": [YOUTUBE_URL]}},
])
def test_video_info_malformed_body_is_input_error(client, use_resolver, kwargs):
    """Bodies that fail model validation share the 400 error envelope."""
    _, engine = use_resolver([YOUTUBE_INFO])
    response = client.post("/api/video-info", **kwargs)

    assert response.status_code == 400
    payload = response.json()
    assert payload["success"] is False
    assert payload["error"]["code"] == "INVALID_URL"
    assert "detail" not in payload
    assert engine.extract_calls == []


def test_video_info_youtube(client, use_resolver):
    use_resolver([YOUTUBE_INFO])
    response = client.post("/api/video-info", json={"url": YOUTUBE_URL})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    data = payload["data"]
    assert data["platform"] == "YouTube"
    assert data["videoId"] == "abc"
    assert data["views"] == 1500000000
    assert data["uploadDate"] == "20091025"
    assert data["fetchedWith"] == "Android Client"
    assert data["totalFormatsAvailable"] == len(YOUTUBE_INFO["formats"])
    assert data["formats"][0]["formatId"] == "137+251"
    assert data["formats"][-1]["formatId"] == MP3_FORMAT_ID


def test_video_info_reports_strategy_that_succeeded(client, use_resolver):
    _, engine = use_resolver([download_error("HTTP Error 403"), YOUTUBE_INFO])
    response = client.post("/api/video-info", json={"url": YOUTUBE_URL})

    assert response.json()["data"]["fetchedWith"] == "iOS Client"
    assert len(engine.extract_calls) == 2


def test_video_info_generic_platform(client, use_resolver):
    use_resolver([GENERIC_INFO])
    response = client.post("/api/video-info", json={"url": INSTAGRAM_URL})

    data = response.json()["data"]
    assert data["platform"] == "Instagram"
    assert data["fetchedWith"] == "Standard"
    assert [f["type"] for f in data["formats"]] == ["video-audio-merged", "audio", "audio-converted"]


def test_video_info_bot_detection(client, use_resolver):
    use_resolver([download_error("[youtube] abc: Sign in to confirm you're not a bot")])
    response = client.post("/api/video-info", json={"url": YOUTUBE_URL})

    assert response.status_code == 503
    error = response.json()["error"]
    assert error["code"] == "BOT_DETECTED"
    assert "YTDLP_PROXY" in error["hint"]
    assert len(error["details"]["attempts"]) == 3


def test_video_info_not_found(client, use_resolver):
    use_resolver([download_error("[Instagram] x: This content has been deleted")])
    response = client.post("/api/video-info", json={"url": INSTAGRAM_URL})

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "VIDEO_UNAVAILABLE"


def test_video_info_unmapped_failure(client, use_resolver):
    use_resolver([download_error("HTTP Error 500: Internal Server Error")])
    response = client.post("/api/video-info", json={"url": INSTAGRAM_URL})

    assert response.status_code == 500
    error = response.json()["error"]
    assert error["code"] == "ALL_STRATEGIES_FAILED"
    assert "HTTP Error 500" in error["message"]
    assert "hint" not in error


# ─── /api/download ───────────────────────────────────────────────────────────

def test_download_streams_attachment(client, use_resolver):
    _, engine = use_resolver([YOUTUBE_INFO])
    response = client.get("/api/download/137+251", params={"url": YOUTUBE_URL})

    assert response.status_code == 200
    assert response.headers["content-type"] == "video/mp4"
    assert response.headers["content-disposition"] == (
        'attachment; filename="Never_Gonna_Give_You_Up_Official_Video.mp4"'
    )
    assert response.headers["content-length"] == str(len(engine.payload))
    assert response.content == engine.payload
    assert engine.download_calls[0]["format"] == "137+251"


def test_download_mp3(client, use_resolver):
    use_resolver([YOUTUBE_INFO])
    response = client.get(f"/api/download/{MP3_FORMAT_ID}", params={"url": YOUTUBE_URL})

    assert response.status_code == 200
    assert response.headers["content-type"] == "audio/mpeg"
    assert response.headers["content-disposition"].endswith('.mp3"')


def test_download_degrades_when_format_disappeared(client, use_resolver):
    _, engine = use_resolver([YOUTUBE_INFO])
    response = client.get("/api/download/999+140", params={"url": YOUTUBE_URL})

    assert response.status_code == 200
    assert engine.download_calls[0]["format"] == "bestvideo+bestaudio/best"


def test_download_requires_url(client, use_resolver):
    use_resolver([YOUTUBE_INFO])
    response = client.get("/api/download/18")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_URL"


def test_download_engine_failure_is_json(client, use_resolver, storage):
    _, engine = use_resolver([YOUTUBE_INFO])

    def _fail(url, opts):
        raise download_error("[youtube] abc: Sign in to confirm you're not a bot")

    engine.download = _fail
    response = client.get("/api/download/18", params={"url": YOUTUBE_URL})

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "BOT_DETECTED"
    assert list(storage.downloads_dir.glob("*")) == []


def test_download_unrecognized_engine_failure_is_download_error(client, use_resolver, storage):
    """A merge or postprocessing failure after metadata resolved is not reported as an info failure."""
    _, engine = use_resolver([YOUTUBE_INFO])

    def _fail(url, opts):
        raise download_error("Postprocessing: Conversion failed!")

    engine.download = _fail
    response = client.get("/api/download/137+251", params={"url": YOUTUBE_URL})

    assert response.status_code == 500
    error = response.json()["error"]
    assert error["code"] == "SERVER_ERROR"
    assert error["message"].startswith("Download failed:")
    assert "Conversion failed" in error["message"]
    assert list(storage.downloads_dir.glob("*")) == []


# ─── /api/test ───────────────────────────────────────────────────────────────

def test_status_probe(client, use_resolver):
    use_resolver([YOUTUBE_INFO])
    response = client.get("/api/test")

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["proxyConfigured"] is False
    assert payload["cookiesConfigured"] is False
    assert payload["youtubeStrategies"] == 3
    assert "YouTube" in payload["platforms"]
    assert payload["ytDlpVersion"] == "test"
