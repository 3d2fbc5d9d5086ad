"""
Shared fixtures and helpers for mediagrab tests.

The extraction engine is replaced by FakeEngine, which returns scripted
outcomes in call order, so no test touches the network.
"""

import pathlib
import sys
from typing import Any, Dict, List, Optional

import pytest
import yt_dlp

# ─── Path setup (must happen before any package import) ──────────────────────

_ROOT = pathlib.Path(__file__).parent.parent
sys.path.insert(0, str(_ROOT))

from mediagrab.config import Settings  # noqa: E402
from mediagrab.resolver import MediaResolver  # noqa: E402
from mediagrab.storage import StorageManager  # noqa: E402

# ─── Constants ───────────────────────────────────────────────────────────────

YOUTUBE_URL = "https://www.youtube.com/watch?v=abc"
INSTAGRAM_URL = "https://www.instagram.com/reel/C0ffee/"

YOUTUBE_INFO: Dict[str, Any] = {
    "id": "abc",
    "title": "Never Gonna: Give You Up! (Official Video)",
    "duration": 212,
    "thumbnail": "https://i.ytimg.com/vi/abc/maxresdefault.jpg",
    "uploader": "Rick Astley",
    "view_count": 1500000000,
    "upload_date": "20091025",
    "description": "The official video",
    "webpage_url": YOUTUBE_URL,
    "formats": [
        {"format_id": "sb0", "ext": "mhtml", "vcodec": "none", "acodec": "none", "format_note": "storyboard"},
        {"format_id": "139", "ext": "m4a", "vcodec": "none", "acodec": "mp4a.40.5", "abr": 48.8,
         "filesize": 1048576, "format_note": "low"},
        {"format_id": "140", "ext": "m4a", "vcodec": "none", "acodec": "mp4a.40.2", "abr": 129.4,
         "filesize": 3145728, "format_note": "medium"},
        {"format_id": "251", "ext": "webm", "vcodec": "none", "acodec": "opus", "abr": 135.2,
         "filesize_approx": 3460300, "format_note": "medium"},
        {"format_id": "160", "ext": "mp4", "vcodec": "avc1.4d400c", "acodec": "none",
         "width": 256, "height": 144, "format_note": "144p"},
        {"format_id": "18", "ext": "mp4", "vcodec": "avc1.42001E", "acodec": "mp4a.40.2",
         "width": 640, "height": 360, "fps": 30, "format_note": "360p", "filesize": 10485760},
        {"format_id": "136", "ext": "mp4", "vcodec": "avc1.4d401f", "acodec": "none",
         "width": 1280, "height": 720, "fps": 30, "format_note": "720p", "filesize_approx": 20971520},
        {"format_id": "137", "ext": "mp4", "vcodec": "avc1.640028", "acodec": "none",
         "width": 1920, "height": 1080, "fps": 30, "format_note": "1080p", "filesize": 41943040},
        {"format_id": "248", "ext": "webm", "vcodec": "vp9", "acodec": "none",
         "width": 1920, "height": 1080, "fps": 30, "format_note": "1080p", "filesize": 38000000},
    ],
}

GENERIC_INFO: Dict[str, Any] = {
    "id": "C0ffee",
    "title": "Beach day",
    "uploader": "someone",
    "webpage_url": INSTAGRAM_URL,
    "formats": [
        {"format_id": "hd", "ext": "mp4", "vcodec": "h264", "acodec": "aac",
         "width": 720, "height": 1280, "url": "https://cdn.example.com/hd.mp4", "filesize": 5242880},
        {"format_id": "audio-0", "ext": "m4a", "vcodec": "none", "acodec": "mp4a.40.2",
         "abr": 128, "url": "https://cdn.example.com/a.m4a"},
    ],
}


# ─── Fake engine ─────────────────────────────────────────────────────────────

class FakeEngine:
    """
    Stand-in for YtDlpEngine.

    ``outcomes`` are consumed one per extract_info call (the last one repeats):
    a dict is returned, an exception instance is raised. download() writes ``payload`` to the
    outtmpl using the extension yt-dlp would produce.
    """

    version = "test"

    def __init__(self, outcomes: Optional[List[Any]] = None, payload: bytes = b"x" * 4096):
        self.outcomes = list(outcomes or [])
        self.payload = payload
        self.extract_calls: List[Dict[str, Any]] = []
        self.download_calls: List[Dict[str, Any]] = []
        self.write_file = True

    def extract_info(self, url: str, opts: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self.extract_calls.append(opts)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def download(self, url: str, opts: Dict[str, Any]) -> Dict[str, Any]:
        self.download_calls.append(opts)
        if opts.get("postprocessors"):
            ext = "mp3"
        else:
            ext = opts.get("merge_output_format") or "mp4"
        if self.write_file:
            pathlib.Path(opts["outtmpl"].replace("%(ext)s", ext)).write_bytes(self.payload)
        return {"id": "abc"}


def download_error(message: str) -> yt_dlp.utils.DownloadError:
    return yt_dlp.utils.DownloadError(f"ERROR: {message}")


# ─── Fixtures ────────────────────────────────────────────────────────────────

@pytest.fixture
def settings(tmp_path):
    """Settings with no proxy or cookies and an isolated downloads dir."""
    return Settings(downloads_dir=tmp_path / "downloads", cleanup_delay_seconds=0)


@pytest.fixture
def storage(settings):
    return StorageManager(settings)


@pytest.fixture
def fake_engine():
    return FakeEngine([YOUTUBE_INFO])


@pytest.fixture
def make_resolver(settings, storage):
    """Build a MediaResolver around a FakeEngine with the given outcomes."""
    def _make(outcomes, resolver_settings: Optional[Settings] = None):
        engine = FakeEngine(outcomes)
        return MediaResolver(resolver_settings or settings, engine, storage), engine
    return _make
