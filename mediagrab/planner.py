"""
Download planning: turn a chosen formatId into a concrete yt-dlp invocation,
materialize it to a temp file and stream it back.

formatId forms:
  "mp3-best"         — best audio, extracted and encoded to mp3
  "<video>+<audio>"  — merge selector produced during normalization
  "<id>"             — single format; merged with bestaudio when it has no audio

When an id no longer resolves against fresh metadata the plan degrades to
"bestvideo+bestaudio/best" instead of failing.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import AsyncIterator, BinaryIO

from .engine import YtDlpEngine
from .errors import DownloadFailed, StreamFailure
from .models import RawMediaInfo
from .normalizer import carries_audio, is_audio_only
from .platforms import Platform
from .ranker import MP3_FORMAT_ID
from .storage import StorageManager
from .strategies import Strategy

logger = logging.getLogger(__name__)

FALLBACK_SELECTOR = "bestvideo+bestaudio/best"
MP3_SELECTOR = "bestaudio/best"
MP3_QUALITY = "192"
CHUNK_SIZE = 1024 * 1024
MAX_FILENAME_LENGTH = 100

CONTENT_TYPES = {
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mkv": "video/x-matroska",
    "mov": "video/quicktime",
    "m4v": "video/x-m4v",
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "aac": "audio/aac",
    "opus": "audio/ogg",
    "ogg": "audio/ogg",
    "oga": "audio/ogg",
    "wav": "audio/wav",
    "flac": "audio/flac",
}


def content_type_for(container: str, audio_only: bool = False) -> str:
    if audio_only and container == "webm":
        return "audio/webm"
    return CONTENT_TYPES.get(container.lower(), "application/octet-stream")


def sanitize_filename(title: str, max_length: int = MAX_FILENAME_LENGTH) -> str:
    """Strip non-word characters, collapse whitespace to underscores, truncate."""
    cleaned = re.sub(r"[^\w\s]", "", title or "", flags=re.ASCII)
    cleaned = re.sub(r"\s+", "_", cleaned.strip())
    return cleaned[:max_length] or "download"


@dataclass
class DownloadPlan:
    format_selector: str
    container: str
    merge: bool
    extract_audio: bool
    content_type: str
    stem: str
    output_path: Path
    is_fallback: bool = False


class DownloadPlanner:
    """Derives and executes download plans."""

    def __init__(self, engine: YtDlpEngine, storage: StorageManager):
        self.engine = engine
        self.storage = storage

    def _build(
        self,
        selector: str,
        container: str,
        *,
        merge: bool = False,
        extract_audio: bool = False,
        audio_only: bool = False,
        is_fallback: bool = False,
    ) -> DownloadPlan:
        stem = self.storage.new_stem()
        return DownloadPlan(
            format_selector=selector,
            container=container,
            merge=merge,
            extract_audio=extract_audio,
            content_type=content_type_for(container, audio_only or extract_audio),
            stem=stem,
            output_path=self.storage.path_for(stem, container),
            is_fallback=is_fallback,
        )

    def _fallback(self, format_id: str) -> DownloadPlan:
        logger.warning(f"⚠️ Format {format_id!r} not in fresh metadata — using {FALLBACK_SELECTOR!r}")
        return self._build(FALLBACK_SELECTOR, "mp4", merge=True, is_fallback=True)

    def plan(self, platform: Platform, info: RawMediaInfo, format_id: str) -> DownloadPlan:
        """Derive the engine invocation for a formatId against fresh metadata."""
        if format_id == MP3_FORMAT_ID:
            return self._build(MP3_SELECTOR, "mp3", extract_audio=True)

        if "+" in format_id:
            video_id, _, audio_id = format_id.partition("+")
            if info.find_format(video_id) is None or info.find_format(audio_id) is None:
                return self._fallback(format_id)
            return self._build(format_id, "mp4", merge=True)

        entry = info.find_format(format_id)
        if entry is None:
            return self._fallback(format_id)

        audio_only = is_audio_only(platform, entry)
        if audio_only or carries_audio(platform, entry):
            container = entry.ext or ("m4a" if audio_only else "mp4")
            return self._build(format_id, container, audio_only=audio_only)

        # Falls back to the bare stream when the source has no separate audio
        return self._build(f"{format_id}+bestaudio/{format_id}", "mp4", merge=True)

    async def materialize(self, url: str, plan: DownloadPlan, strategy: Strategy) -> Path:
        """
        Run the engine with the plan and the strategy that resolved the URL,
        so the download reuses the same proxy, cookies and client identity.
        """
        opts = strategy.ytdlp_opts(
            output_template=self.storage.output_template(plan.stem),
            format_selector=plan.format_selector,
        )
        if plan.merge:
            opts['merge_output_format'] = plan.container
        if plan.extract_audio:
            opts['postprocessors'] = [{
                'key': 'FFmpegExtractAudio',
                'preferredcodec': 'mp3',
                'preferredquality': MP3_QUALITY,
            }]

        logger.info(f"📥 Downloading with {strategy.name}: format={plan.format_selector!r}")
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, partial(self.engine.download, url, opts))

        path = self.storage.find_output(plan.stem)
        if path is None or path.stat().st_size == 0:
            self.storage.delete_stem(plan.stem)
            raise DownloadFailed("File not found on disk after download")

        plan.output_path = path
        logger.info(f"✅ Materialized {path.name} ({path.stat().st_size / 1024 / 1024:.2f} MB)")
        return path

    def stream_file(self, path: Path) -> AsyncIterator[bytes]:
        """
        Open the file and return an iterator over its chunks.

        Deletion is scheduled as soon as the file is handed off, so it happens
        whether streaming completes, fails, is abandoned or never starts. The
        open handle keeps the data readable after the unlink.
        """
        try:
            f = open(path, "rb")
        except OSError as e:
            logger.error(f"❌ Cannot open {path.name} for streaming: {e}")
            raise StreamFailure(f"Stream failed: {e}") from e
        finally:
            self.storage.schedule_cleanup(path)
        return self._read_chunks(f, path.name)

    async def _read_chunks(self, f: BinaryIO, name: str) -> AsyncIterator[bytes]:
        loop = asyncio.get_event_loop()
        try:
            while True:
                chunk = await loop.run_in_executor(None, f.read, CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
        except OSError as e:
            logger.error(f"❌ Stream failed for {name}: {e}")
            raise StreamFailure(f"Stream failed: {e}") from e
        finally:
            f.close()
