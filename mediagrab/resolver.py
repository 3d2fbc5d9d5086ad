"""
Request orchestration: URL -> platform -> strategies -> engine -> formats,
and URL + formatId -> fresh metadata -> plan -> materialized file.

Nothing is cached between requests; every call re-resolves from scratch.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import Settings, settings
from .engine import YtDlpEngine, engine
from .errors import (
    AllStrategiesFailed,
    DownloadFailed,
    InputError,
    MediaGrabError,
    classify_engine_error,
)
from .executor import StrategyExecutor, Success
from .models import VideoInfo
from .normalizer import normalize
from .planner import DownloadPlan, DownloadPlanner, content_type_for, sanitize_filename
from .platforms import Platform, classify
from .ranker import rank_formats
from .storage import StorageManager, storage
from .strategies import StrategyCatalog

logger = logging.getLogger(__name__)


@dataclass
class PreparedDownload:
    """A materialized file ready to stream"""
    path: Path
    filename: str
    content_type: str
    size: int
    plan: DownloadPlan


def validate_url(url: Optional[str]) -> str:
    if not url or not url.strip():
        raise InputError("URL is required")
    url = url.strip()
    if not url.lower().startswith(("http://", "https://")):
        raise InputError("URL must start with http:// or https://")
    return url


class MediaResolver:
    """Format listing and download preparation for a media URL."""

    def __init__(self, settings: Settings, engine: YtDlpEngine, storage: StorageManager):
        self.settings = settings
        self.engine = engine
        self.storage = storage
        self.catalog = StrategyCatalog(settings)
        self.executor = StrategyExecutor(engine)
        self.planner = DownloadPlanner(engine, storage)

    def _classify_failure(self, error: str, platform: Platform, attempts=None) -> MediaGrabError:
        return classify_engine_error(error, platform, self.settings.has_proxy, attempts)

    async def _resolve(self, url: str, platform: Platform) -> Success:
        strategies = self.catalog.strategies_for(platform)
        try:
            return await self.executor.resolve(url, strategies)
        except AllStrategiesFailed as e:
            raise self._classify_failure(e.last_error, platform, e.attempts) from e

    async def get_video_info(self, url: Optional[str]) -> VideoInfo:
        """Fetch metadata and return the ranked, deduplicated format list."""
        url = validate_url(url)
        platform = classify(url)
        logger.info(f"ℹ️ Info request: {url} (platform={platform.value})")

        result = await self._resolve(url, platform)
        info = result.info

        formats = rank_formats(normalize(platform, info), limit=self.settings.max_formats)
        logger.info(f"✅ {info.title!r}: {len(formats)} formats offered ({len(info.formats)} raw) via {result.strategy_name}")

        return VideoInfo(
            platform=platform,
            title=info.title or "Unknown",
            video_id=info.id,
            duration=info.duration,
            thumbnail=info.thumbnail,
            uploader=info.uploader,
            views=info.view_count,
            upload_date=info.upload_date,
            description=info.description,
            url=info.webpage_url or url,
            formats=formats,
            total_formats_available=len(info.formats),
            fetched_with=result.strategy_name,
        )

    async def prepare_download(self, url: Optional[str], format_id: str) -> PreparedDownload:
        """Re-resolve the URL, plan the chosen format and materialize it to a temp file."""
        url = validate_url(url)
        if not format_id:
            raise InputError("formatId is required")
        platform = classify(url)
        logger.info(f"📥 Download request: {url} (format={format_id}, platform={platform.value})")

        result = await self._resolve(url, platform)
        plan = self.planner.plan(platform, result.info, format_id)

        try:
            path = await self.planner.materialize(url, plan, result.strategy)
        except MediaGrabError:
            raise
        except Exception as e:
            self.storage.delete_stem(plan.stem)
            logger.error(f"❌ Download failed with {result.strategy_name}: {e}")
            error = self._classify_failure(str(e), platform)
            if isinstance(error, AllStrategiesFailed):
                error = DownloadFailed(f"Download failed: {e}", hint=error.hint)
            raise error from e

        extension = path.suffix.lstrip(".") or plan.container
        content_type = plan.content_type if extension == plan.container else content_type_for(extension)
        return PreparedDownload(
            path=path,
            filename=f"{sanitize_filename(result.info.title or '')}.{extension}",
            content_type=content_type,
            size=path.stat().st_size,
            plan=plan,
        )


# Global singleton
resolver = MediaResolver(settings, engine, storage)
