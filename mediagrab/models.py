"""
Pydantic models for engine data and request/response schemas
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .platforms import Platform

logger = logging.getLogger(__name__)


# ============================================================================
# RAW ENGINE DATA
# ============================================================================


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class RawFormatEntry(BaseModel):
    """One entry of yt-dlp's ``formats`` list. Every field may be missing."""
    format_id: Optional[str] = None
    ext: Optional[str] = None
    vcodec: Optional[str] = None
    acodec: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    filesize: Optional[float] = None
    filesize_approx: Optional[float] = None
    abr: Optional[float] = None
    fps: Optional[float] = None
    format_note: Optional[str] = None
    url: Optional[str] = None

    @field_validator("format_id", "ext", "vcodec", "acodec", "format_note", "url", mode="before")
    @classmethod
    def _coerce_str(cls, v: Any) -> Optional[str]:
        return str(v) if v is not None else None

    @field_validator("width", "height", mode="before")
    @classmethod
    def _coerce_int(cls, v: Any) -> Optional[int]:
        return _to_int(v)

    @field_validator("filesize", "filesize_approx", "abr", "fps", mode="before")
    @classmethod
    def _coerce_float(cls, v: Any) -> Optional[float]:
        return _to_float(v)


class RawMediaInfo(BaseModel):
    """Uninterpreted yt-dlp result for one URL."""
    id: Optional[str] = None
    title: Optional[str] = None
    duration: Optional[float] = None
    thumbnail: Optional[str] = None
    uploader: Optional[str] = None
    view_count: Optional[int] = None
    upload_date: Optional[str] = None
    description: Optional[str] = None
    webpage_url: Optional[str] = None
    formats: List[RawFormatEntry] = Field(default_factory=list)

    def find_format(self, format_id: str) -> Optional[RawFormatEntry]:
        for entry in self.formats:
            if entry.format_id == format_id:
                return entry
        return None

    @classmethod
    def from_engine(cls, info: Dict[str, Any]) -> "RawMediaInfo":
        """Build from a yt-dlp info dict, skipping format entries that fail validation."""
        raw_formats = info.get("formats") or []
        # Single-format extractors describe the media on the info dict itself
        if not raw_formats and info.get("url"):
            raw_formats = [info]

        formats: List[RawFormatEntry] = []
        for raw in raw_formats:
            if not isinstance(raw, dict):
                continue
            try:
                formats.append(RawFormatEntry.model_validate(raw))
            except ValidationError as e:
                logger.debug(f"Skipping malformed format entry {raw.get('format_id')!r}: {e}")

        return cls(
            id=_str_or_none(info.get("id")),
            title=_str_or_none(info.get("title")),
            duration=_to_float(info.get("duration")),
            thumbnail=_str_or_none(info.get("thumbnail")),
            uploader=_str_or_none(info.get("uploader") or info.get("channel")),
            view_count=_to_int(info.get("view_count")),
            upload_date=_str_or_none(info.get("upload_date")),
            description=_str_or_none(info.get("description")),
            webpage_url=_str_or_none(info.get("webpage_url") or info.get("original_url")),
            formats=formats,
        )


def _str_or_none(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


# ============================================================================
# API SCHEMAS
# ============================================================================


class ApiModel(BaseModel):
    """Base for response models: snake_case in Python, camelCase on the wire"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class FormatType(str, Enum):
    VIDEO_AUDIO_MERGED = "video-audio-merged"
    VIDEO_NEEDS_MERGE = "video-needs-merge"
    AUDIO = "audio"
    AUDIO_CONVERTED = "audio-converted"


class MediaType(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    AUDIO_CONVERTED = "audio-converted"


class FormatDescriptor(ApiModel):
    """Normalized, user-facing downloadable format"""
    quality: str
    resolution: str = "Unknown"
    container: str
    size: str = "Unknown"
    format_id: str
    fps: Optional[int] = None
    type: FormatType
    media_type: MediaType
    note: str = ""
    has_audio: bool = False


class ErrorCode(str, Enum):
    """Error code classifications"""
    INVALID_URL = "INVALID_URL"
    UNSUPPORTED_PLATFORM = "UNSUPPORTED_PLATFORM"
    BOT_DETECTED = "BOT_DETECTED"
    AGE_RESTRICTED = "AGE_RESTRICTED"
    GEO_RESTRICTED = "GEO_RESTRICTED"
    LOGIN_REQUIRED = "LOGIN_REQUIRED"
    VIDEO_UNAVAILABLE = "VIDEO_UNAVAILABLE"
    ALL_STRATEGIES_FAILED = "ALL_STRATEGIES_FAILED"
    SERVER_ERROR = "SERVER_ERROR"


class ErrorDetail(ApiModel):
    """Error details"""
    code: ErrorCode
    message: str
    is_transient: bool = Field(..., description="True if retry might succeed, False if permanent")
    retry_after_seconds: Optional[int] = None
    hint: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(ApiModel):
    """Error response for failed requests"""
    success: bool = False
    error: ErrorDetail


class VideoInfoRequest(BaseModel):
    """Request schema for /api/video-info"""
    url: Optional[str] = Field(None, description="Video page URL (http or https)")

    class Config:
        json_schema_extra = {
            "example": {
                "url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            }
        }


class VideoInfo(ApiModel):
    """Media metadata plus the ranked format list"""
    platform: Platform
    title: str
    video_id: Optional[str] = None
    duration: Optional[float] = None
    thumbnail: Optional[str] = None
    uploader: Optional[str] = None
    views: Optional[int] = None
    upload_date: Optional[str] = None
    description: Optional[str] = None
    url: str
    formats: List[FormatDescriptor]
    total_formats_available: int
    fetched_with: str


class VideoInfoResponse(ApiModel):
    """Success response for /api/video-info"""
    success: bool = True
    data: VideoInfo


class StatusResponse(ApiModel):
    """Response schema for /api/test"""
    success: bool = True
    message: str
    proxy_configured: bool
    cookies_configured: bool
    youtube_strategies: int
    platforms: List[Platform]
    yt_dlp_version: str
