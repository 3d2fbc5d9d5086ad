"""
Normalization of raw yt-dlp format entries into FormatDescriptors.

Two branches:
  YouTube  — codecs are reliable: muxed entries, video-only DASH entries
             (paired with the best audio entry) and audio-only entries.
  Generic  — codec data is often missing, so media kind is inferred from
             container, dimensions and format id. Best effort only.

Every predicate treats each field as optional; absent values never raise.
"""

from typing import Iterable, List, Optional

from .models import FormatDescriptor, FormatType, MediaType, RawFormatEntry, RawMediaInfo
from .platforms import Platform

YOUTUBE_VIDEO_CONTAINERS = ("mp4", "webm")
VIDEO_CONTAINERS = ("mp4", "webm", "mov", "m4v", "mkv")
AUDIO_CONTAINERS = ("m4a", "mp3", "aac", "opus", "ogg", "oga", "wav", "flac")

# YouTube video-only streams below this height are not offered
MIN_VIDEO_HEIGHT = 360

# YouTube itag 140: m4a AAC 128k, present on nearly every video
DEFAULT_AUDIO_ID = "140"

MIB = 1024 * 1024


# ============================================================================
# FIELD PREDICATES
# ============================================================================


def has_codec(codec: Optional[str]) -> bool:
    """Codec is explicitly present."""
    return codec is not None and codec != "none"


def lacks_codec(codec: Optional[str]) -> bool:
    """Codec is explicitly absent (yt-dlp reports the string "none")."""
    return codec == "none"


def _ext(entry: RawFormatEntry) -> str:
    return (entry.ext or "").lower()


def _has_dimensions(entry: RawFormatEntry) -> bool:
    return entry.width is not None and entry.width > 0 and entry.height is not None and entry.height > 0


# --- YouTube ----------------------------------------------------------------

def youtube_is_audio_only(entry: RawFormatEntry) -> bool:
    return lacks_codec(entry.vcodec) and has_codec(entry.acodec)


def youtube_is_muxed(entry: RawFormatEntry) -> bool:
    return (
        has_codec(entry.vcodec)
        and has_codec(entry.acodec)
        and _ext(entry) in YOUTUBE_VIDEO_CONTAINERS
    )


def youtube_is_video_only(entry: RawFormatEntry) -> bool:
    return (
        has_codec(entry.vcodec)
        and lacks_codec(entry.acodec)
        and entry.height is not None
        and entry.height >= MIN_VIDEO_HEIGHT
        and _ext(entry) in YOUTUBE_VIDEO_CONTAINERS
    )


# --- Generic ----------------------------------------------------------------

def generic_is_video(entry: RawFormatEntry) -> bool:
    """Any one rule is enough; rules are checked in this order."""
    if has_codec(entry.vcodec):
        return True
    if _has_dimensions(entry) and _ext(entry) in VIDEO_CONTAINERS:
        return True
    if _ext(entry) in VIDEO_CONTAINERS and entry.url is not None and not lacks_codec(entry.vcodec):
        return True
    if entry.format_id is not None and "video" in entry.format_id.lower():
        return True
    return False


def generic_is_audio_only(entry: RawFormatEntry) -> bool:
    if generic_is_video(entry):
        return False
    return (
        has_codec(entry.acodec)
        or _ext(entry) in AUDIO_CONTAINERS
        or (entry.format_id is not None and "audio" in entry.format_id.lower())
    )


def generic_has_audio(entry: RawFormatEntry) -> bool:
    """
    Inferred, not certain: an accepted container with no audio codec reported
    is assumed to carry audio.
    """
    if has_codec(entry.acodec):
        return True
    return _ext(entry) in VIDEO_CONTAINERS and entry.acodec is None


def carries_audio(platform: Platform, entry: RawFormatEntry) -> bool:
    """Whether a single entry already includes an audio track."""
    if platform == Platform.YOUTUBE:
        return has_codec(entry.acodec)
    return generic_has_audio(entry)


def is_audio_only(platform: Platform, entry: RawFormatEntry) -> bool:
    if platform == Platform.YOUTUBE:
        return youtube_is_audio_only(entry)
    return generic_is_audio_only(entry)


def best_audio_id(entries: Iterable[RawFormatEntry]) -> Optional[str]:
    """Format id of the audio entry with the highest average bitrate."""
    best: Optional[RawFormatEntry] = None
    for entry in entries:
        if best is None or (entry.abr or 0) > (best.abr or 0):
            best = entry
    return best.format_id if best else None


# ============================================================================
# RENDERING
# ============================================================================


def format_size(entry: RawFormatEntry) -> str:
    """Render bytes as MB; approximate sizes are prefixed with '~'."""
    if entry.filesize is not None and entry.filesize > 0:
        return f"{entry.filesize / MIB:.2f} MB"
    if entry.filesize_approx is not None and entry.filesize_approx > 0:
        return f"~{entry.filesize_approx / MIB:.2f} MB"
    return "Unknown"


def format_resolution(entry: RawFormatEntry) -> str:
    if _has_dimensions(entry):
        return f"{entry.width}x{entry.height}"
    return "Unknown"


def _fps(entry: RawFormatEntry) -> Optional[int]:
    return int(round(entry.fps)) if entry.fps else None


def _audio_quality(entry: RawFormatEntry) -> str:
    return f"{int(round(entry.abr))}kbps" if entry.abr else "Audio"


def _video_descriptor(
    entry: RawFormatEntry,
    quality: str,
    format_id: str,
    format_type: FormatType,
    note: str,
    has_audio: bool,
) -> FormatDescriptor:
    return FormatDescriptor(
        quality=quality,
        resolution=format_resolution(entry),
        container=entry.ext or "mp4",
        size=format_size(entry),
        format_id=format_id,
        fps=_fps(entry),
        type=format_type,
        media_type=MediaType.VIDEO,
        note=note,
        has_audio=has_audio,
    )


def _audio_descriptor(entry: RawFormatEntry) -> FormatDescriptor:
    return FormatDescriptor(
        quality=_audio_quality(entry),
        resolution="Audio only",
        container=entry.ext or "m4a",
        size=format_size(entry),
        format_id=entry.format_id,
        type=FormatType.AUDIO,
        media_type=MediaType.AUDIO,
        note="Audio only",
        has_audio=True,
    )


# ============================================================================
# BRANCHES
# ============================================================================


def _normalize_youtube(entries: List[RawFormatEntry]) -> List[FormatDescriptor]:
    audio_id = best_audio_id(e for e in entries if youtube_is_audio_only(e)) or DEFAULT_AUDIO_ID

    descriptors: List[FormatDescriptor] = []
    for entry in entries:
        if youtube_is_muxed(entry):
            quality = entry.format_note or (f"{entry.height}p" if entry.height else "Unknown")
            descriptors.append(_video_descriptor(
                entry, quality, entry.format_id,
                FormatType.VIDEO_AUDIO_MERGED, "Video + Audio", True,
            ))
        elif youtube_is_video_only(entry):
            quality = entry.format_note or f"{entry.height}p"
            descriptors.append(_video_descriptor(
                entry, quality, f"{entry.format_id}+{audio_id}",
                FormatType.VIDEO_NEEDS_MERGE, "Video + Audio (merged on download)", False,
            ))
        elif youtube_is_audio_only(entry):
            descriptors.append(_audio_descriptor(entry))
    return descriptors


def _normalize_generic(entries: List[RawFormatEntry]) -> List[FormatDescriptor]:
    audio_id = best_audio_id(e for e in entries if generic_is_audio_only(e))

    descriptors: List[FormatDescriptor] = []
    for entry in entries:
        if generic_is_video(entry):
            # Generic format notes ("DASH video", "hd") rarely carry a resolution
            quality = f"{entry.height}p" if entry.height else (entry.format_note or "Unknown")
            if generic_has_audio(entry):
                descriptors.append(_video_descriptor(
                    entry, quality, entry.format_id,
                    FormatType.VIDEO_AUDIO_MERGED, "Video + Audio", True,
                ))
            elif audio_id is not None:
                descriptors.append(_video_descriptor(
                    entry, quality, f"{entry.format_id}+{audio_id}",
                    FormatType.VIDEO_NEEDS_MERGE, "Video + Audio (merged on download)", False,
                ))
            else:
                descriptors.append(_video_descriptor(
                    entry, quality, entry.format_id,
                    FormatType.VIDEO_NEEDS_MERGE, "Video only", False,
                ))
        elif generic_is_audio_only(entry):
            descriptors.append(_audio_descriptor(entry))
    return descriptors


def normalize(platform: Platform, info: RawMediaInfo) -> List[FormatDescriptor]:
    """Classify raw formats into unordered FormatDescriptors."""
    # Entries without an id cannot be requested later
    entries = [entry for entry in info.formats if entry.format_id]
    if platform == Platform.YOUTUBE:
        return _normalize_youtube(entries)
    return _normalize_generic(entries)
