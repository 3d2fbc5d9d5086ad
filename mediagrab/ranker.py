"""
Ranking, deduplication and truncation of normalized formats.

Pipeline order (enforced by :func:`rank_formats`):

1. **Sort** — video by leading integer of the quality label, descending,
   followed by audio sorted the same way. Sorting is stable.
2. **Deduplicate** — collapse identical ``(quality, media_type)`` pairs,
   preferring an entry that already carries audio.
3. **Truncate** — keep at most ``limit`` entries, order preserved.
4. **Append** — the synthetic "MP3 Audio" entry, always last.
"""

import re
from typing import Dict, List, Sequence, Tuple

from .models import FormatDescriptor, FormatType, MediaType

MP3_FORMAT_ID = "mp3-best"
DEFAULT_LIMIT = 8

_LEADING_INT = re.compile(r"^\s*(\d+)")


def quality_rank(quality: str) -> int:
    """Leading integer of a quality label ("1080p60" -> 1080); 0 when absent."""
    match = _LEADING_INT.match(quality or "")
    return int(match.group(1)) if match else 0


def sort_formats(formats: Sequence[FormatDescriptor]) -> List[FormatDescriptor]:
    videos = [f for f in formats if f.media_type == MediaType.VIDEO]
    audios = [f for f in formats if f.media_type != MediaType.VIDEO]
    videos.sort(key=lambda f: quality_rank(f.quality), reverse=True)
    audios.sort(key=lambda f: quality_rank(f.quality), reverse=True)
    return videos + audios


def deduplicate_formats(formats: Sequence[FormatDescriptor]) -> List[FormatDescriptor]:
    """
    Remove duplicates keyed by ``(quality, media_type)``.

    The first occurrence keeps its position; it is replaced in place only
    by a later duplicate that has audio when the kept one does not.
    Distinct resolutions sharing a quality label collapse together.
    """
    slots: Dict[Tuple[str, MediaType], int] = {}
    result: List[FormatDescriptor] = []
    for fmt in formats:
        key = (fmt.quality, fmt.media_type)
        if key not in slots:
            slots[key] = len(result)
            result.append(fmt)
        elif fmt.has_audio and not result[slots[key]].has_audio:
            result[slots[key]] = fmt
    return result


def mp3_descriptor() -> FormatDescriptor:
    return FormatDescriptor(
        quality="MP3 Audio",
        resolution="Audio only",
        container="mp3",
        size="Varies",
        format_id=MP3_FORMAT_ID,
        type=FormatType.AUDIO_CONVERTED,
        media_type=MediaType.AUDIO_CONVERTED,
        note="Best audio converted to MP3",
        has_audio=True,
    )


def rank_formats(formats: Sequence[FormatDescriptor], limit: int = DEFAULT_LIMIT) -> List[FormatDescriptor]:
    """Run the full sort -> deduplicate -> truncate -> append pipeline."""
    ranked = deduplicate_formats(sort_formats(formats))[:limit]
    ranked.append(mp3_descriptor())
    return ranked
