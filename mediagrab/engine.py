"""
Thin synchronous wrapper around yt-dlp, the external extraction engine.

Calls block; callers run them in the default executor.
"""

from typing import Any, Dict, Optional

import yt_dlp


class YtDlpEngine:
    """Extracts metadata and materializes files with yt-dlp."""

    @property
    def version(self) -> str:
        return yt_dlp.version.__version__

    def extract_info(self, url: str, opts: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Fetch metadata without downloading."""
        opts = dict(opts, skip_download=True)
        with yt_dlp.YoutubeDL(opts) as ydl:
            info = ydl.extract_info(url, download=False)
            return ydl.sanitize_info(info) if info else None

    def download(self, url: str, opts: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Download (and merge/convert, per opts) to the configured outtmpl."""
        with yt_dlp.YoutubeDL(opts) as ydl:
            return ydl.extract_info(url, download=True)


# Global engine instance
engine = YtDlpEngine()
