"""
Temporary download files: collision-free naming, deferred deletion and a
background sweeper for files orphaned by crashes.
"""

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Optional, Set

from .config import Settings, settings

logger = logging.getLogger(__name__)


class StorageManager:
    """Manages temp download files with deferred and periodic cleanup"""

    def __init__(self, settings: Settings):
        self.downloads_dir = settings.downloads_dir
        self.cleanup_delay = settings.cleanup_delay_seconds
        self.file_ttl = settings.file_ttl_seconds
        self.cleanup_interval = settings.cleanup_interval_seconds
        self._cleanup_task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

    def _ensure_dir(self) -> None:
        self.downloads_dir.mkdir(parents=True, exist_ok=True)

    def new_stem(self) -> str:
        """Unique file stem: millisecond timestamp plus random suffix."""
        return f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"

    def path_for(self, stem: str, ext: str) -> Path:
        self._ensure_dir()
        return self.downloads_dir / f"{stem}.{ext}"

    def output_template(self, stem: str) -> str:
        """yt-dlp outtmpl; the engine picks the final extension."""
        self._ensure_dir()
        return str(self.downloads_dir / f"{stem}.%(ext)s")

    def find_output(self, stem: str) -> Optional[Path]:
        """Largest finished file written for a stem, ignoring partial downloads."""
        if not self.downloads_dir.exists():
            return None
        candidates = [
            p for p in self.downloads_dir.glob(f"{stem}.*")
            if p.is_file() and not p.name.endswith((".part", ".ytdl"))
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda p: p.stat().st_size)

    def delete_file(self, path: Path) -> None:
        try:
            path.unlink()
            logger.info(f"🧹 Deleted temp file: {path.name}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to delete temp file {path.name}: {e}")

    def delete_stem(self, stem: str) -> None:
        """Remove every file (including partials) written for a stem."""
        if not self.downloads_dir.exists():
            return
        for path in self.downloads_dir.glob(f"{stem}.*"):
            self.delete_file(path)

    async def delete_later(self, path: Path, delay: Optional[float] = None) -> None:
        await asyncio.sleep(self.cleanup_delay if delay is None else delay)
        self.delete_file(path)

    def schedule_cleanup(self, path: Path) -> None:
        """Delete ``path`` after the grace period, from the running event loop."""
        task = asyncio.ensure_future(self.delete_later(path))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def cleanup_old_files(self) -> None:
        """Remove files older than TTL"""
        if not self.downloads_dir.exists():
            return

        removed_count = 0
        removed_bytes = 0
        now = time.time()

        for file_path in self.downloads_dir.iterdir():
            if not file_path.is_file():
                continue
            try:
                stat = file_path.stat()
                if now - stat.st_mtime <= self.file_ttl:
                    continue
                file_path.unlink()
                removed_count += 1
                removed_bytes += stat.st_size
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error(f"Failed to cleanup {file_path.name}: {e}")

        if removed_count > 0:
            logger.info(f"🧹 Cleanup complete: {removed_count} files, {removed_bytes / 1024 / 1024:.2f} MB freed")

    async def start_cleanup_scheduler(self):
        """Start background cleanup task"""
        if self._cleanup_task is not None:
            logger.warning("Cleanup scheduler already running")
            return

        async def cleanup_loop():
            logger.info(f"Starting cleanup scheduler (interval: {self.cleanup_interval}s)")
            while True:
                try:
                    await asyncio.sleep(self.cleanup_interval)
                    self.cleanup_old_files()
                except asyncio.CancelledError:
                    logger.info("Cleanup scheduler cancelled")
                    break
                except Exception as e:
                    logger.error(f"Cleanup scheduler error: {e}")

        self._cleanup_task = asyncio.create_task(cleanup_loop())

    async def stop_cleanup_scheduler(self):
        """Stop background cleanup task"""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
            logger.info("Cleanup scheduler stopped")


# Global storage manager instance
storage = StorageManager(settings)
