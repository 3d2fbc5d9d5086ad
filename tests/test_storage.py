"""Tests for temp file management."""

import os
import time

import pytest


def test_stems_are_unique(storage):
    assert len({storage.new_stem() for _ in range(500)}) == 500


def test_find_output_ignores_partials(storage):
    stem = storage.new_stem()
    storage.path_for(stem, "mp4.part").write_bytes(b"x" * 100)
    assert storage.find_output(stem) is None

    final = storage.path_for(stem, "mp4")
    final.write_bytes(b"x")
    assert storage.find_output(stem) == final


def test_delete_stem_removes_all_files(storage):
    stem = storage.new_stem()
    for ext in ("mp4", "f137.mp4", "mp4.part"):
        storage.path_for(stem, ext).write_bytes(b"x")
    storage.delete_stem(stem)
    assert list(storage.downloads_dir.glob(f"{stem}.*")) == []


def test_delete_file_tolerates_missing(storage):
    storage.delete_file(storage.path_for("missing", "mp4"))


def test_cleanup_old_files_only_removes_expired(storage):
    old = storage.path_for(storage.new_stem(), "mp4")
    fresh = storage.path_for(storage.new_stem(), "mp4")
    old.write_bytes(b"x")
    fresh.write_bytes(b"x")
    past = time.time() - storage.file_ttl - 60
    os.utime(old, (past, past))

    storage.cleanup_old_files()

    assert not old.exists()
    assert fresh.exists()


@pytest.mark.asyncio
async def test_delete_later(storage):
    path = storage.path_for(storage.new_stem(), "mp4")
    path.write_bytes(b"x")
    await storage.delete_later(path, delay=0)
    assert not path.exists()
