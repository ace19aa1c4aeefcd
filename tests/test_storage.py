"""Tests for the memory and disk tiers of the clone-prompt cache."""
from __future__ import annotations

import os

import pytest

from voxkit.tts.cache import ClonePromptMemory, cache_key
from voxkit.tts.storage import (
    delete_voice_blobs,
    legacy_blob_path,
    save_blob,
    try_load_blob,
    variant_blob_path,
)


class TestMemoryTier:
    """ClonePromptMemory LRU behaviour."""

    def test_set_get(self):
        mem = ClonePromptMemory(max_items=4)
        mem.set(cache_key("alice", "1.7b"), b"blob")
        assert mem.get("alice:1.7b") == b"blob"
        assert mem.get("alice:0.6b") is None

    def test_lru_eviction(self):
        mem = ClonePromptMemory(max_items=2)
        mem.set("a:1.7b", b"a")
        mem.set("b:1.7b", b"b")
        mem.get("a:1.7b")
        mem.set("c:1.7b", b"c")

        assert "a:1.7b" in mem
        assert "b:1.7b" not in mem
        assert mem.stats()["evictions"] == 1

    def test_evict_voice_drops_all_variants_only(self):
        mem = ClonePromptMemory()
        mem.set("alice:1.7b", b"1")
        mem.set("alice:0.6b", b"2")
        mem.set("alice-two:1.7b", b"3")

        assert mem.evict_voice("alice") == 2
        assert len(mem) == 1
        assert "alice-two:1.7b" in mem

    def test_stats_counts_hits_and_misses(self):
        mem = ClonePromptMemory()
        mem.set("k", b"v")
        mem.get("k")
        mem.get("missing")
        stats = mem.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["size"] == 1


class TestDiskTier:
    """Blob files in the voices directory."""

    def test_paths(self, voices_dir):
        assert variant_blob_path(voices_dir, "alice", "0.6b").name == "alice-0.6b.blob"
        assert legacy_blob_path(voices_dir, "alice").name == "alice.blob"

    def test_save_and_load(self, voices_dir):
        path = variant_blob_path(voices_dir, "alice", "1.7b")
        assert save_blob(path, b"\x00\x01prompt") is True
        data, timings = try_load_blob(path)
        assert data == b"\x00\x01prompt"
        assert "disk_get" in timings

    def test_missing_and_empty_are_misses(self, voices_dir):
        path = variant_blob_path(voices_dir, "ghost", "1.7b")
        assert try_load_blob(path)[0] is None
        path.write_bytes(b"")
        assert try_load_blob(path)[0] is None

    def test_save_leaves_no_temp_files(self, voices_dir):
        save_blob(variant_blob_path(voices_dir, "alice", "1.7b"), b"x" * 1000)
        assert sorted(os.listdir(voices_dir)) == ["alice-1.7b.blob"]

    def test_save_failure_is_reported_not_raised(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file")
        assert save_blob(blocker / "alice-1.7b.blob", b"data") is False

    def test_delete_voice_blobs_matches_variants_only(self, voices_dir):
        for name in ("alice.blob", "alice-1.7b.blob", "alice-0.6b.blob", "alice-two.blob", "alicex-1.7b.blob"):
            (voices_dir / name).write_bytes(b"x")

        assert delete_voice_blobs(voices_dir, "alice") == 3
        assert sorted(os.listdir(voices_dir)) == ["alice-two.blob", "alicex-1.7b.blob"]

    def test_delete_in_missing_dir(self, tmp_path):
        assert delete_voice_blobs(tmp_path / "nope", "alice") == 0
