"""Tests for the voice catalog and built-in voices."""
from __future__ import annotations

import json

import pytest

from voxkit.core.errors import VoiceIndexError, VoiceNotFound
from voxkit.voices import BUILTIN_VOICES, VoiceCatalog, VoiceKind, VoiceRecord


class TestBuiltins:

    def test_presets_first_then_designed(self):
        kinds = [v.kind for v in BUILTIN_VOICES]
        assert kinds[0] is VoiceKind.PRESET
        assert VoiceKind.BUILTIN in kinds

    def test_presets_carry_speaker_ids(self):
        anna = next(v for v in BUILTIN_VOICES if v.name == "anna")
        assert anna.source_reference == "ono_anna"

    def test_designed_builtins_have_descriptions(self):
        for v in BUILTIN_VOICES:
            if v.kind is VoiceKind.BUILTIN:
                assert v.description


class TestResolve:
    """Name resolution order and errors."""

    def test_default_is_first_builtin(self, voices_dir):
        catalog = VoiceCatalog(voices_dir)
        assert catalog.resolve() is BUILTIN_VOICES[0]
        assert catalog.resolve("") is BUILTIN_VOICES[0]

    def test_no_builtins_and_no_name(self, voices_dir):
        with pytest.raises(VoiceNotFound) as exc_info:
            VoiceCatalog(voices_dir, builtins=()).resolve()
        assert exc_info.value.name == "(default)"

    def test_unknown_name(self, voices_dir):
        with pytest.raises(VoiceNotFound) as exc_info:
            VoiceCatalog(voices_dir).resolve("UNKNOWN")
        assert exc_info.value.name == "UNKNOWN"
        assert exc_info.value.message == "Voice not found: UNKNOWN"

    def test_custom_shadows_builtin(self, voices_dir):
        catalog = VoiceCatalog(voices_dir)
        catalog.save(VoiceRecord(name="narrator", kind=VoiceKind.DESIGNED, description="mine"))
        resolved = catalog.resolve("narrator")
        assert resolved.kind is VoiceKind.DESIGNED
        assert resolved.description == "mine"

        names = [v.name for v in catalog.list_voices()]
        assert names.count("narrator") == 1
        assert names[0] == "narrator"


class TestPersistence:
    """index.json read/write."""

    def test_save_upserts(self, voices_dir):
        catalog = VoiceCatalog(voices_dir)
        catalog.save(VoiceRecord(name="alice", kind=VoiceKind.DESIGNED, description="v1"))
        catalog.save(VoiceRecord(name="alice", kind=VoiceKind.DESIGNED, description="v2"))

        custom = catalog.custom_voices()
        assert len(custom) == 1
        assert custom[0].description == "v2"

    def test_index_survives_new_instance(self, voices_dir):
        VoiceCatalog(voices_dir).save(
            VoiceRecord(name="bob", kind=VoiceKind.CLONED, source_reference="/refs/bob.wav")
        )
        record = VoiceCatalog(voices_dir).get("bob")
        assert record.kind is VoiceKind.CLONED
        assert record.source_reference == "/refs/bob.wav"
        assert record.created_at.tzinfo is not None

    def test_index_is_a_json_list(self, voices_dir):
        VoiceCatalog(voices_dir).save(VoiceRecord(name="bob", kind=VoiceKind.DESIGNED, description="d"))
        raw = json.loads((voices_dir / "index.json").read_text(encoding="utf-8"))
        assert isinstance(raw, list)
        assert raw[0]["name"] == "bob"
        assert raw[0]["kind"] == "designed"

    def test_corrupt_index_raises(self, voices_dir):
        (voices_dir / "index.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(VoiceIndexError):
            VoiceCatalog(voices_dir).custom_voices()

    def test_delete_removes_record_and_blobs(self, voices_dir):
        catalog = VoiceCatalog(voices_dir)
        catalog.save(VoiceRecord(name="alice", kind=VoiceKind.DESIGNED, description="d"))
        for name in ("alice.blob", "alice-1.7b.blob", "alice-0.6b.blob", "alice-two.blob"):
            (voices_dir / name).write_bytes(b"x")

        assert catalog.delete("alice") is True
        assert catalog.get("alice") is None
        assert not (voices_dir / "alice-1.7b.blob").exists()
        assert not (voices_dir / "alice.blob").exists()
        assert (voices_dir / "alice-two.blob").exists()

    def test_delete_unknown(self, voices_dir):
        assert VoiceCatalog(voices_dir).delete("nobody") is False
