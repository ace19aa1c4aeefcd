"""Tests for the .vox voice container."""
from __future__ import annotations

import io
import json
import threading
import zipfile

import pytest

from voxkit.core.errors import ContainerImportFailed, ContainerUpdateFailed
from voxkit.voices.container import (
    MANIFEST_PATH,
    SAMPLE_AUDIO_PATH,
    build_vox,
    clone_prompt_path,
    export_vox,
    import_vox,
    new_manifest,
    update_clone_prompt,
    update_sample_audio,
)


def _entries(path):
    with zipfile.ZipFile(path) as zf:
        return {name: zf.read(name) for name in zf.namelist()}


@pytest.fixture
def vox(tmp_path):
    path = tmp_path / "alice.vox"
    export_vox(
        path,
        new_manifest("alice", "A bright voice", method="cloned"),
        clone_prompt=b"prompt-17",
        variant="1.7b",
        reference_audio={"/recordings/alice.wav": b"RIFFref"},
    )
    return path


class TestRoundTrip:
    """export_vox followed by import_vox."""

    def test_fields_survive(self, vox):
        result = import_vox(vox, "1.7b")
        assert result.name == "alice"
        assert result.description == "A bright voice"
        assert result.provenance_method == "cloned"
        assert result.clone_prompt == b"prompt-17"
        assert result.supported_variants == ["1.7b"]
        assert result.reference_audio == {"alice.wav": b"RIFFref"}
        assert result.sample_audio is None

    def test_other_variant_has_no_prompt(self, vox):
        assert import_vox(vox, "0.6b").clone_prompt is None

    def test_import_from_bytes(self, vox):
        result = import_vox(vox.read_bytes(), "1.7b")
        assert result.clone_prompt == b"prompt-17"

    def test_layout(self, vox):
        entries = _entries(vox)
        assert set(entries) == {
            MANIFEST_PATH,
            "embeddings/qwen3-tts/1.7b/clone-prompt.bin",
            "reference/alice.wav",
        }
        manifest = json.loads(entries[MANIFEST_PATH])
        assert manifest["vox_version"] == "0.1.0"
        assert manifest["voice"]["name"] == "alice"
        entry = manifest["embeddings"]["embeddings/qwen3-tts/1.7b/clone-prompt.bin"]
        assert entry["model"] == "Qwen/Qwen3-TTS-12Hz-1.7B-Base"
        assert entry["format"] == "bin"

    def test_clone_prompt_path_accepts_model_id(self):
        assert clone_prompt_path("Qwen/Qwen3-TTS-12Hz-0.6B-Base") == "embeddings/qwen3-tts/0.6b/clone-prompt.bin"

    def test_sample_audio(self, tmp_path):
        data = build_vox(new_manifest("bob", "d", method="designed"), sample_audio=b"RIFFsample")
        assert import_vox(data).sample_audio == b"RIFFsample"


class TestUpdates:
    """Incremental rewrites leave unrelated data alone."""

    def test_adding_variant_keeps_existing_entries(self, vox):
        before = _entries(vox)
        update_clone_prompt(vox, b"prompt-06", "0.6b")
        after = _entries(vox)

        for name, data in before.items():
            if name != MANIFEST_PATH:
                assert after[name] == data
        assert after["embeddings/qwen3-tts/0.6b/clone-prompt.bin"] == b"prompt-06"
        assert import_vox(vox, "0.6b").clone_prompt == b"prompt-06"
        assert import_vox(vox, "1.7b").clone_prompt == b"prompt-17"
        assert import_vox(vox).supported_variants == ["0.6b", "1.7b"]

    def test_prompt_then_sample_both_survive(self, vox):
        update_clone_prompt(vox, b"prompt-06", "0.6b")
        update_sample_audio(vox, b"RIFFsample")
        result = import_vox(vox, "0.6b")
        assert result.clone_prompt == b"prompt-06"
        assert result.sample_audio == b"RIFFsample"
        assert result.reference_audio == {"alice.wav": b"RIFFref"}

    def test_replace_same_variant(self, vox):
        update_clone_prompt(vox, b"new", "1.7b")
        assert import_vox(vox, "1.7b").clone_prompt == b"new"

    def test_unknown_manifest_fields_survive(self, tmp_path):
        manifest = {
            "vox_version": "0.1.0",
            "id": "abc",
            "created": "2024-05-01T12:00:00+00:00",
            "voice": {"name": "eve", "description": "", "accent": "scottish"},
            "custom": {"keep": [1, 2, 3]},
        }
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr(MANIFEST_PATH, json.dumps(manifest))
            zf.writestr("extras/notes.txt", b"hello")
        path = tmp_path / "eve.vox"
        path.write_bytes(buf.getvalue())

        update_sample_audio(path, b"RIFFsample")
        entries = _entries(path)
        raw = json.loads(entries[MANIFEST_PATH])
        assert raw["custom"] == {"keep": [1, 2, 3]}
        assert raw["voice"]["accent"] == "scottish"
        assert raw["id"] == "abc"
        assert SAMPLE_AUDIO_PATH in raw["embeddings"]
        assert entries["extras/notes.txt"] == b"hello"

    def test_concurrent_updates_of_different_variants(self, vox):
        errors = []

        def write(variant, blob):
            try:
                update_clone_prompt(vox, blob, variant)
            except Exception as e:  # pragma: no cover
                errors.append(e)

        threads = [
            threading.Thread(target=write, args=("0.6b", b"a")),
            threading.Thread(target=write, args=("1.7b", b"b")),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert import_vox(vox, "0.6b").clone_prompt == b"a"
        assert import_vox(vox, "1.7b").clone_prompt == b"b"

    def test_update_missing_archive_raises(self, tmp_path):
        with pytest.raises(ContainerUpdateFailed):
            update_clone_prompt(tmp_path / "missing.vox", b"x", "1.7b")

    def test_update_corrupt_archive_raises_and_keeps_file(self, tmp_path):
        path = tmp_path / "bad.vox"
        path.write_bytes(b"not a zip")
        with pytest.raises(ContainerUpdateFailed):
            update_clone_prompt(path, b"x", "1.7b")
        assert path.read_bytes() == b"not a zip"


class TestImportFailures:

    def test_not_a_zip(self):
        with pytest.raises(ContainerImportFailed):
            import_vox(b"definitely not a zip archive")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ContainerImportFailed):
            import_vox(tmp_path / "nope.vox")

    def test_missing_manifest(self):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("reference/a.wav", b"x")
        with pytest.raises(ContainerImportFailed, match="manifest"):
            import_vox(buf.getvalue())

    def test_invalid_manifest(self):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr(MANIFEST_PATH, json.dumps({"voice": {"name": ""}}))
        with pytest.raises(ContainerImportFailed, match="invalid manifest"):
            import_vox(buf.getvalue())

    def test_manifest_not_json(self):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr(MANIFEST_PATH, "{{{")
        with pytest.raises(ContainerImportFailed):
            import_vox(buf.getvalue())
