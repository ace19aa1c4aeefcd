"""
Voice catalog: custom voices persisted in ``index.json`` plus the built-ins.

The index is a JSON array of voice records, rewritten whole on every
change (temp file + rename). A lock serialises writers inside the process.

Resolution order for a name: custom voices first, so a custom voice may
shadow a built-in of the same name, then built-ins.
"""
from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Sequence

from voxkit.core.errors import VoiceIndexError, VoiceNotFound
from voxkit.core.logging import get_logger, info, verbose
from voxkit.tts.storage import delete_voice_blobs

from .builtin import BUILTIN_VOICES
from .models import VoiceRecord

_LOG = get_logger("voxkit.catalog")

INDEX_FILE = "index.json"


class VoiceCatalog:
    """
    Owns the list of custom voice records.

    Attributes:
        voices_dir: Directory holding ``index.json``, cache blobs and ``.vox``
            containers.
        builtins: Built-in records in default-voice order.
    """

    def __init__(self, voices_dir: Path, builtins: Sequence[VoiceRecord] = BUILTIN_VOICES):
        self.voices_dir = Path(voices_dir).expanduser()
        self.builtins = tuple(builtins)
        self._lock = threading.Lock()

    @property
    def index_path(self) -> Path:
        """Location of ``index.json`` inside the voices directory."""
        return self.voices_dir / INDEX_FILE

    def _read_index(self) -> List[VoiceRecord]:
        path = self.index_path
        if not path.exists():
            return []
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(raw, list):
                raise ValueError("index root must be a list")
            return [VoiceRecord.from_dict(item) for item in raw]
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise VoiceIndexError(str(e), path=str(path)) from e

    def _write_index(self, records: List[VoiceRecord]) -> None:
        self.voices_dir.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([r.to_dict() for r in records], indent=2, sort_keys=True, ensure_ascii=False)
        fd, tmp = tempfile.mkstemp(prefix=".index.", suffix=".tmp", dir=str(self.voices_dir))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp, self.index_path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def custom_voices(self) -> List[VoiceRecord]:
        """
        Voices stored in the index, in insertion order.

        Raises:
            VoiceIndexError: The index exists but cannot be parsed.
        """
        with self._lock:
            return self._read_index()

    def list_voices(self) -> List[VoiceRecord]:
        """Custom voices followed by built-ins that no custom voice shadows."""
        custom = self.custom_voices()
        names = {r.name for r in custom}
        return custom + [b for b in self.builtins if b.name not in names]

    def get(self, name: str) -> Optional[VoiceRecord]:
        """Like ``resolve`` for an explicit name, but returns None instead of raising."""
        for record in self.custom_voices():
            if record.name == name:
                return record
        for record in self.builtins:
            if record.name == name:
                return record
        return None

    def resolve(self, name: Optional[str] = None) -> VoiceRecord:
        """
        Find the voice to synthesize with.

        Raises:
            VoiceNotFound: ``"(default)"`` when no name is given and there
                are no built-ins, otherwise the requested name.
        """
        if not name:
            if not self.builtins:
                raise VoiceNotFound("(default)")
            return self.builtins[0]

        record = self.get(name)
        if record is None:
            raise VoiceNotFound(name)
        verbose(_LOG, "voice_resolved", voice=name, kind=record.kind.value)
        return record

    def save(self, record: VoiceRecord) -> None:
        """Insert ``record``, replacing any custom voice with the same name."""
        with self._lock:
            records = [r for r in self._read_index() if r.name != record.name]
            records.append(record)
            self._write_index(records)
        info(_LOG, "voice_saved", voice=record.name, kind=record.kind.value)

    def delete(self, name: str) -> bool:
        """
        Remove a custom voice and its cached clone-prompt blobs.

        Returns:
            Whether an index entry was found.
        """
        with self._lock:
            records = self._read_index()
            remaining = [r for r in records if r.name != name]
            found = len(remaining) != len(records)
            if found:
                self._write_index(remaining)
        removed = delete_voice_blobs(self.voices_dir, name)
        info(_LOG, "voice_deleted", voice=name, found=found, blobs_removed=removed)
        return found
