"""Voice records, the voice catalog and the portable voice container."""
from .builtin import BUILTIN_VOICES
from .catalog import VoiceCatalog
from .models import VoiceKind, VoiceRecord

__all__ = ["BUILTIN_VOICES", "VoiceCatalog", "VoiceKind", "VoiceRecord"]
