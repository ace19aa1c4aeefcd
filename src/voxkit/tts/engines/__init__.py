"""Concrete synthesis backends. Imported lazily by ``voxkit.tts.backend``."""
