"""
Configuration management for voxkit.

Configuration hierarchy (highest priority first):
    1. Environment variables (VOXKIT_VOICES_DIR, VOXKIT_MODEL_VARIANT, ...)
    2. YAML settings file (config/settings.yaml, or VOXKIT_CONFIG)
    3. Defaults class values

Example settings.yaml:
    voices:
      dir: ~/.voxkit/voices
      legacy_variant: "1.7b"

    model:
      engine: qwen3tts
      variant: "1.7b"
      device: auto
      language: en

    chunking:
      max_words: 200

    cache:
      memory_max_items: 64
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

import yaml


class ConfigValidationError(Exception):
    """Raised when a configuration value is out of bounds or of the wrong type."""
    pass


class Defaults:
    """
    Default configuration values, used when neither the YAML file nor the
    environment provide an override.
    """

    # Voices
    VOICES_DIR = "~/.voxkit/voices"
    LEGACY_VARIANT = "1.7b"         # owner of unsuffixed <name>.blob files

    # Model
    ENGINE = "qwen3tts"
    MODEL_VARIANT = "1.7b"
    KNOWN_VARIANTS = ("0.6b", "1.7b")
    DEVICE = "auto"
    DTYPE = "bfloat16"
    LANGUAGE = "en"

    # Chunking
    CHUNK_MAX_WORDS = 200

    # Clone-prompt memory tier
    CACHE_MEMORY_MAX_ITEMS = 64

    # Audio
    SAMPLE_RATE = 24000
    AUDIO_FORMAT = "wav"
    AUDIO_FORMATS = ("wav", "flac", "ogg")

    # Logging
    LOGGING_LEVEL = 2


@dataclass
class VoicesConfig:
    """Where the voice index, cache blobs and containers live."""
    dir: str = Defaults.VOICES_DIR
    legacy_variant: str = Defaults.LEGACY_VARIANT

    @property
    def path(self) -> Path:
        return Path(self.dir).expanduser()


@dataclass
class ModelConfig:
    """Voices directory with ``~`` expanded."""
    engine: str = Defaults.ENGINE
    variant: str = Defaults.MODEL_VARIANT
    device: str = Defaults.DEVICE
    dtype: str = Defaults.DTYPE
    language: str = Defaults.LANGUAGE


@dataclass
class ChunkingConfig:
    max_words: int = Defaults.CHUNK_MAX_WORDS


@dataclass
class CacheConfig:
    memory_max_items: int = Defaults.CACHE_MEMORY_MAX_ITEMS


@dataclass
class AudioConfig:
    sample_rate: int = Defaults.SAMPLE_RATE
    format: str = Defaults.AUDIO_FORMAT


@dataclass
class VoxkitConfig:
    """
    Validated configuration built from Settings.

    Usage:
        settings = load_settings()
        config = VoxkitConfig.from_settings(settings)
        config.voices.path
    """
    voices: VoicesConfig = field(default_factory=VoicesConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "VoxkitConfig":
        """
        Read the raw settings dictionary, fill in defaults and validate.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        voices_raw = raw.get("voices", {}) or {}
        voices = VoicesConfig(
            dir=str(voices_raw.get("dir", Defaults.VOICES_DIR)),
            legacy_variant=str(voices_raw.get("legacy_variant", Defaults.LEGACY_VARIANT)).lower(),
        )
        cls._validate_choice("voices.legacy_variant", voices.legacy_variant, Defaults.KNOWN_VARIANTS)

        model_raw = raw.get("model", {}) or {}
        model = ModelConfig(
            engine=str(model_raw.get("engine", Defaults.ENGINE)).lower(),
            variant=str(model_raw.get("variant", Defaults.MODEL_VARIANT)).lower(),
            device=str(model_raw.get("device", Defaults.DEVICE)),
            dtype=str(model_raw.get("dtype", Defaults.DTYPE)),
            language=str(model_raw.get("language", Defaults.LANGUAGE)),
        )
        cls._validate_choice("model.variant", model.variant, Defaults.KNOWN_VARIANTS)

        chunking_raw = raw.get("chunking", {}) or {}
        chunking = ChunkingConfig(
            max_words=int(chunking_raw.get("max_words", Defaults.CHUNK_MAX_WORDS)),
        )
        cls._validate_positive("chunking.max_words", chunking.max_words)

        cache_raw = raw.get("cache", {}) or {}
        cache = CacheConfig(
            memory_max_items=int(cache_raw.get("memory_max_items", Defaults.CACHE_MEMORY_MAX_ITEMS)),
        )
        cls._validate_positive("cache.memory_max_items", cache.memory_max_items)

        audio_raw = raw.get("audio", {}) or {}
        audio = AudioConfig(
            sample_rate=int(audio_raw.get("sample_rate", Defaults.SAMPLE_RATE)),
            format=str(audio_raw.get("format", Defaults.AUDIO_FORMAT)).lower(),
        )
        cls._validate_positive("audio.sample_rate", audio.sample_rate)
        cls._validate_choice("audio.format", audio.format, Defaults.AUDIO_FORMATS)

        return cls(voices=voices, model=model, chunking=chunking, cache=cache, audio=audio)

    @staticmethod
    def _validate_positive(name: str, value: Union[int, float]) -> None:
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_choice(name: str, value: str, choices: tuple) -> None:
        if value not in choices:
            raise ConfigValidationError(f"{name} must be one of {', '.join(choices)}, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable raw settings as loaded from YAML.

    Properties give typed access to the handful of values read outside of
    VoxkitConfig; ``get_config()`` returns the validated view.
    """
    raw: Dict[str, Any]

    @property
    def engine_type(self) -> str:
        """Backend name, lower-cased (e.g. "qwen3tts")."""
        return str(self.raw.get("model", {}).get("engine", Defaults.ENGINE)).lower()

    @property
    def device(self) -> str:
        """Requested device: "cuda", "cpu" or "auto"."""
        return str(self.raw.get("model", {}).get("device", Defaults.DEVICE))

    @property
    def default_language(self) -> str:
        """Language used when a request names none."""
        return str(self.raw.get("model", {}).get("language", Defaults.LANGUAGE))

    @property
    def model_variant(self) -> str:
        """Configured model variant slug, lower-cased; not validated here."""
        return str(self.raw.get("model", {}).get("variant", Defaults.MODEL_VARIANT)).lower()

    @property
    def voices_dir(self) -> Path:
        """Voices directory with ``~`` expanded."""
        return Path(str(self.raw.get("voices", {}).get("dir", Defaults.VOICES_DIR))).expanduser()

    def get_config(self) -> VoxkitConfig:
        """
        Validated, typed view of these settings.

        Raises:
            ConfigValidationError: If a value is out of range or not one of its choices.
        """
        return VoxkitConfig.from_settings(self)


def load_settings(path: Union[str, Path, None] = None) -> Settings:
    """
    Load settings from a YAML file and apply environment overrides.

    A missing file is not an error: voxkit runs on defaults out of the box.

    Environment overrides:
        VOXKIT_CONFIG         settings file path, used when ``path`` is None
        VOXKIT_VOICES_DIR     voices.dir
        VOXKIT_MODEL_VARIANT  model.variant
        VOXKIT_DEVICE         model.device
        VOXKIT_LANGUAGE       model.language
    """
    p = Path(path or os.getenv("VOXKIT_CONFIG") or "config/settings.yaml")
    raw: Dict[str, Any] = {}
    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ConfigValidationError(f"settings file must contain a mapping: {p}")

    overrides = (
        ("VOXKIT_VOICES_DIR", "voices", "dir"),
        ("VOXKIT_MODEL_VARIANT", "model", "variant"),
        ("VOXKIT_DEVICE", "model", "device"),
        ("VOXKIT_LANGUAGE", "model", "language"),
    )
    for env_name, section, key in overrides:
        value = os.getenv(env_name)
        if value:
            raw.setdefault(section, {})[key] = value

    return Settings(raw=raw)
