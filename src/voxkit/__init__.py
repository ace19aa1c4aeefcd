"""voxkit: voice-identity text-to-speech with portable voice containers."""

__version__ = "0.1.0"
