"""Text-to-speech rendering."""

from app.audio.base import RenderResult, TTSProvider
from app.audio.synthesizer import AudioSynthesizer, build_audio_synthesizer, estimate_duration

__all__ = ["AudioSynthesizer", "RenderResult", "TTSProvider", "build_audio_synthesizer", "estimate_duration"]
