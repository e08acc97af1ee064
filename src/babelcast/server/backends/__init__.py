"""External engines: streaming recognition, translation and speech synthesis."""

from .interfaces import (
  BackendClosed,
  BackendEvent,
  BackendFailure,
  BackendListener,
  SpeechSynthesizer,
  StreamingTranscriber,
  SynthesizedAudio,
  TranscriptEvent,
  TranslationRequest,
  Translator,
)
from .provider import BackendProvider

__all__ = [
  "BackendClosed",
  "BackendEvent",
  "BackendFailure",
  "BackendListener",
  "BackendProvider",
  "SpeechSynthesizer",
  "StreamingTranscriber",
  "SynthesizedAudio",
  "TranscriptEvent",
  "TranslationRequest",
  "Translator",
]
