"""babelcast subtitle client: capture, transport, display and playback."""

from .audio import AudioCapture, encode_frame
from .connection import WebSocketConnection
from .core import CONNECTION_FAILED, CaptureMode, LiveTranslationClient
from .display import DisplayMode, TranscriptBuffer
from .errors import CaptureUnavailable, RecognizerError
from .playback import PlaybackScheduler, SoundDeviceOutput, decode_audio_payload
from .recognizer import LocalRecognizer, PhraseSegmenter, RecognitionSupervisor

__all__ = [
  "CONNECTION_FAILED",
  "AudioCapture",
  "CaptureMode",
  "CaptureUnavailable",
  "DisplayMode",
  "LiveTranslationClient",
  "LocalRecognizer",
  "PhraseSegmenter",
  "PlaybackScheduler",
  "RecognitionSupervisor",
  "RecognizerError",
  "SoundDeviceOutput",
  "TranscriptBuffer",
  "WebSocketConnection",
  "decode_audio_payload",
  "encode_frame",
]
