"""
Protocol interfaces for the external engines a translation session drives.

Backends report asynchronously through a listener coroutine receiving typed events, so the
session consumes one stream of events instead of registering a callback per event kind.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol

from pydantic import Field
from pydantic.dataclasses import dataclass

from babelcast.wire import Persona


@dataclass(frozen=True)
class TranscriptEvent:
  """One recognition result from a streaming recognizer."""

  text: str
  is_final: bool
  """Whether the recognizer will not revise this text any further."""

  speech_final: bool = False
  """Whether the recognizer detected the end of the speaker's phrase."""

  confidence: float | None = Field(default=None, ge=0.0, le=1.0)


@dataclass(frozen=True)
class BackendFailure:
  """The recognizer reported an error without closing the stream."""

  message: str


@dataclass(frozen=True)
class BackendClosed:
  """The recognizer's stream ended."""

  reason: str | None = None


BackendEvent = TranscriptEvent | BackendFailure | BackendClosed

BackendListener = Callable[[BackendEvent], Awaitable[None]]


class StreamingTranscriber(Protocol):
  """A live speech recognition stream for one session."""

  async def open(self, listener: BackendListener) -> None:
    """
    Connect to the recognizer and start delivering events to the listener.

    :raises BackendError: if the stream cannot be opened.
    """
    ...

  async def send_audio(self, audio: bytes) -> None:
    """Forward one frame of raw audio."""
    ...

  async def keep_alive(self) -> None:
    """Tell the recognizer the stream is still in use while no audio is flowing."""
    ...

  async def finish(self) -> None:
    """Close the stream gracefully. Safe to call more than once."""
    ...

  @property
  def is_open(self) -> bool: ...


@dataclass(frozen=True)
class TranslationRequest:
  text: str
  source_lang: str
  target_lang: str
  persona: Persona = Persona.NONE


class Translator(Protocol):
  async def translate(self, request: TranslationRequest) -> str:
    """
    Translate one utterance.

    :raises TranslationError: if the engine fails or times out.
    """
    ...

  async def aclose(self) -> None: ...


@dataclass(frozen=True)
class SynthesizedAudio:
  data: str
  """Base64 encoded PCM16."""

  mime_type: str


class SpeechSynthesizer(Protocol):
  async def synthesize(self, text: str) -> SynthesizedAudio:
    """
    Render text as speech.

    :raises SynthesisError: if the engine fails or returns no audio.
    """
    ...

  async def aclose(self) -> None: ...
