"""
Pydantic message models for the babelcast wire protocol.

Client to server messages nest their payload under ``data``; server to client messages are flat.
All keys travel in camelCase on the wire and are exposed in snake_case in Python.
"""

import base64
import binascii
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

PCM_INPUT_MIME_TYPE = "audio/pcm;rate=16000"
"""Mime type of the raw microphone frames clients send."""


class Persona(StrEnum):
  """Style modifiers applied on top of the base translation instruction."""

  NONE = "none"
  SAMURAI = "samurai"
  TSUNDERE = "tsundere"
  CAT = "cat"
  BUTLER = "butler"


_PERSONA_VALUES = frozenset(persona.value for persona in Persona)


class InputMode(StrEnum):
  """How a client feeds speech into a session."""

  AUDIO = "audio"
  """Raw audio frames, transcribed by the server's streaming recognizer."""

  TEXT = "text"
  """Phrases recognized on the client, sent as text_input."""


def _coerce_persona(value: Any) -> Any:
  if value is None:
    return Persona.NONE
  if isinstance(value, str) and value not in _PERSONA_VALUES:
    return Persona.NONE
  return value


class WireModel(BaseModel):
  """Base for every wire model: camelCase aliases, snake_case attributes."""

  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionSettings(WireModel):
  """Payload of a config message."""

  source_lang: str = Field(min_length=1)
  """Language the speaker is using, by display name (e.g. "Japanese") or code."""

  target_lang: str = Field(min_length=1)
  """Language subtitles are rendered in."""

  persona: Persona = Persona.NONE
  """Optional tone modifier for the translation. Unknown values fall back to none."""

  play_audio: bool = False
  """Whether the client wants synthesized speech for each translation."""

  input_mode: InputMode = InputMode.AUDIO
  """Whether the client streams audio or sends recognized text."""

  @field_validator("persona", mode="before")
  @classmethod
  def normalize_persona(cls, value: Any) -> Any:
    return _coerce_persona(value)


class AudioFrame(WireModel):
  """Payload of an audio_input message: one base64-encoded frame of raw audio."""

  mime_type: str = PCM_INPUT_MIME_TYPE
  data: str

  def to_bytes(self) -> bytes:
    """Decode the frame payload.

    :raises ValueError: if the payload is not valid base64.
    """
    try:
      return base64.b64decode(self.data, validate=True)
    except binascii.Error as e:
      raise ValueError(f"Audio frame is not valid base64: {e}") from e


class TextInput(WireModel):
  """Payload of a text_input message."""

  text: str
  source_lang: str = Field(min_length=1)
  target_lang: str = Field(min_length=1)
  persona: Persona | None = None
  """Persona for this phrase only; the session persona applies when omitted."""

  @field_validator("persona", mode="before")
  @classmethod
  def normalize_persona(cls, value: Any) -> Any:
    if value is None:
      return None
    return _coerce_persona(value)


# Client -> server


class ConfigMessage(WireModel):
  """Starts a session."""

  type: Literal["config"] = "config"
  data: SessionSettings


class AudioInputMessage(WireModel):
  """One frame of microphone audio."""

  type: Literal["audio_input"] = "audio_input"
  data: AudioFrame


class TextInputMessage(WireModel):
  """Already-recognized text to translate directly."""

  type: Literal["text_input"] = "text_input"
  data: TextInput


class DisconnectMessage(WireModel):
  """Explicit end of the session, sent before the client closes the channel."""

  type: Literal["disconnect"] = "disconnect"


# Server -> client


class ConnectedMessage(WireModel):
  """The session is ready and the client may start capturing."""

  type: Literal["connected"] = "connected"


class TextMessage(WireModel):
  """Translated text for one utterance."""

  type: Literal["text"] = "text"
  content: str


class TurnCompleteMessage(WireModel):
  """Closes the output of one utterance."""

  type: Literal["turn_complete"] = "turn_complete"


class AudioMessage(WireModel):
  """Synthesized speech for the most recent translation."""

  type: Literal["audio"] = "audio"
  data: str
  """Base64 encoded little-endian PCM16."""

  mime_type: str = "audio/pcm;rate=24000"


class ErrorMessage(WireModel):
  """A problem the client should surface. Fatal errors end the session."""

  type: Literal["error"] = "error"
  message: str
  fatal: bool = False


ClientMessage = ConfigMessage | AudioInputMessage | TextInputMessage | DisconnectMessage

ServerMessage = (
  ConnectedMessage | TextMessage | TurnCompleteMessage | AudioMessage | ErrorMessage
)
