"""Typed events a session consumes, one per kind of inbound client message."""

from dataclasses import dataclass

from babelcast.wire import (
  AudioFrame,
  AudioInputMessage,
  ClientMessage,
  ConfigMessage,
  DisconnectMessage,
  SessionSettings,
  TextInput,
  TextInputMessage,
)


@dataclass(frozen=True)
class ConfigRequested:
  settings: SessionSettings


@dataclass(frozen=True)
class AudioFrameReceived:
  frame: AudioFrame


@dataclass(frozen=True)
class TextInputReceived:
  text_input: TextInput


@dataclass(frozen=True)
class DisconnectRequested:
  pass


SessionEvent = ConfigRequested | AudioFrameReceived | TextInputReceived | DisconnectRequested


def event_for_message(message: ClientMessage) -> SessionEvent:
  match message:
    case ConfigMessage(data=settings):
      return ConfigRequested(settings)
    case AudioInputMessage(data=frame):
      return AudioFrameReceived(frame)
    case TextInputMessage(data=text_input):
      return TextInputReceived(text_input)
    case DisconnectMessage():
      return DisconnectRequested()
    case _:
      raise TypeError(f"Not a client message: {type(message).__name__}")
