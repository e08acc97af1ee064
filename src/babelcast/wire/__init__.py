"""
babelcast wire protocol package.

Contains the message types exchanged between subtitle clients and the translation server.
"""

from .codec import Message, WireProtocolError, deserialize_message, serialize_message
from .messages import (
  PCM_INPUT_MIME_TYPE,
  AudioFrame,
  AudioInputMessage,
  AudioMessage,
  ClientMessage,
  ConfigMessage,
  ConnectedMessage,
  DisconnectMessage,
  ErrorMessage,
  InputMode,
  Persona,
  ServerMessage,
  SessionSettings,
  TextInput,
  TextInputMessage,
  TextMessage,
  TurnCompleteMessage,
  WireModel,
)

__all__ = [
  "PCM_INPUT_MIME_TYPE",
  "AudioFrame",
  "AudioInputMessage",
  "AudioMessage",
  "ClientMessage",
  "ConfigMessage",
  "ConnectedMessage",
  "DisconnectMessage",
  "ErrorMessage",
  "InputMode",
  "Message",
  "Persona",
  "ServerMessage",
  "SessionSettings",
  "TextInput",
  "TextInputMessage",
  "TextMessage",
  "TurnCompleteMessage",
  "WireModel",
  "WireProtocolError",
  "deserialize_message",
  "serialize_message",
]
