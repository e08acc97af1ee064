"""
Message codec for wire protocol serialization and deserialization.

Provides the public API for converting between wire protocol message objects and JSON strings,
hiding the details of Pydantic serialization.
"""

from pydantic import BaseModel, Field, ValidationError

from .messages import (
  AudioInputMessage,
  AudioMessage,
  ConfigMessage,
  ConnectedMessage,
  DisconnectMessage,
  ErrorMessage,
  TextInputMessage,
  TextMessage,
  TurnCompleteMessage,
  WireModel,
)

Message = (
  ConfigMessage
  | AudioInputMessage
  | TextInputMessage
  | DisconnectMessage
  | ConnectedMessage
  | TextMessage
  | TurnCompleteMessage
  | AudioMessage
  | ErrorMessage
)


class WireProtocolError(ValueError):
  """Raised when a frame cannot be decoded into a known message."""


class _MessageCodec(BaseModel):
  """Private message wrapper type for deserializing the discriminated union of message types."""

  message: Message = Field(discriminator="type")


def serialize_message(message: WireModel) -> str:
  """
  Serialize a wire protocol message to a JSON string.

  :param message: Any wire protocol message instance
  :returns: JSON string using the camelCase wire field names
  """
  return message.model_dump_json(by_alias=True, exclude_none=True)


def deserialize_message(raw: str | bytes) -> Message:
  """
  Deserialize a JSON frame into a wire protocol message.

  :param raw: JSON text, or UTF-8 encoded bytes of it
  :returns: Deserialized message instance of the appropriate type
  :raises WireProtocolError: if the frame is not JSON or does not match any message type
  """
  if isinstance(raw, bytes):
    try:
      raw = raw.decode("utf-8")
    except UnicodeDecodeError as e:
      raise WireProtocolError("Message is not valid UTF-8") from e

  # Wrap the incoming message in the expected codec structure
  wrapped_json = f'{{"message": {raw}}}'
  try:
    codec = _MessageCodec.model_validate_json(wrapped_json)
  except ValidationError as e:
    raise WireProtocolError(f"Invalid message: {e.error_count()} validation error(s)") from e
  return codec.message
