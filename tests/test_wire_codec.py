"""Tests for wire protocol messages and the JSON codec."""

import json

import pytest

from babelcast.wire import (
  AudioFrame,
  AudioInputMessage,
  AudioMessage,
  ConfigMessage,
  ConnectedMessage,
  DisconnectMessage,
  ErrorMessage,
  InputMode,
  Persona,
  SessionSettings,
  TextInputMessage,
  TextMessage,
  TurnCompleteMessage,
  WireProtocolError,
  deserialize_message,
  serialize_message,
)


class TestClientMessages:
  """Decoding the frames clients send."""

  def test_config_uses_camel_case_payload(self):
    raw = '{"type": "config", "data": {"sourceLang": "Japanese", "targetLang": "English"}}'
    message = deserialize_message(raw)

    assert isinstance(message, ConfigMessage)
    assert message.data.source_lang == "Japanese"
    assert message.data.target_lang == "English"
    assert message.data.persona == Persona.NONE
    assert message.data.play_audio is False
    assert message.data.input_mode == InputMode.AUDIO

  def test_config_optional_fields(self):
    raw = json.dumps(
      {
        "type": "config",
        "data": {
          "sourceLang": "English",
          "targetLang": "Japanese",
          "persona": "samurai",
          "playAudio": True,
          "inputMode": "text",
        },
      }
    )
    message = deserialize_message(raw)

    assert message.data.persona == Persona.SAMURAI
    assert message.data.play_audio is True
    assert message.data.input_mode == InputMode.TEXT

  def test_unknown_persona_coerces_to_none(self):
    raw = json.dumps(
      {"type": "config", "data": {"sourceLang": "a", "targetLang": "b", "persona": "pirate"}}
    )
    assert deserialize_message(raw).data.persona == Persona.NONE

  def test_null_persona_coerces_to_none(self):
    settings = SessionSettings(source_lang="a", target_lang="b", persona=None)
    assert settings.persona == Persona.NONE

  def test_audio_input(self):
    raw = '{"type": "audio_input", "data": {"mimeType": "audio/pcm;rate=16000", "data": "AAE="}}'
    message = deserialize_message(raw)

    assert isinstance(message, AudioInputMessage)
    assert message.data.mime_type == "audio/pcm;rate=16000"
    assert message.data.to_bytes() == b"\x00\x01"

  def test_text_input_persona_is_optional(self):
    raw = json.dumps(
      {
        "type": "text_input",
        "data": {"text": "hi", "sourceLang": "English", "targetLang": "French"},
      }
    )
    message = deserialize_message(raw)

    assert isinstance(message, TextInputMessage)
    assert message.data.text == "hi"
    assert message.data.persona is None

  def test_disconnect(self):
    assert isinstance(deserialize_message('{"type": "disconnect"}'), DisconnectMessage)

  def test_bytes_frames_are_accepted(self):
    assert isinstance(deserialize_message(b'{"type": "disconnect"}'), DisconnectMessage)


class TestServerMessages:
  """Encoding the frames the server sends."""

  def test_server_messages_are_flat(self):
    assert json.loads(serialize_message(ConnectedMessage())) == {"type": "connected"}
    assert json.loads(serialize_message(TextMessage(content="Hello"))) == {
      "type": "text",
      "content": "Hello",
    }
    assert json.loads(serialize_message(TurnCompleteMessage())) == {"type": "turn_complete"}

  def test_error_carries_fatal_flag(self):
    message = ErrorMessage(message="Server configuration error", fatal=True)
    payload = json.loads(serialize_message(message))
    assert payload == {"type": "error", "message": "Server configuration error", "fatal": True}

  def test_audio_uses_camel_case_mime_type(self):
    payload = json.loads(serialize_message(AudioMessage(data="AAAA")))
    assert payload == {"type": "audio", "data": "AAAA", "mimeType": "audio/pcm;rate=24000"}

  def test_text_input_omits_missing_persona(self):
    frame = serialize_message(
      TextInputMessage.model_validate(
        {"data": {"text": "x", "sourceLang": "English", "targetLang": "German"}}
      )
    )
    assert "persona" not in json.loads(frame)["data"]


class TestInvalidFrames:
  """Malformed input is reported as WireProtocolError."""

  @pytest.mark.parametrize(
    "raw",
    [
      "not json",
      "{}",
      '{"type": "subscribe"}',
      '{"type": "config"}',
      '{"type": "config", "data": {"sourceLang": "", "targetLang": "English"}}',
      '{"type": "text", "content": 5}',
    ],
  )
  def test_rejected(self, raw):
    with pytest.raises(WireProtocolError):
      deserialize_message(raw)

  def test_invalid_utf8(self):
    with pytest.raises(WireProtocolError, match="UTF-8"):
      deserialize_message(b"\xff\xfe")

  def test_bad_base64_audio(self):
    frame = AudioFrame(data="not base64!!")
    with pytest.raises(ValueError, match="base64"):
      frame.to_bytes()
