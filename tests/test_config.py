"""Tests for the configuration module."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from babelcast.server.config import (
  BabelcastConfig,
  ServerSettings,
  SessionConfig,
  SttConfig,
  TtsConfig,
  load_config_from_file,
  uses_streaming_stt,
)
from babelcast.server.constants import DEEPGRAM_URL, GEMINI_URL
from babelcast.server.errors import ConfigurationError
from babelcast.wire import InputMode, SessionSettings


@pytest.fixture
def fake_filesystem(fs):
  """Variable name 'fs' causes a pylint warning. Provide a longer name
  acceptable to pylint for use in tests.
  """
  yield fs


def _session(**overrides) -> SessionSettings:
  return SessionSettings(source_lang="Japanese", target_lang="English", **overrides)


class TestSttConfig:
  """Test SttConfig defaults."""

  def test_defaults_match_live_recognition_settings(self):
    config = SttConfig()

    assert config.provider == "deepgram"
    assert config.model == "nova-2"
    assert config.smart_format is True
    assert config.filler_words is False
    assert config.endpointing_ms == 300
    assert config.interim_results is True
    assert config.sample_rate == 16000
    assert config.encoding == "linear16"

  def test_positive_values(self):
    with pytest.raises(ValueError):
      SttConfig(endpointing_ms=0)


class TestSessionConfig:
  def test_keepalive_default(self):
    assert SessionConfig().keepalive_interval == 10.0

  def test_keepalive_must_be_positive(self):
    with pytest.raises(ValueError):
      SessionConfig(keepalive_interval=0)


class TestBabelcastConfig:
  """Test BabelcastConfig integration."""

  def test_defaults(self):
    config = BabelcastConfig()

    assert config.translation.model == "gemini-2.5-flash"
    assert config.tts.enabled is False
    assert config.tts.model == "gemini-2.5-flash-preview-tts"
    assert config.tts.sample_rate == 24000
    assert isinstance(config.session, SessionConfig)

  def test_pretty_print_runs(self):
    BabelcastConfig(tts=TtsConfig(enabled=True)).pretty_print()


class TestLoadConfigFromFile:
  """Test YAML loading."""

  def test_load_partial_config(self, fake_filesystem):
    fake_filesystem.create_file(
      "/etc/babelcast.yaml",
      contents="stt:\n  endpointing_ms: 500\ntts:\n  enabled: true\n  voice: Puck\n",
    )

    config = load_config_from_file(Path("/etc/babelcast.yaml"))

    assert config.stt.endpointing_ms == 500
    assert config.stt.model == "nova-2"
    assert config.tts.enabled is True
    assert config.tts.voice == "Puck"

  def test_empty_file_means_defaults(self, fake_filesystem):
    fake_filesystem.create_file("/etc/babelcast.yaml", contents="")
    assert load_config_from_file(Path("/etc/babelcast.yaml")) == BabelcastConfig()

  def test_non_mapping_is_rejected(self, fake_filesystem):
    fake_filesystem.create_file("/etc/babelcast.yaml", contents="- a\n- b\n")
    with pytest.raises(ValueError, match="YAML dictionary"):
      load_config_from_file(Path("/etc/babelcast.yaml"))

  def test_invalid_yaml(self, fake_filesystem):
    fake_filesystem.create_file("/etc/babelcast.yaml", contents="stt: [unclosed\n")
    with pytest.raises(ValueError, match="Invalid YAML"):
      load_config_from_file(Path("/etc/babelcast.yaml"))

  def test_missing_file(self, fake_filesystem):
    with pytest.raises(ValidationError):
      load_config_from_file(Path("/nope.yaml"))

  def test_invalid_values(self, fake_filesystem):
    fake_filesystem.create_file("/etc/babelcast.yaml", contents="stt:\n  provider: whisper\n")
    with pytest.raises(ValidationError):
      load_config_from_file(Path("/etc/babelcast.yaml"))


class TestServerSettings:
  """Credentials come from the environment."""

  def test_from_env(self, monkeypatch):
    monkeypatch.setenv("DEEPGRAM_API_KEY", "dg")
    monkeypatch.setenv("GEMINI_API_KEY", "gm")
    monkeypatch.delenv("BABELCAST_DEEPGRAM_URL", raising=False)
    monkeypatch.setenv("BABELCAST_GEMINI_URL", "http://localhost:9999")

    settings = ServerSettings.from_env()

    assert settings.deepgram_api_key == "dg"
    assert settings.gemini_api_key == "gm"
    assert settings.deepgram_url == DEEPGRAM_URL
    assert settings.gemini_url == "http://localhost:9999"

  def test_gemini_key_falls_back_to_api_key(self, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("API_KEY", "legacy")
    monkeypatch.delenv("BABELCAST_GEMINI_URL", raising=False)

    settings = ServerSettings.from_env()

    assert settings.gemini_api_key == "legacy"
    assert settings.gemini_url == GEMINI_URL

  def test_blank_keys_count_as_missing(self):
    settings = ServerSettings(deepgram_api_key="  ", gemini_api_key="")
    assert settings.deepgram_api_key is None
    assert settings.gemini_api_key is None

  def test_audio_session_needs_both_keys(self):
    stt = SttConfig()
    with pytest.raises(ConfigurationError, match="DEEPGRAM_API_KEY"):
      ServerSettings(gemini_api_key="gm").validate_credentials(_session(), stt)
    with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
      ServerSettings(deepgram_api_key="dg").validate_credentials(_session(), stt)
    ServerSettings(deepgram_api_key="dg", gemini_api_key="gm").validate_credentials(_session(), stt)

  def test_text_session_needs_only_translation_key(self):
    text_session = _session(input_mode=InputMode.TEXT)
    ServerSettings(gemini_api_key="gm").validate_credentials(text_session, SttConfig())

  def test_no_streaming_provider(self):
    stt = SttConfig(provider="none")
    assert uses_streaming_stt(_session(), stt) is False
    ServerSettings(gemini_api_key="gm").validate_credentials(_session(), stt)
