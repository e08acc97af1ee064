import os
from typing import Literal, Self

import yaml
from pydantic import BaseModel, Field, model_validator, validate_call
from pydantic.dataclasses import dataclass
from pydantic.types import FilePath

from babelcast.common import get_logger
from babelcast.server.constants import DEEPGRAM_URL, GEMINI_URL
from babelcast.server.errors import ConfigurationError
from babelcast.wire import InputMode, SessionSettings

logger = get_logger("cfg")


class SttConfig(BaseModel):
  """Streaming speech recognition settings."""

  provider: Literal["deepgram", "none"] = "deepgram"
  """Which streaming recognizer audio sessions use. "none" accepts only text input."""

  model: str = "nova-2"
  smart_format: bool = True
  """Ask the recognizer for punctuation, which improves translation quality."""

  filler_words: bool = False
  """Keep "um" and "uh" in transcripts. Off for cleaner subtitles."""

  endpointing_ms: int = Field(default=300, gt=0)
  """Trailing silence, in milliseconds, after which the recognizer finalizes a phrase."""

  interim_results: bool = True
  """Request partial results. Only finals are ever translated."""

  sample_rate: int = Field(default=16000, gt=0)
  encoding: str = "linear16"
  channels: int = Field(default=1, gt=0)


class TranslationConfig(BaseModel):
  """Text translation settings."""

  model: str = "gemini-2.5-flash"
  timeout: float = Field(default=15.0, gt=0.0)
  """Per-request timeout in seconds."""

  temperature: float | None = Field(default=None, ge=0.0, le=2.0)


class TtsConfig(BaseModel):
  """Speech synthesis settings for clients that ask for playback."""

  enabled: bool = False
  model: str = "gemini-2.5-flash-preview-tts"
  voice: str = "Kore"
  sample_rate: int = Field(default=24000, gt=0)
  timeout: float = Field(default=30.0, gt=0.0)


@dataclass
class SessionConfig:
  """Per-session orchestration behavior."""

  keepalive_interval: float = Field(default=10.0, gt=0.0)
  """Seconds without forwarded audio after which the recognizer is sent a keep-alive."""


class BabelcastConfig(BaseModel):
  """Top-level server configuration."""

  stt: SttConfig = Field(default_factory=SttConfig)
  translation: TranslationConfig = Field(default_factory=TranslationConfig)
  tts: TtsConfig = Field(default_factory=TtsConfig)
  session: SessionConfig = Field(default_factory=SessionConfig)

  def pretty_print(self) -> None:
    """Log every configuration property at INFO level, defaults included."""
    logger.info("=" * 60)
    logger.info("BABELCAST CONFIGURATION")
    logger.info("=" * 60)

    logger.info("SPEECH RECOGNITION:")
    logger.info(f"  Provider: {self.stt.provider}")
    logger.info(f"  Model: {self.stt.model}")
    logger.info(f"  Smart Format: {self.stt.smart_format}")
    logger.info(f"  Filler Words: {self.stt.filler_words}")
    logger.info(f"  Endpointing: {self.stt.endpointing_ms}ms")
    logger.info(f"  Interim Results: {self.stt.interim_results}")
    logger.info(f"  Audio: {self.stt.encoding} {self.stt.sample_rate}Hz x{self.stt.channels}")

    logger.info("TRANSLATION:")
    logger.info(f"  Model: {self.translation.model}")
    logger.info(f"  Timeout: {self.translation.timeout}s")
    logger.info(f"  Temperature: {self.translation.temperature}")

    logger.info("SPEECH SYNTHESIS:")
    logger.info(f"  Enabled: {self.tts.enabled}")
    if self.tts.enabled:
      logger.info(f"  Model: {self.tts.model}")
      logger.info(f"  Voice: {self.tts.voice}")
      logger.info(f"  Sample Rate: {self.tts.sample_rate}")

    logger.info("SESSION:")
    logger.info(f"  Keep-alive Interval: {self.session.keepalive_interval}s")

    logger.info("=" * 60)


@validate_call
def load_config_from_file(config_path: FilePath) -> BabelcastConfig:
  """Load and validate babelcast configuration from a YAML file."""

  logger.info("Loading babelcast configuration", path=str(config_path))

  try:
    with open(config_path, "r", encoding="utf-8") as file:
      config_data = yaml.safe_load(file)
  except yaml.YAMLError as e:
    raise ValueError(f"Invalid YAML in configuration file: {e}") from e
  except OSError as e:
    raise ValueError(f"Error reading configuration file: {e}") from e

  # An empty file means "all defaults"
  if config_data is None:
    config_data = {}

  if not isinstance(config_data, dict):
    raise ValueError("Configuration file must contain a YAML dictionary")

  config = BabelcastConfig.model_validate(config_data)
  config.pretty_print()
  return config


@dataclass
class ServerSettings:
  """Credentials and endpoints, which come from the environment rather than the config file."""

  deepgram_api_key: str | None = None
  gemini_api_key: str | None = None
  deepgram_url: str = DEEPGRAM_URL
  gemini_url: str = GEMINI_URL

  @model_validator(mode="after")
  def blank_keys_are_missing(self) -> Self:
    if self.deepgram_api_key is not None and not self.deepgram_api_key.strip():
      self.deepgram_api_key = None
    if self.gemini_api_key is not None and not self.gemini_api_key.strip():
      self.gemini_api_key = None
    return self

  @classmethod
  def from_env(cls) -> "ServerSettings":
    return cls(
      deepgram_api_key=os.getenv("DEEPGRAM_API_KEY"),
      gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY"),
      deepgram_url=os.getenv("BABELCAST_DEEPGRAM_URL", DEEPGRAM_URL),
      gemini_url=os.getenv("BABELCAST_GEMINI_URL", GEMINI_URL),
    )

  def validate_credentials(self, settings: SessionSettings, stt: SttConfig) -> None:
    """
    Check that every backend the session will need has a credential.

    :raises ConfigurationError: naming the first missing credential.
    """
    if not self.gemini_api_key:
      raise ConfigurationError("GEMINI_API_KEY is not set")
    if uses_streaming_stt(settings, stt) and not self.deepgram_api_key:
      raise ConfigurationError("DEEPGRAM_API_KEY is not set")


def uses_streaming_stt(settings: SessionSettings, stt: SttConfig) -> bool:
  """Whether a session with these settings transcribes audio on the server."""
  return settings.input_mode == InputMode.AUDIO and stt.provider != "none"
