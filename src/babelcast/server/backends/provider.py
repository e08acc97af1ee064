from dataclasses import dataclass

from babelcast.server.backends.deepgram import DeepgramTranscriber
from babelcast.server.backends.gemini import GeminiSpeechSynthesizer, GeminiTranslator
from babelcast.server.backends.interfaces import SpeechSynthesizer, StreamingTranscriber, Translator
from babelcast.server.config import BabelcastConfig, ServerSettings, uses_streaming_stt
from babelcast.wire import SessionSettings


@dataclass
class BackendProvider:
  """Builds a fresh set of backend handles for each session. Nothing is shared between sessions."""

  config: BabelcastConfig
  settings: ServerSettings

  def validate(self, session: SessionSettings) -> None:
    """:raises ConfigurationError: if a credential the session needs is missing."""
    self.settings.validate_credentials(session, self.config.stt)

  def create_transcriber(
    self, session: SessionSettings, session_id: str | None = None
  ) -> StreamingTranscriber | None:
    """A streaming recognizer, or None when the session sends recognized text."""
    if not uses_streaming_stt(session, self.config.stt):
      return None
    assert self.settings.deepgram_api_key is not None
    return DeepgramTranscriber(
      api_key=self.settings.deepgram_api_key,
      config=self.config.stt,
      language=session.source_lang,
      url=self.settings.deepgram_url,
      session_id=session_id,
    )

  def create_translator(self, session_id: str | None = None) -> Translator:
    assert self.settings.gemini_api_key is not None
    return GeminiTranslator(
      api_key=self.settings.gemini_api_key,
      config=self.config.translation,
      base_url=self.settings.gemini_url,
      session_id=session_id,
    )

  def create_synthesizer(
    self, session: SessionSettings, session_id: str | None = None
  ) -> SpeechSynthesizer | None:
    """A synthesizer when the client asked for playback and the server has it enabled."""
    if not (session.play_audio and self.config.tts.enabled):
      return None
    assert self.settings.gemini_api_key is not None
    return GeminiSpeechSynthesizer(
      api_key=self.settings.gemini_api_key,
      config=self.config.tts,
      base_url=self.settings.gemini_url,
      session_id=session_id,
    )
