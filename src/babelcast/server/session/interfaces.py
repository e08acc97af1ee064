"""Protocol interfaces between a session, the channel it reports to and its backends."""

from typing import Protocol

from babelcast.server.backends import SpeechSynthesizer, StreamingTranscriber, Translator
from babelcast.wire import ServerMessage, SessionSettings


class MessageSink(Protocol):
  """
  Destination for the messages a session emits.

  Implementations must not raise on a closed channel; a session only stops emitting once it is
  torn down.
  """

  async def send(self, message: ServerMessage) -> None: ...

  def close(self) -> None:
    """Drop every later message."""
    ...


class SessionBackends(Protocol):
  """Factory for the backend handles one session owns."""

  def validate(self, session: SessionSettings) -> None:
    """:raises ConfigurationError: if the session cannot be served."""
    ...

  def create_transcriber(
    self, session: SessionSettings, session_id: str | None = None
  ) -> StreamingTranscriber | None: ...

  def create_translator(self, session_id: str | None = None) -> Translator: ...

  def create_synthesizer(
    self, session: SessionSettings, session_id: str | None = None
  ) -> SpeechSynthesizer | None: ...
