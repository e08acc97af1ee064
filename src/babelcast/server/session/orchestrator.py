"""
The per-connection translation session.

A session consumes typed events (client messages through ``dispatch``, recognizer results through
its backend listener) and reports to the client through a message sink. Finalized utterances go
through one FIFO queue drained by a single worker, so translations are emitted in the order the
speech was finalized no matter how long each one takes.
"""

import asyncio
import time
from collections.abc import Callable

from pydantic.dataclasses import dataclass

from babelcast.common import get_logger
from babelcast.server.backends import (
  BackendClosed,
  BackendEvent,
  BackendFailure,
  SpeechSynthesizer,
  StreamingTranscriber,
  TranscriptEvent,
  TranslationRequest,
  Translator,
)
from babelcast.server.config import SessionConfig
from babelcast.server.constants import (
  MSG_ALREADY_CONFIGURED,
  MSG_INTERNAL_ERROR,
  MSG_INVALID_MESSAGE,
  MSG_NOT_STREAMING,
  MSG_SERVER_CONFIGURATION,
  MSG_TRANSCRIPTION_CLOSED,
  MSG_TRANSCRIPTION_FAILED,
  MSG_TRANSCRIPTION_UNAVAILABLE,
  MSG_TRANSLATION_FAILED,
)
from babelcast.server.errors import (
  BackendError,
  ConfigurationError,
  SynthesisError,
  TranslationError,
)
from babelcast.server.session.events import (
  AudioFrameReceived,
  ConfigRequested,
  DisconnectRequested,
  SessionEvent,
  TextInputReceived,
)
from babelcast.server.session.interfaces import MessageSink, SessionBackends
from babelcast.server.session.state import SessionState, SessionStateMachine
from babelcast.wire import (
  AudioFrame,
  AudioMessage,
  ConnectedMessage,
  ErrorMessage,
  Persona,
  SessionSettings,
  TextInput,
  TextMessage,
  TurnCompleteMessage,
)


@dataclass(frozen=True)
class Utterance:
  """A finalized phrase waiting for translation."""

  sequence: int
  text: str
  source_lang: str
  target_lang: str
  persona: Persona = Persona.NONE


class TranslationSession:
  def __init__(
    self,
    session_id: str,
    sink: MessageSink,
    backends: SessionBackends,
    config: SessionConfig | None = None,
    clock: Callable[[], float] = time.monotonic,
  ):
    self.session_id = session_id
    self.sink = sink
    self.backends = backends
    self.config = config or SessionConfig()
    self.clock = clock
    self.logger = get_logger("sess", session=session_id)

    self.machine = SessionStateMachine()
    self.settings: SessionSettings | None = None
    self.transcriber: StreamingTranscriber | None = None
    self.translator: Translator | None = None
    self.synthesizer: SpeechSynthesizer | None = None

    self._queue: asyncio.Queue[Utterance] = asyncio.Queue()
    self._worker: asyncio.Task[None] | None = None
    self._keepalive: asyncio.Task[None] | None = None
    self._sequence = 0
    self._last_activity = clock()
    self._ended = asyncio.Event()

  @property
  def state(self) -> SessionState:
    return self.machine.state

  @property
  def is_terminal(self) -> bool:
    return self.machine.is_terminal

  async def wait_ended(self) -> None:
    """Block until the session has closed or failed and its backends are released."""
    await self._ended.wait()

  @property
  def pending_utterances(self) -> int:
    return self._queue.qsize()

  async def dispatch(self, event: SessionEvent) -> None:
    """Apply one client event. Events reaching a closed or errored session are dropped."""
    if self.is_terminal:
      self.logger.debug("Ignoring event on ended session", event=type(event).__name__)
      return

    match event:
      case ConfigRequested(settings=settings):
        await self._configure(settings)
      case AudioFrameReceived(frame=frame):
        await self._forward_audio(frame)
      case TextInputReceived(text_input=text_input):
        await self._accept_text(text_input)
      case DisconnectRequested():
        self.logger.info("Client requested disconnect")
        await self.close()

  async def drain(self) -> None:
    """Wait until every queued utterance has been processed."""
    await self._queue.join()

  async def close(self) -> None:
    """End the session normally. Idempotent."""
    if self.is_terminal:
      return
    self.machine.transition(SessionState.CLOSED)
    self.logger.info("Session closed")
    await self._teardown()

  # Configuration

  async def _configure(self, settings: SessionSettings) -> None:
    if self.state is not SessionState.IDLE:
      self.logger.warning("Rejecting repeated config", state=self.state.value)
      await self._send_error(MSG_ALREADY_CONFIGURED)
      return

    self.machine.transition(SessionState.CONFIGURING)
    self.settings = settings
    self.logger.info(
      "Configuring session",
      source=settings.source_lang,
      target=settings.target_lang,
      persona=settings.persona.value,
      play_audio=settings.play_audio,
      input_mode=settings.input_mode.value,
    )

    try:
      self.backends.validate(settings)
    except ConfigurationError as e:
      self.logger.error("Session configuration rejected", reason=str(e))
      await self._fail(MSG_SERVER_CONFIGURATION)
      return

    self.translator = self.backends.create_translator(self.session_id)
    self.synthesizer = self.backends.create_synthesizer(settings, self.session_id)

    transcriber = self.backends.create_transcriber(settings, self.session_id)
    if transcriber is not None:
      try:
        await transcriber.open(self._on_backend_event)
      except BackendError as e:
        self.logger.error("Could not open transcription stream", reason=str(e))
        await self._fail(MSG_TRANSCRIPTION_UNAVAILABLE)
        return

      if self.is_terminal:
        # Torn down while the stream was opening
        await transcriber.finish()
        return

      self.transcriber = transcriber
      self._last_activity = self.clock()
      self._keepalive = asyncio.create_task(self._keep_alive_loop())

    self.machine.transition(SessionState.STREAMING)
    self._worker = asyncio.create_task(self._work())
    await self.sink.send(ConnectedMessage())
    self.logger.info("Session streaming", transcription=transcriber is not None)

  # Input

  async def _forward_audio(self, frame: AudioFrame) -> None:
    if self.state is not SessionState.STREAMING or self.transcriber is None:
      self.logger.debug("Dropping audio frame", state=self.state.value)
      return

    try:
      audio = frame.to_bytes()
    except ValueError as e:
      self.logger.warning("Undecodable audio frame", error=str(e))
      await self._send_error(MSG_INVALID_MESSAGE)
      return

    try:
      await self.transcriber.send_audio(audio)
    except BackendError as e:
      # The receive loop reports the close itself
      self.logger.warning("Could not forward audio", error=str(e))
      return
    self._last_activity = self.clock()

  async def _accept_text(self, text_input: TextInput) -> None:
    if self.state is not SessionState.STREAMING or self.settings is None:
      await self._send_error(MSG_NOT_STREAMING)
      return

    text = text_input.text.strip()
    if not text:
      return
    persona = text_input.persona if text_input.persona is not None else self.settings.persona
    self._enqueue(text, text_input.source_lang, text_input.target_lang, persona)

  async def _on_backend_event(self, event: BackendEvent) -> None:
    if self.is_terminal or self.settings is None:
      return

    match event:
      case TranscriptEvent(text=text, is_final=True) if text.strip():
        settings = self.settings
        self._enqueue(text.strip(), settings.source_lang, settings.target_lang, settings.persona)
      case TranscriptEvent(text=text, is_final=is_final):
        self.logger.debug("Partial transcript", text=text, final=is_final)
      case BackendFailure(message=message):
        self.logger.warning("Transcription service error", error=message)
        await self._send_error(f"{MSG_TRANSCRIPTION_FAILED}: {message}")
      case BackendClosed(reason=reason):
        if self.state is SessionState.STREAMING:
          self.logger.error("Transcription stream closed unexpectedly", reason=reason)
          await self._fail(MSG_TRANSCRIPTION_CLOSED)

  def _enqueue(self, text: str, source_lang: str, target_lang: str, persona: Persona) -> None:
    self._sequence += 1
    utterance = Utterance(
      sequence=self._sequence,
      text=text,
      source_lang=source_lang,
      target_lang=target_lang,
      persona=persona,
    )
    self._queue.put_nowait(utterance)
    self.logger.info(
      "Utterance finalized", seq=utterance.sequence, text=text, queued=self._queue.qsize()
    )

  # Output

  async def _work(self) -> None:
    while True:
      utterance = await self._queue.get()
      try:
        await self._process(utterance)
      finally:
        self._queue.task_done()

  async def _process(self, utterance: Utterance) -> None:
    assert self.translator is not None
    request = TranslationRequest(
      text=utterance.text,
      source_lang=utterance.source_lang,
      target_lang=utterance.target_lang,
      persona=utterance.persona,
    )

    try:
      translation = await self.translator.translate(request)
    except TranslationError as e:
      self.logger.warning("Translation failed", seq=utterance.sequence, error=str(e))
      if self.state is SessionState.STREAMING:
        await self._send_error(MSG_TRANSLATION_FAILED)
      return
    except Exception:
      self.logger.exception("Unexpected failure translating utterance", seq=utterance.sequence)
      await self._send_error(MSG_INTERNAL_ERROR)
      return

    if self.state is not SessionState.STREAMING:
      self.logger.debug("Discarding late translation", seq=utterance.sequence)
      return

    translation = translation.strip()
    if not translation:
      self.logger.debug("Empty translation", seq=utterance.sequence)
      return

    await self.sink.send(TextMessage(content=translation))
    await self.sink.send(TurnCompleteMessage())
    self.logger.info("Turn complete", seq=utterance.sequence, translation=translation)

    if self.synthesizer is not None:
      await self._speak(utterance, translation)

  async def _speak(self, utterance: Utterance, translation: str) -> None:
    assert self.synthesizer is not None
    try:
      audio = await self.synthesizer.synthesize(translation)
    except SynthesisError as e:
      self.logger.warning("Skipping playback", seq=utterance.sequence, error=str(e))
      return

    if self.state is not SessionState.STREAMING:
      return
    await self.sink.send(AudioMessage(data=audio.data, mime_type=audio.mime_type))

  async def _send_error(self, message: str, fatal: bool = False) -> None:
    await self.sink.send(ErrorMessage(message=message, fatal=fatal))

  async def _keep_alive_loop(self) -> None:
    interval = self.config.keepalive_interval
    while True:
      remaining = interval - (self.clock() - self._last_activity)
      if remaining > 0:
        await asyncio.sleep(remaining)
        continue

      if self.transcriber is None:
        return
      try:
        await self.transcriber.keep_alive()
        self.logger.debug("Sent keep-alive")
      except BackendError as e:
        self.logger.warning("Keep-alive failed", error=str(e))
      self._last_activity = self.clock()

  # Teardown

  async def _fail(self, message: str) -> None:
    """End the session after a fatal failure, reporting it to the client exactly once."""
    if self.is_terminal:
      return
    self.machine.transition(SessionState.ERRORED)
    await self._send_error(message, fatal=True)
    await self._teardown()

  async def _teardown(self) -> None:
    current = asyncio.current_task()
    tasks = [task for task in (self._worker, self._keepalive) if task is not None]
    self._worker = self._keepalive = None
    for task in tasks:
      task.cancel()
    for task in tasks:
      if task is current:
        continue
      try:
        await task
      except asyncio.CancelledError:
        pass

    dropped = 0
    while not self._queue.empty():
      self._queue.get_nowait()
      self._queue.task_done()
      dropped += 1
    if dropped:
      self.logger.info("Dropped pending utterances", count=dropped)

    transcriber, self.transcriber = self.transcriber, None
    translator, self.translator = self.translator, None
    synthesizer, self.synthesizer = self.synthesizer, None

    if transcriber is not None:
      try:
        await transcriber.finish()
      except Exception:
        self.logger.exception("Error finishing transcription stream")
    for closable in (translator, synthesizer):
      if closable is None:
        continue
      try:
        await closable.aclose()
      except Exception:
        self.logger.exception("Error closing backend client")

    self.sink.close()
    self.logger.debug("Session torn down", state=self.state.value)
    self._ended.set()
