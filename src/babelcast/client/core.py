"""
LiveTranslationClient: the state a subtitle overlay renders, and the operations that drive it.

In push mode the microphone is streamed to the server as audio frames and recognized there. In
pull mode a local recognizer turns speech into phrases and only text crosses the channel.
"""

import asyncio
from collections.abc import Callable
from enum import StrEnum
from typing import Any

import numpy as np
from websockets.exceptions import WebSocketException

from babelcast.client.audio import AudioCapture, encode_frame
from babelcast.client.connection import WebSocketConnection
from babelcast.client.display import TranscriptBuffer
from babelcast.client.errors import CaptureUnavailable
from babelcast.client.playback import PlaybackScheduler
from babelcast.client.recognizer import RecognitionSupervisor, Recognizer
from babelcast.common import get_logger
from babelcast.wire import (
  AudioMessage,
  ConnectedMessage,
  ErrorMessage,
  InputMode,
  ServerMessage,
  SessionSettings,
  TextInput,
  TextMessage,
  TurnCompleteMessage,
)

CONNECTION_FAILED = "Connection failed. Ensure backend server is running."
MICROPHONE_UNAVAILABLE = "Microphone unavailable"

logger = get_logger("cli")


class CaptureMode(StrEnum):
  PUSH = "push"
  """Stream raw audio; the server recognizes it."""

  PULL = "pull"
  """Recognize locally; send phrases as text."""


class LiveTranslationClient:
  def __init__(
    self,
    url: str = "ws://localhost:8080",
    mode: CaptureMode = CaptureMode.PUSH,
    display: TranscriptBuffer | None = None,
    capture: AudioCapture | None = None,
    recognizer_factory: Callable[[SessionSettings], Recognizer] | None = None,
    playback: PlaybackScheduler | None = None,
    connection_factory: Callable[..., WebSocketConnection] = WebSocketConnection,
    on_change: Callable[["LiveTranslationClient"], None] | None = None,
  ):
    self.url = url
    self.mode = mode
    self.display = display or TranscriptBuffer()
    self.capture = capture
    self.recognizer_factory = recognizer_factory
    self.playback = playback
    self.connection_factory = connection_factory
    self.on_change = on_change

    # Presentation state
    self.is_connected = False
    self.is_connecting = False
    self.error: str | None = None
    self.input_text = ""

    self._settings: SessionSettings | None = None
    self._connection: WebSocketConnection | None = None
    self._supervisor: RecognitionSupervisor | None = None
    self._frames: asyncio.Queue[np.ndarray] | None = None
    self._background_tasks: set[asyncio.Task[Any]] = set()
    # Bumped on every connect and teardown; callbacks from an older session are ignored
    self._generation = 0

  @property
  def current_text(self) -> str:
    return self.display.text

  async def connect(self, settings: SessionSettings) -> None:
    """Reset state, open the channel and start a session with ``settings``."""
    await self._stop_everything()
    self._generation += 1
    generation = self._generation

    if self.mode is CaptureMode.PULL:
      settings = settings.model_copy(update={"input_mode": InputMode.TEXT})
    self._settings = settings

    self.is_connecting = True
    self.error = None
    self.display.clear()
    self.input_text = ""
    if self.playback is not None:
      self.playback.reset()
    self._notify()

    async def on_message(message: ServerMessage) -> None:
      if generation == self._generation:
        await self._handle_message(message)

    async def on_closed(reason: str | None) -> None:
      if generation == self._generation:
        logger.info("Server closed the channel", reason=reason)
        if reason is not None and self.error is None:
          # Abnormal close
          self.error = CONNECTION_FAILED
        await self._stop_everything()
        self._notify()

    connection = self.connection_factory(self.url, on_message=on_message, on_closed=on_closed)
    try:
      await connection.connect(settings)
    except (OSError, TimeoutError, WebSocketException) as e:
      logger.error("Could not reach server", url=self.url, error=str(e))
      self.error = CONNECTION_FAILED
      await self._stop_everything()
      self._notify()
      return

    if generation != self._generation:
      # Disconnected while the channel was opening
      await connection.disconnect()
      return
    self._connection = connection
    self._spawn(connection.handle_messages())

  async def disconnect(self) -> None:
    """Tear everything down and clear the displayed text."""
    await self._stop_everything()
    self.display.clear()
    self.input_text = ""
    if self.playback is not None:
      self.playback.reset()
    self._notify()

  async def simulate_voice_input(self, text: str, source_lang: str, target_lang: str) -> None:
    """Send ``text`` as if it had been recognized from speech."""
    self.input_text = text
    self._notify()
    await self._send_phrase(text, source_lang, target_lang)

  # Server messages

  async def _handle_message(self, message: ServerMessage) -> None:
    match message:
      case ConnectedMessage():
        self.is_connected = True
        self.is_connecting = False
        logger.info("Session ready", mode=self.mode.value)
        await self._start_input()
      case TextMessage(content=content):
        self.display.on_text(content)
      case TurnCompleteMessage():
        self.display.on_turn_complete()
      case AudioMessage():
        if self._settings is not None and self._settings.play_audio and self.playback:
          await self.playback.enqueue(message)
      case ErrorMessage(message=text, fatal=fatal):
        logger.warning("Server reported an error", message=text, fatal=fatal)
        self.error = text
        if fatal:
          await self._stop_everything()
    self._notify()

  # Input

  async def _start_input(self) -> None:
    if self.mode is CaptureMode.PUSH:
      await self._start_push_capture()
    else:
      self._start_recognizer()

  async def _start_push_capture(self) -> None:
    if self.capture is None:
      logger.warning("No capture device configured, audio will not be sent")
      return

    frames: asyncio.Queue[np.ndarray] = asyncio.Queue()
    generation = self._generation

    def on_end() -> None:
      if generation == self._generation:
        self._spawn(self._capture_lost())

    try:
      self.capture.start_capture(frames.put_nowait, on_end=on_end)
    except CaptureUnavailable as e:
      logger.error("Capture unavailable", error=str(e))
      self.error = MICROPHONE_UNAVAILABLE
      await self._stop_everything()
      return
    self._frames = frames
    self._spawn(self._send_frames(frames))

  async def _capture_lost(self) -> None:
    logger.error("Capture device stopped")
    self.error = MICROPHONE_UNAVAILABLE
    await self._stop_everything()
    self._notify()

  async def _send_frames(self, frames: asyncio.Queue[np.ndarray]) -> None:
    while True:
      audio = await frames.get()
      connection = self._connection
      if connection is None:
        return
      await connection.send_audio_frame(encode_frame(audio))

  def _start_recognizer(self) -> None:
    if self.recognizer_factory is None or self._settings is None:
      logger.warning("No local recognizer configured, only simulated input will be sent")
      return

    settings = self._settings
    generation = self._generation

    async def on_phrase(text: str) -> None:
      if generation != self._generation:
        return
      self.input_text = text
      self._notify()
      await self._send_phrase(text, settings.source_lang, settings.target_lang)

    async def on_fatal(message: str) -> None:
      if generation != self._generation:
        return
      self.error = message
      await self._stop_everything()
      self._notify()

    self._supervisor = RecognitionSupervisor(
      self.recognizer_factory(settings),
      on_phrase=on_phrase,
      is_active=lambda: generation == self._generation and self.is_connected,
      on_fatal=on_fatal,
    )
    self._supervisor.start()

  async def _send_phrase(self, text: str, source_lang: str, target_lang: str) -> None:
    if self._connection is None or not self._connection.is_connected():
      logger.warning("Socket not connected, dropping phrase", text=text)
      return
    persona = self._settings.persona if self._settings is not None else None
    await self._connection.send_text_input(
      TextInput(text=text, source_lang=source_lang, target_lang=target_lang, persona=persona)
    )

  # Teardown

  async def _stop_everything(self) -> None:
    """Stop capture and recognition, close the channel. Leaves displayed text alone."""
    self._generation += 1
    self.is_connected = False
    self.is_connecting = False

    if self.capture is not None:
      self.capture.stop_capture()
    self._frames = None

    supervisor, self._supervisor = self._supervisor, None
    if supervisor is not None:
      await supervisor.stop()

    connection, self._connection = self._connection, None
    if connection is not None:
      await connection.disconnect()

    current = asyncio.current_task()
    tasks = [task for task in self._background_tasks if task is not current]
    for task in tasks:
      task.cancel()
    if tasks:
      await asyncio.gather(*tasks, return_exceptions=True)
    self._background_tasks.difference_update(tasks)

  def _spawn(self, coro) -> asyncio.Task[Any]:
    task = asyncio.create_task(coro)
    self._background_tasks.add(task)
    task.add_done_callback(self._background_tasks.discard)
    return task

  def _notify(self) -> None:
    if self.on_change is not None:
      self.on_change(self)
