"""
Deepgram live transcription over a websocket.

Audio goes up as binary frames of raw PCM; results come back as JSON text frames. Control
messages (KeepAlive, CloseStream) are JSON text frames on the same socket.
"""

import asyncio
import json
from typing import Any
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from babelcast.common import get_logger, recognizer_language
from babelcast.server.backends.interfaces import (
  BackendClosed,
  BackendEvent,
  BackendFailure,
  BackendListener,
  TranscriptEvent,
)
from babelcast.server.config import SttConfig
from babelcast.server.constants import DEEPGRAM_URL
from babelcast.server.errors import BackendError

KEEPALIVE_MESSAGE = json.dumps({"type": "KeepAlive"})
CLOSE_STREAM_MESSAGE = json.dumps({"type": "CloseStream"})


def _flag(value: bool) -> str:
  return "true" if value else "false"


def build_listen_url(base_url: str, config: SttConfig, language: str) -> str:
  """Build the listen endpoint URL with every recognition option as a query parameter."""
  params = {
    "model": config.model,
    "language": recognizer_language(language),
    "smart_format": _flag(config.smart_format),
    "filler_words": _flag(config.filler_words),
    "endpointing": config.endpointing_ms,
    "interim_results": _flag(config.interim_results),
    "encoding": config.encoding,
    "sample_rate": config.sample_rate,
    "channels": config.channels,
  }
  return f"{base_url}?{urlencode(params)}"


def parse_deepgram_message(raw: str | bytes) -> BackendEvent | None:
  """
  Convert one Deepgram response frame into a backend event.

  :returns: The event, or None for frames the session has no use for (metadata, speech started,
    utterance end) and for results without any alternative.
  """
  try:
    payload: dict[str, Any] = json.loads(raw)
  except (json.JSONDecodeError, UnicodeDecodeError):
    return BackendFailure(message="Unreadable response from transcription service")

  match payload.get("type"):
    case "Results":
      alternatives = payload.get("channel", {}).get("alternatives") or []
      if not alternatives:
        return None
      best = alternatives[0]
      return TranscriptEvent(
        text=best.get("transcript", ""),
        is_final=bool(payload.get("is_final", False)),
        speech_final=bool(payload.get("speech_final", False)),
        confidence=best.get("confidence"),
      )
    case "Error":
      message = payload.get("description") or payload.get("message") or "unknown error"
      return BackendFailure(message=str(message))
    case _:
      return None


class DeepgramTranscriber:
  """One live transcription stream, opened per session."""

  def __init__(
    self,
    api_key: str,
    config: SttConfig,
    language: str,
    url: str = DEEPGRAM_URL,
    connect: Any = websockets.connect,
    session_id: str | None = None,
  ):
    self.config = config
    self.language = language
    self.url = build_listen_url(url, config, language)
    self.logger = get_logger("stt/deepgram", session=session_id)

    self._api_key = api_key
    self._connect = connect
    self._ws: Any = None
    self._listener: BackendListener | None = None
    self._receiver: asyncio.Task[None] | None = None
    self._finishing = False

  @property
  def is_open(self) -> bool:
    return self._ws is not None and self._ws.state is State.OPEN and not self._finishing

  async def open(self, listener: BackendListener) -> None:
    self.logger.debug("Opening transcription stream", url=self.url)
    try:
      self._ws = await self._connect(
        self.url, additional_headers={"Authorization": f"Token {self._api_key}"}
      )
    except (OSError, TimeoutError, WebSocketException) as e:
      raise BackendError(f"Could not connect to Deepgram: {e}") from e

    self._listener = listener
    self._receiver = asyncio.create_task(self._receive_loop())
    self.logger.info("Transcription stream open", language=recognizer_language(self.language))

  async def _receive_loop(self) -> None:
    assert self._ws is not None and self._listener is not None
    reason: str | None = None
    try:
      async for raw in self._ws:
        event = parse_deepgram_message(raw)
        if event is not None:
          await self._listener(event)
    except ConnectionClosed as e:
      reason = str(e)
    except Exception as e:
      self.logger.exception("Transcription receive loop failed")
      reason = f"receive loop failed: {e}"

    if not self._finishing:
      self.logger.info("Transcription stream closed", reason=reason)
      await self._listener(BackendClosed(reason=reason))

  async def send_audio(self, audio: bytes) -> None:
    if not self.is_open:
      self.logger.debug("Dropping audio, stream not open", size=len(audio))
      return
    try:
      await self._ws.send(audio)
    except ConnectionClosed as e:
      raise BackendError(f"Transcription stream closed while sending audio: {e}") from e

  async def keep_alive(self) -> None:
    if not self.is_open:
      return
    try:
      await self._ws.send(KEEPALIVE_MESSAGE)
    except ConnectionClosed as e:
      raise BackendError(f"Transcription stream closed during keep-alive: {e}") from e

  async def finish(self) -> None:
    if self._finishing:
      return
    self._finishing = True

    if self._ws is not None:
      try:
        if self._ws.state is State.OPEN:
          await self._ws.send(CLOSE_STREAM_MESSAGE)
        await self._ws.close()
      except (ConnectionClosed, OSError) as e:
        self.logger.debug("Transcription stream already gone", error=str(e))

    # finish() may run inside the receive loop itself, via the listener
    receiver = self._receiver
    self._receiver = None
    if receiver is not None and receiver is not asyncio.current_task():
      receiver.cancel()
      try:
        await receiver
      except asyncio.CancelledError:
        pass
    self.logger.debug("Transcription stream finished")
