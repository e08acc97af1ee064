"""
WebSocket connection and protocol handling for the subtitle client.
"""

from collections.abc import Awaitable, Callable
from typing import Any

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed

from babelcast.common import get_logger
from babelcast.wire import (
  AudioFrame,
  AudioInputMessage,
  ClientMessage,
  ConfigMessage,
  DisconnectMessage,
  ServerMessage,
  SessionSettings,
  TextInput,
  TextInputMessage,
  WireProtocolError,
  deserialize_message,
  serialize_message,
)


class WebSocketConnection:
  """Manages the websocket to the translation server and the protocol spoken over it."""

  def __init__(
    self,
    url: str,
    on_message: Callable[[ServerMessage], Awaitable[None]],
    on_closed: Callable[[str | None], Awaitable[None]],
    connect: Callable[..., Any] = websockets.connect,
  ):
    self.url = url
    self.on_message = on_message
    self.on_closed = on_closed
    self._connect = connect
    self.logger = get_logger("conn")

    self.ws: ClientConnection | None = None
    self.connected = False

  async def connect(self, settings: SessionSettings) -> None:
    """
    Open the channel and start the session by sending ``config``.

    :raises OSError: and websockets exceptions if the server cannot be reached.
    """
    self.ws = await self._connect(self.url)
    self.connected = True
    self.logger.info("Connected", url=self.url)
    await self._send(ConfigMessage(data=settings))

  async def disconnect(self) -> None:
    """Say goodbye and close the channel."""
    if not self.ws:
      return
    ws, self.ws = self.ws, None
    if self.connected:
      self.connected = False
      try:
        await ws.send(serialize_message(DisconnectMessage()))
      except ConnectionClosed:
        pass
    await ws.close()

  async def handle_messages(self) -> None:
    """Read server messages until the channel closes, then report the close exactly once."""
    if not self.ws:
      return

    reason: str | None = None
    try:
      async for raw in self.ws:
        try:
          message = deserialize_message(raw)
        except WireProtocolError as e:
          self.logger.warning("Ignoring malformed server message", error=str(e))
          continue

        if not isinstance(message, ServerMessage):
          self.logger.warning("Ignoring unexpected message", type=message.type)
          continue
        await self.on_message(message)
    except ConnectionClosed as e:
      reason = str(e)
    finally:
      self.connected = False

    self.logger.info("Channel closed", reason=reason)
    await self.on_closed(reason)

  async def send_audio_frame(self, frame: AudioFrame) -> None:
    await self._send(AudioInputMessage(data=frame))

  async def send_text_input(self, text_input: TextInput) -> None:
    await self._send(TextInputMessage(data=text_input))

  async def _send(self, message: ClientMessage) -> None:
    if not self.ws or not self.connected:
      self.logger.debug("Not connected, dropping message", type=message.type)
      return
    try:
      await self.ws.send(serialize_message(message))
    except ConnectionClosed:
      self.logger.debug("Channel closed while sending", type=message.type)
      self.connected = False

  def is_connected(self) -> bool:
    return self.connected and self.ws is not None
