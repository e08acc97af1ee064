"""WebSocket implementation of the session message sink."""

from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed

from babelcast.common import get_logger
from babelcast.server.session.interfaces import MessageSink
from babelcast.wire import ServerMessage, serialize_message


class WebSocketMessageSink(MessageSink):
  """
  Serializes session messages onto a client websocket.

  Send failures are logged, not raised: the connection handler notices the closed channel on its
  next read and tears the session down from there.
  """

  def __init__(self, websocket: ServerConnection, session_id: str) -> None:
    self.websocket = websocket
    self.logger = get_logger("ws/sink", session=session_id)
    self._closed = False

  @property
  def closed(self) -> bool:
    return self._closed

  async def send(self, message: ServerMessage) -> None:
    if self._closed:
      self.logger.debug("Dropping message on closed sink", type=message.type)
      return

    try:
      await self.websocket.send(serialize_message(message))
    except ConnectionClosed:
      self.logger.debug("Client went away while sending", type=message.type)
      self._closed = True
    except Exception:
      self.logger.exception("Error sending message to client", type=message.type)

  def close(self) -> None:
    self._closed = True
