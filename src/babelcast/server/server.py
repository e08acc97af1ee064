import asyncio
from pathlib import Path

from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed, InvalidMessage

from babelcast.common import get_logger
from babelcast.server.backends import BackendProvider
from babelcast.server.config import BabelcastConfig, ServerSettings, load_config_from_file
from babelcast.server.constants import (
  DEFAULT_HOST,
  DEFAULT_PORT,
  MSG_INTERNAL_ERROR,
  MSG_INVALID_MESSAGE,
)
from babelcast.server.session import (
  MessageSink,
  SessionBackends,
  TranslationSession,
  WebSocketMessageSink,
  event_for_message,
)
from babelcast.server.websocket import WebSocketServer, WebSocketSessionManager
from babelcast.wire import ClientMessage, ErrorMessage, WireProtocolError, deserialize_message


class TranslationServer:
  """Accepts subtitle clients and runs one translation session per connection."""

  def __init__(
    self,
    config: BabelcastConfig | None = None,
    settings: ServerSettings | None = None,
    backends: SessionBackends | None = None,
  ):
    self.config = config or BabelcastConfig()
    self.settings = settings or ServerSettings.from_env()
    self.backends = backends or BackendProvider(self.config, self.settings)
    self.session_manager = WebSocketSessionManager()
    self.logger = get_logger("server")

  def create_session(self, websocket: ServerConnection) -> TranslationSession:
    session_id = websocket.id.hex[:8]
    sink = WebSocketMessageSink(websocket, session_id)
    return TranslationSession(session_id, sink, self.backends, self.config.session)

  async def handle_connection(self, websocket: ServerConnection) -> None:
    """
    Run a session for the lifetime of one connection.

    Channel close is the authoritative end of the session: however the read loop exits, the
    session is torn down and the socket closed. A session that ends on its own, e.g. after a
    fatal backend error, closes the channel too.
    """
    session = self.create_session(websocket)
    self.session_manager.add_session(websocket, session)
    self.logger.info("Client connected", session=session.session_id)

    reader = asyncio.create_task(self.read_frames(session, websocket))
    ended = asyncio.create_task(session.wait_ended())
    try:
      done, _ = await asyncio.wait({reader, ended}, return_when=asyncio.FIRST_COMPLETED)
      if reader in done:
        reader.result()
      else:
        self.logger.info("Session ended, closing channel", session=session.session_id)
    finally:
      for task in (reader, ended):
        task.cancel()
      await asyncio.gather(reader, ended, return_exceptions=True)
      await self.session_manager.remove_session(websocket)
      await websocket.close()
      self.logger.info("Client disconnected", session=session.session_id)

  async def read_frames(self, session: TranslationSession, websocket: ServerConnection) -> None:
    try:
      async for raw in websocket:
        await self.handle_frame(session, raw)
        if session.is_terminal:
          return
    except (ConnectionClosed, InvalidMessage):
      self.logger.info("Connection closed by client", session=session.session_id)

  async def handle_frame(self, session: TranslationSession, raw: str | bytes) -> None:
    """Decode one inbound frame and apply it to the session. Never raises for bad input."""
    sink: MessageSink = session.sink
    try:
      message = deserialize_message(raw)
    except WireProtocolError as e:
      self.logger.warning("Malformed client message", session=session.session_id, error=str(e))
      await sink.send(ErrorMessage(message=MSG_INVALID_MESSAGE))
      return

    if not isinstance(message, ClientMessage):
      self.logger.warning(
        "Client sent a server message", session=session.session_id, type=message.type
      )
      await sink.send(ErrorMessage(message=MSG_INVALID_MESSAGE))
      return

    try:
      await session.dispatch(event_for_message(message))
    except Exception:
      self.logger.exception("Server logic error", session=session.session_id, type=message.type)
      await sink.send(ErrorMessage(message=MSG_INTERNAL_ERROR))

  async def run(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
    """Serve until cancelled."""
    self.logger.info(
      "Starting translation server",
      host=host,
      port=port,
      stt=self.config.stt.provider,
      translation=self.config.translation.model,
      tts=self.config.tts.enabled,
    )
    websocket_server = WebSocketServer(self.handle_connection, host, port)
    await websocket_server.start()


def create_server(config_path: str | None = None) -> TranslationServer:
  """Build a server from an optional YAML config file and the environment."""
  config = load_config_from_file(Path(config_path)) if config_path else BabelcastConfig()
  return TranslationServer(config=config, settings=ServerSettings.from_env())
