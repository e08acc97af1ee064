import asyncio
import time
from collections.abc import Awaitable, Callable

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed, InvalidMessage

from babelcast.common import Seconds, get_logger
from babelcast.server.session import TranslationSession


class WebSocketSessionManager:
  """Tracks the live session of every open connection."""

  def __init__(self):
    self.sessions: dict[ServerConnection, TranslationSession] = {}
    self.start_times: dict[ServerConnection, float] = {}
    self.logger = get_logger("ws/sessmgr")

  def __len__(self) -> int:
    return len(self.sessions)

  def add_session(self, websocket: ServerConnection, session: TranslationSession) -> None:
    self.sessions[websocket] = session
    self.start_times[websocket] = time.time()
    self.logger.debug("Session added", session=session.session_id, total=len(self.sessions))

  async def remove_session(self, websocket: ServerConnection) -> None:
    """Forget the connection's session and close it, releasing every backend it holds."""
    session = self.sessions.pop(websocket, None)
    started = self.start_times.pop(websocket, None)
    if session is None:
      self.logger.debug("No session found for websocket during removal")
      return

    await session.close()
    duration = Seconds(time.time() - started) if started is not None else None
    self.logger.debug(
      "Session removed",
      session=session.session_id,
      state=session.state.value,
      duration=duration,
      remaining=len(self.sessions),
    )


class WebSocketServer:
  """Wrapper around the websocket server that handles connection errors gracefully"""

  def __init__(
    self,
    handler: Callable[[ServerConnection], Awaitable[None]],
    host: str,
    port: int,
    **kwargs,
  ):
    self.handler = handler
    self.host = host
    self.port = port
    self.kwargs = kwargs
    self.logger = get_logger("ws/server")

  async def start(self) -> None:
    self.logger.info(f"Starting WebSocket server on {self.host}:{self.port}")
    async with serve(
      self.error_handling_wrapper,
      self.host,
      self.port,
      **self.kwargs,
    ):
      await asyncio.Future()  # run forever

  async def error_handling_wrapper(self, websocket: ServerConnection) -> None:
    """Run the handler, treating closed connections and failed handshakes as normal endings"""
    addr = websocket.remote_address

    try:
      self.logger.info("Connection begin", address=addr, websocket_id=websocket.id)
      await self.handler(websocket)
    except (EOFError, InvalidMessage):
      self.logger.debug(
        "Connection from failed handshake (likely port scan/health check)",
        websocket_id=websocket.id,
      )
    except ConnectionClosed as e:
      self.logger.debug("Connection closed", error=e, websocket_id=websocket.id)
    except (KeyboardInterrupt, SystemExit):
      raise
    except Exception:
      self.logger.exception("Connection unexpected error", websocket_id=websocket.id)
