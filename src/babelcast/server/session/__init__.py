"""Session orchestration: lifecycle state, inbound events and the translation session."""

from .events import (
  AudioFrameReceived,
  ConfigRequested,
  DisconnectRequested,
  SessionEvent,
  TextInputReceived,
  event_for_message,
)
from .interfaces import MessageSink, SessionBackends
from .orchestrator import TranslationSession, Utterance
from .state import TERMINAL_STATES, TRANSITIONS, SessionState, SessionStateMachine
from .websocket_adapters import WebSocketMessageSink

__all__ = [
  "TERMINAL_STATES",
  "TRANSITIONS",
  "AudioFrameReceived",
  "ConfigRequested",
  "DisconnectRequested",
  "MessageSink",
  "SessionBackends",
  "SessionEvent",
  "SessionState",
  "SessionStateMachine",
  "TextInputReceived",
  "TranslationSession",
  "Utterance",
  "WebSocketMessageSink",
  "event_for_message",
]
