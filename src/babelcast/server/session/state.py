"""
Session lifecycle states and the table of legal transitions between them.

The table is the single source of truth for what a session may do next; callers never compare
states to decide a transition themselves.
"""

from enum import StrEnum

from babelcast.server.errors import InvalidTransition


class SessionState(StrEnum):
  IDLE = "idle"
  """Connected, waiting for config. No backend resources held."""

  CONFIGURING = "configuring"
  """Validating credentials and opening the recognizer."""

  STREAMING = "streaming"
  """Forwarding audio and translating finalized utterances."""

  CLOSED = "closed"
  """Ended by the client or by channel close."""

  ERRORED = "errored"
  """Ended by a fatal failure. Absorbing."""


TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
  SessionState.IDLE: frozenset({SessionState.CONFIGURING, SessionState.CLOSED}),
  SessionState.CONFIGURING: frozenset(
    {SessionState.STREAMING, SessionState.ERRORED, SessionState.CLOSED}
  ),
  SessionState.STREAMING: frozenset({SessionState.CLOSED, SessionState.ERRORED}),
  SessionState.CLOSED: frozenset(),
  SessionState.ERRORED: frozenset(),
}

TERMINAL_STATES = frozenset({SessionState.CLOSED, SessionState.ERRORED})


class SessionStateMachine:
  def __init__(self, initial: SessionState = SessionState.IDLE):
    self._state = initial

  @property
  def state(self) -> SessionState:
    return self._state

  @property
  def is_terminal(self) -> bool:
    return self._state in TERMINAL_STATES

  def can_transition(self, target: SessionState) -> bool:
    return target in TRANSITIONS[self._state]

  def transition(self, target: SessionState) -> SessionState:
    """
    Move to ``target`` and return the previous state.

    :raises InvalidTransition: if the table has no edge from the current state to ``target``.
    """
    if not self.can_transition(target):
      raise InvalidTransition(self._state.value, target.value)
    previous, self._state = self._state, target
    return previous
