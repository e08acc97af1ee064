"""Exceptions raised inside the translation server."""


class ConfigurationError(Exception):
  """The server cannot run a session as requested, typically because a credential is missing."""


class BackendError(Exception):
  """A streaming recognition backend failed to open or broke while running."""


class TranslationError(Exception):
  """Translating a single utterance failed. The session keeps streaming."""


class SynthesisError(Exception):
  """Synthesizing speech for a translation failed. Playback for that utterance is skipped."""


class InvalidTransition(Exception):
  """A session was asked to move between two lifecycle states that are not connected."""

  def __init__(self, current: str, target: str):
    super().__init__(f"Illegal session transition {current} -> {target}")
    self.current = current
    self.target = target
