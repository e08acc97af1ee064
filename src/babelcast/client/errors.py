"""Exceptions raised by the subtitle client."""


class CaptureUnavailable(Exception):
  """The input device could not be opened: missing, busy, or permission denied."""


class RecognizerError(Exception):
  """The local recognizer stopped with an error.

  Fatal errors (no device, no model) are never retried; transient ones end the current run and
  leave the decision to restart to the supervisor.
  """

  def __init__(self, message: str, fatal: bool = False):
    super().__init__(message)
    self.fatal = fatal
