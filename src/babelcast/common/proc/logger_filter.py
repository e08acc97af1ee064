from structlog import DropEvent
from structlog.typing import EventDict, WrappedLogger


class LoggerFilterProcessor:
  """
  A structlog processor that only lets through events from one logger and its children, whether
  nested with "." or "/".

  Must run after ``structlog.stdlib.add_logger_name``, since it reads the ``logger`` key rather
  than the wrapped logger object.

  Example::

      setup_logging(only_logger="ws")
      get_logger("ws/sink").info("kept")
      get_logger("server").info("dropped")
  """

  def __init__(self, logger_name: str):
    self.logger_name = logger_name
    self._prefixes = (f"{logger_name}.", f"{logger_name}/")

  def matches(self, name: str | None) -> bool:
    if not name:
      return False
    return name == self.logger_name or name.startswith(self._prefixes)

  def __call__(self, _: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    name = event_dict.get("logger")
    if self.matches(name):
      return event_dict
    raise DropEvent
