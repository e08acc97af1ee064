"""Centralized logging configuration for babelcast using structlog."""

import logging
import time
from typing import Any

import structlog
from structlog.dev import BRIGHT, DIM, RESET_ALL, Column, ConsoleRenderer, KeyValueColumnFormatter
from structlog.typing import EventDict, Processor, WrappedLogger

from babelcast.common.proc import FloatPrecisionProcessor, LoggerFilterProcessor

# Relative timestamps are measured from import time
_PROGRAM_START_TIME = time.time()

_QUIET_LIBRARIES = ("websockets", "httpx", "httpcore")


def hex_to_ansi_fg(hex_color: int) -> str:
  """Convert hex color (e.g., 0xad8a89) to ANSI 24-bit foreground escape code."""
  r = (hex_color >> 16) & 0xFF
  g = (hex_color >> 8) & 0xFF
  b = hex_color & 0xFF
  return f"\x1b[38;2;{r};{g};{b}m"


_LEVEL_COLORS = {
  "debug": ("dbug", 0x908CAA),
  "info": ("info", 0x9CCFD8),
  "warning": ("warn", 0xF6C177),
  "error": ("eror", 0xEB6F92),
  "exception": ("exc!", 0xEB6F92),
  "critical": ("crit", 0xEB6F92),
}


def _relative_time_processor(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
  """Stamp events with the time elapsed since program start, as +[hh:][mm:]ss.mmm."""
  elapsed = time.time() - _PROGRAM_START_TIME
  hours, remainder = divmod(elapsed, 3600)
  minutes, seconds = divmod(remainder, 60)

  parts = []
  if hours:
    parts.append(f"{int(hours):02d}:")
  if hours or minutes:
    parts.append(f"{int(minutes):02d}:")
  parts.append(f"{seconds:06.3f}")

  event_dict["timestamp"] = f"+{''.join(parts)}"
  return event_dict


def _compact_level_processor(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
  """Render log levels as colored four-character tags, e.g. [info]."""
  level = event_dict.get("level")
  if level in _LEVEL_COLORS:
    tag, color = _LEVEL_COLORS[level]
    colored = f"{hex_to_ansi_fg(color)}{tag}{RESET_ALL}"
    event_dict["level"] = f"{DIM}[{RESET_ALL}{colored}{DIM}]{RESET_ALL}"
  return event_dict


def _console_renderer() -> ConsoleRenderer:
  logger_name_formatter = KeyValueColumnFormatter(
    key_style=None,
    value_style=hex_to_ansi_fg(0x7D6B95),
    reset_style=RESET_ALL,
    value_repr=str,
    prefix="[",
    postfix="]",
  )
  return ConsoleRenderer(
    colors=True,
    columns=[
      Column(
        "",
        KeyValueColumnFormatter(
          key_style=hex_to_ansi_fg(0x6E6A86),
          value_style=hex_to_ansi_fg(0xF6C177),
          reset_style=RESET_ALL,
          value_repr=str,
        ),
      ),
      Column(
        "timestamp",
        KeyValueColumnFormatter(
          key_style=None, value_style=DIM, reset_style=RESET_ALL, value_repr=str
        ),
      ),
      Column(
        "level",
        KeyValueColumnFormatter(
          key_style=None, value_style="", reset_style=RESET_ALL, value_repr=str
        ),
      ),
      Column("logger", logger_name_formatter),
      Column(
        "event",
        KeyValueColumnFormatter(
          key_style=None, value_style=BRIGHT, reset_style=RESET_ALL, value_repr=str, width=30
        ),
      ),
    ],
  )


def setup_logging(
  level: str = "INFO",
  json_output: bool = False,
  correlation_id: str | None = None,
  only_logger: str | None = None,
) -> None:
  """Configure structured logging for the application.

  :param level: Root log level name.
  :param json_output: Emit one JSON object per line instead of colored console output.
  :param correlation_id: Bound to every event when provided, for log tracing.
  :param only_logger: Restrict output to this logger and its children.
  """
  shared_processors: list[Processor] = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
  ]

  if correlation_id:
    shared_processors.insert(0, structlog.contextvars.merge_contextvars)
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

  shared_processors += [
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.stdlib.ExtraAdder(),
    FloatPrecisionProcessor(digits=3),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
  ]

  if json_output:
    shared_processors.append(structlog.processors.TimeStamper(fmt="iso"))
    log_renderer: Processor = structlog.processors.JSONRenderer()
  else:
    shared_processors += [_compact_level_processor, _relative_time_processor]
    log_renderer = _console_renderer()

  # The filter only applies to structlog events; foreign stdlib records pass through
  filters: list[Processor] = [LoggerFilterProcessor(only_logger)] if only_logger else []

  structlog.configure(
    processors=[
      *shared_processors,
      *filters,
      structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
  )

  formatter = structlog.stdlib.ProcessorFormatter(
    foreign_pre_chain=shared_processors,
    processors=[
      structlog.stdlib.ProcessorFormatter.remove_processors_meta,
      log_renderer,
    ],
  )

  handler = logging.StreamHandler()
  handler.setFormatter(formatter)
  root_logger = logging.getLogger()
  root_logger.handlers.clear()
  root_logger.addHandler(handler)
  root_logger.setLevel(level)

  # Propagate library logs, but only warnings and above
  for liblog in [logging.getLogger(name) for name in _QUIET_LIBRARIES]:
    liblog.handlers.clear()
    liblog.setLevel(logging.WARNING)
    liblog.propagate = True


def get_logger(
  name: str | None = None, *args: Any, **initial_values: Any
) -> structlog.stdlib.BoundLogger:
  """Get a structured logger instance."""
  return structlog.get_logger(*([name] + list(args)), **initial_values)
