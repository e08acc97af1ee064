"""Logging, formatting and language helpers shared by the server and the client."""

from .format import Milliseconds, Seconds
from .languages import LANGUAGE_CODES, recognizer_language
from .logs import get_logger, setup_logging

__all__ = [
  "LANGUAGE_CODES",
  "Milliseconds",
  "Seconds",
  "get_logger",
  "recognizer_language",
  "setup_logging",
]
