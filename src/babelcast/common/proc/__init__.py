from .float import FloatPrecisionProcessor
from .logger_filter import LoggerFilterProcessor

__all__ = [
  "FloatPrecisionProcessor",
  "LoggerFilterProcessor",
]
