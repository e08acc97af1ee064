"""babelcast translation server."""

from .config import BabelcastConfig, ServerSettings, load_config_from_file
from .errors import (
  BackendError,
  ConfigurationError,
  InvalidTransition,
  SynthesisError,
  TranslationError,
)
from .server import TranslationServer, create_server

__all__ = [
  "BabelcastConfig",
  "BackendError",
  "ConfigurationError",
  "InvalidTransition",
  "ServerSettings",
  "SynthesisError",
  "TranslationError",
  "TranslationServer",
  "create_server",
  "load_config_from_file",
]
