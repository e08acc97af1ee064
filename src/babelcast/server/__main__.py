import argparse
import asyncio
import os

from babelcast.common import get_logger, setup_logging
from babelcast.server.constants import DEFAULT_HOST, DEFAULT_PORT


def get_env_or_default(env_var, default, var_type: type = str):
  """Get environment variable with type conversion and default fallback."""
  value = os.getenv(env_var)
  if value is None:
    return default

  if var_type is bool:
    return value.lower() in ("true", "1", "yes", "on")
  elif var_type is int:
    try:
      return int(value)
    except ValueError:
      return default
  else:
    return value


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="babelcast-server",
    description="Realtime speech translation server for subtitle overlays.",
  )
  parser.add_argument(
    "--host",
    type=str,
    default=get_env_or_default("BABELCAST_HOST", DEFAULT_HOST),
    help="Interface to listen on. (Env: BABELCAST_HOST)",
  )
  parser.add_argument(
    "--port",
    "-p",
    type=int,
    default=get_env_or_default("BABELCAST_PORT", DEFAULT_PORT, int),
    help="Websocket port to run the server on. (Env: BABELCAST_PORT)",
  )
  parser.add_argument(
    "--config",
    type=str,
    default=get_env_or_default("BABELCAST_CONFIG", None),
    help="Path to an optional YAML configuration file. (Env: BABELCAST_CONFIG)",
  )
  parser.add_argument(
    "--json_logs",
    action="store_true",
    default=get_env_or_default("JSON_LOGS", False, bool),
    help="Output logs in JSON format. (Env: JSON_LOGS)",
  )
  parser.add_argument(
    "--correlation_id",
    type=str,
    default=get_env_or_default("CORRELATION_ID", None),
    help="Correlation ID for log tracing. (Env: CORRELATION_ID)",
  )
  return parser


async def main(argv: list[str] | None = None) -> None:
  args = build_parser().parse_args(argv)

  log_level = os.getenv("LOG_LEVEL", "INFO").upper()
  setup_logging(level=log_level, json_output=args.json_logs, correlation_id=args.correlation_id)
  logger = get_logger("main")

  logger.info("Starting babelcast server", host=args.host, port=args.port, config_path=args.config)

  from babelcast.server.server import create_server

  server = create_server(args.config)
  await server.run(args.host, args.port)


def cli() -> None:
  try:
    asyncio.run(main())
  except KeyboardInterrupt:
    pass


if __name__ == "__main__":
  cli()
