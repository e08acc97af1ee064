"""
Terminal subtitle overlay for babelcast.
"""

import argparse
import asyncio
import os

from rich.console import Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from babelcast.client.audio import AudioCapture
from babelcast.client.core import CaptureMode, LiveTranslationClient
from babelcast.client.display import DisplayMode, TranscriptBuffer
from babelcast.client.playback import PlaybackScheduler, SoundDeviceOutput
from babelcast.client.recognizer import LocalRecognizer
from babelcast.common import setup_logging
from babelcast.wire import Persona, SessionSettings

DEFAULT_PORT = 8080


def parse_host_port(host_port: str) -> tuple[str, int]:
  """Parse host:port string into separate components."""
  if ":" in host_port:
    host, port_str = host_port.rsplit(":", 1)
    try:
      return host, int(port_str)
    except ValueError:
      raise ValueError(f"Invalid port number: {port_str}")
  return host_port, DEFAULT_PORT


def render(client: LiveTranslationClient) -> Group:
  if client.is_connected:
    status = Text("● live", style="bold green")
  elif client.is_connecting:
    status = Text("● connecting", style="yellow")
  else:
    status = Text("● offline", style="dim")

  parts = [status]
  if client.error:
    parts.append(Text(client.error, style="bold red"))
  parts.append(Text(client.input_text or " ", style="dim italic"))
  parts.append(Panel(Text(client.current_text or " ", style="bold"), title="subtitles"))
  return Group(*parts)


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(description="Live translated subtitles in the terminal")
  parser.add_argument(
    "--server", default=f"localhost:{DEFAULT_PORT}", help="Server host:port (default: %(default)s)"
  )
  parser.add_argument("--source", default="Japanese", help="Spoken language (default: %(default)s)")
  parser.add_argument(
    "--target", default="English", help="Subtitle language (default: %(default)s)"
  )
  parser.add_argument(
    "--persona", choices=[p.value for p in Persona], default=Persona.NONE.value
  )
  parser.add_argument(
    "--mode",
    choices=[m.value for m in CaptureMode],
    default=CaptureMode.PUSH.value,
    help="push streams audio to the server, pull recognizes speech locally",
  )
  parser.add_argument(
    "--display",
    choices=[m.value for m in DisplayMode],
    default=DisplayMode.REPLACE.value,
    help="How new translations update the subtitle text",
  )
  parser.add_argument("--play-audio", action="store_true", help="Play synthesized speech")
  parser.add_argument("--device", default=None, help="Input device name or index")
  parser.add_argument("--model", default="small", help="faster-whisper model for pull mode")
  parser.add_argument(
    "--simulate", default=None, help="Send this phrase once connected, as if it were spoken"
  )
  return parser


def _device(value: str | None) -> int | str | None:
  if value is not None and value.isdigit():
    return int(value)
  return value


async def run(args: argparse.Namespace) -> None:
  host, port = parse_host_port(args.server)
  device = _device(args.device)
  mode = CaptureMode(args.mode)
  capture = AudioCapture(device=device)

  output: SoundDeviceOutput | None = None
  playback: PlaybackScheduler | None = None
  if args.play_audio:
    output = SoundDeviceOutput()
    output.start()
    playback = PlaybackScheduler(clock=output, sink=output)

  settings = SessionSettings(
    source_lang=args.source,
    target_lang=args.target,
    persona=Persona(args.persona),
    play_audio=args.play_audio,
  )

  with Live(auto_refresh=False) as live:
    client = LiveTranslationClient(
      url=f"ws://{host}:{port}",
      mode=mode,
      display=TranscriptBuffer(mode=DisplayMode(args.display)),
      capture=capture if mode is CaptureMode.PUSH else None,
      recognizer_factory=lambda s: LocalRecognizer(capture, s.source_lang, model_size=args.model),
      playback=playback,
      on_change=lambda c: live.update(render(c), refresh=True),
    )

    try:
      await client.connect(settings)
      if args.simulate:
        while client.is_connecting:
          await asyncio.sleep(0.05)
        await client.simulate_voice_input(args.simulate, args.source, args.target)
      while client.is_connected or client.is_connecting:
        await asyncio.sleep(0.25)
    finally:
      await client.disconnect()
      if output is not None:
        output.close()


def main() -> None:
  args = build_parser().parse_args()
  setup_logging(level=os.getenv("LOG_LEVEL", "WARNING").upper())
  try:
    asyncio.run(run(args))
  except KeyboardInterrupt:
    pass


if __name__ == "__main__":
  main()
