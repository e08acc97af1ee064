"""Tests for command line parsing of the server and the terminal client."""

import pytest
from rich.console import Console

from babelcast.client import LiveTranslationClient
from babelcast.client.__main__ import build_parser as build_client_parser
from babelcast.client.__main__ import parse_host_port, render
from babelcast.server.__main__ import build_parser as build_server_parser
from babelcast.server.__main__ import get_env_or_default


class TestServerArguments:
  def test_defaults(self, monkeypatch):
    for name in ["BABELCAST_HOST", "BABELCAST_PORT", "BABELCAST_CONFIG", "JSON_LOGS"]:
      monkeypatch.delenv(name, raising=False)

    args = build_server_parser().parse_args([])

    assert args.host == "0.0.0.0"
    assert args.port == 8080
    assert args.config is None
    assert not args.json_logs

  def test_environment_defaults(self, monkeypatch):
    monkeypatch.setenv("BABELCAST_PORT", "9001")
    monkeypatch.setenv("JSON_LOGS", "yes")

    args = build_server_parser().parse_args([])

    assert args.port == 9001
    assert args.json_logs

  def test_flags_override_environment(self, monkeypatch):
    monkeypatch.setenv("BABELCAST_PORT", "9001")
    args = build_server_parser().parse_args(["-p", "7000", "--config", "babelcast.yaml"])

    assert args.port == 7000
    assert args.config == "babelcast.yaml"

  def test_bad_integer_falls_back(self, monkeypatch):
    monkeypatch.setenv("BABELCAST_PORT", "eighty")
    assert get_env_or_default("BABELCAST_PORT", 8080, int) == 8080


class TestClientArguments:
  @pytest.mark.parametrize(
    ("value", "expected"),
    [("localhost:9000", ("localhost", 9000)), ("example.test", ("example.test", 8080))],
  )
  def test_parse_host_port(self, value, expected):
    assert parse_host_port(value) == expected

  def test_parse_host_port_rejects_bad_port(self):
    with pytest.raises(ValueError, match="Invalid port"):
      parse_host_port("localhost:abc")

  def test_defaults(self):
    args = build_client_parser().parse_args([])

    assert args.mode == "push"
    assert args.display == "replace"
    assert args.persona == "none"
    assert not args.play_audio

  def test_invalid_persona(self):
    with pytest.raises(SystemExit):
      build_client_parser().parse_args(["--persona", "pirate"])


def test_render_shows_error_and_subtitles():
  client = LiveTranslationClient()
  client.error = "Translation failed"
  client.display.on_text("Good evening")

  console = Console(width=60, record=True)
  console.print(render(client))
  output = console.export_text()

  assert "offline" in output
  assert "Translation failed" in output
  assert "Good evening" in output
