"""
Translation and speech synthesis through the Gemini generateContent REST API.

Both engines share one request shape: a single user turn in, candidates with content parts out.
"""

import re
import time
from typing import Any

import httpx

from babelcast.common import Milliseconds, get_logger
from babelcast.server.backends.interfaces import SynthesizedAudio, TranslationRequest
from babelcast.server.backends.prompts import build_translation_prompt
from babelcast.server.config import TranslationConfig, TtsConfig
from babelcast.server.constants import GEMINI_URL
from babelcast.server.errors import SynthesisError, TranslationError

_RATE_PATTERN = re.compile(r"rate=(\d+)")


class GeminiClient:
  """Thin async wrapper over generateContent, one per backend instance."""

  def __init__(
    self,
    api_key: str,
    base_url: str = GEMINI_URL,
    timeout: float = 15.0,
    transport: httpx.AsyncBaseTransport | None = None,
  ):
    self._client = httpx.AsyncClient(
      base_url=base_url,
      timeout=timeout,
      headers={"x-goog-api-key": api_key},
      transport=transport,
    )

  async def generate(self, model: str, body: dict[str, Any]) -> dict[str, Any]:
    """
    Call generateContent and return the decoded JSON response.

    :raises httpx.HTTPError: for transport failures and non-2xx responses.
    :raises ValueError: if the response body is not JSON.
    """
    response = await self._client.post(f"/models/{model}:generateContent", json=body)
    response.raise_for_status()
    return response.json()

  async def aclose(self) -> None:
    await self._client.aclose()


def _candidate_parts(response: dict[str, Any]) -> list[dict[str, Any]]:
  candidates = response.get("candidates") or []
  if not candidates:
    return []
  content = candidates[0].get("content") or {}
  return content.get("parts") or []


def _user_turn(text: str) -> list[dict[str, Any]]:
  return [{"role": "user", "parts": [{"text": text}]}]


class GeminiTranslator:
  def __init__(
    self,
    api_key: str,
    config: TranslationConfig,
    base_url: str = GEMINI_URL,
    transport: httpx.AsyncBaseTransport | None = None,
    session_id: str | None = None,
  ):
    self.config = config
    self.client = GeminiClient(api_key, base_url, config.timeout, transport)
    self.logger = get_logger("mt/gemini", session=session_id)

  async def translate(self, request: TranslationRequest) -> str:
    prompt = build_translation_prompt(
      request.text, request.source_lang, request.target_lang, request.persona
    )
    body: dict[str, Any] = {"contents": _user_turn(prompt)}
    if self.config.temperature is not None:
      body["generationConfig"] = {"temperature": self.config.temperature}

    started = time.perf_counter()
    try:
      response = await self.client.generate(self.config.model, body)
    except httpx.TimeoutException as e:
      raise TranslationError("Translation timed out") from e
    except httpx.HTTPStatusError as e:
      raise TranslationError(f"Translation failed with status {e.response.status_code}") from e
    except (httpx.HTTPError, ValueError) as e:
      raise TranslationError(f"Translation failed: {e}") from e

    text = "".join(part.get("text", "") for part in _candidate_parts(response))
    self.logger.debug(
      "Translated",
      source=request.text,
      translation=text,
      latency=Milliseconds((time.perf_counter() - started) * 1000),
    )
    return text

  async def aclose(self) -> None:
    await self.client.aclose()


class GeminiSpeechSynthesizer:
  def __init__(
    self,
    api_key: str,
    config: TtsConfig,
    base_url: str = GEMINI_URL,
    transport: httpx.AsyncBaseTransport | None = None,
    session_id: str | None = None,
  ):
    self.config = config
    self.client = GeminiClient(api_key, base_url, config.timeout, transport)
    self.logger = get_logger("tts/gemini", session=session_id)

  async def synthesize(self, text: str) -> SynthesizedAudio:
    body = {
      "contents": _user_turn(text),
      "generationConfig": {
        "responseModalities": ["AUDIO"],
        "speechConfig": {
          "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": self.config.voice}},
        },
      },
    }

    try:
      response = await self.client.generate(self.config.model, body)
    except httpx.HTTPStatusError as e:
      raise SynthesisError(f"Synthesis failed with status {e.response.status_code}") from e
    except (httpx.HTTPError, ValueError) as e:
      raise SynthesisError(f"Synthesis failed: {e}") from e

    for part in _candidate_parts(response):
      inline = part.get("inlineData")
      if inline and inline.get("data"):
        mime_type = self._pcm_mime_type(inline.get("mimeType", ""))
        return SynthesizedAudio(data=inline["data"], mime_type=mime_type)

    raise SynthesisError("Synthesis returned no audio")

  def _pcm_mime_type(self, reported: str) -> str:
    """Normalize e.g. "audio/L16;codec=pcm;rate=24000" to the wire form "audio/pcm;rate=24000"."""
    match = _RATE_PATTERN.search(reported)
    rate = int(match.group(1)) if match else self.config.sample_rate
    return f"audio/pcm;rate={rate}"

  async def aclose(self) -> None:
    await self.client.aclose()
