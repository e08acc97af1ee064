"""
Pull-mode recognition: phrases are recognized on the client and sent as text.

``LocalRecognizer`` captures audio, cuts it into phrases at silences and transcribes each phrase
with faster-whisper. ``RecognitionSupervisor`` keeps it running for as long as the session is
active, restarting it after the stream ends within a bounded budget.
"""

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import numpy as np

from babelcast.client.audio import SAMPLE_RATE, AudioCapture
from babelcast.client.errors import CaptureUnavailable, RecognizerError
from babelcast.common import Seconds, get_logger, recognizer_language

PhraseCallback = Callable[[str], Awaitable[None]]


class PhraseSegmenter:
  """Splits a stream of audio frames into phrases separated by silence, using RMS energy."""

  def __init__(
    self,
    sample_rate: int = SAMPLE_RATE,
    energy_threshold: float = 0.01,
    silence_duration: float = 0.6,
    min_phrase_duration: float = 0.3,
    max_phrase_duration: float = 15.0,
  ):
    self.sample_rate = sample_rate
    self.energy_threshold = energy_threshold
    self.silence_samples = int(silence_duration * sample_rate)
    self.min_phrase_samples = int(min_phrase_duration * sample_rate)
    self.max_phrase_samples = int(max_phrase_duration * sample_rate)

    self._chunks: list[np.ndarray] = []
    self._voiced_samples = 0
    self._total_samples = 0
    self._trailing_silence = 0

  @property
  def in_phrase(self) -> bool:
    return self._voiced_samples > 0

  def feed(self, audio: np.ndarray) -> list[np.ndarray]:
    """Add one frame and return every phrase it completed."""
    rms = float(np.sqrt(np.mean(np.square(audio)))) if audio.size else 0.0
    voiced = rms >= self.energy_threshold

    if not voiced and not self.in_phrase:
      return []

    self._chunks.append(audio)
    self._total_samples += audio.size
    if voiced:
      self._voiced_samples += audio.size
      self._trailing_silence = 0
    else:
      self._trailing_silence += audio.size

    ended = self._trailing_silence >= self.silence_samples
    if ended or self._total_samples >= self.max_phrase_samples:
      phrase = self.flush()
      return [phrase] if phrase is not None else []
    return []

  def flush(self) -> np.ndarray | None:
    """End the current phrase. Returns None if it held too little speech to be worth recognizing."""
    chunks, voiced = self._chunks, self._voiced_samples
    self._chunks = []
    self._voiced_samples = self._total_samples = self._trailing_silence = 0
    if voiced < self.min_phrase_samples:
      return None
    return np.concatenate(chunks)


def _load_whisper_model(model_size: str, device: str, compute_type: str) -> Any:
  try:
    from faster_whisper import WhisperModel
  except ImportError as e:
    raise RecognizerError(
      "Local recognition needs faster-whisper; install babelcast[local]", fatal=True
    ) from e
  return WhisperModel(model_size, device=device, compute_type=compute_type)


class LocalRecognizer:
  """Continuous on-device recognition over the microphone."""

  def __init__(
    self,
    capture: AudioCapture,
    language: str,
    model_size: str = "small",
    device: str = "auto",
    compute_type: str = "int8",
    segmenter: PhraseSegmenter | None = None,
    model_loader: Callable[[str, str, str], Any] = _load_whisper_model,
  ):
    self.capture = capture
    self.language = recognizer_language(language)
    self.model_size = model_size
    self.device = device
    self.compute_type = compute_type
    self.segmenter = segmenter or PhraseSegmenter(sample_rate=capture.sample_rate)
    self.logger = get_logger("rec")

    self._model_loader = model_loader
    self._model: Any = None

  async def _ensure_model(self) -> Any:
    if self._model is None:
      started = time.perf_counter()
      try:
        self._model = await asyncio.to_thread(
          self._model_loader, self.model_size, self.device, self.compute_type
        )
      except (RuntimeError, OSError, ValueError) as e:
        # Missing device, failed download or unknown model size
        raise RecognizerError(
          f"Could not load recognition model {self.model_size!r}: {e}", fatal=True
        ) from e
      self.logger.info(
        "Recognition model loaded",
        model=self.model_size,
        load_time=Seconds(time.perf_counter() - started),
      )
    return self._model

  def _transcribe(self, model: Any, audio: np.ndarray) -> str:
    segments, _ = model.transcribe(
      audio, language=self.language, beam_size=1, condition_on_previous_text=False
    )
    return " ".join(segment.text.strip() for segment in segments).strip()

  async def run(self, on_phrase: PhraseCallback) -> None:
    """
    Recognize until the audio stream ends. Returning normally signals end of stream.

    :raises RecognizerError: fatal if the model or the input device is unavailable.
    """
    model = await self._ensure_model()

    frames: asyncio.Queue[np.ndarray | None] = asyncio.Queue()
    try:
      self.capture.start_capture(frames.put_nowait, on_end=lambda: frames.put_nowait(None))
    except CaptureUnavailable as e:
      raise RecognizerError(str(e), fatal=True) from e

    try:
      while (audio := await frames.get()) is not None:
        for phrase in self.segmenter.feed(audio):
          await self._recognize(model, phrase, on_phrase)

      tail = self.segmenter.flush()
      if tail is not None:
        await self._recognize(model, tail, on_phrase)
    finally:
      self.capture.stop_capture()
      self.segmenter.flush()

  async def _recognize(self, model: Any, audio: np.ndarray, on_phrase: PhraseCallback) -> None:
    try:
      text = await asyncio.to_thread(self._transcribe, model, audio)
    except (RuntimeError, ValueError) as e:
      # A phrase that fails to decode is dropped like a no-match
      self.logger.warning("Phrase recognition failed", error=str(e))
      return

    if not text:
      self.logger.debug("No speech recognized in phrase")
      return
    self.logger.info("Phrase recognized", text=text)
    await on_phrase(text)


class Recognizer(Protocol):
  """What the supervisor needs from a recognizer. ``LocalRecognizer`` is the implementation."""

  async def run(self, on_phrase: PhraseCallback) -> None: ...


class RecognitionSupervisor:
  """
  Runs a recognizer for as long as ``is_active`` says the session is live.

  The recognizer is restarted when its stream ends or it fails transiently, but only while the
  session is still active and only ``max_restarts`` times per ``restart_window`` seconds. Fatal
  errors are never retried and are reported through ``on_fatal``.
  """

  def __init__(
    self,
    recognizer: Recognizer,
    on_phrase: PhraseCallback,
    is_active: Callable[[], bool],
    max_restarts: int = 5,
    restart_window: float = 30.0,
    restart_delay: float = 0.25,
    on_fatal: Callable[[str], Awaitable[None]] | None = None,
    clock: Callable[[], float] = time.monotonic,
  ):
    self.recognizer = recognizer
    self.on_phrase = on_phrase
    self.is_active = is_active
    self.max_restarts = max_restarts
    self.restart_window = restart_window
    self.restart_delay = restart_delay
    self.on_fatal = on_fatal
    self.clock = clock
    self.logger = get_logger("rec/sup")

    self.restart_count = 0
    self._recent_restarts: deque[float] = deque()
    self._task: asyncio.Task[None] | None = None

  def start(self) -> asyncio.Task[None]:
    if self._task is None or self._task.done():
      self._task = asyncio.create_task(self._supervise())
    return self._task

  async def stop(self) -> None:
    task, self._task = self._task, None
    if task is None or task is asyncio.current_task():
      return
    task.cancel()
    try:
      await task
    except asyncio.CancelledError:
      pass

  async def _supervise(self) -> None:
    while self.is_active():
      try:
        await self.recognizer.run(self.on_phrase)
        self.logger.info("Recognizer stream ended")
      except RecognizerError as e:
        if e.fatal:
          self.logger.error("Recognizer failed", error=str(e))
          await self._report_fatal(str(e))
          return
        self.logger.warning("Recognizer stopped on a transient error", error=str(e))
      except Exception as e:
        self.logger.exception("Recognizer crashed")
        await self._report_fatal(f"Speech recognition failed: {e}")
        return

      if not self.is_active():
        self.logger.debug("Session no longer active, not restarting")
        return
      if not self._consume_restart():
        self.logger.error(
          "Recognizer restart budget exhausted",
          max_restarts=self.max_restarts,
          window=Seconds(self.restart_window),
        )
        await self._report_fatal("Speech recognition keeps stopping")
        return

      await asyncio.sleep(self.restart_delay)
      self.logger.info("Restarting recognizer", restart=self.restart_count)

  def _consume_restart(self) -> bool:
    now = self.clock()
    while self._recent_restarts and now - self._recent_restarts[0] > self.restart_window:
      self._recent_restarts.popleft()
    if len(self._recent_restarts) >= self.max_restarts:
      return False
    self._recent_restarts.append(now)
    self.restart_count += 1
    return True

  async def _report_fatal(self, message: str) -> None:
    if self.on_fatal is not None:
      await self.on_fatal(message)
