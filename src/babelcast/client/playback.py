"""
Gapless playback of synthesized speech.

Segments arrive one at a time with variable decode latency. ``PlaybackScheduler`` keeps a single
cursor, ``next_start_time``, so that each segment starts exactly where the previous one ends, or
immediately if playback has gone idle.
"""

import asyncio
import base64
import re
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import numpy as np

from babelcast.client.audio import resample, sounddevice
from babelcast.common import Seconds, get_logger
from babelcast.wire import AudioMessage

DEFAULT_OUTPUT_RATE = 24000

_RATE_PATTERN = re.compile(r"rate=(\d+)")

logger = get_logger("play")


def parse_sample_rate(mime_type: str | None, default: int = DEFAULT_OUTPUT_RATE) -> int:
  match = _RATE_PATTERN.search(mime_type or "")
  return int(match.group(1)) if match else default


def decode_audio_payload(data: str, mime_type: str | None = None) -> tuple[np.ndarray, int]:
  """
  Decode a base64 PCM16 payload to float32 samples in [-1, 1).

  :returns: The samples and their sample rate, read from the mime type.
  :raises ValueError: if the payload is not base64.
  """
  raw = base64.b64decode(data, validate=True)
  if len(raw) % 2:
    raw = raw[:-1]
  samples = np.frombuffer(raw, dtype="<i2").astype(np.float32) / 32768.0
  return samples, parse_sample_rate(mime_type)


class PlaybackClock(Protocol):
  @property
  def current_time(self) -> float: ...


class PlaybackSink(Protocol):
  def play(self, samples: np.ndarray, sample_rate: int, start_at: float) -> None: ...

  def clear(self) -> None: ...


@dataclass(frozen=True)
class ScheduledSegment:
  start_at: float
  duration: float

  @property
  def end_at(self) -> float:
    return self.start_at + self.duration


class PlaybackScheduler:
  def __init__(self, clock: PlaybackClock, sink: PlaybackSink):
    self.clock = clock
    self.sink = sink
    self.next_start_time = 0.0
    self._generation = 0

  def schedule(self, samples: np.ndarray, sample_rate: int) -> ScheduledSegment:
    """Place one decoded segment on the timeline right after the previous one."""
    duration = samples.size / sample_rate
    start_at = max(self.next_start_time, self.clock.current_time)
    self.sink.play(samples, sample_rate, start_at)
    self.next_start_time = start_at + duration
    logger.debug("Scheduled segment", start_at=Seconds(start_at), duration=Seconds(duration))
    return ScheduledSegment(start_at=start_at, duration=duration)

  async def enqueue(self, message: AudioMessage) -> ScheduledSegment | None:
    """
    Decode an audio message off the loop and schedule it.

    Segments whose decode finishes after ``reset`` are dropped. Returns None for dropped or
    undecodable segments.
    """
    generation = self._generation
    try:
      samples, sample_rate = await asyncio.to_thread(
        decode_audio_payload, message.data, message.mime_type
      )
    except ValueError as e:
      logger.warning("Undecodable audio segment", error=str(e))
      return None

    if generation != self._generation:
      logger.debug("Dropping segment decoded after reset")
      return None
    if samples.size == 0:
      return None
    return self.schedule(samples, sample_rate)

  def reset(self) -> None:
    """Cancel everything scheduled and forget the cursor."""
    self._generation += 1
    self.next_start_time = 0.0
    self.sink.clear()


class SoundDeviceOutput:
  """
  An output stream that is both the playback clock and the sink.

  Time is the number of frames rendered so far divided by the sample rate. Scheduled segments are
  mixed into the output at their frame offsets inside the sounddevice callback.
  """

  def __init__(
    self,
    sample_rate: int = DEFAULT_OUTPUT_RATE,
    device: int | str | None = None,
    blocksize: int = 1024,
    stream_factory: Callable[..., Any] | None = None,
  ):
    self.sample_rate = sample_rate
    self.device = device
    self.blocksize = blocksize
    self._stream_factory = stream_factory

    self._lock = threading.Lock()
    self._segments: list[tuple[int, np.ndarray]] = []
    self._frames_rendered = 0
    self._stream: Any = None

  @property
  def current_time(self) -> float:
    with self._lock:
      return self._frames_rendered / self.sample_rate

  def start(self) -> None:
    if self._stream is not None:
      return
    factory = self._stream_factory or sounddevice().OutputStream
    self._stream = factory(
      device=self.device,
      channels=1,
      samplerate=self.sample_rate,
      dtype="float32",
      blocksize=self.blocksize,
      callback=self._callback,
    )
    self._stream.start()

  def close(self) -> None:
    stream, self._stream = self._stream, None
    if stream is None:
      return
    try:
      stream.stop()
      stream.close()
    except Exception as e:
      logger.warning("Error closing output device", error=str(e))

  def play(self, samples: np.ndarray, sample_rate: int, start_at: float) -> None:
    if sample_rate != self.sample_rate:
      samples = resample(samples, sample_rate, self.sample_rate)
    with self._lock:
      # The clock may have advanced while the segment was resampled
      start_frame = max(round(start_at * self.sample_rate), self._frames_rendered)
      self._segments.append((start_frame, samples))

  def clear(self) -> None:
    with self._lock:
      self._segments.clear()

  def render(self, frames: int) -> np.ndarray:
    """Mix the next ``frames`` frames of the timeline and advance the clock."""
    out = np.zeros(frames, dtype=np.float32)
    with self._lock:
      block_start = self._frames_rendered
      block_end = block_start + frames
      pending: list[tuple[int, np.ndarray]] = []
      for start, samples in self._segments:
        end = start + samples.size
        if end <= block_start:
          continue
        if start >= block_end:
          pending.append((start, samples))
          continue
        lo, hi = max(start, block_start), min(end, block_end)
        out[lo - block_start : hi - block_start] += samples[lo - start : hi - start]
        if end > block_end:
          pending.append((start, samples))
      self._segments = pending
      self._frames_rendered = block_end
    return np.clip(out, -1.0, 1.0)

  def _callback(self, outdata: np.ndarray, frames: int, time_info, status) -> None:
    if status:
      logger.warning("Output stream status", status=str(status))
    outdata[:, 0] = self.render(frames)
