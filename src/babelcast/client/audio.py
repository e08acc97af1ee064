"""
Microphone capture for the subtitle client.

Frames are captured on the sounddevice thread and handed to the asyncio loop with
``call_soon_threadsafe``. Every start gets a new generation number, and frames from an older
generation are discarded on the loop, so nothing reaches the frame callback once
``stop_capture`` has returned.
"""

import asyncio
import base64
from collections.abc import Callable
from fractions import Fraction
from typing import Any

import numpy as np
from scipy import signal

from babelcast.client.errors import CaptureUnavailable
from babelcast.common import get_logger
from babelcast.wire import PCM_INPUT_MIME_TYPE, AudioFrame

# Audio configuration constants
SAMPLE_RATE = 16000
CHANNELS = 1
DTYPE = np.float32
BLOCKSIZE = 4096

FrameCallback = Callable[[np.ndarray], None]

logger = get_logger("audio")


def sounddevice() -> Any:
  """
  Import sounddevice on first use. It loads the PortAudio shared library at import time, which
  headless machines may not have.

  :raises CaptureUnavailable: if PortAudio cannot be loaded.
  """
  try:
    import sounddevice as sd
  except OSError as e:
    raise CaptureUnavailable(f"PortAudio is not available: {e}") from e
  return sd


def resample(audio: np.ndarray, src_rate: int, dst_rate: int) -> np.ndarray:
  """Polyphase resample float32 audio between sample rates."""
  if src_rate == dst_rate:
    return audio.astype(np.float32, copy=False)
  ratio = Fraction(dst_rate, src_rate).limit_denominator(1000)
  resampled = signal.resample_poly(audio, ratio.numerator, ratio.denominator)
  return resampled.astype(np.float32, copy=False)


def encode_frame(audio: np.ndarray) -> AudioFrame:
  """Encode float32 samples in [-1, 1] as base64 little-endian PCM16."""
  pcm = (np.clip(audio, -1.0, 1.0) * 32767.0).astype("<i2")
  return AudioFrame(mime_type=PCM_INPUT_MIME_TYPE, data=base64.b64encode(pcm.tobytes()).decode())


def native_input_rate(device: int | str | None, sample_rate: int) -> int:
  """
  The rate to open the device at: ``sample_rate`` when the device supports it, otherwise the
  device's default rate.

  :raises CaptureUnavailable: if the device cannot be found at all.
  """
  sd = sounddevice()
  try:
    sd.check_input_settings(
      device=device, channels=CHANNELS, dtype="float32", samplerate=sample_rate
    )
    return sample_rate
  except (sd.PortAudioError, ValueError):
    pass

  try:
    info = sd.query_devices(device, "input")
  except (sd.PortAudioError, ValueError) as e:
    raise CaptureUnavailable(f"No usable input device: {e}") from e
  return int(info["default_samplerate"])


def open_input_stream(**kwargs: Any) -> Any:
  """Open and start a sounddevice input stream."""
  sd = sounddevice()
  try:
    stream = sd.InputStream(**kwargs)
  except (sd.PortAudioError, ValueError) as e:
    raise CaptureUnavailable(f"Could not open input device: {e}") from e
  try:
    stream.start()
  except sd.PortAudioError as e:
    stream.close()
    raise CaptureUnavailable(f"Could not start input device: {e}") from e
  return stream


class AudioCapture:
  """Owns the microphone input stream between ``start_capture`` and ``stop_capture``."""

  def __init__(
    self,
    device: int | str | None = None,
    sample_rate: int = SAMPLE_RATE,
    blocksize: int = BLOCKSIZE,
    stream_factory: Callable[..., Any] = open_input_stream,
    probe_rate: Callable[[int | str | None, int], int] = native_input_rate,
  ):
    self.device = device
    self.sample_rate = sample_rate
    self.blocksize = blocksize
    self._stream_factory = stream_factory
    self._probe_rate = probe_rate

    self._stream: Any = None
    self._on_frame: FrameCallback | None = None
    self._on_end: Callable[[], None] | None = None
    self._generation = 0
    self._native_rate = sample_rate

  def is_capturing(self) -> bool:
    return self._stream is not None

  def start_capture(
    self, on_frame: FrameCallback, on_end: Callable[[], None] | None = None
  ) -> None:
    """
    Open the input device and deliver frames of ``sample_rate`` mono float32 audio to
    ``on_frame`` on the running event loop.

    :param on_end: Called if the device stream ends on its own, e.g. when the device is unplugged.
    :raises CaptureUnavailable: if the device is missing, busy, or permission is denied. No frames
      are delivered in that case.
    """
    if self._stream is not None:
      raise RuntimeError("Capture already running")

    loop = asyncio.get_running_loop()
    self._generation += 1
    generation = self._generation

    native_rate = self._probe_rate(self.device, self.sample_rate)
    blocksize = round(self.blocksize * native_rate / self.sample_rate)

    def callback(indata: np.ndarray, frames: int, time_info, status) -> None:
      if status:
        logger.warning("Input stream status", status=str(status))
      audio = indata[:, 0].copy() if indata.ndim > 1 else indata.copy()
      loop.call_soon_threadsafe(self._deliver, generation, audio)

    def finished() -> None:
      loop.call_soon_threadsafe(self._finished, generation)

    try:
      stream = self._stream_factory(
        device=self.device,
        channels=CHANNELS,
        samplerate=native_rate,
        dtype=DTYPE,
        latency="low",
        blocksize=blocksize,
        callback=callback,
        finished_callback=finished,
      )
    except CaptureUnavailable:
      raise
    except Exception as e:
      raise CaptureUnavailable(f"Error starting audio: {e}") from e

    self._stream = stream
    self._on_frame = on_frame
    self._on_end = on_end
    self._native_rate = native_rate
    logger.info(
      "Capture started", device=self.device, native_rate=native_rate, target_rate=self.sample_rate
    )

  def _deliver(self, generation: int, audio: np.ndarray) -> None:
    if generation != self._generation or self._on_frame is None:
      return
    self._on_frame(resample(audio, self._native_rate, self.sample_rate))

  def _finished(self, generation: int) -> None:
    if generation != self._generation:
      return
    logger.warning("Input stream ended unexpectedly")
    on_end = self._on_end
    self._release()
    if on_end is not None:
      on_end()

  def stop_capture(self) -> None:
    """Release the device. Idempotent; safe to call from every teardown path."""
    if self._stream is None:
      return
    self._release()
    logger.info("Capture stopped")

  def _release(self) -> None:
    # Invalidate frames already queued on the loop
    self._generation += 1
    stream, self._stream = self._stream, None
    self._on_frame = None
    self._on_end = None
    if stream is None:
      return
    try:
      stream.stop()
      stream.close()
    except Exception as e:
      logger.warning("Error stopping audio", error=str(e))
