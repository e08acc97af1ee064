"""Tests for microphone capture, driven through a mock input stream."""

import asyncio
import base64

import numpy as np
import pytest

from babelcast.client import AudioCapture, CaptureUnavailable, encode_frame
from babelcast.client.audio import resample


class MockInputStream:
  def __init__(self, **kwargs):
    self.kwargs = kwargs
    self.stopped = 0
    self.closed = 0

  def stop(self):
    self.stopped += 1

  def close(self):
    self.closed += 1

  def push(self, samples: np.ndarray) -> None:
    """Deliver one block the way the audio thread would."""
    self.kwargs["callback"](samples.reshape(-1, 1), samples.size, None, None)

  def end(self) -> None:
    self.kwargs["finished_callback"]()


class MockStreamFactory:
  def __init__(self, error: Exception | None = None):
    self.error = error
    self.streams: list[MockInputStream] = []

  def __call__(self, **kwargs):
    if self.error is not None:
      raise self.error
    self.streams.append(MockInputStream(**kwargs))
    return self.streams[-1]


def fixed_rate(rate: int):
  def probe(device, sample_rate):
    return rate

  return probe


async def settle() -> None:
  for _ in range(3):
    await asyncio.sleep(0)


@pytest.fixture
def factory():
  return MockStreamFactory()


@pytest.fixture
def capture(factory):
  return AudioCapture(stream_factory=factory, probe_rate=fixed_rate(16000))


class TestAudioCapture:
  async def test_frames_reach_the_loop(self, capture, factory):
    frames = []
    capture.start_capture(frames.append)

    factory.streams[0].push(np.full(1600, 0.5, dtype=np.float32))
    await settle()

    assert len(frames) == 1
    assert frames[0].dtype == np.float32
    assert frames[0].size == 1600
    assert capture.is_capturing()
    capture.stop_capture()

  async def test_native_rate_is_resampled(self, factory):
    capture = AudioCapture(stream_factory=factory, probe_rate=fixed_rate(48000))
    frames = []
    capture.start_capture(frames.append)

    stream = factory.streams[0]
    assert stream.kwargs["samplerate"] == 48000
    assert stream.kwargs["blocksize"] == 4096 * 3

    stream.push(np.zeros(4800, dtype=np.float32))
    await settle()

    assert frames[0].size == 1600
    capture.stop_capture()

  async def test_no_frames_after_stop(self, capture, factory):
    frames = []
    capture.start_capture(frames.append)
    stream = factory.streams[0]

    # Queued on the loop but not yet delivered when capture stops
    stream.push(np.zeros(160, dtype=np.float32))
    capture.stop_capture()
    await settle()

    assert frames == []
    assert not capture.is_capturing()

  async def test_stop_is_idempotent(self, capture, factory):
    capture.start_capture(lambda frame: None)
    capture.stop_capture()
    capture.stop_capture()

    assert factory.streams[0].stopped == 1
    assert factory.streams[0].closed == 1

  async def test_restart_after_stop(self, capture, factory):
    frames = []
    capture.start_capture(frames.append)
    capture.stop_capture()
    capture.start_capture(frames.append)

    factory.streams[0].push(np.zeros(160, dtype=np.float32))
    factory.streams[1].push(np.ones(160, dtype=np.float32))
    await settle()

    assert len(frames) == 1
    assert frames[0][0] == 1.0
    capture.stop_capture()

  async def test_double_start_is_rejected(self, capture):
    capture.start_capture(lambda frame: None)
    with pytest.raises(RuntimeError):
      capture.start_capture(lambda frame: None)
    capture.stop_capture()

  async def test_device_failure(self):
    capture = AudioCapture(
      stream_factory=MockStreamFactory(error=OSError("device busy")),
      probe_rate=fixed_rate(16000),
    )
    with pytest.raises(CaptureUnavailable, match="device busy"):
      capture.start_capture(lambda frame: None)
    assert not capture.is_capturing()

  async def test_permission_failure_passes_through(self):
    capture = AudioCapture(
      stream_factory=MockStreamFactory(error=CaptureUnavailable("permission denied")),
      probe_rate=fixed_rate(16000),
    )
    with pytest.raises(CaptureUnavailable, match="^permission denied$"):
      capture.start_capture(lambda frame: None)

  async def test_stream_ending_notifies(self, capture, factory):
    ended = []
    capture.start_capture(lambda frame: None, on_end=lambda: ended.append(True))

    factory.streams[0].end()
    await settle()

    assert ended == [True]
    assert not capture.is_capturing()


class TestEncoding:
  def test_encode_frame_is_clipped_pcm16(self):
    frame = encode_frame(np.array([0.0, 1.0, -1.0, 2.0], dtype=np.float32))

    assert frame.mime_type == "audio/pcm;rate=16000"
    pcm = np.frombuffer(base64.b64decode(frame.data), dtype="<i2")
    assert pcm.tolist() == [0, 32767, -32767, 32767]

  def test_resample_changes_length(self):
    audio = np.zeros(44100, dtype=np.float32)
    assert resample(audio, 44100, 16000).size == 16000

  def test_resample_same_rate_is_identity(self):
    audio = np.arange(4, dtype=np.float32)
    assert resample(audio, 16000, 16000) is audio
