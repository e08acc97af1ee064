"""Tests for gapless playback scheduling and the output mixer."""

import asyncio
import base64

import numpy as np
import pytest

from babelcast.client import PlaybackScheduler, SoundDeviceOutput, decode_audio_payload
from babelcast.client.playback import parse_sample_rate
from babelcast.wire import AudioMessage


class MockClock:
  def __init__(self, now: float = 0.0):
    self.current_time = now


class MockPlaybackSink:
  def __init__(self):
    self.played: list[tuple[int, int, float]] = []
    self.cleared = 0

  def play(self, samples, sample_rate, start_at):
    self.played.append((samples.size, sample_rate, start_at))

  def clear(self):
    self.cleared += 1


def pcm_message(samples: int, rate: int = 24000) -> AudioMessage:
  data = np.full(samples, 1000, dtype="<i2").tobytes()
  return AudioMessage(data=base64.b64encode(data).decode(), mime_type=f"audio/pcm;rate={rate}")


@pytest.fixture
def clock():
  return MockClock(now=1.0)


@pytest.fixture
def sink():
  return MockPlaybackSink()


@pytest.fixture
def scheduler(clock, sink):
  return PlaybackScheduler(clock, sink)


class TestPlaybackScheduler:
  def test_segments_play_back_to_back(self, scheduler, sink):
    first = scheduler.schedule(np.zeros(12000, dtype=np.float32), 24000)
    second = scheduler.schedule(np.zeros(6000, dtype=np.float32), 24000)
    third = scheduler.schedule(np.zeros(24000, dtype=np.float32), 24000)

    assert first.start_at == pytest.approx(1.0)
    assert second.start_at == pytest.approx(first.end_at)
    assert third.start_at == pytest.approx(second.end_at)
    assert scheduler.next_start_time == pytest.approx(2.75)
    assert [start for _, _, start in sink.played] == pytest.approx([1.0, 1.5, 1.75])

  def test_idle_playback_starts_now(self, scheduler, clock):
    scheduler.schedule(np.zeros(2400, dtype=np.float32), 24000)
    clock.current_time = 5.0

    segment = scheduler.schedule(np.zeros(2400, dtype=np.float32), 24000)

    assert segment.start_at == pytest.approx(5.0)

  def test_reset_forgets_the_cursor(self, scheduler, sink):
    scheduler.schedule(np.zeros(24000, dtype=np.float32), 24000)
    scheduler.reset()

    assert scheduler.next_start_time == 0.0
    assert sink.cleared == 1
    segment = scheduler.schedule(np.zeros(10, dtype=np.float32), 24000)
    assert segment.start_at == pytest.approx(1.0)

  async def test_enqueue_decodes_and_schedules(self, scheduler, sink):
    segment = await scheduler.enqueue(pcm_message(8000, rate=16000))

    assert segment.duration == pytest.approx(0.5)
    assert sink.played == [(8000, 16000, 1.0)]

  async def test_enqueue_skips_undecodable_audio(self, scheduler, sink):
    assert await scheduler.enqueue(AudioMessage(data="%%%")) is None
    assert sink.played == []

  async def test_segment_decoded_after_reset_is_dropped(self, scheduler, sink):
    pending = asyncio.create_task(scheduler.enqueue(pcm_message(2400)))
    await asyncio.sleep(0)
    scheduler.reset()

    assert await pending is None
    assert sink.played == []


class TestDecoding:
  def test_decode_pcm16(self):
    data = base64.b64encode(np.array([0, 16384, -32768], dtype="<i2").tobytes()).decode()
    samples, rate = decode_audio_payload(data, "audio/pcm;rate=24000")

    assert rate == 24000
    assert samples.dtype == np.float32
    assert samples.tolist() == [0.0, 0.5, -1.0]

  @pytest.mark.parametrize(
    ("mime_type", "expected"),
    [("audio/pcm;rate=16000", 16000), ("audio/pcm", 24000), (None, 24000)],
  )
  def test_parse_sample_rate(self, mime_type, expected):
    assert parse_sample_rate(mime_type) == expected


class MockOutputStream:
  def __init__(self, **kwargs):
    self.kwargs = kwargs
    self.started = False
    self.closed = False

  def start(self):
    self.started = True

  def stop(self):
    pass

  def close(self):
    self.closed = True


class TestSoundDeviceOutput:
  def test_render_mixes_at_frame_offsets(self):
    output = SoundDeviceOutput(sample_rate=10)
    output.play(np.ones(5, dtype=np.float32), 10, start_at=0.2)

    assert output.render(4).tolist() == [0.0, 0.0, 1.0, 1.0]
    assert output.render(4).tolist() == [1.0, 1.0, 1.0, 0.0]
    assert output.current_time == pytest.approx(0.8)
    assert output.render(2).tolist() == [0.0, 0.0]

  def test_segment_starting_in_the_past_plays_in_full(self):
    output = SoundDeviceOutput(sample_rate=10)
    start_at = output.current_time
    output.render(4)
    output.play(np.ones(3, dtype=np.float32), 10, start_at=start_at)

    assert output.render(4).tolist() == [1.0, 1.0, 1.0, 0.0]

  def test_clear_silences_pending_segments(self):
    output = SoundDeviceOutput(sample_rate=10)
    output.play(np.ones(5, dtype=np.float32), 10, start_at=0.0)
    output.clear()

    assert output.render(5).tolist() == [0.0] * 5

  def test_scheduler_over_output_is_gapless(self):
    output = SoundDeviceOutput(sample_rate=10)
    scheduler = PlaybackScheduler(output, output)
    scheduler.schedule(np.full(3, 0.25, dtype=np.float32), 10)
    scheduler.schedule(np.full(3, 0.5, dtype=np.float32), 10)

    assert output.render(7).tolist() == [0.25, 0.25, 0.25, 0.5, 0.5, 0.5, 0.0]

  def test_stream_lifecycle(self):
    streams = []

    def factory(**kwargs):
      streams.append(MockOutputStream(**kwargs))
      return streams[-1]

    output = SoundDeviceOutput(sample_rate=24000, stream_factory=factory)
    output.start()
    output.start()
    output.close()

    assert len(streams) == 1
    assert streams[0].started and streams[0].closed
    assert streams[0].kwargs["samplerate"] == 24000
    assert streams[0].kwargs["channels"] == 1

  def test_callback_fills_first_channel(self):
    output = SoundDeviceOutput(sample_rate=10)
    output.play(np.ones(2, dtype=np.float32), 10, start_at=0.0)
    outdata = np.zeros((3, 1), dtype=np.float32)

    output._callback(outdata, 3, None, None)

    assert outdata[:, 0].tolist() == [1.0, 1.0, 0.0]
