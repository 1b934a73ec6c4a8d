"""
Tests for the audio service.

This module tests device enumeration, the microphone track feeding WebRTC,
playback of the remote audio track, and streaming of playlist tracks, with
PyAudio and the media decoder mocked out.
"""

import asyncio

import numpy as np
import pytest
from unittest.mock import MagicMock

from aiortc.mediastreams import MediaStreamError
from av import AudioFrame

from voice_control.domain.playlist.state import PlaylistStore, Track
from voice_control.events.event_interface import EventType
from voice_control.services.audio_service import (
    MicrophoneTrack,
    RemoteAudioPlayer,
    TrackPlayer,
    frame_to_pcm16,
    list_audio_devices,
)
from voice_control.utils.error_handling import AudioError


@pytest.fixture
def mock_pyaudio():
    """Create a mock PyAudio instance whose streams return silence."""
    py_audio = MagicMock()
    stream = MagicMock()
    stream.read.side_effect = lambda frames, exception_on_overflow=False: b"\x00\x00" * frames
    py_audio.open.return_value = stream
    return py_audio


def test_list_audio_devices(mock_pyaudio):
    mock_pyaudio.get_device_count.return_value = 2
    mock_pyaudio.get_device_info_by_index.side_effect = [
        {"name": "Mic", "maxInputChannels": 1, "maxOutputChannels": 0, "defaultSampleRate": 48000.0},
        {"name": "Speaker", "maxInputChannels": 0, "maxOutputChannels": 2, "defaultSampleRate": 48000.0},
    ]

    devices = list_audio_devices(lambda: mock_pyaudio)

    assert [d["name"] for d in devices] == ["Mic", "Speaker"]
    assert devices[1]["index"] == 1
    mock_pyaudio.terminate.assert_called_once()


def test_microphone_open_failure():
    """Test that a missing input device surfaces as an AudioError."""
    py_audio = MagicMock()
    py_audio.open.side_effect = OSError("Invalid input device")

    track = MicrophoneTrack(device_index=5, py_audio_factory=lambda: py_audio)

    with pytest.raises(AudioError) as excinfo:
        track.open()

    assert excinfo.value.details["device_index"] == 5
    py_audio.terminate.assert_called_once()


@pytest.mark.asyncio
async def test_microphone_frames(mock_pyaudio):
    """Test that captured PCM becomes timestamped 48kHz mono frames."""
    track = MicrophoneTrack(
        sample_rate=48000,
        channels=1,
        frames_per_buffer=960,
        py_audio_factory=lambda: mock_pyaudio,
    )
    track.open()

    first = await track.recv()
    second = await track.recv()

    assert first.samples == 960
    assert first.sample_rate == 48000
    assert first.pts == 0
    assert second.pts == 960
    _, kwargs = mock_pyaudio.open.call_args
    assert kwargs["input"] is True
    assert kwargs["rate"] == 48000

    track.stop()
    mock_pyaudio.open.return_value.close.assert_called_once()
    mock_pyaudio.terminate.assert_called_once()

    with pytest.raises(MediaStreamError):
        await track.recv()


@pytest.mark.asyncio
async def test_microphone_recv_before_open(mock_pyaudio):
    track = MicrophoneTrack(py_audio_factory=lambda: mock_pyaudio)

    with pytest.raises(MediaStreamError):
        await track.recv()


class FiniteTrack:
    """Remote track double that yields a fixed number of frames."""

    kind = "audio"

    def __init__(self, count):
        self.count = count

    async def recv(self):
        if self.count == 0:
            raise MediaStreamError
        self.count -= 1
        frame = AudioFrame.from_ndarray(np.zeros((1, 960), dtype=np.int16), format="s16", layout="mono")
        frame.sample_rate = 48000
        return frame


@pytest.mark.asyncio
async def test_remote_audio_player(mock_pyaudio):
    """Test that remote frames are written until the track ends."""
    player = RemoteAudioPlayer(FiniteTrack(3), py_audio_factory=lambda: mock_pyaudio)

    await player.run()

    assert player.frames_played == 3
    _, kwargs = mock_pyaudio.open.call_args
    assert kwargs["output"] is True
    assert kwargs["channels"] == 1
    assert kwargs["rate"] == 48000
    stream = mock_pyaudio.open.return_value
    assert stream.write.call_count == 3
    assert len(stream.write.call_args[0][0]) == 960 * 2
    mock_pyaudio.terminate.assert_called_once()


@pytest.mark.asyncio
async def test_remote_audio_player_output_failure(mock_pyaudio):
    mock_pyaudio.open.side_effect = OSError("No output device")
    player = RemoteAudioPlayer(FiniteTrack(1), py_audio_factory=lambda: mock_pyaudio)

    with pytest.raises(AudioError):
        await player.run()

    assert player.frames_played == 0


def make_frame(samples=960):
    frame = AudioFrame.from_ndarray(np.zeros((1, samples), dtype=np.int16), format="s16", layout="mono")
    frame.sample_rate = 48000
    return frame


def test_float_frames_are_converted_to_pcm16():
    frame = AudioFrame.from_ndarray(
        np.array([[0.5, -2.0], [1.0, 0.0]], dtype=np.float32),
        format="fltp",
        layout="stereo",
    )

    pcm = np.frombuffer(frame_to_pcm16(frame), dtype=np.int16)

    # planar channels are interleaved and out-of-range samples clipped
    assert pcm.tolist() == [16383, 32767, -32767, 0]


class FakeContainer:
    """Stand-in for a PyAV input container holding decoded frames."""

    def __init__(self, frames):
        self.frames = frames
        self.closed = False

    def decode(self, audio=0):
        return iter(self.frames)

    def close(self):
        self.closed = True


SONG = Track(id="song", title="Song", artist="Band", url="https://example.com/song.mp3")
OTHER = Track(id="other", title="Other", artist="Band", url="https://example.com/other.mp3")


async def wait_done(player, timeout=2.0):
    await asyncio.wait_for(asyncio.shield(player._task), timeout)


@pytest.mark.asyncio
async def test_track_player_streams_url(mock_pyaudio, bus):
    """Test that a track is decoded from its URL and written to the speaker."""
    container = FakeContainer([make_frame() for _ in range(3)])
    opener = MagicMock(return_value=container)
    player = TrackPlayer(py_audio_factory=lambda: mock_pyaudio, opener=opener, bus=bus)

    player.play(SONG)
    assert player.is_playing
    await wait_done(player)

    opener.assert_called_once_with("https://example.com/song.mp3")
    assert player.frames_played == 3
    stream = mock_pyaudio.open.return_value
    assert stream.write.call_count == 3
    _, kwargs = mock_pyaudio.open.call_args
    assert kwargs["output"] is True
    assert kwargs["rate"] == 48000
    assert container.closed
    mock_pyaudio.terminate.assert_called_once()
    assert not player.is_playing


@pytest.mark.asyncio
async def test_track_player_pause_and_resume(mock_pyaudio, bus):
    """Test that pausing holds the decoder and playing again resumes it."""
    opener = MagicMock(return_value=FakeContainer([make_frame() for _ in range(4)]))
    player = TrackPlayer(py_audio_factory=lambda: mock_pyaudio, opener=opener, bus=bus)

    player.play(SONG)
    player.pause()
    await asyncio.sleep(0.05)

    assert player.frames_played == 0
    assert not player.is_playing
    assert not player._task.done()

    player.play(SONG)
    await wait_done(player)

    assert player.frames_played == 4
    opener.assert_called_once()


@pytest.mark.asyncio
async def test_track_player_switches_and_stops(mock_pyaudio, bus):
    opener = MagicMock(side_effect=lambda url: FakeContainer([make_frame() for _ in range(2)]))
    player = TrackPlayer(py_audio_factory=lambda: mock_pyaudio, opener=opener, bus=bus)

    player.play(SONG)
    player.pause()
    first = player._task

    player.play(OTHER)
    await asyncio.sleep(0)
    assert first.cancelled() or first.done()
    assert player.track == OTHER
    await wait_done(player)
    assert [c.args[0] for c in opener.call_args_list][-1] == "https://example.com/other.mp3"

    player.play(SONG)
    player.pause()
    await player.close()
    assert player.track is None
    assert player.task_manager.tasks == set()


@pytest.mark.asyncio
async def test_track_player_open_failure_is_reported(mock_pyaudio, bus):
    """Test that an unreachable URL is logged and published, not raised."""
    errors = []
    bus.on(EventType.ERROR, lambda e: errors.append(e.data["error"]))
    opener = MagicMock(side_effect=OSError("Server returned 404 Not Found"))
    player = TrackPlayer(py_audio_factory=lambda: mock_pyaudio, opener=opener, bus=bus)

    player.play(SONG)
    await wait_done(player)

    assert errors[0]["code"] == "AUDIO_ERROR"
    assert errors[0]["details"]["track_id"] == "song"
    mock_pyaudio.open.assert_not_called()


def test_track_player_follows_playlist_store(bus):
    """Test that store changes drive play, pause and stop."""
    store = PlaylistStore((SONG, OTHER), bus=bus)
    player = TrackPlayer(bus=bus)
    player.play = MagicMock()
    player.pause = MagicMock()
    player.stop = MagicMock()
    subscription = player.attach(store)

    store.play("song")
    player.play.assert_called_once_with(SONG)

    player.track = SONG
    store.pause()
    player.pause.assert_called_once()

    store.remove("song")
    player.stop.assert_called_once()

    subscription.cancel()
    store.play("other")
    player.play.assert_called_once()
