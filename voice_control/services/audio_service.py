"""
Audio service for the Voice Control Assistant.

This module bridges PyAudio and WebRTC: ``MicrophoneTrack`` is an aiortc
audio track fed from the microphone, ``RemoteAudioPlayer`` plays the
model's voice track through the speaker, and ``TrackPlayer`` streams the
selected playlist track from its URL. Blocking PyAudio and decoder calls
run in the default executor so the event loop keeps serving the data
channel.
"""

import asyncio
import fractions
from typing import Any, Callable, Dict, List, Optional

import av
import numpy as np
import pyaudio
from aiortc import MediaStreamTrack
from aiortc.mediastreams import MediaStreamError
from av import AudioFrame

from voice_control.config import settings
from voice_control.config.logging_config import get_logger
from voice_control.domain.playlist.state import PlaylistStore, Track
from voice_control.events.event_interface import Event, EventBus, EventType, Subscription, event_bus
from voice_control.utils.async_helpers import TaskManager
from voice_control.utils.error_handling import AudioError, ErrorSeverity

logger = get_logger(__name__)

PyAudioFactory = Callable[[], Any]


def list_audio_devices(py_audio_factory: PyAudioFactory = pyaudio.PyAudio) -> List[Dict[str, Any]]:
    """
    List available audio input and output devices.

    Returns:
        List of dictionaries with device information
    """
    py_audio = py_audio_factory()
    try:
        devices = []
        for i in range(py_audio.get_device_count()):
            device_info = py_audio.get_device_info_by_index(i)
            devices.append({
                "index": i,
                "name": device_info.get("name"),
                "maxInputChannels": device_info.get("maxInputChannels"),
                "maxOutputChannels": device_info.get("maxOutputChannels"),
                "defaultSampleRate": device_info.get("defaultSampleRate")
            })
        return devices
    finally:
        py_audio.terminate()


class MicrophoneTrack(MediaStreamTrack):
    """
    Outbound audio track reading 16-bit PCM from a PyAudio input stream.

    The stream is opened by ``open()`` so that device failures surface
    before negotiation starts, and closed by ``stop()``.
    """

    kind = "audio"

    def __init__(
        self,
        device_index: Optional[int] = None,
        sample_rate: Optional[int] = None,
        channels: Optional[int] = None,
        frames_per_buffer: Optional[int] = None,
        py_audio_factory: PyAudioFactory = pyaudio.PyAudio,
    ):
        super().__init__()
        self.device_index = device_index if device_index is not None else settings.audio.input_device
        self.sample_rate = sample_rate or settings.audio.sample_rate
        self.channels = channels or settings.audio.channels
        self.frames_per_buffer = frames_per_buffer or settings.audio.frames_per_buffer
        self._py_audio_factory = py_audio_factory
        self._py_audio = None
        self._stream = None
        self._timestamp = 0
        self._time_base = fractions.Fraction(1, self.sample_rate)

    def open(self) -> None:
        """
        Open the microphone.

        Raises:
            AudioError: If no input device can be opened
        """
        if self._stream is not None:
            return

        try:
            self._py_audio = self._py_audio_factory()
            self._stream = self._py_audio.open(
                format=pyaudio.paInt16,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                input_device_index=self.device_index,
                frames_per_buffer=self.frames_per_buffer,
            )
        except Exception as e:
            self._release()
            raise AudioError(
                "Failed to open microphone",
                severity=ErrorSeverity.ERROR,
                details={"device_index": self.device_index, "sample_rate": self.sample_rate},
                cause=e
            ) from e

        logger.info(f"Microphone opened (device={self.device_index}, rate={self.sample_rate})")

    async def recv(self) -> AudioFrame:
        if self.readyState != "live" or self._stream is None:
            raise MediaStreamError

        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, self._read)
        except (OSError, AttributeError) as e:
            # the stream was closed under the reader by stop()
            logger.debug(f"Microphone read interrupted: {e}")
            raise MediaStreamError from e

        samples = np.frombuffer(data, dtype=np.int16).reshape(1, -1)
        frame = AudioFrame.from_ndarray(
            samples,
            format="s16",
            layout="mono" if self.channels == 1 else "stereo",
        )
        frame.sample_rate = self.sample_rate
        frame.pts = self._timestamp
        frame.time_base = self._time_base
        self._timestamp += self.frames_per_buffer
        return frame

    def _read(self) -> bytes:
        return self._stream.read(self.frames_per_buffer, exception_on_overflow=False)

    def stop(self) -> None:
        super().stop()
        self._release()

    def _release(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.stop_stream()
                stream.close()
            except OSError as e:
                logger.debug(f"Error closing microphone stream: {e}")

        py_audio, self._py_audio = self._py_audio, None
        if py_audio is not None:
            py_audio.terminate()
            logger.info("Microphone closed")


def frame_to_pcm16(frame: AudioFrame) -> bytes:
    """Convert a decoded audio frame to interleaved 16-bit PCM."""
    pcm = frame.to_ndarray()
    if frame.format.is_planar:
        # (channels, samples) -> interleaved
        pcm = pcm.T.reshape(1, -1)
    if pcm.dtype != np.int16:
        pcm = (np.clip(pcm, -1.0, 1.0) * 32767).astype(np.int16)
    return pcm.tobytes()


class SpeakerOutput:
    """
    PyAudio output stream opened lazily from the first decoded frame.

    The channel layout and rate are only known once audio arrives.
    """

    def __init__(self, device_index: Optional[int] = None, py_audio_factory: PyAudioFactory = pyaudio.PyAudio):
        self.device_index = device_index if device_index is not None else settings.audio.output_device
        self._py_audio_factory = py_audio_factory
        self._py_audio = None
        self._stream = None

    async def write(self, frame: AudioFrame) -> None:
        pcm = frame_to_pcm16(frame)
        if self._stream is None:
            self._open(channels=len(frame.layout.channels), rate=frame.sample_rate)
        await asyncio.get_running_loop().run_in_executor(None, self._stream.write, pcm)

    def _open(self, channels: int, rate: int) -> None:
        try:
            self._py_audio = self._py_audio_factory()
            self._stream = self._py_audio.open(
                format=pyaudio.paInt16,
                channels=channels,
                rate=rate,
                output=True,
                output_device_index=self.device_index,
            )
        except Exception as e:
            self.close()
            raise AudioError(
                "Failed to open speaker output",
                details={"device_index": self.device_index, "channels": channels, "rate": rate},
                cause=e
            ) from e
        logger.debug(f"Speaker opened (channels={channels}, rate={rate})")

    def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.stop_stream()
                stream.close()
            except OSError as e:
                logger.debug(f"Error closing speaker stream: {e}")

        py_audio, self._py_audio = self._py_audio, None
        if py_audio is not None:
            py_audio.terminate()


class RemoteAudioPlayer:
    """Plays the model's voice track through the speaker."""

    def __init__(
        self,
        track: MediaStreamTrack,
        device_index: Optional[int] = None,
        py_audio_factory: PyAudioFactory = pyaudio.PyAudio,
    ):
        self.track = track
        self.output = SpeakerOutput(device_index, py_audio_factory)
        self.frames_played = 0

    async def run(self) -> None:
        """Play frames until the remote track ends or the task is cancelled."""
        logger.info("Remote audio playback started")
        try:
            while True:
                try:
                    frame = await self.track.recv()
                except MediaStreamError:
                    logger.debug("Remote audio track ended")
                    break

                await self.output.write(frame)
                self.frames_played += 1
        finally:
            self.close()

    def close(self) -> None:
        self.output.close()
        logger.debug("Remote audio playback stopped")


class TrackPlayer:
    """
    Streams playlist tracks from their URL to the speaker.

    PyAV opens and decodes the URL; blocking opens and decodes run in the
    default executor. ``pause()`` holds the decoder where it is, so a later
    ``play()`` of the same track resumes instead of restarting.
    """

    def __init__(
        self,
        device_index: Optional[int] = None,
        py_audio_factory: PyAudioFactory = pyaudio.PyAudio,
        opener: Callable[[str], Any] = av.open,
        bus: Optional[EventBus] = None,
    ):
        self.device_index = device_index
        self._py_audio_factory = py_audio_factory
        self._opener = opener
        self.bus = bus or event_bus
        self.task_manager = TaskManager("track_player")

        self.track: Optional[Track] = None
        self.frames_played = 0
        self._task: Optional[asyncio.Task] = None
        self._resume = asyncio.Event()

    @property
    def is_playing(self) -> bool:
        return self._task is not None and not self._task.done() and self._resume.is_set()

    def attach(self, store: PlaylistStore) -> Subscription:
        """Follow the store's selection and playing flag from now on."""
        def on_change(event: Event) -> None:
            if event.data.get("domain") == "playlist":
                self.sync(store)

        return self.bus.on(EventType.COLLECTION_CHANGED, on_change)

    def sync(self, store: PlaylistStore) -> None:
        """Bring playback in line with the store."""
        current = store.current_track
        if current is None:
            self.stop()
        elif store.is_playing:
            self.play(current)
        elif self.track is not None and self.track.id != current.id:
            self.stop()
        else:
            self.pause()

    def play(self, track: Track) -> None:
        """Start ``track``, or resume it if it is the paused track."""
        if self.track == track and self._task is not None and not self._task.done():
            self._resume.set()
            return

        self.stop()
        self.track = track
        self.frames_played = 0
        self._resume.set()
        self._task = self.task_manager.create_task(self._stream(track), f"track_{track.id}")
        logger.info(f"Playing {track.url}")

    def pause(self) -> None:
        self._resume.clear()

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        self.track = None
        self._resume.clear()

    async def close(self) -> None:
        self.stop()
        await self.task_manager.cancel_all()

    async def _stream(self, track: Track) -> None:
        loop = asyncio.get_running_loop()
        output = SpeakerOutput(self.device_index, self._py_audio_factory)
        container = None
        try:
            container = await loop.run_in_executor(None, self._opener, track.url)
            frames = container.decode(audio=0)
            while True:
                await self._resume.wait()
                frame = await loop.run_in_executor(None, next, frames, None)
                if frame is None:
                    logger.info(f"Track {track.id} finished")
                    break
                await output.write(frame)
                self.frames_played += 1
        except Exception as e:
            error = AudioError(
                f"Failed to play track {track.id}",
                details={"track_id": track.id, "url": track.url},
                cause=e
            )
            error.log(include_traceback=False)
            self.bus.emit(EventType.ERROR, {"error": error.to_dict()})
        finally:
            output.close()
            if container is not None:
                container.close()
