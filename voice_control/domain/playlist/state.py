"""
Playlist state for the music player variant.

The store owns the ordered track list and the "now playing" selection.
It is the single writer of that state: the command handler and direct
terminal actions both go through it, and every change is announced on
the event bus as ``COLLECTION_CHANGED``.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple

from voice_control.config.logging_config import get_logger
from voice_control.events.event_interface import EventBus, EventType, event_bus
from voice_control.utils.error_handling import ErrorSeverity, LookupMiss

logger = get_logger(__name__)


@dataclass(frozen=True)
class Track:
    """A playable track."""

    id: str
    title: str
    artist: str
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


DEMO_TRACK = Track(
    id="0",
    title="SoundHelix Song 1",
    artist="Test Artist",
    url="https://www.soundhelix.com/examples/mp3/SoundHelix-Song-1.mp3",
)


class PlaylistStore:
    """
    Ordered, id-unique collection of tracks plus the current selection.

    Invariant: ``is_playing`` implies ``current_track`` is not None.
    """

    def __init__(self, tracks: Tuple[Track, ...] = (), bus: Optional[EventBus] = None):
        self._bus = bus or event_bus
        self._tracks: Dict[str, Track] = {}
        for track in tracks:
            self._tracks.setdefault(track.id, track)
        self._current_id: Optional[str] = None
        self._playing = False

    # Read-only views

    def items(self) -> Tuple[Track, ...]:
        return tuple(self._tracks.values())

    def get(self, track_id: str) -> Optional[Track]:
        return self._tracks.get(track_id)

    def __contains__(self, track_id: object) -> bool:
        return track_id in self._tracks

    def __len__(self) -> int:
        return len(self._tracks)

    @property
    def total_tracks(self) -> int:
        return len(self._tracks)

    @property
    def current_track(self) -> Optional[Track]:
        if self._current_id is None:
            return None
        return self._tracks.get(self._current_id)

    @property
    def is_playing(self) -> bool:
        return self._playing

    def snapshot(self) -> Dict[str, Any]:
        current = self.current_track
        return {
            "tracks": [track.to_dict() for track in self._tracks.values()],
            "current_track_id": current.id if current else None,
            "playing": self._playing,
            "total_tracks": self.total_tracks,
        }

    # Mutations

    def add(self, track: Track) -> bool:
        """
        Append a track unless its id is already present.

        Returns:
            bool: True if the track was inserted
        """
        if track.id in self._tracks:
            logger.debug(f"Track {track.id} already in playlist, ignoring add")
            return False

        self._tracks[track.id] = track
        logger.info(f"Added track {track.id}: {track.title} by {track.artist}")
        self._changed("add", track.id)
        return True

    def remove(self, track_id: str) -> bool:
        """
        Remove a track by id; removing the current track clears the selection.

        Returns:
            bool: True if a track was removed
        """
        if track_id not in self._tracks:
            LookupMiss(
                f"Cannot remove track {track_id}: not in playlist",
                severity=ErrorSeverity.INFO,
                details={"track_id": track_id}
            ).log()
            return False

        del self._tracks[track_id]
        if self._current_id == track_id:
            self._current_id = None
            self._playing = False
        logger.info(f"Removed track {track_id}")
        self._changed("remove", track_id)
        return True

    def play(self, track_id: Optional[str] = None) -> bool:
        """
        Select and play a track, or resume the current selection.

        Args:
            track_id: Track to play; None resumes the current track

        Returns:
            bool: True if something is now playing
        """
        if track_id is not None:
            if track_id not in self._tracks:
                LookupMiss(
                    f"Track not found: {track_id}",
                    details={"track_id": track_id}
                ).log()
                return False
            self._current_id = track_id
        elif self.current_track is None:
            LookupMiss("No track to play.").log()
            return False

        self._playing = True
        logger.info(f"Playing track {self._current_id}")
        self._changed("play", self._current_id)
        return True

    def pause(self) -> bool:
        """
        Pause playback.

        Returns:
            bool: True if playback was running
        """
        if not self._playing:
            logger.debug("Pause requested while nothing is playing")
            return False

        self._playing = False
        logger.info(f"Paused track {self._current_id}")
        self._changed("pause", self._current_id)
        return True

    def _changed(self, action: str, track_id: Optional[str]) -> None:
        self._bus.emit(
            EventType.COLLECTION_CHANGED,
            {"domain": "playlist", "action": action, "id": track_id}
        )
