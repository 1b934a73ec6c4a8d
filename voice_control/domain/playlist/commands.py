"""
Command handler for the playlist tools.
"""

from typing import Any, Dict, List, Optional

from voice_control.domain.commands import ClientEvent, CommandHandler, narration
from voice_control.domain.playlist.state import PlaylistStore, Track


class PlaylistCommandHandler(CommandHandler):
    """Applies add/remove/play/pause tool calls to a ``PlaylistStore``."""

    def __init__(self, store: PlaylistStore):
        self.store = store
        super().__init__()

    def _setup_commands(self) -> None:
        self.commands = {
            "add_track": self.add_track,
            "remove_track": self.remove_track,
            "play_track": self.play_track,
            "pause_track": self.pause_track,
        }

    def add_track(self, args: Dict[str, Any], call_id: Optional[str] = None) -> List[ClientEvent]:
        track = Track(
            id=args["track_id"],
            title=args["title"],
            artist=args["artist"],
            url=args["url"],
        )
        self.store.add(track)
        return [narration(f'Track "{track.title}" by {track.artist} was added to the playlist.')]

    def remove_track(self, args: Dict[str, Any], call_id: Optional[str] = None) -> List[ClientEvent]:
        self.store.remove(args["track_id"])
        return [narration("Track was removed from the playlist.")]

    def play_track(self, args: Dict[str, Any], call_id: Optional[str] = None) -> List[ClientEvent]:
        self.store.play(args.get("track_id"))
        return []

    def pause_track(self, args: Dict[str, Any], call_id: Optional[str] = None) -> List[ClientEvent]:
        self.store.pause()
        return []
