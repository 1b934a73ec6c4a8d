"""
Text rendering of the playlist for the terminal UI.
"""

from typing import List

from voice_control.domain.playlist.state import PlaylistStore


def render_playlist(store: PlaylistStore) -> List[str]:
    """Render the playback queue as plain text lines."""
    tracks = store.items()
    if not tracks:
        return ["No songs in queue. Add a song to start listening!"]

    current = store.current_track
    lines = ["Playback Queue"]
    for track in tracks:
        is_current = current is not None and current.id == track.id
        if is_current:
            marker = "▶" if store.is_playing else "⏸"
        else:
            marker = " "
        lines.append(f" {marker} [{track.id}] {track.title} - {track.artist}")

    lines.append(f"Total Tracks: {store.total_tracks}")
    return lines
