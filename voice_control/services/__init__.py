"""
Services module for external integrations.

This package contains the HTTP client for the Realtime API, the WebRTC
transport session, audio capture and playback of the model's voice and
playlist tracks, and the server event dispatcher.
"""

from voice_control.services.api_client import RealtimeApiClient
from voice_control.services.audio_service import MicrophoneTrack, RemoteAudioPlayer, TrackPlayer
from voice_control.services.realtime_event_handler import RealtimeEventHandler
from voice_control.services.realtime_session import RealtimeSession, SessionState

__all__ = [
    "RealtimeApiClient",
    "MicrophoneTrack",
    "RemoteAudioPlayer",
    "TrackPlayer",
    "RealtimeEventHandler",
    "RealtimeSession",
    "SessionState",
]
