"""
Shared fixtures and fakes for the test suite.

The fakes stand in for aiortc's peer connection, data channel and
microphone track: they record calls in a shared ``log`` list and let
tests fire the events aiortc would emit.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from voice_control.events.event_interface import EventBus


class FakeEmitter:
    """Minimal stand-in for the pyee emitter behind aiortc objects."""

    def __init__(self):
        self.listeners = {}

    def on(self, event_name, handler):
        self.listeners.setdefault(event_name, []).append(handler)

    def remove_listener(self, event_name, handler):
        self.listeners[event_name].remove(handler)

    def fire(self, event_name, *args):
        for handler in list(self.listeners.get(event_name, [])):
            handler(*args)


class FakeChannel(FakeEmitter):
    def __init__(self, label, log):
        super().__init__()
        self.label = label
        self.log = log
        self.sent = []

    def send(self, data):
        self.sent.append(json.loads(data))

    def close(self):
        self.log.append("channel.close")


class FakeMicrophone:
    kind = "audio"

    def __init__(self, log):
        self.log = log
        self.opened = False

    def open(self):
        self.opened = True

    def stop(self):
        self.log.append("microphone.stop")


class FakePeerConnection(FakeEmitter):
    def __init__(self, log):
        super().__init__()
        self.log = log
        self.tracks = []
        self.channel = None
        self.connectionState = "new"
        self.localDescription = None
        self.remoteDescription = None

    def addTrack(self, track):
        self.tracks.append(track)

    def getSenders(self):
        return [SimpleNamespace(track=_LoggingTrack(track, self.log)) for track in self.tracks]

    def createDataChannel(self, label, ordered=True):
        self.channel = FakeChannel(label, self.log)
        return self.channel

    async def createOffer(self):
        return SimpleNamespace(sdp="v=0 offer", type="offer")

    async def setLocalDescription(self, description):
        self.localDescription = description

    async def setRemoteDescription(self, description):
        self.remoteDescription = description

    async def close(self):
        self.log.append("pc.close")


class _LoggingTrack:
    def __init__(self, track, log):
        self._track = track
        self._log = log

    def stop(self):
        self._log.append("sender.stop")


@pytest.fixture
def bus():
    """A fresh event bus per test."""
    return EventBus()


@pytest.fixture
def transport_log():
    """Ordered record of teardown calls across the fakes."""
    return []


@pytest.fixture
def peers(transport_log):
    """Peer connections created by the session under test."""
    created = []

    def factory():
        pc = FakePeerConnection(transport_log)
        created.append(pc)
        return pc

    factory.created = created
    return factory


@pytest.fixture
def microphones(transport_log):
    created = []

    def factory():
        mic = FakeMicrophone(transport_log)
        created.append(mic)
        return mic

    factory.created = created
    return factory


@pytest.fixture
def api_client():
    """API client double that succeeds on both negotiation calls."""
    client = MagicMock()
    client.fetch_client_secret = AsyncMock(return_value="ek_test_secret")
    client.exchange_sdp = AsyncMock(return_value="v=0 answer")
    return client
