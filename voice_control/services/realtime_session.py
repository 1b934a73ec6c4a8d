"""
WebRTC transport session for the Realtime API.

This module owns one peer connection to the model: microphone track out,
model voice in, and the ``oai-events`` data channel carrying JSON client
and server events. Inbound events are queued and handed to listeners one
at a time, in arrival order, each listener running to completion before
the next event is taken.
"""

import asyncio
import json
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from aiortc import RTCPeerConnection, RTCSessionDescription

from voice_control.config import settings
from voice_control.config.logging_config import get_logger
from voice_control.events.event_interface import EventBus, EventType, Subscription, event_bus
from voice_control.services.api_client import RealtimeApiClient
from voice_control.services.audio_service import MicrophoneTrack, RemoteAudioPlayer
from voice_control.utils.async_helpers import TaskManager
from voice_control.utils.error_handling import ChannelError, NegotiationError, handle_exception

logger = get_logger(__name__)

InboundListener = Callable[[Dict[str, Any]], Awaitable[None]]


class SessionState(Enum):
    """Lifecycle of the transport session."""

    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"


class _StartAborted(Exception):
    """stop() ran while start() was suspended."""


def listen(emitter: Any, event_name: str, handler: Callable) -> Subscription:
    """Attach a listener to an aiortc emitter and return its removal handle."""
    emitter.on(event_name, handler)
    return Subscription(
        lambda: emitter.remove_listener(event_name, handler),
        f"{type(emitter).__name__}.{event_name}"
    )


class RealtimeSession:
    """
    One realtime session with the remote model.

    ``start()`` negotiates the connection, ``stop()`` tears it down and
    ``send()`` writes a client event to the data channel. The session
    becomes ACTIVE when the data channel opens; until then, and after
    ``stop()``, ``send()`` silently drops events.
    """

    def __init__(
        self,
        api_client: Optional[RealtimeApiClient] = None,
        bus: Optional[EventBus] = None,
        peer_factory: Callable[[], Any] = RTCPeerConnection,
        microphone_factory: Callable[[], Any] = MicrophoneTrack,
        player_factory: Optional[Callable[[Any], Any]] = RemoteAudioPlayer,
        channel_label: Optional[str] = None,
    ):
        """
        Initialize the session.

        Args:
            api_client: Client for the token and SDP endpoints
            bus: Event bus for lifecycle notifications
            peer_factory: Creates the peer connection
            microphone_factory: Creates the outbound audio track
            player_factory: Creates a player for the remote audio track, or None to mute
            channel_label: Data channel label
        """
        self.api_client = api_client or RealtimeApiClient()
        self.bus = bus or event_bus
        self._peer_factory = peer_factory
        self._microphone_factory = microphone_factory
        self._player_factory = player_factory
        self.channel_label = channel_label or settings.api.data_channel_label

        self.state = SessionState.IDLE
        self.task_manager = TaskManager("realtime_session")

        self._pc = None
        self._channel = None
        self._microphone = None
        self._players: List[Any] = []
        self._subscriptions: List[Subscription] = []
        self._listeners: List[InboundListener] = []
        self._inbound: asyncio.Queue = asyncio.Queue()
        # Bumped by stop() so a suspended start() knows it was cancelled
        self._generation = 0

    # Public API

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    def add_listener(self, listener: InboundListener) -> Subscription:
        """
        Register a coroutine called with every inbound server event.

        Returns:
            Subscription: Handle that unregisters the listener
        """
        self._listeners.append(listener)
        return Subscription(lambda: self._remove_listener(listener), "inbound")

    async def start(self) -> None:
        """
        Negotiate a new session.

        Raises:
            NegotiationError: If the credential fetch, microphone or handshake fails.
                The session is back in IDLE when this is raised.
        """
        if self.state is not SessionState.IDLE:
            logger.warning(f"Cannot start session while {self.state.value}")
            return

        self._generation += 1
        generation = self._generation
        self._set_state(SessionState.CONNECTING)
        stage = "client_secret"

        try:
            client_secret = await self.api_client.fetch_client_secret()
            self._check_current(generation)

            stage = "microphone"
            microphone = self._microphone_factory()
            self._microphone = microphone
            microphone.open()

            stage = "peer_connection"
            pc = self._peer_factory()
            self._pc = pc
            self._subscriptions.append(listen(pc, "track", self._on_track))
            self._subscriptions.append(listen(pc, "connectionstatechange", self._on_connection_state_change))
            pc.addTrack(microphone)

            channel = pc.createDataChannel(self.channel_label, ordered=True)
            self._channel = channel
            self._subscriptions.append(listen(channel, "open", self._on_channel_open))
            self._subscriptions.append(listen(channel, "message", self._on_channel_message))
            self._subscriptions.append(listen(channel, "close", self._on_channel_close))
            self._subscriptions.append(listen(channel, "error", self._on_channel_error))
            self.task_manager.create_task(self._consume_inbound(generation), "inbound_events")

            stage = "offer"
            offer = await pc.createOffer()
            await pc.setLocalDescription(offer)
            self._check_current(generation)

            stage = "sdp_exchange"
            answer_sdp = await self.api_client.exchange_sdp(pc.localDescription.sdp, client_secret)
            self._check_current(generation)

            stage = "answer"
            await pc.setRemoteDescription(RTCSessionDescription(sdp=answer_sdp, type="answer"))
            self._check_current(generation)

        except _StartAborted:
            logger.info("Session start aborted by stop()")
            return
        except Exception as e:
            if generation != self._generation:
                # stop() already tore down the objects this step was using
                logger.info(f"Session start aborted by stop() during {stage}: {e}")
                return
            error = handle_exception(e, context={"stage": stage}, error_class=NegotiationError)
            await self._teardown()
            self._set_state(SessionState.IDLE)
            if error is e:
                raise
            raise error from e

        logger.info("Session negotiated, waiting for data channel")

    async def stop(self) -> None:
        """
        End the session.

        Closes the data channel, then stops outbound media, then closes the
        peer connection. Safe to call in any state; a no-op when idle.
        """
        if self.state is SessionState.IDLE and self._pc is None and self._microphone is None:
            logger.debug("stop() called while idle")
            return

        logger.info("Stopping session")
        self._generation += 1
        await self._teardown()
        self._set_state(SessionState.IDLE)
        self.bus.emit(EventType.SESSION_ENDED, {})

    def send(self, event: Dict[str, Any]) -> bool:
        """
        Send a client event over the data channel.

        Returns:
            bool: True if the event was written, False if it was dropped
        """
        event_type = event.get("type", "unknown")
        if self.state is not SessionState.ACTIVE or self._channel is None:
            logger.debug(f"Dropping {event_type}: session is {self.state.value}")
            return False

        try:
            self._channel.send(json.dumps(event))
        except Exception as e:
            ChannelError(f"Failed to send {event_type}", cause=e).log()
            return False

        logger.debug(f"Sent client event: {event_type}")
        return True

    async def drain(self) -> None:
        """Wait until every queued inbound event has been handled."""
        await self._inbound.join()

    # Transport callbacks

    def _on_channel_open(self) -> None:
        if self.state is not SessionState.CONNECTING:
            return
        logger.info(f"Data channel '{self.channel_label}' open")
        self._set_state(SessionState.ACTIVE)
        self.bus.emit(EventType.CHANNEL_OPENED, {"label": self.channel_label})

    def _on_channel_message(self, message: Union[str, bytes]) -> None:
        self._inbound.put_nowait(message)

    def _on_channel_close(self) -> None:
        if self.state is SessionState.ACTIVE:
            self._report_channel_error("Data channel closed by remote")

    def _on_channel_error(self, error: Exception) -> None:
        self._report_channel_error(f"Data channel error: {error}")

    def _on_connection_state_change(self) -> None:
        connection_state = getattr(self._pc, "connectionState", None)
        logger.debug(f"Peer connection state: {connection_state}")
        if connection_state == "failed":
            self._report_channel_error("Peer connection failed")

    def _on_track(self, track: Any) -> None:
        if track.kind != "audio":
            return
        if self._player_factory is None or not settings.audio.playback_enabled:
            logger.debug("Remote audio track received, playback disabled")
            return
        player = self._player_factory(track)
        self._players.append(player)
        self.task_manager.create_task(player.run(), "remote_audio")

    def _report_channel_error(self, message: str) -> None:
        error = ChannelError(message, details={"state": self.state.value})
        error.log()
        self.bus.emit(EventType.CHANNEL_ERROR, {"error": error.to_dict()})

    # Inbound processing

    async def _consume_inbound(self, generation: int) -> None:
        # A listener may call stop(), which cannot cancel the task it runs in
        while generation == self._generation:
            raw = await self._inbound.get()
            try:
                event = self._decode(raw)
                if event is not None:
                    for listener in list(self._listeners):
                        try:
                            await listener(event)
                        except Exception as e:
                            logger.error(f"Error handling {event.get('type')}: {e}", exc_info=True)
            finally:
                self._inbound.task_done()

    @staticmethod
    def _decode(raw: Union[str, bytes]) -> Optional[Dict[str, Any]]:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        try:
            event = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to decode server event: {e}")
            return None
        if not isinstance(event, dict) or "type" not in event:
            logger.warning("Ignoring server event without a type")
            return None
        return event

    # Internals

    def _check_current(self, generation: int) -> None:
        if generation != self._generation:
            raise _StartAborted()

    def _remove_listener(self, listener: InboundListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _set_state(self, state: SessionState) -> None:
        if state is self.state:
            return
        previous, self.state = self.state, state
        logger.info(f"Session state: {previous.value} -> {state.value}")
        self.bus.emit(
            EventType.SESSION_STATE_CHANGED,
            {"state": state.value, "previous": previous.value}
        )

    async def _teardown(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []

        channel, self._channel = self._channel, None
        if channel is not None:
            channel.close()

        pc, self._pc = self._pc, None
        microphone, self._microphone = self._microphone, None
        if pc is not None:
            for sender in pc.getSenders():
                if sender.track is not None:
                    sender.track.stop()
        if microphone is not None:
            microphone.stop()

        if pc is not None:
            await pc.close()

        await self.task_manager.cancel_all()
        for player in self._players:
            player.close()
        self._players = []

        # Events that arrived before teardown are discarded with the session
        while not self._inbound.empty():
            self._inbound.get_nowait()
            self._inbound.task_done()
