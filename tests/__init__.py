"""
Test suite for the Voice Control Assistant.

This package contains tests for all components of the application:
- Config: Settings defaults and validation
- Event System: Bus delivery and subscriptions
- Tools: Tool registry and argument validation
- Playlist / Cart: Domain stores, command handlers and rendering
- API Client: Token and SDP negotiation requests
- Audio Service: Microphone track and remote playback
- Realtime Session: Transport lifecycle and inbound ordering
- Event Handler: Tool configuration and function-call dispatch
- CLI / Application: Terminal commands and wiring
"""

__version__ = "0.1.0"
