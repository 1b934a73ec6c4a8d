"""
Voice Control Assistant Package.

This package lets a realtime voice model drive a local playlist or shopping
cart through tool calls over a WebRTC session.
"""

__version__ = "0.1.0"
__author__ = "Voice Control Assistant Team"
__description__ = "Voice control for a playlist or cart over the OpenAI Realtime API"
