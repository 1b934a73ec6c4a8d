"""
Application settings and configuration.

This module provides a centralized configuration management system using Pydantic.
It loads settings from environment variables, .env files, or falls back to defaults.
"""

import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, validator
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Base directories
ROOT_DIR = Path(__file__).parent.parent.parent
PACKAGE_DIR = ROOT_DIR / "voice_control"
LOG_DIR = Path(os.environ.get("LOG_DIR", ROOT_DIR / "logs"))

VARIANTS = ("playlist", "cart")


def _optional_int(name: str) -> Optional[int]:
    value = os.environ.get(name, "").strip()
    return int(value) if value else None


class ApiSettings(BaseModel):
    """Realtime API endpoints and session negotiation settings."""

    token_url: str = Field(
        default=os.environ.get("TOKEN_URL", "http://localhost:3000/token"),
        description="Endpoint that mints a short-lived client secret"
    )

    realtime_url: str = Field(
        default=os.environ.get("OPENAI_REALTIME_URL", "https://api.openai.com/v1/realtime"),
        description="SDP negotiation endpoint of the Realtime API"
    )

    model: str = Field(
        default=os.environ.get("OPENAI_REALTIME_MODEL", "gpt-4o-realtime-preview-2024-12-17"),
        description="Realtime model identifier, passed as a query parameter"
    )

    data_channel_label: str = Field(
        default="oai-events",
        description="Label of the data channel carrying structured events"
    )

    @validator("token_url", "realtime_url")
    def url_must_be_http(cls, v):
        """Validate that endpoints are HTTP(S) URLs."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Expected an http(s) URL, got '{v}'")
        return v.rstrip("/")


class AudioSettings(BaseModel):
    """Audio capture and playback settings."""

    sample_rate: int = Field(
        default=int(os.environ.get("AUDIO_SAMPLE_RATE", "48000")),
        description="Microphone sample rate in Hz (Opus runs at 48kHz)"
    )

    channels: int = Field(
        default=int(os.environ.get("AUDIO_CHANNELS", "1")),
        description="Number of microphone channels"
    )

    frames_per_buffer: int = Field(
        default=int(os.environ.get("AUDIO_FRAMES_PER_BUFFER", "960")),
        description="Samples per captured frame (960 = 20ms at 48kHz)"
    )

    input_device: Optional[int] = Field(
        default=_optional_int("AUDIO_INPUT_DEVICE"),
        description="Index of audio input device (None for system default)"
    )

    output_device: Optional[int] = Field(
        default=_optional_int("AUDIO_OUTPUT_DEVICE"),
        description="Index of audio output device (None for system default)"
    )

    playback_enabled: bool = Field(
        default=os.environ.get("AUDIO_PLAYBACK_ENABLED", "true").lower() == "true",
        description="Whether to play the assistant's voice through the speaker"
    )

    @validator("sample_rate")
    def validate_sample_rate(cls, v):
        """Warn about sample rates the Opus encoder will resample."""
        if v != 48000:
            print(f"WARNING: Sample rate {v}Hz will be resampled to 48000Hz for WebRTC.")
        return v

    @validator("channels")
    def validate_channels(cls, v):
        """Validate that channels is mono or stereo."""
        if v not in (1, 2):
            print(f"WARNING: Channel count {v} is not supported. Using mono.")
            return 1
        return v


class LoggingSettings(BaseModel):
    """Logging configuration settings."""

    level: str = Field(
        default=os.environ.get("LOG_LEVEL", "INFO"),
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    console_enabled: bool = Field(
        default=os.environ.get("LOG_CONSOLE_ENABLED", "true").lower() == "true",
        description="Whether to log to console"
    )

    file_enabled: bool = Field(
        default=os.environ.get("LOG_FILE_ENABLED", "true").lower() == "true",
        description="Whether to log to file"
    )

    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )

    detailed_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
        description="Detailed log format string for file logging"
    )

    @validator("level")
    def validate_log_level(cls, v):
        """Validate that log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            print(f"WARNING: Invalid log level '{v}'. Using INFO.")
            return "INFO"
        return v.upper()


class Settings(BaseModel):
    """Main application settings."""

    app_name: str = Field(
        default="Voice Control Assistant",
        description="Application name"
    )

    app_version: str = Field(
        default="0.1.0",
        description="Application version"
    )

    # Sub-configurations
    api: ApiSettings = Field(default_factory=ApiSettings)
    audio: AudioSettings = Field(default_factory=AudioSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    # Paths
    root_dir: Path = ROOT_DIR
    package_dir: Path = PACKAGE_DIR
    logs_dir: Path = LOG_DIR

    variant: str = Field(
        default=os.environ.get("ASSISTANT_VARIANT", "playlist"),
        description="Domain the assistant controls (playlist or cart)"
    )

    debug_mode: bool = Field(
        default=os.environ.get("DEBUG_MODE", "false").lower() == "true",
        description="Enable debug mode"
    )

    @validator("variant")
    def validate_variant(cls, v):
        """Validate that the variant names a known domain."""
        if v.lower() not in VARIANTS:
            print(f"WARNING: Unknown variant '{v}'. Using playlist.")
            return "playlist"
        return v.lower()

    def __init__(self, **data: Any):
        """Initialize settings and create any required directories."""
        super().__init__(**data)
        self._create_required_directories()

    def _create_required_directories(self) -> None:
        """Create the log directory tree."""
        session_log_dir = self.logs_dir / "sessions"
        session_log_dir.mkdir(parents=True, exist_ok=True)

    def get_session_log_path(self, session_id: str) -> Path:
        """Get path for session-specific log file."""
        return self.logs_dir / "sessions" / f"{session_id}.log"
