"""
HTTP client for the Realtime API negotiation endpoints.

This module fetches the short-lived client secret from the token backend
and exchanges the local SDP offer for the remote SDP answer.
"""

from typing import Any, Dict, Optional

import aiohttp

from voice_control.config import settings
from voice_control.config.logging_config import get_logger
from voice_control.utils.error_handling import NegotiationError

logger = get_logger(__name__)


class RealtimeApiClient:
    """
    Client for the two HTTP calls that precede a WebRTC session.

    A new ``aiohttp.ClientSession`` is opened per call unless one is
    injected, so the client holds no connection state between sessions.
    """

    def __init__(
        self,
        token_url: Optional[str] = None,
        realtime_url: Optional[str] = None,
        model: Optional[str] = None,
        http_session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the API client.

        Args:
            token_url: Endpoint minting the client secret
            realtime_url: SDP negotiation endpoint
            model: Realtime model identifier
            http_session: Optional shared aiohttp session
        """
        self.token_url = token_url or settings.api.token_url
        self.realtime_url = realtime_url or settings.api.realtime_url
        self.model = model or settings.api.model
        self._http_session = http_session

    async def fetch_client_secret(self) -> str:
        """
        Fetch a short-lived credential from the token endpoint.

        Returns:
            str: The value of ``client_secret.value``

        Raises:
            NegotiationError: On a non-2xx response, bad JSON, or a missing field
        """
        logger.debug(f"Requesting client secret from {self.token_url}")

        try:
            async with self._session() as session:
                async with session.get(self.token_url) as response:
                    if response.status >= 300:
                        body = await response.text()
                        raise NegotiationError(
                            f"Token endpoint returned HTTP {response.status}",
                            details={"status": response.status, "body": body[:200]}
                        )
                    data = await response.json(content_type=None)
        except NegotiationError:
            raise
        except (aiohttp.ClientError, ValueError) as e:
            raise NegotiationError("Failed to fetch client secret", cause=e) from e

        secret = _client_secret_value(data)
        if not secret:
            raise NegotiationError(
                "Token response is missing client_secret.value",
                details={"fields": sorted(data) if isinstance(data, dict) else []}
            )

        logger.info("Obtained client secret")
        return secret

    async def exchange_sdp(self, offer_sdp: str, client_secret: str) -> str:
        """
        Post the local SDP offer and return the remote SDP answer.

        Args:
            offer_sdp: Local session description
            client_secret: Credential from ``fetch_client_secret``

        Returns:
            str: The SDP answer text

        Raises:
            NegotiationError: On transport failure or a non-2xx response
        """
        headers = {
            "Authorization": f"Bearer {client_secret}",
            "Content-Type": "application/sdp",
        }

        logger.debug(f"Posting SDP offer to {self.realtime_url} for model {self.model}")

        try:
            async with self._session() as session:
                async with session.post(
                    self.realtime_url,
                    params={"model": self.model},
                    data=offer_sdp,
                    headers=headers,
                ) as response:
                    answer = await response.text()
                    if response.status >= 300:
                        raise NegotiationError(
                            f"SDP negotiation returned HTTP {response.status}",
                            details={"status": response.status, "body": answer[:200]}
                        )
        except NegotiationError:
            raise
        except aiohttp.ClientError as e:
            raise NegotiationError("SDP negotiation request failed", cause=e) from e

        if not answer.strip():
            raise NegotiationError("SDP negotiation returned an empty answer")

        logger.info("Received SDP answer")
        return answer

    def _session(self):
        if self._http_session is not None:
            return _Borrowed(self._http_session)
        return aiohttp.ClientSession()


class _Borrowed:
    """Async context manager that lends a session without closing it."""

    def __init__(self, session: aiohttp.ClientSession):
        self._session = session

    async def __aenter__(self) -> aiohttp.ClientSession:
        return self._session

    async def __aexit__(self, *exc_info) -> None:
        return None


def _client_secret_value(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    client_secret: Dict[str, Any] = data.get("client_secret") or {}
    if not isinstance(client_secret, dict):
        return None
    value = client_secret.get("value")
    return value if isinstance(value, str) and value else None
