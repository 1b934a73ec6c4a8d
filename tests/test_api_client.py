"""
Tests for the Realtime API client.

This module tests the two negotiation requests: fetching the client
secret from the token endpoint and exchanging SDP with the Realtime API.
"""

import aiohttp
import pytest
from unittest.mock import AsyncMock, MagicMock

from voice_control.services.api_client import RealtimeApiClient
from voice_control.utils.error_handling import NegotiationError


def make_response(status=200, json_body=None, text=""):
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=json_body)
    response.text = AsyncMock(return_value=text)
    return response


@pytest.fixture
def http_session():
    """Create a mock aiohttp session whose requests are async context managers."""
    return MagicMock()


@pytest.fixture
def api_client(http_session):
    return RealtimeApiClient(
        token_url="http://localhost:3000/token",
        realtime_url="https://api.openai.com/v1/realtime",
        model="gpt-4o-realtime-preview-2024-12-17",
        http_session=http_session,
    )


@pytest.mark.asyncio
async def test_fetch_client_secret(api_client, http_session):
    """Test that the nested client_secret.value is returned."""
    http_session.get.return_value.__aenter__.return_value = make_response(
        json_body={"client_secret": {"value": "ek_abc", "expires_at": 1700000000}}
    )

    secret = await api_client.fetch_client_secret()

    assert secret == "ek_abc"
    http_session.get.assert_called_once_with("http://localhost:3000/token")


@pytest.mark.asyncio
async def test_fetch_client_secret_http_error(api_client, http_session):
    http_session.get.return_value.__aenter__.return_value = make_response(status=500, text="upstream down")

    with pytest.raises(NegotiationError) as excinfo:
        await api_client.fetch_client_secret()

    assert excinfo.value.details["status"] == 500


@pytest.mark.asyncio
async def test_fetch_client_secret_missing_field(api_client, http_session):
    http_session.get.return_value.__aenter__.return_value = make_response(json_body={"client_secret": {}})

    with pytest.raises(NegotiationError):
        await api_client.fetch_client_secret()


@pytest.mark.asyncio
async def test_fetch_client_secret_bad_json(api_client, http_session):
    response = make_response()
    response.json = AsyncMock(side_effect=ValueError("Expecting value"))
    http_session.get.return_value.__aenter__.return_value = response

    with pytest.raises(NegotiationError):
        await api_client.fetch_client_secret()


@pytest.mark.asyncio
async def test_fetch_client_secret_connection_error(api_client, http_session):
    http_session.get.side_effect = aiohttp.ClientConnectionError("connection refused")

    with pytest.raises(NegotiationError) as excinfo:
        await api_client.fetch_client_secret()

    assert isinstance(excinfo.value.cause, aiohttp.ClientConnectionError)


@pytest.mark.asyncio
async def test_exchange_sdp(api_client, http_session):
    """Test that the offer is posted as application/sdp with the bearer secret."""
    http_session.post.return_value.__aenter__.return_value = make_response(text="v=0 answer")

    answer = await api_client.exchange_sdp("v=0 offer", "ek_abc")

    assert answer == "v=0 answer"
    args, kwargs = http_session.post.call_args
    assert args == ("https://api.openai.com/v1/realtime",)
    assert kwargs["params"] == {"model": "gpt-4o-realtime-preview-2024-12-17"}
    assert kwargs["data"] == "v=0 offer"
    assert kwargs["headers"]["Authorization"] == "Bearer ek_abc"
    assert kwargs["headers"]["Content-Type"] == "application/sdp"


@pytest.mark.asyncio
async def test_exchange_sdp_rejected(api_client, http_session):
    http_session.post.return_value.__aenter__.return_value = make_response(status=401, text="invalid secret")

    with pytest.raises(NegotiationError) as excinfo:
        await api_client.exchange_sdp("v=0 offer", "ek_abc")

    assert excinfo.value.details == {"status": 401, "body": "invalid secret"}


@pytest.mark.asyncio
async def test_exchange_sdp_empty_answer(api_client, http_session):
    http_session.post.return_value.__aenter__.return_value = make_response(text="  ")

    with pytest.raises(NegotiationError):
        await api_client.exchange_sdp("v=0 offer", "ek_abc")


@pytest.mark.asyncio
async def test_injected_session_is_not_closed(api_client, http_session):
    http_session.get.return_value.__aenter__.return_value = make_response(
        json_body={"client_secret": {"value": "ek_abc"}}
    )

    await api_client.fetch_client_secret()

    http_session.close.assert_not_called()
