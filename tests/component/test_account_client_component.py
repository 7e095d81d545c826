"""
Account Service Client Component Tests

HTTP calls are answered by httpx.MockTransport.
"""
import httpx
import pytest

from microservices.notification_service.clients import AccountServiceClient

pytestmark = [pytest.mark.component, pytest.mark.asyncio]


def _client(handler) -> AccountServiceClient:
    return AccountServiceClient(base_url="http://accounts.test", transport=httpx.MockTransport(handler))


async def test_returns_profile():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"user_id": "usr_1", "email": "owner@example.com"})

    async with _client(handler) as client:
        profile = await client.get_account_profile("usr_1")

    assert profile["email"] == "owner@example.com"
    assert seen[0].url.path == "/api/v1/accounts/profile/usr_1"
    assert seen[0].headers["X-Service-Name"] == "notification_service"


@pytest.mark.parametrize("status_code", [404, 500])
async def test_error_status_returns_none(status_code):
    async with _client(lambda request: httpx.Response(status_code)) as client:
        assert await client.get_account_profile("usr_1") is None


async def test_connection_error_returns_none():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        assert await client.get_account_profile("usr_1") is None
