import json

import pytest
import httpx
import respx

from solarquote.api import FunnelAPI


BASE_URL = "https://test-server.example.com"


class TestFunnelAPIAuth:
    @pytest.mark.asyncio
    async def test_sends_bearer_token(self):
        with respx.mock:
            client = FunnelAPI(base_url=BASE_URL, api_key="test-key-123")
            route = respx.post(f"{BASE_URL}/public_users/new-journey-user").mock(
                return_value=httpx.Response(200, json={"ok": True})
            )
            await client.create_lead({"email": "a@b.com"})
            assert route.calls[0].request.headers.get("authorization") == "Bearer test-key-123"

    @pytest.mark.asyncio
    async def test_no_api_key_still_works(self):
        with respx.mock:
            client = FunnelAPI(base_url=BASE_URL)
            route = respx.post(f"{BASE_URL}/public_users/new-journey-user").mock(
                return_value=httpx.Response(200, json={"ok": True})
            )
            await client.create_lead({})
            assert route.called
            assert "authorization" not in route.calls[0].request.headers


class TestEndpoints:
    @pytest.mark.asyncio
    async def test_proposal_params(self):
        with respx.mock:
            client = FunnelAPI(base_url=BASE_URL)
            route = respx.get(
                url__startswith=f"{BASE_URL}/public_users/get_business_proposal_by_location_installers"
            ).mock(return_value=httpx.Response(200, json={"data": {}}))
            await client.get_proposal(53.27, -9.05, 350)
            params = route.calls[0].request.url.params
            assert params["lat"] == "53.27"
            assert params["lng"] == "-9.05"
            assert params["billAmount"] == "350"

    @pytest.mark.asyncio
    async def test_book_call_posts_json(self):
        with respx.mock:
            client = FunnelAPI(base_url=BASE_URL)
            route = respx.post(f"{BASE_URL}/public_users/new-journey-installer-user").mock(
                return_value=httpx.Response(200, json={"success": True})
            )
            result = await client.book_call({"email": "a@b.com", "company_id": 3})
            assert result == {"success": True}
            assert json.loads(route.calls[0].request.content) == {"email": "a@b.com", "company_id": 3}

    @pytest.mark.asyncio
    async def test_userflow_email(self):
        with respx.mock:
            client = FunnelAPI(base_url=BASE_URL)
            route = respx.get(url__startswith=f"{BASE_URL}/public_users/send-userflow-email").mock(
                return_value=httpx.Response(200)
            )
            await client.send_userflow_email("a+b@example.com")
            assert route.calls[0].request.url.params["email"] == "a+b@example.com"


class TestResponseBodies:
    @pytest.mark.asyncio
    async def test_empty_created_body(self):
        with respx.mock:
            client = FunnelAPI(base_url=BASE_URL)
            respx.post(f"{BASE_URL}/public_users/new-journey-user").mock(return_value=httpx.Response(201))
            assert await client.create_lead({}) == {}

    @pytest.mark.asyncio
    async def test_plain_text_body(self):
        with respx.mock:
            client = FunnelAPI(base_url=BASE_URL)
            respx.post(f"{BASE_URL}/public_users/new-journey-installer-user").mock(
                return_value=httpx.Response(200, text="Created")
            )
            assert await client.book_call({}) == {}


class TestErrors:
    @pytest.mark.asyncio
    async def test_non_2xx_raises_status_error(self):
        with respx.mock:
            client = FunnelAPI(base_url=BASE_URL)
            respx.post(f"{BASE_URL}/public_users/new-journey-user").mock(
                return_value=httpx.Response(409, json={"message": "exists"})
            )
            with pytest.raises(httpx.HTTPStatusError):
                await client.create_lead({})

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self):
        with respx.mock:
            client = FunnelAPI(base_url=BASE_URL)
            respx.post(f"{BASE_URL}/public_users/new-journey-user").mock(
                side_effect=httpx.ConnectError("refused")
            )
            with pytest.raises(httpx.TransportError):
                await client.create_lead({})


@pytest.mark.asyncio
async def test_uses_injected_client():
    with respx.mock:
        shared = httpx.AsyncClient(base_url=BASE_URL + "/")
        client = FunnelAPI(base_url=BASE_URL, client=shared)
        respx.get(url__startswith=f"{BASE_URL}/public_users/installer-users-today-future-calls").mock(
            return_value=httpx.Response(200, json={"calls": [], "has_next": False})
        )
        assert await client.get_booked_calls() == {"calls": [], "has_next": False}
        await client.close()
        assert shared.is_closed
