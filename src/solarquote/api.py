import httpx
import logging

logger = logging.getLogger(__name__)

BOOKED_CALLS_PATH = "public_users/installer-users-today-future-calls"
PROPOSAL_PATH = "public_users/get_business_proposal_by_location_installers"
CREATE_LEAD_PATH = "public_users/new-journey-user"
BOOK_CALL_PATH = "public_users/new-journey-installer-user"
USERFLOW_EMAIL_PATH = "public_users/send-userflow-email"


def _body(resp: httpx.Response) -> dict:
    """Decoded JSON object of a 2xx response; empty or non-object bodies give {}."""
    if not resp.content:
        return {}
    try:
        data = resp.json()
    except ValueError:
        logger.warning("Non-JSON %d response from %s", resp.status_code, resp.request.url.path)
        return {}
    return data if isinstance(data, dict) else {}


class FunnelAPI:
    """HTTP client for the lead/booking backend.

    Every method raises ``httpx.HTTPStatusError`` on a non-2xx response and
    ``httpx.TransportError`` when the server cannot be reached. Fail-open or
    block-with-error policy belongs to the caller.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/") + "/"
        self.api_key = api_key
        self.timeout = timeout
        if client is not None:
            self._client = client
        else:
            headers = {"Content-Type": "application/json"}
            if api_key:
                headers["Authorization"] = f"Bearer {api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
            )

    async def close(self):
        """Close the shared HTTP client. Call when the funnel is torn down."""
        await self._client.aclose()

    async def get_booked_calls(self, page: int = 1, per_page: int = 50) -> dict:
        resp = await self._client.get(BOOKED_CALLS_PATH, params={"page": page, "per_page": per_page})
        resp.raise_for_status()
        return resp.json()

    async def get_proposal(self, lat: float, lng: float, bill_amount: int) -> dict:
        resp = await self._client.get(
            PROPOSAL_PATH,
            params={"lat": lat, "lng": lng, "billAmount": bill_amount},
        )
        resp.raise_for_status()
        return resp.json()

    async def create_lead(self, payload: dict) -> dict:
        resp = await self._client.post(CREATE_LEAD_PATH, json=payload)
        resp.raise_for_status()
        return _body(resp)

    async def book_call(self, payload: dict) -> dict:
        resp = await self._client.post(BOOK_CALL_PATH, json=payload)
        resp.raise_for_status()
        return _body(resp)

    async def send_userflow_email(self, email: str) -> None:
        resp = await self._client.get(USERFLOW_EMAIL_PATH, params={"email": email})
        resp.raise_for_status()
