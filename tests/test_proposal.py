import pytest
import httpx
import respx

from solarquote import answers as keys
from solarquote.answers import HomeProfile
from solarquote.proposal import load_proposal

from conftest import BASE_URL

PROPOSAL_URL = f"{BASE_URL}/public_users/get_business_proposal_by_location_installers"


def proposal_body(system_size=6160, monthly_kwh=375.0, roof_area=42.5):
    return {
        "data": {
            "system_size": system_size,
            "panel_count": 14,
            "monthly_forecast": [{"label": f"M{i}", "monthly_sum": monthly_kwh} for i in range(12)],
        },
        "roof_area": roof_area,
        "roof_default_data": {"pitch": 35},
        "max_panels": 18,
    }


class TestLoadProposal:
    @pytest.mark.asyncio
    async def test_stores_proposal_and_energy(self, located, api):
        with respx.mock:
            route = respx.get(url__startswith=PROPOSAL_URL).mock(
                return_value=httpx.Response(200, json=proposal_body())
            )
            result = await load_proposal(located, api)
            assert route.calls[0].request.url.params["billAmount"] == "250"
        assert result.ok
        assert located.proposal.system_size_w == 6160
        assert located.roof_area == 42.5
        assert located.store.get(keys.ROOF_DEFAULTS) == {"pitch": 35}
        assert located.store.get(keys.MAX_PANELS) == 18
        energy = located.energy
        assert energy.raw_independence_pct == 100
        assert energy.practical_independence_pct == 65
        assert energy.source == "proposal_loading"

    @pytest.mark.asyncio
    async def test_default_bill_when_unset(self, answers, api):
        answers.set_location(53.0, -9.0, "1 Main St")
        with respx.mock:
            route = respx.get(url__startswith=PROPOSAL_URL).mock(
                return_value=httpx.Response(200, json=proposal_body())
            )
            await load_proposal(answers, api)
            assert route.calls[0].request.url.params["billAmount"] == "250"

    @pytest.mark.asyncio
    async def test_zero_generation_not_stored(self, located, api):
        with respx.mock:
            respx.get(url__startswith=PROPOSAL_URL).mock(
                return_value=httpx.Response(200, json=proposal_body(monthly_kwh=0))
            )
            await load_proposal(located, api)
        assert not located.store.has(keys.ENERGY)

    @pytest.mark.asyncio
    async def test_failure_still_settles(self, located, api):
        with respx.mock:
            respx.get(url__startswith=PROPOSAL_URL).mock(return_value=httpx.Response(502))
            result = await load_proposal(located, api)
        assert not result.ok
        assert located.proposal is None

    @pytest.mark.asyncio
    async def test_missing_location(self, answers, api):
        result = await load_proposal(answers, api)
        assert not result.ok

    @pytest.mark.asyncio
    async def test_zero_roof_area_caps_by_home_type(self, located, api):
        located.set_home_profile(HomeProfile("Terraced", "3", has_heat_pump=True))
        with respx.mock:
            respx.get(url__startswith=PROPOSAL_URL).mock(
                return_value=httpx.Response(200, json=proposal_body(system_size=8000, roof_area=0))
            )
            result = await load_proposal(located, api)
        assert result.capped
        assert located.proposal.system_size_w == 4400
        details = located.store.get(keys.PROPERTY_DETAILS)
        assert details["houseType"] == "terraced"
        assert details["hasHeatPump"] is True

    @pytest.mark.asyncio
    async def test_zero_roof_area_without_home_type(self, located, api):
        with respx.mock:
            respx.get(url__startswith=PROPOSAL_URL).mock(
                return_value=httpx.Response(200, json=proposal_body(system_size=8000, roof_area=0))
            )
            result = await load_proposal(located, api)
        assert not result.capped
        assert located.proposal.system_size_w == 8000
        assert not located.store.has(keys.PROPERTY_DETAILS)
