import logging
from dataclasses import dataclass

import httpx

from solarquote import answers as keys
from solarquote.answers import Answers, utc_timestamp
from solarquote.api import FunnelAPI
from solarquote.calculator import DEFAULT_BILL_AMOUNT, cap_system_size, energy_independence, should_store_energy

logger = logging.getLogger(__name__)

ENERGY_SOURCE = "proposal_loading"


@dataclass
class ProposalResult:
    ok: bool
    capped: bool = False
    error: str = ""


async def load_proposal(answers: Answers, api: FunnelAPI, panel_watts: int = 440) -> ProposalResult:
    """Fetch the proposal for the stored location and bill.

    Always settles: a failed fetch is logged and reported through
    ``ProposalResult.ok`` so the funnel can carry on with what it has.
    """
    location = answers.location
    if location is None:
        logger.warning("Proposal requested without a location")
        return ProposalResult(ok=False, error="missing location")

    bill = answers.bill_amount or DEFAULT_BILL_AMOUNT
    result = ProposalResult(ok=True)
    try:
        body = await api.get_proposal(location.lat, location.lng, bill)
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise ValueError("proposal response has no data object")
        answers.store.set(keys.PROPOSAL, data)
        answers.store.set(keys.ROOF_AREA, body.get("roof_area"))
        answers.store.set(keys.ROOF_DEFAULTS, body.get("roof_default_data"))
        answers.store.set(keys.MAX_PANELS, body.get("max_panels"))

        energy = energy_independence(answers.proposal.monthly_forecast, answers.bill_amount, source=ENERGY_SOURCE)
        if should_store_energy(energy):
            answers.set_energy(energy)
            logger.info(
                "Energy independence stored: raw=%d%% practical=%d%%",
                energy.raw_independence_pct, energy.practical_independence_pct,
            )
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Proposal fetch failed, continuing without it: %s", e)
        result = ProposalResult(ok=False, error=str(e))

    if answers.roof_area == 0:
        result.capped = _apply_property_limits(answers, panel_watts)
    return result


def _apply_property_limits(answers: Answers, panel_watts: int) -> bool:
    """No roof measurement: size the system by property type instead."""
    profile = answers.home_profile
    if not profile.home_type:
        return False
    home_type = profile.home_type.lower()

    capped = False
    proposal = answers.proposal
    if proposal is not None:
        data, capped = cap_system_size(proposal.data, home_type, panel_watts)
        if capped:
            logger.info("System size capped to %dW for %s", data["system_size"], home_type)
            answers.store.set(keys.PROPOSAL, data)

    answers.store.set(keys.PROPERTY_DETAILS, {
        "houseType": home_type,
        "bedrooms": profile.bedrooms,
        "hasEV": profile.has_ev,
        "hasHeatPump": profile.has_heat_pump,
        "hasElectricShower": profile.has_electric_shower,
        "timestamp": utc_timestamp(),
    })
    return capped
