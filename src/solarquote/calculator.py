"""Derived solar metrics: bill estimation, energy independence, economics.

Everything here is pure. Missing inputs produce zeroed results, which
callers read as "not computed yet" rather than a real zero.
"""

import math
from dataclasses import dataclass

from solarquote.answers import DerivedEnergy, HomeProfile, Proposal, utc_timestamp
from solarquote.branding import EnergyAssumptions, Pricing

SELF_CONSUMPTION_FACTOR = 0.65
DEFAULT_CONSUMPTION_KWH = 4200
DEFAULT_BILL_AMOUNT = 250

# Bill band label -> median monthly bill (EUR)
BILL_BANDS = {
    "€100 – €200": 150,
    "€200 – €300": 250,
    "€300 – €400": 350,
    "€400 – €500": 450,
    "€500 – €600": 550,
    "Over €600": 700,
}

BILL_TO_KWH = {150: 3000, 250: 4500, 350: 6000, 450: 7500, 550: 9000, 700: 10000}

_SMALL_HOME = {"1": 105, "2": 125, "3": 140}
BASE_MONTHLY_COST = {
    "terraced": _SMALL_HOME,
    "apartment": _SMALL_HOME,
    "semi-detached": {"1": 150, "2": 150, "3": 150, "4": 170, "5": 190, "5+": 190},
    "detached": {"1": 160, "2": 160, "3": 160, "4": 180, "5": 200, "5+": 200},
}
# Bedroom counts missing from a row fall back to that row's 3-bed value
FALLBACK_MONTHLY_COST = 140

EV_SURCHARGE = 60
HEAT_PUMP_SURCHARGE = 80
ELECTRIC_SHOWER_SURCHARGE = 15

LOW_USAGE_BELOW = 140
HIGH_USAGE_ABOVE = 200

MAX_PANELS = {"detached": 16, "semi-detached": 12, "terraced": 10}
DEFAULT_MAX_PANELS = 12

CO2_TONNES_PER_KWP = 0.5
TREES_PER_TONNE = 11.4
TONNES_PER_CAR = 1.4
LIFETIME_YEARS = 20

GRANT_ELIGIBLE_BUILD_DATES = {"before-2021", "not-sure"}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class BillEstimate:
    amount: int
    category: str  # Low | Average | High


def base_monthly_cost(home_type: str, bedrooms: str) -> int:
    table = BASE_MONTHLY_COST.get((home_type or "").strip().lower())
    if table is None:
        return FALLBACK_MONTHLY_COST
    return table.get((bedrooms or "").strip(), table["3"])


def classify_usage(amount: int) -> str:
    if amount < LOW_USAGE_BELOW:
        return "Low"
    if amount <= HIGH_USAGE_ABOVE:
        return "Average"
    return "High"


def estimate_bill(profile: HomeProfile) -> BillEstimate:
    """Estimate a monthly bill from the home profile questionnaire.

    Returns ``BillEstimate(0, "")`` until both home type and bedrooms are
    answered.
    """
    if not profile.is_complete:
        return BillEstimate(amount=0, category="")
    amount = base_monthly_cost(profile.home_type, profile.bedrooms)
    if profile.has_ev:
        amount += EV_SURCHARGE
    if profile.has_heat_pump:
        amount += HEAT_PUMP_SURCHARGE
    if profile.has_electric_shower:
        amount += ELECTRIC_SHOWER_SURCHARGE
    return BillEstimate(amount=amount, category=classify_usage(amount))


def average_consumption(bill_amount: int | None) -> int:
    return BILL_TO_KWH.get(bill_amount, DEFAULT_CONSUMPTION_KWH)


def annual_generation(forecast: list[dict]) -> float:
    return Proposal({"monthly_forecast": list(forecast)}).annual_generation


def energy_independence(
    forecast: list[dict],
    bill_amount: int | None,
    source: str = "calculator",
    calculated_at: str | None = None,
) -> DerivedEnergy:
    """Raw and practical energy independence for a generation forecast.

    ``practical = raw * SELF_CONSUMPTION_FACTOR`` before rounding, so the
    practical figure never exceeds the raw one.
    """
    pv = annual_generation(forecast)
    consumption = average_consumption(bill_amount)
    raw = 100 * pv / consumption if pv > 0 else 0
    practical = 100 * pv * SELF_CONSUMPTION_FACTOR / consumption if pv > 0 else 0
    return DerivedEnergy(
        annual_pv_generation_kwh=round_half_up(pv),
        average_consumption_kwh=consumption,
        raw_independence_pct=round_half_up(raw),
        practical_independence_pct=round_half_up(practical),
        self_consumption_factor=SELF_CONSUMPTION_FACTOR,
        calculated_at=calculated_at or utc_timestamp(),
        source=source,
    )


def should_store_energy(result: DerivedEnergy) -> bool:
    return result.annual_pv_generation_kwh > 0


def energy_offset_pct(annual_pv: float, bill_amount: int) -> int:
    if annual_pv <= 0 or bill_amount <= 0:
        return 0
    demand = (bill_amount * 12 / 0.35) * 0.95
    return min(100, round_half_up(annual_pv / demand * 100))


def max_panels_for(home_type: str) -> int:
    return MAX_PANELS.get((home_type or "").strip().lower(), DEFAULT_MAX_PANELS)


def cap_system_size(proposal: dict, home_type: str, panel_watts: int = 440) -> tuple[dict, bool]:
    """Clamp ``system_size`` (W) to what the property type can hold.

    Returns the (possibly new) proposal dict and whether it was clamped.
    """
    limit = max_panels_for(home_type) * panel_watts
    size = proposal.get("system_size")
    if isinstance(size, (int, float)) and not isinstance(size, bool) and size > limit:
        return {**proposal, "system_size": limit}, True
    return proposal, False


@dataclass(frozen=True)
class Co2Impact:
    tonnes_per_year: float
    trees_per_year: int
    cars_off_road: int
    lifetime_tonnes: float


def co2_avoided(system_size_kwp: float) -> Co2Impact:
    tonnes = round(system_size_kwp * 1000 * CO2_TONNES_PER_KWP / 1000, 2) if system_size_kwp > 0 else 0.0
    return Co2Impact(
        tonnes_per_year=tonnes,
        trees_per_year=round_half_up(tonnes * TREES_PER_TONNE),
        cars_off_road=round_half_up(tonnes / TONNES_PER_CAR),
        lifetime_tonnes=round(tonnes * LIFETIME_YEARS, 2),
    )


def seai_grant(house_built: str | None, pricing: Pricing) -> float:
    """Grant applies unless the house is known to be built after 2020."""
    if not house_built or house_built in GRANT_ELIGIBLE_BUILD_DATES:
        return pricing.seai_grant
    return 0.0


def system_base_cost(panel_count: int, pricing: Pricing, panel_adj: float = 0, inverter_adj: float = 0) -> float:
    extra = max(0, panel_count - pricing.base_panel_threshold)
    return pricing.base_system_price + extra * pricing.additional_panel_cost + panel_adj + inverter_adj


def annual_solar_savings(annual_pv: float, self_use: float, energy: EnergyAssumptions) -> float:
    export_fraction = 1 - self_use
    return annual_pv * (self_use * energy.grid_rate_day + export_fraction * energy.export_rate)


@dataclass(frozen=True)
class Economics:
    panel_count: int
    total_cost: float
    grants: float
    net_cost: float
    annual_savings: float
    monthly_savings: float
    payback_years: float
    bill_offset_pct: int


def payback(
    proposal: Proposal | None,
    bill_amount: int | None,
    house_built: str | None,
    pricing: Pricing,
    energy: EnergyAssumptions,
) -> Economics:
    if proposal is None:
        return Economics(0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0)
    panels = proposal.panel_count
    if not panels and proposal.system_size_w > 0:
        panels = math.ceil(proposal.system_size_w / pricing.panel_watts)
    if not panels:
        return Economics(0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0)

    total = system_base_cost(panels, pricing)
    grants = seai_grant(house_built, pricing)
    net = max(0.0, total - grants)
    savings = annual_solar_savings(proposal.annual_generation, SELF_CONSUMPTION_FACTOR, energy)
    payback = round(net / savings, 1) if savings > 0 else 0.0
    bill = bill_amount or DEFAULT_BILL_AMOUNT
    offset = min(100, round_half_up(savings / (bill * 12) * 100)) if savings > 0 else 0
    return Economics(
        panel_count=panels,
        total_cost=round(total, 2),
        grants=grants,
        net_cost=round(net, 2),
        annual_savings=round(savings, 2),
        monthly_savings=round(savings / 12, 2),
        payback_years=payback,
        bill_offset_pct=offset,
    )
