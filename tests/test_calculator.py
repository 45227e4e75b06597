import pytest

from solarquote.answers import HomeProfile, Proposal
from solarquote.branding import EnergyAssumptions, Pricing
from solarquote.calculator import (
    BILL_BANDS,
    base_monthly_cost,
    cap_system_size,
    classify_usage,
    co2_avoided,
    energy_independence,
    energy_offset_pct,
    estimate_bill,
    max_panels_for,
    payback,
    seai_grant,
    should_store_energy,
    system_base_cost,
    annual_solar_savings,
)


def forecast(total_kwh: float) -> list[dict]:
    return [{"label": f"M{i}", "monthly_sum": total_kwh / 12} for i in range(12)]


class TestBillEstimate:
    @pytest.mark.parametrize("home_type", ["terraced", "semi-detached", "detached", "apartment", "unknown"])
    @pytest.mark.parametrize("bedrooms", ["1", "2", "3", "4", "5+"])
    def test_lookup_is_total(self, home_type, bedrooms):
        assert base_monthly_cost(home_type, bedrooms) > 0

    def test_small_homes_cap_at_three_bed(self):
        assert base_monthly_cost("terraced", "1") == 105
        assert base_monthly_cost("apartment", "2") == 125
        assert base_monthly_cost("terraced", "4") == 140
        assert base_monthly_cost("apartment", "5+") == 140

    def test_semi_detached_and_detached_bands(self):
        assert base_monthly_cost("semi-detached", "2") == 150
        assert base_monthly_cost("semi-detached", "4") == 170
        assert base_monthly_cost("semi-detached", "5+") == 190
        assert base_monthly_cost("detached", "3") == 160
        assert base_monthly_cost("detached", "4") == 180
        assert base_monthly_cost("detached", "5") == 200

    def test_unknown_home_type_defaults(self):
        assert base_monthly_cost("bungalow", "3") == 140

    def test_semi_detached_with_ev_and_shower(self):
        profile = HomeProfile(home_type="Semi-detached", bedrooms="4", has_ev=True, has_electric_shower=True)
        estimate = estimate_bill(profile)
        assert estimate.amount == 245
        assert estimate.category == "High"

    def test_all_surcharges(self):
        profile = HomeProfile(
            home_type="terraced", bedrooms="1", has_ev=True, has_heat_pump=True, has_electric_shower=True,
        )
        assert estimate_bill(profile).amount == 105 + 60 + 80 + 15

    def test_incomplete_profile_is_not_estimated(self):
        estimate = estimate_bill(HomeProfile(home_type="detached"))
        assert estimate.amount == 0
        assert estimate.category == ""

    def test_category_boundaries(self):
        assert classify_usage(139) == "Low"
        assert classify_usage(140) == "Average"
        assert classify_usage(200) == "Average"
        assert classify_usage(201) == "High"

    def test_bill_bands(self):
        assert sorted(BILL_BANDS.values()) == [150, 250, 350, 450, 550, 700]


class TestEnergyIndependence:
    def test_matching_generation_and_consumption(self):
        result = energy_independence(forecast(4500), 250, source="test")
        assert result.annual_pv_generation_kwh == 4500
        assert result.average_consumption_kwh == 4500
        assert result.raw_independence_pct == 100
        assert result.practical_independence_pct == 65
        assert result.source == "test"

    def test_unknown_tier_uses_default_consumption(self):
        assert energy_independence(forecast(4200), 999).average_consumption_kwh == 4200
        assert energy_independence(forecast(4200), None).raw_independence_pct == 100

    def test_no_generation_is_zeroed(self):
        result = energy_independence([], 250)
        assert result.raw_independence_pct == 0
        assert result.practical_independence_pct == 0
        assert not should_store_energy(result)

    def test_practical_is_monotonic_and_bounded(self):
        previous = -1
        for kwh in range(0, 12000, 250):
            result = energy_independence(forecast(kwh), 350)
            assert result.practical_independence_pct >= previous
            assert result.practical_independence_pct <= result.raw_independence_pct
            previous = result.practical_independence_pct

    def test_recompute_is_identical(self):
        first = energy_independence(forecast(5321), 450, calculated_at="t")
        second = energy_independence(forecast(5321), 450, calculated_at="t")
        assert first == second

    def test_kwh_entries_accepted(self):
        result = energy_independence([{"label": "Jan", "kwh": 3000}], 150)
        assert result.raw_independence_pct == 100


class TestSizing:
    def test_max_panels(self):
        assert max_panels_for("detached") == 16
        assert max_panels_for("Semi-detached") == 12
        assert max_panels_for("terraced") == 10
        assert max_panels_for("apartment") == 12

    def test_cap_system_size(self):
        data, capped = cap_system_size({"system_size": 8000}, "terraced")
        assert capped
        assert data["system_size"] == 4400

    def test_cap_leaves_small_system(self):
        original = {"system_size": 3000}
        data, capped = cap_system_size(original, "terraced")
        assert not capped
        assert data is original


class TestEconomics:
    def test_co2(self):
        impact = co2_avoided(6.0)
        assert impact.tonnes_per_year == 3.0
        assert impact.trees_per_year == 34
        assert impact.cars_off_road == 2
        assert impact.lifetime_tonnes == 60.0

    def test_co2_zero_system(self):
        assert co2_avoided(0).tonnes_per_year == 0

    def test_seai_grant(self):
        pricing = Pricing()
        assert seai_grant("before-2021", pricing) == 1800
        assert seai_grant("not-sure", pricing) == 1800
        assert seai_grant(None, pricing) == 1800
        assert seai_grant("after-2020", pricing) == 0

    def test_system_base_cost(self):
        pricing = Pricing()
        assert system_base_cost(8, pricing) == 7550
        assert system_base_cost(6, pricing) == 7550
        assert system_base_cost(10, pricing) == 7550 + 2 * 350
        assert system_base_cost(10, pricing, panel_adj=100, inverter_adj=-50) == 7550 + 700 + 50

    def test_annual_solar_savings(self):
        savings = annual_solar_savings(1000, 0.65, EnergyAssumptions())
        assert savings == pytest.approx(1000 * (0.65 * 0.35 + 0.35 * 0.20))

    def test_energy_offset_capped(self):
        assert energy_offset_pct(100000, 150) == 100
        assert energy_offset_pct(0, 150) == 0

    def test_payback(self):
        proposal = Proposal({"panel_count": 10, "monthly_forecast": forecast(4000)})
        result = payback(proposal, 250, "before-2021", Pricing(), EnergyAssumptions())
        assert result.total_cost == 8250
        assert result.net_cost == 8250 - 1800
        assert result.annual_savings == pytest.approx(4000 * 0.2975)
        assert result.payback_years == round(6450 / (4000 * 0.2975), 1)

    def test_payback_derives_panels_from_size(self):
        proposal = Proposal({"system_size": 4400, "monthly_forecast": forecast(4000)})
        assert payback(proposal, 250, None, Pricing(), EnergyAssumptions()).panel_count == 10

    def test_payback_without_proposal(self):
        assert payback(None, 250, None, Pricing(), EnergyAssumptions()).payback_years == 0
