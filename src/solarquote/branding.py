"""White-label brand records: contact details, pricing and energy assumptions."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Pricing:
    base_panel_threshold: int = 8
    base_system_price: float = 7550
    additional_panel_cost: float = 350
    seai_grant: float = 1800
    default_ev_grant: float = 300
    panel_watts: int = 440


@dataclass(frozen=True)
class EnergyAssumptions:
    grid_rate_day: float = 0.35  # EUR/kWh
    grid_rate_night: float = 0.08
    export_rate: float = 0.20
    annual_price_increase: float = 0.03
    battery_round_trip_efficiency: float = 0.9


@dataclass(frozen=True)
class Brand:
    slug: str
    name: str
    website: str
    email: str
    phone: str
    logo: str
    address_template: str = "default"
    colors: dict = field(default_factory=dict)
    social: dict = field(default_factory=dict)
    email_branding: dict = field(default_factory=dict)
    pricing: Pricing = field(default_factory=Pricing)
    energy: EnergyAssumptions = field(default_factory=EnergyAssumptions)


DEFAULT_BRAND = "renewables"

BRANDS = {
    "renewables": Brand(
        slug="renewables",
        name="Renewables Ireland Limited",
        website="https://renewables-ireland.ie",
        email="info@renewables-ireland.ie",
        phone="+353 (0)1 298 6140",
        logo="/renewables.png",
        colors={"primary": "#1d4ed8", "secondary": "#059669", "accent": "#f59e0b"},
        social={
            "facebook": "https://www.facebook.com/higconrenewablesireland/",
            "linkedin": "https://www.linkedin.com/company/renewables-ireland-limited/",
        },
        email_branding={
            "company_name": "Voltflo inc.",
            "company_tagline": "SEAI Registered Solar Installation Company",
            "support_email": "solarpotential@voltflo.com",
            "phone_number": "(085) 834-9461",
            "phone_number_clean": "0858349461",
            "website_url": "https://staging.installer.voltflo.com",
            "backend_url": "https://staging-installerflow.voltflo.com",
            "logo_url": None,
            "platform_name": "Voltflo",
            "report_primary_color": "#1d4ed8",
            "report_secondary_color": "#059669",
            "call_primary_color": "#28a745",
            "call_secondary_color": "#007bff",
            "background_gradient": "linear-gradient(90deg,#dbeafe,#ecfdf5)",
            "calendar_button_color": "#1d4ed8",
        },
    ),
}


def get_branding(slug: str | None = None) -> Brand:
    return BRANDS.get((slug or "").strip().lower(), BRANDS[DEFAULT_BRAND])


def email_branding(slug: str | None = None) -> dict:
    return dict(get_branding(slug).email_branding)
