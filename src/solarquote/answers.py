"""Typed accessors over the answer store.

Each storage key has one schema, narrowed here at the boundary. Components
read and write answers through ``Answers`` and never touch raw keys.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Mapping

from solarquote.store import AnswerStore

logger = logging.getLogger(__name__)

# Storage keys (shared with the web client, so the names are kept as-is)
LOCATION = "selectedLocation"
PERSONALISE = "personalise_answers"
PROPOSAL = "business_proposal"
ROOF_AREA = "roof_area"
ROOF_DEFAULTS = "roof_default_data"
MAX_PANELS = "max_panels"
ENERGY = "energy_independence_data"
CONTACT = "user_contact_info"
PROPERTY_DETAILS = "propertyDetails"
FINANCE = "financeInfo"
SIGNED_UP = "userSignedUp"
SIGNED_UP_EMAIL = "userEmail"
INSTALLER = "selectedInstaller"
INSTALLER_NAME = "installerName"
SITE_VISIT_SCHEDULED = "siteVisitScheduled"
SITE_VISIT_DATE = "siteVisitDate"
SITE_VISIT_TIME = "siteVisitTime"
SITE_VISIT_SKIPPED = "siteVisitSkipped"
CALL_SLOT = "selectedCallSlot"
BOOKING_OUTCOME = "bookingOutcome"
SOLAR_PLAN = "solar_plan_data"
LEAD_FORM = ("getPlan_email", "getPlan_firstName", "getPlan_phoneNumber")

HOME_PROFILE_FIELDS = ("homeType", "bedrooms", "hasEV", "hasHeatPump", "hasElectricShower")


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float
    address: str = ""
    confirmed: bool = False

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng, "address": self.address, "confirmed": self.confirmed}

    @classmethod
    def from_dict(cls, data: Any) -> "Location | None":
        if not isinstance(data, dict):
            return None
        try:
            return cls(
                lat=float(data["lat"]),
                lng=float(data["lng"]),
                address=_text(data.get("address")),
                confirmed=bool(data.get("confirmed", False)),
            )
        except (KeyError, TypeError, ValueError):
            return None


@dataclass
class HomeProfile:
    home_type: str = ""
    bedrooms: str = ""
    has_ev: bool = False
    has_heat_pump: bool = False
    has_electric_shower: bool = False

    @property
    def is_complete(self) -> bool:
        return bool(self.home_type and self.bedrooms)

    def to_dict(self) -> dict:
        return {
            "homeType": self.home_type,
            "bedrooms": self.bedrooms,
            "hasEV": self.has_ev,
            "hasHeatPump": self.has_heat_pump,
            "hasElectricShower": self.has_electric_shower,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "HomeProfile":
        if not isinstance(data, dict):
            return cls()
        return cls(
            home_type=_text(data.get("homeType")),
            bedrooms=_text(str(data.get("bedrooms") or "")),
            has_ev=bool(data.get("hasEV", False)),
            has_heat_pump=bool(data.get("hasHeatPump", False)),
            has_electric_shower=bool(data.get("hasElectricShower", False)),
        )


@dataclass
class Contact:
    full_name: str = ""
    email: str = ""
    phone: str = ""

    @property
    def has_identity(self) -> bool:
        return bool(self.full_name and self.email)

    def to_dict(self) -> dict:
        return {"fullName": self.full_name, "email": self.email, "phone": self.phone}

    @classmethod
    def from_dict(cls, data: Any) -> "Contact":
        if not isinstance(data, dict):
            return cls()
        return cls(
            full_name=_text(data.get("fullName")),
            email=_text(data.get("email")),
            phone=_text(data.get("phone")),
        )


@dataclass
class DerivedEnergy:
    annual_pv_generation_kwh: int = 0
    average_consumption_kwh: int = 0
    raw_independence_pct: int = 0
    practical_independence_pct: int = 0
    self_consumption_factor: float = 0.65
    calculated_at: str = ""
    source: str = ""

    @property
    def is_computed(self) -> bool:
        return self.annual_pv_generation_kwh > 0

    def to_dict(self) -> dict:
        return {
            "annualPVGeneration": self.annual_pv_generation_kwh,
            "averageConsumption": self.average_consumption_kwh,
            "rawIndependenceRatio": self.raw_independence_pct,
            "practicalIndependence": self.practical_independence_pct,
            "selfConsumptionFactor": self.self_consumption_factor,
            "calculatedAt": self.calculated_at,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "DerivedEnergy | None":
        if not isinstance(data, dict):
            return None
        try:
            return cls(
                annual_pv_generation_kwh=int(data.get("annualPVGeneration", 0)),
                average_consumption_kwh=int(data.get("averageConsumption", 0)),
                raw_independence_pct=int(data.get("rawIndependenceRatio", 0)),
                practical_independence_pct=int(data.get("practicalIndependence", 0)),
                self_consumption_factor=float(data.get("selfConsumptionFactor", 0.65)),
                calculated_at=_text(data.get("calculatedAt")),
                source=_text(data.get("source")),
            )
        except (TypeError, ValueError):
            return None


@dataclass(frozen=True)
class CallSlot:
    date: date
    time: str  # "h:mm AM/PM"

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "time": self.time}

    @classmethod
    def from_dict(cls, data: Any) -> "CallSlot | None":
        if not isinstance(data, dict):
            return None
        try:
            return cls(date=date.fromisoformat(data["date"]), time=_text(data["time"]))
        except (KeyError, TypeError, ValueError):
            return None


@dataclass
class BookingOutcome:
    status: str = "none"  # none | booked | failed
    error: str = ""

    def to_dict(self) -> dict:
        return {"status": self.status, "error": self.error}

    @classmethod
    def from_dict(cls, data: Any) -> "BookingOutcome":
        if not isinstance(data, dict) or data.get("status") not in ("none", "booked", "failed"):
            return cls()
        return cls(status=data["status"], error=_text(data.get("error")))


@dataclass
class Proposal:
    """Proposal service response body. Only existence-checked."""

    data: dict = field(default_factory=dict)

    @property
    def system_size_w(self) -> float:
        try:
            return float(self.data.get("system_size") or 0)
        except (TypeError, ValueError):
            return 0.0

    @property
    def system_size_kwp(self) -> float:
        return round(self.system_size_w / 1000, 2)

    @property
    def panel_count(self) -> int:
        try:
            return int(self.data.get("panel_count") or self.data.get("total_panels") or 0)
        except (TypeError, ValueError):
            return 0

    @property
    def monthly_forecast(self) -> list[dict]:
        forecast = self.data.get("monthly_forecast")
        if not isinstance(forecast, list):
            return []
        return [entry for entry in forecast if isinstance(entry, dict)]

    @property
    def annual_generation(self) -> float:
        total = 0.0
        for entry in self.monthly_forecast:
            value = entry.get("monthly_sum", entry.get("kwh", 0))
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                total += value
        return total


class Answers:
    """Typed view of one visitor's stored answers."""

    def __init__(self, store: AnswerStore):
        self.store = store

    # ── Location ──

    @property
    def location(self) -> Location | None:
        return Location.from_dict(self.store.get(LOCATION))

    def set_location(self, lat: float, lng: float, address: str) -> Location:
        current = self.location
        if current and current.confirmed:
            raise ValueError("location already confirmed")
        location = Location(lat=lat, lng=lng, address=address.strip())
        self.store.set(LOCATION, location.to_dict())
        return location

    def confirm_location(self) -> bool:
        if self.location is None:
            return False
        self.store.merge(LOCATION, {"confirmed": True})
        return True

    def unlock_location(self) -> None:
        if self.location is not None:
            self.store.merge(LOCATION, {"confirmed": False})

    # ── Bill and home profile ──

    @property
    def personalise(self) -> dict:
        value = self.store.get(PERSONALISE)
        return value if isinstance(value, dict) else {}

    @property
    def bill_amount(self) -> int | None:
        value = self.personalise.get("billAmount")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return int(value) if value > 0 else None

    @property
    def bill_is_estimated(self) -> bool:
        return bool(self.personalise.get("billEstimated", False))

    def set_bill_amount(self, value: int, estimated: bool = False) -> bool:
        """Store the monthly bill tier. Returns False when the write was refused.

        An estimate never replaces a bill the visitor entered explicitly.
        """
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(f"bill amount must be a positive integer, got {value!r}")
        if estimated and self.bill_amount is not None and not self.bill_is_estimated:
            logger.info("Keeping explicit bill %s over estimate %s", self.bill_amount, value)
            return False
        self.store.merge(PERSONALISE, {"billAmount": value, "billEstimated": estimated})
        return True

    def clear_bill(self) -> None:
        answers = {k: v for k, v in self.personalise.items() if k not in ("billAmount", "billEstimated")}
        self.store.set(PERSONALISE, answers)

    @property
    def home_profile(self) -> HomeProfile:
        return HomeProfile.from_dict(self.personalise)

    def set_home_profile(self, profile: HomeProfile) -> None:
        self.store.merge(PERSONALISE, profile.to_dict())

    def merge_personalise(self, partial: dict) -> dict:
        return self.store.merge(PERSONALISE, partial)

    # ── Proposal and derived data ──

    @property
    def proposal(self) -> Proposal | None:
        data = self.store.get(PROPOSAL)
        return Proposal(data) if isinstance(data, dict) else None

    @property
    def roof_area(self) -> float:
        value = self.store.get(ROOF_AREA, 0)
        return float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else 0.0

    @property
    def energy(self) -> DerivedEnergy | None:
        return DerivedEnergy.from_dict(self.store.get(ENERGY))

    def set_energy(self, energy: DerivedEnergy) -> None:
        self.store.merge(ENERGY, energy.to_dict())

    # ── Contact ──

    @property
    def contact(self) -> Contact:
        return Contact.from_dict(self.store.get(CONTACT))

    def merge_contact(self, full_name: str = "", email: str = "", phone: str = "") -> Contact:
        """Merge non-blank fields over the stored contact."""
        partial = {}
        if full_name.strip():
            partial["fullName"] = full_name.strip()
        if email.strip():
            partial["email"] = email.strip()
        if phone.strip():
            partial["phone"] = phone.strip()
        if partial:
            self.store.merge(CONTACT, partial)
        return self.contact

    def apply_url_params(self, params: Mapping[str, str]) -> Contact:
        """Merge ``email``/``name``/``phone`` query values; they win on conflict."""
        return self.merge_contact(
            full_name=params.get("name") or "",
            email=params.get("email") or "",
            phone=params.get("phone") or "",
        )

    def contact_fields_needed(self) -> bool:
        return not self.contact.has_identity

    # ── Call slot and booking ──

    @property
    def call_slot(self) -> CallSlot | None:
        return CallSlot.from_dict(self.store.get(CALL_SLOT))

    def set_call_slot(self, slot: CallSlot) -> None:
        self.store.set(CALL_SLOT, slot.to_dict())

    def clear_call_slot(self) -> None:
        self.store.remove(CALL_SLOT)

    @property
    def booking_outcome(self) -> BookingOutcome:
        return BookingOutcome.from_dict(self.store.get(BOOKING_OUTCOME))

    def set_booking_outcome(self, status: str, error: str = "") -> None:
        self.store.set(BOOKING_OUTCOME, BookingOutcome(status, error).to_dict())

    # ── Sign-up ──

    @property
    def signed_up(self) -> bool:
        return self.store.get(SIGNED_UP) is True

    def mark_signed_up(self, email: str) -> None:
        self.store.set(SIGNED_UP, True)
        self.store.set(SIGNED_UP_EMAIL, email)

    # ── Installer and site visit ──

    @property
    def installer(self) -> str:
        return _text(self.store.get(INSTALLER))

    def select_installer(self, installer_id: str, name: str) -> None:
        self.store.set(INSTALLER, installer_id)
        self.store.set(INSTALLER_NAME, name)

    @property
    def site_visit_scheduled(self) -> bool:
        return self.store.get(SITE_VISIT_SCHEDULED) is True

    @property
    def site_visit_skipped(self) -> bool:
        return self.store.get(SITE_VISIT_SKIPPED) is True

    def schedule_site_visit(self, day: date, time_label: str) -> None:
        self.store.set(SITE_VISIT_SCHEDULED, True)
        self.store.set(SITE_VISIT_DATE, day.isoformat())
        self.store.set(SITE_VISIT_TIME, time_label)
        self.store.remove(SITE_VISIT_SKIPPED)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()
