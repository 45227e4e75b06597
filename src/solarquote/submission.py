"""Lead capture and call booking submissions.

Both flows read everything they send from the answer store. Failures come
back as values the page can render; nothing entered by the visitor is lost.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Coroutine

import httpx

from solarquote import answers as keys
from solarquote.answers import Answers, utc_timestamp
from solarquote.api import FunnelAPI
from solarquote.availability import AvailabilityResolver, SlotUnavailableError, format_call_date
from solarquote.branding import email_branding, get_branding
from solarquote.calculator import co2_avoided, energy_offset_pct, payback
from solarquote.validation import validate_email, validate_name, validate_phone

logger = logging.getLogger(__name__)

DEFAULT_COMPANY_ID = 3
PLAN_VERSION = "1.0"

SLOT_UNAVAILABLE_MESSAGE = "Please choose an available time at least 4 hours from now."
BOOKING_INCOMPLETE_MESSAGE = "Please complete all fields with a valid time at least 4 hours from now."
BOOKING_FALLBACK_MESSAGE = "Failed to book your call. Please try again."


@dataclass(frozen=True)
class LeadError:
    category: str  # validation | duplicate_user | server_error | network_error | unknown
    title: str
    message: str
    action: str = ""


@dataclass
class SubmissionResult:
    ok: bool
    error: str = ""
    lead_error: LeadError | None = None
    data: dict = field(default_factory=dict)


MISSING_IDENTITY = LeadError(
    "validation",
    "Required Information Missing",
    "Please enter both your full name and email address to continue.",
)
AGREEMENT_REQUIRED = LeadError(
    "validation",
    "Agreement Required",
    "Please agree to receive your personalised report by email to continue.",
)


def redact_email(email: str) -> str:
    local, sep, domain = (email or "").partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def redact_phone(phone: str) -> str:
    digits = "".join(ch for ch in phone or "" if ch.isdigit())
    return f"***{digits[-3:]}" if digits else "***"


def credit_union_for(hostname: str) -> str:
    return "synergy" if "synergy" in (hostname or "").lower() else "loughrea"


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return ""
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return ""


def classify_lead_error(exc: Exception, email: str) -> LeadError:
    """Map a failed create-lead call to what the visitor sees."""
    if isinstance(exc, httpx.TransportError):
        return LeadError(
            "network_error",
            "Connection Problem",
            "Unable to connect to our servers. Please check your internet connection and try again.",
            "Retry",
        )
    if not isinstance(exc, httpx.HTTPStatusError):
        return _unknown_error()

    status = exc.response.status_code
    message = _error_message(exc.response)
    if status == 400:
        if "Name is required" in message:
            return LeadError("validation", "Name Required", "Please enter your full name to continue.")
        if "Email is required" in message:
            return LeadError(
                "validation", "Email Required", "Please enter a valid email address to receive your plan."
            )
        if "Consent is required" in message or "Consent must be a boolean" in message:
            return AGREEMENT_REQUIRED
        return LeadError(
            "validation", "Information Missing", "Please check that all required fields are filled out correctly."
        )
    if status == 409:
        return LeadError(
            "duplicate_user",
            "Account Already Exists",
            f'An account with the email "{email}" already exists. '
            "If this is your email, your plan has already been sent to you.",
            "Check Email",
        )
    if status == 500:
        if "Failed to create user" in message:
            return LeadError(
                "server_error",
                "Unable to Save Plan",
                "We encountered a problem saving your information. Please try again in a few moments.",
                "Try Again",
            )
        return LeadError(
            "server_error",
            "Server Error",
            "Our servers are experiencing issues. Please try again in a few minutes.",
            "Retry",
        )
    return _unknown_error()


def _unknown_error() -> LeadError:
    return LeadError(
        "unknown",
        "Unexpected Error",
        "Something unexpected happened. Please try again or contact support if the problem persists.",
        "Try Again",
    )


def build_lead_payload(answers: Answers, name: str, email: str, phone: str, hostname: str) -> dict:
    energy = answers.energy
    store = answers.store
    return {
        "name": name,
        "email": email,
        "phone_number": phone or None,
        "business_proposal": store.get(keys.PROPOSAL),
        "personalise_answers": store.get(keys.PERSONALISE),
        "selectedLocation": store.get(keys.LOCATION),
        "roof_area": store.get(keys.ROOF_AREA),
        "energy_independence": energy.practical_independence_pct if energy else None,
        "financeInfo": store.get(keys.FINANCE),
        "consent": False,
        "credit_union": credit_union_for(hostname),
    }


def build_solar_plan(answers: Answers, brand_slug: str | None = None) -> dict:
    """Summary of the plan shown to the visitor, sent along with a booking."""
    brand = get_branding(brand_slug)
    proposal = answers.proposal
    house_built = answers.personalise.get("house-built-date")
    economics = payback(proposal, answers.bill_amount, house_built, brand.pricing, brand.energy)
    kwp = proposal.system_size_kwp if proposal else 0.0
    energy = answers.energy
    annual_pv = proposal.annual_generation if proposal else 0
    co2 = co2_avoided(kwp)
    return {
        "systemSpecs": {
            "systemSizeKwp": kwp,
            "annualPVGenerated": annual_pv,
            "annualBillAmount": (answers.bill_amount or 0) * 12,
            "energyOffset": energy_offset_pct(annual_pv, answers.bill_amount or 0),
        },
        "systemConfiguration": {"totalPanelCount": economics.panel_count},
        "costs": {
            "totalSystemCost": economics.total_cost,
            "seaiGrant": economics.grants,
            "finalPrice": economics.net_cost,
        },
        "savings": {
            "totalAnnualSavings": economics.annual_savings,
            "paybackPeriod": economics.payback_years,
            "billOffset": economics.bill_offset_pct,
            "gridIndependence": energy.practical_independence_pct if energy else 0,
        },
        "environmental": {
            "co2TonnesPerYear": co2.tonnes_per_year,
            "treesPerYear": co2.trees_per_year,
            "carsOffRoad": co2.cars_off_road,
        },
        "personalise_answers": answers.personalise or None,
        "metadata": {
            "planCreatedAt": utc_timestamp(),
            "planVersion": PLAN_VERSION,
            "businessProposal": proposal.data if proposal else None,
        },
    }


def build_booking_payload(
    answers: Answers,
    name: str,
    email: str,
    phone: str,
    brand_slug: str | None = None,
    company_id: int = DEFAULT_COMPANY_ID,
) -> dict:
    slot = answers.call_slot
    store = answers.store
    plan = store.get(keys.SOLAR_PLAN)
    return {
        "email": email,
        "name": name,
        "phone": phone,
        "call_date": format_call_date(slot.date) if slot else "",
        "call_time": slot.time if slot else "",
        "solar_plan_data": plan if isinstance(plan, dict) else build_solar_plan(answers, brand_slug),
        "personalise_answers": store.get(keys.PERSONALISE),
        "selectedLocation": store.get(keys.LOCATION),
        "branding": email_branding(brand_slug),
        "company_id": company_id,
    }


# Holds fire-and-forget tasks until they finish
_background_tasks: set[asyncio.Task] = set()


def spawn_background(coro) -> asyncio.Task:
    task = asyncio.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def _send_userflow_email(api: FunnelAPI, email: str) -> None:
    try:
        await api.send_userflow_email(email)
        logger.info("User flow email sent to %s", redact_email(email))
    except httpx.HTTPError as e:
        logger.warning("User flow email failed for %s: %s", redact_email(email), e)


async def submit_lead(
    answers: Answers,
    api: FunnelAPI,
    name: str,
    email: str,
    phone: str = "",
    hostname: str = "",
    agreed: bool = True,
    spawn: Callable[[Coroutine[Any, Any, None]], asyncio.Task] = spawn_background,
) -> SubmissionResult:
    """Create the lead. On success the user is marked signed up."""
    name, email, phone = name.strip(), email.strip(), phone.strip()
    for key, value in zip(keys.LEAD_FORM, (email, name, phone)):
        answers.store.set(key, value)

    if not validate_name(name) or not validate_email(email):
        return SubmissionResult(ok=False, error=MISSING_IDENTITY.message, lead_error=MISSING_IDENTITY)
    if not agreed:
        return SubmissionResult(ok=False, error=AGREEMENT_REQUIRED.message, lead_error=AGREEMENT_REQUIRED)

    payload = build_lead_payload(answers, name, email, phone, hostname)
    try:
        data = await api.create_lead(payload)
    except httpx.HTTPError as e:
        lead_error = classify_lead_error(e, email)
        logger.error("Lead submission failed for %s: %s (%s)", redact_email(email), e, lead_error.category)
        return SubmissionResult(ok=False, error=lead_error.message, lead_error=lead_error)

    logger.info("Lead created for %s", redact_email(email))
    spawn(_send_userflow_email(api, email))
    answers.mark_signed_up(email)
    answers.merge_contact(full_name=name, email=email, phone=phone)
    return SubmissionResult(ok=True, data=data if isinstance(data, dict) else {})


async def book_call(
    answers: Answers,
    api: FunnelAPI,
    resolver: AvailabilityResolver,
    name: str = "",
    email: str = "",
    phone: str = "",
    brand_slug: str | None = None,
    company_id: int = DEFAULT_COMPANY_ID,
    now: datetime | None = None,
) -> SubmissionResult:
    """Book the selected call slot after re-checking it is still free."""
    known = answers.contact
    name = validate_name(name) or known.full_name
    email = validate_email(email) or known.email
    phone = validate_phone(phone)
    slot = answers.call_slot

    if not (name and email and phone and slot):
        return SubmissionResult(ok=False, error=BOOKING_INCOMPLETE_MESSAGE)

    await resolver.refresh()
    try:
        resolver.check_slot(slot.date, slot.time, now)
    except SlotUnavailableError as e:
        logger.warning("Slot rejected at submission: %s", e)
        answers.set_booking_outcome("failed", SLOT_UNAVAILABLE_MESSAGE)
        return SubmissionResult(ok=False, error=SLOT_UNAVAILABLE_MESSAGE)

    payload = build_booking_payload(answers, name, email, phone, brand_slug, company_id)
    try:
        data = await api.book_call(payload)
    except httpx.HTTPError as e:
        message = ""
        if isinstance(e, httpx.HTTPStatusError):
            message = _error_message(e.response)
        message = message or BOOKING_FALLBACK_MESSAGE
        logger.error("Call booking failed for %s: %s", redact_email(email), e)
        answers.set_booking_outcome("failed", message)
        return SubmissionResult(ok=False, error=message)

    logger.info(
        "Call booked for %s (%s) on %s at %s",
        redact_email(email), redact_phone(phone), slot.date.isoformat(), slot.time,
    )
    answers.merge_contact(full_name=name, email=email, phone=phone)
    answers.set_booking_outcome("booked")
    return SubmissionResult(ok=True, data=data if isinstance(data, dict) else {})
