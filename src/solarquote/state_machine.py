import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime

from solarquote import answers as keys
from solarquote.answers import Answers, CallSlot
from solarquote.api import FunnelAPI
from solarquote.availability import AvailabilityResolver
from solarquote.calculator import estimate_bill
from solarquote.personalise import QUESTION_IDS, Questionnaire
from solarquote.states import ScheduleStep, Step
from solarquote.submission import DEFAULT_COMPANY_ID, SLOT_UNAVAILABLE_MESSAGE, SubmissionResult, book_call
from solarquote.validation import parse_bill_amount

logger = logging.getLogger(__name__)


@dataclass
class Guard:
    ok: bool
    reason: str = ""
    redirect: Step | None = None


TRANSITIONS = {
    Step.ADDRESS_ENTRY: {Step.BILL_ESTIMATION},
    Step.BILL_ESTIMATION: {Step.PROPOSAL_LOADING},
    Step.PROPOSAL_LOADING: {Step.PERSONALIZATION},
    Step.PERSONALIZATION: {Step.PLAN_REVIEW},
    Step.PLAN_REVIEW: {Step.CALL_SCHEDULING, Step.LEAD_CAPTURE},
    Step.CALL_SCHEDULING: {Step.BOOKING_CONFIRMED},
    Step.BOOKING_CONFIRMED: set(),
    Step.LEAD_CAPTURE: {Step.INSTALLER_SELECTION, Step.SITE_VISIT, Step.COMPLETION},
    Step.INSTALLER_SELECTION: {Step.SITE_VISIT, Step.COMPLETION},
    Step.SITE_VISIT: {Step.COMPLETION},
    Step.COMPLETION: set(),
}

NEXT_STEP = {
    Step.ADDRESS_ENTRY: Step.BILL_ESTIMATION,
    Step.BILL_ESTIMATION: Step.PROPOSAL_LOADING,
    Step.PROPOSAL_LOADING: Step.PERSONALIZATION,
    Step.PERSONALIZATION: Step.PLAN_REVIEW,
    Step.PLAN_REVIEW: Step.CALL_SCHEDULING,
    Step.CALL_SCHEDULING: Step.BOOKING_CONFIRMED,
    Step.LEAD_CAPTURE: Step.INSTALLER_SELECTION,
    Step.INSTALLER_SELECTION: Step.COMPLETION,
    Step.SITE_VISIT: Step.COMPLETION,
}

# Store keys written while each step is active
STEP_KEYS = {
    Step.PROPOSAL_LOADING: (
        keys.PROPOSAL, keys.ROOF_AREA, keys.ROOF_DEFAULTS, keys.MAX_PANELS,
        keys.ENERGY, keys.PROPERTY_DETAILS, keys.SOLAR_PLAN,
    ),
    Step.CALL_SCHEDULING: (keys.CALL_SLOT, keys.BOOKING_OUTCOME),
    Step.LEAD_CAPTURE: keys.LEAD_FORM,
    Step.INSTALLER_SELECTION: (keys.INSTALLER, keys.INSTALLER_NAME),
    Step.SITE_VISIT: (
        keys.SITE_VISIT_SCHEDULED, keys.SITE_VISIT_DATE, keys.SITE_VISIT_TIME, keys.SITE_VISIT_SKIPPED,
    ),
}
BILL_FIELDS = ("billAmount", "billEstimated") + keys.HOME_PROFILE_FIELDS

# Steps that run on their own and are passed over when going back
TRANSIENT_STEPS = {Step.PROPOSAL_LOADING}


class FunnelController:
    """Address-to-plan funnel.

    ``advance``/``go_to`` check the exit guard of the current step,
    ``back`` returns to the previous step and clears what it and every later
    step wrote, ``skip`` clears a skippable step and moves on.
    """

    def __init__(self, answers: Answers, step: Step = Step.ADDRESS_ENTRY):
        self.answers = answers
        self.step = step
        self.history: list[Step] = [step]
        self.proposal_settled = False
        self.loading_task: asyncio.Task | None = None
        self.questionnaire = Questionnaire(answers)

    def valid_transitions(self, step: Step | None = None) -> set[Step]:
        return TRANSITIONS.get(step or self.step, set())

    def _move(self, target: Step) -> None:
        logger.info("Funnel %s -> %s", self.step.value, target.value)
        self.step = target
        self.history.append(target)

    def advance(self) -> Guard:
        target = NEXT_STEP.get(self.step)
        if target is None:
            return Guard(False, f"{self.step.value} is the last step")
        return self.go_to(target)

    def go_to(self, target: Step) -> Guard:
        if target not in self.valid_transitions():
            logger.warning("Illegal funnel transition %s -> %s", self.step.value, target.value)
            return Guard(False, f"cannot go from {self.step.value} to {target.value}")

        guard = getattr(self, f"_exit_{self.step.value}")()
        if not guard.ok:
            return guard

        if target is Step.SITE_VISIT and not self.answers.signed_up:
            logger.info("Site visit needs a signed-up user, routing to lead capture")
            if self.step is not Step.LEAD_CAPTURE:
                self._move(Step.LEAD_CAPTURE)
            return Guard(False, "Save your plan before booking a site visit", redirect=Step.LEAD_CAPTURE)

        self._move(target)
        return Guard(True)

    def back(self) -> Guard:
        if self.step.is_terminal or len(self.history) < 2:
            return Guard(False, f"cannot go back from {self.step.value}")

        left = [self.history.pop()]
        while len(self.history) > 1 and self.history[-1] in TRANSIENT_STEPS:
            left.append(self.history.pop())
        target = self.history[-1]
        for step in left + [target]:
            self._clear(step)
        logger.info("Funnel back %s -> %s", self.step.value, target.value)
        self.step = target
        return Guard(True)

    def skip(self) -> Guard:
        if not self.step.is_skippable:
            return Guard(False, f"{self.step.value} cannot be skipped")
        skipped = self.step
        self._clear(skipped)
        if skipped is Step.SITE_VISIT:
            self.answers.store.set(keys.SITE_VISIT_SKIPPED, True)
        logger.info("Skipped %s", skipped.value)
        self._move(NEXT_STEP[skipped])
        return Guard(True)

    def enter_bill(self, raw) -> Guard:
        """Manually entered monthly bill, e.g. "€180" or 180."""
        if self.step is not Step.BILL_ESTIMATION:
            return Guard(False, f"cannot enter a bill during {self.step.value}")
        amount = parse_bill_amount(raw)
        if amount is None:
            return Guard(False, "Enter your monthly bill as a whole amount above zero")
        self.answers.set_bill_amount(amount)
        return Guard(True)

    def _clear(self, step: Step) -> None:
        store = self.answers.store
        if step is Step.ADDRESS_ENTRY:
            self.answers.unlock_location()
        elif step is Step.BILL_ESTIMATION:
            self._drop_personalise(BILL_FIELDS)
        elif step is Step.PERSONALIZATION:
            self._drop_personalise(QUESTION_IDS)
            self.questionnaire = Questionnaire(self.answers)
        if step is Step.PROPOSAL_LOADING:
            self.cancel_loading()
            self.proposal_settled = False
        store.remove(*STEP_KEYS.get(step, ()))

    def cancel_loading(self) -> None:
        task, self.loading_task = self.loading_task, None
        if task is not None and not task.done():
            logger.info("Cancelling in-flight proposal fetch")
            task.cancel()

    def _drop_personalise(self, fields) -> None:
        remaining = {k: v for k, v in self.answers.personalise.items() if k not in fields}
        self.answers.store.set(keys.PERSONALISE, remaining)

    # ── Exit guards ──

    def _exit_address_entry(self) -> Guard:
        location = self.answers.location
        if location is None or not location.confirmed:
            return Guard(False, "Confirm your address to continue")
        return Guard(True)

    def _exit_bill_estimation(self) -> Guard:
        if self.answers.bill_amount is not None:
            return Guard(True)
        profile = self.answers.home_profile
        if profile.is_complete:
            estimate = estimate_bill(profile)
            self.answers.set_bill_amount(estimate.amount, estimated=True)
            logger.info("Estimated bill %d (%s)", estimate.amount, estimate.category)
            return Guard(True)
        return Guard(False, "Choose your monthly bill or tell us about your home")

    def _exit_proposal_loading(self) -> Guard:
        if not self.proposal_settled:
            return Guard(False, "Still preparing your proposal")
        return Guard(True)

    def _exit_personalization(self) -> Guard:
        if not self.questionnaire.completed:
            return Guard(False, "Answer the remaining questions")
        return Guard(True)

    def _exit_plan_review(self) -> Guard:
        return Guard(True)

    def _exit_call_scheduling(self) -> Guard:
        if self.answers.booking_outcome.status != "booked":
            return Guard(False, "Book a call to continue")
        return Guard(True)

    def _exit_lead_capture(self) -> Guard:
        if not self.answers.signed_up:
            return Guard(False, "Save your plan to continue")
        return Guard(True)

    def _exit_installer_selection(self) -> Guard:
        if not self.answers.installer:
            return Guard(False, "Choose an installer or skip")
        return Guard(True)

    def _exit_site_visit(self) -> Guard:
        if not self.answers.site_visit_scheduled:
            return Guard(False, "Pick a site visit time or skip")
        return Guard(True)


class SchedulingController:
    """select_date -> select_time -> enter_details -> booking_success."""

    def __init__(
        self,
        answers: Answers,
        resolver: AvailabilityResolver,
        api: FunnelAPI,
        brand_slug: str | None = None,
        company_id: int = DEFAULT_COMPANY_ID,
    ):
        self.answers = answers
        self.resolver = resolver
        self.api = api
        self.brand_slug = brand_slug
        self.company_id = company_id
        self.step = ScheduleStep.SELECT_DATE
        self.selected_date: date | None = None
        self.last_error = ""

    @property
    def contact_fields_needed(self) -> bool:
        return self.answers.contact_fields_needed()

    def available_times(self, now: datetime | None = None) -> list[str]:
        if self.selected_date is None:
            return []
        return self.resolver.offerable_slots(self.selected_date, now)

    def select_date(self, day: date, now: datetime | None = None) -> Guard:
        if self.step is not ScheduleStep.SELECT_DATE:
            return Guard(False, f"cannot pick a date during {self.step.value}")
        if not self.resolver.is_date_selectable(day, now):
            return Guard(False, "No available times on that date")
        self.selected_date = day
        self.step = ScheduleStep.SELECT_TIME
        return Guard(True)

    def select_time(self, label: str, now: datetime | None = None) -> Guard:
        if self.step is not ScheduleStep.SELECT_TIME or self.selected_date is None:
            return Guard(False, f"cannot pick a time during {self.step.value}")
        if not self.resolver.is_offerable(self.selected_date, label, now):
            return Guard(False, SLOT_UNAVAILABLE_MESSAGE)
        self.answers.set_call_slot(CallSlot(self.selected_date, label))
        self.step = ScheduleStep.ENTER_DETAILS
        return Guard(True)

    async def submit(self, name: str = "", email: str = "", phone: str = "", now: datetime | None = None) -> SubmissionResult:
        if self.step is not ScheduleStep.ENTER_DETAILS:
            return SubmissionResult(ok=False, error=f"cannot submit during {self.step.value}")
        result = await book_call(
            self.answers, self.api, self.resolver,
            name=name, email=email, phone=phone,
            brand_slug=self.brand_slug, company_id=self.company_id, now=now,
        )
        self.last_error = result.error
        if result.ok:
            self.step = ScheduleStep.BOOKING_SUCCESS
        return result

    def back(self) -> Guard:
        if self.step is ScheduleStep.SELECT_TIME:
            self.selected_date = None
            self.answers.clear_call_slot()
            self.step = ScheduleStep.SELECT_DATE
        elif self.step is ScheduleStep.ENTER_DETAILS:
            self.answers.clear_call_slot()
            self.step = ScheduleStep.SELECT_TIME
        else:
            return Guard(False, f"cannot go back from {self.step.value}")
        self.last_error = ""
        return Guard(True)
