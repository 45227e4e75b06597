from enum import Enum

SKIPPABLE_STEPS = {"installer_selection", "site_visit"}
TERMINAL_STEPS = {"booking_confirmed", "completion"}


class Step(Enum):
    ADDRESS_ENTRY = "address_entry"
    BILL_ESTIMATION = "bill_estimation"
    PROPOSAL_LOADING = "proposal_loading"
    PERSONALIZATION = "personalization"
    PLAN_REVIEW = "plan_review"
    CALL_SCHEDULING = "call_scheduling"
    BOOKING_CONFIRMED = "booking_confirmed"
    LEAD_CAPTURE = "lead_capture"
    INSTALLER_SELECTION = "installer_selection"
    SITE_VISIT = "site_visit"
    COMPLETION = "completion"

    @property
    def is_skippable(self) -> bool:
        return self.value in SKIPPABLE_STEPS

    @property
    def is_terminal(self) -> bool:
        return self.value in TERMINAL_STEPS


class ScheduleStep(Enum):
    SELECT_DATE = "select_date"
    SELECT_TIME = "select_time"
    ENTER_DETAILS = "enter_details"
    BOOKING_SUCCESS = "booking_success"

    @property
    def is_terminal(self) -> bool:
        return self is ScheduleStep.BOOKING_SUCCESS
