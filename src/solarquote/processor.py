import asyncio
import logging
from dataclasses import dataclass
from typing import Mapping

from solarquote.answers import Answers
from solarquote.api import FunnelAPI
from solarquote.availability import AvailabilityResolver
from solarquote.branding import DEFAULT_BRAND
from solarquote.config import Settings
from solarquote.proposal import ProposalResult, load_proposal
from solarquote.session import SessionContext
from solarquote.state_machine import FunnelController, Guard, SchedulingController
from solarquote.states import Step
from solarquote.store import AnswerStore, MemoryBackend, SqliteBackend
from solarquote.submission import DEFAULT_COMPANY_ID, SubmissionResult, submit_lead

logger = logging.getLogger(__name__)

CALL_PAGE = "call-page"


@dataclass
class PageView:
    page: str
    direct: bool
    show_sent_banner: bool
    contact_fields_needed: bool


class FunnelProcessor:
    """Drives one visitor's funnel.

    Owns the store, session, controllers and backend client for the
    lifetime of a visit. Background work (proposal fetch, availability
    refresh, follow-up emails) runs as tracked tasks that ``close()``
    cancels.
    """

    def __init__(
        self,
        answers: Answers,
        api: FunnelAPI,
        session: SessionContext | None = None,
        resolver: AvailabilityResolver | None = None,
        brand: str = DEFAULT_BRAND,
        company_id: int = DEFAULT_COMPANY_ID,
        hostname: str = "",
    ):
        self.answers = answers
        self.api = api
        self.session = session or SessionContext(answers)
        self.resolver = resolver or AvailabilityResolver(api)
        self.brand = brand
        self.company_id = company_id
        self.hostname = hostname
        self.funnel = FunnelController(answers)
        self.scheduling = SchedulingController(answers, self.resolver, api, brand, company_id)
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings, hostname: str = "") -> "FunnelProcessor":
        backend = SqliteBackend(settings.store_path) if settings.store_path else MemoryBackend()
        answers = Answers(AnswerStore(backend))
        api = FunnelAPI(base_url=settings.api_base_url, api_key=settings.api_key)
        resolver = AvailabilityResolver(api, timezone=settings.timezone)
        return cls(
            answers, api,
            resolver=resolver,
            brand=settings.brand,
            company_id=settings.company_id,
            hostname=hostname,
        )

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending_tasks(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def mount(self, page: str, params: Mapping[str, str] | None = None) -> PageView:
        """Page mount: set the navigation marker and merge URL contact params."""
        direct = self.session.mark_page()
        if params:
            self.answers.apply_url_params(params)
        return PageView(
            page=page,
            direct=direct,
            show_sent_banner=page == CALL_PAGE and not direct,
            contact_fields_needed=self.answers.contact_fields_needed(),
        )

    def start_loading(self) -> asyncio.Task:
        """Kick off the proposal fetch; the funnel advances once it settles."""
        if self.funnel.step is not Step.PROPOSAL_LOADING:
            raise RuntimeError(f"proposal loading started during {self.funnel.step.value}")
        self.funnel.cancel_loading()
        self.funnel.proposal_settled = False
        task = self._spawn(self._load_proposal())
        self.funnel.loading_task = task
        return task

    async def _load_proposal(self) -> ProposalResult:
        result = await load_proposal(self.answers, self.api)
        if self.funnel.step is not Step.PROPOSAL_LOADING:
            logger.info("Proposal settled after the funnel left loading, not advancing")
            return result
        self.funnel.proposal_settled = True
        self.funnel.loading_task = None
        guard = self.funnel.advance()
        if not guard.ok:
            logger.warning("Could not leave proposal loading: %s", guard.reason)
        return result

    def start_scheduling(self) -> asyncio.Task:
        """Refresh booked calls for the scheduling pages."""
        return self._spawn(self.resolver.refresh())

    async def submit_lead(self, name: str, email: str, phone: str = "", agreed: bool = True) -> SubmissionResult:
        return await submit_lead(
            self.answers, self.api,
            name=name, email=email, phone=phone,
            hostname=self.hostname, agreed=agreed, spawn=self._spawn,
        )

    def advance(self) -> Guard:
        return self.funnel.advance()

    async def close(self) -> None:
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info("Cancelled %d outstanding tasks", len(pending))
        await self.api.close()
        backend = self.answers.store.backend
        if isinstance(backend, SqliteBackend):
            backend.close()
