import logging

from solarquote.answers import Answers
from solarquote.store import AnswerStore, MemoryBackend

logger = logging.getLogger(__name__)

APP_NAVIGATION = "app_navigation"


class SessionContext:
    """Session-scoped flags, passed to every page instead of ambient globals.

    The navigation marker lives in a session store that ends with the
    process. The signed-up flag lives in the durable answers.
    """

    def __init__(self, answers: Answers, session_store: AnswerStore | None = None):
        self.answers = answers
        self.session_store = session_store or AnswerStore(MemoryBackend())

    def init(self) -> None:
        """Start a fresh session. Durable answers are left alone."""
        self.session_store.clear()

    @property
    def has_app_navigation(self) -> bool:
        return self.session_store.get(APP_NAVIGATION) == "true"

    def mark_page(self) -> bool:
        """Record a page mount. Returns True when this visit is direct."""
        if self.has_app_navigation:
            return False
        self.session_store.set(APP_NAVIGATION, "true")
        logger.info("Direct visit, navigation marker set")
        return True

    @property
    def signed_up(self) -> bool:
        return self.answers.signed_up

    def mark_signed_up(self, email: str) -> None:
        self.answers.mark_signed_up(email)

    def clear(self) -> None:
        self.session_store.remove(APP_NAVIGATION)
