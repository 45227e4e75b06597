import pytest
from datetime import datetime
from zoneinfo import ZoneInfo

from solarquote.answers import Answers
from solarquote.api import FunnelAPI
from solarquote.availability import AvailabilityResolver
from solarquote.store import AnswerStore, MemoryBackend

BASE_URL = "https://api.test.example.com"
DUBLIN = ZoneInfo("Europe/Dublin")

# Wednesday morning; tomorrow is Thursday 14th, Sunday is the 17th
FIXED_NOW = datetime(2025, 8, 13, 10, 0, tzinfo=DUBLIN)


@pytest.fixture
def store():
    return AnswerStore(MemoryBackend())


@pytest.fixture
def answers(store):
    return Answers(store)


@pytest.fixture
def api():
    return FunnelAPI(base_url=BASE_URL)


@pytest.fixture
def resolver(api):
    return AvailabilityResolver(api)


@pytest.fixture
def located(answers):
    """Answers with a confirmed location and an explicit bill."""
    answers.set_location(53.27, -9.05, "1 Main Street, Galway")
    answers.confirm_location()
    answers.set_bill_amount(250)
    return answers
