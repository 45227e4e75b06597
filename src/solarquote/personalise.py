"""Personalisation questionnaire shown after the proposal has loaded."""

import logging
from dataclasses import dataclass

from solarquote.answers import Answers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Question:
    id: str
    options: tuple[str, ...]
    multi: bool = False


QUESTIONS = (
    Question("time-of-use", ("morning-evening", "evening", "all-day")),
    Question(
        "motivation",
        ("lowering-bills", "energy-independence", "futureproofing", "curious"),
        multi=True,
    ),
    Question("house-built-date", ("before-2021", "after-2020", "not-sure")),
)
QUESTION_IDS = tuple(q.id for q in QUESTIONS)


def sanitise_selections(value) -> list[str]:
    """Keep only string selections longer than one character."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and len(item) > 1]


class Questionnaire:
    """Walks the visitor through ``QUESTIONS`` one at a time.

    Single-choice answers advance automatically; the multi-select question
    advances on ``next()``. Answering the last question completes it.
    """

    def __init__(self, answers: Answers):
        self.answers = answers
        self.index = 0
        self.completed = False

    @property
    def current(self) -> Question:
        return QUESTIONS[self.index]

    def saved(self) -> dict:
        """Stored questionnaire answers with motivation sanitised."""
        stored = {k: v for k, v in self.answers.personalise.items() if k in QUESTION_IDS}
        if "motivation" in stored:
            stored["motivation"] = sanitise_selections(stored["motivation"])
        return stored

    def select(self, value: str) -> bool:
        """Answer the current single-choice question. Returns True once complete."""
        question = self.current
        if question.multi:
            self.toggle(value)
            return self.completed
        if value not in question.options:
            raise ValueError(f"{value!r} is not an option for {question.id}")
        self.answers.merge_personalise({question.id: value})
        return self.next()

    def toggle(self, value: str) -> list[str]:
        question = self.current
        if not question.multi:
            raise ValueError(f"{question.id} is single choice")
        if value not in question.options:
            raise ValueError(f"{value!r} is not an option for {question.id}")
        selections = sanitise_selections(self.answers.personalise.get(question.id))
        if value in selections:
            selections = [item for item in selections if item != value]
        else:
            selections = selections + [value]
        self.answers.merge_personalise({question.id: selections})
        return selections

    def next(self) -> bool:
        if self.index < len(QUESTIONS) - 1:
            self.index += 1
            return False
        self.completed = True
        logger.info("Personalisation complete")
        return True

    def back(self) -> bool:
        if self.index == 0:
            return False
        self.index -= 1
        return True
