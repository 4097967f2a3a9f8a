"""
Declarative step graph for the chat application.
A Step's prompts, options and next step are either constants or pure functions of
the record (and the raw answer, for next step); resolve_* hides the difference.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Union

from schemas.application import ApplicationRecord
from services.validators import Validator

logger = logging.getLogger(__name__)


class InputKind(str, enum.Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    EMAIL = "email"
    PHONE = "phone"
    SELECT = "select"
    CONFIRM = "confirm"
    DISAMBIGUATION_SELECT = "disambiguation_select"


# Free-entry inputs always wait for the applicant, even on action steps without options
FREE_ENTRY_KINDS = frozenset({InputKind.TEXT, InputKind.NUMBER, InputKind.EMAIL, InputKind.PHONE, InputKind.DATE})


class Outcome(str, enum.Enum):
    COMPLETE = "complete"
    LEAD_CAPTURED = "lead_captured"
    SAVED = "saved"
    INELIGIBLE = "ineligible"


# Outcomes that finish the application and clear the saved snapshot
SUCCESS_OUTCOMES = frozenset({Outcome.COMPLETE, Outcome.LEAD_CAPTURED})

Prompts = Union[tuple[str, ...], Callable[[ApplicationRecord], list[str]]]
Options = Union[tuple[str, ...], Callable[[ApplicationRecord], list[str]]]
NextStep = Union[str, Callable[[str, ApplicationRecord], str]]
SkipRule = Callable[[ApplicationRecord], bool]


class UnknownStepError(KeyError):
    """A step id that is not in the graph; a flow configuration error."""


@dataclass(frozen=True)
class Step:
    id: str
    prompts: Prompts = ()
    input_kind: InputKind = InputKind.TEXT
    options: Options = ()
    field_path: Optional[str] = None
    validate: Optional[Validator] = None
    action: Optional[str] = None
    next_step: Optional[NextStep] = None
    skip_if: Optional[SkipRule] = None
    placeholder: Optional[str] = None
    outcome: Optional[Outcome] = None
    persist: bool = True

    @property
    def is_terminal(self) -> bool:
        return self.outcome is not None

    def resolve_prompts(self, record: ApplicationRecord) -> list[str]:
        if callable(self.prompts):
            return list(self.prompts(record))
        return list(self.prompts)

    def resolve_options(self, record: ApplicationRecord) -> list[str]:
        if callable(self.options):
            return list(self.options(record))
        return list(self.options)

    def resolve_next(self, answer: str, record: ApplicationRecord) -> Optional[str]:
        if callable(self.next_step):
            return self.next_step(answer, record)
        return self.next_step

    def should_skip(self, record: ApplicationRecord) -> bool:
        return bool(self.skip_if and self.skip_if(record))

    def auto_progresses(self, options: list[str]) -> bool:
        """Action steps with no options and a non free-entry input run without a turn."""
        return bool(self.action) and not options and self.input_kind not in FREE_ENTRY_KINDS


class StepGraph:
    def __init__(self, steps: Iterable[Step], entry_step_id: str):
        self._steps: dict[str, Step] = {}
        for step in steps:
            if step.id in self._steps:
                raise ValueError(f"Duplicate step id: {step.id}")
            self._steps[step.id] = step
        if entry_step_id not in self._steps:
            raise UnknownStepError(entry_step_id)
        self.entry_step_id = entry_step_id

    def __contains__(self, step_id: str) -> bool:
        return step_id in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def get(self, step_id: str) -> Step:
        try:
            return self._steps[step_id]
        except KeyError:
            raise UnknownStepError(step_id) from None

    @property
    def entry_step(self) -> Step:
        return self._steps[self.entry_step_id]

    def is_terminal(self, step_id: str) -> bool:
        step = self._steps.get(step_id)
        return step is not None and step.is_terminal

    def step_ids(self) -> list[str]:
        return list(self._steps)

    def check(self) -> list[str]:
        """Problems found in constant transitions: missing targets, dead ends."""
        problems = []
        for step in self._steps.values():
            if isinstance(step.next_step, str) and step.next_step not in self._steps:
                problems.append(f"{step.id}: next step '{step.next_step}' does not exist")
            if step.next_step is None and not step.is_terminal:
                problems.append(f"{step.id}: no next step and not terminal")
        return problems
