"""Publish wizard step tracker (presentational bookkeeping only)"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class StepStatus(str, Enum):
    complete = "complete"
    current = "current"
    upcoming = "upcoming"


class Step(BaseModel, frozen=True):
    name: str
    status: StepStatus
    href: Optional[str] = None


STEP_NAMES = ("Build", "Metadata", "Mint")


def initial_steps(names: tuple[str, ...] = STEP_NAMES) -> list[Step]:
    """First step complete (the editor already built the document), second current, rest upcoming."""
    steps = []
    for i, name in enumerate(names):
        status = StepStatus.complete if i == 0 else StepStatus.current if i == 1 else StepStatus.upcoming
        steps.append(Step(name=name, status=status, href="/editor" if i == 0 else None))
    return steps


def advance(steps: list[Step], completed_index: int) -> list[Step]:
    """Return a new list with `completed_index` complete and its successor current.

    Out-of-range indexes return the steps unchanged; all other steps keep
    their prior status.
    """
    if not 0 <= completed_index < len(steps):
        return list(steps)
    new_steps = list(steps)
    new_steps[completed_index] = steps[completed_index].model_copy(update={"status": StepStatus.complete})
    nxt = completed_index + 1
    if nxt < len(steps):
        new_steps[nxt] = steps[nxt].model_copy(update={"status": StepStatus.current})
    return new_steps
