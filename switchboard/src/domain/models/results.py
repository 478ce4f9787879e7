"""
Step outcome models for multi-step account operations.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class OutcomeStatus(Enum):
    """How a single step ended."""
    OK = "ok"                  # Step did its work
    SKIPPED = "skipped"        # Nothing to do (e.g. process was not running)
    NON_FATAL = "non_fatal"    # Best-effort part failed; sequence continues
    FAILED = "failed"          # Step failed; sequence continues unless the step is critical


@dataclass(frozen=True)
class StepOutcome:
    step: str
    status: OutcomeStatus
    message: str

    @property
    def succeeded(self) -> bool:
        return self.status in (OutcomeStatus.OK, OutcomeStatus.SKIPPED)


@dataclass
class SwitchReport:
    """Aggregated outcome of a switch / sign-in sequence."""
    operation: str
    account_id: Optional[str] = None
    outcomes: List[StepOutcome] = field(default_factory=list)

    def add(self, outcome: StepOutcome) -> StepOutcome:
        self.outcomes.append(outcome)
        return outcome

    @property
    def succeeded(self) -> bool:
        return all(outcome.succeeded for outcome in self.outcomes)

    def outcome_for(self, step: str) -> Optional[StepOutcome]:
        for outcome in self.outcomes:
            if outcome.step == step:
                return outcome
        return None

    @property
    def summary(self) -> str:
        """Human readable chain of every step's message."""
        return " -> ".join(outcome.message for outcome in self.outcomes)

    def __str__(self) -> str:
        return self.summary
