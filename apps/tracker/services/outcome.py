"""Outcome evaluators: decide whether a finished rollout succeeded.

The random evaluator is a placeholder for real health-check results. Swap
in an evaluator that queries the target (HTTP health endpoint, metrics,
kube readiness) before using this for real deployments.
"""

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass

from apps.tracker.models.deployment import DeploymentRecord


@dataclass(frozen=True)
class Outcome:
    success: bool
    reason: str = ""


class OutcomeEvaluator(ABC):

    @abstractmethod
    async def evaluate(self, record: DeploymentRecord) -> Outcome:
        ...


class RandomOutcomeEvaluator(OutcomeEvaluator):
    """Succeeds with probability `success_rate`."""

    def __init__(self, success_rate: float = 0.9, rng: random.Random | None = None):
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError("success_rate must be between 0 and 1")
        self.success_rate = success_rate
        self._rng = rng or random.Random()

    async def evaluate(self, record: DeploymentRecord) -> Outcome:
        if self._rng.random() < self.success_rate:
            return Outcome(success=True)
        return Outcome(success=False, reason="health checks did not pass")


class StaticOutcomeEvaluator(OutcomeEvaluator):
    """Always returns the same outcome."""

    def __init__(self, success: bool = True, reason: str = ""):
        self._outcome = Outcome(success=success, reason=reason or ("" if success else "health checks did not pass"))

    async def evaluate(self, record: DeploymentRecord) -> Outcome:
        return self._outcome
