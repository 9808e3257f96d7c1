from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Protocol

from domain.services.qp_terms import Model


class SolveStatus(str, Enum):
    OPTIMAL = "Optimal"
    INFEASIBLE = "Infeasible"
    UNBOUNDED = "Unbounded"
    ERROR = "Error"


@dataclass(frozen=True)
class SolveResult:
    status: SolveStatus
    values: Dict[str, float] = field(default_factory=dict)
    message: str = ""

    @property
    def is_optimal(self) -> bool:
        return self.status is SolveStatus.OPTIMAL


class Solver(Protocol):
    def solve(self, model: Model) -> SolveResult:
        ...
