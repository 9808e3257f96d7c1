from __future__ import annotations

import logging
from itertools import count
from pathlib import Path

from adapters.solver.lp_text import format_lp
from domain.ports.solver import SolveResult, Solver
from domain.services.qp_terms import Model

logger = logging.getLogger(__name__)


class DumpingSolver(Solver):
    """Writes every model as an ``.lp`` file before handing it to ``inner``."""

    def __init__(self, inner: Solver, directory: Path) -> None:
        self.inner = inner
        self.directory = directory
        self._counter = count()

    def solve(self, model: Model) -> SolveResult:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"model_{next(self._counter):04d}.lp"
        path.write_text(format_lp(model), encoding="utf-8")
        logger.debug("Wrote solver model to %s", path)
        return self.inner.solve(model)
