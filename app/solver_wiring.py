from __future__ import annotations

from adapters.solver.dumping_solver import DumpingSolver
from adapters.solver.highs_solver import HighsSolver, HighsSolverConfig
from app.config import AppSettings
from domain.ports.solver import Solver


def build_solver(settings: AppSettings) -> Solver:
    solver_settings = settings.solver
    solver: Solver = HighsSolver(
        HighsSolverConfig(qp_max_iterations=solver_settings.qp_max_iterations)
    )
    if solver_settings.dump_dir is not None:
        solver = DumpingSolver(solver, solver_settings.dump_dir)
    return solver
