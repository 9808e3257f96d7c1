from __future__ import annotations

from pathlib import Path

from adapters.solver.dumping_solver import DumpingSolver
from domain.ports.solver import SolveResult, SolveStatus
from domain.services.qp_terms import Model, variable
from tests.helpers.storylines import RecordingSolver


def test_dumps_each_model_then_delegates(tmp_path: Path) -> None:
    inner = RecordingSolver(result=SolveResult(status=SolveStatus.OPTIMAL, values={"x": 1.0}))
    solver = DumpingSolver(inner, tmp_path / "models")
    x = variable("x")

    first = solver.solve(Model(objective=x))
    solver.solve(Model(objective=x, constraints=[x.greater_or_equal(1)]))

    assert first.values == {"x": 1.0}
    assert inner.calls == 2
    files = sorted(path.name for path in (tmp_path / "models").iterdir())
    assert files == ["model_0000.lp", "model_0001.lp"]
    assert "c0: -1 x <= -1" in (tmp_path / "models" / "model_0001.lp").read_text(encoding="utf-8")
