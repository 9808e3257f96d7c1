from __future__ import annotations

import pytest

from adapters.solver.lp_text import format_lp
from domain.services.qp_terms import Bound, Model, variable


def test_linear_model_sections() -> None:
    x, y = variable("x"), variable("y")
    model = Model(
        objective=x + y * 2,
        constraints=[(x + y).greater_or_equal(3), x.equal_to(y)],
        bounds=[Bound("x", 0.0, 2.0)],
        variables=["idle"],
    )

    text = format_lp(model)

    assert text.splitlines() == [
        "Minimize",
        " obj: 1 x + 2 y",
        "Subject To",
        " c0: -1 x - 1 y <= -3",
        " c1: 1 x - 1 y = 0",
        "Bounds",
        " 0 <= idle <= +inf",
        " 0 <= x <= 2",
        " 0 <= y <= +inf",
        "End",
    ]


def test_quadratic_objective_uses_bracket_halved_form() -> None:
    x, y = variable("x"), variable("y")
    model = Model(objective=(x - y).squared() + variable("z"), sense="max")

    objective = format_lp(model).splitlines()[1]

    assert format_lp(model).startswith("Maximize\n")
    assert objective == " obj: 1 z + [ 2 x ^ 2 - 4 y * x + 2 y ^ 2 ] / 2"


def test_free_variable_bound_and_empty_objective() -> None:
    x = variable("x")
    model = Model(
        objective=x.scale(0),
        constraints=[x.less_or_equal(1)],
        bounds=[Bound("x", float("-inf"), float("inf"))],
    )

    lines = format_lp(model).splitlines()

    assert lines[1] == " obj: 0"
    assert " x free" in lines


def test_quadratic_constraints_are_rejected() -> None:
    x = variable("x")
    model = Model(objective=x, constraints=[x.squared().less_or_equal(1)])

    with pytest.raises(ValueError):
        format_lp(model)
