from __future__ import annotations

import math
from typing import List

from domain.services.qp_terms import LinearTerm, Model, QuadraticTerm


def format_lp(model: Model) -> str:
    """Render ``model`` in the CPLEX LP dialect.

    Every variable gets a line in the Bounds section, so variables that only
    appear with a zero coefficient are still part of the solution.
    """
    lines: List[str] = ["Minimize" if model.sense == "min" else "Maximize"]
    lines.append(f" obj: {_format_objective(model)}")
    lines.append("Subject To")
    for idx, constraint in enumerate(model.constraints):
        term = constraint.term
        if not isinstance(term, LinearTerm):
            raise ValueError("quadratic constraints are not supported")
        operator = "=" if constraint.kind == "==" else "<="
        lhs = _format_linear(term.coefficients) or "0"
        lines.append(f" c{idx}: {lhs} {operator} {_number(-term.constant)}")
    lines.append("Bounds")
    bounds = model.bound_map()
    for var_id in model.all_variables():
        bound = bounds[var_id]
        lines.append(f" {_format_bound(var_id, bound.lb, bound.ub)}")
    lines.append("End")
    return "\n".join(lines) + "\n"


def _format_objective(model: Model) -> str:
    objective = model.objective
    if isinstance(objective, QuadraticTerm):
        parts = [_format_linear(objective.linear.coefficients)]
        quad: List[str] = []
        for (row, col), value in objective.matrix.items():
            if value == 0:
                continue
            product = f"{row} ^ 2" if row == col else f"{row} * {col}"
            quad.append(_signed(2 * value, product, first=not quad))
        if quad:
            parts.append(f"+ [ {' '.join(quad)} ] / 2")
        text = " ".join(part for part in parts if part)
    else:
        text = _format_linear(objective.coefficients)
    return text or "0"


def _format_linear(coefficients: dict[str, float]) -> str:
    parts: List[str] = []
    for var_id, value in coefficients.items():
        if value == 0:
            continue
        parts.append(_signed(value, var_id, first=not parts))
    return " ".join(parts)


def _signed(value: float, name: str, *, first: bool) -> str:
    if first:
        return f"{_number(value)} {name}"
    sign = "-" if value < 0 else "+"
    return f"{sign} {_number(abs(value))} {name}"


def _format_bound(var_id: str, lb: float, ub: float) -> str:
    if math.isinf(lb) and math.isinf(ub):
        return f"{var_id} free"
    lower = "-inf" if math.isinf(lb) else _number(lb)
    upper = "+inf" if math.isinf(ub) else _number(ub)
    return f"{lower} <= {var_id} <= {upper}"


def _number(value: float) -> str:
    if value == 0:
        value = 0.0
    return f"{value:.12g}"
