"""Linear and quadratic expressions over named decision variables.

Terms are immutable. Coefficients live in insertion-ordered dicts so that a
model built twice from the same input lists its variables in the same order.
Quadratic coefficients are stored lower-triangular: a cell ``(row, col)`` is
kept only with ``row`` at or after ``col`` in the term's variable order.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Tuple, Union

from domain.errors import UnsupportedModel

Number = Union[int, float]
Cell = Tuple[str, str]


class LinearTerm:
    __slots__ = ("coefficients", "constant")

    def __init__(
        self, coefficients: Mapping[str, float] | None = None, constant: float = 0.0
    ) -> None:
        self.coefficients: Dict[str, float] = dict(coefficients or {})
        self.constant = float(constant)

    @property
    def var_ids(self) -> List[str]:
        return list(self.coefficients)

    @property
    def degree(self) -> int:
        return 1

    def __add__(self, other: Term | Number) -> Term:
        other = as_term(other)
        if isinstance(other, QuadraticTerm):
            return other + self
        coefficients = dict(self.coefficients)
        for var_id, value in other.coefficients.items():
            coefficients[var_id] = coefficients.get(var_id, 0.0) + value
        return LinearTerm(coefficients, self.constant + other.constant)

    def __radd__(self, other: Number) -> Term:
        return self + other

    def __sub__(self, other: Term | Number) -> Term:
        return self + (-as_term(other))

    def __rsub__(self, other: Number) -> Term:
        return as_term(other) - self

    def __neg__(self) -> LinearTerm:
        return self.scale(-1.0)

    def __mul__(self, other: Term | Number) -> Term:
        if isinstance(other, (int, float)):
            return self.scale(other)
        return self.times(other)

    def __rmul__(self, other: Number) -> Term:
        return self.scale(other)

    def scale(self, factor: Number) -> LinearTerm:
        return LinearTerm(
            {var_id: value * factor for var_id, value in self.coefficients.items()},
            self.constant * factor,
        )

    def times(self, other: Term) -> QuadraticTerm:
        if not isinstance(other, LinearTerm):
            raise UnsupportedModel("cannot multiply a linear term with a quadratic term")
        var_ids = _union(self.var_ids, other.var_ids)
        order = {var_id: idx for idx, var_id in enumerate(var_ids)}
        matrix: Dict[Cell, float] = {}
        for row_idx, row in enumerate(var_ids):
            a_row = self.coefficients.get(row, 0.0)
            b_row = other.coefficients.get(row, 0.0)
            for col in var_ids[: row_idx + 1]:
                if col == row:
                    value = a_row * b_row
                else:
                    value = a_row * other.coefficients.get(col, 0.0) + self.coefficients.get(
                        col, 0.0
                    ) * b_row
                if value != 0.0:
                    _accumulate(matrix, order, row, col, value)
        linear = other.scale(self.constant) + self.scale(other.constant)
        linear = LinearTerm(linear.coefficients, self.constant * other.constant)
        return QuadraticTerm(var_ids, matrix, linear)

    def squared(self) -> QuadraticTerm:
        return self.times(self)

    def less_or_equal(self, other: Term | Number) -> Constraint:
        return make_constraint("<=", self, as_term(other))

    def greater_or_equal(self, other: Term | Number) -> Constraint:
        return make_constraint("<=", as_term(other), self)

    def equal_to(self, other: Term | Number) -> Constraint:
        return make_constraint("==", self, as_term(other))

    def evaluate(self, values: Mapping[str, float]) -> float:
        return self.constant + sum(
            value * values.get(var_id, 0.0) for var_id, value in self.coefficients.items()
        )

    def __repr__(self) -> str:
        return f"LinearTerm({self.coefficients!r}, {self.constant!r})"


class QuadraticTerm:
    __slots__ = ("var_ids", "matrix", "linear")

    def __init__(
        self, var_ids: Iterable[str], matrix: Mapping[Cell, float], linear: LinearTerm
    ) -> None:
        self.var_ids: List[str] = _union(list(var_ids), linear.var_ids)
        self.matrix: Dict[Cell, float] = dict(matrix)
        self.linear = linear

    @property
    def degree(self) -> int:
        return 2

    def __add__(self, other: Term | Number) -> QuadraticTerm:
        other = as_term(other)
        if isinstance(other, LinearTerm):
            linear = self.linear + other
            assert isinstance(linear, LinearTerm)
            return QuadraticTerm(self.var_ids, self.matrix, linear)
        var_ids = _union(self.var_ids, other.var_ids)
        order = {var_id: idx for idx, var_id in enumerate(var_ids)}
        matrix: Dict[Cell, float] = {}
        for (row, col), value in self.matrix.items():
            _accumulate(matrix, order, row, col, value)
        for (row, col), value in other.matrix.items():
            _accumulate(matrix, order, row, col, value)
        linear = self.linear + other.linear
        assert isinstance(linear, LinearTerm)
        return QuadraticTerm(var_ids, matrix, linear)

    def __radd__(self, other: Number) -> QuadraticTerm:
        return self + other

    def __sub__(self, other: Term | Number) -> QuadraticTerm:
        return self + (-as_term(other))

    def __neg__(self) -> QuadraticTerm:
        return self.scale(-1.0)

    def __mul__(self, other: Term | Number) -> Term:
        if isinstance(other, (int, float)):
            return self.scale(other)
        return self.times(other)

    def __rmul__(self, other: Number) -> QuadraticTerm:
        return self.scale(other)

    def scale(self, factor: Number) -> QuadraticTerm:
        return QuadraticTerm(
            self.var_ids,
            {cell: value * factor for cell, value in self.matrix.items()},
            self.linear.scale(factor),
        )

    def times(self, other: Term) -> QuadraticTerm:
        raise UnsupportedModel("cannot multiply a quadratic term: degree would exceed 2")

    def squared(self) -> QuadraticTerm:
        raise UnsupportedModel("cannot square a quadratic term: degree would exceed 2")

    def less_or_equal(self, other: Term | Number) -> Constraint:
        return make_constraint("<=", self, as_term(other))

    def greater_or_equal(self, other: Term | Number) -> Constraint:
        return make_constraint("<=", as_term(other), self)

    def equal_to(self, other: Term | Number) -> Constraint:
        return make_constraint("==", self, as_term(other))

    def evaluate(self, values: Mapping[str, float]) -> float:
        total = self.linear.evaluate(values)
        for (row, col), value in self.matrix.items():
            total += value * values.get(row, 0.0) * values.get(col, 0.0)
        return total

    def __repr__(self) -> str:
        return f"QuadraticTerm({self.var_ids!r}, {self.matrix!r}, {self.linear!r})"


Term = Union[LinearTerm, QuadraticTerm]


def constant(value: Number) -> LinearTerm:
    return LinearTerm({}, value)


def variable(var_id: str) -> LinearTerm:
    return LinearTerm({var_id: 1.0}, 0.0)


def as_term(value: Term | Number) -> Term:
    if isinstance(value, (LinearTerm, QuadraticTerm)):
        return value
    return constant(value)


def total(terms: Iterable[Term]) -> Term:
    result: Term = constant(0)
    for term in terms:
        result = result + term
    return result


@dataclass(frozen=True)
class Constraint:
    kind: Literal["<=", "=="]
    term: Term

    @property
    def var_ids(self) -> List[str]:
        return self.term.var_ids

    def is_satisfied(self, values: Mapping[str, float], tolerance: float = 1e-6) -> bool:
        value = self.term.evaluate(values)
        if self.kind == "==":
            return abs(value) <= tolerance
        return value <= tolerance


def make_constraint(kind: Literal["<=", "=="], left: Term, right: Term) -> Constraint:
    return Constraint(kind=kind, term=left - right)


@dataclass(frozen=True)
class Bound:
    var_id: str
    lb: float = 0.0
    ub: float = math.inf


@dataclass
class Model:
    objective: Term
    constraints: List[Constraint] = field(default_factory=list)
    sense: Literal["min", "max"] = "min"
    bounds: List[Bound] = field(default_factory=list)
    variables: List[str] = field(default_factory=list)

    @property
    def is_quadratic(self) -> bool:
        return isinstance(self.objective, QuadraticTerm) and bool(self.objective.matrix)

    def all_variables(self) -> List[str]:
        ordered: Dict[str, None] = dict.fromkeys(self.variables)
        ordered.update(dict.fromkeys(self.objective.var_ids))
        for constraint in self.constraints:
            ordered.update(dict.fromkeys(constraint.var_ids))
        for bound in self.bounds:
            ordered.setdefault(bound.var_id, None)
        return list(ordered)

    def bound_map(self) -> Dict[str, Bound]:
        bounds = {var_id: Bound(var_id) for var_id in self.all_variables()}
        for bound in self.bounds:
            bounds[bound.var_id] = bound
        return bounds


def _union(first: List[str], second: Iterable[str]) -> List[str]:
    merged = list(first)
    seen = set(first)
    for var_id in second:
        if var_id not in seen:
            seen.add(var_id)
            merged.append(var_id)
    return merged


def _accumulate(
    matrix: Dict[Cell, float], order: Mapping[str, int], row: str, col: str, value: float
) -> None:
    if order[row] < order[col]:
        row, col = col, row
    matrix[(row, col)] = matrix.get((row, col), 0.0) + value
