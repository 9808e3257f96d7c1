from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Tuple

import highspy
import numpy as np
from scipy.optimize import linprog

from domain.ports.solver import SolveResult, SolveStatus, Solver
from domain.services.qp_terms import LinearTerm, Model, QuadraticTerm

logger = logging.getLogger(__name__)

_LINPROG_STATUS = {
    0: SolveStatus.OPTIMAL,
    2: SolveStatus.INFEASIBLE,
    3: SolveStatus.UNBOUNDED,
}
_HIGHS_STATUS = {
    highspy.HighsModelStatus.kOptimal: SolveStatus.OPTIMAL,
    highspy.HighsModelStatus.kInfeasible: SolveStatus.INFEASIBLE,
    highspy.HighsModelStatus.kUnboundedOrInfeasible: SolveStatus.INFEASIBLE,
    highspy.HighsModelStatus.kUnbounded: SolveStatus.UNBOUNDED,
}


@dataclass(frozen=True)
class HighsSolverConfig:
    qp_max_iterations: int = 10000


@dataclass(frozen=True)
class _Matrices:
    var_ids: List[str]
    a_ub: np.ndarray
    b_ub: np.ndarray
    a_eq: np.ndarray
    b_eq: np.ndarray
    lower: np.ndarray
    upper: np.ndarray


class HighsSolver(Solver):
    def __init__(self, config: HighsSolverConfig | None = None) -> None:
        self.config = config or HighsSolverConfig()

    def solve(self, model: Model) -> SolveResult:
        try:
            matrices = self._build_matrices(model)
        except ValueError as exc:
            return SolveResult(status=SolveStatus.ERROR, message=str(exc))
        logger.debug(
            "Solving %s model: %d variables, %d inequalities, %d equalities",
            "QP" if model.is_quadratic else "LP",
            len(matrices.var_ids),
            matrices.a_ub.shape[0],
            matrices.a_eq.shape[0],
        )
        try:
            if model.is_quadratic:
                return self._solve_qp(model, matrices)
            return self._solve_lp(model, matrices)
        except (ValueError, np.linalg.LinAlgError) as exc:
            logger.warning("Solver raised: %s", exc)
            return SolveResult(status=SolveStatus.ERROR, message=str(exc))

    def _build_matrices(self, model: Model) -> _Matrices:
        var_ids = model.all_variables()
        index = {var_id: idx for idx, var_id in enumerate(var_ids)}
        rows_ub: List[np.ndarray] = []
        rhs_ub: List[float] = []
        rows_eq: List[np.ndarray] = []
        rhs_eq: List[float] = []
        for constraint in model.constraints:
            term = constraint.term
            if not isinstance(term, LinearTerm):
                raise ValueError("quadratic constraints are not supported")
            row = np.zeros(len(var_ids))
            for var_id, value in term.coefficients.items():
                row[index[var_id]] += value
            if constraint.kind == "==":
                rows_eq.append(row)
                rhs_eq.append(-term.constant)
            else:
                rows_ub.append(row)
                rhs_ub.append(-term.constant)
        bounds = model.bound_map()
        lower = np.array([bounds[var_id].lb for var_id in var_ids], dtype=float)
        upper = np.array([bounds[var_id].ub for var_id in var_ids], dtype=float)
        return _Matrices(
            var_ids=var_ids,
            a_ub=np.array(rows_ub).reshape(len(rows_ub), len(var_ids)),
            b_ub=np.array(rhs_ub, dtype=float),
            a_eq=np.array(rows_eq).reshape(len(rows_eq), len(var_ids)),
            b_eq=np.array(rhs_eq, dtype=float),
            lower=lower,
            upper=upper,
        )

    def _objective_vectors(
        self, model: Model, var_ids: List[str]
    ) -> Tuple[np.ndarray, np.ndarray, float]:
        """Return ``(Q, c, c0)`` with objective ``0.5 x'Qx + c'x + c0`` for minimization."""
        index = {var_id: idx for idx, var_id in enumerate(var_ids)}
        size = len(var_ids)
        q = np.zeros((size, size))
        objective = model.objective
        if isinstance(objective, QuadraticTerm):
            for (row, col), value in objective.matrix.items():
                i, j = index[row], index[col]
                if i == j:
                    q[i, i] += 2.0 * value
                else:
                    q[i, j] += value
                    q[j, i] += value
            linear = objective.linear
        else:
            linear = objective
        c = np.zeros(size)
        for var_id, value in linear.coefficients.items():
            c[index[var_id]] += value
        c0 = linear.constant
        if model.sense == "max":
            return -q, -c, -c0
        return q, c, c0

    def _solve_lp(self, model: Model, m: _Matrices) -> SolveResult:
        _, c, _ = self._objective_vectors(model, m.var_ids)
        result = linprog(
            c,
            A_ub=m.a_ub if m.a_ub.size else None,
            b_ub=m.b_ub if m.b_ub.size else None,
            A_eq=m.a_eq if m.a_eq.size else None,
            b_eq=m.b_eq if m.b_eq.size else None,
            bounds=list(zip(m.lower, [None if math.isinf(ub) else ub for ub in m.upper])),
            method="highs",
        )
        status = _LINPROG_STATUS.get(result.status, SolveStatus.ERROR)
        if status is not SolveStatus.OPTIMAL:
            logger.info("LP finished with status %s: %s", status.value, result.message)
            return SolveResult(status=status, message=str(result.message))
        return SolveResult(status=status, values=self._values(m.var_ids, result.x))

    def _solve_qp(self, model: Model, m: _Matrices) -> SolveResult:
        q, c, c0 = self._objective_vectors(model, m.var_ids)
        size = len(m.var_ids)
        rows = np.vstack([m.a_ub, m.a_eq])

        lp = highspy.HighsLp()
        lp.num_col_ = size
        lp.num_row_ = rows.shape[0]
        lp.col_cost_ = c.tolist()
        lp.col_lower_ = m.lower.tolist()
        lp.col_upper_ = m.upper.tolist()
        lp.row_lower_ = [-highspy.kHighsInf] * m.a_ub.shape[0] + m.b_eq.tolist()
        lp.row_upper_ = m.b_ub.tolist() + m.b_eq.tolist()
        lp.offset_ = c0
        lp.a_matrix_.format_ = highspy.MatrixFormat.kColwise
        lp.a_matrix_.num_col_ = size
        lp.a_matrix_.num_row_ = rows.shape[0]
        lp.a_matrix_.start_, lp.a_matrix_.index_, lp.a_matrix_.value_ = _column_wise(rows)

        # HiGHS reads the lower triangle of Q column by column
        hessian = highspy.HighsHessian()
        hessian.dim_ = size
        hessian.format_ = highspy.HessianFormat.kTriangular
        hessian.start_, hessian.index_, hessian.value_ = _column_wise(np.tril(q))

        qp = highspy.HighsModel()
        qp.lp_ = lp
        qp.hessian_ = hessian

        highs = highspy.Highs()
        highs.setOptionValue("output_flag", False)
        highs.setOptionValue("qp_iteration_limit", self.config.qp_max_iterations)
        if highs.passModel(qp) == highspy.HighsStatus.kError:
            return SolveResult(status=SolveStatus.ERROR, message="HiGHS rejected the QP model")
        highs.run()
        model_status = highs.getModelStatus()
        status = _HIGHS_STATUS.get(model_status, SolveStatus.ERROR)
        if status is not SolveStatus.OPTIMAL:
            message = highs.modelStatusToString(model_status)
            logger.info("QP finished with status %s: %s", status.value, message)
            return SolveResult(status=status, message=message)
        values = np.array(highs.getSolution().col_value, dtype=float)
        return SolveResult(status=status, values=self._values(m.var_ids, values))

    def _values(self, var_ids: List[str], x: np.ndarray) -> Dict[str, float]:
        return {var_id: float(value) for var_id, value in zip(var_ids, x)}


def _column_wise(matrix: np.ndarray) -> Tuple[List[int], List[int], List[float]]:
    """Compressed sparse column arrays (start, index, value) of a dense matrix."""
    start = [0]
    index: List[int] = []
    value: List[float] = []
    for col in range(matrix.shape[1]):
        for row in np.flatnonzero(matrix[:, col]):
            index.append(int(row))
            value.append(float(matrix[row, col]))
        start.append(len(index))
    return start, index, value
