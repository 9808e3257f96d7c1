from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Set, Tuple, get_args

from domain.errors import SolveFailure, StructuralError
from domain.models import AlignedGroup, AlignedLayer, AlignedStoryline, Group, Realization
from domain.ports.solver import Solver
from domain.services.qp_terms import (
    Bound,
    Constraint,
    LinearTerm,
    Model,
    Term,
    total,
    variable,
)

logger = logging.getLogger(__name__)

AlignCriterion = Literal["strict-center", "sum-of-heights", "least-squares", "wiggle-count"]
ALIGN_CRITERIA: Tuple[str, ...] = get_args(AlignCriterion)

GroupRef = Tuple[int, int]


@dataclass(frozen=True)
class Wiggle:
    char: str
    layer: int
    delta: LinearTerm


@dataclass(frozen=True)
class ContinuedMeeting:
    predecessor: GroupRef
    successor: GroupRef

    @property
    def gap(self) -> int:
        return self.successor[0] - self.predecessor[0]


def anchor_var(ref: GroupRef) -> str:
    return f"l{ref[0]}g{ref[1]}"


def check_structure(realization: Realization) -> None:
    for layer_idx, layer in enumerate(realization.layers):
        seen: Set[str] = set()
        for group_idx, group in enumerate(layer.groups):
            if not group.characters_ordered:
                raise StructuralError(f"layer {layer_idx} has an empty group (group {group_idx})")
            for char in group.characters_ordered:
                if char in seen:
                    raise StructuralError(
                        f"character {char} appears in more than one group of layer {layer_idx}"
                    )
                seen.add(char)


def iter_groups(realization: Realization) -> Iterator[Tuple[GroupRef, Group]]:
    for layer_idx, layer in enumerate(realization.layers):
        for group_idx, group in enumerate(layer.groups):
            yield (layer_idx, group_idx), group


def ordering_constraints(realization: Realization, gap_ratio: float) -> List[Constraint]:
    constraints: List[Constraint] = []
    for layer_idx, layer in enumerate(realization.layers):
        for group_idx in range(1, len(layer.groups)):
            prev = layer.groups[group_idx - 1]
            prev_anchor = variable(anchor_var((layer_idx, group_idx - 1)))
            next_anchor = variable(anchor_var((layer_idx, group_idx)))
            constraints.append(
                (prev_anchor + (prev.size - 1 + gap_ratio)).less_or_equal(next_anchor)
            )
    return constraints


def wiggles(realization: Realization) -> List[Wiggle]:
    """One displacement term per character and pair of adjacent layers it occupies."""
    result: List[Wiggle] = []
    previous: Dict[str, LinearTerm] = {}
    for layer_idx, layer in enumerate(realization.layers):
        current: Dict[str, LinearTerm] = {}
        for group_idx, group in enumerate(layer.groups):
            anchor = variable(anchor_var((layer_idx, group_idx)))
            for offset, char in enumerate(group.characters_ordered):
                position = anchor + offset
                assert isinstance(position, LinearTerm)
                current[char] = position
                if char in previous:
                    delta = position - previous[char]
                    assert isinstance(delta, LinearTerm)
                    result.append(Wiggle(char=char, layer=layer_idx, delta=delta))
        previous = current
    return result


def continued_meetings(realization: Realization) -> List[ContinuedMeeting]:
    """Active groups repeating the most recent active group of all their members.

    A group links back to at most one predecessor. A predecessor is also
    linked forwards at most once: once its members meet again, that later
    group is their most recent active one.
    """
    links: List[ContinuedMeeting] = []
    last_active: Dict[str, GroupRef] = {}
    for layer_idx, layer in enumerate(realization.layers):
        active_refs: List[GroupRef] = []
        for group_idx, group in enumerate(layer.groups):
            if not group.is_active:
                continue
            ref = (layer_idx, group_idx)
            active_refs.append(ref)
            known = {last_active.get(char) for char in group.characters_ordered}
            if len(known) != 1:
                continue
            previous: Optional[GroupRef] = known.pop()
            if previous is None:
                continue
            previous_group = realization.layers[previous[0]].groups[previous[1]]
            if previous_group.characters == group.characters:
                links.append(ContinuedMeeting(predecessor=previous, successor=ref))
        for ref in active_refs:
            for char in layer.groups[ref[1]].characters_ordered:
                last_active[char] = ref
    return links


def total_group_size(realization: Realization) -> float:
    return float(sum(group.size for _, group in iter_groups(realization)))


def big_m(realization: Realization, gap_ratio: float) -> float:
    """An upper bound on any anchor: all group sizes plus every in-layer gap."""
    gaps = sum(max(len(layer.groups) - 1, 0) for layer in realization.layers) * gap_ratio
    return max(total_group_size(realization) + gaps, 1.0)


def build_alignment_model(
    realization: Realization,
    criterion: AlignCriterion,
    gap_ratio: float,
    align_continued_meetings: bool = False,
) -> Model:
    if criterion not in ALIGN_CRITERIA or criterion == "strict-center":
        raise ValueError(f"no optimization model for criterion {criterion!r}")

    anchors = [anchor_var(ref) for ref, _ in iter_groups(realization)]
    constraints = ordering_constraints(realization, gap_ratio)
    bounds: List[Bound] = []
    deltas = wiggles(realization)

    if align_continued_meetings:
        for link in continued_meetings(realization):
            successor = variable(anchor_var(link.successor))
            constraints.append(successor.equal_to(variable(anchor_var(link.predecessor))))

    objective: Term
    if criterion == "sum-of-heights":
        z_vars = []
        for idx, wiggle in enumerate(deltas):
            z = variable(f"z{idx}")
            constraints.append(wiggle.delta.less_or_equal(z))
            constraints.append((-wiggle.delta).less_or_equal(z))
            z_vars.append(z)
        objective = total(z_vars)
    elif criterion == "least-squares":
        objective = total(wiggle.delta.squared() for wiggle in deltas)
    else:
        m = big_m(realization, gap_ratio)
        ymax = variable("ymax")
        z_vars = []
        for idx, wiggle in enumerate(deltas):
            z = variable(f"z{idx}")
            constraints.append(wiggle.delta.less_or_equal(z * m))
            constraints.append((-wiggle.delta).less_or_equal(z * m))
            z_vars.append(z)
        for anchor in anchors:
            constraints.append(variable(anchor).less_or_equal(ymax))
        objective = total(z_vars) + ymax * (1.0 / m)
        bounds.append(Bound("ymax", 0.0, m))

    return Model(
        objective=objective,
        constraints=constraints,
        sense="min",
        bounds=bounds,
        variables=anchors,
    )


def align_strict_center(realization: Realization, gap_ratio: float) -> AlignedStoryline:
    """Stack every layer's groups and centre the stack on zero."""
    layers: List[AlignedLayer] = []
    for layer in realization.layers:
        height = sum(group.size - 1 for group in layer.groups)
        height += max(len(layer.groups) - 1, 0) * gap_ratio
        y = -height / 2
        groups: List[AlignedGroup] = []
        for group in layer.groups:
            groups.append(_aligned(group, y))
            y += group.size - 1 + gap_ratio
        layers.append(AlignedLayer(groups=tuple(groups)))
    return AlignedStoryline(layers=tuple(layers))


class AlignStoryline:
    def __init__(self, solver: Solver) -> None:
        self.solver = solver

    def align(
        self,
        realization: Realization,
        criterion: AlignCriterion = "sum-of-heights",
        gap_ratio: float = 1.0,
        align_continued_meetings: bool = False,
    ) -> AlignedStoryline:
        if gap_ratio < 0:
            raise ValueError(f"gap_ratio must not be negative, got {gap_ratio}")
        check_structure(realization)

        if criterion == "strict-center":
            return align_strict_center(realization, gap_ratio)
        if not any(layer.groups for layer in realization.layers):
            return AlignedStoryline(
                layers=tuple(AlignedLayer(groups=()) for _ in realization.layers)
            )

        model = build_alignment_model(realization, criterion, gap_ratio, align_continued_meetings)
        logger.debug(
            "Alignment model (%s): %d variables, %d constraints",
            criterion,
            len(model.all_variables()),
            len(model.constraints),
        )
        result = self.solver.solve(model)
        if not result.is_optimal:
            logger.info("Alignment with %s failed: %s", criterion, result.status.value)
            raise SolveFailure(result.status, result.message)

        layers = tuple(
            AlignedLayer(
                groups=tuple(
                    _aligned(group, result.values[anchor_var((layer_idx, group_idx))])
                    for group_idx, group in enumerate(layer.groups)
                )
            )
            for layer_idx, layer in enumerate(realization.layers)
        )
        logger.info("Aligned %d layers with %s", len(layers), criterion)
        return AlignedStoryline(layers=layers)


def _aligned(group: Group, at_y: float) -> AlignedGroup:
    return AlignedGroup(kind=group.kind, characters_ordered=group.characters_ordered, at_y=at_y)


def wiggle_values(realization: Realization, aligned: AlignedStoryline) -> List[float]:
    values = {
        anchor_var((layer_idx, group_idx)): group.at_y
        for layer_idx, layer in enumerate(aligned.layers)
        for group_idx, group in enumerate(layer.groups)
    }
    return [wiggle.delta.evaluate(values) for wiggle in wiggles(realization)]
