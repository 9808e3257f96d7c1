from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from itertools import pairwise
from typing import Dict, List, Optional, Tuple

from domain.errors import SolveFailure
from domain.models import (
    AlignedLayer,
    AlignedStoryline,
    CharInitFrag,
    CharLineFrag,
    CharState,
    DrawingFrag,
    Point,
    SLine,
)
from domain.ports.solver import SolveResult, Solver
from domain.services.justify_layers import (
    EPS,
    MEETING_WIDTH,
    MIN_LAYER_WIDTH,
    MIN_RADIUS,
    LayerStyle,
    meeting_frags,
)
from domain.services.qp_terms import Bound, Constraint, Model, constant, total, variable

logger = logging.getLogger(__name__)

Gap = Tuple[float, str]


@dataclass
class ItemState:
    char: str
    yl: Optional[float] = None
    yr: Optional[float] = None
    left_gap: Optional[Gap] = None
    right_gap: Optional[Gap] = None

    @property
    def dy(self) -> float:
        if self.yl is None or self.yr is None:
            return 0.0
        return self.yr - self.yl

    def moving(self) -> Optional[Tuple[float, float]]:
        if self.yl is None or self.yr is None or abs(self.yl - self.yr) <= EPS:
            return None
        return (self.yl, self.yr)


@dataclass(frozen=True)
class PreparedLayer:
    aligned: AlignedLayer
    items: Dict[str, ItemState]
    dx: float
    s_lines: Dict[str, SLine]


def related(yla: float, yra: float, ylb: float, yrb: float) -> bool:
    """Lines a and b never cross, overlap vertically and move the same way."""
    non_crossing = (yla < ylb) == (yra < yrb)
    overlapping = min(yla, yra) <= max(ylb, yrb) + EPS and max(yla, yra) + EPS >= min(ylb, yrb)
    co_oriented = (yla < yra) == (ylb < yrb)
    return non_crossing and overlapping and co_oriented


def make_items(left: AlignedLayer, right: AlignedLayer) -> Dict[str, ItemState]:
    items: Dict[str, ItemState] = {}
    for layer in (left, right):
        for group in layer.groups:
            for char in group.characters_ordered:
                items.setdefault(char, ItemState(char=char))
    for group in left.groups:
        for char, y in group.positions():
            items[char].yl = y
    for group in right.groups:
        for char, y in group.positions():
            items[char].yr = y

    order_left = [char for group in left.groups for char in group.characters_ordered]
    order_right = [char for group in right.groups for char in group.characters_ordered]

    for idx, char in enumerate(order_left):
        item = items[char]
        ends = item.moving()
        if ends is None:
            continue
        yla, yra = ends
        upward = yla > yra
        candidates = order_left[idx + 1 :] if upward else reversed(order_left[:idx])
        for other in candidates:
            other_ends = items[other].moving()
            if other_ends is None or not related(yla, yra, *other_ends):
                continue
            ylb = other_ends[0]
            item.left_gap = (ylb - yla, other) if upward else (yla - ylb, other)
            break

    for idx, char in enumerate(order_right):
        item = items[char]
        ends = item.moving()
        if ends is None:
            continue
        yla, yra = ends
        upward = yla > yra
        candidates = reversed(order_right[:idx]) if upward else order_right[idx + 1 :]
        for other in candidates:
            other_ends = items[other].moving()
            if other_ends is None or not related(yla, yra, *other_ends):
                continue
            yrb = other_ends[1]
            item.right_gap = (yra - yrb, other) if upward else (yrb - yra, other)
            break

    # A pair bound on both sides keeps only the tighter gap.
    for char in order_left:
        item = items[char]
        if item.left_gap is None:
            continue
        size_l, other = item.left_gap
        partner = items[other]
        if partner.right_gap is None or partner.right_gap[1] != char:
            continue
        size_r = partner.right_gap[0]
        if size_l > size_r:
            item.left_gap = None
        elif size_l < size_r:
            partner.right_gap = None
    return items


def make_layer_model(items: Dict[str, ItemState]) -> Model:
    constraints: List[Constraint] = []
    bounds: List[Bound] = []
    z_vars = []

    dy2 = max([item.dy * item.dy for item in items.values()] + [MIN_LAYER_WIDTH * MIN_LAYER_WIDTH])
    dx2 = variable("dx2")
    constraints.append(dx2.greater_or_equal(constant(dy2)))

    for item in items.values():
        dyi = abs(item.dy)
        if dyi >= EPS:
            ra, rb = variable(f"r{item.char}a"), variable(f"r{item.char}b")
            constraints.append(dx2.equal_to((ra + rb).scale(2 * dyi) - dyi * dyi))
            z = variable(f"z{item.char}")
            constraints.append((ra - rb).less_or_equal(z))
            constraints.append((rb - ra).less_or_equal(z))
            z_vars.append(z)
            bounds.append(Bound(f"r{item.char}a", MIN_RADIUS))
            bounds.append(Bound(f"r{item.char}b", MIN_RADIUS))
        if item.left_gap is not None:
            gap, other = item.left_gap
            left = variable(f"r{item.char}a")
            constraints.append(left.less_or_equal(variable(f"r{other}a") - gap))
        if item.right_gap is not None:
            gap, other = item.right_gap
            right = variable(f"r{item.char}b")
            constraints.append(right.less_or_equal(variable(f"r{other}b") - gap))

    return Model(objective=dx2 + total(z_vars).scale(0.5), constraints=constraints, bounds=bounds)


def is_flat_transition(items: Dict[str, ItemState]) -> bool:
    for item in items.values():
        if item.yl is None and item.yr is None:
            raise ValueError(f"character {item.char} is in neither layer")
        if item.yl is not None and item.yr is not None and abs(item.dy) >= EPS:
            return False
    return True


def prepare_layer(
    items: Dict[str, ItemState], result: SolveResult
) -> Tuple[float, Dict[str, SLine]]:
    dx = math.sqrt(result.values["dx2"])
    s_lines: Dict[str, SLine] = {}
    for item in items.values():
        dyi = item.dy
        if abs(dyi) >= EPS:
            s_lines[item.char] = SLine(
                dx=dx,
                dy=dyi,
                r1=result.values[f"r{item.char}a"],
                r2=result.values[f"r{item.char}b"],
            )
    return dx, s_lines


class JustifyLayersLP:
    """Justification that solves one small LP per transition for a shared width and all radii."""

    def __init__(self, solver: Solver) -> None:
        self.solver = solver

    def justify(
        self, story: AlignedStoryline, layer_style: LayerStyle = "condensed"
    ) -> List[DrawingFrag]:
        padded = [AlignedLayer(groups=()), *story.layers]
        layers = [self.justify_layer(left, right) for left, right in pairwise(padded)]

        frags: List[DrawingFrag] = []
        x = 0.0
        if layer_style == "condensed":
            for idx, layer in enumerate(layers):
                frags.extend(layer_frags(x, layer.dx, story, idx, layer))
                x += layer.dx
        elif layer_style == "uniform":
            width = max((layer.dx for layer in layers), default=MIN_LAYER_WIDTH)
            for idx, layer in enumerate(layers):
                frags.extend(layer_frags(x, width, story, idx, layer))
                x += max(width, layer.dx)
        else:
            raise ValueError(f"unknown layer style: {layer_style!r}")
        return frags

    def justify_layer(self, left: AlignedLayer, right: AlignedLayer) -> PreparedLayer:
        items = make_items(left, right)
        if is_flat_transition(items):
            return PreparedLayer(aligned=right, items=items, dx=MIN_LAYER_WIDTH, s_lines={})

        result = self.solver.solve(make_layer_model(items))
        if not result.is_optimal:
            logger.error("Layer LP failed with %s: %s", result.status.value, result.message)
            raise SolveFailure(result.status, result.message)
        dx, s_lines = prepare_layer(items, result)
        return PreparedLayer(aligned=right, items=items, dx=dx, s_lines=s_lines)


def layer_frags(
    x: float, dx: float, story: AlignedStoryline, layer_idx: int, layer: PreparedLayer
) -> List[DrawingFrag]:
    frags: List[DrawingFrag] = []
    for group in layer.aligned.groups:
        for char in group.characters_ordered:
            item = layer.items[char]
            state = CharState(id=char, in_meeting=group.is_active)
            if item.yl is None:
                assert item.yr is not None
                pos = Point(x + dx - MEETING_WIDTH, item.yr)
                frags.append(CharInitFrag(char=state, pos=pos, dx=MEETING_WIDTH))
            else:
                s_line = layer.s_lines.get(char) or SLine(dx=dx, dy=0.0, r1=0.0, r2=0.0)
                frags.append(CharLineFrag(char=state, pos=Point(x, item.yl), s_line=s_line, dx=dx))
    frags.extend(meeting_frags(story, layer_idx, x, dx))
    return frags
