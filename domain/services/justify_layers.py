"""Turn an aligned storyline into drawable fragments.

Lines of one transition that move in the same direction are bundled into
blocks. A block's size and each line's relative offset inside it decide the
radii of the line's two arcs, so parallel curves keep a constant distance.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from itertools import pairwise
from typing import Dict, List, Literal, Optional, Tuple, TypeVar

from domain.models import (
    AlignedStoryline,
    CharInitFrag,
    CharLineFrag,
    CharState,
    DrawingFrag,
    MeetingFrag,
    Point,
    SLine,
)

logger = logging.getLogger(__name__)

MIN_RADIUS = 1.0
MEETING_WIDTH = 0.5
MIN_LAYER_WIDTH = 0.8
EPS = 1e-6

LayerStyle = Literal["uniform", "condensed"]
BlockHandling = Literal["continuous", "full"]

T = TypeVar("T")


@dataclass(frozen=True)
class JustifyConfig:
    layer_style: LayerStyle = "condensed"
    block_handling: BlockHandling = "continuous"


@dataclass(frozen=True)
class Block:
    size: float
    offset: float


@dataclass(frozen=True)
class _Placed:
    char: str
    y: float
    in_meeting: bool


@dataclass(frozen=True)
class _Transition:
    char: str
    in_meeting: bool
    yl: Optional[float]
    yr: float

    @property
    def dy(self) -> Optional[float]:
        return None if self.yl is None else self.yr - self.yl


@dataclass(frozen=True)
class _Pending:
    char: str
    y: float
    in_meeting: bool
    kind: Literal["char-init", "char-line"]
    dy: float = 0.0
    block: Block = Block(0.0, 0.0)


def slope_sign(value: Optional[float]) -> int:
    if value is None or abs(value) <= EPS:
        return 0
    return 1 if value > 0 else -1


def join_blocks(
    size_l: float, offset_l: float, size_r: float, offset_r: float
) -> Tuple[float, float]:
    if size_l == 0 and size_r == 0:
        return (0.0, 0.0)
    top = max(size_l * offset_l, size_r * offset_r)
    bottom = max(size_l * (1 - offset_l), size_r * (1 - offset_r))
    return (top + bottom, top / (top + bottom))


def make_blocks(
    mode: BlockHandling,
    items: Sequence[T],
    slope: Callable[[T], int],
    y: Callable[[T], float],
) -> List[Tuple[T, Block]]:
    slopes = [slope(item) for item in items]
    result: List[Tuple[T, Block]] = []

    if mode == "continuous":
        start = 0
        for idx in range(1, len(items) + 1):
            if idx < len(items) and slopes[idx] == slopes[start]:
                continue
            y0 = y(items[start])
            size = y(items[idx - 1]) - y0
            for item in items[start:idx]:
                result.append((item, Block(size, 0.0 if size == 0 else (y(item) - y0) / size)))
            start = idx
        return result

    if mode == "full":
        # One block for every line moving up and one for every line moving down.
        extent: Dict[int, Tuple[float, float]] = {}
        for item, sign in zip(items, slopes):
            if sign == 0:
                continue
            first, _ = extent.get(sign, (y(item), y(item)))
            extent[sign] = (first, y(item))
        for item, sign in zip(items, slopes):
            if sign == 0:
                result.append((item, Block(0.0, 0.0)))
                continue
            y0, y1 = extent[sign]
            size = y1 - y0
            result.append((item, Block(size, 0.0 if size == 0 else (y(item) - y0) / size)))
        return result

    raise ValueError(f"unknown block handling: {mode!r}")


def min_layer_width(dy: float, block_size: float) -> float:
    """Smallest dx for which both arcs of a curve stay clear of the block's inner radius."""
    dx_min2 = (2 * block_size + 4 * MIN_RADIUS) * abs(dy) - dy * dy
    return max(abs(dy), math.sqrt(dx_min2) if dx_min2 > 0 else 0.0)


def s_curve(dx: float, dy: float, block_size: float, offset: float) -> SLine:
    if dx == 0:
        logger.warning("Zero-width curve requested (dy=%s), emitting an empty segment", dy)
        return SLine(dx=0.0, dy=dy, r1=0.0, r2=0.0, block_size=block_size, offset=offset)
    if abs(dy) <= EPS:
        return SLine(dx=dx, dy=0.0, r1=0.0, r2=0.0, block_size=block_size, offset=offset)
    d = (dy * dy + dx * dx) / (2 * abs(dy))
    r1 = d / 2 - math.copysign(1.0, dy) * (offset - 0.5) * block_size
    return SLine(dx=dx, dy=dy, r1=r1, r2=d - r1, block_size=block_size, offset=offset)


def justify_layers(
    story: AlignedStoryline, config: JustifyConfig | None = None
) -> List[DrawingFrag]:
    config = config or JustifyConfig()
    if not story.layers:
        return []

    layers: List[List[_Placed]] = [
        [
            _Placed(char=char, y=y, in_meeting=group.is_active)
            for group in layer.groups
            for char, y in group.positions()
        ]
        for layer in story.layers
    ]

    pending: List[List[_Pending]] = [
        [_Pending(char=p.char, y=p.y, in_meeting=p.in_meeting, kind="char-init") for p in layers[0]]
    ]
    for left, right in pairwise(layers):
        pending.append(_join_transition(config.block_handling, left, right))

    if config.layer_style == "uniform":
        width = max(
            (w for layer in pending[1:] for w in _item_widths(layer)),
            default=MIN_LAYER_WIDTH,
        )
        return _frags_uniform(story, pending, max(width, MIN_LAYER_WIDTH))
    if config.layer_style == "condensed":
        return _frags_condensed(story, pending)
    raise ValueError(f"unknown layer style: {config.layer_style!r}")


def _join_transition(
    mode: BlockHandling, left: List[_Placed], right: List[_Placed]
) -> List[_Pending]:
    left_y = {item.char: item.y for item in left}
    transitions = [
        _Transition(char=r.char, in_meeting=r.in_meeting, yl=left_y.get(r.char), yr=r.y)
        for r in right
    ]
    dy_right = {t.char: t.dy for t in transitions}

    left_blocks = {
        item.char: block
        for item, block in make_blocks(
            mode, left, lambda item: slope_sign(dy_right.get(item.char)), lambda item: item.y
        )
    }
    right_blocks = make_blocks(mode, transitions, lambda t: slope_sign(t.dy), lambda t: t.yr)

    result: List[_Pending] = []
    for transition, right_block in right_blocks:
        if transition.yl is None:
            result.append(
                _Pending(
                    char=transition.char,
                    y=transition.yr,
                    in_meeting=transition.in_meeting,
                    kind="char-init",
                )
            )
            continue
        left_block = left_blocks[transition.char]
        size, offset = join_blocks(
            left_block.size, left_block.offset, right_block.size, right_block.offset
        )
        result.append(
            _Pending(
                char=transition.char,
                y=transition.yl,
                in_meeting=transition.in_meeting,
                kind="char-line",
                dy=transition.yr - transition.yl,
                block=Block(size, offset),
            )
        )
    return result


def _item_widths(layer: List[_Pending]) -> List[float]:
    widths: List[float] = []
    for item in layer:
        if item.kind == "char-init":
            widths.append(MEETING_WIDTH)
        else:
            widths.append(min_layer_width(item.dy, item.block.size) + MEETING_WIDTH)
    return widths


def _char_frags(layer: List[_Pending], x: float, width: float) -> List[DrawingFrag]:
    frags: List[DrawingFrag] = []
    for item in layer:
        char = CharState(id=item.char, in_meeting=item.in_meeting)
        if item.kind == "char-init":
            pos = Point(x + width - MEETING_WIDTH, item.y)
            frags.append(CharInitFrag(char=char, pos=pos, dx=MEETING_WIDTH))
        else:
            frags.append(
                CharLineFrag(
                    char=char,
                    pos=Point(x, item.y),
                    s_line=s_curve(
                        width - MEETING_WIDTH, item.dy, item.block.size, item.block.offset
                    ),
                    dx=width,
                )
            )
    return frags


def meeting_frags(
    story: AlignedStoryline, layer_idx: int, x: float, width: float
) -> List[MeetingFrag]:
    return [
        MeetingFrag(
            pos=Point(x + width - MEETING_WIDTH, group.at_y),
            dx=MEETING_WIDTH,
            dy=group.size - 1,
            layer=layer_idx,
            top_char=group.characters_ordered[0],
        )
        for group in story.layers[layer_idx].groups
        if group.is_active
    ]


def _frags_uniform(
    story: AlignedStoryline, pending: List[List[_Pending]], width: float
) -> List[DrawingFrag]:
    frags: List[DrawingFrag] = []
    for idx, layer in enumerate(pending):
        frags.extend(_char_frags(layer, idx * width, width))
    for idx in range(len(story.layers)):
        frags.extend(meeting_frags(story, idx, idx * width, width))
    return frags


def _frags_condensed(story: AlignedStoryline, pending: List[List[_Pending]]) -> List[DrawingFrag]:
    if len(story.layers) != len(pending):
        raise ValueError("number of storyline layers and justified layers did not match")
    frags: List[DrawingFrag] = []
    x = 0.0
    for idx, layer in enumerate(pending):
        width = max([*_item_widths(layer), MIN_LAYER_WIDTH])
        frags.extend(_char_frags(layer, x, width))
        frags.extend(meeting_frags(story, idx, x, width))
        x += width
    return frags
