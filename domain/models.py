from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Set, Tuple, Union

from pydantic import BaseModel, Field, field_validator

GroupKind = Literal["active", "inactive"]


class GroupSpec(BaseModel):
    kind: GroupKind = "active"
    characters: List[str] = Field(..., min_length=1)
    description: Optional[str] = None


class LayerSpec(BaseModel):
    title: Optional[str] = None
    groups: List[GroupSpec] = Field(default_factory=list)

    @field_validator("groups", mode="after")
    @classmethod
    def ensure_disjoint_groups(cls, groups: List[GroupSpec]) -> List[GroupSpec]:
        seen: Set[str] = set()
        for group in groups:
            for char in group.characters:
                if char in seen:
                    msg = f"Character {char} appears in more than one group of a layer"
                    raise ValueError(msg)
                seen.add(char)
        return groups


class StorylineDocument(BaseModel):
    characters: Dict[str, str] = Field(default_factory=dict)
    layers: List[LayerSpec] = Field(default_factory=list)

    def to_realization(self) -> Realization:
        return Realization(
            layers=tuple(
                Layer(
                    groups=tuple(
                        Group(kind=group.kind, characters_ordered=tuple(group.characters))
                        for group in layer.groups
                    )
                )
                for layer in self.layers
            )
        )


@dataclass(frozen=True)
class Group:
    kind: GroupKind
    characters_ordered: Tuple[str, ...]

    @property
    def characters(self) -> frozenset[str]:
        return frozenset(self.characters_ordered)

    @property
    def size(self) -> int:
        return len(self.characters_ordered)

    @property
    def is_active(self) -> bool:
        return self.kind == "active"


@dataclass(frozen=True)
class Layer:
    groups: Tuple[Group, ...]


@dataclass(frozen=True)
class Realization:
    layers: Tuple[Layer, ...]


@dataclass(frozen=True)
class AlignedGroup(Group):
    at_y: float

    def position_of(self, char: str) -> float:
        return self.at_y + self.characters_ordered.index(char)

    def positions(self) -> List[Tuple[str, float]]:
        return [(char, self.at_y + idx) for idx, char in enumerate(self.characters_ordered)]


@dataclass(frozen=True)
class AlignedLayer:
    groups: Tuple[AlignedGroup, ...]


@dataclass(frozen=True)
class AlignedStoryline:
    layers: Tuple[AlignedLayer, ...]

    def anchors(self) -> List[List[float]]:
        return [[group.at_y for group in layer.groups] for layer in self.layers]


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class CharState:
    id: str
    in_meeting: bool


@dataclass(frozen=True)
class ArcSegment:
    radius: float
    dx: float
    dy: float
    sweep: bool


@dataclass(frozen=True)
class SLine:
    dx: float
    dy: float
    r1: float
    r2: float
    block_size: Optional[float] = None
    offset: Optional[float] = None

    @property
    def is_straight(self) -> bool:
        return self.r1 == 0 and self.r2 == 0

    @property
    def is_empty(self) -> bool:
        return self.dx == 0

    def arcs(self) -> Tuple[ArcSegment, ...]:
        if self.is_empty or self.is_straight:
            return ()
        d = self.r1 + self.r2
        dx1 = self.r1 / d * self.dx
        dy1 = self.r1 / d * self.dy
        return (
            ArcSegment(radius=self.r1, dx=dx1, dy=dy1, sweep=dy1 > 0),
            ArcSegment(radius=self.r2, dx=self.dx - dx1, dy=self.dy - dy1, sweep=dy1 <= 0),
        )


@dataclass(frozen=True)
class CharInitFrag:
    char: CharState
    pos: Point
    dx: float
    kind: Literal["char-init"] = "char-init"

    def corners(self) -> List[Tuple[float, float]]:
        return [(self.pos.x, self.pos.y), (self.pos.x + self.dx, self.pos.y)]


@dataclass(frozen=True)
class CharLineFrag:
    char: CharState
    pos: Point
    s_line: SLine
    dx: float
    kind: Literal["char-line"] = "char-line"

    def corners(self) -> List[Tuple[float, float]]:
        x, y = self.pos.x, self.pos.y
        return [
            (x, y),
            (x + self.dx, y),
            (x, y + self.s_line.dy),
            (x + self.dx, y + self.s_line.dy),
        ]


@dataclass(frozen=True)
class MeetingFrag:
    pos: Point
    dx: float
    dy: float
    layer: int
    top_char: str
    kind: Literal["meeting"] = "meeting"

    def corners(self) -> List[Tuple[float, float]]:
        x, y = self.pos.x, self.pos.y
        return [(x, y), (x + self.dx, y), (x, y + self.dy), (x + self.dx, y + self.dy)]


DrawingFrag = Union[CharInitFrag, CharLineFrag, MeetingFrag]


def bounding_box(frags: List[DrawingFrag]) -> Tuple[float, float, float, float]:
    points = [corner for frag in frags for corner in frag.corners()]
    if not points:
        return (0.0, 0.0, 0.0, 0.0)
    xs = [x for x, _ in points]
    ys = [y for _, y in points]
    return (min(xs), min(ys), max(xs), max(ys))
