from __future__ import annotations

import math
from dataclasses import dataclass
from itertools import pairwise
from typing import Dict, List, Tuple

from domain.models import AlignedStoryline

EPS = 1e-6


@dataclass(frozen=True)
class StorylineMetrics:
    layers: int
    meetings: int
    characters: int
    wiggle_count: int
    linear_wiggle_height: float
    quadratic_wiggle_height: float
    total_height: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "layers": self.layers,
            "meetings": self.meetings,
            "characters": self.characters,
            "wiggle_count": self.wiggle_count,
            "linear_wiggle_height": self.linear_wiggle_height,
            "quadratic_wiggle_height": self.quadratic_wiggle_height,
            "total_height": self.total_height,
        }


def character_lines(story: AlignedStoryline) -> Dict[str, List[Tuple[str, float]]]:
    """Each character's ``(group id, y)`` sequence in layer order."""
    lines: Dict[str, List[Tuple[str, float]]] = {}
    for layer_idx, layer in enumerate(story.layers):
        for group_idx, group in enumerate(layer.groups):
            for char, y in group.positions():
                lines.setdefault(char, []).append((f"l{layer_idx}g{group_idx}", y))
    return lines


def compute_metrics(story: AlignedStoryline) -> StorylineMetrics:
    lines = character_lines(story)
    wiggle_count = 0
    linear = 0.0
    quadratic = 0.0
    y_min, y_max = math.inf, -math.inf
    for appearances in lines.values():
        ys = [y for _, y in appearances]
        y_min = min(y_min, *ys)
        y_max = max(y_max, *ys)
        for a, b in pairwise(ys):
            height = abs(a - b)
            if height > EPS:
                wiggle_count += 1
            linear += height
            quadratic += height * height

    return StorylineMetrics(
        layers=len(story.layers),
        meetings=sum(1 for layer in story.layers for group in layer.groups if group.is_active),
        characters=len(lines),
        wiggle_count=wiggle_count,
        linear_wiggle_height=linear,
        quadratic_wiggle_height=quadratic,
        total_height=y_max - y_min if lines else 0.0,
    )
