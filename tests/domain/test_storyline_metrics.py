from __future__ import annotations

import pytest

from domain.services.storyline_metrics import character_lines, compute_metrics
from tests.helpers.storylines import aligned


def test_metrics_of_a_small_storyline() -> None:
    story = aligned(
        [
            [(["a", "b"], 0.0), (["c"], 3.0)],
            [(["a"], 0.0), (["b", "c"], 2.0)],
            [(["a", "c"], 1.0)],
        ]
    )

    metrics = compute_metrics(story)

    # b: 1 -> 2, c: 3 -> 3 -> 2, a: 0 -> 0 -> 1
    assert metrics.layers == 3
    assert metrics.meetings == 5
    assert metrics.characters == 3
    assert metrics.wiggle_count == 3
    assert metrics.linear_wiggle_height == pytest.approx(3.0)
    assert metrics.quadratic_wiggle_height == pytest.approx(3.0)
    assert metrics.total_height == pytest.approx(3.0)


def test_gaps_in_appearance_count_as_one_wiggle() -> None:
    story = aligned([[(["a"], 0.0)], [(["b"], 0.0)], [(["a"], 2.0)]])

    lines = character_lines(story)
    metrics = compute_metrics(story)

    assert lines["a"] == [("l0g0", 0.0), ("l2g0", 2.0)]
    assert metrics.wiggle_count == 1
    assert metrics.quadratic_wiggle_height == pytest.approx(4.0)


def test_empty_storyline_metrics() -> None:
    metrics = compute_metrics(aligned([]))

    assert metrics.to_dict() == {
        "layers": 0,
        "meetings": 0,
        "characters": 0,
        "wiggle_count": 0,
        "linear_wiggle_height": 0.0,
        "quadratic_wiggle_height": 0.0,
        "total_height": 0.0,
    }
