from __future__ import annotations

import logging
import math

import pytest

from domain.models import CharInitFrag, CharLineFrag, MeetingFrag
from domain.services.justify_layers import (
    MEETING_WIDTH,
    MIN_LAYER_WIDTH,
    Block,
    JustifyConfig,
    join_blocks,
    justify_layers,
    make_blocks,
    min_layer_width,
    s_curve,
)
from tests.helpers.storylines import aligned


@pytest.mark.parametrize(
    ("size", "offset"), [(0.0, 0.0), (2.0, 0.25), (3.0, 1.0), (1.0, 0.5)]
)
def test_joining_a_block_with_itself_is_identity(size: float, offset: float) -> None:
    joined = join_blocks(size, offset, size, offset)

    assert joined[0] == pytest.approx(size)
    assert joined[1] == pytest.approx(offset)


def test_join_takes_the_larger_extent_on_each_side() -> None:
    assert join_blocks(2.0, 0.5, 4.0, 0.25) == (pytest.approx(4.0), pytest.approx(0.25))
    assert join_blocks(0.0, 0.0, 2.0, 1.0) == (pytest.approx(2.0), pytest.approx(1.0))


def test_s_curve_without_height_is_straight() -> None:
    line = s_curve(3.0, 0.0, 1.0, 0.5)

    assert line.is_straight
    assert line.dx == 3.0
    assert line.arcs() == ()


def test_s_curve_without_width_is_empty(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        line = s_curve(0.0, 2.0, 1.0, 0.5)

    assert line.is_empty
    assert line.arcs() == ()
    assert "Zero-width curve" in caplog.text


def test_s_curve_radii_add_up_to_the_chord_parameter() -> None:
    line = s_curve(2.0, 2.0, 0.0, 0.0)

    assert line.r1 == pytest.approx(1.0)
    assert line.r2 == pytest.approx(1.0)
    first, second = line.arcs()
    assert first.dx == pytest.approx(1.0)
    assert first.dy == pytest.approx(1.0)
    assert first.sweep and not second.sweep


@pytest.mark.parametrize(("dy", "expected_r1"), [(2.0, 0.5), (-2.0, 1.5)])
def test_s_curve_offset_shifts_radius_by_direction(dy: float, expected_r1: float) -> None:
    line = s_curve(2.0, dy, 1.0, 1.0)

    assert line.r1 == pytest.approx(expected_r1)
    assert line.r1 + line.r2 == pytest.approx(2.0)


def test_min_layer_width() -> None:
    assert min_layer_width(0.0, 0.0) == 0.0
    assert min_layer_width(1.0, 0.0) == pytest.approx(math.sqrt(3.0))
    assert min_layer_width(10.0, 0.0) == pytest.approx(10.0)
    assert min_layer_width(-1.0, 1.0) == pytest.approx(math.sqrt(5.0))


def test_continuous_blocks_split_on_slope_changes() -> None:
    items = [(1, 0.0), (1, 1.0), (0, 2.0), (-1, 3.0), (-1, 5.0)]

    blocks = make_blocks("continuous", items, lambda item: item[0], lambda item: item[1])

    assert [block for _, block in blocks] == [
        Block(1.0, 0.0),
        Block(1.0, 1.0),
        Block(0.0, 0.0),
        Block(2.0, 0.0),
        Block(2.0, 1.0),
    ]


def test_full_blocks_span_every_line_of_one_direction() -> None:
    items = [(1, 0.0), (0, 1.0), (1, 3.0), (-1, 4.0)]

    blocks = make_blocks("full", items, lambda item: item[0], lambda item: item[1])

    assert [block for _, block in blocks] == [
        Block(3.0, 0.0),
        Block(0.0, 0.0),
        Block(3.0, 1.0),
        Block(0.0, 0.0),
    ]


def test_make_blocks_edge_cases() -> None:
    assert make_blocks("continuous", [], lambda item: 0, lambda item: 0.0) == []
    with pytest.raises(ValueError):
        make_blocks("diagonal", [(1, 0.0)], lambda item: item[0], lambda item: item[1])


def test_condensed_flat_story() -> None:
    story = aligned([[(["a", "b"], 0.0)], [(["a", "b"], 0.0)]])

    frags = justify_layers(story, JustifyConfig(layer_style="condensed"))

    assert [frag.kind for frag in frags] == [
        "char-init",
        "char-init",
        "meeting",
        "char-line",
        "char-line",
        "meeting",
    ]
    init_a = frags[0]
    assert isinstance(init_a, CharInitFrag)
    assert init_a.pos.x == pytest.approx(MIN_LAYER_WIDTH - MEETING_WIDTH)
    line_b = frags[4]
    assert isinstance(line_b, CharLineFrag)
    assert line_b.pos.x == pytest.approx(MIN_LAYER_WIDTH)
    assert line_b.pos.y == 1.0
    assert line_b.dx == pytest.approx(MIN_LAYER_WIDTH)
    assert line_b.s_line.is_straight
    assert line_b.s_line.dx == pytest.approx(MIN_LAYER_WIDTH - MEETING_WIDTH)
    meeting = frags[5]
    assert isinstance(meeting, MeetingFrag)
    assert meeting.layer == 1
    assert meeting.top_char == "a"
    assert meeting.dy == 1
    assert meeting.pos.x == pytest.approx(2 * MIN_LAYER_WIDTH - MEETING_WIDTH)


def test_single_curve_widens_its_layer() -> None:
    story = aligned([[(["a"], 0.0)], [(["a"], 2.0)]])

    frags = justify_layers(story)

    line = next(frag for frag in frags if isinstance(frag, CharLineFrag))
    assert line.dx == pytest.approx(2.0 + MEETING_WIDTH)
    assert line.s_line.dx == pytest.approx(2.0)
    assert line.s_line.dy == pytest.approx(2.0)
    assert line.s_line.r1 == pytest.approx(1.0)
    assert line.s_line.r2 == pytest.approx(1.0)


def test_parallel_lines_keep_their_distance() -> None:
    story = aligned([[(["a", "b"], 0.0)], [(["a", "b"], 3.0)]])

    frags = justify_layers(story)

    lines = {frag.char.id: frag for frag in frags if isinstance(frag, CharLineFrag)}
    assert lines["a"].s_line.block_size == pytest.approx(1.0)
    assert lines["a"].s_line.offset == pytest.approx(0.0)
    assert lines["b"].s_line.offset == pytest.approx(1.0)
    assert lines["a"].s_line.r1 - lines["b"].s_line.r1 == pytest.approx(1.0)
    assert lines["b"].s_line.r2 - lines["a"].s_line.r2 == pytest.approx(1.0)
    assert lines["a"].dx == pytest.approx(3.0 + MEETING_WIDTH)


def test_characters_entering_later_get_an_init_fragment() -> None:
    story = aligned([[(["a"], 0.0)], [(["a"], 0.0), (["b"], 2.0)]], kind="inactive")

    frags = justify_layers(story)

    inits = [frag for frag in frags if isinstance(frag, CharInitFrag)]
    assert [frag.char.id for frag in inits] == ["a", "b"]
    assert inits[1].pos.y == 2.0
    assert not inits[1].char.in_meeting
    assert not any(isinstance(frag, MeetingFrag) for frag in frags)


def test_uniform_layers_share_one_width() -> None:
    story = aligned(
        [[(["a"], 0.0), (["b"], 2.0)], [(["a"], 0.0), (["b"], 2.0)], [(["a"], 4.0), (["b"], 6.0)]]
    )

    frags = justify_layers(story, JustifyConfig(layer_style="uniform"))

    lines = [frag for frag in frags if isinstance(frag, CharLineFrag)]
    widths = {round(frag.dx, 9) for frag in lines}
    assert len(widths) == 1
    assert lines[0].pos.x == pytest.approx(lines[0].dx)
    assert lines[-1].pos.x == pytest.approx(2 * lines[0].dx)
    kinds = [frag.kind for frag in frags]
    assert kinds.index("meeting") > max(i for i, kind in enumerate(kinds) if kind != "meeting")


def test_unknown_layer_style_is_rejected() -> None:
    story = aligned([[(["a"], 0.0)]])

    with pytest.raises(ValueError):
        justify_layers(story, JustifyConfig(layer_style="stretched"))  # type: ignore[arg-type]


def test_empty_story_has_no_fragments() -> None:
    assert justify_layers(aligned([])) == []
