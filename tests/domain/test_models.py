from __future__ import annotations

import pytest
from pydantic import ValidationError

from domain.models import (
    CharLineFrag,
    CharState,
    MeetingFrag,
    Point,
    SLine,
    StorylineDocument,
    bounding_box,
)
from tests.helpers.storylines import load_example


def test_example_document_converts_to_realization() -> None:
    document = load_example()

    story = document.to_realization()

    assert len(story.layers) == 4
    first = story.layers[0].groups[0]
    assert first.characters_ordered == ("al", "bo")
    assert first.is_active
    assert not story.layers[0].groups[1].is_active
    assert story.layers[3].groups[0].size == 5


def test_group_kind_defaults_to_active() -> None:
    document = StorylineDocument.model_validate({"layers": [{"groups": [{"characters": ["x"]}]}]})

    assert document.to_realization().layers[0].groups[0].kind == "active"


@pytest.mark.parametrize(
    "payload",
    [
        {"layers": [{"groups": [{"characters": []}]}]},
        {"layers": [{"groups": [{"characters": ["a"]}, {"characters": ["b", "a"]}]}]},
        {"layers": [{"groups": [{"kind": "sleeping", "characters": ["a"]}]}]},
    ],
)
def test_invalid_documents_are_rejected(payload: dict) -> None:
    with pytest.raises(ValidationError):
        StorylineDocument.model_validate(payload)


def test_s_line_arcs_split_the_chord_by_radius() -> None:
    line = SLine(dx=4.0, dy=-2.0, r1=3.0, r2=1.0)

    first, second = line.arcs()

    assert first.dx == pytest.approx(3.0)
    assert first.dy == pytest.approx(-1.5)
    assert second.dx == pytest.approx(1.0)
    assert second.dy == pytest.approx(-0.5)
    assert not first.sweep
    assert second.sweep


def test_bounding_box_covers_every_fragment() -> None:
    frags = [
        CharLineFrag(
            char=CharState(id="a", in_meeting=True),
            pos=Point(0.0, 1.0),
            s_line=SLine(dx=2.0, dy=-3.0, r1=1.0, r2=1.0),
            dx=2.5,
        ),
        MeetingFrag(pos=Point(2.0, 4.0), dx=0.5, dy=2.0, layer=1, top_char="b"),
    ]

    assert bounding_box(frags) == (0.0, -2.0, 2.5, 6.0)
    assert bounding_box([]) == (0.0, 0.0, 0.0, 0.0)
