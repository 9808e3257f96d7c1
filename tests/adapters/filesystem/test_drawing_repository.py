from __future__ import annotations

import json
from pathlib import Path

from adapters.filesystem.drawing_repository import FileSystemDrawingRepository
from domain.models import CharInitFrag, CharLineFrag, CharState, MeetingFrag, Point, SLine


def test_save_writes_tagged_fragments(tmp_path: Path) -> None:
    frags = [
        CharInitFrag(char=CharState(id="a", in_meeting=True), pos=Point(0.3, 0.0), dx=0.5),
        CharLineFrag(
            char=CharState(id="a", in_meeting=False),
            pos=Point(0.8, 0.0),
            s_line=SLine(dx=2.0, dy=2.0, r1=1.0, r2=1.0, block_size=0.0, offset=0.0),
            dx=2.5,
        ),
        MeetingFrag(pos=Point(2.8, 2.0), dx=0.5, dy=0.0, layer=1, top_char="a"),
    ]
    target = tmp_path / "out" / "story.frags.json"

    FileSystemDrawingRepository().save(frags, target, metadata={"wiggle_count": 1})

    payload = json.loads(target.read_text(encoding="utf-8"))
    assert [frag["kind"] for frag in payload["fragments"]] == ["char-init", "char-line", "meeting"]
    assert payload["fragments"][1]["s_line"]["r1"] == 1.0
    assert payload["fragments"][0]["char"] == {"id": "a", "in_meeting": True}
    assert payload["metadata"] == {"wiggle_count": 1}
    assert not target.with_suffix(".json.tmp").exists()


def test_save_without_metadata(tmp_path: Path) -> None:
    target = tmp_path / "empty.frags.json"

    FileSystemDrawingRepository().save([], target)

    assert json.loads(target.read_text(encoding="utf-8")) == {"fragments": []}
