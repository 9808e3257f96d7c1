from __future__ import annotations

import json
import shutil
from pathlib import Path

from adapters.filesystem.storyline_repository import FileSystemStorylineRepository
from tests.helpers.storylines import example_path


def test_load_by_path_reads_example() -> None:
    document = FileSystemStorylineRepository().load_by_path(example_path())

    assert document.characters["al"] == "Alice"
    assert [layer.title for layer in document.layers] == ["Arrival", "Drinks", "Dinner", "Dessert"]


def test_load_all_is_sorted_and_skips_other_files(tmp_path: Path) -> None:
    shutil.copy(example_path(), tmp_path / "b_story.json")
    (tmp_path / "a_story.json").write_text(
        json.dumps({"layers": [{"groups": [{"characters": ["x", "y"]}]}]}), encoding="utf-8"
    )
    (tmp_path / "notes.txt").write_text("not a storyline", encoding="utf-8")

    repo = FileSystemStorylineRepository()
    pairs = repo.load_all_with_paths(tmp_path)

    assert [path.name for path, _ in pairs] == ["a_story.json", "b_story.json"]
    assert len(repo.load_all(tmp_path)) == 2
    assert pairs[0][1].layers[0].groups[0].characters == ["x", "y"]
