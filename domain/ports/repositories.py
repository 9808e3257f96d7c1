from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol

from domain.models import DrawingFrag, StorylineDocument


class StorylineRepository(Protocol):
    def load_all_with_paths(self, directory: Path) -> Sequence[tuple[Path, StorylineDocument]]: ...

    def load_by_path(self, path: Path) -> StorylineDocument: ...


class DrawingRepository(Protocol):
    def save(
        self,
        frags: Sequence[DrawingFrag],
        path: Path,
        metadata: Mapping[str, Any] | None = None,
    ) -> None: ...
