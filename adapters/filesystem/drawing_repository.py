from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from filelock import FileLock

from adapters.filesystem.json_utils import write_json_atomic
from domain.models import DrawingFrag
from domain.ports.repositories import DrawingRepository


class FileSystemDrawingRepository(DrawingRepository):
    def save(
        self,
        frags: Sequence[DrawingFrag],
        path: Path,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"fragments": list(frags)}
        if metadata:
            payload["metadata"] = dict(metadata)
        lock_path = path.with_suffix(f"{path.suffix}.lock")
        with FileLock(str(lock_path)):
            write_json_atomic(path, payload)
