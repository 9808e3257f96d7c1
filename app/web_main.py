from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, Header, HTTPException, Query
from fastapi.responses import ORJSONResponse
from pydantic import ValidationError

from app.config import AppSettings, LayoutSettings, load_settings
from app.pipeline import LayoutPipeline, LayoutResult, LayoutSessions
from app.solver_wiring import build_solver
from domain.errors import SolveFailure, StructuralError
from domain.models import StorylineDocument, bounding_box
from domain.ports.solver import Solver

logger = logging.getLogger(__name__)


def create_app(settings: AppSettings, solver: Solver | None = None) -> FastAPI:
    app = FastAPI(title=settings.title)
    layout_solver = solver or build_solver(settings)
    sessions = LayoutSessions(layout_solver, settings.max_layout_sessions)
    app.state.layout_sessions = sessions

    def resolve_settings(**overrides: Any) -> LayoutSettings:
        update = {key: value for key, value in overrides.items() if value is not None}
        try:
            return LayoutSettings.model_validate({**settings.layout.model_dump(), **update})
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=exc.errors(include_url=False)) from exc

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/layout", response_class=ORJSONResponse)
    async def api_layout(
        document: StorylineDocument,
        criterion: Optional[str] = Query(default=None),
        gap_ratio: Optional[float] = Query(default=None),
        continued_meetings: Optional[bool] = Query(default=None),
        layer_style: Optional[str] = Query(default=None),
        block_handling: Optional[str] = Query(default=None),
        justify_method: Optional[str] = Query(default=None),
        session_id: Optional[str] = Header(default=None, alias="X-Layout-Session"),
    ) -> ORJSONResponse:
        layout_settings = resolve_settings(
            alignment_criterion=criterion,
            gap_ratio=gap_ratio,
            align_continued_meetings=continued_meetings,
            layer_style=layer_style,
            block_handling=block_handling,
            justify_method=justify_method,
        )
        realization = document.to_realization()
        try:
            if session_id:
                session = sessions.get(session_id)
                result = await session.submit(realization, layout_settings)
            else:
                pipeline = LayoutPipeline(layout_solver, layout_settings)
                result = await asyncio.to_thread(pipeline.run, realization)
        except StructuralError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except SolveFailure as exc:
            logger.warning("Could not align storyline: %s", exc)
            raise HTTPException(
                status_code=422, detail=f"Could not align storyline: {exc}"
            ) from exc
        if result is None:
            raise HTTPException(status_code=409, detail="Superseded by a newer layout request")
        return ORJSONResponse(_layout_payload(result, layout_settings))

    return app


def _layout_payload(result: LayoutResult, layout_settings: LayoutSettings) -> dict[str, Any]:
    x_min, y_min, x_max, y_max = bounding_box(result.fragments)
    return {
        "settings": layout_settings.model_dump(),
        "fragments": result.fragments,
        "metrics": result.metrics.to_dict(),
        "bounds": {"x_min": x_min, "y_min": y_min, "x_max": x_max, "y_max": y_max},
        "anchors": result.aligned.anchors(),
    }


def main() -> None:
    settings = load_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
