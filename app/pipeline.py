from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import List

from app.config import LayoutSettings
from domain.errors import StoryLayoutError
from domain.models import AlignedStoryline, DrawingFrag, Realization
from domain.ports.solver import Solver
from domain.services.align_storyline import AlignStoryline
from domain.services.justify_layers import justify_layers
from domain.services.justify_layers_lp import JustifyLayersLP
from domain.services.storyline_metrics import StorylineMetrics, compute_metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayoutResult:
    aligned: AlignedStoryline
    fragments: List[DrawingFrag]
    metrics: StorylineMetrics


class LayoutPipeline:
    """Alignment followed by justification; alignment always finishes first."""

    def __init__(self, solver: Solver, settings: LayoutSettings | None = None) -> None:
        self.solver = solver
        self.settings = settings or LayoutSettings()

    def align(self, realization: Realization) -> AlignedStoryline:
        return AlignStoryline(self.solver).align(
            realization,
            criterion=self.settings.alignment_criterion,
            gap_ratio=self.settings.gap_ratio,
            align_continued_meetings=self.settings.align_continued_meetings,
        )

    def justify(self, aligned: AlignedStoryline) -> List[DrawingFrag]:
        if self.settings.justify_method == "lp":
            return JustifyLayersLP(self.solver).justify(aligned, self.settings.layer_style)
        return justify_layers(aligned, self.settings.to_justify_config())

    def run(self, realization: Realization) -> LayoutResult:
        aligned = self.align(realization)
        fragments = self.justify(aligned)
        metrics = compute_metrics(aligned)
        logger.info(
            "Laid out %d layers: %d fragments, %d wiggles, total height %.3f",
            metrics.layers,
            len(fragments),
            metrics.wiggle_count,
            metrics.total_height,
        )
        return LayoutResult(aligned=aligned, fragments=fragments, metrics=metrics)


class LayoutSession:
    """Runs layouts off the event loop and drops results of superseded requests.

    Every ``submit`` call takes a new request id. A run whose id is no longer
    the latest when it finishes returns ``None``, errors included.
    """

    def __init__(self, solver: Solver) -> None:
        self.solver = solver
        self._latest_request = 0

    @property
    def latest_request(self) -> int:
        return self._latest_request

    async def submit(
        self, realization: Realization, settings: LayoutSettings
    ) -> LayoutResult | None:
        self._latest_request += 1
        request_id = self._latest_request
        pipeline = LayoutPipeline(self.solver, settings)
        try:
            result = await asyncio.to_thread(pipeline.run, realization)
        except StoryLayoutError:
            if request_id != self._latest_request:
                logger.info("Ignoring failure of superseded layout request %d", request_id)
                return None
            raise
        if request_id != self._latest_request:
            logger.info("Discarding result of superseded layout request %d", request_id)
            return None
        return result


class LayoutSessions:
    """Least recently used sessions are evicted once more than ``max_sessions`` exist."""

    def __init__(self, solver: Solver, max_sessions: int) -> None:
        self.solver = solver
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, LayoutSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> LayoutSession:
        session = self._sessions.pop(session_id, None) or LayoutSession(self.solver)
        self._sessions[session_id] = session
        while len(self._sessions) > self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.debug("Evicting layout session %s", evicted)
        return session
