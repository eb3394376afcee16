"""Routing orchestration service."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Sequence

from ...config import settings
from ...models.domain import Coordinate, Stop
from ...schemas.routing import (
    CoordinateModel,
    MarkerLabelModel,
    PlannedStopModel,
    RoutePlanRequest,
    RoutePlanResponse,
    SessionStateResponse,
    SessionUpdateRequest,
    SessionUpdateResponse,
    StopModel,
)
from .controller import RouteRecomputeController
from .directions import PathRenderer, build_path_renderer, render_path
from .matrix_client import build_matrix_client
from .models import PathGeometry, PathRequest, RoutePlan
from .presentation import RouteView, build_path_request, present_route
from .resolver import CoordinateResolver, build_resolver

logger = logging.getLogger(__name__)


def _to_stop(model: StopModel) -> Stop:
    coordinate = None
    if model.coordinate is not None:
        coordinate = Coordinate(latitude=model.coordinate.latitude, longitude=model.coordinate.longitude)
    return Stop(
        id=model.id,
        display_name=model.display_name,
        display_address=model.display_address,
        coordinate=coordinate,
    )


def _to_stops(models: Sequence[StopModel]) -> list[Stop]:
    return [_to_stop(model) for model in models]


def _optional_resolver() -> CoordinateResolver | None:
    try:
        return build_resolver()
    except ValueError as exc:
        logger.warning(f"Place resolution disabled: {exc}")
        return None


def _optional_path_renderer() -> PathRenderer | None:
    try:
        return build_path_renderer()
    except ValueError as exc:
        logger.warning(f"Path rendering disabled: {exc}")
        return None


def build_controller(on_publish: Callable[[RoutePlan], None] | None = None) -> RouteRecomputeController:
    try:
        matrix_client = build_matrix_client()
    except ValueError as exc:
        logger.error(f"Matrix client initialization failed: {exc}")
        raise ValueError(
            f"Travel-time matrix provider '{settings.matrix_provider}' is not configured: {exc}"
        ) from exc
    return RouteRecomputeController(matrix_client, resolver=_optional_resolver(), on_publish=on_publish)


def route_view_to_response(plan: RoutePlan, view: RouteView) -> RoutePlanResponse:
    stops = [
        PlannedStopModel(
            stop_index=item.stop_index,
            id=item.stop.id,
            display_name=item.stop.display_name,
            display_address=item.stop.display_address,
            coordinate=CoordinateModel(
                latitude=item.stop.coordinate.latitude, longitude=item.stop.coordinate.longitude
            )
            if item.stop.coordinate is not None
            else None,
            sequence=item.sequence,
            next_leg_ms=int(item.next_leg_ms) if item.next_leg_ms is not None else None,
            next_leg_min=item.next_leg_min,
        )
        for item in view.items
    ]
    metadata: dict = {"unreachable_pairs": plan.unreachable_pairs}
    if plan.detail:
        metadata["detail"] = plan.detail
    overlay = view.map_overlay()
    if overlay:
        metadata["map_overlays"] = {"route": overlay}
    return RoutePlanResponse(
        status=plan.status,
        generation=plan.generation,
        mode=plan.mode,
        start_index=plan.start_index,
        stops=stops,
        leg_durations_ms=[int(leg) for leg in plan.leg_durations],
        total_duration_ms=int(plan.total_duration_ms),
        total_duration_min=view.total_duration_min,
        marker_labels=[MarkerLabelModel(stop_index=m.stop_index, label=m.label) for m in view.marker_labels],
        unrouted_stop_indices=view.unrouted_stop_indices,
        metadata=metadata,
    )


async def plan_route(payload: RoutePlanRequest) -> RoutePlanResponse:
    """Resolve, order and present one set of stops."""
    controller = build_controller()
    plan = await controller.recompute(
        stops=_to_stops(payload.stops),
        mode=payload.mode,
        start_index=payload.start_index,
    )
    view = present_route(plan)
    if payload.include_path and view.path_request is not None:
        view.path = await render_path(_optional_path_renderer(), view.path_request)
    return route_view_to_response(plan, view)


@dataclass(slots=True)
class PlannerSession:
    session_id: str
    controller: RouteRecomputeController
    path_renderer: PathRenderer | None = None
    last_seen: float = 0.0
    # Drawn path for the published generation ``path_generation`` only.
    path: PathGeometry | None = None
    path_generation: int = 0
    path_tasks: set[asyncio.Task] = field(default_factory=set)


class PlannerSessionRegistry:
    """In-memory planning sessions, one controller per open planning view.

    Sessions idle for longer than ``idle_timeout`` are dropped, and beyond
    ``max_sessions`` the least recently used one is dropped.
    """

    def __init__(
        self,
        controller_factory: Callable[[], RouteRecomputeController] | None = None,
        *,
        path_renderer_factory: Callable[[], PathRenderer | None] | None = None,
        idle_timeout: float | None = None,
        max_sessions: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._controller_factory = controller_factory or build_controller
        self._path_renderer_factory = path_renderer_factory or _optional_path_renderer
        self.idle_timeout = idle_timeout if idle_timeout is not None else settings.session_idle_timeout_seconds
        self.max_sessions = max_sessions if max_sessions is not None else settings.max_sessions
        self._clock = clock
        self._sessions: dict[str, PlannerSession] = {}

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def _expire_idle(self) -> None:
        cutoff = self._clock() - self.idle_timeout
        for session_id in [sid for sid, s in self._sessions.items() if s.last_seen < cutoff]:
            del self._sessions[session_id]
            logger.info(f"Discarded idle planning session '{session_id}'")

    def get(self, session_id: str) -> PlannerSession:
        self._expire_idle()
        try:
            session = self._sessions[session_id]
        except KeyError:
            raise LookupError(f"Planning session '{session_id}' not found.") from None
        session.last_seen = self._clock()
        return session

    def get_or_create(self, session_id: str) -> PlannerSession:
        self._expire_idle()
        session = self._sessions.get(session_id)
        if session is not None:
            session.last_seen = self._clock()
            return session

        controller = self._controller_factory()
        while len(self._sessions) >= self.max_sessions:
            oldest = min(self._sessions.values(), key=lambda s: s.last_seen)
            del self._sessions[oldest.session_id]
            logger.warning(f"Session limit {self.max_sessions} reached, dropped '{oldest.session_id}'")

        session = PlannerSession(
            session_id=session_id,
            controller=controller,
            path_renderer=self._path_renderer_factory(),
            last_seen=self._clock(),
        )
        session.controller.on_publish = partial(self._draw_path, session)
        self._sessions[session_id] = session
        logger.info(f"Opened planning session '{session_id}'")
        return session

    def _draw_path(self, session: PlannerSession, plan: RoutePlan) -> None:
        """Start drawing the path for a newly published plan; the previous path is cleared."""
        session.path = None
        session.path_generation = plan.generation
        request = build_path_request(plan)
        if session.path_renderer is None or request is None:
            return
        task = asyncio.create_task(self._render(session, plan.generation, request))
        session.path_tasks.add(task)
        task.add_done_callback(session.path_tasks.discard)

    async def _render(self, session: PlannerSession, generation: int, request: PathRequest) -> None:
        path = await render_path(session.path_renderer, request)
        if generation != session.path_generation:
            logger.debug(
                f"Discarding stale path for session '{session.session_id}' "
                f"(generation {generation}, published {session.path_generation})"
            )
            return
        session.path = path

    async def _wait_idle(self, session: PlannerSession) -> None:
        while True:
            await session.controller.wait_idle()
            pending = [task for task in session.path_tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def update(self, session_id: str, payload: SessionUpdateRequest) -> SessionUpdateResponse:
        """Apply input changes and start recomputing without waiting for it."""
        session = self.get_or_create(session_id)
        session.controller.schedule(
            stops=_to_stops(payload.stops) if payload.stops is not None else None,
            mode=payload.mode,
            start_index=payload.start_index,
        )
        return SessionUpdateResponse(
            session_id=session_id,
            generation=session.controller.generation,
            is_computing=session.controller.is_computing,
        )

    async def snapshot(self, session_id: str, *, wait: bool = False) -> SessionStateResponse:
        session = self.get(session_id)
        controller = session.controller
        if wait:
            await self._wait_idle(session)
        plan = controller.current
        route = None
        if plan is not None:
            view = present_route(plan)
            if session.path_generation == plan.generation:
                view.path = session.path
            route = route_view_to_response(plan, view)
        return SessionStateResponse(
            session_id=session_id,
            generation=controller.generation,
            is_computing=controller.is_computing,
            route=route,
        )

    def discard(self, session_id: str) -> None:
        self.get(session_id)
        del self._sessions[session_id]
        logger.info(f"Closed planning session '{session_id}'")
