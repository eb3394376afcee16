"""Latest-wins recomputation of the visiting order.

Every input change mints a new generation number. A computation publishes
its result only if its generation is still the latest when it finishes;
older computations run to completion and are then dropped. Nothing is
cancelled, so several computations may be in flight at once.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Callable, Optional, Sequence

from ...models.domain import Stop, TravelMode
from .errors import MatrixServiceUnavailableError
from .matrix_client import TravelCostMatrixClient
from .models import MarkerLabel, PlannerInputs, RouteComputation, RoutePlan
from .ordering import clamp_start_index, compute_order
from .resolver import CoordinateResolver

logger = logging.getLogger(__name__)

STATUS_COMPLETE = "complete"
STATUS_PARTIAL = "partial"
STATUS_TRIVIAL = "trivial"
STATUS_UNAVAILABLE = "unavailable"


class RouteRecomputeController:
    """Owns the published ``RoutePlan`` for one planning view.

    ``start_index`` refers to a position among the routable stops (those with
    a coordinate) and is clamped into range before ordering.
    """

    def __init__(
        self,
        matrix_client: TravelCostMatrixClient,
        *,
        resolver: CoordinateResolver | None = None,
        on_publish: Callable[[RoutePlan], None] | None = None,
    ) -> None:
        self.matrix_client = matrix_client
        self.resolver = resolver
        self.on_publish = on_publish
        self._inputs = PlannerInputs()
        self._generation = 0
        self._current: Optional[RoutePlan] = None
        self._is_computing = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def current(self) -> Optional[RoutePlan]:
        return self._current

    @property
    def inputs(self) -> PlannerInputs:
        return self._inputs

    @property
    def is_computing(self) -> bool:
        return self._is_computing

    def request(
        self,
        *,
        stops: Sequence[Stop] | None = None,
        mode: TravelMode | None = None,
        start_index: int | None = None,
    ) -> tuple[int, PlannerInputs]:
        """Apply input changes and mint the generation that will compute them."""
        changes: dict = {}
        if stops is not None:
            changes["stops"] = tuple(stops)
            changes["stops_resolved"] = False
        if mode is not None:
            changes["mode"] = TravelMode(mode)
        if start_index is not None:
            changes["start_index"] = start_index
        self._inputs = replace(self._inputs, **changes)
        self._generation += 1
        self._is_computing = True
        return self._generation, self._inputs

    async def recompute(self, **changes) -> Optional[RoutePlan]:
        """Compute for the updated inputs; returns None if superseded meanwhile."""
        generation, inputs = self.request(**changes)
        return await self._run(generation, inputs)

    def schedule(self, **changes) -> asyncio.Task:
        """Like ``recompute`` but returns immediately with the running task."""
        generation, inputs = self.request(**changes)
        task = asyncio.create_task(self._run(generation, inputs))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Route recomputation failed: {task.exception()!r}")

    async def _run(self, generation: int, inputs: PlannerInputs) -> Optional[RoutePlan]:
        try:
            plan = await self._compute(generation, inputs)
        finally:
            if generation == self._generation:
                self._is_computing = False

        if generation != self._generation:
            logger.debug(f"Discarding stale route result (generation {generation}, latest {self._generation})")
            return None
        self._publish(plan)
        return plan

    def _keep_resolved(self, inputs: PlannerInputs, resolved: tuple[Stop, ...]) -> None:
        """Store looked-up coordinates so later requests for the same stop list skip the lookups.

        Stops still without a coordinate stay unrouted until the stop list changes.
        """
        if self._inputs.stops is not inputs.stops:
            logger.debug("Stop list changed during place lookups; not keeping resolved coordinates")
            return
        self._inputs = replace(self._inputs, stops=resolved, stops_resolved=True)

    def _publish(self, plan: RoutePlan) -> None:
        self._current = plan
        logger.info(
            f"Published route generation {plan.generation}: status={plan.status}, "
            f"{len(plan.order)}/{len(plan.routable_indices)} stops ordered, total={plan.total_duration_ms:.0f}ms"
        )
        if self.on_publish is not None:
            self.on_publish(plan)

    async def _compute(self, generation: int, inputs: PlannerInputs) -> RoutePlan:
        stops = inputs.stops
        if (
            self.resolver is not None
            and not inputs.stops_resolved
            and any(not stop.is_resolved for stop in stops)
        ):
            stops = tuple(await self.resolver.resolve_stops(stops))
            self._keep_resolved(inputs, stops)

        routable = tuple(index for index, stop in enumerate(stops) if stop.is_resolved)
        start = clamp_start_index(inputs.start_index, len(routable))

        def build(computation: RouteComputation, status: str, **extra) -> RoutePlan:
            return RoutePlan(
                generation=generation,
                mode=inputs.mode,
                start_index=start,
                status=status,
                stops=stops,
                routable_indices=routable,
                order=computation.order,
                leg_durations=computation.leg_durations,
                marker_labels=_marker_labels(routable, computation.order),
                **extra,
            )

        if len(routable) < 2:
            return build(RouteComputation(order=tuple(range(len(routable))), leg_durations=()), STATUS_TRIVIAL)

        coordinates = [stops[index].coordinate for index in routable]
        try:
            matrix = await self.matrix_client.get_matrix(coordinates, inputs.mode)
        except MatrixServiceUnavailableError as exc:
            if generation == self._generation:
                logger.warning(f"Travel-time matrix unavailable, publishing empty route: {exc}")
            return build(RouteComputation(order=(), leg_durations=()), STATUS_UNAVAILABLE, detail=str(exc))

        computation = compute_order(matrix.values, start)
        status = STATUS_COMPLETE
        if len(computation.order) < len(routable):
            status = STATUS_PARTIAL
            logger.warning(
                f"Partial route computed: {len(computation.order)}/{len(routable)} stops reachable "
                f"from stop {routable[start]}"
            )
        return build(computation, status, unreachable_pairs=matrix.unreachable_pairs())


def _marker_labels(routable: Sequence[int], order: Sequence[int]) -> tuple[MarkerLabel, ...]:
    labels = {stop_index: "" for stop_index in routable}
    for position, routable_position in enumerate(order):
        labels[routable[routable_position]] = str(position + 1)
    return tuple(MarkerLabel(stop_index=index, label=label) for index, label in labels.items())
