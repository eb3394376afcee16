"""Routing endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Request, status

from ...schemas.routing import (
    RoutePlanRequest,
    RoutePlanResponse,
    SessionStateResponse,
    SessionUpdateRequest,
    SessionUpdateResponse,
)
from ...services.routing.service import PlannerSessionRegistry, plan_route

router = APIRouter(prefix="/routes", tags=["routes"])


def _sessions(request: Request) -> PlannerSessionRegistry:
    return request.app.state.planner_sessions


@router.post("/plan", response_model=RoutePlanResponse, status_code=status.HTTP_200_OK)
async def plan(payload: RoutePlanRequest) -> RoutePlanResponse:
    try:
        return await plan_route(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error planning route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to plan route: {str(exc)}"
        ) from exc


@router.put("/sessions/{session_id}", response_model=SessionUpdateResponse, status_code=status.HTTP_202_ACCEPTED)
async def update_session(session_id: str, payload: SessionUpdateRequest, request: Request) -> SessionUpdateResponse:
    """Change the inputs of a planning view and start recomputing its route."""
    try:
        return _sessions(request).update(session_id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/sessions/{session_id}", response_model=SessionStateResponse, status_code=status.HTTP_200_OK)
async def get_session(
    session_id: str,
    request: Request,
    wait: bool = Query(default=False, description="Wait for in-flight recomputations before answering."),
) -> SessionStateResponse:
    try:
        return await _sessions(request).snapshot(session_id, wait=wait)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.delete("/sessions/{session_id}", status_code=status.HTTP_200_OK)
async def close_session(session_id: str, request: Request) -> dict:
    try:
        _sessions(request).discard(session_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return {"success": True, "message": f"Planning session {session_id} closed"}
