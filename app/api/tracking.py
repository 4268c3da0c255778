"""Tracker control endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status

from app.models.tracking import (
    DelayRequest,
    StartTrackingRequest,
    TrackerDetail,
    TrackerDetailResponse,
    TrackerListResponse,
    TrackerResponse,
    TrackerSummary,
)
from app.security import require_api_key
from app.services.registry import TrackerNotFoundError, TrackerRegistry

router = APIRouter(prefix="/track", tags=["tracking"], dependencies=[Depends(require_api_key)])

logger = logging.getLogger("flightwatch.tracking")


def get_registry(request: Request) -> TrackerRegistry:
    return request.app.state.registry


def _not_found(tracker_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "tracker_not_found", "message": f"Tracker {tracker_id} not found"},
    )


@router.post(
    "/start",
    response_model=TrackerListResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start tracking one or more pilots",
)
async def start_tracking(
    request: StartTrackingRequest,
    registry: TrackerRegistry = Depends(get_registry),
) -> TrackerListResponse:
    """Create trackers, reusing any already active for the same pilot and server."""

    usernames = request.usernames()
    if not usernames:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "username_required", "message": "username is required"},
        )

    trackers = registry.add_trackers(
        usernames, server=request.server, callback_url=request.callback_url
    )
    return TrackerListResponse(trackers=[TrackerSummary.from_tracker(t) for t in trackers])


@router.get("/active", response_model=TrackerListResponse, summary="List active trackers")
async def list_active(registry: TrackerRegistry = Depends(get_registry)) -> TrackerListResponse:
    return TrackerListResponse(
        trackers=[TrackerSummary.from_tracker(t) for t in registry.list_active()]
    )


@router.get("/{tracker_id}", response_model=TrackerDetailResponse, summary="Get tracker detail")
async def get_tracker(
    tracker_id: str, registry: TrackerRegistry = Depends(get_registry)
) -> TrackerDetailResponse:
    try:
        tracker = registry.get(tracker_id)
    except TrackerNotFoundError:
        raise _not_found(tracker_id)
    return TrackerDetailResponse(tracker=TrackerDetail.from_tracker(tracker))


@router.post("/{tracker_id}/stop", response_model=TrackerResponse, summary="Stop a tracker")
async def stop_tracker(
    tracker_id: str, registry: TrackerRegistry = Depends(get_registry)
) -> TrackerResponse:
    try:
        tracker = registry.stop(tracker_id)
    except TrackerNotFoundError:
        raise _not_found(tracker_id)
    return TrackerResponse(tracker=TrackerSummary.from_tracker(tracker))


@router.post(
    "/{tracker_id}/delay",
    response_model=TrackerResponse,
    summary="Delay a tracker's next poll",
)
async def delay_tracker(
    tracker_id: str,
    request: Optional[DelayRequest] = Body(default=None),
    registry: TrackerRegistry = Depends(get_registry),
) -> TrackerResponse:
    """Operational aid: push the next poll out without changing tracker state."""

    seconds = request.seconds if request else None
    try:
        tracker = registry.delay(tracker_id, seconds)
    except TrackerNotFoundError:
        raise _not_found(tracker_id)
    return TrackerResponse(tracker=TrackerSummary.from_tracker(tracker))
