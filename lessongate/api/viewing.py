"""Viewing sessions: the server side of a mounted lesson player.

  POST /v1/viewing/sessions                  mount (403 when access is blocked)
  POST /v1/viewing/sessions/{id}/events      player/visibility/focus/viewport
                                             events and one-second ticks
  POST /v1/viewing/sessions/{id}/complete    finish the lesson (409 before the
                                             required watch time)
  POST /v1/viewing/sessions/{id}/unload      unmount; always 204

The unload endpoint is meant for navigator.sendBeacon, which cannot send
an Authorization header: the unguessable session id is the capability,
and the endpoint answers 204 whatever happens so navigation is never
held up.
"""

from __future__ import annotations

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from lessongate.api.access import (
    AccessDecisionOut,
    load_lesson_target,
    raise_if_blocked,
)
from lessongate.api.dependencies import get_stores, optional_principal, request_language
from lessongate.core.errors import PersistenceWriteError, WatchTimeNotMet
from lessongate.models.access import REASON_WATCH_TIME_REQUIRED, message_for
from lessongate.models.enrollment import Enrollment, EnrollmentStatus
from lessongate.models.principal import Principal
from lessongate.services.analytics_queue import analytics_queue, publish_preview_duration
from lessongate.services.attention import PlayerState
from lessongate.services.learner_context import LearnerContextLoader
from lessongate.services.persistence_writer import SessionPersistenceWriter
from lessongate.services.stores import Stores
from lessongate.services.viewing_session import (
    ViewingSession,
    ViewingState,
    viewing_sessions,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/viewing", tags=["viewing"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class MountIn(BaseModel):
    lesson_id: str


class PlayerEvent(BaseModel):
    type: Literal["player"]
    state: PlayerState


class VisibilityEvent(BaseModel):
    type: Literal["visibility"]
    visible: bool


class FocusEvent(BaseModel):
    type: Literal["focus"]
    focused: bool


class IntersectionEvent(BaseModel):
    type: Literal["intersection"]
    ratio: float = Field(ge=0.0, le=1.0)


class TickEvent(BaseModel):
    type: Literal["tick"]
    seconds: int = Field(default=1, ge=0, le=60)


ViewingEvent = Annotated[
    PlayerEvent | VisibilityEvent | FocusEvent | IntersectionEvent | TickEvent,
    Field(discriminator="type"),
]


class EventsIn(BaseModel):
    events: list[ViewingEvent] = Field(min_length=1, max_length=100)


class PreviewOut(BaseModel):
    remaining_seconds: int
    is_running: bool
    is_locked: bool


class ViewingStateOut(BaseModel):
    session_id: str
    engaged: bool
    lost_reason: str | None
    force_pause: bool
    preview: PreviewOut | None = None
    watch_remaining_seconds: int = 0

    @classmethod
    def from_state(cls, session_id: str, state: ViewingState) -> ViewingStateOut:
        preview = None
        if state.preview is not None:
            preview = PreviewOut(
                remaining_seconds=state.preview.remaining_seconds,
                is_running=state.preview.is_running,
                is_locked=state.preview.is_locked,
            )
        return cls(
            session_id=session_id,
            engaged=state.engaged,
            lost_reason=state.lost_reason,
            force_pause=state.force_pause,
            preview=preview,
            watch_remaining_seconds=state.watch_remaining_seconds,
        )


class MountOut(BaseModel):
    session_id: str
    decision: AccessDecisionOut
    state: ViewingStateOut


class CompleteOut(BaseModel):
    session_id: str
    completion_id: str | None
    engagement_recorded: bool


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _owned_session(session_id: str, principal: Principal) -> ViewingSession:
    session = viewing_sessions.get(session_id)
    # 404 for someone else's session too: ids must not be enumerable.
    if session is None or session.closed or session.owner_id != principal.user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="session not found")
    return session


def _apply(session: ViewingSession, event: BaseModel) -> None:
    if isinstance(event, PlayerEvent):
        session.on_player_state(event.state)
    elif isinstance(event, VisibilityEvent):
        session.on_visibility(event.visible)
    elif isinstance(event, FocusEvent):
        session.on_window_focus(event.focused)
    elif isinstance(event, IntersectionEvent):
        session.on_intersection(event.ratio)
    elif isinstance(event, TickEvent):
        session.tick(event.seconds)


async def _publish_preview_analytics(session: ViewingSession) -> None:
    for duration in session.drain_preview_analytics():
        try:
            await publish_preview_duration(
                analytics_queue,
                lesson_id=session.target.item_id,
                course_id=session.target.course.id,
                user_id=session.owner_id,
                final_duration_seconds=duration,
            )
        except Exception:
            logger.exception(
                "preview analytics publish failed",
                extra={"lesson_id": session.target.item_id},
            )


async def _refresh_enrollment(session: ViewingSession, loader: LearnerContextLoader) -> None:
    """Re-read the enrollment so the Focus Guard sees the current status."""
    principal = session.principal
    if principal.user_id is None or principal.is_staff():
        return
    enrollment = await loader.enrollment(principal.user_id, session.target.course.id)
    status_: EnrollmentStatus | None = None
    if isinstance(enrollment, Enrollment):
        status_ = enrollment.status
    session.update_enrollment_status(status_)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/sessions", response_model=MountOut, status_code=status.HTTP_201_CREATED)
async def mount_session(
    body: MountIn,
    principal: Annotated[Principal, Depends(optional_principal)],
    stores: Annotated[Stores, Depends(get_stores)],
    language: Annotated[str, Depends(request_language)],
) -> MountOut:
    loader = LearnerContextLoader(stores)
    target = await load_lesson_target(loader, body.lesson_id)
    ctx = await loader.decide(principal, target)
    raise_if_blocked(ctx.decision, language)

    session = ViewingSession(
        principal=principal,
        target=target,
        preview=ctx.preview,
        enrollment_status=ctx.enrollment_status,
        completed_historically=ctx.has_completion is True,
    )
    viewing_sessions.add(session)
    logger.info(
        "viewing session mounted preview=%s",
        ctx.preview,
        extra={
            "user_id": principal.user_id,
            "lesson_id": target.item_id,
            "course_id": target.course.id,
        },
    )
    return MountOut(
        session_id=session.id,
        decision=AccessDecisionOut.from_context(ctx, language),
        state=ViewingStateOut.from_state(session.id, session.state),
    )


@router.post("/sessions/{session_id}/events", response_model=ViewingStateOut)
async def post_events(
    session_id: str,
    body: EventsIn,
    principal: Annotated[Principal, Depends(optional_principal)],
) -> ViewingStateOut:
    session = _owned_session(session_id, principal)
    for event in body.events:
        _apply(session, event)
    await _publish_preview_analytics(session)
    return ViewingStateOut.from_state(session.id, session.state)


@router.post("/sessions/{session_id}/complete", response_model=CompleteOut)
async def complete_session(
    session_id: str,
    principal: Annotated[Principal, Depends(optional_principal)],
    stores: Annotated[Stores, Depends(get_stores)],
    language: Annotated[str, Depends(request_language)],
) -> CompleteOut:
    session = _owned_session(session_id, principal)
    await _refresh_enrollment(session, LearnerContextLoader(stores))
    writer = SessionPersistenceWriter(stores.completions, stores.engagement)
    try:
        outcome = await session.complete(writer)
    except WatchTimeNotMet as exc:
        # The session stays mounted so the learner can keep watching.
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "reason": REASON_WATCH_TIME_REQUIRED,
                "message": message_for(REASON_WATCH_TIME_REQUIRED, language),
                "remaining_seconds": exc.remaining_seconds,
            },
        ) from None
    except PersistenceWriteError:
        viewing_sessions.remove(session_id)
        logger.exception(
            "completion write failed",
            extra={"user_id": principal.user_id, "lesson_id": session.target.item_id},
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not save completion, please retry",
        ) from None
    viewing_sessions.remove(session_id)
    await _publish_preview_analytics(session)
    return CompleteOut(
        session_id=session_id,
        completion_id=outcome.completion.id if outcome.completion else None,
        engagement_recorded=outcome.engagement_recorded,
    )


@router.post("/sessions/{session_id}/unload", status_code=status.HTTP_204_NO_CONTENT)
async def unload_session(
    session_id: str,
    stores: Annotated[Stores, Depends(get_stores)],
) -> Response:
    session = viewing_sessions.remove(session_id)
    if session is not None:
        try:
            await _refresh_enrollment(session, LearnerContextLoader(stores))
            writer = SessionPersistenceWriter(stores.completions, stores.engagement)
            await session.unmount(writer)
            await _publish_preview_analytics(session)
        except Exception:
            logger.exception("unload flush failed", extra={"lesson_id": session.target.item_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
