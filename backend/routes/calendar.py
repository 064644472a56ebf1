from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.auth import require_user_id
from backend import repositories
from backend.locks import record_lock
from backend.schemas import CalendarEventsResponse, EventCreate, EventPatch, EventPersonLink, PersonCreate
from backend.services import google_calendar_service
from backend.settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


def _rfc3339(day: date) -> str:
    return datetime.combine(day, time.min, tzinfo=timezone.utc).isoformat().replace("+00:00", "Z")


def _calendar_ids() -> list[str]:
    ids = ["primary"]
    for calendar_id in get_settings().allowed_calendar_ids:
        if calendar_id not in ids:
            ids.append(calendar_id)
    return ids


@router.get("/api/google-calendar/events", response_model=CalendarEventsResponse)
async def list_events(
    start: date | None = Query(None),
    end: date | None = Query(None),
    user_id: str = Depends(require_user_id),
):
    start = start or date.today()
    end = end or start + timedelta(days=7)
    if end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")
    if not await repositories.get_google_tokens(user_id):
        raise HTTPException(status_code=401, detail="Google Calendar not connected")
    events = []
    for calendar_id in _calendar_ids():
        try:
            events.extend(
                await google_calendar_service.list_events(
                    user_id, calendar_id, _rfc3339(start), _rfc3339(end + timedelta(days=1))
                )
            )
        except google_calendar_service.CalendarError as exc:
            logger.warning("Skipping calendar %s: %s", calendar_id, exc)
    events.sort(key=lambda event: event.get("start") or "")
    return {"events": events}


@router.post("/api/google-calendar/events/create")
async def create_event(payload: EventCreate, user_id: str = Depends(require_user_id)):
    body = google_calendar_service.build_event_body(payload.model_dump(), get_settings().calendar_timezone)
    try:
        event = await google_calendar_service.create_event(user_id, payload.calendar_id, body)
    except google_calendar_service.CalendarError as exc:
        logger.exception("Calendar create failed")
        raise HTTPException(status_code=502, detail="Failed to create event") from exc
    return {"success": True, "event": event}


@router.patch("/api/google-calendar/events/{event_id}")
async def update_event(
    event_id: str,
    payload: EventPatch,
    calendar_id: str = Query("primary"),
    user_id: str = Depends(require_user_id),
):
    body = google_calendar_service.build_event_body(
        payload.model_dump(exclude_unset=True), get_settings().calendar_timezone
    )
    if not body:
        raise HTTPException(status_code=400, detail="Nothing to update")
    async with record_lock("event", event_id):
        try:
            event = await google_calendar_service.update_event(user_id, calendar_id, event_id, body)
        except google_calendar_service.CalendarError as exc:
            logger.exception("Calendar update failed")
            raise HTTPException(status_code=502, detail="Failed to update event") from exc
    return {"success": True, "event": event}


@router.delete("/api/google-calendar/events/{event_id}")
async def delete_event(event_id: str, calendar_id: str = Query("primary"), user_id: str = Depends(require_user_id)):
    async with record_lock("event", event_id):
        try:
            await google_calendar_service.delete_event(user_id, calendar_id, event_id)
        except google_calendar_service.CalendarError as exc:
            logger.exception("Calendar delete failed")
            raise HTTPException(status_code=502, detail="Failed to delete event") from exc
    return {"success": True}


def _person_payload(person: dict) -> dict:
    return {
        "id": person["id"],
        "name": person["name"],
        "image": person.get("image_url"),
        "image_url": person.get("image_url"),
        "nicknames": person.get("nicknames") or [],
        "linkId": person.get("linkId"),
    }


@router.get("/api/events/{event_id}/people")
async def event_people(event_id: str, user_id: str = Depends(require_user_id)):
    people = await repositories.list_event_people(user_id, event_id)
    return {"people": [_person_payload(person) for person in people]}


@router.post("/api/events/{event_id}/people")
async def link_event_person(event_id: str, payload: EventPersonLink, user_id: str = Depends(require_user_id)):
    try:
        await repositories.link_person_to_event(user_id, event_id, payload.personId)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"success": True}


@router.delete("/api/events/{event_id}/people/{link_id}")
async def unlink_event_person(event_id: str, link_id: str, user_id: str = Depends(require_user_id)):
    await repositories.unlink_event_person(user_id, event_id, link_id)
    return {"success": True}


@router.get("/api/people")
async def list_people(user_id: str = Depends(require_user_id)):
    people = await repositories.list_people(user_id)
    return {"people": [_person_payload(person) for person in people]}


@router.post("/api/people/create")
async def create_person(payload: PersonCreate, user_id: str = Depends(require_user_id)):
    try:
        person = await repositories.create_person(user_id, payload.name, payload.image_url, payload.nicknames)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"success": True, "person": _person_payload(person)}
