import logging
from typing import List, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.chats.models import Chat, ChatParticipant, Message
from app.chats.services import leave_event_chat
from app.common.exceptions import BadRequestError, NotFoundError, PermissionDeniedError
from app.common.side_effects import run_side_effect
from app.events.models import Event
from app.events.schemas import HIDDEN_LOCATION_FIELDS, EventCreate, EventResponse, EventUpdate
from app.notifications.models import Notification, NotificationType
from app.notifications.services import notify
from app.participation.models import EventParticipationRequest
from app.realtime.gateway import gateway
from app.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def can_see_location(event: Event, viewer_id) -> bool:
    if not event.hide_address_for_non_participants:
        return True
    return viewer_id is not None and (event.creator_id == viewer_id or event.has_participant(viewer_id))


def serialize_event(event: Event, viewer_id=None) -> EventResponse:
    response = EventResponse.model_validate(event)
    response.is_participant = viewer_id is not None and event.has_participant(viewer_id)
    if not can_see_location(event, viewer_id):
        for field in HIDDEN_LOCATION_FIELDS:
            setattr(response, field, None)
    return response


class EventService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_event(self, data: EventCreate, creator: User) -> Event:
        if ensure_utc(data.date_time) <= utcnow():
            raise BadRequestError("Event date must be in the future")

        values = data.model_dump()
        values["date_time"] = ensure_utc(data.date_time)
        values["preferred_gender"] = data.preferred_gender.value

        # The creator owns the event but does not take one of its seats
        event = Event(**values, creator_id=creator.id)
        self.db.add(event)
        await self.db.commit()
        logger.info(f"Event created: id={event.id}, title={event.title}, by creator_id={creator.id}")
        return await self.get_event(event.id)

    async def get_event(self, event_id) -> Event:
        result = await self.db.execute(
            select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
        )
        event = result.scalars().first()
        if not event:
            raise NotFoundError("Event not found")
        return event

    async def list_upcoming(
        self,
        search: Optional[str] = None,
        region_code: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> dict:
        query = select(Event).where(Event.date_time >= utcnow())
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Event.title.ilike(pattern), Event.description.ilike(pattern)))
        if region_code:
            query = query.where(Event.region_code == region_code)

        count_query = query.with_only_columns(func.count(Event.id)).order_by(None)
        total = (await self.db.execute(count_query)).scalar_one()

        query = query.order_by(Event.date_time.asc()).offset((page - 1) * per_page).limit(per_page)
        events = (await self.db.execute(query)).scalars().unique().all()

        logger.info(f"Upcoming events: total={total}, returned={len(events)}")
        return {
            "events": events,
            "total": total,
            "pages": (total + per_page - 1) // per_page,
            "page": page,
            "per_page": per_page,
        }

    async def list_user_events(self, user_id, include_past: bool = False) -> List[Event]:
        query = select(Event).where(
            or_(Event.creator_id == user_id, Event.participants.any(User.id == user_id))
        )
        if not include_past:
            query = query.where(Event.date_time >= utcnow())
        result = await self.db.execute(query.order_by(Event.date_time.asc()))
        return list(result.scalars().unique().all())

    async def update_event(self, event_id, data: EventUpdate, user: User) -> Event:
        event = await self.get_event(event_id)
        if event.creator_id != user.id:
            raise PermissionDeniedError("Only the event creator can edit the event")

        changes = data.model_dump(exclude_unset=True)
        if "date_time" in changes and changes["date_time"] is not None:
            changes["date_time"] = ensure_utc(changes["date_time"])
        if changes.get("preferred_gender") is not None:
            changes["preferred_gender"] = changes["preferred_gender"].value
        if changes.get("max_participants") is not None and changes["max_participants"] < event.participant_count:
            raise BadRequestError("maxParticipants cannot be lower than the current number of participants")

        min_age = changes.get("min_age", event.min_age)
        max_age = changes.get("max_age", event.max_age)
        if min_age is not None and max_age is not None and min_age > max_age:
            raise BadRequestError("minAge must not be greater than maxAge")

        for field, value in changes.items():
            setattr(event, field, value)
        await self.db.commit()
        logger.info(f"Event updated: id={event.id}, fields={sorted(changes)}")

        for participant in event.participants:
            if participant.id != user.id:
                await run_side_effect(
                    "event update push",
                    lambda pid=participant.id: gateway.send_event_update(
                        pid, {"type": "event_updated", "eventId": str(event.id)}
                    ),
                )
        return await self.get_event(event.id)

    async def delete_event(self, event_id, user: User) -> None:
        event = await self.get_event(event_id)
        if event.creator_id != user.id:
            raise PermissionDeniedError("Only the event creator can delete the event")

        participant_ids = [p.id for p in event.participants if p.id != user.id]

        chat_ids = select(Chat.id).where(Chat.event_id == event.id).scalar_subquery()
        await self.db.execute(delete(Message).where(Message.chat_id.in_(chat_ids)))
        await self.db.execute(delete(ChatParticipant).where(ChatParticipant.chat_id.in_(chat_ids)))
        await self.db.execute(
            update(Notification).where(Notification.event_id == event.id).values(event_id=None)
        )
        await self.db.execute(delete(Chat).where(Chat.event_id == event.id))
        await self.db.execute(
            delete(EventParticipationRequest).where(EventParticipationRequest.event_id == event.id)
        )
        await self.db.delete(event)
        await self.db.commit()
        logger.info(f"Event deleted: id={event_id} by user {user.id}")

        for participant_id in participant_ids:
            await run_side_effect(
                "event deleted push",
                lambda pid=participant_id: gateway.send_event_update(
                    pid, {"type": "event_deleted", "eventId": str(event_id)}
                ),
            )

    async def get_participants(self, event_id) -> List[User]:
        event = await self.get_event(event_id)
        return list(event.participants)

    async def remove_participant(self, event_id, target_id, actor: User) -> None:
        """
        Remove a participant from an event.

        The creator can remove anybody but themself; any other participant can
        only remove themself (leave).
        """
        event = await self.get_event(event_id)
        if target_id == event.creator_id:
            raise BadRequestError("Event creator cannot leave their own event")
        target = next((p for p in event.participants if p.id == target_id), None)
        if target is None:
            raise NotFoundError("User is not a participant of this event")

        removed_by_creator = actor.id == event.creator_id
        if not removed_by_creator and actor.id != target_id:
            raise PermissionDeniedError("Only the event creator can remove other participants")

        event.participants.remove(target)
        await self.db.commit()
        logger.info(f"User {target_id} removed from event {event.id} by {actor.id}")

        await run_side_effect(
            "event chat removal",
            lambda: leave_event_chat(event.id, target_id),
        )
        if removed_by_creator:
            await notify(
                target_id,
                NotificationType.EVENT_PARTICIPANT_REMOVED,
                actor_id=actor.id,
                event_id=event.id,
                message=f"You were removed from the event \"{event.title}\"",
            )

        update_type = "participant_removed" if removed_by_creator else "participant_left"
        payload = {"type": update_type, "eventId": str(event.id), "userId": str(target_id)}
        for recipient in {target_id, event.creator_id}:
            await run_side_effect(
                "event participant push",
                lambda rid=recipient: gateway.send_event_update(rid, payload),
            )
