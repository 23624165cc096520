import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.chats.services import join_event_chat
from app.common.exceptions import (
    BadRequestError,
    ConflictError,
    EventFullError,
    NotFoundError,
    PermissionDeniedError,
)
from app.common.side_effects import run_side_effect
from app.events.models import Event, PreferredGender
from app.events.services import EventService
from app.friends.models import Friend
from app.notifications.models import NotificationType
from app.notifications.services import notify
from app.participation.models import EventParticipationRequest, RequestStatus, RequestType
from app.participation.schemas import ApplicationCreate
from app.realtime.gateway import gateway
from app.utils.datetime_utils import age_on, ensure_utc, utcnow

logger = logging.getLogger(__name__)


def evaluate_requirements(event: Event, user: User, data: ApplicationCreate) -> dict:
    """
    Requirement flags stored on an application.

    Flags the client left unset are computed from the profile when the event
    constrains that attribute and the profile has the data.
    """
    age_matches = data.age_matches
    if age_matches is None and (event.min_age is not None or event.max_age is not None) and user.birth_date:
        age = age_on(user.birth_date, ensure_utc(event.date_time).date())
        age_matches = (event.min_age is None or age >= event.min_age) and (
            event.max_age is None or age <= event.max_age
        )

    gender_matches = data.gender_matches
    if gender_matches is None and event.preferred_gender != PreferredGender.ANY.value and user.gender:
        gender_matches = user.gender == event.preferred_gender

    known = [flag for flag in (age_matches, gender_matches, data.can_bring_money, data.meets_requirements) if flag is not None]
    return {
        "age_matches": age_matches,
        "gender_matches": gender_matches,
        "items_can_bring": list(data.items_can_bring),
        "can_bring_money": data.can_bring_money,
        "meets_requirements": all(known),
    }


class ParticipationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ===========================
    # LOOKUPS
    # ===========================
    async def _get_request(self, request_id) -> EventParticipationRequest:
        result = await self.db.execute(
            select(EventParticipationRequest)
            .where(EventParticipationRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        request = result.scalars().first()
        if not request:
            raise NotFoundError("Participation request not found")
        return request

    async def _find_request(self, event_id, user_id) -> Optional[EventParticipationRequest]:
        result = await self.db.execute(
            select(EventParticipationRequest)
            .where(
                EventParticipationRequest.event_id == event_id,
                EventParticipationRequest.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def _get_creator_event(self, event_id, user: User, action: str) -> Event:
        event = await EventService(self.db).get_event(event_id)
        if event.creator_id != user.id:
            raise PermissionDeniedError(f"Only the event creator can {action}")
        return event

    async def _push(self, user_id, payload: dict) -> None:
        await run_side_effect("event update push", lambda: gateway.send_event_update(user_id, payload))

    @staticmethod
    def _check_responder(request: EventParticipationRequest, event: Event, actor: User, action: str) -> None:
        if request.type == RequestType.INVITATION.value:
            if actor.id != request.user_id:
                raise PermissionDeniedError(f"Only the invited user can {action} an invitation")
        elif actor.id != event.creator_id:
            raise PermissionDeniedError(f"Only the event creator can {action} an application")

    # ===========================
    # SENDING
    # ===========================
    async def send_invitation(self, event_id, creator: User, user_id, comment: Optional[str] = None) -> EventParticipationRequest:
        event = await self._get_creator_event(event_id, creator, "send invitations")

        invitee = await self.db.get(User, user_id)
        if not invitee:
            raise NotFoundError("User not found")
        if invitee.id == creator.id:
            raise BadRequestError("You cannot invite yourself")
        if event.has_participant(invitee.id):
            raise BadRequestError("User is already a participant of this event")
        if await self._find_request(event.id, invitee.id):
            raise ConflictError("A participation request for this user already exists")

        request = EventParticipationRequest(
            event_id=event.id,
            user_id=invitee.id,
            type=RequestType.INVITATION.value,
            status=RequestStatus.PENDING.value,
            comment=comment,
        )
        self.db.add(request)
        await self.db.commit()
        request = await self._get_request(request.id)
        logger.info(f"Invitation sent: event_id={event.id}, user_id={invitee.id}")

        await notify(
            invitee.id,
            NotificationType.EVENT_REQUEST_RECEIVED,
            actor_id=creator.id,
            event_id=event.id,
            message=f"{creator.public_name} invited you to \"{event.title}\"",
        )
        return request

    async def send_application(self, event_id, user: User, data: ApplicationCreate) -> EventParticipationRequest:
        event = await EventService(self.db).get_event(event_id)
        if event.creator_id == user.id:
            raise BadRequestError("The event creator cannot apply to their own event")
        if event.has_participant(user.id):
            raise BadRequestError("You are already a participant of this event")
        if await self._find_request(event.id, user.id):
            raise ConflictError("A participation request for this event already exists")

        request = EventParticipationRequest(
            event_id=event.id,
            user_id=user.id,
            type=RequestType.APPLICATION.value,
            status=RequestStatus.PENDING.value,
            comment=data.comment,
            **evaluate_requirements(event, user, data),
        )
        self.db.add(request)
        await self.db.commit()
        request = await self._get_request(request.id)
        logger.info(f"Application sent: event_id={event.id}, user_id={user.id}")

        await notify(
            event.creator_id,
            NotificationType.EVENT_REQUEST_RECEIVED,
            actor_id=user.id,
            event_id=event.id,
            message=f"{user.public_name} wants to join \"{event.title}\"",
        )
        return request

    # ===========================
    # RESPONDING
    # ===========================
    async def accept(self, request_id, actor: User) -> None:
        request = await self._get_request(request_id)
        event = await EventService(self.db).get_event(request.event_id)
        self._check_responder(request, event, actor, "accept")

        if event.max_participants is not None and event.participant_count >= event.max_participants:
            raise EventFullError()

        user = await self.db.get(User, request.user_id)
        request_type = request.type
        event.participants.append(user)
        await self.db.delete(request)
        # Membership and request removal are committed together
        await self.db.commit()
        logger.info(f"Participation {request_type} accepted: event_id={event.id}, user_id={user.id}")

        announcement = f"{user.public_name} joined the event"
        await run_side_effect("event chat join", lambda: join_event_chat(event.id, user.id, announcement))

        if request_type == RequestType.APPLICATION.value:
            await notify(
                user.id,
                NotificationType.EVENT_REQUEST_ACCEPTED,
                actor_id=actor.id,
                event_id=event.id,
                message=f"Your application to \"{event.title}\" was accepted",
            )
        else:
            await notify(
                event.creator_id,
                NotificationType.EVENT_REQUEST_ACCEPTED,
                actor_id=actor.id,
                event_id=event.id,
                message=f"{user.public_name} accepted your invitation to \"{event.title}\"",
            )

        payload = {"type": "participant_joined", "eventId": str(event.id), "userId": str(user.id)}
        for recipient in {user.id, event.creator_id}:
            await self._push(recipient, payload)

    async def reject(self, request_id, actor: User) -> None:
        request = await self._get_request(request_id)
        event = await EventService(self.db).get_event(request.event_id)
        self._check_responder(request, event, actor, "reject")

        request_type = request.type
        user_id = request.user_id
        await self.db.delete(request)
        await self.db.commit()
        logger.info(f"Participation {request_type} rejected: event_id={event.id}, user_id={user_id}")

        if request_type == RequestType.APPLICATION.value:
            recipient, message = user_id, f"Your application to \"{event.title}\" was declined"
        else:
            recipient, message = event.creator_id, f"{actor.public_name} declined your invitation to \"{event.title}\""
        await notify(
            recipient,
            NotificationType.EVENT_REQUEST_REJECTED,
            actor_id=actor.id,
            event_id=event.id,
            message=message,
        )

    async def cancel(self, request_id, actor: User) -> None:
        request = await self._get_request(request_id)
        await self._cancel(request, actor)

    async def cancel_for_user(self, event_id, user_id, actor: User) -> None:
        request = await self._find_request(event_id, user_id)
        if not request:
            raise NotFoundError("Participation request not found")
        await self._cancel(request, actor)

    async def _cancel(self, request: EventParticipationRequest, actor: User) -> None:
        event = await EventService(self.db).get_event(request.event_id)
        if request.type == RequestType.INVITATION.value:
            if actor.id != event.creator_id:
                raise PermissionDeniedError("Only the event creator can cancel an invitation")
            counterpart = request.user_id
        else:
            if actor.id != request.user_id:
                raise PermissionDeniedError("Only the author can cancel an application")
            counterpart = event.creator_id

        request_type = request.type
        user_id = request.user_id
        await self.db.delete(request)
        await self.db.commit()
        logger.info(f"Participation {request_type} cancelled: event_id={event.id}, user_id={user_id}")

        await self._push(
            counterpart,
            {"type": "request_cancelled", "eventId": str(event.id), "userId": str(user_id)},
        )

    # ===========================
    # QUERIES
    # ===========================
    async def _requests_for_event(self, event_id, request_type: RequestType) -> List[EventParticipationRequest]:
        result = await self.db.execute(
            select(EventParticipationRequest)
            .where(
                EventParticipationRequest.event_id == event_id,
                EventParticipationRequest.type == request_type.value,
            )
            .order_by(EventParticipationRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def _requests_for_user(self, user_id, request_type: RequestType) -> List[EventParticipationRequest]:
        result = await self.db.execute(
            select(EventParticipationRequest)
            .where(
                EventParticipationRequest.user_id == user_id,
                EventParticipationRequest.type == request_type.value,
            )
            .order_by(EventParticipationRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_received_applications(self, event_id, user: User) -> List[EventParticipationRequest]:
        await self._get_creator_event(event_id, user, "view its applications")
        return await self._requests_for_event(event_id, RequestType.APPLICATION)

    async def get_sent_invitations(self, event_id, user: User) -> List[EventParticipationRequest]:
        await self._get_creator_event(event_id, user, "view its invitations")
        return await self._requests_for_event(event_id, RequestType.INVITATION)

    async def get_my_invitations(self, user_id) -> List[EventParticipationRequest]:
        return await self._requests_for_user(user_id, RequestType.INVITATION)

    async def get_my_applications(self, user_id) -> List[EventParticipationRequest]:
        return await self._requests_for_user(user_id, RequestType.APPLICATION)

    async def get_incoming_applications(self, creator_id) -> List[EventParticipationRequest]:
        """Applications to upcoming events the user created."""
        result = await self.db.execute(
            select(EventParticipationRequest)
            .join(Event, Event.id == EventParticipationRequest.event_id)
            .where(
                Event.creator_id == creator_id,
                Event.date_time >= utcnow(),
                EventParticipationRequest.type == RequestType.APPLICATION.value,
            )
            .order_by(EventParticipationRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_invitable_friends(self, event_id, user: User) -> List[User]:
        """Friends who are neither participants nor already have a request for the event."""
        event = await self._get_creator_event(event_id, user, "invite friends")
        pending = select(EventParticipationRequest.user_id).where(EventParticipationRequest.event_id == event.id)
        result = await self.db.execute(
            select(Friend).where(Friend.user_id == user.id, Friend.friend_id.not_in(pending))
        )
        return [
            edge.friend
            for edge in result.scalars().all()
            if not event.has_participant(edge.friend_id)
        ]
