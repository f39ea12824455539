from __future__ import annotations

from loguru import logger
from tortoise.transactions import in_transaction

from app.crud import booking_crud, event_crud, proposal_crud
from app.deps import CurrentUser
from app.effects import (
    ActivityEffect,
    ActivityType,
    Effect,
    NotificationEffect,
    NotificationType,
    WorkflowResult,
)
from app.errors import (
    Forbidden,
    InvalidState,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from app.guard import ensure_allowed
from app.models import BookingStatus, EventStatus, ProposalStatus
from app.roles import Action, UserRole
from app.schemas import EventCreate, EventFilters, EventResponse, EventUpdate, to_utc

# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------

_VALID_TRANSITIONS: dict[EventStatus, set[EventStatus]] = {
    EventStatus.PENDING: {EventStatus.CONFIRMED, EventStatus.CANCELLED},
    EventStatus.CONFIRMED: {EventStatus.IN_PROGRESS, EventStatus.CANCELLED},
    EventStatus.IN_PROGRESS: {EventStatus.COMPLETED, EventStatus.CANCELLED},
    EventStatus.COMPLETED: set(),
    EventStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = frozenset(s for s, nxt in _VALID_TRANSITIONS.items() if not nxt)

CASCADE_CANCEL_REASON = "event_cancelled"


def _assert_transition(old_status: EventStatus, new_status: EventStatus) -> None:
    allowed = _VALID_TRANSITIONS.get(old_status, set())
    if new_status not in allowed:
        raise InvalidTransition(
            f"Cannot transition from '{old_status}' to '{new_status}'. "
            f"Allowed: {sorted(s.value for s in allowed)}"
        )


def _event_activity(
    actor: CurrentUser, activity_type: ActivityType, event: EventResponse, text: str
) -> ActivityEffect:
    return ActivityEffect(
        actor_id=actor.id,
        activity_type=activity_type,
        description=text,
        entity_id=event.id,
        entity_type="event",
    )


class EventLifecycleManager:
    """Owns every Event status change."""

    async def _load(self, event_id: int) -> EventResponse:
        event = await event_crud.get(id=event_id)
        if not event:
            raise NotFound("Event not found")
        return event

    async def create_event(
        self, actor: CurrentUser, payload: EventCreate
    ) -> WorkflowResult[EventResponse]:
        ensure_allowed(actor, Action.CREATE_EVENT)
        if payload.end_date < payload.event_date:
            raise ValidationError("end_date must not be before event_date")

        event = await event_crud.create(
            customer_id=actor.id,
            status=EventStatus.PENDING,
            **payload.model_dump(),
        )
        logger.info("Event {} created by customer_id={}", event.id, actor.id)
        return WorkflowResult(
            event,
            [
                _event_activity(
                    actor,
                    ActivityType.EVENT_CREATED,
                    event,
                    f"New event created: {event.name}",
                )
            ],
        )

    async def get_event(self, event_id: int, actor: CurrentUser) -> EventResponse:
        event = await self._load(event_id)
        ensure_allowed(actor, Action.VIEW_EVENT, event)
        return event

    async def list_events(
        self, actor: CurrentUser, filters: EventFilters
    ) -> list[EventResponse]:
        if actor.is_staff:
            customer_ids = None
        elif actor.role == UserRole.CUSTOMER:
            customer_ids = actor.owner_ids | {actor.id}
        else:
            raise Forbidden()

        return await event_crud.list_events(
            customer_ids=customer_ids,
            statuses=filters.statuses,
            page=filters.page,
            page_size=filters.page_size,
        )

    async def update_event(
        self, event_id: int, actor: CurrentUser, payload: EventUpdate
    ) -> WorkflowResult[EventResponse]:
        event = await self._load(event_id)
        ensure_allowed(actor, Action.EDIT_EVENT, event)
        if event.status != EventStatus.PENDING:
            raise InvalidState("Only pending events can be edited")

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return WorkflowResult(event)

        start = to_utc(changes.get("event_date", event.event_date))
        end = to_utc(changes.get("end_date", event.end_date))
        if end < start:
            raise ValidationError("end_date must not be before event_date")

        # Status is rewritten to itself so the edit only lands while still pending
        updated = await event_crud.compare_and_set(
            event_id, EventStatus.PENDING, EventStatus.PENDING, **changes
        )
        if updated is None:
            raise InvalidState("Event changed while it was being edited")

        return WorkflowResult(
            updated,
            [
                _event_activity(
                    actor,
                    ActivityType.EVENT_UPDATE,
                    updated,
                    f"Event updated: {updated.name}",
                )
            ],
        )

    async def transition_event(
        self, event_id: int, actor: CurrentUser, new_status: EventStatus
    ) -> WorkflowResult[EventResponse]:
        event = await self._load(event_id)
        ensure_allowed(actor, Action.TRANSITION_EVENT, event, target=new_status)
        _assert_transition(event.status, new_status)

        cascaded: list[Effect] = []
        # The event and its cascaded children commit or roll back together
        async with in_transaction():
            updated = await event_crud.compare_and_set(
                event_id, event.status, new_status
            )
            if updated is None:
                raise InvalidTransition(
                    f"Event is no longer '{event.status}'; reload and try again"
                )
            if new_status == EventStatus.CANCELLED:
                cascaded = await self._cascade_cancel(updated, actor)

        logger.info(
            "Event {} moved {} -> {} by user_id={}",
            event_id,
            event.status,
            new_status,
            actor.id,
        )

        effects: list[Effect] = [
            _event_activity(
                actor,
                ActivityType.EVENT_UPDATE,
                updated,
                f"Event status updated: {updated.name} is now {new_status}",
            )
        ]
        return WorkflowResult(updated, effects + cascaded)

    async def _cascade_cancel(
        self, event: EventResponse, actor: CurrentUser
    ) -> list[Effect]:
        """
        Cancel the open bookings and withdraw the open proposals of a cancelled
        event. Each child is moved with its own conditional write; children that
        changed concurrently keep whatever state they reached.
        """
        effects: list[Effect] = []

        for booking in await booking_crud.list_open_for_event(event.id):
            cancelled = await booking_crud.compare_and_set(
                booking.id,
                booking.status,
                BookingStatus.CANCELLED,
                cancel_reason=CASCADE_CANCEL_REASON,
            )
            if cancelled is None:
                logger.info(
                    "Booking {} changed during cascade of event {}, left as is",
                    booking.id,
                    event.id,
                )
                continue
            effects.append(
                NotificationEffect(
                    user_id=booking.provider_id,
                    type=NotificationType.BOOKING_CANCELLED,
                    title="Booking Cancelled",
                    message=(
                        f'The event "{event.name}" was cancelled, so your booking '
                        "for it has been cancelled."
                    ),
                    redirect_url="/dashboard?section=bookings",
                )
            )
            effects.append(
                ActivityEffect(
                    actor_id=actor.id,
                    activity_type=ActivityType.BOOKING_CANCELLED,
                    description=f"Booking cancelled with event: {event.name}",
                    entity_id=booking.id,
                    entity_type="booking",
                    data={"reason": CASCADE_CANCEL_REASON},
                )
            )

        for proposal in await proposal_crud.list_open_for_event(event.id):
            expired = await proposal_crud.compare_and_set(
                proposal.id, proposal.status, ProposalStatus.EXPIRED
            )
            if expired is None:
                continue
            effects.append(
                ActivityEffect(
                    actor_id=actor.id,
                    activity_type=ActivityType.PROPOSAL_EXPIRED,
                    description=(
                        f'Proposal "{proposal.title}" withdrawn with event: {event.name}'
                    ),
                    entity_id=proposal.id,
                    entity_type="proposal",
                )
            )

        return effects

    async def delete_event(
        self, event_id: int, actor: CurrentUser
    ) -> WorkflowResult[EventResponse]:
        """Hard delete. Proposals and bookings go with it (ON DELETE CASCADE)."""
        event = await self._load(event_id)
        ensure_allowed(actor, Action.DELETE_EVENT, event)
        if not await event_crud.delete_by(id=event_id):
            raise NotFound("Event not found")
        logger.info("Event {} deleted by user_id={}", event_id, actor.id)
        return WorkflowResult(
            event,
            [
                _event_activity(
                    actor,
                    ActivityType.EVENT_DELETED,
                    event,
                    f"Event deleted: {event.name}",
                )
            ],
        )


event_manager = EventLifecycleManager()
