from __future__ import annotations

from datetime import datetime

from loguru import logger

from app.crud import booking_crud, event_crud, service_crud
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
from app.models import BookingStatus, EventStatus
from app.roles import Action, UserRole
from app.schemas import BookingResponse

# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------

_VALID_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED,
        BookingStatus.DECLINED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.DECLINED: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.COMPLETED: set(),
}

# Provider decisions vs. staff-only administrative moves
_PROVIDER_DECISIONS = {BookingStatus.CONFIRMED, BookingStatus.DECLINED}
_ADMIN_TARGETS = {BookingStatus.CANCELLED, BookingStatus.COMPLETED}
_CLOSED_EVENT = {EventStatus.COMPLETED, EventStatus.CANCELLED}

_BOOKINGS_URL = "/dashboard?section=bookings"


def _assert_transition(old_status: BookingStatus, new_status: BookingStatus) -> None:
    allowed = _VALID_TRANSITIONS.get(old_status, set())
    if new_status not in allowed:
        raise InvalidTransition(
            f"Cannot transition from '{old_status}' to '{new_status}'. "
            f"Allowed: {sorted(s.value for s in allowed)}"
        )


def _booking_activity(
    actor: CurrentUser,
    activity_type: ActivityType,
    booking: BookingResponse,
    text: str,
    data: dict | None = None,
) -> ActivityEffect:
    return ActivityEffect(
        actor_id=actor.id,
        activity_type=activity_type,
        description=text,
        entity_id=booking.id,
        entity_type="booking",
        data=data,
    )


class BookingConfirmationManager:
    """Owns Booking creation and every Booking status change."""

    async def _load(self, booking_id: int) -> BookingResponse:
        booking = await booking_crud.get(id=booking_id)
        if not booking:
            raise NotFound("Booking not found")
        return booking

    async def _titles(self, booking: BookingResponse) -> tuple[str, str]:
        """Service title and event name for messages, tolerating missing rows."""
        service = await service_crud.get(id=booking.service_id)
        event = await event_crud.get(id=booking.event_id)
        return (
            service.title if service else "your service",
            event.name if event else "your event",
        )

    async def create_booking(
        self,
        actor: CurrentUser,
        event_id: int,
        service_id: int,
        start_time: datetime,
        notes: str | None = None,
    ) -> WorkflowResult[BookingResponse]:
        event = await event_crud.get(id=event_id)
        if not event:
            raise NotFound("Event not found")
        ensure_allowed(actor, Action.CREATE_BOOKING, event)
        if event.status in _CLOSED_EVENT:
            raise InvalidState(f"Cannot book services for a {event.status} event")

        service = await service_crud.get(id=service_id)
        if not service:
            raise NotFound("Service not found")
        if not service.is_available:
            raise InvalidState("Service is not available for booking")

        # Price is frozen at booking time; later service edits never touch it
        booking = await booking_crud.create_booking(
            event_id=event.id,
            service_id=service.id,
            provider_id=service.provider_id,
            customer_id=actor.id,
            start_time=start_time,
            agree_price=service.base_price,
            special_instructions=notes,
        )
        logger.info(
            "Booking {} requested: service={} event={} provider_id={}",
            booking.id,
            service.id,
            event.id,
            service.provider_id,
        )

        effects: list[Effect] = [
            NotificationEffect(
                user_id=service.provider_id,
                type=NotificationType.BOOKING_RECEIVED,
                title="New Booking Request",
                message=(
                    f'You have a new booking request for "{service.title}" from '
                    f'{actor.username} for event "{event.name}"'
                ),
                redirect_url=_BOOKINGS_URL,
            ),
            _booking_activity(
                actor,
                ActivityType.BOOKING_CREATED,
                booking,
                f"New booking created for {service.title}",
            ),
        ]
        return WorkflowResult(booking, effects)

    async def resolve_booking(
        self, booking_id: int, actor: CurrentUser, decision: BookingStatus
    ) -> WorkflowResult[BookingResponse]:
        """Provider confirms or declines a pending booking."""
        if decision not in _PROVIDER_DECISIONS:
            raise ValidationError("Providers can only confirm or decline bookings")

        booking = await self._load(booking_id)
        ensure_allowed(actor, Action.RESOLVE_BOOKING, booking)
        if booking.status != BookingStatus.PENDING:
            raise InvalidState(
                f"Only pending bookings can be {decision} "
                f"(current: '{booking.status}')"
            )

        # Read before the write; nothing after the commit may fail
        service_title, event_name = await self._titles(booking)
        resolved = await booking_crud.compare_and_set(
            booking_id, BookingStatus.PENDING, decision
        )
        if resolved is None:
            raise InvalidState("Booking has already been resolved")
        logger.info("Booking {} {} by provider_id={}", booking_id, decision, actor.id)

        confirmed = decision == BookingStatus.CONFIRMED
        effects: list[Effect] = [
            NotificationEffect(
                user_id=resolved.customer_id,
                type=(
                    NotificationType.BOOKING_CONFIRMED
                    if confirmed
                    else NotificationType.BOOKING_DECLINED
                ),
                title="Booking Confirmed" if confirmed else "Booking Declined",
                message=(
                    f'Your booking for "{service_title}" ({event_name}) '
                    f"has been {decision}."
                ),
                redirect_url=_BOOKINGS_URL,
            ),
            _booking_activity(
                actor,
                (
                    ActivityType.BOOKING_CONFIRMED
                    if confirmed
                    else ActivityType.BOOKING_DECLINED
                ),
                resolved,
                f"Booking for {service_title} {decision}",
            ),
        ]
        return WorkflowResult(resolved, effects)

    async def administer_booking(
        self,
        booking_id: int,
        actor: CurrentUser,
        new_status: BookingStatus,
        reason: str | None = None,
    ) -> WorkflowResult[BookingResponse]:
        """Staff cancel or complete a booking."""
        if new_status not in _ADMIN_TARGETS:
            raise ValidationError("Staff can only cancel or complete bookings")

        booking = await self._load(booking_id)
        ensure_allowed(actor, Action.ADMINISTER_BOOKING, booking)
        _assert_transition(booking.status, new_status)

        service_title, event_name = await self._titles(booking)
        cancelling = new_status == BookingStatus.CANCELLED
        values = {"cancel_reason": reason} if cancelling and reason else {}
        updated = await booking_crud.compare_and_set(
            booking_id, booking.status, new_status, **values
        )
        if updated is None:
            raise InvalidTransition(
                f"Booking is no longer '{booking.status}'; reload and try again"
            )
        logger.info(
            "Booking {} moved {} -> {} by user_id={}",
            booking_id,
            booking.status,
            new_status,
            actor.id,
        )

        effects: list[Effect] = [
            _booking_activity(
                actor,
                (
                    ActivityType.BOOKING_CANCELLED
                    if cancelling
                    else ActivityType.BOOKING_COMPLETED
                ),
                updated,
                f"Booking for {service_title} {new_status}",
                data={"reason": reason} if reason else None,
            )
        ]
        if cancelling:
            suffix = f" Reason: {reason}" if reason else ""
            for user_id in (updated.customer_id, updated.provider_id):
                effects.append(
                    NotificationEffect(
                        user_id=user_id,
                        type=NotificationType.BOOKING_CANCELLED,
                        title="Booking Cancelled",
                        message=(
                            f'The booking for "{service_title}" ({event_name}) '
                            f"has been cancelled.{suffix}"
                        ),
                        redirect_url=_BOOKINGS_URL,
                    )
                )
        return WorkflowResult(updated, effects)

    async def list_customer_bookings(
        self, actor: CurrentUser
    ) -> list[BookingResponse]:
        if actor.role != UserRole.CUSTOMER:
            raise Forbidden()
        return await booking_crud.list_bookings(customer_ids=actor.owner_ids | {actor.id})

    async def list_provider_bookings(
        self, actor: CurrentUser, status: BookingStatus | None = None
    ) -> list[BookingResponse]:
        if actor.role != UserRole.PROVIDER:
            raise Forbidden()
        return await booking_crud.list_bookings(provider_id=actor.id, status=status)


booking_manager = BookingConfirmationManager()
