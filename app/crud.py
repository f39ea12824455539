from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Generic, TypeVar

from loguru import logger
from pydantic import BaseModel
from tortoise.exceptions import DBConnectionError, OperationalError
from tortoise.models import Model

from app.errors import InfrastructureError
from app.models import (
    Activity,
    Booking,
    BookingStatus,
    Event,
    EventStatus,
    Notification,
    Proposal,
    ProposalStatus,
    Service,
)
from app.schemas import (
    ActivityResponse,
    BookingResponse,
    EventResponse,
    NotificationResponse,
    ProposalResponse,
    ServiceResponse,
)

ModelT = TypeVar("ModelT", bound=Model)
SchemaT = TypeVar("SchemaT", bound=BaseModel)

_REPOSITORY_ERRORS = (OperationalError, DBConnectionError)


@contextmanager
def repository_call(operation: str) -> Iterator[None]:
    """
    Surface database failures as InfrastructureError. Used by writes and by
    reads that must not degrade, such as the cascade lookups.
    """
    try:
        yield
    except _REPOSITORY_ERRORS as exc:
        logger.opt(exception=exc).error("Repository call failed: {}", operation)
        raise InfrastructureError() from exc


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CRUD(Generic[ModelT, SchemaT]):
    """
    Minimal repository base. Every row leaving this module is converted into
    its response schema here, so callers only ever see one canonical shape.
    """

    def __init__(self, model: type[ModelT], schema: type[SchemaT]) -> None:
        self.model = model
        self.schema = schema

    def _out(self, inst: ModelT) -> SchemaT:
        return self.schema.model_validate(inst, from_attributes=True)

    async def get(self, **filters: Any) -> SchemaT | None:
        inst = await self.model.get_or_none(**filters)
        return self._out(inst) if inst else None

    async def _list(self, qs, operation: str) -> list[SchemaT]:
        # Listing pages degrade to an empty result instead of failing
        try:
            rows = await qs
        except _REPOSITORY_ERRORS:
            logger.opt(exception=True).warning(
                "Repository read failed, returning empty list: {}", operation
            )
            return []
        return [self._out(r) for r in rows]

    async def create(self, **values: Any) -> SchemaT:
        with repository_call(f"create {self.model.__name__}"):
            inst = await self.model.create(**values)
        return self._out(inst)

    async def update_fields(self, pk: int, **values: Any) -> SchemaT | None:
        with repository_call(f"update {self.model.__name__} {pk}"):
            inst = await self.model.get_or_none(id=pk)
            if not inst:
                return None
            inst.update_from_dict(values)
            await inst.save(update_fields=list(values) + ["updated_at"])
        return self._out(inst)

    async def compare_and_set(
        self,
        pk: int,
        expected: str | Iterable[str],
        new_status: str,
        **values: Any,
    ) -> SchemaT | None:
        """
        Write `new_status` (plus any extra columns) only if the row's status still
        matches `expected`. Returns the updated row, or None when the condition
        failed because another writer got there first.
        """
        if isinstance(expected, str):
            condition = {"status": expected}
        else:
            condition = {"status__in": list(expected)}

        with repository_call(f"{self.model.__name__} {pk} -> {new_status}"):
            updated = await self.model.filter(id=pk, **condition).update(
                status=new_status, updated_at=_now(), **values
            )
            if not updated:
                return None
            inst = await self.model.get(id=pk)
        return self._out(inst)

    async def delete_by(self, **filters: Any) -> bool:
        with repository_call(f"delete {self.model.__name__}"):
            deleted = await self.model.filter(**filters).delete()
        return deleted > 0


class EventCRUD(CRUD[Event, EventResponse]):  # type: ignore
    async def list_events(
        self,
        customer_ids: Iterable[int] | None = None,
        statuses: list[EventStatus] | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> list[EventResponse]:
        qs = Event.all()
        if customer_ids is not None:
            qs = qs.filter(customer_id__in=list(customer_ids))
        if statuses is not None:
            qs = qs.filter(status__in=statuses)
        qs = qs.offset((page - 1) * page_size).limit(page_size)
        return await self._list(qs, "list events")


class ProposalCRUD(CRUD[Proposal, ProposalResponse]):  # type: ignore
    async def list_proposals(
        self,
        event_id: int | None = None,
        exclude_drafts: bool = False,
    ) -> list[ProposalResponse]:
        qs = Proposal.all()
        if event_id is not None:
            qs = qs.filter(event_id=event_id)
        if exclude_drafts:
            qs = qs.exclude(status=ProposalStatus.DRAFT)
        return await self._list(qs, "list proposals")

    async def list_open_for_event(self, event_id: int) -> list[ProposalResponse]:
        qs = Proposal.filter(
            event_id=event_id,
            status__in=[ProposalStatus.DRAFT, ProposalStatus.PENDING],
        )
        with repository_call(f"load open proposals of event {event_id}"):
            rows = await qs
        return [self._out(r) for r in rows]


class ServiceCRUD(CRUD[Service, ServiceResponse]):  # type: ignore
    async def list_services(
        self,
        provider_id: int | None = None,
        available_only: bool = False,
    ) -> list[ServiceResponse]:
        qs = Service.all()
        if provider_id is not None:
            qs = qs.filter(provider_id=provider_id)
        if available_only:
            qs = qs.filter(is_available=True)
        return await self._list(qs, "list services")


class BookingCRUD(CRUD[Booking, BookingResponse]):  # type: ignore
    async def create_booking(
        self,
        event_id: int,
        service_id: int,
        provider_id: int,
        customer_id: int,
        start_time: datetime,
        agree_price: Decimal | None,
        special_instructions: str | None,
    ) -> BookingResponse:
        return await self.create(
            event_id=event_id,
            service_id=service_id,
            provider_id=provider_id,
            customer_id=customer_id,
            start_time=start_time,
            agree_price=agree_price,
            special_instructions=special_instructions,
            status=BookingStatus.PENDING,
        )

    async def list_bookings(
        self,
        customer_ids: Iterable[int] | None = None,
        provider_id: int | None = None,
        status: BookingStatus | None = None,
    ) -> list[BookingResponse]:
        qs = Booking.all()
        if customer_ids is not None:
            qs = qs.filter(customer_id__in=list(customer_ids))
        if provider_id is not None:
            qs = qs.filter(provider_id=provider_id)
        if status is not None:
            qs = qs.filter(status=status)
        return await self._list(qs, "list bookings")

    async def list_open_for_event(self, event_id: int) -> list[BookingResponse]:
        qs = Booking.filter(
            event_id=event_id,
            status__in=[BookingStatus.PENDING, BookingStatus.CONFIRMED],
        )
        with repository_call(f"load open bookings of event {event_id}"):
            rows = await qs
        return [self._out(r) for r in rows]


class NotificationCRUD(CRUD[Notification, NotificationResponse]):  # type: ignore
    async def list_for_user(self, user_id: int) -> list[NotificationResponse]:
        return await self._list(
            Notification.filter(user_id=user_id), "list notifications"
        )

    async def count_unread(self, user_id: int) -> int:
        return await Notification.filter(user_id=user_id, is_read=False).count()

    async def mark_read(self, notification_id: int) -> NotificationResponse | None:
        with repository_call(f"mark notification {notification_id} read"):
            updated = await Notification.filter(
                id=notification_id, is_read=False
            ).update(is_read=True, read_at=_now())
            inst = await Notification.get_or_none(id=notification_id)
        if not inst:
            return None
        if not updated:
            logger.debug("Notification {} was already read", notification_id)
        return self._out(inst)


class ActivityCRUD(CRUD[Activity, ActivityResponse]):  # type: ignore
    async def list_recent(self, limit: int) -> list[ActivityResponse]:
        return await self._list(Activity.all().limit(limit), "list activities")


event_crud = EventCRUD(Event, EventResponse)
proposal_crud = ProposalCRUD(Proposal, ProposalResponse)
service_crud = ServiceCRUD(Service, ServiceResponse)
booking_crud = BookingCRUD(Booking, BookingResponse)
notification_crud = NotificationCRUD(Notification, NotificationResponse)
activity_crud = ActivityCRUD(Activity, ActivityResponse)
