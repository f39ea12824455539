from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from app import settings
from app.errors import ValidationError
from app.models import (
    BookingStatus,
    EventStatus,
    LocationType,
    ProposalStatus,
    ServiceType,
)

CENTS = Decimal("0.01")

_DATETIME = TypeAdapter(datetime)


def to_utc(dt: datetime) -> datetime:
    """Ensure a datetime is UTC-aware, handling both aware and naive inputs."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python. Accepts both on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class EventCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    event_date: datetime
    end_date: datetime
    start_time: str | None = Field(default=None, max_length=16)
    end_time: str | None = Field(default=None, max_length=16)
    location: str | None = Field(default=None, max_length=255)
    location_type: LocationType | None = None
    event_type: str | None = Field(default=None, max_length=64)
    vibe: str | None = Field(default=None, max_length=64)
    audience_size: int | None = Field(default=None, ge=1)
    budget: Decimal | None = Field(default=None, ge=0, decimal_places=2)

    @field_validator("event_date", "end_date", mode="after")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return to_utc(v)

    @model_validator(mode="after")
    def validate_date_range(self) -> EventCreate:
        if self.end_date < self.event_date:
            raise ValueError("end_date must not be before event_date")
        return self


class EventUpdate(CamelModel):
    """Details a customer may edit while the event is still pending."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    event_date: datetime | None = None
    end_date: datetime | None = None
    start_time: str | None = Field(default=None, max_length=16)
    end_time: str | None = Field(default=None, max_length=16)
    location: str | None = Field(default=None, max_length=255)
    location_type: LocationType | None = None
    event_type: str | None = Field(default=None, max_length=64)
    vibe: str | None = Field(default=None, max_length=64)
    audience_size: int | None = Field(default=None, ge=1)
    budget: Decimal | None = Field(default=None, ge=0, decimal_places=2)

    @field_validator("event_date", "end_date", mode="after")
    @classmethod
    def normalize_timezone(cls, v: datetime | None) -> datetime | None:
        return to_utc(v) if v is not None else None

    @model_validator(mode="after")
    def validate_date_range(self) -> EventUpdate:
        if self.event_date and self.end_date and self.end_date < self.event_date:
            raise ValueError("end_date must not be before event_date")
        return self


class EventStatusUpdate(CamelModel):
    status: EventStatus


class EventResponse(CamelModel):
    id: int
    customer_id: int
    name: str
    description: str | None
    event_date: datetime
    end_date: datetime
    start_time: str | None
    end_time: str | None
    location: str | None
    location_type: LocationType | None
    event_type: str | None
    vibe: str | None
    audience_size: int | None
    budget: Decimal | None
    status: EventStatus
    created_at: datetime
    updated_at: datetime


class EventFilters(BaseModel):
    """Bind to a FastAPI route via Depends(EventFilters)."""

    # One value, a comma-separated list, or "all"
    status: str | None = None

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)

    @property
    def statuses(self) -> list[EventStatus] | None:
        if not self.status or self.status == "all":
            return None
        try:
            return [EventStatus(s.strip()) for s in self.status.split(",") if s.strip()]
        except ValueError:
            raise ValidationError("Invalid status value") from None


# ---------------------------------------------------------------------------
# Proposals
# ---------------------------------------------------------------------------


class ProposalItem(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, ge=1)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


def parse_items(v: Any) -> Any:
    """Items arrive either as a list or as a JSON-encoded list."""
    if isinstance(v, str):
        try:
            v = json.loads(v)
        except json.JSONDecodeError:
            raise ValueError("items must be a valid JSON array") from None
        if not isinstance(v, list):
            raise ValueError("items must be a valid JSON array")
    return v


def items_total(items: list[ProposalItem]) -> Decimal:
    return sum((i.line_total for i in items), Decimal("0")).quantize(CENTS)


def reconcile_total(items: list[ProposalItem], claimed: Decimal | None) -> Decimal:
    """total_price is derived from items; a claimed total must agree with it."""
    computed = items_total(items)
    if claimed is not None and claimed.quantize(CENTS) != computed:
        raise ValueError(
            f"total_price {claimed} does not match the sum of items ({computed})"
        )
    return computed


def default_valid_until() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=settings.proposal_validity_days)


class ProposalCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    items: list[ProposalItem] = Field(min_length=1)
    total_price: Decimal | None = None
    valid_until: datetime | None = None

    @field_validator("items", mode="before")
    @classmethod
    def decode_items(cls, v: Any) -> Any:
        return parse_items(v)

    @field_validator("valid_until", mode="before")
    @classmethod
    def lenient_valid_until(cls, v: Any) -> datetime | None:
        # Unparsable dates fall back to the default validity window
        if v is None or v == "":
            return None
        try:
            return _DATETIME.validate_python(v)
        except PydanticValidationError:
            return None

    @model_validator(mode="after")
    def derive_totals(self) -> ProposalCreate:
        self.total_price = reconcile_total(self.items, self.total_price)
        self.valid_until = (
            to_utc(self.valid_until) if self.valid_until else default_valid_until()
        )
        return self


class ProposalUpdate(CamelModel):
    """Staff edit. status may only be set to pending, which sends a draft."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1)
    items: list[ProposalItem] | None = Field(default=None, min_length=1)
    total_price: Decimal | None = None
    valid_until: datetime | None = None
    status: ProposalStatus | None = None

    @field_validator("items", mode="before")
    @classmethod
    def decode_items(cls, v: Any) -> Any:
        return parse_items(v) if v is not None else None

    @field_validator("status", mode="after")
    @classmethod
    def only_send(cls, v: ProposalStatus | None) -> ProposalStatus | None:
        if v is not None and v != ProposalStatus.PENDING:
            raise ValueError("staff can only move a proposal to 'pending'")
        return v

    @model_validator(mode="after")
    def derive_totals(self) -> ProposalUpdate:
        if self.items is not None:
            self.total_price = reconcile_total(self.items, self.total_price)
        elif self.total_price is not None:
            raise ValueError("total_price is derived from items and cannot be set alone")
        if self.valid_until is not None:
            self.valid_until = to_utc(self.valid_until)
        return self

    def changes(self) -> dict[str, Any]:
        """Column values to write, excluding the status field."""
        data = self.model_dump(exclude_unset=True, exclude={"status", "items"})
        if self.items is not None:
            data["items"] = [i.model_dump(mode="json") for i in self.items]
            data["total_price"] = self.total_price
        return data


class ProposalDecision(CamelModel):
    """The only body a customer may send to PATCH /proposals/{id}."""

    model_config = ConfigDict(extra="forbid")

    status: ProposalStatus
    feedback: str | None = Field(default=None, max_length=2000)

    @field_validator("status", mode="after")
    @classmethod
    def only_accept_or_reject(cls, v: ProposalStatus) -> ProposalStatus:
        if v not in (ProposalStatus.ACCEPTED, ProposalStatus.REJECTED):
            raise ValueError("customers can only accept or reject proposals")
        return v

    @field_validator("feedback", mode="after")
    @classmethod
    def blank_is_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class ProposalResponse(CamelModel):
    id: int
    event_id: int
    admin_id: int
    title: str
    description: str
    items: list[ProposalItem]
    total_price: Decimal
    status: ProposalStatus
    valid_until: datetime | None
    feedback: str | None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


class ServiceCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    service_type: ServiceType
    service_category: str = Field(min_length=1, max_length=128)
    base_price: Decimal = Field(ge=0, decimal_places=2)
    price_exclusions: str | None = None
    is_available: bool = True


class ServiceUpdate(CamelModel):
    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    service_type: ServiceType | None = None
    service_category: str | None = Field(default=None, min_length=1, max_length=128)
    base_price: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    price_exclusions: str | None = None
    is_available: bool | None = None


class ServiceResponse(CamelModel):
    id: int
    provider_id: int
    title: str
    description: str | None
    service_type: ServiceType
    service_category: str
    base_price: Decimal
    price_exclusions: str | None
    is_available: bool
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------


class BookingCreate(CamelModel):
    service_id: int
    event_id: int
    start_time: datetime
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("start_time", mode="after")
    @classmethod
    def require_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            raise ValueError("datetime must be timezone-aware (include UTC offset)")
        return v.astimezone(timezone.utc)


class BookingStatusUpdate(CamelModel):
    status: BookingStatus


class BookingAdminUpdate(CamelModel):
    status: BookingStatus
    reason: str | None = Field(default=None, max_length=1000)


class BookingResponse(CamelModel):
    id: int
    event_id: int
    service_id: int
    provider_id: int
    customer_id: int
    status: BookingStatus
    request_date: datetime | None
    start_time: datetime
    end_time: datetime | None
    agree_price: Decimal | None
    special_instructions: str | None
    cancel_reason: str | None
    updated_at: datetime


class BookingEnriched(BookingResponse):
    customer_username: str | None = None
    customer_full_name: str | None = None
    provider_username: str | None = None
    provider_full_name: str | None = None


# ---------------------------------------------------------------------------
# Notifications / activities
# ---------------------------------------------------------------------------


class NotificationResponse(CamelModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    redirect_url: str | None
    is_read: bool
    read_at: datetime | None
    created_at: datetime


class UnreadCount(CamelModel):
    count: int


class ActivityResponse(CamelModel):
    id: int
    user_id: int | None
    activity_type: str
    description: str
    entity_id: int | None
    entity_type: str | None
    data: dict | None
    created_at: datetime
