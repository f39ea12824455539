from enum import StrEnum

from tortoise import fields
from tortoise.models import Model


class EventStatus(StrEnum):
    PENDING = "pending"  # created by the customer, awaiting staff review
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ProposalStatus(StrEnum):
    DRAFT = "draft"  # invisible to the customer
    PENDING = "pending"  # sent, awaiting the customer's decision
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"  # valid_until passed while pending


class BookingStatus(StrEnum):
    PENDING = "pending"  # awaiting provider confirmation
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    CANCELLED = "cancelled"  # by staff, or cascaded from the event
    COMPLETED = "completed"


class LocationType(StrEnum):
    INDOOR = "indoor"
    OUTDOOR = "outdoor"
    HYBRID = "hybrid"


class ServiceType(StrEnum):
    ENTERTAINMENT = "entertainment"
    ACTIVITY = "activity"
    MEDIA = "media"
    STAGE = "stage"
    HOST = "host"
    TENT = "tent"
    FOOD = "food"
    RETAIL = "retail"
    UTILITIES = "utilities"
    DIGITAL = "digital"
    SPECIAL_ZONE = "special_zone"


class TimestampedModel(Model):
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:  # type: ignore
        abstract = True


class Event(TimestampedModel):
    id = fields.IntField(primary_key=True)

    # Direct user id for new rows; legacy rows may hold a linked customer profile id
    customer_id = fields.IntField(db_index=True)

    name = fields.CharField(max_length=255)
    description = fields.TextField(null=True)
    event_date = fields.DatetimeField()
    end_date = fields.DatetimeField()
    start_time = fields.CharField(max_length=16, null=True)
    end_time = fields.CharField(max_length=16, null=True)
    location = fields.CharField(max_length=255, null=True)
    location_type = fields.CharEnumField(LocationType, null=True)
    event_type = fields.CharField(max_length=64, null=True)
    vibe = fields.CharField(max_length=64, null=True)
    audience_size = fields.IntField(null=True)
    budget = fields.DecimalField(max_digits=10, decimal_places=2, null=True)

    status = fields.CharEnumField(EventStatus, default=EventStatus.PENDING)

    class Meta:  # type: ignore
        table = "events"
        ordering = ["-created_at"]


class Proposal(TimestampedModel):
    id = fields.IntField(primary_key=True)
    event = fields.ForeignKeyField(
        "models.Event", related_name="proposals", on_delete=fields.CASCADE
    )
    admin_id = fields.IntField()  # staff author

    title = fields.CharField(max_length=255)
    description = fields.TextField()
    items = fields.JSONField(default=list)  # [{name, description, price, quantity}]
    total_price = fields.DecimalField(max_digits=10, decimal_places=2)  # derived
    status = fields.CharEnumField(ProposalStatus, default=ProposalStatus.DRAFT)
    valid_until = fields.DatetimeField(null=True)
    feedback = fields.TextField(null=True)

    class Meta:  # type: ignore
        table = "proposals"
        ordering = ["-created_at"]


class Service(TimestampedModel):
    id = fields.IntField(primary_key=True)
    provider_id = fields.IntField(db_index=True)

    title = fields.CharField(max_length=255)
    description = fields.TextField(null=True)
    service_type = fields.CharEnumField(ServiceType)
    service_category = fields.CharField(max_length=128)
    base_price = fields.DecimalField(max_digits=10, decimal_places=2)
    price_exclusions = fields.TextField(null=True)
    is_available = fields.BooleanField(default=True)

    class Meta:  # type: ignore
        table = "services"
        ordering = ["-created_at"]


class Booking(TimestampedModel):
    id = fields.IntField(primary_key=True)
    event = fields.ForeignKeyField(
        "models.Event", related_name="bookings", on_delete=fields.CASCADE
    )
    service = fields.ForeignKeyField(
        "models.Service", related_name="bookings", on_delete=fields.RESTRICT
    )
    provider_id = fields.IntField(db_index=True)  # snapshot of service.provider_id
    customer_id = fields.IntField(db_index=True)  # the customer who booked

    status = fields.CharEnumField(BookingStatus, default=BookingStatus.PENDING)
    request_date = fields.DatetimeField(auto_now_add=True)
    start_time = fields.DatetimeField()
    end_time = fields.DatetimeField(null=True)

    agree_price = fields.DecimalField(
        max_digits=10, decimal_places=2, null=True
    )  # snapshot of service.base_price at booking time
    special_instructions = fields.TextField(null=True)
    cancel_reason = fields.TextField(null=True)

    class Meta:  # type: ignore
        table = "bookings"
        ordering = ["-created_at"]


class Notification(Model):
    id = fields.IntField(primary_key=True)
    user_id = fields.IntField(db_index=True)

    type = fields.CharField(max_length=64)
    title = fields.CharField(max_length=255)
    message = fields.TextField()
    redirect_url = fields.CharField(max_length=512, null=True)
    is_read = fields.BooleanField(default=False)
    read_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:  # type: ignore
        table = "notifications"
        ordering = ["-created_at"]


class Activity(Model):
    """Append-only audit record."""

    id = fields.IntField(primary_key=True)
    user_id = fields.IntField(null=True)  # actor

    activity_type = fields.CharField(max_length=64)
    description = fields.TextField()
    entity_id = fields.IntField(null=True)
    entity_type = fields.CharField(max_length=32, null=True)
    data = fields.JSONField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:  # type: ignore
        table = "activities"
        ordering = ["-created_at"]
