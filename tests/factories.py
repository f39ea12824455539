"""
All test-data builders in one place.
Import from here in every test file — never define dummy data inline.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

from app.deps import CurrentUser
from app.roles import UserRole, UserStatus
from app.schemas import (
    BookingResponse,
    EventResponse,
    NotificationResponse,
    ProposalResponse,
    ServiceResponse,
)

# ---------------------------------------------------------------------------
# Stable IDs — use these when a specific, repeatable id is needed.
# ---------------------------------------------------------------------------

CUSTOMER_ID = 101
LEGACY_PROFILE_ID = 9001  # customer profile id referenced by pre-split events
OTHER_CUSTOMER_ID = 102
ADMIN_ID = 1
EMPLOYEE_ID = 2
OTHER_EMPLOYEE_ID = 3
PROVIDER_ID = 201
OTHER_PROVIDER_ID = 202

EVENT_ID = 11
PROPOSAL_ID = 21
SERVICE_ID = 31
BOOKING_ID = 41
NOTIFICATION_ID = 51

NOW = datetime(2026, 6, 1, 10, 0, 0, tzinfo=UTC)
LATER = NOW + timedelta(hours=6)
FUTURE = datetime.now(UTC) + timedelta(days=30)
PAST = datetime.now(UTC) - timedelta(days=1)


# ---------------------------------------------------------------------------
# User factories
# ---------------------------------------------------------------------------


def make_customer(
    user_id: int = CUSTOMER_ID,
    owner_ids: frozenset[int] | None = None,
    status: UserStatus = UserStatus.ACTIVE,
) -> CurrentUser:
    """Customer whose owner ids default to just their own id."""
    return CurrentUser(
        id=user_id,
        username=f"customer_{user_id}",
        role=UserRole.CUSTOMER,
        status=status,
        owner_ids=owner_ids if owner_ids is not None else frozenset({user_id}),
    )


def make_admin(user_id: int = ADMIN_ID) -> CurrentUser:
    return CurrentUser(
        id=user_id,
        username="admin",
        role=UserRole.ADMIN,
        owner_ids=frozenset({user_id}),
    )


def make_employee(user_id: int = EMPLOYEE_ID) -> CurrentUser:
    return CurrentUser(
        id=user_id,
        username=f"employee_{user_id}",
        role=UserRole.EMPLOYEE,
        owner_ids=frozenset({user_id}),
    )


def make_provider(user_id: int = PROVIDER_ID) -> CurrentUser:
    return CurrentUser(
        id=user_id,
        username=f"provider_{user_id}",
        role=UserRole.PROVIDER,
        owner_ids=frozenset({user_id}),
    )


# ---------------------------------------------------------------------------
# Response dict factories  (mirror what the CRUD layer returns)
# ---------------------------------------------------------------------------


def event_response(**overrides) -> dict:
    base = dict(
        id=EVENT_ID,
        customer_id=CUSTOMER_ID,
        name="Summer Gala",
        description="Annual company party",
        event_date=NOW.isoformat(),
        end_date=LATER.isoformat(),
        start_time="18:00",
        end_time="23:00",
        location="Riverside Park",
        location_type="outdoor",
        event_type="corporate",
        vibe="festive",
        audience_size=150,
        budget="5000.00",
        status="pending",
        created_at=NOW.isoformat(),
        updated_at=NOW.isoformat(),
    )
    return {**base, **overrides}


def proposal_response(**overrides) -> dict:
    base = dict(
        id=PROPOSAL_ID,
        event_id=EVENT_ID,
        admin_id=ADMIN_ID,
        title="Full package",
        description="Stage, sound and catering",
        items=[
            {"name": "Stage", "description": None, "price": "1000.00", "quantity": 1},
            {"name": "Catering", "description": None, "price": "25.00", "quantity": 100},
        ],
        total_price="3500.00",
        status="draft",
        valid_until=FUTURE.isoformat(),
        feedback=None,
        created_at=NOW.isoformat(),
        updated_at=NOW.isoformat(),
    )
    return {**base, **overrides}


def service_response(**overrides) -> dict:
    base = dict(
        id=SERVICE_ID,
        provider_id=PROVIDER_ID,
        title="Live DJ Set",
        description="Four hours of music",
        service_type="entertainment",
        service_category="music",
        base_price="350.00",
        price_exclusions=None,
        is_available=True,
        created_at=NOW.isoformat(),
        updated_at=NOW.isoformat(),
    )
    return {**base, **overrides}


def booking_response(**overrides) -> dict:
    base = dict(
        id=BOOKING_ID,
        event_id=EVENT_ID,
        service_id=SERVICE_ID,
        provider_id=PROVIDER_ID,
        customer_id=CUSTOMER_ID,
        status="pending",
        request_date=NOW.isoformat(),
        start_time=NOW.isoformat(),
        end_time=None,
        agree_price="350.00",
        special_instructions=None,
        cancel_reason=None,
        updated_at=NOW.isoformat(),
    )
    return {**base, **overrides}


def notification_response(**overrides) -> dict:
    base = dict(
        id=NOTIFICATION_ID,
        user_id=CUSTOMER_ID,
        type="proposal_received",
        title="New Proposal Available",
        message='A new proposal for "Summer Gala" is ready for your review.',
        redirect_url=None,
        is_read=False,
        read_at=None,
        created_at=NOW.isoformat(),
    )
    return {**base, **overrides}


# ---------------------------------------------------------------------------
# Pydantic models — needed wherever managers read attributes like .status
# ---------------------------------------------------------------------------


def event_model(**overrides) -> EventResponse:
    return EventResponse(**event_response(**overrides))


def proposal_model(**overrides) -> ProposalResponse:
    return ProposalResponse(**proposal_response(**overrides))


def service_model(**overrides) -> ServiceResponse:
    return ServiceResponse(**service_response(**overrides))


def booking_model(**overrides) -> BookingResponse:
    return BookingResponse(**booking_response(**overrides))


def notification_model(**overrides) -> NotificationResponse:
    return NotificationResponse(**notification_response(**overrides))


# ---------------------------------------------------------------------------
# Request payload factories  (camelCase, as the frontend sends them)
# ---------------------------------------------------------------------------


def user_dict(user_id: int = CUSTOMER_ID, **overrides) -> dict:
    """Minimal users-ms user representation used by UsersClient mocks."""
    base = dict(
        id=user_id,
        username=f"user_{user_id}",
        full_name="Test User",
        email="test@example.com",
        created_at=NOW.isoformat(),
    )
    return {**base, **overrides}


def event_create_payload(**overrides) -> dict:
    base = dict(
        name="Summer Gala",
        description="Annual company party",
        eventDate=NOW.isoformat(),
        endDate=LATER.isoformat(),
        location="Riverside Park",
        locationType="outdoor",
        audienceSize=150,
        budget="5000.00",
    )
    return {**base, **overrides}


def proposal_create_payload(**overrides) -> dict:
    base = dict(
        title="Full package",
        description="Stage, sound and catering",
        items=[
            {"name": "Stage", "price": "1000.00", "quantity": 1},
            {"name": "Catering", "price": "25.00", "quantity": 100},
        ],
    )
    return {**base, **overrides}


def booking_create_payload(**overrides) -> dict:
    base = dict(
        serviceId=SERVICE_ID,
        eventId=EVENT_ID,
        startTime=NOW.isoformat(),
        notes=None,
    )
    return {**base, **overrides}


PRICE_350 = Decimal("350.00")
