from fastapi import APIRouter, Depends, status

from app.deps import (
    CurrentUser,
    UsersClient,
    get_actor,
    get_users_client,
    require_provider,
    require_staff,
)
from app.effects import EffectDispatcher, get_dispatcher
from app.models import BookingStatus
from app.schemas import (
    BookingAdminUpdate,
    BookingCreate,
    BookingEnriched,
    BookingResponse,
    BookingStatusUpdate,
)
from app.workflow.bookings import booking_manager

customer_router = APIRouter(prefix="/customer/bookings", tags=["bookings"])
provider_router = APIRouter(prefix="/providers/bookings", tags=["bookings"])
admin_router = APIRouter(prefix="/bookings", tags=["bookings"])


# ---------------------------------------------------------------------------
# Enrichment helper
# ---------------------------------------------------------------------------


async def _enrich(
    bookings: list[BookingResponse],
    current_user: CurrentUser,
    users_client: UsersClient,
) -> list[BookingEnriched]:
    """
    Attach customer and provider names from users-ms.
    The upstream call degrades gracefully: names become None on error.
    """
    if not bookings:
        return []

    user_ids = {b.customer_id for b in bookings} | {b.provider_id for b in bookings}
    users_raw = await users_client.get_by_ids(user_ids, current_user)
    user_map: dict[str, dict] = {
        str(u["id"]): {"username": u.get("username"), "full_name": u.get("full_name")}
        for u in users_raw
    }

    result = []
    for b in bookings:
        customer = user_map.get(str(b.customer_id), {})
        provider = user_map.get(str(b.provider_id), {})
        result.append(
            BookingEnriched(
                **b.model_dump(),
                customer_username=customer.get("username"),
                customer_full_name=customer.get("full_name"),
                provider_username=provider.get("username"),
                provider_full_name=provider.get("full_name"),
            )
        )
    return result


# ---------------------------------------------------------------------------
# Customer
# ---------------------------------------------------------------------------


@customer_router.post(
    "", response_model=BookingResponse, status_code=status.HTTP_201_CREATED
)
async def create_booking(
    payload: BookingCreate,
    actor: CurrentUser = Depends(get_actor),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
) -> BookingResponse:
    result = await booking_manager.create_booking(
        actor,
        event_id=payload.event_id,
        service_id=payload.service_id,
        start_time=payload.start_time,
        notes=payload.notes,
    )
    await dispatcher.dispatch(result.effects)
    return result.entity


@customer_router.get("", response_model=list[BookingEnriched])
async def list_customer_bookings(
    actor: CurrentUser = Depends(get_actor),
    users_client: UsersClient = Depends(get_users_client),
) -> list[BookingEnriched]:
    bookings = await booking_manager.list_customer_bookings(actor)
    return await _enrich(bookings, actor, users_client)


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


@provider_router.get("", response_model=list[BookingEnriched])
async def list_provider_bookings(
    status: BookingStatus | None = None,
    actor: CurrentUser = Depends(require_provider),
    users_client: UsersClient = Depends(get_users_client),
) -> list[BookingEnriched]:
    bookings = await booking_manager.list_provider_bookings(actor, status)
    return await _enrich(bookings, actor, users_client)


@provider_router.patch("/{booking_id}/status", response_model=BookingResponse)
async def resolve_booking(
    booking_id: int,
    payload: BookingStatusUpdate,
    actor: CurrentUser = Depends(get_actor),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
) -> BookingResponse:
    result = await booking_manager.resolve_booking(booking_id, actor, payload.status)
    await dispatcher.dispatch(result.effects)
    return result.entity


# ---------------------------------------------------------------------------
# Staff
# ---------------------------------------------------------------------------


@admin_router.patch("/{booking_id}/status", response_model=BookingResponse)
async def administer_booking(
    booking_id: int,
    payload: BookingAdminUpdate,
    actor: CurrentUser = Depends(require_staff),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
) -> BookingResponse:
    result = await booking_manager.administer_booking(
        booking_id, actor, payload.status, payload.reason
    )
    await dispatcher.dispatch(result.effects)
    return result.entity
