from fastapi import APIRouter, Depends, status
from loguru import logger

from app.crud import service_crud
from app.deps import CurrentUser, get_actor, require_provider
from app.errors import NotFound
from app.guard import ensure_allowed
from app.roles import Action
from app.schemas import ServiceCreate, ServiceResponse, ServiceUpdate

provider_router = APIRouter(prefix="/providers/services", tags=["services"])
marketplace_router = APIRouter(prefix="/marketplace/services", tags=["services"])


@provider_router.post(
    "", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED
)
async def create_service(
    payload: ServiceCreate,
    actor: CurrentUser = Depends(get_actor),
) -> ServiceResponse:
    ensure_allowed(actor, Action.CREATE_SERVICE)
    service = await service_crud.create(provider_id=actor.id, **payload.model_dump())
    logger.info("Service {} published by provider_id={}", service.id, actor.id)
    return service


@provider_router.get("", response_model=list[ServiceResponse])
async def list_own_services(
    actor: CurrentUser = Depends(require_provider),
) -> list[ServiceResponse]:
    return await service_crud.list_services(provider_id=actor.id)


@provider_router.patch("/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: int,
    payload: ServiceUpdate,
    actor: CurrentUser = Depends(get_actor),
) -> ServiceResponse:
    service = await service_crud.get(id=service_id)
    if not service:
        raise NotFound("Service not found")
    ensure_allowed(actor, Action.EDIT_SERVICE, service)

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        return service
    # Existing bookings keep their agree_price snapshot
    updated = await service_crud.update_fields(service_id, **changes)
    if not updated:
        raise NotFound("Service not found")
    return updated


@marketplace_router.get("", response_model=list[ServiceResponse])
async def browse_services(
    _: CurrentUser = Depends(get_actor),
) -> list[ServiceResponse]:
    return await service_crud.list_services(available_only=True)


@marketplace_router.get("/{service_id}", response_model=ServiceResponse)
async def get_marketplace_service(
    service_id: int,
    _: CurrentUser = Depends(get_actor),
) -> ServiceResponse:
    service = await service_crud.get(id=service_id, is_available=True)
    if not service:
        raise NotFound("Service not found")
    return service
