from fastapi import APIRouter, Depends, status

from app.deps import CurrentUser, get_actor
from app.effects import EffectDispatcher, get_dispatcher
from app.schemas import (
    EventCreate,
    EventFilters,
    EventResponse,
    EventStatusUpdate,
    EventUpdate,
    ProposalCreate,
    ProposalResponse,
)
from app.workflow.events import event_manager
from app.workflow.proposals import proposal_manager

router = APIRouter(prefix="/events", tags=["events"])


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    payload: EventCreate,
    actor: CurrentUser = Depends(get_actor),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
) -> EventResponse:
    result = await event_manager.create_event(actor, payload)
    await dispatcher.dispatch(result.effects)
    return result.entity


@router.get("", response_model=list[EventResponse])
async def list_events(
    filters: EventFilters = Depends(),
    actor: CurrentUser = Depends(get_actor),
) -> list[EventResponse]:
    """Staff see every event; customers only the ones they own."""
    return await event_manager.list_events(actor, filters)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: int,
    actor: CurrentUser = Depends(get_actor),
) -> EventResponse:
    return await event_manager.get_event(event_id, actor)


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: int,
    payload: EventUpdate,
    actor: CurrentUser = Depends(get_actor),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
) -> EventResponse:
    result = await event_manager.update_event(event_id, actor, payload)
    await dispatcher.dispatch(result.effects)
    return result.entity


@router.patch("/{event_id}/status", response_model=EventResponse)
async def update_event_status(
    event_id: int,
    payload: EventStatusUpdate,
    actor: CurrentUser = Depends(get_actor),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
) -> EventResponse:
    result = await event_manager.transition_event(event_id, actor, payload.status)
    await dispatcher.dispatch(result.effects)
    return result.entity


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: int,
    actor: CurrentUser = Depends(get_actor),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
) -> None:
    result = await event_manager.delete_event(event_id, actor)
    await dispatcher.dispatch(result.effects)


# ---------------------------------------------------------------------------
# Proposals nested under their event
# ---------------------------------------------------------------------------


@router.get("/{event_id}/proposals", response_model=list[ProposalResponse])
async def list_event_proposals(
    event_id: int,
    actor: CurrentUser = Depends(get_actor),
) -> list[ProposalResponse]:
    return await proposal_manager.list_event_proposals(event_id, actor)


@router.post(
    "/{event_id}/proposals",
    response_model=ProposalResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_proposal(
    event_id: int,
    payload: ProposalCreate,
    actor: CurrentUser = Depends(get_actor),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
) -> ProposalResponse:
    result = await proposal_manager.create_proposal(event_id, actor, payload)
    await dispatcher.dispatch(result.effects)
    return result.entity
