from typing import Any

from fastapi import APIRouter, Body, Depends
from pydantic import ValidationError as PydanticValidationError

from app.deps import CurrentUser, UsersClient, get_actor, get_users_client
from app.effects import EffectDispatcher, get_dispatcher
from app.errors import ValidationError
from app.ownership import OwnershipResolver
from app.roles import UserRole
from app.schemas import ProposalDecision, ProposalResponse, ProposalUpdate
from app.workflow.proposals import proposal_manager

router = APIRouter(prefix="/proposals", tags=["proposals"])


@router.get("", response_model=list[ProposalResponse])
async def list_proposals(
    actor: CurrentUser = Depends(get_actor),
) -> list[ProposalResponse]:
    return await proposal_manager.list_proposals(actor)


@router.get("/{proposal_id}", response_model=ProposalResponse)
async def get_proposal(
    proposal_id: int,
    actor: CurrentUser = Depends(get_actor),
) -> ProposalResponse:
    return await proposal_manager.get_proposal(proposal_id, actor)


@router.patch("/{proposal_id}", response_model=ProposalResponse)
async def update_proposal(
    proposal_id: int,
    body: dict[str, Any] = Body(...),
    actor: CurrentUser = Depends(get_actor),
    users_client: UsersClient = Depends(get_users_client),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
) -> ProposalResponse:
    """
    One endpoint, two bodies:
      customer -> {status: accepted|rejected, feedback?}
      staff    -> content edits, optionally {status: pending} to send a draft
    """
    try:
        if actor.role == UserRole.CUSTOMER:
            decision = ProposalDecision.model_validate(body)
        else:
            update = ProposalUpdate.model_validate(body)
    except PydanticValidationError as exc:
        raise ValidationError(
            exc.errors(include_url=False, include_context=False, include_input=False)
        ) from None

    if actor.role == UserRole.CUSTOMER:
        result = await proposal_manager.resolve_proposal(
            proposal_id, actor, decision.status, decision.feedback
        )
    else:
        result = await proposal_manager.update_proposal(
            proposal_id, actor, update, OwnershipResolver(users_client)
        )

    await dispatcher.dispatch(result.effects)
    return result.entity
