from __future__ import annotations

from datetime import datetime, timezone

from loguru import logger

from app.crud import event_crud, proposal_crud
from app.deps import CurrentUser
from app.effects import (
    ActivityEffect,
    ActivityType,
    Effect,
    NotificationEffect,
    NotificationType,
    WorkflowResult,
)
from app.errors import Forbidden, InvalidState, NotFound, ValidationError
from app.guard import ensure_allowed
from app.models import EventStatus, ProposalStatus
from app.ownership import OwnershipResolver
from app.roles import Action
from app.schemas import (
    EventResponse,
    ProposalCreate,
    ProposalResponse,
    ProposalUpdate,
    to_utc,
)

# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------

_VALID_TRANSITIONS: dict[ProposalStatus, set[ProposalStatus]] = {
    ProposalStatus.DRAFT: {ProposalStatus.PENDING},
    ProposalStatus.PENDING: {
        ProposalStatus.ACCEPTED,
        ProposalStatus.REJECTED,
        ProposalStatus.EXPIRED,
    },
    ProposalStatus.ACCEPTED: set(),
    ProposalStatus.REJECTED: set(),
    ProposalStatus.EXPIRED: set(),
}

# Content edits are only allowed before the customer has decided
_EDITABLE = {ProposalStatus.DRAFT, ProposalStatus.PENDING}
_DECISIONS = {ProposalStatus.ACCEPTED, ProposalStatus.REJECTED}
_CLOSED_EVENT = {EventStatus.COMPLETED, EventStatus.CANCELLED}


def _can_move(old_status: ProposalStatus, new_status: ProposalStatus) -> bool:
    return new_status in _VALID_TRANSITIONS.get(old_status, set())


def _is_stale(proposal: ProposalResponse, now: datetime | None = None) -> bool:
    if proposal.valid_until is None:
        return False
    now = now or datetime.now(timezone.utc)
    return to_utc(proposal.valid_until) <= now


def _proposals_url(event_id: int) -> str:
    return f"/dashboard?section=events&view=proposals&eventId={event_id}"


class ProposalNegotiationEngine:
    """Owns Proposal status transitions and item/pricing normalization."""

    async def _load(self, proposal_id: int) -> ProposalResponse:
        proposal = await proposal_crud.get(id=proposal_id)
        if not proposal:
            raise NotFound("Proposal not found")
        return proposal

    async def _load_event(self, event_id: int) -> EventResponse:
        event = await event_crud.get(id=event_id)
        if not event:
            raise NotFound("Event not found")
        return event

    async def _expire_if_stale(self, proposal: ProposalResponse) -> ProposalResponse:
        """
        Lazily resolve time-based expiry. There is no background job, so every
        read and every decision first settles pending proposals whose
        valid_until has passed.
        """
        if proposal.status != ProposalStatus.PENDING or not _is_stale(proposal):
            return proposal
        expired = await proposal_crud.compare_and_set(
            proposal.id, ProposalStatus.PENDING, ProposalStatus.EXPIRED
        )
        if expired is None:
            # Someone else settled it first; report what it is now
            return await self._load(proposal.id)
        logger.info("Proposal {} expired (valid_until passed)", proposal.id)
        return expired

    async def create_proposal(
        self, event_id: int, actor: CurrentUser, payload: ProposalCreate
    ) -> WorkflowResult[ProposalResponse]:
        ensure_allowed(actor, Action.CREATE_PROPOSAL)
        event = await self._load_event(event_id)
        if event.status in _CLOSED_EVENT:
            raise InvalidState(f"Cannot add proposals to a {event.status} event")

        proposal = await proposal_crud.create(
            event_id=event.id,
            admin_id=actor.id,
            title=payload.title,
            description=payload.description,
            items=[i.model_dump(mode="json") for i in payload.items],
            total_price=payload.total_price,
            valid_until=payload.valid_until,
            status=ProposalStatus.DRAFT,
        )
        logger.info("Proposal {} drafted for event {}", proposal.id, event.id)
        return WorkflowResult(
            proposal,
            [
                ActivityEffect(
                    actor_id=actor.id,
                    activity_type=ActivityType.PROPOSAL_CREATED,
                    description=(
                        f'New proposal created for event "{event.name}": '
                        f"{proposal.title}"
                    ),
                    entity_id=proposal.id,
                    entity_type="proposal",
                )
            ],
        )

    async def update_proposal(
        self,
        proposal_id: int,
        actor: CurrentUser,
        payload: ProposalUpdate,
        owners: OwnershipResolver,
    ) -> WorkflowResult[ProposalResponse]:
        """Staff edit while draft/pending. `status: pending` also sends a draft."""
        proposal = await self._load(proposal_id)
        ensure_allowed(actor, Action.EDIT_PROPOSAL, proposal)
        proposal = await self._expire_if_stale(proposal)
        if proposal.status not in _EDITABLE:
            raise InvalidState(
                "Cannot modify proposal that is not in draft or pending status"
            )

        result = WorkflowResult(proposal)
        changes = payload.changes()
        if changes:
            updated = await proposal_crud.compare_and_set(
                proposal_id, proposal.status, proposal.status, **changes
            )
            if updated is None:
                raise InvalidState("Proposal changed while it was being edited")
            result.entity = updated
            result.effects.append(
                ActivityEffect(
                    actor_id=actor.id,
                    activity_type=ActivityType.PROPOSAL_UPDATED,
                    description=f'Proposal "{updated.title}" updated',
                    entity_id=proposal_id,
                    entity_type="proposal",
                )
            )

        if (
            payload.status == ProposalStatus.PENDING
            and proposal.status == ProposalStatus.DRAFT
        ):
            sent = await self.send_proposal(proposal_id, actor, owners)
            result.entity = sent.entity
            result.effects += sent.effects

        return result

    async def send_proposal(
        self, proposal_id: int, actor: CurrentUser, owners: OwnershipResolver
    ) -> WorkflowResult[ProposalResponse]:
        proposal = await self._load(proposal_id)
        ensure_allowed(actor, Action.SEND_PROPOSAL, proposal)
        if proposal.status != ProposalStatus.DRAFT:
            raise InvalidState("Only draft proposals can be sent")
        if _is_stale(proposal):
            raise InvalidState("Proposal validity has already passed")

        event = await self._load_event(proposal.event_id)
        customer_user_id = await owners.resolve_user_id(event.customer_id, actor)
        sent = await proposal_crud.compare_and_set(
            proposal_id, ProposalStatus.DRAFT, ProposalStatus.PENDING
        )
        if sent is None:
            raise InvalidState("Proposal is no longer a draft")
        logger.info("Proposal {} sent to user_id={}", proposal_id, customer_user_id)

        effects: list[Effect] = [
            NotificationEffect(
                user_id=customer_user_id,
                type=NotificationType.PROPOSAL_RECEIVED,
                title="New Proposal Available",
                message=(
                    f'A new proposal for "{event.name}" is ready for your review.'
                ),
                redirect_url=_proposals_url(event.id),
            ),
            ActivityEffect(
                actor_id=actor.id,
                activity_type=ActivityType.PROPOSAL_SENT,
                description=f'Proposal "{sent.title}" sent for event "{event.name}"',
                entity_id=proposal_id,
                entity_type="proposal",
            ),
        ]
        return WorkflowResult(sent, effects)

    async def resolve_proposal(
        self,
        proposal_id: int,
        actor: CurrentUser,
        decision: ProposalStatus,
        feedback: str | None = None,
    ) -> WorkflowResult[ProposalResponse]:
        if decision not in _DECISIONS:
            raise ValidationError("Customers can only accept or reject proposals")
        feedback = feedback.strip() if feedback else None
        if decision == ProposalStatus.REJECTED and not feedback:
            raise ValidationError("Feedback is required when rejecting a proposal")

        proposal = await self._load(proposal_id)
        event = await self._load_event(proposal.event_id)
        ensure_allowed(actor, Action.RESOLVE_PROPOSAL, proposal, parent=event)

        proposal = await self._expire_if_stale(proposal)
        if not _can_move(proposal.status, decision):
            raise InvalidState(
                f"Cannot update proposal that is not in pending status "
                f"(current: '{proposal.status}')"
            )

        values = {"feedback": feedback} if feedback else {}
        resolved = await proposal_crud.compare_and_set(
            proposal_id, ProposalStatus.PENDING, decision, **values
        )
        if resolved is None:
            raise InvalidState("Proposal has already been resolved")
        logger.info(
            "Proposal {} {} by customer_id={}", proposal_id, decision, actor.id
        )

        accepted = decision == ProposalStatus.ACCEPTED
        effects: list[Effect] = [
            NotificationEffect(
                user_id=resolved.admin_id,
                type=(
                    NotificationType.PROPOSAL_ACCEPTED
                    if accepted
                    else NotificationType.PROPOSAL_REJECTED
                ),
                title="Proposal Accepted" if accepted else "Proposal Rejected",
                message=(
                    f'The customer {decision} your proposal "{resolved.title}" '
                    f'for "{event.name}".'
                ),
                redirect_url=_proposals_url(event.id),
            ),
            ActivityEffect(
                actor_id=actor.id,
                activity_type=(
                    ActivityType.PROPOSAL_ACCEPTED
                    if accepted
                    else ActivityType.PROPOSAL_REJECTED
                ),
                description=f'Proposal "{resolved.title}" {decision}',
                entity_id=proposal_id,
                entity_type="proposal",
                data={"feedback": feedback} if feedback else None,
            ),
        ]
        return WorkflowResult(resolved, effects)

    async def get_proposal(
        self, proposal_id: int, actor: CurrentUser
    ) -> ProposalResponse:
        proposal = await self._load(proposal_id)
        event = await self._load_event(proposal.event_id)
        ensure_allowed(actor, Action.VIEW_PROPOSAL, proposal, parent=event)
        return await self._expire_if_stale(proposal)

    async def list_event_proposals(
        self, event_id: int, actor: CurrentUser
    ) -> list[ProposalResponse]:
        event = await self._load_event(event_id)
        ensure_allowed(actor, Action.VIEW_EVENT, event)
        # Drafts stay private to staff
        proposals = await proposal_crud.list_proposals(
            event_id=event_id, exclude_drafts=not actor.is_staff
        )
        return [await self._expire_if_stale(p) for p in proposals]

    async def list_proposals(self, actor: CurrentUser) -> list[ProposalResponse]:
        if not actor.is_staff:
            raise Forbidden()
        proposals = await proposal_crud.list_proposals()
        return [await self._expire_if_stale(p) for p in proposals]


proposal_manager = ProposalNegotiationEngine()
