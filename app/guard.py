"""
Authorization guard.

`can_perform` maps (actor, action, entity) to allow/deny without touching the
database. Callers load the entity first and pass it in; ownership is decided
from `CurrentUser.owns`, which already carries every resolved owner id.

State preconditions (e.g. "only while draft") are NOT checked here except
where the capability itself depends on state, such as a customer cancelling
their own event. Those belong to the managers' transition tables.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from app.deps import CurrentUser
from app.errors import Forbidden
from app.models import EventStatus, ProposalStatus
from app.roles import Action, UserRole

UNAUTHORIZED = "Unauthorized access"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)
DENY = Decision(False, UNAUTHORIZED)

Rule = Callable[[CurrentUser, Any, Any, Any], bool]

_CUSTOMER_CANCELLABLE = {EventStatus.PENDING, EventStatus.CONFIRMED}


def _is_customer_owner(actor: CurrentUser, event: Any) -> bool:
    return (
        actor.role == UserRole.CUSTOMER
        and event is not None
        and actor.owns(event.customer_id)
    )


def _staff(actor, entity, parent, target) -> bool:
    return actor.is_staff


def _admin(actor, entity, parent, target) -> bool:
    return actor.is_admin


def _customer(actor, entity, parent, target) -> bool:
    return actor.role == UserRole.CUSTOMER


def _provider(actor, entity, parent, target) -> bool:
    return actor.role == UserRole.PROVIDER


def _view_event(actor, event, parent, target) -> bool:
    return actor.is_staff or _is_customer_owner(actor, event)


def _edit_event(actor, event, parent, target) -> bool:
    return _is_customer_owner(actor, event)


def _transition_event(actor, event, parent, target) -> bool:
    if actor.is_staff:
        return True
    # Customers may only cancel their own event, and only before it starts
    return (
        _is_customer_owner(actor, event)
        and target == EventStatus.CANCELLED
        and event.status in _CUSTOMER_CANCELLABLE
    )


def _edit_proposal(actor, proposal, parent, target) -> bool:
    if actor.is_admin:
        return True
    return (
        actor.role == UserRole.EMPLOYEE
        and proposal is not None
        and proposal.admin_id == actor.id
    )


def _view_proposal(actor, proposal, event, target) -> bool:
    if actor.is_staff:
        return True
    return (
        _is_customer_owner(actor, event)
        and proposal is not None
        and proposal.status != ProposalStatus.DRAFT
    )


def _resolve_proposal(actor, proposal, event, target) -> bool:
    return _is_customer_owner(actor, event)


def _create_booking(actor, event, parent, target) -> bool:
    return _is_customer_owner(actor, event)


def _resolve_booking(actor, booking, parent, target) -> bool:
    return (
        actor.role == UserRole.PROVIDER
        and booking is not None
        and booking.provider_id == actor.id
    )


def _edit_service(actor, service, parent, target) -> bool:
    return (
        actor.role == UserRole.PROVIDER
        and service is not None
        and service.provider_id == actor.id
    )


_RULES: dict[Action, Rule] = {
    Action.CREATE_EVENT: _customer,
    Action.VIEW_EVENT: _view_event,
    Action.EDIT_EVENT: _edit_event,
    Action.TRANSITION_EVENT: _transition_event,
    Action.DELETE_EVENT: _admin,
    Action.CREATE_PROPOSAL: _staff,
    Action.EDIT_PROPOSAL: _edit_proposal,
    Action.SEND_PROPOSAL: _staff,
    Action.VIEW_PROPOSAL: _view_proposal,
    Action.RESOLVE_PROPOSAL: _resolve_proposal,
    Action.CREATE_BOOKING: _create_booking,
    Action.RESOLVE_BOOKING: _resolve_booking,
    Action.ADMINISTER_BOOKING: _staff,
    Action.CREATE_SERVICE: _provider,
    Action.EDIT_SERVICE: _edit_service,
}


def can_perform(
    actor: CurrentUser,
    action: Action,
    entity: Any = None,
    *,
    parent: Any = None,
    target: Any = None,
) -> Decision:
    """
    `entity` is the object acted upon, `parent` its owning event where the
    rule needs one (proposals), `target` the requested status for transitions.
    """
    rule = _RULES.get(action)
    if rule is None or not rule(actor, entity, parent, target):
        return DENY
    return ALLOW


def ensure_allowed(
    actor: CurrentUser,
    action: Action,
    entity: Any = None,
    *,
    parent: Any = None,
    target: Any = None,
) -> None:
    decision = can_perform(actor, action, entity, parent=parent, target=target)
    if not decision:
        raise Forbidden(decision.reason)
