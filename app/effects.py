"""
Side-effect outbox.

Managers never write notifications or activity records themselves. They
return the effects a transition produced alongside the new state, and the
router hands them to `EffectDispatcher` once the transition is committed.
Dispatch is best-effort: a failed effect is logged and dropped, it never turns
a successful transition into an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Generic, TypeVar

from loguru import logger

from app.cache import invalidate_unread_cache
from app.crud import activity_crud, notification_crud

T = TypeVar("T")


class NotificationType(StrEnum):
    PROPOSAL_RECEIVED = "proposal_received"
    PROPOSAL_ACCEPTED = "proposal_accepted"
    PROPOSAL_REJECTED = "proposal_rejected"
    BOOKING_RECEIVED = "booking_received"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_DECLINED = "booking_declined"
    BOOKING_CANCELLED = "booking_cancelled"


class ActivityType(StrEnum):
    EVENT_CREATED = "event_created"
    EVENT_UPDATE = "event_update"
    EVENT_DELETED = "event_deleted"
    PROPOSAL_CREATED = "proposal_created"
    PROPOSAL_UPDATED = "proposal_updated"
    PROPOSAL_SENT = "proposal_sent"
    PROPOSAL_ACCEPTED = "proposal_accepted"
    PROPOSAL_REJECTED = "proposal_rejected"
    PROPOSAL_EXPIRED = "proposal_expired"
    BOOKING_CREATED = "booking_created"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_DECLINED = "booking_declined"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_COMPLETED = "booking_completed"


@dataclass(frozen=True)
class NotificationEffect:
    user_id: int
    type: str
    title: str
    message: str
    redirect_url: str | None = None


@dataclass(frozen=True)
class ActivityEffect:
    actor_id: int | None
    activity_type: str
    description: str
    entity_id: int | None = None
    entity_type: str | None = None
    data: dict[str, Any] | None = None


Effect = NotificationEffect | ActivityEffect


@dataclass
class WorkflowResult(Generic[T]):
    entity: T
    effects: list[Effect] = field(default_factory=list)

    def notifications(self) -> list[NotificationEffect]:
        return [e for e in self.effects if isinstance(e, NotificationEffect)]

    def activities(self) -> list[ActivityEffect]:
        return [e for e in self.effects if isinstance(e, ActivityEffect)]


class EffectDispatcher:
    async def dispatch(self, effects: list[Effect]) -> int:
        """Persist every effect independently. Returns how many succeeded."""
        delivered = 0
        for effect in effects:
            try:
                await self._emit(effect)
            except Exception:
                logger.opt(exception=True).error(
                    "Dropping side effect after failure: {!r}", effect
                )
                continue
            delivered += 1
        return delivered

    async def _emit(self, effect: Effect) -> None:
        if isinstance(effect, NotificationEffect):
            await notification_crud.create(
                user_id=effect.user_id,
                type=effect.type,
                title=effect.title,
                message=effect.message,
                redirect_url=effect.redirect_url,
            )
            await invalidate_unread_cache(effect.user_id)
            logger.info(
                "Notification {} sent to user_id={}", effect.type, effect.user_id
            )
        else:
            await activity_crud.create(
                user_id=effect.actor_id,
                activity_type=effect.activity_type,
                description=effect.description,
                entity_id=effect.entity_id,
                entity_type=effect.entity_type,
                data=effect.data,
            )


_dispatcher = EffectDispatcher()


def get_dispatcher() -> EffectDispatcher:
    return _dispatcher
