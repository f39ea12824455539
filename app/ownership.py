"""
Customer ownership resolution.

Events created before the users service was split out reference a customer
*profile* id instead of the authenticated user id. Ownership checks therefore
compare an event's customer_id against every id the actor may appear under,
and this module is the only place that knows how to compute that set.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from loguru import logger

from app.cache import get_owner_ids_cache, set_owner_ids_cache
from app.roles import UserRole

if TYPE_CHECKING:
    from app.deps import CurrentUser, UsersClient


class OwnershipResolver:
    def __init__(self, users_client: UsersClient) -> None:
        self.users_client = users_client

    async def resolve_owner_ids(self, user: CurrentUser) -> frozenset[int]:
        """Direct user id plus the linked legacy profile id, if any."""
        if user.role != UserRole.CUSTOMER:
            return frozenset({user.id})

        cached = await get_owner_ids_cache(user.id)
        if cached is not None:
            logger.debug("Cache hit for owner ids: user_id={}", user.id)
            return frozenset(cached)

        try:
            profile_id = await self.users_client.get_customer_profile_id(user.id, user)
        except (httpx.HTTPError, ValueError):
            # Degrade to the direct id and do not cache the partial answer
            logger.opt(exception=True).warning(
                "Customer profile lookup failed for user_id={}", user.id
            )
            return frozenset({user.id})

        owner_ids = {user.id}
        if profile_id is not None:
            owner_ids.add(profile_id)
        await set_owner_ids_cache(user.id, sorted(owner_ids))
        return frozenset(owner_ids)

    async def resolve_user_id(self, customer_id: int, caller: CurrentUser) -> int:
        """
        The user id behind an event's customer_id. Legacy events carry a profile
        id there, which is mapped back to the profile's user; anything else is
        already a user id.
        """
        try:
            user_id = await self.users_client.get_profile_user_id(customer_id, caller)
        except (httpx.HTTPError, KeyError, ValueError):
            logger.opt(exception=True).warning(
                "Profile owner lookup failed for customer_id={}", customer_id
            )
            return customer_id
        if user_id is None:
            return customer_id
        if user_id != customer_id:
            logger.debug(
                "Customer profile {} belongs to user_id={}", customer_id, user_id
            )
        return user_id
