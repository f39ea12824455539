from dataclasses import dataclass, field, replace
from functools import lru_cache
from urllib.parse import quote, unquote

import httpx
from fastapi import Depends, Header, HTTPException, status

from app import settings
from app.errors import Forbidden
from app.ownership import OwnershipResolver
from app.roles import STAFF_ROLES, UserRole, UserStatus


@dataclass(frozen=True)
class CurrentUser:
    id: int
    username: str
    role: UserRole
    status: UserStatus = UserStatus.ACTIVE
    # Every id this user may appear under as an event's customer_id
    owner_ids: frozenset[int] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def owns(self, customer_id: int) -> bool:
        return customer_id == self.id or customer_id in self.owner_ids


def get_current_user(
    x_user_id: str = Header(...),
    x_username: str = Header(...),
    x_user_role: str = Header(...),
    x_user_status: str = Header(default=UserStatus.ACTIVE),
) -> CurrentUser:
    """
    Reads the headers injected by the gateway after session validation.
    Only active users (and admins) get through.
    """
    try:
        user_id = int(x_user_id)
        role = UserRole(x_user_role)
        user_status = UserStatus(x_user_status)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity from gateway",
        ) from None

    if user_status != UserStatus.ACTIVE and role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Account is {user_status}",
        )

    return CurrentUser(
        id=user_id, username=unquote(x_username), role=role, status=user_status
    )


# ---------------------------------------------------------------------------
# UsersClient: thin async wrapper around users-ms internal API
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def _get_users_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.users_ms_url,
        timeout=httpx.Timeout(5.0),
        follow_redirects=True,
    )


class UsersClient:
    """
    Thin async wrapper around the users-ms internal API.
    Forwards gateway identity headers so users-ms auth deps work normally.
    """

    @property
    def _client(self) -> httpx.AsyncClient:
        return _get_users_http_client()

    def _headers(self, user: CurrentUser) -> dict[str, str]:
        return {
            "X-User-Id": str(user.id),
            "X-Username": quote(user.username),
            "X-User-Role": str(user.role),
            "X-User-Status": str(user.status),
        }

    async def get_customer_profile_id(
        self, user_id: int, caller: CurrentUser
    ) -> int | None:
        """
        Returns the legacy customer profile id linked to `user_id`, or None when
        the user has no profile. Raises httpx.HTTPError on upstream failure.
        """
        resp = await self._client.get(
            f"/users/{user_id}/customer-profile", headers=self._headers(caller)
        )
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return int(resp.json()["id"])

    async def get_profile_user_id(
        self, profile_id: int, caller: CurrentUser
    ) -> int | None:
        """
        Returns the user id a legacy customer profile belongs to, or None when no
        such profile exists. Raises httpx.HTTPError on upstream failure.
        """
        resp = await self._client.get(
            f"/customer-profiles/{profile_id}", headers=self._headers(caller)
        )
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return int(resp.json()["userId"])

    async def get_by_ids(self, user_ids: set[int], caller: CurrentUser) -> list[dict]:
        """Bulk-fetch users by ID for name enrichment. Fails silently."""
        if not user_ids:
            return []
        try:
            params = [("ids", str(uid)) for uid in user_ids]
            resp = await self._client.get(
                "/users/bulk", params=params, headers=self._headers(caller)
            )
            if resp.status_code >= 400 or not resp.content:
                return []
            return resp.json()
        except (httpx.RequestError, ValueError):
            return []


_users_client = UsersClient()


def get_users_client() -> UsersClient:
    return _users_client


# ---------------------------------------------------------------------------
# Actor resolution
# ---------------------------------------------------------------------------


async def get_actor(
    current_user: CurrentUser = Depends(get_current_user),
    users_client: UsersClient = Depends(get_users_client),
) -> CurrentUser:
    """The authenticated user with ownership ids resolved."""
    owner_ids = await OwnershipResolver(users_client).resolve_owner_ids(current_user)
    return replace(current_user, owner_ids=owner_ids)


def require_roles(*allowed: UserRole):
    """
    Factory that returns a dependency restricting an endpoint to some roles.

    Usage:
        @router.get("/activities")
        async def route(actor = Depends(require_roles(*STAFF_ROLES))):
            ...
    """

    async def _dep(actor: CurrentUser = Depends(get_actor)) -> CurrentUser:
        if actor.role not in allowed:
            raise Forbidden()
        return actor

    return _dep


require_staff = require_roles(*STAFF_ROLES)
require_provider = require_roles(UserRole.PROVIDER)
