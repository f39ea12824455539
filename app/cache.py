import json

from loguru import logger
from redis.asyncio import Redis

from app import settings

_redis: Redis | None = None
UNREAD_TTL = 60  # 1 minute


def get_redis() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis


def _owner_ids_key(user_id: int) -> str:
    return f"owner-ids:{user_id}"


def _unread_key(user_id: int) -> str:
    return f"notifications:unread:{user_id}"


async def get_owner_ids_cache(user_id: int) -> list[int] | None:
    try:
        data = await get_redis().get(_owner_ids_key(user_id))
        return json.loads(data) if data else None
    except Exception:
        logger.opt(exception=True).warning("Redis get failed, skipping owner cache")
        return None


async def set_owner_ids_cache(user_id: int, owner_ids: list[int]) -> None:
    try:
        await get_redis().setex(
            _owner_ids_key(user_id), settings.owner_cache_ttl, json.dumps(owner_ids)
        )
    except Exception:
        logger.opt(exception=True).warning("Redis set failed, skipping owner cache")


async def get_unread_cache(user_id: int) -> int | None:
    try:
        data = await get_redis().get(_unread_key(user_id))
        return int(data) if data is not None else None
    except Exception:
        logger.opt(exception=True).warning("Redis get failed, skipping unread cache")
        return None


async def set_unread_cache(user_id: int, count: int) -> None:
    try:
        await get_redis().setex(_unread_key(user_id), UNREAD_TTL, str(count))
    except Exception:
        logger.opt(exception=True).warning("Redis set failed, skipping unread cache")


async def invalidate_unread_cache(user_id: int) -> None:
    try:
        await get_redis().delete(_unread_key(user_id))
    except Exception:
        logger.opt(exception=True).warning(
            "Redis invalidate failed for unread cache"
        )
