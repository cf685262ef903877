import redis.asyncio as redis
from typing import Optional
from prompt_manager.config import settings

redis_client = redis.Redis(
    host=settings.REDIS_HOST,
    port=settings.REDIS_PORT,
    db=settings.REDIS_DB,
    username=settings.REDIS_USERNAME,
    password=settings.REDIS_PASSWORD,
    decode_responses=True,
)

async def cache_set(key: str, value: str, ex: Optional[int] = None):
    return await redis_client.set(key, value, ex=ex)

async def cache_get(key: str):
    return await redis_client.get(key)
