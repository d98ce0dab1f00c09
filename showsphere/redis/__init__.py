from redis.asyncio import Redis
from redis.asyncio.connection import ConnectionPool

from showsphere.core.config import settings

redis_pool = ConnectionPool.from_url(settings.REDIS_URL, decode_responses=True, socket_timeout=5)
redis_client = Redis(connection_pool=redis_pool)


async def close_redis():
    """Close Redis connections on app shutdown."""
    await redis_client.aclose()
    await redis_pool.disconnect()
