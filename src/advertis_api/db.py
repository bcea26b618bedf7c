from __future__ import annotations

import asyncio

import asyncpg

from advertis_kernel.db import ensure_schema

_pool: asyncpg.Pool | None = None
_pool_lock = asyncio.Lock()


async def get_pool(dsn: str, *, min_size: int = 1, max_size: int = 10) -> asyncpg.Pool:
    global _pool
    if _pool is not None:
        return _pool
    async with _pool_lock:
        if _pool is None:
            _pool = await asyncpg.create_pool(dsn=dsn, min_size=min_size, max_size=max_size)
        return _pool


async def close_pool() -> None:
    global _pool
    if _pool is None:
        return
    pool, _pool = _pool, None
    await pool.close()


async def apply_schema(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as conn:
        await ensure_schema(conn)
