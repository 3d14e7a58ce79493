"""
db.py — Async Supabase client singleton.

Usage:
    from sigma_core.db import get_supabase_client

    supabase = await get_supabase_client()                  # session kept in memory
    supabase = await get_supabase_client(remember_me=True)  # session persisted to disk

The session store is chosen the first time the client is built and is not
re-checked afterwards; call reset_supabase_client() (e.g. after sign-out)
before building a client with a different preference.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog
from supabase import AsyncClient, AsyncClientOptions, acreate_client

from sigma_core.config import settings
from sigma_core.storage import select_storage

logger = structlog.get_logger(__name__)

_supabase_lock = asyncio.Lock()
_supabase_client: Optional[AsyncClient] = None


async def get_supabase_client(*, remember_me: bool = False) -> AsyncClient:
    """
    Return the process-wide async Supabase client.

    Args:
        remember_me: If True, auth sessions are written to
                     settings.session_storage_path; otherwise kept in memory.

    Returns:
        supabase.AsyncClient instance.
    """
    global _supabase_client

    async with _supabase_lock:
        if _supabase_client is None:
            if not settings.supabase_anon_key:
                raise RuntimeError("SUPABASE_ANON_KEY is not set. Set it in .env.")
            storage = select_storage(remember_me, settings.session_storage_path)
            _supabase_client = await acreate_client(
                settings.supabase_url,
                settings.supabase_anon_key,
                options=AsyncClientOptions(storage=storage),
            )
            logger.info("supabase_client_created", remember_me=remember_me)
        return _supabase_client


async def reset_supabase_client() -> None:
    """Drop the singleton client (useful in tests and after sign-out)."""
    global _supabase_client
    async with _supabase_lock:
        _supabase_client = None
