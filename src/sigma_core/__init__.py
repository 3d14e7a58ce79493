"""
sigma_core — caching, session lifecycle and submission deduplication for Sigma.

Sits between the dashboard/business logic and the Supabase backend:
read-through caching with per-tier TTLs, write-invalidate on mutations,
an activity-driven session timeout and a cooldown guard for public writes.

Usage:
    from sigma_core.app import create_core
    from sigma_core.backend import SupabaseBackend
    from sigma_core.db import get_supabase_client

    client = await get_supabase_client(remember_me=True)
    core = create_core(backend=SupabaseBackend(client))
    await core.start()

    profile = await core.profiles.get_complete_profile(user_id)
    result = await core.waitlist.add_to_waitlist("someone@example.com")
"""

__version__ = "0.1.0"
