"""
sigma_core.services — domain cache accessors.

Each service wraps backend reads with read-through caching and backend
writes with invalidation:
  AuthService      — session, permissions, sign in/up/out
  ProfileService   — complete profiles, username checks, auto-save
  WaitlistService  — signup stats, lead lookups, guarded signups
  SubmissionGuard  — cooldown + duplicate screening for public writes
"""

from sigma_core.services.auth_service import AuthService
from sigma_core.services.profile_service import ProfileService
from sigma_core.services.submission_guard import SubmissionGuard
from sigma_core.services.waitlist_service import WaitlistService

__all__ = [
    "AuthService",
    "ProfileService",
    "SubmissionGuard",
    "WaitlistService",
]
