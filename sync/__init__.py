"""Cloud-Synchronisation (Supabase: PostgREST + GoTrue über HTTP)."""

from .auth import AuthError, AuthSession, SessionProvider, SessionStore, SupabaseAuth
from .cloud import BackgroundPusher, CloudSync, SyncResult, SyncStatus

__all__ = [
    "AuthError",
    "AuthSession",
    "SessionProvider",
    "SessionStore",
    "SupabaseAuth",
    "BackgroundPusher",
    "CloudSync",
    "SyncResult",
    "SyncStatus",
]
