"""
Repository Layer Package.

Provides data-access abstractions over the Supabase profile store.
All profile reads and writes flow through repositories; services never
query ``db.supabase`` tables directly.

Usage:
    from clubhub.repositories.profile_repository import ProfileRepository
"""

from clubhub.repositories.base_repository import BaseRepository
from clubhub.repositories.profile_repository import ProfileRepository

__all__ = [
    "BaseRepository",
    "ProfileRepository",
]
