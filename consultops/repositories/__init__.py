"""
Repository Layer Package.

Data-access over the Supabase profile tables.  Services depend on the
``ProfileStore`` port; ``ProfileRepository`` is its production
implementation.
"""

from consultops.repositories.base_repository import BaseRepository
from consultops.repositories.document_watcher import DocumentWatcher
from consultops.repositories.profile_repository import ProfileRepository

__all__ = [
    "BaseRepository",
    "DocumentWatcher",
    "ProfileRepository",
]
