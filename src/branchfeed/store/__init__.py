"""SQLite store for stories, the social graph, and reader progress.

This module provides persistent storage for:
- Stories and their branch nodes
- Profiles, follow edges, likes and bookmarks
- Per-reader progress through each story
"""

from branchfeed.store.errors import (
    ConnectionError,
    MigrationError,
    StoreError,
    StoryNotFoundError,
)
from branchfeed.store.memory import MemoryProgressStore
from branchfeed.store.metrics import StoreMetrics
from branchfeed.store.models import Profile, Progress
from branchfeed.store.protocols import ProgressStore
from branchfeed.store.store import BranchStore


__all__ = [
    "BranchStore",
    "ConnectionError",
    "MemoryProgressStore",
    "MigrationError",
    "Profile",
    "Progress",
    "ProgressStore",
    "StoreError",
    "StoreMetrics",
    "StoryNotFoundError",
]
