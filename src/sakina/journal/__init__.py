"""Mood journal: entry models, the persisted store with its query engine,
and AI-assisted reframe suggestions.
"""

from sakina.journal.models import (
    JournalStats,
    MoodEntry,
    MoodFilter,
    QuerySpec,
    SortKey,
    ThinkingTrap,
)
from sakina.journal.reframe import suggest_reframe
from sakina.journal.store import JOURNAL_KEY, JournalStore

__all__ = [
    "JOURNAL_KEY",
    "JournalStats",
    "JournalStore",
    "MoodEntry",
    "MoodFilter",
    "QuerySpec",
    "SortKey",
    "ThinkingTrap",
    "suggest_reframe",
]
