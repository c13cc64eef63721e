"""Key-value-backed journal store and query engine.

Loads every entry on init and writes the whole collection back after
each mutation, so an append is durable before it returns.  Queries
re-filter the full collection each time; the journal is small enough
that no index is kept.
"""

from __future__ import annotations

import json
import logging
from collections import Counter

from pydantic import ValidationError

from sakina.errors import InvalidEntry, StorageFullError
from sakina.images.cache import ImageCache
from sakina.journal.models import (
    HIGH_MOOD_THRESHOLD,
    LOW_MOOD_THRESHOLD,
    JournalStats,
    MoodEntry,
    QuerySpec,
    SortKey,
)
from sakina.storage import KeyValueStore

logger = logging.getLogger(__name__)

JOURNAL_KEY = "journal_entries"

# Alias to avoid shadowing by JournalStore.entries
_list = list


def _sort_key(sort_key: SortKey):
    if sort_key is SortKey.LATEST:
        return lambda e: -e.timestamp
    if sort_key is SortKey.OLDEST:
        return lambda e: e.timestamp
    if sort_key is SortKey.MOOD_HIGH:
        return lambda e: -e.mood_level
    return lambda e: e.mood_level


class JournalStore:
    """Durable collection of MoodEntry records.

    Entries are held in insertion order.  The persisted JSON array is
    newest first, the layout the journal screen has always written.
    """

    def __init__(self, kv: KeyValueStore, images: ImageCache | None = None) -> None:
        self._kv = kv
        # Image payloads share the store and are the first thing to go when it fills
        self._images = images if images is not None else ImageCache(kv)
        self._entries: _list[MoodEntry] = self._load()

    # ── Private helpers ──────────────────────────────────────────

    def _load(self) -> _list[MoodEntry]:
        raw = self._kv.get(JOURNAL_KEY)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Corrupt journal under %r, starting fresh", JOURNAL_KEY)
            return []
        if not isinstance(items, _list):
            logger.warning("Unexpected journal layout under %r, starting fresh", JOURNAL_KEY)
            return []

        entries: _list[MoodEntry] = []
        seen: set[str] = set()
        for item in reversed(items):
            try:
                entry = MoodEntry.model_validate(item)
            except ValidationError:
                logger.warning("Skipping invalid journal record: %r", item)
                continue
            if entry.id in seen:
                logger.warning("Skipping duplicate journal id %s", entry.id)
                continue
            seen.add(entry.id)
            entries.append(entry)
        return entries

    def _save(self) -> None:
        payload = [
            e.model_dump(mode="json", by_alias=True) for e in reversed(self._entries)
        ]
        self._kv.set(JOURNAL_KEY, json.dumps(payload, ensure_ascii=False))

    def _save_evicting_images(self) -> None:
        try:
            self._save()
        except StorageFullError:
            if not self._images.keys():
                raise
            logger.warning("Storage full, evicting cached images to save the journal")
            self._images.clear()
            self._save()

    def _validate(self, entry: MoodEntry) -> MoodEntry:
        # Re-run validation so model_construct() copies cannot slip through
        try:
            checked = MoodEntry.model_validate(entry.model_dump(by_alias=True))
        except ValidationError as exc:
            raise InvalidEntry(str(exc)) from exc
        if self.get(checked.id) is not None:
            raise InvalidEntry(f"Duplicate entry id {checked.id!r}")
        return checked

    # ── Write operations ─────────────────────────────────────────

    def append(self, entry: MoodEntry) -> None:
        """Persist a new entry at the most-recent position.

        Raises InvalidEntry when the entry breaks the journal invariants;
        nothing is written in that case.  When the store is full, cached
        images are evicted and the write is retried once, so
        StorageFullError only surfaces when the journal alone does not fit.
        """
        checked = self._validate(entry)
        if self._entries and checked.timestamp < self._entries[-1].timestamp:
            # Wall clock stepped back; keep timestamps non-decreasing
            checked = checked.model_copy(update={"timestamp": self._entries[-1].timestamp})
        self._entries.append(checked)
        try:
            self._save_evicting_images()
        except Exception:
            self._entries.pop()
            raise
        logger.info("Saved journal entry %s (mood %d)", checked.id, checked.mood_level)

    def remove(self, entry_id: str) -> None:
        """Delete a single entry.

        Raises KeyError if the id does not exist.
        """
        entry = self.get(entry_id)
        if entry is None:
            raise KeyError(entry_id)
        self._entries.remove(entry)
        self._save()

    def clear(self) -> None:
        """Delete every entry."""
        self._entries = []
        self._save()

    # ── Read operations ──────────────────────────────────────────

    def get(self, entry_id: str) -> MoodEntry | None:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def entries(self) -> _list[MoodEntry]:
        """Return all entries in insertion order."""
        return _list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def query(self, spec: QuerySpec | None = None) -> _list[MoodEntry]:
        """Return a filtered, sorted view without touching stored state.

        Filters compose with AND; the trap filter itself is an OR across
        the selected traps.  Ties on the sort key keep insertion order,
        earliest first.
        """
        spec = spec or QuerySpec()
        results = self._entries

        if spec.search_text:
            results = [e for e in results if e.mentions(spec.search_text)]

        if spec.trap_filter:
            results = [e for e in results if e.has_any_trap(spec.trap_filter)]

        results = [e for e in results if spec.mood_filter.matches(e.mood_level)]

        # sorted() is stable, so equal keys stay in insertion order
        return sorted(results, key=_sort_key(spec.sort_key))

    def stats(self) -> JournalStats:
        """Summarize the journal for the profile screen."""
        if not self._entries:
            return JournalStats()
        levels = [e.mood_level for e in self._entries]
        trap_counts = Counter(trap for e in self._entries for trap in e.traps)
        return JournalStats(
            total=len(levels),
            average_mood=round(sum(levels) / len(levels), 2),
            high_count=sum(1 for lvl in levels if lvl >= HIGH_MOOD_THRESHOLD),
            low_count=sum(1 for lvl in levels if lvl <= LOW_MOOD_THRESHOLD),
            mid_count=sum(
                1 for lvl in levels if LOW_MOOD_THRESHOLD < lvl < HIGH_MOOD_THRESHOLD
            ),
            trap_counts=dict(trap_counts),
        )
