"""Journal domain models: pure Pydantic v2 data types.

A MoodEntry is one saved thought record: how anxious the user felt, which
thinking traps they spotted, the original thought and the reframe they
settled on.  Entries are immutable once created.
"""

from __future__ import annotations

import time
import uuid
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIN_MOOD = 1
MAX_MOOD = 10
HIGH_MOOD_THRESHOLD = 7
LOW_MOOD_THRESHOLD = 4


class ThinkingTrap(StrEnum):
    """Cognitive-distortion tags, valued by the label shown to the user."""

    FORTUNE_TELLING = "قراءة الغيب"
    CATASTROPHIZING = "التهويل"
    PERSONALIZATION = "الشخصنة"
    BLACK_AND_WHITE = "التفكير الأبيض والأسود"
    MIND_READING = "قراءة الأفكار"
    EMOTIONAL_REASONING = "التفكير العاطفي"


class MoodFilter(StrEnum):
    """Mood band filter for the history view."""

    ALL = "ALL"
    HIGH = "HIGH"
    LOW = "LOW"

    def matches(self, mood_level: int) -> bool:
        if self is MoodFilter.HIGH:
            return mood_level >= HIGH_MOOD_THRESHOLD
        if self is MoodFilter.LOW:
            return mood_level <= LOW_MOOD_THRESHOLD
        return True


class SortKey(StrEnum):
    """History ordering."""

    LATEST = "LATEST"
    OLDEST = "OLDEST"
    MOOD_HIGH = "MOOD_HIGH"
    MOOD_LOW = "MOOD_LOW"

    def next(self) -> SortKey:
        """Return the following option in the sort button's cycle."""
        options = list(SortKey)
        return options[(options.index(self) + 1) % len(options)]


def _now_ms() -> int:
    return int(time.time() * 1000)


class MoodEntry(BaseModel):
    """A saved journal record.

    Serialized with camelCase aliases so stored JSON matches the
    ``journal_entries`` layout.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    timestamp: int
    mood_level: int = Field(alias="moodLevel", ge=MIN_MOOD, le=MAX_MOOD)
    traps: tuple[ThinkingTrap, ...] = ()
    original_thought: str = Field(alias="originalThought")
    reframe: str

    @field_validator("traps", mode="after")
    @classmethod
    def _dedupe_traps(cls, value: tuple[ThinkingTrap, ...]) -> tuple[ThinkingTrap, ...]:
        return tuple(dict.fromkeys(value))

    @field_validator("original_thought", "reframe", mode="after")
    @classmethod
    def _require_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @classmethod
    def create(
        cls,
        mood_level: int,
        original_thought: str,
        reframe: str,
        traps: tuple[ThinkingTrap, ...] | list[ThinkingTrap] = (),
    ) -> MoodEntry:
        """Build a new entry with a fresh id and the current timestamp."""
        return cls(
            id=uuid.uuid4().hex,
            timestamp=_now_ms(),
            mood_level=mood_level,
            traps=tuple(traps),
            original_thought=original_thought,
            reframe=reframe,
        )

    def has_any_trap(self, traps: frozenset[ThinkingTrap]) -> bool:
        return any(trap in traps for trap in self.traps)

    def mentions(self, needle: str) -> bool:
        """Case-insensitive substring match on the thought or the reframe."""
        folded = needle.casefold()
        return folded in self.original_thought.casefold() or folded in self.reframe.casefold()


class QuerySpec(BaseModel):
    """Filter and sort parameters for a journal history view."""

    model_config = ConfigDict(frozen=True)

    search_text: str = ""
    trap_filter: frozenset[ThinkingTrap] = frozenset()
    mood_filter: MoodFilter = MoodFilter.ALL
    sort_key: SortKey = SortKey.LATEST


class JournalStats(BaseModel):
    """Aggregate counters for the profile screen."""

    total: int = 0
    average_mood: float | None = None
    high_count: int = 0
    low_count: int = 0
    mid_count: int = 0
    trap_counts: dict[ThinkingTrap, int] = Field(default_factory=dict)
