"""Audio library catalog, premium gating, and the mocked playback clock.

The catalog is static reference data.  Playback does not decode audio;
PlaybackClock only tracks position so the player can show progress.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from sakina.errors import PremiumRequired


class TrackCategory(StrEnum):
    RELAX = "RELAX"
    CHALLENGE = "CHALLENGE"
    SLEEP = "SLEEP"
    DARE = "DARE"
    SITUATIONAL = "SITUATIONAL"
    BODILY = "BODILY"


class AudioTrack(BaseModel):
    """One catalog entry."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    category: TrackCategory
    duration: str  # "m:ss"
    is_premium: bool
    arabic_label: str
    description: str = ""
    icon: str = ""

    @property
    def duration_seconds(self) -> int:
        return parse_duration(self.duration)


class DailyChallenge(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    icon: str


def _track(
    id: str, title: str, category: TrackCategory, duration: str,
    is_premium: bool, arabic_label: str, icon: str,
) -> AudioTrack:
    return AudioTrack(
        id=id, title=title, category=category, duration=duration,
        is_premium=is_premium, arabic_label=arabic_label, icon=icon,
    )


_R = TrackCategory.RELAX
_C = TrackCategory.CHALLENGE

RELAX_CONTENT: tuple[AudioTrack, ...] = (
    _track("r1", "Deep Breathing", _R, "5:00", False, "تنفس عميق", "Wind"),
    _track("r2", "Deep Release", _R, "19:57", False, "تحرر عميق", "User"),
    _track("r3", "Dissolve Anxiety Video", _R, "12:00", False, "فيديو تبديد القلق", "Sun"),
    _track("r4", "Acceptance", _R, "8:45", True, "التقبل", "Heart"),
    _track("r5", "Meditate", _R, "15:00", True, "تأمل", "Mountain"),
    _track("r6", "Nature Sounds", _R, "30:00", False, "أصوات الطبيعة", "Leaf"),
    _track("r7", "Sleep", _R, "45:00", True, "النوم", "Moon"),
    _track("r8", "Motivate Me", _R, "6:30", False, "حفزني", "Zap"),
    _track("r9", "Gratitude", _R, "10:00", False, "الامتنان", "HeartHandshake"),
)

CHALLENGE_CONTENT: tuple[AudioTrack, ...] = (
    _track("c1", "Health Anxiety", _C, "7:00", False, "قلق الصحة", "Stethoscope"),
    _track("c2", "Social Anxiety", _C, "10:00", True, "القلق الاجتماعي", "Users"),
    _track("c3", "Intrusive Thoughts", _C, "8:30", True, "أفكار دخيلة", "CloudRain"),
    _track("c4", "Feeling Trapped", _C, "9:15", True, "الشعور بالحصار", "Home"),
    _track("c5", "Safety Crutches", _C, "11:00", True, "عكازات الأمان", "Accessibility"),
    _track("c6", "Bodily Sensations", _C, "12:45", True, "أحاسيس جسدية", "Heart"),
    _track("c7", "Overcoming Setbacks", _C, "14:20", True, "تجاوز الانتكاسات", "ArrowUpCircle"),
    _track("c8", "Anticipatory Anxiety", _C, "9:50", True, "القلق الاستباقي", "Clock"),
    _track("c9", "Driving Anxiety", _C, "13:10", True, "قلق القيادة", "Car"),
)

AUDIO_LIBRARY: tuple[AudioTrack, ...] = RELAX_CONTENT + CHALLENGE_CONTENT

DAILY_CHALLENGES: tuple[DailyChallenge, ...] = (
    DailyChallenge(
        id="d1", title="تحدي المواجهة",
        description="قم بفعل شيء واحد يجعلك غير مرتاح اليوم.", icon="🎯",
    ),
    DailyChallenge(
        id="d2", title="تحدي القبول",
        description="لاحظ دقات قلبك اليوم دون إصدار أحكام.", icon="💓",
    ),
)


def get_track(track_id: str) -> AudioTrack:
    """Look up a track by id. Raises KeyError if unknown."""
    for track in AUDIO_LIBRARY:
        if track.id == track_id:
            return track
    raise KeyError(track_id)


def filter_tracks(
    tracks: tuple[AudioTrack, ...] | list[AudioTrack] = AUDIO_LIBRARY,
    *,
    search: str = "",
    category: TrackCategory | None = None,
) -> list[AudioTrack]:
    """Filter the catalog by search text and category tab.

    The English title is matched case-insensitively, the Arabic label
    as-is.  ``category=None`` is the "all" tab.
    """
    needle = search.strip()
    results = []
    for track in tracks:
        if needle and needle not in track.arabic_label and needle.casefold() not in track.title.casefold():
            continue
        if category is not None and track.category != category:
            continue
        results.append(track)
    return results


def ensure_playable(track: AudioTrack, is_premium: bool) -> AudioTrack:
    """Return the track, or raise PremiumRequired if it is locked."""
    if track.is_premium and not is_premium:
        raise PremiumRequired(track.id)
    return track


# ---------------------------------------------------------------------------
# Playback clock
# ---------------------------------------------------------------------------


def parse_duration(text: str) -> int:
    """Parse "m:ss" (or "h:mm:ss") into seconds."""
    total = 0
    for part in text.split(":"):
        total = total * 60 + int(part)
    return total


def format_time(seconds: int) -> str:
    """Format seconds as "m:ss"."""
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins}:{secs:02d}"


class PlaybackClock:
    """Mocked transport: position advances only through tick()."""

    def __init__(self, duration: int) -> None:
        self.duration = duration
        self.position = 0
        self.playing = False

    @classmethod
    def for_track(cls, track: AudioTrack) -> PlaybackClock:
        return cls(track.duration_seconds)

    def toggle(self) -> bool:
        self.playing = not self.playing
        return self.playing

    def tick(self, seconds: int = 1) -> int:
        if not self.playing:
            return self.position
        self.position = min(self.duration, self.position + seconds)
        if self.position >= self.duration:
            self.playing = False
        return self.position

    def seek(self, seconds: int) -> int:
        self.position = max(0, min(self.duration, seconds))
        return self.position

    @property
    def finished(self) -> bool:
        return self.position >= self.duration

    @property
    def progress(self) -> float:
        if self.duration <= 0:
            return 1.0
        return self.position / self.duration

    def __str__(self) -> str:
        return f"{format_time(self.position)} / {format_time(self.duration)}"
