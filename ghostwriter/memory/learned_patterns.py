"""Learned patterns: cross-run memory of phrases a channel should stop using.

Review agents flag recurring undesirable phrases during a run. After the run
the flagged phrases are merged into the channel's pattern set; patterns seen
recently with enough confidence are added to the forbidden vocabulary of
later drafts.

Merging only ever raises confidence, counts and timestamps, so concurrent
runs of one channel need nothing stronger than a per-channel lock around the
read-modify-write.
"""

import hashlib
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..utils.logging import get_logger

logger = get_logger(__name__)

CONFIDENCE_THRESHOLD = 0.6
DECAY_DAYS = 30


class PatternCategory(Enum):
    """What kind of tell a pattern is."""
    PHRASE = "phrase"
    STRUCTURAL = "structural"
    STYLISTIC = "stylistic"

    @classmethod
    def parse(cls, value) -> "PatternCategory":
        """Parse a category name, defaulting to PHRASE."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.PHRASE


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    # fromisoformat does not accept a trailing Z before Python 3.11
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _clamp_confidence(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


@dataclass(frozen=True)
class DiscoveredPattern:
    """A pattern flagged by a review agent during one run."""
    phrase: str
    category: PatternCategory = PatternCategory.PHRASE
    confidence: float = 0.0
    context: Optional[str] = None

    @property
    def key(self) -> str:
        return self.phrase.strip().lower()


@dataclass
class LearnedPattern:
    """A persisted pattern with its confidence and sighting history."""
    phrase: str
    category: PatternCategory
    confidence: float
    occurrences: int
    first_seen_at: datetime
    last_seen_at: datetime
    last_batch_id: Optional[str] = None

    @property
    def key(self) -> str:
        return self.phrase.strip().lower()

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """Confident enough and seen within the decay window."""
        now = now or utc_now()
        return (
            self.confidence >= CONFIDENCE_THRESHOLD
            and now - self.last_seen_at <= timedelta(days=DECAY_DAYS)
        )

    def to_dict(self) -> Dict:
        data = {
            "phrase": self.phrase,
            "category": self.category.value,
            "confidence": self.confidence,
            "occurrences": self.occurrences,
            "firstSeenAt": self.first_seen_at.isoformat(),
            "lastSeenAt": self.last_seen_at.isoformat(),
        }
        if self.last_batch_id:
            data["lastBatchId"] = self.last_batch_id
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "LearnedPattern":
        first_seen = _parse_timestamp(data["firstSeenAt"])
        return cls(
            phrase=data["phrase"],
            category=PatternCategory.parse(data.get("category", "phrase")),
            confidence=_clamp_confidence(data.get("confidence", 0.0)),
            occurrences=int(data.get("occurrences", 1)),
            first_seen_at=first_seen,
            last_seen_at=_parse_timestamp(data.get("lastSeenAt", data["firstSeenAt"])),
            last_batch_id=data.get("lastBatchId"),
        )


def batch_id_for(discovered: Iterable[DiscoveredPattern]) -> str:
    """Content hash of a discovered set, independent of order and case."""
    items = sorted(
        f"{d.key}|{d.category.value}|{d.confidence:.4f}" for d in discovered
    )
    return hashlib.sha1("\n".join(items).encode("utf-8")).hexdigest()[:16]


def merge_discovered(
    existing: Sequence[LearnedPattern],
    discovered: Sequence[DiscoveredPattern],
    now: Optional[datetime] = None,
    batch_id: Optional[str] = None,
) -> Tuple[List[LearnedPattern], int]:
    """Merge one batch of discovered patterns into an existing set.

    Discovered entries below the confidence threshold are ignored. A match
    (case-insensitive) takes the higher confidence, refreshes last_seen_at,
    and counts one more occurrence unless this batch was already counted
    for it. A new phrase is inserted with one occurrence.

    Args:
        existing: Current patterns. Not modified.
        discovered: Patterns flagged in this batch.
        now: Merge time; defaults to the current UTC time.
        batch_id: Identity of the batch. Defaults to a content hash of
            ``discovered``, so re-merging an identical set is counted once.

    Returns:
        Tuple of (merged patterns, number of newly inserted patterns).
    """
    now = now or utc_now()
    qualifying = [
        d for d in discovered
        if d.phrase.strip() and d.confidence >= CONFIDENCE_THRESHOLD
    ]
    batch_id = batch_id or batch_id_for(qualifying)

    by_key: Dict[str, LearnedPattern] = {}
    for pattern in existing:
        by_key[pattern.key] = replace(pattern)

    new_count = 0
    for d in qualifying:
        confidence = _clamp_confidence(d.confidence)
        match = by_key.get(d.key)
        if match is None:
            by_key[d.key] = LearnedPattern(
                phrase=d.phrase.strip(),
                category=d.category,
                confidence=confidence,
                occurrences=1,
                first_seen_at=now,
                last_seen_at=now,
                last_batch_id=batch_id,
            )
            new_count += 1
            continue

        match.confidence = max(match.confidence, confidence)
        match.last_seen_at = max(match.last_seen_at, now)
        if match.last_batch_id != batch_id:
            match.occurrences += 1
            match.last_batch_id = batch_id

    return list(by_key.values()), new_count


def active_phrases(patterns: Iterable[LearnedPattern], now: Optional[datetime] = None) -> List[str]:
    """Phrases with confidence >= 0.6 seen within the last 30 days."""
    now = now or utc_now()
    return [p.phrase for p in patterns if p.is_active(now)]


class LearnedPatternStore:
    """Per-channel pattern memory on top of a ChannelRepository.

    Usage:
        store = LearnedPatternStore(JsonFileChannelRepository("channels/"))
        forbidden = store.active_phrases("tech-weekly")
        store.merge("tech-weekly", discovered, batch_id=run_id)
    """

    def __init__(self, repository):
        """Initialize the store.

        Args:
            repository: ChannelRepository used for loading and saving.
        """
        self.repository = repository
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, channel_id: str) -> threading.Lock:
        with self._locks_guard:
            if channel_id not in self._locks:
                self._locks[channel_id] = threading.Lock()
            return self._locks[channel_id]

    def load(self, channel_id: str) -> List[LearnedPattern]:
        return self.repository.load_patterns(channel_id)

    def active_phrases(self, channel_id: str, now: Optional[datetime] = None) -> List[str]:
        return active_phrases(self.load(channel_id), now)

    def merge(
        self,
        channel_id: str,
        discovered: Sequence[DiscoveredPattern],
        batch_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Merge a batch into the channel's stored patterns.

        Returns:
            Number of newly learned patterns.
        """
        if not discovered:
            return 0

        with self._lock_for(channel_id):
            existing = self.repository.load_patterns(channel_id)
            merged, new_count = merge_discovered(existing, discovered, now=now, batch_id=batch_id)
            self.repository.save_patterns(channel_id, merged)

        logger.debug(
            f"Merged {len(discovered)} discovered patterns for {channel_id}",
            extra_data={"channel_id": channel_id, "new_count": new_count, "total": len(merged)}
        )
        return new_count
