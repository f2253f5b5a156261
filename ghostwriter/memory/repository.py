"""Per-channel storage for learned patterns and publication history.

The pipeline never touches files directly. It is handed a ChannelRepository,
so tests can substitute the in-memory version.
"""

import json
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List

from ..models import HistoryEntry
from ..utils.logging import get_logger
from .learned_patterns import LearnedPattern

logger = get_logger(__name__)

PATTERNS_FILENAME = "learned-patterns.json"
HISTORY_FILENAME = "history.json"
PATTERNS_FILE_VERSION = 1
MAX_HISTORY_ENTRIES = 50


class ChannelRepository(ABC):
    """Keyed store of per-channel state."""

    @abstractmethod
    def load_patterns(self, channel_id: str) -> List[LearnedPattern]:
        pass

    @abstractmethod
    def save_patterns(self, channel_id: str, patterns: List[LearnedPattern]) -> None:
        pass

    @abstractmethod
    def load_history(self, channel_id: str) -> List[HistoryEntry]:
        pass

    @abstractmethod
    def append_history(self, channel_id: str, entry: HistoryEntry) -> None:
        """Append an entry, keeping only the most recent MAX_HISTORY_ENTRIES."""
        pass


class InMemoryChannelRepository(ChannelRepository):
    """Dictionary-backed repository for tests and one-off runs."""

    def __init__(self):
        self._patterns: Dict[str, List[Dict]] = {}
        self._history: Dict[str, List[HistoryEntry]] = {}
        self._lock = threading.Lock()
        self.save_count = 0

    def load_patterns(self, channel_id: str) -> List[LearnedPattern]:
        with self._lock:
            stored = self._patterns.get(channel_id, [])
            return [LearnedPattern.from_dict(p) for p in stored]

    def save_patterns(self, channel_id: str, patterns: List[LearnedPattern]) -> None:
        with self._lock:
            self._patterns[channel_id] = [p.to_dict() for p in patterns]
            self.save_count += 1

    def load_history(self, channel_id: str) -> List[HistoryEntry]:
        with self._lock:
            return list(self._history.get(channel_id, []))

    def append_history(self, channel_id: str, entry: HistoryEntry) -> None:
        with self._lock:
            entries = self._history.setdefault(channel_id, [])
            entries.append(entry)
            del entries[:-MAX_HISTORY_ENTRIES]


class JsonFileChannelRepository(ChannelRepository):
    """JSON files under ``<root>/<channel_id>/``.

    - learned-patterns.json: {"version": 1, "patterns": [...]}
    - history.json: list of history entries, newest last

    Missing or unreadable files load as empty.
    """

    def __init__(self, root: str = "channels/"):
        self.root = Path(root)

    def _channel_dir(self, channel_id: str) -> Path:
        return self.root / channel_id

    def _read(self, path: Path):
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read {path}, treating as empty: {e}")
            return None

    def _write(self, path: Path, data) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp_path, path)

    def load_patterns(self, channel_id: str) -> List[LearnedPattern]:
        data = self._read(self._channel_dir(channel_id) / PATTERNS_FILENAME)
        if not isinstance(data, dict):
            return []

        patterns = []
        for item in data.get("patterns", []):
            try:
                patterns.append(LearnedPattern.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed learned pattern for {channel_id}: {e}")
        return patterns

    def save_patterns(self, channel_id: str, patterns: List[LearnedPattern]) -> None:
        data = {
            "version": PATTERNS_FILE_VERSION,
            "patterns": [p.to_dict() for p in patterns],
        }
        self._write(self._channel_dir(channel_id) / PATTERNS_FILENAME, data)

    def load_history(self, channel_id: str) -> List[HistoryEntry]:
        data = self._read(self._channel_dir(channel_id) / HISTORY_FILENAME)
        if not isinstance(data, list):
            return []
        return [HistoryEntry.from_dict(item) for item in data if isinstance(item, dict)]

    def append_history(self, channel_id: str, entry: HistoryEntry) -> None:
        entries = self.load_history(channel_id)
        entries.append(entry)
        entries = entries[-MAX_HISTORY_ENTRIES:]
        self._write(
            self._channel_dir(channel_id) / HISTORY_FILENAME,
            [e.to_dict() for e in entries],
        )
        logger.info(f"History for {channel_id} now has {len(entries)} entries")


def format_history_for_prompt(entries: List[HistoryEntry]) -> str:
    """Prompt block telling the writer not to repeat published pieces."""
    if not entries:
        return ""

    lines = [f'- "{e.headline}" ({e.published_at}): {e.summary}' for e in entries]
    return (
        "DO NOT REPEAT - Previously published articles:\n"
        + "\n".join(lines)
        + "\n\nYou MUST choose a different angle, topic, or focus than the articles "
        "listed above. Do not reuse their headlines, structures, or primary arguments."
    )
