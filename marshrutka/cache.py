"""
cache.py

Keeps the most recently used schedule models keyed by source (usually the
service URL). A build happens outside the lock and the finished model is
swapped in afterwards, so readers see either the old snapshot or the new
one, never a partial build. A failed build leaves the previous model alone.
"""
import hashlib
import threading
from collections import OrderedDict
from dataclasses import dataclass

from .config import ScheduleConfig
from .logging_utils import get_logger
from .model import build_from_markup
from .rules import DEFAULT_RULES

log = get_logger("cache")


@dataclass(frozen=True)
class CacheEntry:
    model: object
    digest: str
    diagnostics: tuple = ()


def markup_digest(text):
    if isinstance(text, str):
        text = text.encode("utf-8")
    return hashlib.sha256(text).hexdigest()


class ScheduleCache:
    def __init__(self, max_entries=None, rules=DEFAULT_RULES, config=None):
        self.config = config or ScheduleConfig()
        if max_entries is None:
            max_entries = self.config.cache_size
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.rules = rules
        self._entries = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __contains__(self, source_key):
        with self._lock:
            return source_key in self._entries

    def keys(self):
        with self._lock:
            return list(self._entries)

    def get(self, source_key):
        """Cached model for ``source_key`` or None; counts as a use."""
        with self._lock:
            entry = self._entries.get(source_key)
            if entry is None:
                return None
            self._entries.move_to_end(source_key)
            return entry.model

    def last_diagnostics(self, source_key):
        with self._lock:
            entry = self._entries.get(source_key)
            return entry.diagnostics if entry else ()

    def get_or_build(self, source_key, markup):
        """
        Model for ``source_key`` built from ``markup``. Unchanged markup reuses
        the cached model; changed markup builds a new one and replaces it.
        Raises MarkupError or ScheduleError when the build fails.
        """
        digest = markup_digest(markup)
        with self._lock:
            entry = self._entries.get(source_key)
            if entry is not None and entry.digest == digest:
                self._entries.move_to_end(source_key)
                return entry.model

        model, diagnostics = build_from_markup(markup, self.rules, self.config)
        self._store(source_key, CacheEntry(model, digest, tuple(diagnostics)))
        return model

    def refresh(self, source_key, fetch):
        """Re-fetch ``source_key`` with ``fetch(source_key) -> text`` and rebuild if it changed."""
        return self.get_or_build(source_key, fetch(source_key))

    def _store(self, source_key, entry):
        with self._lock:
            replaced = source_key in self._entries
            self._entries[source_key] = entry
            self._entries.move_to_end(source_key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                log.info("Evicted schedule for %s", evicted)
        log.info("%s schedule for %s", "Replaced" if replaced else "Cached", source_key)

    def invalidate(self, source_key):
        with self._lock:
            return self._entries.pop(source_key, None) is not None

    def clear(self):
        with self._lock:
            self._entries.clear()
