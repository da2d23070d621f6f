"""Translation caching utilities."""

import hashlib
import logging
import threading
import time
import unicodedata
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Optional

import diskcache

from puretrans.core.exceptions import CacheError
from puretrans.core.models import CacheEntry, Language, PurityScore, TranslationMethod, TranslationResult

logger = logging.getLogger(__name__)


def make_key(source_text: str, source_language: Language, target_language: Language) -> str:
    """SHA-256 over the language pair and the NFC, case-folded, whitespace-collapsed text."""
    normalized = " ".join(unicodedata.normalize("NFC", source_text or "").casefold().split())
    key_str = f"{source_language.value}|{target_language.value}|{normalized}"
    return hashlib.sha256(key_str.encode("utf-8")).hexdigest()


def _result_to_record(entry: CacheEntry) -> Dict[str, Any]:
    return {
        "result": entry.value.to_dict(),
        "target_language": entry.target_language.value,
        "created_at": entry.created_at,
    }


def _result_from_record(key: str, record: Dict[str, Any]) -> CacheEntry:
    data = record["result"]
    result = TranslationResult(
        text=data["text"],
        method=TranslationMethod(data["method"]),
        purity=PurityScore(**data["purity"]),
        quality_score=data["quality_score"],
        request_id=data.get("request_id"),
        intent=data.get("intent"),
    )
    now = time.time()
    return CacheEntry(
        key=key,
        value=result,
        target_language=Language(record["target_language"]),
        created_at=record.get("created_at", now),
        last_accessed=now,
        # No fingerprint: persisted entries are re-validated on first hit
        fingerprint=None,
    )


class _Shard:
    def __init__(self, capacity: int):
        self.capacity = capacity
        self.lock = threading.Lock()
        self.entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    def evict_one(self) -> Optional[str]:
        """Drop the least recently used low-quality entry, else the least recently used one."""
        for key, entry in self.entries.items():
            if entry.low_quality:
                del self.entries[key]
                return key
        if self.entries:
            key, _ = self.entries.popitem(last=False)
            return key
        return None


class TranslationCache:
    """
    Sharded in-memory cache of accepted translations.

    Each shard has its own lock and LRU order; there is no global lock. Entries
    remember the validator fingerprint they were accepted under and are
    re-checked lazily when the fingerprint changes. An optional diskcache
    directory provides write-through persistence and a warm start.
    """

    def __init__(
        self,
        validator=None,
        shards: int = 16,
        shard_capacity: int = 256,
        persist_dir: Optional[str] = None,
    ):
        """
        Initialize cache.

        Args:
            validator: PurityValidator used for lazy re-validation (optional)
            shards: Number of independently locked shards
            shard_capacity: Maximum entries per shard
            persist_dir: diskcache directory for write-through persistence
        """
        if shards < 1 or shard_capacity < 1:
            raise CacheError("shards and shard_capacity must be >= 1", cache_type="memory", operation="init")
        self.validator = validator
        self._shards: List[_Shard] = [_Shard(shard_capacity) for _ in range(shards)]
        self._stats_lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "puts": 0, "evictions": 0,
                       "revalidated": 0, "invalidated": 0, "errors": 0}
        self._errors: List[str] = []
        self.disk_cache: Optional[diskcache.Cache] = None
        self.persist_dir = Path(persist_dir) if persist_dir else None

        if self.persist_dir is not None:
            try:
                self.persist_dir.mkdir(parents=True, exist_ok=True)
                self.disk_cache = diskcache.Cache(str(self.persist_dir))
                self._warm_start()
            except (OSError, diskcache.Timeout) as e:
                self._record_error(f"Failed to initialize disk cache: {e}")
                self.disk_cache = None

    make_key = staticmethod(make_key)

    def _shard(self, key: str) -> _Shard:
        return self._shards[int(key[:8], 16) % len(self._shards)]

    def _bump(self, name: str, amount: int = 1) -> None:
        with self._stats_lock:
            self._stats[name] += amount

    def _record_error(self, message: str) -> None:
        with self._stats_lock:
            self._stats["errors"] += 1
            self._errors.append(message)
            del self._errors[:-20]
        logger.warning("%s. Continuing without persistence.", message)

    def _warm_start(self) -> None:
        loaded = 0
        for key in list(self.disk_cache.iterkeys()):
            record = self.disk_cache.get(key)
            if not record:
                continue
            try:
                entry = _result_from_record(key, record)
            except (KeyError, TypeError, ValueError) as e:
                logger.debug("Skipping unreadable cache record %s: %s", key, e)
                continue
            self._insert(entry)
            loaded += 1
        if loaded:
            logger.info("Warm-started cache with %d persisted entries", loaded)

    def _insert(self, entry: CacheEntry) -> None:
        shard = self._shard(entry.key)
        evicted = []
        with shard.lock:
            if entry.key in shard.entries:
                del shard.entries[entry.key]
            while len(shard.entries) >= shard.capacity:
                dropped = shard.evict_one()
                if dropped is None:
                    break
                evicted.append(dropped)
            shard.entries[entry.key] = entry
        if evicted:
            self._bump("evictions", len(evicted))
            self._discard_persisted(evicted)

    def _discard_persisted(self, keys: List[str]) -> None:
        if self.disk_cache is None:
            return
        try:
            for key in keys:
                self.disk_cache.delete(key)
        except diskcache.Timeout as e:
            self._record_error(f"Cache delete failed: {e}")

    def get(self, key: str) -> Optional[TranslationResult]:
        """
        Look up a cached result.

        Returns:
            The cached result, or None on a miss or when re-validation under a
            changed fingerprint rejects the entry (never raises)
        """
        shard = self._shard(key)
        with shard.lock:
            entry = shard.entries.get(key)
            if entry is None:
                stale = False
            else:
                stale = self.validator is not None and entry.fingerprint != self.validator.fingerprint

        if entry is None:
            self._bump("misses")
            return None

        if stale:
            self._bump("revalidated")
            fingerprint = self.validator.fingerprint
            if not self.validator.recheck(entry.value.text, entry.target_language):
                with shard.lock:
                    if shard.entries.get(key) is entry:
                        del shard.entries[key]
                self._discard_persisted([key])
                self._bump("invalidated")
                self._bump("misses")
                logger.info("Dropped cached entry %s after re-validation", key[:12])
                return None
            entry.fingerprint = fingerprint

        with shard.lock:
            if key in shard.entries:
                shard.entries.move_to_end(key)
            entry.last_accessed = time.time()
            entry.hit_count += 1
        self._bump("hits")
        return entry.value

    def put(self, key: str, result: TranslationResult, target_language: Language) -> None:
        """Cache ``result``. Never raises on persistence failures."""
        now = time.time()
        entry = CacheEntry(
            key=key,
            value=result,
            target_language=target_language,
            created_at=now,
            last_accessed=now,
            fingerprint=self.validator.fingerprint if self.validator is not None else None,
        )
        self._insert(entry)
        self._bump("puts")

        if self.disk_cache is not None:
            try:
                self.disk_cache.set(key, _result_to_record(entry))
            except diskcache.Timeout as e:
                self._record_error(f"Cache set failed: {e}")

    def __contains__(self, key: str) -> bool:
        shard = self._shard(key)
        with shard.lock:
            return key in shard.entries

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.entries)
        return total

    def clear(self) -> None:
        """Clear all cache."""
        for shard in self._shards:
            with shard.lock:
                shard.entries.clear()
        if self.disk_cache is not None:
            self.disk_cache.clear()

    def close(self) -> None:
        if self.disk_cache is not None:
            self.disk_cache.close()
            self.disk_cache = None

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._stats_lock:
            stats: Dict[str, Any] = dict(self._stats)
            recent = list(self._errors[-5:])
        lookups = stats["hits"] + stats["misses"]
        stats.update({
            "type": "memory+disk" if self.disk_cache is not None else "memory",
            "size": len(self),
            "shards": len(self._shards),
            "hit_rate": stats["hits"] / lookups if lookups else 0.0,
        })
        if self.persist_dir is not None:
            stats["location"] = str(self.persist_dir)
        if recent:
            stats["recent_errors"] = recent
        return stats
