"""
Recommendation cache for advisorkit - fingerprint-keyed AI responses with TTL
and size-bounded eviction over a pluggable key-value store.
"""

import logging
from datetime import datetime, timedelta, timezone
from collections.abc import Iterable, Mapping
from typing import Any, Callable, List, Optional, Tuple

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from advisorkit.config import Settings
from advisorkit.core.canonicalizer import fingerprint_payload
from advisorkit.db.storage import KeyValueStore, SqliteStore, StorageError
from advisorkit.models import (
    CACHE_SCHEMA_VERSION,
    CacheEntry,
    CachedRecommendations,
    CacheIndexRecord,
    CacheMetadataIndex,
    CacheStats,
)
from advisorkit.utils.hashing import hash_object

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecommendationCache:
    """
    Caches AI recommendations keyed by a fingerprint of goals + client data.

    A metadata index (stored under ``metadata_key``) tracks every entry for
    eviction scans; the entries themselves are the source of truth for
    content. Storage failures never propagate: lookups degrade to a miss and
    writes return False.

    Several processes sharing one store are not coordinated. Two writers
    putting the same fingerprint race with last-write-wins, and concurrent
    index updates can drop each other's records until the next cleanup
    reconciles them.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        max_cache_size: int = 50,
        default_ttl_hours: float = 24,
        cleanup_interval: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = utcnow,
        key_prefix: str = "ai_recommendations_",
        metadata_key: str = "ai_cache_metadata",
    ):
        if max_cache_size < 1:
            raise ValueError("max_cache_size must be at least 1")
        self.storage = storage
        self.max_cache_size = max_cache_size
        self.default_ttl_hours = default_ttl_hours
        self.cleanup_interval = cleanup_interval
        self.clock = clock
        self.key_prefix = key_prefix
        self.metadata_key = metadata_key

    # ═══════════════════════════════════════════════════════════════
    # Helpers
    # ═══════════════════════════════════════════════════════════════

    def _now(self) -> datetime:
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now

    def fingerprint(self, goals: Optional[Iterable[Any]], client: Optional[Mapping[str, Any]]) -> str:
        return self.describe(goals, client)[0]

    def describe(self, goals: Optional[Iterable[Any]], client: Optional[Mapping[str, Any]]) -> Tuple[str, int]:
        """Fingerprint of the snapshot and the number of goals that went into it."""
        payload = fingerprint_payload(goals, client, current_year=self._now().year)
        return hash_object(payload), len(payload["goals"])

    def storage_key(self, fingerprint: str) -> str:
        return self.key_prefix + fingerprint

    def _load_index(self) -> CacheMetadataIndex:
        try:
            raw = self.storage.get(self.metadata_key)
        except StorageError as e:
            logger.warning("Cache index unreadable, starting empty: %s", e)
            raw = None
        if raw:
            try:
                return CacheMetadataIndex.model_validate_json(raw)
            except ValidationError as e:
                logger.warning("Corrupt cache index, rebuilding: %s", e.errors()[:1])
        return CacheMetadataIndex(created_at=self._now())

    def _save_index(self, index: CacheMetadataIndex):
        self.storage.set(self.metadata_key, index.model_dump_json())

    def _delete_key(self, key: str):
        try:
            self.storage.delete(key)
        except StorageError as e:
            logger.warning("Failed to delete cache key %s: %s", key, e)

    def remove(self, fingerprint: str) -> bool:
        """Drop one entry and its index record. Returns True if either existed."""
        key = self.storage_key(fingerprint)
        try:
            existed = self.storage.get(key) is not None
        except StorageError:
            existed = False
        self._delete_key(key)

        index = self._load_index()
        if index.entries.pop(fingerprint, None) is not None:
            existed = True
            try:
                self._save_index(index)
            except StorageError as e:
                logger.warning("Failed to update cache index after removal: %s", e)

        if existed:
            logger.debug("Removed cached recommendations %s", fingerprint)
        return existed

    # ═══════════════════════════════════════════════════════════════
    # Public API
    # ═══════════════════════════════════════════════════════════════

    def get(self, goals: Optional[Iterable[Any]], client: Optional[Mapping[str, Any]]) -> Optional[CachedRecommendations]:
        """
        Look up recommendations for this goals + client snapshot.

        Expired, corrupt and old-schema entries are deleted and reported as a
        miss.
        """
        return self.get_by_fingerprint(self.fingerprint(goals, client))

    def get_by_fingerprint(self, fingerprint: str) -> Optional[CachedRecommendations]:
        try:
            raw = self.storage.get(self.storage_key(fingerprint))
        except StorageError as e:
            logger.warning("Cache read failed, treating as miss: %s", e)
            return None

        if raw is None:
            logger.debug("No cached entry for %s", fingerprint)
            return None

        try:
            entry = CacheEntry.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding corrupt cache entry %s", fingerprint)
            self.remove(fingerprint)
            return None

        if entry.fingerprint != fingerprint:
            logger.warning("Discarding cache entry %s stored under the wrong key", fingerprint)
            self.remove(fingerprint)
            return None

        if entry.schema_version != CACHE_SCHEMA_VERSION:
            logger.info(
                "Discarding cache entry %s with schema %s (current %s)",
                fingerprint, entry.schema_version, CACHE_SCHEMA_VERSION,
            )
            self.remove(fingerprint)
            return None

        now = self._now()
        if not entry.is_valid(now):
            logger.info("Cache entry %s expired at %s, removing", fingerprint, entry.expires_at.isoformat())
            self.remove(fingerprint)
            return None

        age_minutes = int((now - entry.created_at).total_seconds() // 60)
        logger.debug("Cache hit for %s (age %sm)", fingerprint, age_minutes)
        return CachedRecommendations(
            fingerprint=fingerprint,
            recommendations=entry.recommendations,
            created_at=entry.created_at,
            expires_at=entry.expires_at,
            age_minutes=age_minutes,
        )

    def put(
        self,
        goals: Optional[Iterable[Any]],
        client: Optional[Mapping[str, Any]],
        recommendations: Any,
        ttl_hours: Optional[float] = None,
    ) -> bool:
        """
        Store recommendations for this snapshot.

        Args:
            goals: Goals the recommendations were generated for
            client: Client snapshot the recommendations were generated for
            recommendations: JSON-serialisable payload, stored as-is
            ttl_hours: Lifetime; defaults to ``default_ttl_hours``. 0 stores
                an entry that is already expired.

        Returns:
            True if stored; False if the store rejected the write
        """
        fingerprint, goals_count = self.describe(goals, client)
        return self.put_by_fingerprint(
            fingerprint,
            recommendations,
            ttl_hours=ttl_hours,
            goals_count=goals_count,
            client_id=self._client_id(client),
        )

    @staticmethod
    def _client_id(client: Any) -> str:
        if not isinstance(client, Mapping):
            return ""
        value = client.get("_id") or client.get("id")
        return "" if value is None else str(value)

    def put_by_fingerprint(
        self,
        fingerprint: str,
        recommendations: Any,
        ttl_hours: Optional[float] = None,
        goals_count: int = 0,
        client_id: str = "",
    ) -> bool:
        if ttl_hours is None:
            ttl_hours = self.default_ttl_hours
        now = self._now()
        key = self.storage_key(fingerprint)

        try:
            entry = CacheEntry(
                fingerprint=fingerprint,
                recommendations=recommendations,
                created_at=now,
                expires_at=now + timedelta(hours=max(0.0, ttl_hours)),
                goals_count=goals_count,
                client_id=client_id,
            )
            raw = entry.model_dump_json()
        except (ValidationError, PydanticSerializationError) as e:
            logger.warning("Recommendations for %s are not cacheable: %s", fingerprint, e)
            return False
        except OverflowError:
            logger.warning("TTL of %sh for %s is out of range, not caching", ttl_hours, fingerprint)
            return False

        try:
            self.storage.set(key, raw)
        except StorageError as e:
            logger.warning("Failed to cache recommendations for %s: %s", fingerprint, e)
            return False

        index = self._load_index()
        index.entries[fingerprint] = CacheIndexRecord(
            storage_key=key,
            created_at=entry.created_at,
            expires_at=entry.expires_at,
        )
        try:
            self._save_index(index)
        except StorageError as e:
            # An entry the index does not know about could never be evicted.
            logger.warning("Failed to index cache entry %s, discarding it: %s", fingerprint, e)
            self._delete_key(key)
            return False

        logger.info("Cached recommendations %s (ttl %sh, %s goals)", fingerprint, ttl_hours, goals_count)
        self.cleanup()
        return True

    def invalidate(self, goals: Optional[Iterable[Any]], client: Optional[Mapping[str, Any]]) -> bool:
        return self.remove(self.fingerprint(goals, client))

    def clear_all(self) -> int:
        """Remove every indexed entry and the index itself. Returns the number removed."""
        index = self._load_index()
        removed = 0
        for record in index.entries.values():
            self._delete_key(record.storage_key)
            removed += 1
        self._delete_key(self.metadata_key)
        logger.info("🧹 Cleared all cached recommendations: %s entries", removed)
        return removed

    def stats(self) -> CacheStats:
        """Read-only snapshot of the index. Does not evict anything."""
        index = self._load_index()
        now = self._now()
        expired = 0
        total_size = 0

        for record in index.entries.values():
            if now >= record.expires_at:
                expired += 1
            try:
                raw = self.storage.get(record.storage_key)
            except StorageError:
                raw = None
            if raw:
                total_size += len(raw)

        total = len(index.entries)
        return CacheStats(
            total_entries=total,
            expired_entries=expired,
            active_entries=total - expired,
            approx_size_kb=round(total_size / 1024),
            last_cleanup_at=index.last_cleanup_at,
        )

    def cleanup(self, force: bool = False) -> int:
        """
        Two-phase eviction, run at most once per ``cleanup_interval`` unless
        forced.

        First every expired entry is removed. Then, if more than
        ``max_cache_size`` remain, the oldest are removed until the limit is
        met; "oldest" orders by (created_at, fingerprint) so ties resolve the
        same way every time. Index records pointing at missing entries and
        stored entries the index does not know about are dropped along the
        way.

        Returns:
            Number of entries evicted for expiry or capacity
        """
        index = self._load_index()
        now = self._now()

        if not force and index.last_cleanup_at is not None:
            if now - index.last_cleanup_at < self.cleanup_interval:
                return 0

        removed = 0

        for fingerprint, record in list(index.entries.items()):
            try:
                present = self.storage.get(record.storage_key) is not None
            except StorageError:
                present = True
            if not present:
                del index.entries[fingerprint]

        for fingerprint, record in list(index.entries.items()):
            if now >= record.expires_at:
                self._delete_key(record.storage_key)
                del index.entries[fingerprint]
                removed += 1

        overflow = len(index.entries) - self.max_cache_size
        if overflow > 0:
            oldest = sorted(
                index.entries.items(),
                key=lambda item: (item[1].created_at, item[0]),
            )[:overflow]
            for fingerprint, record in oldest:
                self._delete_key(record.storage_key)
                del index.entries[fingerprint]
                removed += 1

        indexed_keys = {record.storage_key for record in index.entries.values()}
        for key in self._stored_keys():
            if key not in indexed_keys and key != self.metadata_key:
                self._delete_key(key)

        index.last_cleanup_at = now
        try:
            self._save_index(index)
        except StorageError as e:
            logger.warning("Failed to save cache index after cleanup: %s", e)

        if removed > 0:
            logger.info("🧹 Cache cleanup completed: %s entries removed", removed)
        return removed

    def _stored_keys(self) -> List[str]:
        try:
            return [k for k in self.storage.keys() if k.startswith(self.key_prefix)]
        except StorageError as e:
            logger.warning("Cannot enumerate cache keys: %s", e)
            return []


def create_cache(settings: Optional[Settings] = None, storage: Optional[KeyValueStore] = None) -> RecommendationCache:
    """Build the application's cache from settings. Call once at startup and pass it around."""
    settings = settings or Settings()
    if storage is None:
        storage = SqliteStore(settings.cache_db_path)
    return RecommendationCache(
        storage,
        max_cache_size=settings.cache_max_size,
        default_ttl_hours=settings.cache_ttl_hours,
        cleanup_interval=timedelta(minutes=settings.cleanup_interval_minutes),
        key_prefix=settings.cache_key_prefix,
        metadata_key=settings.cache_metadata_key,
    )
