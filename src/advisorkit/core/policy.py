"""
Cache policy for advisorkit - the operations the planning UI calls to decide
between cached, fresh and fallback recommendations.
"""

import logging
import threading
from collections.abc import Iterable, Mapping
from typing import Any, Callable, Optional, Tuple

from advisorkit.core.metrics import compute_metrics
from advisorkit.core.recommendations import (
    generate_fallback_recommendations,
    validate_client_for_ai,
)
from advisorkit.models import RecommendationResult
from advisorkit.utils.cache import RecommendationCache

logger = logging.getLogger(__name__)

Fetcher = Callable[[list, dict], Any]
SnapshotProvider = Callable[[], Tuple[Optional[Iterable[Any]], Optional[Mapping[str, Any]]]]


class CachePolicyController:
    """
    Wraps a RecommendationCache with the lookup / force-refresh / fetch flow.

    ``get_or_fetch`` refuses to cache a response whose snapshot is no longer
    the latest one requested (or, when ``current_snapshot`` is given, no
    longer matches what the caller is showing), so a slow response cannot
    overwrite fresher state.
    """

    def __init__(self, cache: RecommendationCache):
        self.cache = cache
        self._lock = threading.Lock()
        self._latest_fingerprint: Optional[str] = None

    def has_cached(self, goals: Optional[Iterable[Any]], client: Optional[Mapping[str, Any]]) -> bool:
        return self.cache.get(goals, client) is not None

    def force_refresh(self, goals: Optional[Iterable[Any]], client: Optional[Mapping[str, Any]]) -> bool:
        """Invalidate this snapshot's entry. Always returns False: go fetch fresh."""
        if self.cache.invalidate(goals, client):
            logger.info("Force refresh - cache cleared for %s", self.cache.fingerprint(goals, client))
        return False

    def _is_latest(self, fingerprint: str, current_snapshot: Optional[SnapshotProvider]) -> bool:
        with self._lock:
            if self._latest_fingerprint != fingerprint:
                return False
        if current_snapshot is not None:
            goals, client = current_snapshot()
            return self.cache.fingerprint(goals, client) == fingerprint
        return True

    def get_or_fetch(
        self,
        goals: Optional[Iterable[Any]],
        client: Optional[Mapping[str, Any]],
        fetcher: Fetcher,
        force_refresh: bool = False,
        ttl_hours: Optional[float] = None,
        current_snapshot: Optional[SnapshotProvider] = None,
    ) -> RecommendationResult:
        """
        Return cached recommendations, or fetch, cache and return fresh ones.

        Args:
            goals: Goals to plan for
            client: Client snapshot
            fetcher: Calls the AI service with (goals, client); may raise
            force_refresh: Skip and invalidate any cached entry first
            ttl_hours: Lifetime for a newly cached response
            current_snapshot: Returns the caller's latest (goals, client);
                checked before caching the response

        Returns:
            RecommendationResult; fallback advice if the client data is not
            ready for AI analysis or the fetch fails
        """
        goals = list(goals) if isinstance(goals, Iterable) and not isinstance(goals, (str, Mapping)) else []
        client = dict(client) if isinstance(client, Mapping) else {}
        fingerprint, goals_count = self.cache.describe(goals, client)

        with self._lock:
            self._latest_fingerprint = fingerprint

        if force_refresh:
            self.force_refresh(goals, client)
        else:
            cached = self.cache.get_by_fingerprint(fingerprint)
            if cached is not None:
                return RecommendationResult(
                    fingerprint=fingerprint,
                    recommendations=cached.recommendations,
                    from_cache=True,
                )

        errors = validate_client_for_ai(client)
        if errors:
            logger.info("Client data not ready for AI analysis: %s", "; ".join(errors))
            return self._fallback(fingerprint, client, errors)

        try:
            recommendations = fetcher(goals, client)
        except Exception as e:
            logger.error("Recommendation fetch failed for %s: %s", fingerprint, e)
            return self._fallback(fingerprint, client, [f"AI recommendation service failed: {e}"])

        if recommendations is None:
            return self._fallback(fingerprint, client, ["AI recommendation service returned no data"])

        cached = False
        if self._is_latest(fingerprint, current_snapshot):
            cached = self.cache.put_by_fingerprint(
                fingerprint,
                recommendations,
                ttl_hours=ttl_hours,
                goals_count=goals_count,
                client_id=str(client.get("_id") or client.get("id") or ""),
            )
        else:
            logger.info("Discarding out-of-date response for %s; snapshot changed while fetching", fingerprint)

        return RecommendationResult(
            fingerprint=fingerprint,
            recommendations=recommendations,
            cached=cached,
        )

    @staticmethod
    def _fallback(fingerprint: str, client: Mapping[str, Any], errors) -> RecommendationResult:
        return RecommendationResult(
            fingerprint=fingerprint,
            recommendations=generate_fallback_recommendations(compute_metrics(client)),
            is_fallback=True,
            errors=list(errors),
        )
