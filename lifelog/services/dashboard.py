"""
Dashboard Aggregator Service

Holds one in-memory snapshot of normalized records per data domain and
serves the dashboard reports (top-N, timeline, heatmap, KPIs) from it.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from lifelog.services import kpis
from lifelog.services.filters import apply_date_range_filter
from lifelog.services.heatmap import DEFAULT_TIME_BRACKETS, bin_activity
from lifelog.services.periods import Granularity, bucketize
from lifelog.services.ranking import DIMENSIONS, proportions, rank_top
from lifelog.services.records import PROJECTIONS, ActivityRecord, normalize_records
from lifelog.services.stats_cache import StatsCache, cached, get_stats_cache

logger = logging.getLogger(__name__)

# (kpi name, computation, field) shown for each domain on top of the common ones
DOMAIN_KPIS: dict[str, tuple[tuple[str, str, str], ...]] = {
    "music": (
        ("unique_artists", "count_distinct", "artist"),
        ("unique_tracks", "count_distinct", "track"),
        ("top_genre", "mode", "genre"),
    ),
    "podcast": (
        ("unique_podcasts", "count_distinct", "podcast"),
        ("average_completion", "average", "metric"),
        ("top_genre", "mode", "genre"),
    ),
    "reading": (
        ("unique_titles", "count_distinct", "title"),
        ("unique_authors", "count_distinct", "author"),
        ("pages_read", "sum", "page_split"),
    ),
}

# Subject a heatmap filter_key is matched against
HEATMAP_FILTER_SUBJECT = {"music": "artist", "podcast": "podcast", "reading": "title"}


class DashboardAggregator:
    """Service for loading activity snapshots and computing dashboard reports."""

    def __init__(self, cache: StatsCache | None = None) -> None:
        self.cache = cache if cache is not None else StatsCache()
        self._snapshots: dict[str, tuple[ActivityRecord, ...]] = {}
        self._lock = threading.RLock()

    def load(self, domain: str, raw_records: Any) -> int:
        """
        Replace a domain's snapshot with freshly normalized records.

        Args:
            domain: "music", "podcast" or "reading"
            raw_records: Sequence of raw row mappings

        Returns:
            Number of records kept

        Raises:
            ValueError: If the domain is unknown
        """
        if domain not in PROJECTIONS:
            raise ValueError(f"Unknown domain: {domain!r}")

        records = tuple(normalize_records(domain, raw_records))
        with self._lock:
            self._snapshots[domain] = records
            self.cache.invalidate_domain(domain)

        logger.info(f"Loaded {len(records)} {domain} record(s)")
        return len(records)

    def records(self, domain: str) -> list[ActivityRecord]:
        with self._lock:
            return list(self._snapshots.get(domain, ()))

    def _slice(self, domain: str, start_date: Any, end_date: Any) -> list[ActivityRecord]:
        return apply_date_range_filter(self.records(domain), start_date, end_date)

    @cached("bounds")
    def get_date_bounds(self, domain: str) -> dict[str, Any]:
        """Earliest and latest record dates as ISO strings (None when empty)."""
        moments = [r.timestamp for r in self.records(domain) if r.timestamp is not None]
        if not moments:
            return {"domain": domain, "min_date": None, "max_date": None}
        return {
            "domain": domain,
            "min_date": min(moments).date().isoformat(),
            "max_date": max(moments).date().isoformat(),
        }

    @cached("top")
    def get_top(
        self,
        domain: str,
        dimension: str,
        limit: int | None = None,
        start_date: Any = None,
        end_date: Any = None,
    ) -> dict[str, Any]:
        """
        Get the top entities of a dimension.

        Args:
            domain: Data domain
            dimension: One of ranking.DIMENSIONS
            limit: Maximum number of entities (dimension default when None)
            start_date: Optional first day of the slice
            end_date: Optional last day of the slice

        Returns:
            Dict with the ranked items
        """
        entities = rank_top(self._slice(domain, start_date, end_date), dimension, limit)
        strategy = DIMENSIONS.get(dimension)
        return {
            "domain": domain,
            "dimension": dimension,
            "rank_by": strategy.rank_by if strategy else None,
            "items": [entity.to_dict() for entity in entities],
        }

    @cached("timeline")
    def get_timeline(
        self,
        domain: str,
        granularity: str = "monthly",
        field: str = "count",
        start_date: Any = None,
        end_date: Any = None,
    ) -> dict[str, Any]:
        """Gap-free per-period sums of a field."""
        buckets = bucketize(
            self._slice(domain, start_date, end_date),
            start_date,
            end_date,
            granularity,
            field,
        )
        resolved = Granularity.parse(granularity)
        return {
            "domain": domain,
            "granularity": resolved.value if resolved else granularity,
            "field": field,
            "buckets": [bucket.to_dict() for bucket in buckets],
        }

    @cached("proportions")
    def get_proportions(
        self,
        domain: str,
        subject: str,
        metric: str = "count",
        field: str = "count",
        delimiter: str | None = None,
        max_categories: int | None = None,
        start_date: Any = None,
        end_date: Any = None,
    ) -> dict[str, Any]:
        """Share of a metric per subject label, with the tail rolled into "Other"."""
        result = proportions(
            self._slice(domain, start_date, end_date),
            subject,
            metric,
            field,
            delimiter,
            max_categories,
        )
        return {"domain": domain, "subject": subject, "metric": metric, **result.to_dict()}

    @cached("heatmap")
    def get_heatmap(
        self,
        domain: str,
        filter_key: str | None = None,
        value: str = "minutes",
        start_date: Any = None,
        end_date: Any = None,
        midnight_as_unknown: bool = False,
    ) -> dict[str, Any]:
        """Day-of-week x time-bracket activity grid."""
        filter_subject = HEATMAP_FILTER_SUBJECT.get(domain, "artist")
        result = bin_activity(
            self._slice(domain, start_date, end_date),
            DEFAULT_TIME_BRACKETS,
            filter_key,
            filter_subject=filter_subject,
            value=value,
            midnight_as_unknown=midnight_as_unknown,
        )
        return {"domain": domain, "filter_key": filter_key, "value": value, **result.to_dict()}

    @cached("kpis")
    def get_kpis(
        self,
        domain: str,
        start_date: Any = None,
        end_date: Any = None,
    ) -> dict[str, Any]:
        """Headline numbers for a domain slice."""
        records = self._slice(domain, start_date, end_date)
        total_seconds = kpis.compute(records, "sum", "duration")
        summary: dict[str, Any] = {
            "domain": domain,
            "total_records": kpis.compute(records, "count"),
            "total_minutes": kpis.compute(records, "sum", "minutes", decimals=1),
            "total_duration": kpis.format_duration(total_seconds),
            "average_minutes": kpis.compute(records, "average", "minutes", decimals=1),
            "recent_records": kpis.compute(records, "count_recent", timeframe="month"),
        }
        for name, computation, field in DOMAIN_KPIS.get(domain, ()):
            default = "N/A" if computation == "mode" else 0
            summary[name] = kpis.compute(records, computation, field, decimals=1, default=default)
        return summary


_dashboard: DashboardAggregator | None = None


def get_dashboard() -> DashboardAggregator:
    """Get the singleton DashboardAggregator instance."""
    global _dashboard
    if _dashboard is None:
        _dashboard = DashboardAggregator(get_stats_cache())
    return _dashboard
