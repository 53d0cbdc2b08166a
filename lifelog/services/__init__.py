from __future__ import annotations

from .dashboard import DashboardAggregator, get_dashboard
from .heatmap import DEFAULT_TIME_BRACKETS, HeatmapResult, TimeBracket, bin_activity
from .periods import Granularity, PeriodBucket, bucketize
from .range_mapper import DateRangeState, DragGesture, PointerBus, RangeChange, RangeMapper
from .ranking import AggregatedEntity, ProportionResult, ProportionSlice, proportions, rank_podcasts, rank_top
from .records import ActivityRecord, normalize_record, normalize_records

__all__ = [
    # Records
    "ActivityRecord",
    "normalize_record",
    "normalize_records",
    # Engine
    "AggregatedEntity",
    "rank_top",
    "rank_podcasts",
    "ProportionSlice",
    "ProportionResult",
    "proportions",
    "Granularity",
    "PeriodBucket",
    "bucketize",
    "TimeBracket",
    "DEFAULT_TIME_BRACKETS",
    "HeatmapResult",
    "bin_activity",
    # Range selection
    "RangeMapper",
    "RangeChange",
    "DateRangeState",
    "PointerBus",
    "DragGesture",
    # Facade
    "DashboardAggregator",
    "get_dashboard",
]
