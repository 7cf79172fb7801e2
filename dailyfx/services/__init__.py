"""Service layer modules."""

from .background import BackgroundTaskQueue
from .components import RateServices, get_rate_services, init_rate_services
from .ingestion import IngestionMerger, MergeResult, to_per_unit
from .range_resolver import (
    BackfillProgress,
    BackfillReport,
    ChunkInfo,
    GapRange,
    RangeResolver,
    group_gaps,
    split_chunks,
)
from .rate_store import (
    DailyRateRecord,
    MergeMode,
    RatePair,
    RateRecordStore,
    StoreError,
    UpsertResult,
)
from .read_path import ReadPathStrategy
from .scheduler import ensure_sync_state, init_scheduler, run_scheduled_sync, sync_now
from .series import Sampling, SeriesPoint, SeriesShaper, to_series
from .synchronizer import ScheduledSynchronizer, SyncOutcome, SyncResult
