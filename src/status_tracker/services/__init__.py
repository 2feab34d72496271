from status_tracker.services.history import HistoryRecorder
from status_tracker.services.search import SearchEngine
from status_tracker.services.status_store import StatusStore
from status_tracker.services.tracking_ids import TrackingIdGenerator

__all__ = [
    "HistoryRecorder",
    "SearchEngine",
    "StatusStore",
    "TrackingIdGenerator",
]
