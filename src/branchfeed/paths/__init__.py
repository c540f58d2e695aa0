"""Path tracking: per-session navigation state, persistence and URL sync."""

from branchfeed.paths.codec import (
    build_share_url,
    decode_path,
    encode_path,
    path_from_share_url,
)
from branchfeed.paths.errors import (
    PathTerminalError,
    PersistenceWriteFailed,
    StaleTreeError,
    TrackerError,
    TrackerStateError,
)
from branchfeed.paths.metrics import TrackerMetrics
from branchfeed.paths.models import TrackerSnapshot
from branchfeed.paths.registry import TrackerRegistry
from branchfeed.paths.state_machine import PathStateMachine, TrackerState
from branchfeed.paths.tracker import PathTracker


__all__ = [
    "PathStateMachine",
    "PathTerminalError",
    "PathTracker",
    "PersistenceWriteFailed",
    "StaleTreeError",
    "TrackerError",
    "TrackerMetrics",
    "TrackerRegistry",
    "TrackerSnapshot",
    "TrackerState",
    "TrackerStateError",
    "build_share_url",
    "decode_path",
    "encode_path",
    "path_from_share_url",
]
