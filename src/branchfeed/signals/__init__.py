"""Signal sources feeding the ranking engine."""

from branchfeed.signals.errors import SignalQueryError
from branchfeed.signals.models import FollowEdge, ProfileSnapshot, StorySnapshot
from branchfeed.signals.protocols import SignalSource
from branchfeed.signals.rest import RestSignalSource
from branchfeed.signals.sqlite import StoreSignalSource


__all__ = [
    "FollowEdge",
    "ProfileSnapshot",
    "RestSignalSource",
    "SignalQueryError",
    "SignalSource",
    "StorySnapshot",
    "StoreSignalSource",
]
