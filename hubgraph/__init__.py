"""
HubGraph

Polls the latest public GitHub events and serves them as a live node/link graph.
"""

__version__ = "0.1.0"

from hubgraph.client import GitHubEventsSource
from hubgraph.publisher import SnapshotPublisher
from hubgraph.scheduler import RefreshScheduler

__all__ = [
    "GitHubEventsSource",
    "SnapshotPublisher",
    "RefreshScheduler",
]
