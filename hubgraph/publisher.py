"""
Holds the most recent graph snapshot for the HTTP server.
"""

import threading

from loguru import logger

from hubgraph.models import GraphSnapshot


class SnapshotPublisher:
    """Single writer, many readers. Snapshots are immutable so swapping the reference is enough"""

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot = GraphSnapshot.empty()
        self._generation = 0

    def publish(self, snapshot: GraphSnapshot) -> int:
        """
        Install a new snapshot and return its generation.
        Ordering follows publish order, never the snapshot's wall clock timestamp.
        """
        with self._lock:
            self._snapshot = snapshot
            self._generation += 1
            generation = self._generation

        logger.debug(f"Published snapshot #{generation} with {len(snapshot.nodes)} nodes")
        return generation

    def current(self) -> GraphSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation


# Global publisher instance (initialized lazily)
_publisher: SnapshotPublisher | None = None


def get_publisher() -> SnapshotPublisher:
    """Get the global snapshot publisher, creating it if needed"""
    global _publisher
    if _publisher is None:
        _publisher = SnapshotPublisher()
    return _publisher


def set_publisher(publisher: SnapshotPublisher) -> None:
    """Set the global snapshot publisher"""
    global _publisher
    _publisher = publisher
