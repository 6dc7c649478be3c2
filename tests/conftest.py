import pytest

from hubgraph.publisher import SnapshotPublisher, set_publisher
from tests.helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def publisher():
    publisher = SnapshotPublisher()
    set_publisher(publisher)
    yield publisher
    set_publisher(SnapshotPublisher())
