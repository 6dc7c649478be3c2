import json
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from hubgraph.models import GraphLink, GraphNode, GraphSnapshot, RateLimitState, format_rfc822z


class TestGraphSnapshot:
    def test_empty_snapshot_json(self):
        data = json.loads(GraphSnapshot.empty().to_json())
        assert data == {
            "nodes": [],
            "links": [],
            "requestsUsed": 0,
            "maxRequests": 0,
            "lastUpdate": "",
            "refreshInterval": 0,
        }

    def test_full_snapshot_json(self):
        snapshot = GraphSnapshot(
            nodes=(GraphNode(id="a/b", group=0), GraphNode(id="1", group=12, title="New commit pushed")),
            links=(GraphLink(source="a/b", target="1"),),
            requests_used=10,
            requests_max=60,
            last_update=datetime(2024, 1, 2, 15, 4, 5, tzinfo=timezone(timedelta(hours=-7))),
            next_refresh_seconds=180,
        )
        data = json.loads(snapshot.to_json())

        assert data["links"] == [{"source": "a/b", "target": "1", "value": 1}]
        assert data["requestsUsed"] == 10
        assert data["maxRequests"] == 60
        assert data["lastUpdate"] == "02 Jan 24 15:04 -0700"
        assert data["refreshInterval"] == 180

    def test_snapshot_is_immutable(self):
        snapshot = GraphSnapshot.empty()
        with pytest.raises(ValidationError):
            snapshot.requests_used = 5


class TestRateLimitState:
    def test_requests_used(self):
        assert RateLimitState(limit=60, remaining=45).requests_used == 15

    def test_requests_used_never_negative(self):
        assert RateLimitState(limit=0, remaining=5).requests_used == 0


def test_format_rfc822z_none():
    assert format_rfc822z(None) == ""


def test_format_rfc822z_utc():
    assert format_rfc822z(datetime(2023, 11, 14, 22, 13, tzinfo=timezone.utc)) == "14 Nov 23 22:13 +0000"
