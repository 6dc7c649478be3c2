from datetime import datetime
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_serializer

# RFC 822 with numeric zone, e.g. "02 Jan 06 15:04 -0700"
RFC822Z_FORMAT = "%d %b %y %H:%M %z"


def format_rfc822z(ts: Optional[datetime]) -> str:
    if ts is None:
        return ""
    return ts.strftime(RFC822Z_FORMAT)


class Event(BaseModel):
    """One activity record from the public events feed"""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str = ""
    repo_name: str = ""
    created_at: Optional[datetime] = None


class RateLimitState(BaseModel):
    """Rate limit details reported by the API response headers"""

    model_config = ConfigDict(frozen=True)

    limit: int = 0
    remaining: int = 0
    reset_at: int = 0
    poll_interval_hint: int = 0

    @property
    def requests_used(self) -> int:
        return max(self.limit - self.remaining, 0)


class GraphNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    group: int
    title: str = ""


class GraphLink(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: str
    target: str
    weight: int = Field(default=1, alias="value")


class GraphSnapshot(BaseModel):
    """
    One complete graph plus rate limit metrics, built once per refresh cycle.
    Serialized with the field names the frontend graph expects.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    nodes: Tuple[GraphNode, ...] = ()
    links: Tuple[GraphLink, ...] = ()
    requests_used: int = Field(default=0, alias="requestsUsed")
    requests_max: int = Field(default=0, alias="maxRequests")
    last_update: Optional[datetime] = Field(default=None, alias="lastUpdate")
    next_refresh_seconds: int = Field(default=0, alias="refreshInterval")

    @field_serializer("last_update")
    def serialize_last_update(self, value: Optional[datetime]) -> str:
        return format_rfc822z(value)

    @classmethod
    def empty(cls) -> "GraphSnapshot":
        return cls()

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
