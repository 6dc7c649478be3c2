from typing import List, Optional, Tuple

from hubgraph.client import FetchOutcome, PageResult
from hubgraph.models import Event, RateLimitState

START_TS = 1_700_000_000.0


class FakeClock:
    """Wall clock that only moves when slept on"""

    def __init__(self, start: float = START_TS, step: float = 1.0):
        self.now = start
        self.step = step
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> bool:
        self.sleeps.append(seconds)
        self.now += seconds * self.step
        return False


class FakeEventSource:
    """Replays scripted page results, updating the rate limit like the real source"""

    def __init__(self, script: Optional[List[Tuple[PageResult, RateLimitState]]] = None):
        self.script = list(script or [])
        self.calls: List[int] = []
        self.tokens: List[Optional[str]] = []
        self.rate_limit = RateLimitState()

    def fetch_page(self, page: int, token: Optional[str] = None) -> PageResult:
        self.calls.append(page)
        self.tokens.append(token)
        result, rate_limit = self.script.pop(0)
        self.rate_limit = rate_limit
        return result


def make_event(event_id: str, event_type: str = "PushEvent", repo_name: str = "a/b") -> Event:
    return Event(id=event_id, type=event_type, repo_name=repo_name)


def success(*events: Event, rate_limit: Optional[RateLimitState] = None) -> Tuple[PageResult, RateLimitState]:
    rl = rate_limit or RateLimitState(limit=60, remaining=50, reset_at=int(START_TS) + 3600, poll_interval_hint=60)
    return PageResult(outcome=FetchOutcome.SUCCESS, events=list(events)), rl


def outcome(kind: FetchOutcome, rate_limit: Optional[RateLimitState] = None) -> Tuple[PageResult, RateLimitState]:
    return PageResult(outcome=kind), rate_limit or RateLimitState(limit=60, remaining=50)


