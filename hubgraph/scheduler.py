import math
import threading
import time
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict

from hubgraph.client import FetchOutcome, GitHubEventsSource
from hubgraph.graph import build_graph
from hubgraph.models import Event, GraphSnapshot
from hubgraph.publisher import SnapshotPublisher

# Margin added to the rate limit reset time against clock skew
RATE_LIMIT_MARGIN_SEC = 3
# Safe refresh pace for unauthenticated requests when the API gives no hint
DEFAULT_SECONDS_PER_PAGE = 60


class CycleStatus(str, Enum):
    PUBLISHED = "published"
    NO_NEW_DATA = "no_new_data"
    RATE_LIMITED = "rate_limited"
    TRANSPORT_FAILURE = "transport_failure"
    CANCELLED = "cancelled"


class CycleReport(BaseModel):
    """Result of one attempt to fetch every configured page and publish a graph"""

    model_config = ConfigDict(frozen=True)

    status: CycleStatus
    snapshot: Optional[GraphSnapshot] = None
    pages_fetched: int = 0
    rate_limit_retries: int = 0
    # Total rate limit wait, reported for logging only; the cadence stays anchored on last_update
    waited_seconds: int = 0


class RefreshScheduler:
    """
    Drives repeated fetch-and-build cycles against the events feed.

    Rate limiting restarts the current cycle from page 1 once the limit resets,
    "no new data" aborts the cycle and keeps the published snapshot, transport
    failures are retried with exponential backoff. Every wait is done one
    second at a time so that stop() is honoured promptly.
    """

    def __init__(
        self,
        source: GitHubEventsSource,
        publisher: SnapshotPublisher,
        page_count: int = 3,
        refresh_delay: int = 0,
        token: Optional[str] = None,
        max_rate_limit_retries: Optional[int] = None,
        recompute_interval: bool = False,
        backoff_base: int = 5,
        backoff_max: int = 300,
        clock: Callable[[], float] = time.time,
        sleep: Optional[Callable[[float], object]] = None,
    ):
        if page_count < 1:
            raise ValueError(f"page_count must be >= 1, got {page_count}")

        self.source = source
        self.publisher = publisher
        self.page_count = page_count
        self.refresh_delay = refresh_delay
        self.token = token
        self.max_rate_limit_retries = max_rate_limit_retries
        self.recompute_interval = recompute_interval
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max

        self._clock = clock
        self._stop_event = threading.Event()
        self._sleep = sleep or self._stop_event.wait

        self.refresh_interval: Optional[int] = None
        self._anchor_ts: Optional[float] = None
        self._failures = 0

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        self._stop_event.set()

    def _tick(self) -> bool:
        """Sleep for one second, returning False once stopped"""
        self._sleep(1)
        return not self.stopped

    def _countdown(self, seconds: int, reason: str) -> bool:
        for remaining in range(seconds, 0, -1):
            if self.stopped:
                return False
            if remaining % 30 == 0:
                logger.debug(f"{reason}: {remaining} seconds left")
            if not self._tick():
                return False
        return not self.stopped

    def rate_limit_wait_seconds(self) -> int:
        reset_at = self.source.rate_limit.reset_at
        return max(reset_at - int(self._clock()), 0) + RATE_LIMIT_MARGIN_SEC

    def compute_refresh_interval(self) -> int:
        """Explicit delay if configured, otherwise the API poll interval hint for every page"""
        if self.refresh_delay > 0:
            return self.refresh_delay

        hinted = self.source.rate_limit.poll_interval_hint * self.page_count
        if hinted > 0:
            return hinted

        fallback = DEFAULT_SECONDS_PER_PAGE * self.page_count
        logger.warning(f"No poll interval reported by the API, falling back to {fallback}s")
        return fallback

    def failure_backoff(self, failures: int) -> int:
        return min(self.backoff_base * 2 ** max(failures - 1, 0), self.backoff_max)

    def _fetch_pages(self) -> Tuple[Optional[FetchOutcome], List[Event], int]:
        """Fetch pages 1..page_count, stopping at the first non-success outcome (None when stopped)"""
        events: List[Event] = []
        pages_fetched = 0
        for page in range(1, self.page_count + 1):
            if self.stopped:
                return None, events, pages_fetched

            result = self.source.fetch_page(page, self.token)
            pages_fetched += 1
            if result.outcome is not FetchOutcome.SUCCESS:
                return result.outcome, events, pages_fetched

            events.extend(result.events)
            logger.debug(f"Page {page} analyzed, {len(result.events)} events")

        return FetchOutcome.SUCCESS, events, pages_fetched

    def run_cycle(self, next_refresh_seconds: int) -> CycleReport:
        """
        Fetch every page and publish the resulting graph.

        Args:
            next_refresh_seconds: refresh interval advertised in the snapshot
        """
        retries = 0
        waited = 0
        pages_fetched = 0

        while True:
            outcome, events, fetched = self._fetch_pages()
            pages_fetched += fetched

            if outcome is None:
                return CycleReport(
                    status=CycleStatus.CANCELLED,
                    pages_fetched=pages_fetched,
                    rate_limit_retries=retries,
                    waited_seconds=waited,
                )

            if outcome is FetchOutcome.SUCCESS:
                break

            if outcome is FetchOutcome.NO_NEW_CONTENT:
                logger.info("No new data available!")
                return CycleReport(
                    status=CycleStatus.NO_NEW_DATA,
                    pages_fetched=pages_fetched,
                    rate_limit_retries=retries,
                    waited_seconds=waited,
                )

            if outcome is FetchOutcome.TRANSPORT_FAILURE:
                return CycleReport(
                    status=CycleStatus.TRANSPORT_FAILURE,
                    pages_fetched=pages_fetched,
                    rate_limit_retries=retries,
                    waited_seconds=waited,
                )

            if self.max_rate_limit_retries is not None and retries >= self.max_rate_limit_retries:
                logger.error(f"Still rate limited after {retries} retries, giving up on this cycle")
                return CycleReport(
                    status=CycleStatus.RATE_LIMITED,
                    pages_fetched=pages_fetched,
                    rate_limit_retries=retries,
                    waited_seconds=waited,
                )

            wait = self.rate_limit_wait_seconds()
            logger.info(f"Rate limit reached. Will reset in {wait} seconds")
            if not self._countdown(wait, "Rate limit reset"):
                return CycleReport(
                    status=CycleStatus.CANCELLED,
                    pages_fetched=pages_fetched,
                    rate_limit_retries=retries,
                    waited_seconds=waited,
                )
            retries += 1
            waited += wait

        graph = build_graph(events)
        rate_limit = self.source.rate_limit
        snapshot = GraphSnapshot(
            nodes=tuple(graph.nodes),
            links=tuple(graph.links),
            requests_used=rate_limit.requests_used,
            requests_max=rate_limit.limit,
            last_update=datetime.fromtimestamp(self._clock()).astimezone(),
            next_refresh_seconds=next_refresh_seconds,
        )
        self.publisher.publish(snapshot)

        logger.info(
            f"Graph updated with {len(events)} events from {self.page_count} pages "
            f"(RL: {rate_limit.requests_used}/{rate_limit.limit} req/hr used)"
        )
        return CycleReport(
            status=CycleStatus.PUBLISHED,
            snapshot=snapshot,
            pages_fetched=pages_fetched,
            rate_limit_retries=retries,
            waited_seconds=waited,
        )

    def _run_guarded(self, next_refresh_seconds: int) -> CycleReport:
        try:
            report = self.run_cycle(next_refresh_seconds)
        except Exception as e:
            logger.exception(f"Error in refresh cycle: {e}")
            report = CycleReport(status=CycleStatus.TRANSPORT_FAILURE)

        if report.snapshot is not None and report.snapshot.last_update is not None:
            self._anchor_ts = report.snapshot.last_update.timestamp()
        elif report.status is not CycleStatus.CANCELLED:
            self._anchor_ts = self._clock()
        return report

    def wait_for_next_refresh(self) -> bool:
        """
        Sleep until the last update plus the refresh interval, recomputing the
        remaining time against the clock every second. Returns False once stopped.
        """
        if self._anchor_ts is None or self.refresh_interval is None:
            return not self.stopped

        next_refresh_ts = self._anchor_ts + self.refresh_interval
        announced = False
        while not self.stopped:
            seconds_to_wait = math.ceil(next_refresh_ts - self._clock())
            if seconds_to_wait <= 0:
                return True
            if not announced:
                rate_limit = self.source.rate_limit
                logger.info(
                    f"Next refresh in {seconds_to_wait}s "
                    f"(RL: {rate_limit.requests_used}/{rate_limit.limit} req/hr used)"
                )
                announced = True
            self._tick()
        return False

    def _back_off(self) -> bool:
        self._failures += 1
        delay = self.failure_backoff(self._failures)
        logger.warning(f"Refresh failed {self._failures} time(s) in a row, retrying in {delay}s")
        return self._countdown(delay, "Retry after failure")

    def run(self) -> None:
        """Run refresh cycles until stop() is called"""
        logger.info(f"Starting refresh scheduler for {self.page_count} pages")

        # The first cycle is needed to learn the rate limit and poll interval
        report = self._run_guarded(next_refresh_seconds=-1)
        self.refresh_interval = self.compute_refresh_interval()
        logger.info(f"Refresh interval = {self.refresh_interval}s")

        while not self.stopped:
            if report.status is CycleStatus.TRANSPORT_FAILURE and not self._back_off():
                break

            report = self._run_guarded(self.refresh_interval)
            if report.status is CycleStatus.CANCELLED:
                break
            if report.status is CycleStatus.TRANSPORT_FAILURE:
                continue

            self._failures = 0
            if report.rate_limit_retries:
                logger.info(f"Cycle waited {report.waited_seconds}s for the rate limit to reset")
            if self.recompute_interval:
                self.refresh_interval = self.compute_refresh_interval()
            if not self.wait_for_next_refresh():
                break

        logger.info("Refresh scheduler stopped")
