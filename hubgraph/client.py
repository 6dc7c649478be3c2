import json
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

import requests
from dateutil import parser
from github import Auth, Github
from loguru import logger
from pydantic import BaseModel, ConfigDict

from hubgraph.models import Event, RateLimitState

EVENTS_URL = "/events"
DEFAULT_TIMEOUT_SEC = 30

LIMIT_HEADER = "x-ratelimit-limit"
REMAINING_HEADER = "x-ratelimit-remaining"
RESET_HEADER = "x-ratelimit-reset"
POLL_INTERVAL_HEADER = "x-poll-interval"
ETAG_HEADER = "etag"


class FetchOutcome(str, Enum):
    SUCCESS = "success"
    NO_NEW_CONTENT = "no_new_content"
    RATE_LIMITED = "rate_limited"
    TRANSPORT_FAILURE = "transport_failure"


class PageResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcome: FetchOutcome
    events: List[Event] = []


def _as_text(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, (str, int, float)):
        return str(value)
    return ""


def _parse_created_at(value: Any):
    if not isinstance(value, str) or not value:
        return None
    try:
        return parser.isoparse(value)
    except ValueError:
        return None


def parse_events(body: str | bytes | None) -> List[Event]:
    """Parse an events page permissively: malformed items or fields never fail the page"""
    if not body:
        return []

    try:
        payload = json.loads(body)
    except ValueError as e:
        logger.warning(f"Events page is not valid JSON, ignoring it: {e}")
        return []

    if not isinstance(payload, list):
        logger.warning(f"Events page is a {type(payload).__name__}, expected a list, ignoring it")
        return []

    events: List[Event] = []
    for raw in payload:
        if not isinstance(raw, dict):
            continue
        repo = raw.get("repo")
        if not isinstance(repo, dict):
            repo = {}
        events.append(
            Event(
                id=_as_text(raw.get("id")),
                type=_as_text(raw.get("type")),
                repo_name=_as_text(repo.get("name")),
                created_at=_parse_created_at(raw.get("created_at")),
            )
        )

    return events


class GitHubEventsSource:
    """
    Fetches pages of the public events feed and tracks the rate limit
    details reported with every response.
    """

    def __init__(self, token: str = "", timeout: int = DEFAULT_TIMEOUT_SEC):
        self.token = token
        self.timeout = timeout
        self._transports: Dict[str, Github] = {}
        self._rate_limit = RateLimitState()
        # Last ETag per page, sent back as If-None-Match so unchanged pages answer 304
        self._etags: Dict[int, str] = {}

    @property
    def rate_limit(self) -> RateLimitState:
        return self._rate_limit

    def _github_for(self, token: str) -> Github:
        """Return the cached PyGithub client for a token, empty token meaning unauthenticated"""
        github = self._transports.get(token)
        if github is None:
            # retry=None: rate limiting is handled by the scheduler, not slept through here
            if token:
                github = Github(auth=Auth.Token(token), timeout=self.timeout, retry=None)
            else:
                logger.warning("No GitHub token configured, using unauthenticated requests (rate limited)")
                github = Github(timeout=self.timeout, retry=None)
            self._transports[token] = github
        return github

    def _parse_header(self, headers: Mapping[str, Any], field_name: str, last_known: int) -> int:
        raw = headers.get(field_name)
        if raw is None or raw == "":
            return 0
        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.warning(f'Unable to parse header "{field_name}" content {raw!r}, keeping {last_known}')
            return last_known

    def _update_rate_limit(self, headers: Mapping[str, Any]) -> RateLimitState:
        headers = {str(k).lower(): v for k, v in (headers or {}).items()}
        previous = self._rate_limit

        limit = self._parse_header(headers, LIMIT_HEADER, previous.limit)
        remaining = self._parse_header(headers, REMAINING_HEADER, previous.remaining)
        if limit > 0:
            remaining = min(remaining, limit)

        # Swapped as a whole so readers never see a half-updated state
        self._rate_limit = RateLimitState(
            limit=limit,
            remaining=remaining,
            reset_at=self._parse_header(headers, RESET_HEADER, previous.reset_at),
            poll_interval_hint=self._parse_header(headers, POLL_INTERVAL_HEADER, previous.poll_interval_hint),
        )
        return self._rate_limit

    def fetch_page(self, page: int, token: Optional[str] = None) -> PageResult:
        """
        Request one page of public events.

        Args:
            page: 1-based page number
            token: bearer token overriding the configured one, empty for unauthenticated
        """
        if page < 1:
            raise ValueError(f"Page number must be >= 1, got {page}")

        github = self._github_for(self.token if token is None else token)

        request_headers = {}
        if page in self._etags:
            request_headers["If-None-Match"] = self._etags[page]

        try:
            status, headers, body = github.requester.requestJson(
                "GET", EVENTS_URL, parameters={"page": page}, headers=request_headers
            )
        except requests.RequestException as e:
            logger.error(f"Error in requesting page {page} from API: {e}")
            return PageResult(outcome=FetchOutcome.TRANSPORT_FAILURE)

        rate_limit = self._update_rate_limit(headers)
        logger.debug(
            f"Page {page}: status {status}, {rate_limit.requests_used}/{rate_limit.limit} requests used, "
            f"reset at {rate_limit.reset_at}, poll interval {rate_limit.poll_interval_hint}s"
        )

        if status == 304:
            return PageResult(outcome=FetchOutcome.NO_NEW_CONTENT)
        if status in (403, 429):
            return PageResult(outcome=FetchOutcome.RATE_LIMITED)
        if not 200 <= status < 300:
            logger.error(f"Unexpected status {status} for page {page}")
            return PageResult(outcome=FetchOutcome.TRANSPORT_FAILURE)

        etag = {str(k).lower(): v for k, v in (headers or {}).items()}.get(ETAG_HEADER)
        if etag:
            self._etags[page] = etag

        return PageResult(outcome=FetchOutcome.SUCCESS, events=parse_events(body))
