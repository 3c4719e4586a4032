"""
Market Data Tool: Resilient Fetch Client

Retrieves JSON from the upstream market-data API despite rate limiting,
transient errors and host outages. Two mirror hosts are tried in order;
each gets max_retries + 1 attempts with a rotating User-Agent.

Retry control flow is an explicit state machine:

    trying(host, attempt) --2xx + JSON--------------------> succeeded
    trying(host, attempt) --failure, attempts left---------> trying(host, attempt + 1)
    trying(host, attempt) --failure, next host exists------> trying(host + 1, 0)
    trying(host, attempt) --failure, no host left----------> exhausted

429 responses back off linearly (delay * (attempt + 1)); every other
failure waits a fixed delay. fetch_json never raises: all failures come
back as FetchResult values.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, NamedTuple, Optional, Sequence
from urllib.parse import quote

import httpx

from folio.config.constants import (
    ACCEPT_HEADER,
    ACCEPT_LANGUAGE_HEADER,
    ALL_ENDPOINTS_FAILED,
    CRUMB_FAILED,
    CRUMB_PAGE_URL,
    CRUMB_TTL_SECONDS,
    RATE_LIMIT_STATUS,
    REQUEST_TIMEOUT_SECONDS,
    UPSTREAM_HOSTS,
    USER_AGENTS,
)
from folio.exceptions import UpstreamResponseError
from folio.schemas.market_output import FetchOptions, FetchResult, FetchState

logger = logging.getLogger(__name__)

_CRUMB_PATTERN = re.compile(r'"CrumbStore":\{"crumb":"([^"]+)"\}')

# Attempt outcomes fed to the state machine
SUCCESS = "success"
RATE_LIMITED = "rate_limited"
FAILED = "failed"


# ---------------------------------------------------------------------------
# State Machine
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RetryState:
    phase: FetchState
    host_index: int = 0
    attempt: int = 0


class _Outcome(NamedTuple):
    kind: str
    status: int = 0
    data: Any = None


def advance(
    state: RetryState,
    outcome: str,
    options: FetchOptions,
    host_count: int,
) -> tuple[RetryState, int]:
    """
    Compute the next retry state and the delay (ms) to wait before it.

    Args:
        state: current state; must be in the TRYING phase.
        outcome: SUCCESS, RATE_LIMITED or FAILED.
        options: retry policy.
        host_count: number of candidate hosts.

    Returns:
        (next_state, delay_ms). The delay is 0 when moving to a new host or
        leaving the TRYING phase.
    """
    if state.phase is not FetchState.TRYING:
        raise ValueError(f"Cannot advance from terminal state {state.phase.value}")

    if outcome == SUCCESS:
        return RetryState(FetchState.SUCCEEDED, state.host_index, state.attempt), 0

    if state.attempt < options.max_retries:
        if outcome == RATE_LIMITED:
            delay = options.retry_delay_ms * (state.attempt + 1)
        else:
            delay = options.retry_delay_ms
        return RetryState(FetchState.TRYING, state.host_index, state.attempt + 1), delay

    if state.host_index + 1 < host_count:
        return RetryState(FetchState.TRYING, state.host_index + 1, 0), 0

    return RetryState(FetchState.EXHAUSTED, state.host_index, state.attempt), 0


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CrumbToken:
    token: str
    cookie: str
    expires_at: float


class ResilientFetchClient:
    """Fetches upstream JSON with host fallback, retries and UA rotation.

    Thread-safe: one client may be shared by parallel per-ticker fetches.
    """

    def __init__(
        self,
        hosts: Sequence[str] = UPSTREAM_HOSTS,
        user_agents: Sequence[str] = USER_AGENTS,
        http_client: Optional[httpx.Client] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        crumb_url: str = CRUMB_PAGE_URL,
    ) -> None:
        if not hosts:
            raise ValueError("At least one upstream host is required")
        if not user_agents:
            raise ValueError("At least one User-Agent string is required")
        self._hosts = tuple(h.rstrip("/") for h in hosts)
        self._user_agents = tuple(user_agents)
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._timeout = timeout
        self._sleep = sleep
        self._clock = clock
        self._crumb_url = crumb_url
        self._crumb: Optional[CrumbToken] = None
        self._crumb_lock = threading.Lock()

    @property
    def hosts(self) -> tuple[str, ...]:
        return self._hosts

    def user_agent_for(self, attempt: int) -> str:
        return self._user_agents[attempt % len(self._user_agents)]

    # -- public API --------------------------------------------------------

    def fetch_json(self, path: str, options: Optional[FetchOptions] = None) -> FetchResult:
        """
        GET `path` from the first host that answers with 2xx JSON.

        Args:
            path: relative API path including the query string.
            options: retry policy; defaults to FetchOptions().

        Returns:
            FetchResult with data on success, or data=None, an error string
            and status 0 once every host is exhausted.
        """
        opts = options or FetchOptions()

        crumb: Optional[CrumbToken] = None
        if opts.requires_crumb:
            crumb = self._get_crumb()
            if crumb is None:
                logger.error("[FetchClient] Failed to obtain crumb token")
                return FetchResult.failure(CRUMB_FAILED)

        state = RetryState(FetchState.TRYING)
        outcome = _Outcome(FAILED)
        attempts = 0

        while state.phase is FetchState.TRYING:
            host = self._hosts[state.host_index]
            outcome = self._attempt(host, path, state.attempt, opts, crumb)
            attempts += 1
            state, delay_ms = advance(state, outcome.kind, opts, len(self._hosts))
            if delay_ms > 0:
                self._sleep(delay_ms / 1000.0)

        if state.phase is FetchState.SUCCEEDED:
            logger.debug(f"[FetchClient] {path} succeeded after {attempts} attempt(s)")
            return FetchResult.success(outcome.data, outcome.status, attempts)

        logger.error(f"[FetchClient] All endpoints failed for {path} after {attempts} attempts")
        return FetchResult.failure(ALL_ENDPOINTS_FAILED, attempts=attempts)

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "ResilientFetchClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- internals ---------------------------------------------------------

    def _build_headers(self, attempt: int, options: FetchOptions) -> dict[str, str]:
        ttl = options.cache_ttl_seconds
        return {
            "User-Agent": self.user_agent_for(attempt),
            "Accept": ACCEPT_HEADER,
            "Accept-Language": ACCEPT_LANGUAGE_HEADER,
            "Cache-Control": f"max-age={ttl}" if ttl > 0 else "no-cache",
        }

    def _attempt(
        self,
        host: str,
        path: str,
        attempt: int,
        options: FetchOptions,
        crumb: Optional[CrumbToken],
    ) -> _Outcome:
        url = f"{host}{path}"
        headers = self._build_headers(attempt, options)
        if crumb is not None:
            separator = "&" if "?" in path else "?"
            url += f"{separator}crumb={quote(crumb.token, safe='')}"
            if crumb.cookie:
                headers["Cookie"] = crumb.cookie

        try:
            response = self._http.get(url, headers=headers, timeout=self._timeout)

            if response.status_code == RATE_LIMIT_STATUS:
                logger.warning(
                    f"[FetchClient] Rate limited on {host}, "
                    f"attempt {attempt + 1}/{options.attempts_per_host}"
                )
                return _Outcome(RATE_LIMITED, response.status_code)

            if not response.is_success:
                logger.warning(f"[FetchClient] HTTP {response.status_code} from {host}{path}")
                return _Outcome(FAILED, response.status_code)

            try:
                data = response.json()
            except ValueError as e:
                raise UpstreamResponseError(
                    f"Malformed JSON from {host}: {e}", status=response.status_code
                ) from e
            if data is None:
                raise UpstreamResponseError(f"Empty JSON body from {host}", status=response.status_code)
            return _Outcome(SUCCESS, response.status_code, data)

        except UpstreamResponseError as e:
            logger.warning(f"[FetchClient] {e.message} ({path})")
            return _Outcome(FAILED, e.status)
        except Exception as e:
            logger.warning(f"[FetchClient] Fetch error on {host}{path}: {e}")
            return _Outcome(FAILED)

    def _get_crumb(self) -> Optional[CrumbToken]:
        """Return a cached crumb token, refreshing it from the quote page."""
        with self._crumb_lock:
            now = self._clock()
            if self._crumb is not None and self._crumb.expires_at > now:
                return self._crumb

            try:
                res = self._http.get(
                    self._crumb_url,
                    headers={
                        "User-Agent": self._user_agents[0],
                        "Accept": "text/html,application/xhtml+xml",
                    },
                    timeout=self._timeout,
                )
            except Exception as e:
                logger.error(f"[FetchClient] Failed to fetch crumb page: {e}")
                return None

            if not res.is_success:
                logger.error(f"[FetchClient] Crumb page returned HTTP {res.status_code}")
                return None

            match = _CRUMB_PATTERN.search(res.text)
            if not match:
                logger.error("[FetchClient] Could not find crumb in quote page HTML")
                return None

            cookie = "; ".join(
                header.split(";", 1)[0].strip()
                for header in res.headers.get_list("set-cookie")
                if header.strip()
            )
            self._crumb = CrumbToken(
                token=match.group(1),
                cookie=cookie,
                expires_at=now + CRUMB_TTL_SECONDS,
            )
            logger.info("[FetchClient] Obtained crumb token")
            return self._crumb
