"""
Conditional-cache gateway and short-lived response cache.

``ConditionalCache`` remembers the ETag / Last-Modified validators of the last
fresh fetch and the body that came with it, so an upstream "not modified"
answer can be served from memory. ``ResponseCache`` is an independent
time-boxed cache consulted before any validator logic; for up to its TTL it
can keep serving a body the validator layer already knows is outdated.
"""

import asyncio
import hashlib
import json
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import parse_qsl, urlencode

from cachetools import TTLCache
from loguru import logger


class UpstreamUnavailable(Exception):
    """The upstream read failed; the cached validators were left untouched."""


class UpstreamTimeout(UpstreamUnavailable):
    pass


@dataclass(frozen=True)
class Validators:
    etag: Optional[str] = None
    last_modified: Optional[str] = None

    def as_headers(self) -> dict:
        headers = {}
        if self.etag:
            headers["If-None-Match"] = self.etag
        if self.last_modified:
            headers["If-Modified-Since"] = self.last_modified
        return headers


EMPTY_VALIDATORS = Validators()


@dataclass(frozen=True)
class UpstreamResponse:
    not_modified: bool
    body: Any = None
    etag: Optional[str] = None
    last_modified: Optional[str] = None

    @property
    def validators(self) -> Validators:
        return Validators(etag=self.etag, last_modified=self.last_modified)


class FetchStatus(str, Enum):
    FRESH = "fresh"
    REVALIDATED = "revalidated"
    NO_CONTENT = "no_content"


@dataclass(frozen=True)
class FetchResult:
    status: FetchStatus
    body: Any = None
    validators: Validators = EMPTY_VALIDATORS

    @property
    def is_fresh(self) -> bool:
        return self.status is FetchStatus.FRESH


@dataclass(frozen=True)
class CacheEntry:
    validators: Validators
    body: Any


Fetcher = Callable[[Validators], Awaitable[UpstreamResponse]]


def content_etag(body: Any) -> str:
    """Deterministic strong ETag for a JSON-serializable body."""
    payload = json.dumps(body, sort_keys=True, separators=(",", ":"), default=str)
    return '"' + hashlib.sha256(payload.encode("utf-8")).hexdigest() + '"'


class ConditionalCache:
    """
    Validator bookkeeping for conditional fetches.

    With ``scope="shared"`` a single validator pair is used for every resource:
    a fresh fetch of one resource overwrites the validators another resource
    will send next. ``"resource"`` keeps a pair per resource key.
    """

    def __init__(self, scope: str = "resource"):
        if scope not in ("resource", "shared"):
            raise ValueError(f"Unknown validator scope: {scope}")
        self.scope = scope
        self._lock = threading.Lock()
        self._shared = EMPTY_VALIDATORS
        self._entries: dict[str, CacheEntry] = {}

    def validators_for(self, key: str) -> Validators:
        with self._lock:
            if self.scope == "shared":
                return self._shared
            entry = self._entries.get(key)
            return entry.validators if entry else EMPTY_VALIDATORS

    def entry(self, key: str) -> Optional[CacheEntry]:
        """Validators and body stored for ``key``, read together."""
        with self._lock:
            return self._entries.get(key)

    def stored_body(self, key: str, default: Any = None) -> Any:
        entry = self.entry(key)
        return entry.body if entry else default

    def _store(self, key: str, validators: Validators, body: Any):
        with self._lock:
            if self.scope == "shared":
                self._shared = validators
            self._entries[key] = CacheEntry(validators=validators, body=body)

    async def fetch(self, key: str, fetcher: Fetcher, timeout: Optional[float] = None) -> FetchResult:
        validators = self.validators_for(key)

        try:
            response = await asyncio.wait_for(fetcher(validators), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Upstream fetch for {key} timed out after {timeout}s")
            raise UpstreamTimeout(f"Upstream fetch for {key} timed out")

        if response.not_modified:
            entry = self.entry(key)
            if entry is None:
                logger.info(f"Upstream reports {key} unchanged but nothing is stored for it")
                return FetchResult(status=FetchStatus.NO_CONTENT, validators=validators)
            logger.debug(f"Revalidated {key}")
            return FetchResult(status=FetchStatus.REVALIDATED, body=entry.body, validators=entry.validators)

        fresh = response.validators
        self._store(key, fresh, response.body)
        logger.debug(f"Stored fresh {key} etag={fresh.etag} last_modified={fresh.last_modified}")
        return FetchResult(status=FetchStatus.FRESH, body=response.body, validators=fresh)


def normalize_path(path: str, query: str = "", scope: str = "") -> str:
    """Cache key for a request: path with duplicate and trailing slashes removed, sorted query, optional caller scope."""
    key = "/" + "/".join(part for part in path.split("/") if part)
    if query:
        key += "?" + urlencode(sorted(parse_qsl(query, keep_blank_values=True)))
    if scope:
        key += f"#{scope}"
    return key


class ResponseCache:
    """Expiring cache of response bodies keyed by normalized request path."""

    def __init__(self, ttl: float = 300, maxsize: int = 1024, timer: Optional[Callable[[], float]] = None):
        kwargs = {"timer": timer} if timer is not None else {}
        self._cache = TTLCache(maxsize=maxsize, ttl=ttl, **kwargs)
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[FetchResult]:
        with self._lock:
            return self._cache.get(key)

    def put(self, key: str, result: FetchResult):
        with self._lock:
            self._cache[key] = result

    def clear(self):
        with self._lock:
            self._cache.clear()
