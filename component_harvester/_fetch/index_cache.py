"""Time-bounded local cache of large provider index documents.

Channel indexes (channeldata.json, ~10MB) and per-architecture indexes
(repodata.json, ~30MB) are too big to fetch per request. They are stored
verbatim under the cache directory and considered fresh for a fixed TTL.

Strategy:
1. A fresh marker for the key means: parse the local file, no network
2. Otherwise download to a sibling file and atomically replace the cached
   copy, then mark the key fresh for the TTL
3. If that download fails, fall back to the previous copy when one exists,
   else report the index as unavailable (None)

Refreshes are serialised per key, so concurrent misses share one download.
"""

import asyncio
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

from component_harvester.exceptions import DownloadError, IndexParseError
from component_harvester.logging_config import logger

from .download import ArtifactDownloader

DEFAULT_TTL_SECONDS = 8 * 60 * 60  # 8 hours

# (provider id, dimension), e.g. ("conda-forge", "channeldata") or ("conda-forge", "linux-64")
CacheKey = Tuple[str, str]


@dataclass
class CacheEntry:
    """Freshness marker for one cached index file."""

    path: Path
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


def _read_json(path: Path) -> Any:
    try:
        with open(path, "rb") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise IndexParseError(f"Index document {path.name} is not valid JSON: {e}") from e
    except UnicodeDecodeError as e:
        raise IndexParseError(f"Index document {path.name} is not UTF-8: {e}") from e


class RemoteIndexCache:
    """
    Shared cache of provider index documents, keyed by (provider, dimension).

    Construct once and pass to every fetcher. Markers live in memory; the
    documents live in ``cache_dir``.
    """

    def __init__(
        self,
        cache_dir: Union[str, Path],
        downloader: ArtifactDownloader,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache_dir = Path(cache_dir)
        self._downloader = downloader
        self._ttl = ttl
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._locks: Dict[CacheKey, asyncio.Lock] = {}

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    @property
    def ttl(self) -> float:
        return self._ttl

    def path_for(self, file_name: str) -> Path:
        return self._cache_dir / file_name

    def is_fresh(self, key: CacheKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.is_fresh(self._clock())

    def clear(self) -> None:
        """Forget all freshness markers. Cached files stay on disk."""
        self._entries.clear()

    def _lock_for(self, key: CacheKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def get_or_refresh(
        self,
        key: CacheKey,
        source_url: str,
        local_path: Union[str, Path],
        ttl: Optional[float] = None,
    ) -> Optional[Any]:
        """
        Return the parsed index document for ``key``, refreshing it if stale.

        Args:
            key: (provider, dimension) cache key
            source_url: Where the document is published
            local_path: File backing the cache entry
            ttl: Freshness window in seconds; defaults to the cache TTL

        Returns:
            The parsed JSON document, or None when it could not be fetched
            and no earlier copy exists

        Raises:
            IndexParseError: If the local document is not valid JSON
        """
        local_path = Path(local_path)
        async with self._lock_for(key):
            if not self.is_fresh(key):
                if not await self._refresh(key, source_url, local_path, ttl or self._ttl):
                    return None
            else:
                logger.debug(f"Index cache hit for {key}: {local_path}")

        try:
            return await asyncio.to_thread(_read_json, local_path)
        except IndexParseError:
            # A corrupt copy must not stay fresh; the next call downloads again
            self._entries.pop(key, None)
            raise

    async def _refresh(self, key: CacheKey, source_url: str, local_path: Path, ttl: float) -> bool:
        """Download the document; True if a usable local copy exists afterwards."""
        local_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            await self._downloader.download(source_url, local_path)
        except DownloadError as e:
            if local_path.is_file():
                logger.warning(f"Refreshing {source_url} failed ({e}); using stale copy {local_path}")
                return True
            logger.warning(f"Fetching {source_url} failed and no cached copy exists: {e}")
            return False

        self._entries[key] = CacheEntry(path=local_path, expires_at=self._clock() + ttl)
        logger.info(f"Retrieved {source_url}. Stored index file at {local_path}")
        return True
