"""Fetcher registry for dispatching requests to provider plugins."""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from component_harvester.logging_config import logger

from .protocol import Fetcher
from .request import Request


class FetcherRegistry:
    """
    Capability-based dispatch table of provider fetchers.

    The table is populated once, at construction, and cannot be changed
    afterwards. Each fetcher's ``can_handle`` is evaluated in registration
    order and the first match wins. Overlapping fetchers are a configuration
    mistake and are not detected.

    Example:
        registry = FetcherRegistry([CondaFetcher(cache, downloader)])

        fetcher = registry.dispatch(request)
        if fetcher is None:
            request.mark_skip("unsupported provider")
    """

    def __init__(self, fetchers: Iterable[Fetcher] = ()) -> None:
        """
        Initialize the registry.

        Args:
            fetchers: Fetcher implementations, in priority order
        """
        self._fetchers: Tuple[Fetcher, ...] = tuple(fetchers)
        for fetcher in self._fetchers:
            logger.debug(f"Registered fetcher: {fetcher.name}")

    def dispatch(self, request: Request) -> Optional[Fetcher]:
        """
        Find the fetcher able to handle a request.

        Args:
            request: Request carrying a parsed Spec

        Returns:
            The first fetcher whose can_handle accepts the request, or None
        """
        for fetcher in self._fetchers:
            if fetcher.can_handle(request):
                return fetcher
        logger.debug(f"No fetcher for provider '{request.spec.provider}' ({request.url})")
        return None

    @property
    def fetchers(self) -> List[Fetcher]:
        return list(self._fetchers)

    def list_fetchers(self) -> List[Dict[str, Any]]:
        """
        List all registered fetchers.

        Returns:
            List of dicts with 'name' keys, in dispatch order
        """
        return [{"name": f.name} for f in self._fetchers]

    def __len__(self) -> int:
        return len(self._fetchers)
