"""Fetcher protocol for provider plugins."""

from typing import Protocol

from .request import Request
from .result import FetchOutcome


class Fetcher(Protocol):
    """
    Protocol defining the interface for provider fetchers.

    Each provider (a package registry or distribution channel) implements
    this protocol. Providers are independent of each other; the registry
    picks the one whose ``can_handle`` accepts a request.

    Example:
        class CondaFetcher:
            name = "conda"

            def can_handle(self, request: Request) -> bool:
                return request.spec.provider in CONDA_CHANNELS

            async def handle(self, request: Request) -> FetchOutcome:
                # Resolve, download and build a FetchResult
                ...
    """

    @property
    def name(self) -> str:
        """
        Human-readable name of this fetcher.

        Used for logging and for listing registered fetchers.
        """
        ...

    def can_handle(self, request: Request) -> bool:
        """
        Check if this fetcher serves the request's provider.

        Must be a pure function of the parsed Spec: no I/O.

        Args:
            request: Request to inspect

        Returns:
            True if this fetcher should handle the request
        """
        ...

    async def handle(self, request: Request) -> FetchOutcome:
        """
        Fetch the component described by the request.

        Implementations should:
        1. Resolve wildcard identity fields against the provider's index
        2. Return ``request.mark_skip(reason)`` when the component cannot be found
        3. Download, unpack and hash the artifact inside a temp scope
        4. Return ``request.complete(result)`` with cleanup adopted by the result

        Transient problems (network, decompression, bad index) are raised,
        not returned; temp resources must already be released when they are.

        Args:
            request: Request to fulfil; its spec may be resolved once

        Returns:
            The request's outcome (success or skip)
        """
        ...
