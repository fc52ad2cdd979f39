"""Worker pool running requests through dispatch and fetch."""

import asyncio
from typing import Iterable, List, Optional, Tuple

from component_harvester.exceptions import TRANSIENT_ERRORS
from component_harvester.logging_config import logger

from .registry import FetcherRegistry
from .request import Request
from .result import FetchOutcome

DEFAULT_CONCURRENCY = 4


class FetchPipeline:
    """
    Runs requests to completion with a bounded number of concurrent workers.

    Each request ends with exactly one outcome:
    - no fetcher for the provider -> skip
    - the fetcher's own success or skip
    - a transient error or timeout -> failure (retryable by the caller)

    Any other exception is a bug and propagates.

    Example:
        pipeline = FetchPipeline(registry, concurrency=8, timeout=300)
        outcomes = await pipeline.run([Request.from_coordinate(c) for c in coordinates])
    """

    def __init__(
        self,
        registry: FetcherRegistry,
        concurrency: int = DEFAULT_CONCURRENCY,
        timeout: Optional[float] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self._registry = registry
        self._concurrency = concurrency
        self._timeout = timeout

    @property
    def registry(self) -> FetcherRegistry:
        return self._registry

    async def process(self, request: Request) -> FetchOutcome:
        """
        Fetch a single request.

        Args:
            request: Request to process

        Returns:
            The request's outcome
        """
        fetcher = self._registry.dispatch(request)
        if fetcher is None:
            return request.mark_skip(f"Unsupported provider: {request.spec.provider}")

        logger.debug(
            f"Dispatching {request.url} to fetcher {fetcher.name}",
            extra={"coordinate": request.url, "fetcher": fetcher.name},
        )
        try:
            if self._timeout:
                return await asyncio.wait_for(fetcher.handle(request), self._timeout)
            return await fetcher.handle(request)
        except TRANSIENT_ERRORS as e:
            logger.warning(f"Fetching {request.url} failed: {e}", extra={"coordinate": request.url})
            return request.fail(e)
        except asyncio.TimeoutError as e:
            logger.warning(
                f"Fetching {request.url} timed out after {self._timeout}s", extra={"coordinate": request.url}
            )
            return request.fail(e)

    async def run(self, requests: Iterable[Request]) -> List[FetchOutcome]:
        """
        Process many requests with ``concurrency`` workers.

        Args:
            requests: Requests to process

        Returns:
            Outcomes in the same order as the requests
        """
        items = list(requests)
        outcomes: List[Optional[FetchOutcome]] = [None] * len(items)
        queue: "asyncio.Queue[Tuple[int, Request]]" = asyncio.Queue()
        for item in enumerate(items):
            queue.put_nowait(item)

        async def worker() -> None:
            while True:
                try:
                    index, request = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                outcomes[index] = await self.process(request)

        workers = [asyncio.create_task(worker()) for _ in range(min(self._concurrency, len(items)))]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            # Nobody receives these results, so release their temp directories
            for outcome in outcomes:
                if outcome is not None and outcome.fetch_result is not None:
                    outcome.fetch_result.cleanup()
            raise
        finally:
            for task in workers:
                task.cancel()

        return [outcome for outcome in outcomes if outcome is not None]
