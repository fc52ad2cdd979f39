"""Public API for fetching components.

Builds the shared collaborators (downloader, index cache) once, registers
the provider fetchers and runs requests through the worker pool.
"""

from typing import List, Optional, Sequence, Union

from ._fetch import (
    ArtifactDownloader,
    CondaFetcher,
    FetcherRegistry,
    FetchOutcome,
    FetchPipeline,
    RemoteIndexCache,
    Request,
    Spec,
    parse_spec,
)
from .config import HarvesterConfig
from .exceptions import MalformedSpecError
from .logging_config import logger


def create_default_registry(
    index_cache: RemoteIndexCache,
    downloader: ArtifactDownloader,
    config: Optional[HarvesterConfig] = None,
) -> FetcherRegistry:
    """
    Create a FetcherRegistry with the built-in provider fetchers.

    Args:
        index_cache: Shared index cache
        downloader: Shared artifact downloader
        config: Supplies the temp directory root

    Returns:
        Configured FetcherRegistry
    """
    temp_root = config.temp_root if config else None
    return FetcherRegistry(
        [
            CondaFetcher(index_cache, downloader, temp_root=temp_root),
        ]
    )


def parse_component(component: str) -> Spec:
    """
    Parse a coordinate string or a conda package URL.

    Raises:
        MalformedSpecError: If neither form parses
    """
    if component.startswith("pkg:"):
        return Spec.from_purl(component)
    return parse_spec(component)


async def fetch_components(
    components: Sequence[Union[str, Request]],
    config: Optional[HarvesterConfig] = None,
) -> List[FetchOutcome]:
    """
    Fetch components and return one outcome per input, in order.

    Successful outcomes own their temp directories; call
    ``outcome.fetch_result.cleanup()`` when done with them.

    Args:
        components: Coordinates, purls, or prepared Requests
        config: Engine configuration; defaults to ``HarvesterConfig()``

    Returns:
        Outcomes in input order

    Raises:
        MalformedSpecError: If a component string cannot be parsed
    """
    config = config or HarvesterConfig()
    config.validate()
    config.ensure_directories()

    requests = [c if isinstance(c, Request) else Request(parse_component(c)) for c in components]

    async with ArtifactDownloader(timeout=config.http_timeout) as downloader:
        index_cache = RemoteIndexCache(config.cache_dir, downloader, ttl=config.index_ttl_seconds)
        registry = create_default_registry(index_cache, downloader, config)
        pipeline = FetchPipeline(
            registry,
            concurrency=config.concurrency,
            timeout=config.effective_request_timeout,
        )
        outcomes = await pipeline.run(requests)

    summary = {status: sum(1 for o in outcomes if o.status == status) for status in ("success", "skip", "failure")}
    logger.info(f"Fetched {len(outcomes)} components: {summary}")
    return outcomes


__all__ = [
    "MalformedSpecError",
    "create_default_registry",
    "fetch_components",
    "parse_component",
]
