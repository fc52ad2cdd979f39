"""Plugin-based fetch-dispatch engine."""

from .download import ArtifactDownloader, compute_file_hashes, extract_archive
from .fetchers import CONDA_CHANNELS, CondaFetcher
from .index_cache import RemoteIndexCache
from .matcher import RepoEntry, iter_repo_entries, match_packages
from .pipeline import FetchPipeline
from .protocol import Fetcher
from .registry import FetcherRegistry
from .request import Request
from .result import FetchOutcome, FetchResult
from .spec import Spec, parse_spec
from .temp import CleanupHandle, TempResources

__all__ = [
    "ArtifactDownloader",
    "CONDA_CHANNELS",
    "CleanupHandle",
    "CondaFetcher",
    "Fetcher",
    "FetchOutcome",
    "FetchPipeline",
    "FetchResult",
    "FetcherRegistry",
    "RemoteIndexCache",
    "RepoEntry",
    "Request",
    "Spec",
    "TempResources",
    "compute_file_hashes",
    "extract_archive",
    "iter_repo_entries",
    "match_packages",
    "parse_spec",
]
