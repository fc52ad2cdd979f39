"""Provider fetcher implementations."""

from .conda import CONDA_CHANNELS, CondaFetcher

__all__ = [
    "CONDA_CHANNELS",
    "CondaFetcher",
]
