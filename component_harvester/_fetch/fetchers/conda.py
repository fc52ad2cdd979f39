"""Conda channel fetcher for binary (conda) and source (condasrc) packages.

Coordinates::

    {conda|condasrc}/{anaconda-main|anaconda-r|conda-forge}/{architecture|-}/{name}/[{version|_}]-[{build|_}]

e.g.
    conda/conda-forge/linux-aarch64/numpy/1.13.0-py36
    conda/conda-forge/-/numpy/-py36
    conda/conda-forge/-/numpy/_-_
    condasrc/conda-forge/-/numpy/1.13.0

Channel metadata comes from ``channeldata.json`` and per-architecture
package listings from ``{arch}/repodata.json``; both go through the shared
RemoteIndexCache.
"""

from email.utils import formatdate
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlsplit, urlunsplit

from component_harvester.logging_config import logger

from ..download import ArtifactDownloader
from ..index_cache import RemoteIndexCache
from ..matcher import iter_repo_entries, match_packages
from ..request import Request
from ..result import FetchOutcome, FetchResult
from ..spec import Spec
from ..temp import TempResources

CONDA_CHANNELS: Dict[str, str] = {
    "anaconda-main": "https://repo.anaconda.com/pkgs/main",
    "anaconda-r": "https://repo.anaconda.com/pkgs/r",
    "conda-forge": "https://conda.anaconda.org/conda-forge",
}

BINARY_TYPE = "conda"
SOURCE_TYPE = "condasrc"
SUPPORTED_TYPES = (BINARY_TYPE, SOURCE_TYPE)

NOARCH = "noarch"
CHANNEL_DATA_DIMENSION = "channeldata"

# Largest timestamp that can still be seconds (year 9999); conda mixes s and ms
_MAX_SECONDS_TIMESTAMP = 253402300799


def format_release_date(timestamp: Optional[Union[int, float]]) -> Optional[str]:
    """
    Render an index timestamp as RFC 1123 GMT text.

    Args:
        timestamp: Seconds or milliseconds since the epoch

    Returns:
        e.g. "Tue, 15 Nov 1994 08:12:31 GMT", or None without a timestamp
    """
    if timestamp is None or isinstance(timestamp, bool):
        return None
    try:
        seconds = float(timestamp)
    except (TypeError, ValueError):
        return None
    if seconds > _MAX_SECONDS_TIMESTAMP:
        seconds /= 1000
    return formatdate(seconds, usegmt=True)


def _normalize_url(url: str) -> str:
    parts = urlsplit(url.strip())
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", parts.query, parts.fragment))


def _single_source_url(package_channel_data: Mapping[str, Any]) -> Optional[str]:
    """The one canonical source archive URL, or None if absent or ambiguous."""
    source_url = package_channel_data.get("source_url")
    if isinstance(source_url, list):
        source_url = source_url[0] if len(source_url) == 1 else None
    if not isinstance(source_url, str) or not source_url.strip():
        return None
    return source_url


class CondaFetcher:
    """
    Fetcher for packages published on conda channels.

    When no architecture is given for a binary package, ``noarch`` is
    preferred if the package publishes it, otherwise the first listed
    architecture is used. A match failure in that architecture is a skip;
    other architectures are not tried.
    """

    def __init__(
        self,
        index_cache: RemoteIndexCache,
        downloader: ArtifactDownloader,
        temp_root: Optional[Union[str, Path]] = None,
        channels: Optional[Dict[str, str]] = None,
    ) -> None:
        self._index_cache = index_cache
        self._downloader = downloader
        self._temp_root = temp_root
        self._channels = dict(channels if channels is not None else CONDA_CHANNELS)

    @property
    def name(self) -> str:
        return "conda"

    @property
    def channels(self) -> Dict[str, str]:
        return dict(self._channels)

    def can_handle(self, request: Request) -> bool:
        """Check if the request targets one of the known channels."""
        return request.spec.provider in self._channels

    async def handle(self, request: Request) -> FetchOutcome:
        """Resolve, download and unpack the requested conda package."""
        spec = request.spec
        if spec.provider not in self._channels:
            return request.mark_skip(
                f"Unrecognized conda provider: {spec.provider}, must be either of: {', '.join(self._channels)}"
            )
        if spec.type not in SUPPORTED_TYPES:
            return request.mark_skip(f"spec type must either be {BINARY_TYPE} or {SOURCE_TYPE}, got {spec.type}")

        channel_data = await self.get_channel_data(spec.provider)
        if not channel_data:
            return request.mark_skip(f"failed to fetch and parse channeldata.json for channel {spec.provider}")

        found = self._find_package(channel_data, spec.name)
        if found is None:
            return request.mark_skip(f"Missing package {spec.name} in channel: {spec.provider}")
        cased_name, package_channel_data = found

        if spec.type == SOURCE_TYPE:
            return await self._fetch_source_package(request, cased_name, package_channel_data)

        subdirs: List[str] = list(package_channel_data.get("subdirs") or [])
        if not subdirs:
            return request.mark_skip(f"No architecture build in package channel data for package {spec.name}")

        architecture = spec.namespace
        if not architecture:
            architecture = NOARCH if NOARCH in subdirs else subdirs[0]
            logger.info(f"No binary architecture specified for {spec.name}, using architecture: {architecture}")

        return await self._fetch_binary_package(request, cased_name, package_channel_data, architecture, subdirs)

    async def get_channel_data(self, provider: str) -> Optional[Dict[str, Any]]:
        """Channel-level index for a provider (via the index cache)."""
        channel_url = self._channels[provider]
        return await self._index_cache.get_or_refresh(
            (provider, CHANNEL_DATA_DIMENSION),
            f"{channel_url}/channeldata.json",
            self._index_cache.path_for(f"{provider}-channelDataFile.json"),
        )

    async def get_repo_data(self, provider: str, architecture: str) -> Optional[Dict[str, Any]]:
        """Architecture-level index for a provider (via the index cache)."""
        channel_url = self._channels[provider]
        return await self._index_cache.get_or_refresh(
            (provider, architecture),
            f"{channel_url}/{architecture}/repodata.json",
            self._index_cache.path_for(f"{provider}-repoDataFile-{architecture}.json"),
        )

    def _find_package(self, channel_data: Mapping[str, Any], name: str) -> Optional[Tuple[str, Dict[str, Any]]]:
        """Look up a package by exact name, then case-insensitively."""
        packages = channel_data.get("packages") or {}
        if name in packages:
            return name, packages[name]
        lowered = name.lower()
        for candidate, data in packages.items():
            if candidate.lower() == lowered:
                return candidate, data
        return None

    async def _fetch_source_package(
        self, request: Request, cased_name: str, package_channel_data: Dict[str, Any]
    ) -> FetchOutcome:
        spec = request.spec
        source_url = _single_source_url(package_channel_data)
        if source_url is None:
            return request.mark_skip(f"Missing archive source file in repodata for package {spec.name}")

        channel_version = package_channel_data.get("version")
        if spec.concrete_version and spec.concrete_version != channel_version:
            return request.mark_skip(f"Missing source file version {spec.version} for package {spec.name}")

        download_url = _normalize_url(source_url)
        resolved = request.resolve_spec(revision=channel_version)
        registry_data = {"channelData": package_channel_data, "downloadUrl": download_url}
        return await self._fetch_artifact(
            request,
            download_url,
            registry_data,
            cased_spec=Spec(resolved.type, resolved.provider, resolved.namespace, cased_name, resolved.revision),
            timestamp=package_channel_data.get("timestamp"),
            declared_license=package_channel_data.get("license"),
        )

    async def _fetch_binary_package(
        self,
        request: Request,
        cased_name: str,
        package_channel_data: Dict[str, Any],
        architecture: str,
        subdirs: List[str],
    ) -> FetchOutcome:
        spec = request.spec
        if architecture not in subdirs:
            return request.mark_skip(f"Missing architecture {architecture} for package {spec.name} in channel")

        repo_data = await self.get_repo_data(spec.provider, architecture)
        if not repo_data:
            return request.mark_skip(
                f"failed to fetch and parse repodata json file for channel {spec.provider} "
                f"in architecture {architecture}"
            )

        matches = match_packages(
            iter_repo_entries(repo_data),
            cased_name,
            version=spec.version,
            build_version=spec.build_version,
        )
        if not matches:
            return request.mark_skip(
                f"Missing package with matching spec (version: {spec.version}, buildVersion: {spec.build_version}) "
                f"in {architecture} repository"
            )
        if len(matches) > 1:
            logger.debug(
                f"{len(matches)} candidates for {spec.name} in {architecture}, "
                f"alternatives: {[m.package_file for m in matches[1:]]}"
            )

        entry = matches[0]
        download_url = f"{self._channels[spec.provider]}/{architecture}/{entry.package_file}"
        resolved = request.resolve_spec(namespace=architecture, revision=f"{entry.version}-{entry.build}")
        registry_data = {
            "channelData": package_channel_data,
            "repoData": entry.to_dict(),
            "downloadUrl": download_url,
        }
        return await self._fetch_artifact(
            request,
            download_url,
            registry_data,
            cased_spec=Spec(resolved.type, resolved.provider, resolved.namespace, cased_name, resolved.revision),
            timestamp=entry.package_data.get("timestamp"),
            declared_license=entry.package_data.get("license"),
        )

    async def _fetch_artifact(
        self,
        request: Request,
        download_url: str,
        registry_data: Dict[str, Any],
        cased_spec: Spec,
        timestamp: Optional[Union[int, float]],
        declared_license: Optional[str],
    ) -> FetchOutcome:
        """Download, unpack and hash inside a temp scope; the directory outlives it."""
        with TempResources(self._temp_root) as temps:
            archive = temps.create_file()
            location = temps.create_dir()

            await self._downloader.download(download_url, archive)
            await self._downloader.decompress(archive, location)
            hashes = await self._downloader.compute_hashes(archive)

            fetch_result = FetchResult(
                url=request.url,
                location=str(location),
                registry_data=registry_data,
                release_date=format_release_date(timestamp),
                declared_licenses=declared_license or None,
                hashes=hashes,
                cased_spec=cased_spec,
            )
            fetch_result.adopt_cleanup(temps.adopt(location))
            return request.complete(fetch_result)
