"""Streaming artifact download, content hashing and archive extraction."""

import asyncio
import hashlib
import lzma
import os
import tarfile
import zipfile
import zlib
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import aiohttp
import zstandard

from component_harvester.exceptions import DecompressionError, DownloadError
from component_harvester.http_client import DEFAULT_HTTP_TIMEOUT, create_session
from component_harvester.logging_config import logger

DEFAULT_CHUNK_SIZE = 65536  # 64 KB chunks
HASH_ALGORITHMS: Tuple[str, ...] = ("sha1", "sha256")

PathLike = Union[str, Path]

# Magic numbers used to recognise archives; temp files carry no extension
_ZIP_MAGIC = b"PK\x03\x04"
_GZIP_MAGIC = b"\x1f\x8b"
_BZIP2_MAGIC = b"BZh"
_XZ_MAGIC = b"\xfd7zXZ\x00"
_ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"
_TAR_MAGIC_OFFSET = 257


def _part_path(destination: Path) -> Path:
    return destination.with_name(f".{destination.name}.part")


class ArtifactDownloader:
    """
    Streams remote artifacts to disk.

    The underlying aiohttp session is created lazily inside the running
    event loop and sends the harvester User-Agent on every request.

    Example:
        async with ArtifactDownloader() as downloader:
            await downloader.download(url, archive_path)
            await downloader.decompress(archive_path, target_dir)
            hashes = await downloader.compute_hashes(archive_path)
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout
        self._chunk_size = chunk_size

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = create_session(self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the session if this downloader created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "ArtifactDownloader":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def download(self, url: str, destination: PathLike) -> Path:
        """
        GET ``url`` and stream the body to ``destination``.

        The body is written to a hidden sibling file that replaces
        ``destination`` only after it was fully written and closed, so a
        failed or cancelled transfer never leaves a partial file behind.

        Args:
            url: Artifact URL
            destination: Final path of the downloaded file

        Returns:
            The destination path

        Raises:
            DownloadError: On a non-2xx response or a transport error
        """
        destination = Path(destination)
        part = _part_path(destination)
        session = self._get_session()

        try:
            async with session.get(url) as response:
                if not 200 <= response.status < 300:
                    raise DownloadError(
                        f"{response.status} {response.reason} fetching {url}",
                        status=response.status,
                        url=url,
                    )
                bytes_downloaded = 0
                with part.open("wb") as f:
                    async for chunk in response.content.iter_chunked(self._chunk_size):
                        f.write(chunk)
                        bytes_downloaded += len(chunk)
            os.replace(part, destination)
        except aiohttp.ClientError as e:
            part.unlink(missing_ok=True)
            raise DownloadError(f"Network error fetching {url}: {e}", url=url) from e
        except asyncio.TimeoutError:
            part.unlink(missing_ok=True)
            raise DownloadError(f"Timed out fetching {url}", url=url) from None
        except BaseException:
            # Includes cancellation of the owning task
            part.unlink(missing_ok=True)
            raise

        logger.debug(f"Downloaded {url} ({bytes_downloaded} bytes) to {destination}")
        return destination

    async def compute_hashes(self, path: PathLike) -> Dict[str, str]:
        """Digest a file off the event loop. See ``compute_file_hashes``."""
        return await asyncio.to_thread(compute_file_hashes, path)

    async def decompress(self, archive_path: PathLike, destination_dir: PathLike) -> Path:
        """Extract an archive off the event loop. See ``extract_archive``."""
        return await asyncio.to_thread(extract_archive, archive_path, destination_dir)


def compute_file_hashes(path: PathLike, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Dict[str, str]:
    """
    Compute the fixed digest set of a file, reading it in chunks.

    Args:
        path: File to digest

    Returns:
        Mapping of algorithm name to hex digest, e.g. {"sha1": ..., "sha256": ...}
    """
    hashers = {name: hashlib.new(name) for name in HASH_ALGORITHMS}
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            for hasher in hashers.values():
                hasher.update(chunk)
    return {name: hasher.hexdigest() for name, hasher in hashers.items()}


def detect_archive_type(path: PathLike) -> str:
    """
    Detect the archive type from the file's leading bytes.

    Returns:
        One of "conda", "zip", "gz", "bz2", "xz", "zst", "tar"

    Raises:
        DecompressionError: If the format is not recognised
    """
    with open(path, "rb") as f:
        header = f.read(_TAR_MAGIC_OFFSET + 8)

    if header.startswith(_ZIP_MAGIC):
        try:
            with zipfile.ZipFile(path) as zf:
                names = zf.namelist()
        except zipfile.BadZipFile as e:
            raise DecompressionError(f"Corrupt zip archive {Path(path).name}: {e}") from e
        if "metadata.json" in names and any(n.startswith("pkg-") and n.endswith(".tar.zst") for n in names):
            return "conda"
        return "zip"
    if header.startswith(_GZIP_MAGIC):
        return "gz"
    if header.startswith(_BZIP2_MAGIC):
        return "bz2"
    if header.startswith(_XZ_MAGIC):
        return "xz"
    if header.startswith(_ZSTD_MAGIC):
        return "zst"
    if header[_TAR_MAGIC_OFFSET : _TAR_MAGIC_OFFSET + 5] == b"ustar":
        return "tar"
    raise DecompressionError(f"Unsupported archive format: {Path(path).name}")


def _safe_extractall(tar: tarfile.TarFile, dest: Path) -> None:
    """Extract tarfile with safe filter, falling back for Python < 3.12."""
    try:
        tar.extractall(path=dest, filter="data")
    except TypeError:
        # Python < 3.12: TarFile.extractall does not support the 'filter' argument
        tar.extractall(path=dest)


def _extract_tar_zst(fileobj, dest: Path) -> None:
    dctx = zstandard.ZstdDecompressor()
    with dctx.stream_reader(fileobj) as reader:
        with tarfile.open(fileobj=reader, mode="r|") as tar:
            _safe_extractall(tar, dest)


def _extract_conda(archive: Path, dest: Path) -> None:
    """Unpack both inner tarballs of a .conda package into dest."""
    with zipfile.ZipFile(archive) as zf:
        for name in zf.namelist():
            if name.endswith(".tar.zst"):
                with zf.open(name) as member:
                    _extract_tar_zst(member, dest)


def extract_archive(archive_path: PathLike, destination_dir: PathLike) -> Path:
    """
    Extract an archive into a directory.

    Supports .conda packages, zip, and tar (plain, gzip, bzip2, xz, zstd).

    Args:
        archive_path: Archive to extract
        destination_dir: Directory receiving the contents; created if needed

    Returns:
        The destination directory

    Raises:
        DecompressionError: If the archive is missing, unsupported or corrupt
    """
    archive = Path(archive_path)
    dest = Path(destination_dir)
    if not archive.is_file():
        raise DecompressionError(f"Archive not found: {archive}")

    archive_type = detect_archive_type(archive)
    dest.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Extracting {archive.name} ({archive_type}) to {dest}")

    try:
        if archive_type == "conda":
            _extract_conda(archive, dest)
        elif archive_type == "zip":
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(dest)
        elif archive_type == "zst":
            with open(archive, "rb") as fh:
                _extract_tar_zst(fh, dest)
        else:
            mode = "r" if archive_type == "tar" else f"r:{archive_type}"
            with tarfile.open(archive, mode) as tar:
                _safe_extractall(tar, dest)
    except DecompressionError:
        raise
    except (tarfile.TarError, zipfile.BadZipFile, zstandard.ZstdError, lzma.LZMAError, zlib.error, EOFError, OSError) as e:
        raise DecompressionError(f"Failed to extract archive {archive.name}: {e}") from e

    return dest
