"""Tests for artifact download, hashing and extraction."""

import asyncio
import hashlib
import io
import json
import tarfile
import zipfile

import pytest
import zstandard
from aiohttp import web
from aiohttp.test_utils import TestServer

from component_harvester._fetch.download import (
    ArtifactDownloader,
    compute_file_hashes,
    detect_archive_type,
    extract_archive,
)
from component_harvester.exceptions import DecompressionError, DownloadError
from component_harvester.http_client import USER_AGENT

PAYLOAD = b"conda package bytes " * 4096


def _tar_bytes(files, mode="w"):
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode=mode) as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


def _write_conda(path, pkg_files, info_files):
    """Build a .conda package: a zip of zstd-compressed tarballs."""
    cctx = zstandard.ZstdCompressor()
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("metadata.json", json.dumps({"conda_pkg_format_version": 2}))
        zf.writestr("pkg-numpy-1.26.4-py312h0_0.tar.zst", cctx.compress(_tar_bytes(pkg_files)))
        zf.writestr("info-numpy-1.26.4-py312h0_0.tar.zst", cctx.compress(_tar_bytes(info_files)))


def _run_with_server(routes, scenario):
    """Serve ``routes`` locally and run ``scenario(url_for)`` against them."""

    async def runner():
        app = web.Application()
        for path, handler in routes.items():
            app.router.add_get(path, handler)
        async with TestServer(app) as server:
            return await scenario(lambda path: str(server.make_url(path)))

    return asyncio.run(runner())


class TestDownload:
    def test_streams_body_to_destination(self, tmp_path):
        seen_headers = {}

        async def handler(request):
            seen_headers.update(request.headers)
            return web.Response(body=PAYLOAD)

        destination = tmp_path / "numpy.conda"

        async def scenario(url_for):
            async with ArtifactDownloader(chunk_size=1024) as downloader:
                return await downloader.download(url_for("/numpy.conda"), destination)

        result = _run_with_server({"/numpy.conda": handler}, scenario)

        assert result == destination
        assert destination.read_bytes() == PAYLOAD
        assert seen_headers["User-Agent"] == USER_AGENT
        assert list(tmp_path.iterdir()) == [destination]

    def test_non_2xx_raises_with_status(self, tmp_path):
        async def handler(request):
            return web.Response(status=404, text="not found")

        destination = tmp_path / "missing.conda"

        async def scenario(url_for):
            async with ArtifactDownloader() as downloader:
                await downloader.download(url_for("/missing.conda"), destination)

        with pytest.raises(DownloadError) as exc_info:
            _run_with_server({"/missing.conda": handler}, scenario)

        assert exc_info.value.status == 404
        assert exc_info.value.url.endswith("/missing.conda")
        assert list(tmp_path.iterdir()) == []

    def test_failed_download_keeps_previous_file(self, tmp_path):
        async def handler(request):
            return web.Response(status=500)

        destination = tmp_path / "channeldata.json"
        destination.write_text('{"packages": {}}')

        async def scenario(url_for):
            async with ArtifactDownloader() as downloader:
                await downloader.download(url_for("/channeldata.json"), destination)

        with pytest.raises(DownloadError):
            _run_with_server({"/channeldata.json": handler}, scenario)

        assert destination.read_text() == '{"packages": {}}'
        assert list(tmp_path.iterdir()) == [destination]

    def test_connection_error_raises_download_error(self, tmp_path):
        async def scenario():
            async with ArtifactDownloader(timeout=5) as downloader:
                await downloader.download("http://127.0.0.1:1/unreachable", tmp_path / "x")

        with pytest.raises(DownloadError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.status is None

    def test_compute_hashes_async(self, tmp_path):
        path = tmp_path / "artifact"
        path.write_bytes(PAYLOAD)

        async def scenario():
            async with ArtifactDownloader() as downloader:
                return await downloader.compute_hashes(path)

        assert asyncio.run(scenario()) == {
            "sha1": hashlib.sha1(PAYLOAD).hexdigest(),
            "sha256": hashlib.sha256(PAYLOAD).hexdigest(),
        }


class TestComputeFileHashes:
    def test_known_digests(self, tmp_path):
        path = tmp_path / "empty"
        path.write_bytes(b"")
        assert compute_file_hashes(path) == {
            "sha1": "da39a3ee5e6b4b0d3255bfef95601890afd80709",
            "sha256": "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855",
        }

    def test_small_chunks(self, tmp_path):
        path = tmp_path / "artifact"
        path.write_bytes(PAYLOAD)
        assert compute_file_hashes(path, chunk_size=7)["sha256"] == hashlib.sha256(PAYLOAD).hexdigest()


class TestDetectArchiveType:
    @pytest.mark.parametrize("mode, expected", [("w:gz", "gz"), ("w:bz2", "bz2"), ("w:xz", "xz"), ("w", "tar")])
    def test_tarballs(self, tmp_path, mode, expected):
        path = tmp_path / "archive"
        path.write_bytes(_tar_bytes({"a.txt": b"a"}, mode=mode))
        assert detect_archive_type(path) == expected

    def test_zip(self, tmp_path):
        path = tmp_path / "archive"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("a.txt", "a")
        assert detect_archive_type(path) == "zip"

    def test_conda(self, tmp_path):
        path = tmp_path / "archive"
        _write_conda(path, {"lib/a.txt": b"a"}, {"info/index.json": b"{}"})
        assert detect_archive_type(path) == "conda"

    def test_zstd(self, tmp_path):
        path = tmp_path / "archive"
        path.write_bytes(zstandard.ZstdCompressor().compress(_tar_bytes({"a.txt": b"a"})))
        assert detect_archive_type(path) == "zst"

    def test_unsupported(self, tmp_path):
        path = tmp_path / "archive"
        path.write_bytes(b"just some text")
        with pytest.raises(DecompressionError, match="Unsupported archive format"):
            detect_archive_type(path)


class TestExtractArchive:
    def test_tar_gz(self, tmp_path):
        archive = tmp_path / "numpy.tar.gz"
        archive.write_bytes(_tar_bytes({"numpy-1.13.0/setup.py": b"print('hi')"}, mode="w:gz"))
        dest = extract_archive(archive, tmp_path / "out")
        assert (dest / "numpy-1.13.0" / "setup.py").read_bytes() == b"print('hi')"

    def test_tar_bz2(self, tmp_path):
        archive = tmp_path / "numpy.tar.bz2"
        archive.write_bytes(_tar_bytes({"info/index.json": b"{}"}, mode="w:bz2"))
        dest = extract_archive(archive, tmp_path / "out")
        assert (dest / "info" / "index.json").is_file()

    def test_zip(self, tmp_path):
        archive = tmp_path / "numpy.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("numpy/__init__.py", "")
        dest = extract_archive(archive, tmp_path / "out")
        assert (dest / "numpy" / "__init__.py").is_file()

    def test_tar_zst(self, tmp_path):
        archive = tmp_path / "numpy.tar.zst"
        archive.write_bytes(zstandard.ZstdCompressor().compress(_tar_bytes({"a/b.txt": b"b"})))
        dest = extract_archive(archive, tmp_path / "out")
        assert (dest / "a" / "b.txt").read_bytes() == b"b"

    def test_conda_package(self, tmp_path):
        archive = tmp_path / "numpy-1.26.4-py312h0_0.conda"
        _write_conda(
            archive,
            {"lib/python3.12/site-packages/numpy/__init__.py": b"# numpy"},
            {"info/index.json": b'{"name": "numpy"}'},
        )
        dest = extract_archive(archive, tmp_path / "out")
        assert (dest / "lib" / "python3.12" / "site-packages" / "numpy" / "__init__.py").is_file()
        assert (dest / "info" / "index.json").read_bytes() == b'{"name": "numpy"}'
        assert not (dest / "metadata.json").exists()

    def test_missing_archive(self, tmp_path):
        with pytest.raises(DecompressionError, match="not found"):
            extract_archive(tmp_path / "nope.tar.gz", tmp_path / "out")

    def test_corrupt_gzip(self, tmp_path):
        archive = tmp_path / "broken.tar.gz"
        archive.write_bytes(b"\x1f\x8b" + b"\x00" * 64)
        with pytest.raises(DecompressionError):
            extract_archive(archive, tmp_path / "out")

    def test_truncated_tar_bz2(self, tmp_path):
        archive = tmp_path / "truncated.tar.bz2"
        data = _tar_bytes({"big.bin": bytes(range(256)) * 400}, mode="w:bz2")
        archive.write_bytes(data[: len(data) // 2])
        with pytest.raises(DecompressionError):
            extract_archive(archive, tmp_path / "out")

    def test_corrupt_zip(self, tmp_path):
        archive = tmp_path / "broken.zip"
        archive.write_bytes(b"PK\x03\x04" + b"\x00" * 32)
        with pytest.raises(DecompressionError):
            extract_archive(archive, tmp_path / "out")

    def test_rejects_path_traversal(self, tmp_path):
        archive = tmp_path / "evil.tar"
        archive.write_bytes(_tar_bytes({"../escaped.txt": b"x"}))
        with pytest.raises(DecompressionError):
            extract_archive(archive, tmp_path / "out")
        assert not (tmp_path / "escaped.txt").exists()
