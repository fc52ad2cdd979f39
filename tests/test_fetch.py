"""End-to-end tests for fetch_components against a local channel server."""

import asyncio
import io
import tarfile
from pathlib import Path
from unittest.mock import patch

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from component_harvester._fetch import CondaFetcher, Spec
from component_harvester.config import HarvesterConfig
from component_harvester.exceptions import MalformedSpecError
from component_harvester.fetch import create_default_registry, fetch_components, parse_component

PACKAGE_FILE = "tqdm-4.66.1-pyhd8ed1ab_0.tar.bz2"


def _archive():
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:bz2") as tar:
        content = b'{"name": "tqdm", "version": "4.66.1"}'
        info = tarfile.TarInfo("info/index.json")
        info.size = len(content)
        tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


class ChannelServer:
    """Minimal conda channel served with aiohttp."""

    def __init__(self):
        self.hits = []
        self.app = web.Application()
        self.app.router.add_get("/conda-forge/{path:.*}", self.serve)

    async def serve(self, request):
        path = request.match_info["path"]
        self.hits.append(path)
        if path == "channeldata.json":
            return web.json_response(
                {
                    "packages": {
                        "tqdm": {
                            "subdirs": ["noarch"],
                            "version": "4.66.1",
                            "license": "MPL-2.0 or MIT",
                            "timestamp": 784111777,
                        }
                    }
                }
            )
        if path == "noarch/repodata.json":
            return web.json_response(
                {
                    "packages": {
                        PACKAGE_FILE: {
                            "name": "tqdm",
                            "version": "4.66.1",
                            "build": "pyhd8ed1ab_0",
                            "license": "MPL-2.0 or MIT",
                            "timestamp": 784111777000,
                        }
                    }
                }
            )
        if path == f"noarch/{PACKAGE_FILE}":
            return web.Response(body=_archive())
        return web.Response(status=404)


class UnavailableArtifactServer(ChannelServer):
    """Channel whose indexes work but whose artifacts answer 503."""

    async def serve(self, request):
        if request.match_info["path"].endswith(".tar.bz2"):
            return web.Response(status=503)
        return await super().serve(request)


@pytest.fixture
def config(tmp_path):
    temp_dir = tmp_path / "temp"
    temp_dir.mkdir()
    return HarvesterConfig(cache_dir=tmp_path / "cache", temp_dir=temp_dir, concurrency=2, request_timeout=30)


def _run(channel, components, config):
    async def scenario():
        async with TestServer(channel.app) as server:
            channels = {"conda-forge": str(server.make_url("/conda-forge"))}
            with patch.dict("component_harvester._fetch.fetchers.conda.CONDA_CHANNELS", channels, clear=True):
                return await fetch_components(components, config)

    return asyncio.run(scenario())


class TestFetchComponents:
    def test_fetches_binary_package(self, config):
        channel = ChannelServer()
        [outcome] = _run(channel, ["conda/conda-forge/-/tqdm/_-_"], config)

        assert outcome.is_success, outcome
        result = outcome.fetch_result
        assert result.url == "conda/conda-forge/noarch/tqdm/4.66.1-pyhd8ed1ab_0"
        assert result.release_date == "Sun, 06 Nov 1994 08:49:37 GMT"
        assert result.declared_licenses == "MPL-2.0 or MIT"
        assert set(result.hashes) == {"sha1", "sha256"}
        assert Path(result.location).parent == config.temp_dir
        assert (config.cache_dir / "conda-forge-channelDataFile.json").is_file()
        assert (config.cache_dir / "conda-forge-repoDataFile-noarch.json").is_file()

        result.cleanup()
        assert list(config.temp_dir.iterdir()) == []

    def test_indexes_fetched_once_per_batch(self, config):
        channel = ChannelServer()
        outcomes = _run(
            channel,
            ["conda/conda-forge/-/tqdm/_-_", "pkg:conda/tqdm@4.66.1?channel=conda-forge", "conda/conda-forge/-/missing/_-_"],
            config,
        )

        assert [o.status for o in outcomes] == ["success", "success", "skip"]
        assert channel.hits.count("channeldata.json") == 1
        assert channel.hits.count("noarch/repodata.json") == 1
        for outcome in outcomes:
            if outcome.fetch_result is not None:
                outcome.fetch_result.cleanup()

    def test_unknown_provider_is_skipped(self, config):
        [outcome] = _run(ChannelServer(), ["conda/foo/-/tqdm/_-_"], config)
        assert outcome.is_skip
        assert outcome.skip_reason == "Unsupported provider: foo"

    def test_missing_artifact_is_failure(self, config):
        [outcome] = _run(UnavailableArtifactServer(), ["conda/conda-forge/noarch/tqdm/_-_"], config)

        assert outcome.is_failure
        assert outcome.retryable
        assert outcome.error.status == 503
        assert list(config.temp_dir.iterdir()) == []

    def test_malformed_component(self, config):
        with pytest.raises(MalformedSpecError):
            asyncio.run(fetch_components(["conda/numpy"], config))


class TestHelpers:
    def test_parse_component_coordinate(self):
        assert parse_component("conda/conda-forge/-/numpy/_-_") == Spec("conda", "conda-forge", None, "numpy", "_-_")

    def test_parse_component_purl(self):
        spec = parse_component("pkg:conda/numpy@1.26.4?channel=conda-forge")
        assert spec.to_url() == "conda/conda-forge/-/numpy/1.26.4-_"

    def test_default_registry(self, config):
        registry = create_default_registry(object(), object(), config)
        [fetcher] = registry.fetchers
        assert isinstance(fetcher, CondaFetcher)
        assert registry.list_fetchers() == [{"name": "conda"}]
