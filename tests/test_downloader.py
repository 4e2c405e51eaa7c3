import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests
from conftest import SERIAL, write_to_last_arg
from lrbox import constants as const
from lrbox import downloader
from lrbox.errors import AcquisitionFailure, ToolError
from lrbox.models import BuildSource, DeviceIdentity

BUILD_NAME = "lineage-21.0-20240101-nightly-lemonadep-signed.zip"
MIRROR = "https://mirrorbits.lineageos.org/full/lemonadep/20240101"


def _page(*urls):
    links = "\n".join(f'<a href="{url}">{url.rsplit("/", 1)[-1]}</a>' for url in urls)
    return f"<html><body>{links}</body></html>"


class TestNaming:
    def test_build_filename_uses_normalized_version(self, identity):
        assert downloader.build_filename(identity) == BUILD_NAME

    def test_device_cache_path(self, identity):
        assert downloader.device_cache_path(identity) == f"/data/lineageos_updates/{BUILD_NAME}"

    def test_download_page_url(self, identity):
        assert downloader.download_page_url(identity) == (
            "https://download.lineageos.org/devices/lemonadep/builds"
        )

    def test_digest_url(self):
        assert downloader.digest_url(f"{MIRROR}/{BUILD_NAME}") == f"{MIRROR}/{BUILD_NAME}?sha256"


class TestFindBuildUrl:
    def test_first_match_wins(self, identity):
        page = _page(f"{MIRROR}/{BUILD_NAME}", f"{MIRROR}-mirror2/{BUILD_NAME}")
        assert downloader.find_build_url(page, identity) == f"{MIRROR}/{BUILD_NAME}"

    def test_other_hosts_are_ignored(self, identity):
        page = _page(f"https://example.org/{BUILD_NAME}", f"{MIRROR}/{BUILD_NAME}")
        assert downloader.find_build_url(page, identity) == f"{MIRROR}/{BUILD_NAME}"

    def test_other_versions_are_ignored(self, identity):
        page = _page(f"{MIRROR}/lineage-20.0-20231201-nightly-lemonadep-signed.zip")
        assert downloader.find_build_url(page, identity) is None

    def test_longer_version_with_same_tail_is_ignored(self, identity):
        page = _page(
            f"{MIRROR}/lineage-121.0-20240101-nightly-lemonadep-signed.zip",
            f"{MIRROR}/{BUILD_NAME}",
        )
        assert downloader.find_build_url(page, identity) == f"{MIRROR}/{BUILD_NAME}"

    def test_build_at_mirror_root(self, identity):
        url = f"https://mirrorbits.lineageos.org/{BUILD_NAME}"
        assert downloader.find_build_url(_page(url), identity) == url

    def test_version_case_is_ignored(self, identity):
        url = f"{MIRROR}/lineage-21.0-20240101-NIGHTLY-lemonadep-signed.zip"
        assert downloader.find_build_url(_page(url), identity) == url


class TestAcquireFromCache:
    def test_cache_hit_pulls_without_network(self, session, dev, runner, identity):
        runner.on("pull", action=write_to_last_arg(b"cached build"))

        with patch("lrbox.downloader.net.fetch_text") as fetch, \
                patch("lrbox.downloader.download_resource") as download:
            artifact = downloader.BuildAcquirer(session, dev).acquire(identity)

        fetch.assert_not_called()
        download.assert_not_called()
        assert artifact.source is BuildSource.DEVICE_CACHE
        assert artifact.local_path == session.build_zip
        assert artifact.size == len(b"cached build")
        assert artifact.url is None

        cache_path = f"/data/lineageos_updates/{BUILD_NAME}"
        assert runner.find_calls("test -f", cache_path)
        assert runner.find_calls("cp", cache_path, const.DEVICE_CACHE_COPY)
        assert runner.find_calls("pull", const.DEVICE_CACHE_COPY)
        assert runner.find_calls("rm -f", const.DEVICE_CACHE_COPY)

    def test_copy_failure(self, session, dev, runner, identity):
        runner.on("cp ", stdout="cp: Permission denied", returncode=1)
        with pytest.raises(AcquisitionFailure):
            downloader.BuildAcquirer(session, dev).acquire(identity)

    def test_pull_failure(self, session, dev, runner, identity):
        runner.on("pull", stderr="adb: error: failed to copy", returncode=1)
        with pytest.raises(AcquisitionFailure) as exc:
            downloader.BuildAcquirer(session, dev).acquire(identity)
        assert exc.value.exit_code == 6

    def test_leftover_copy_only_warns(self, session, dev, runner, identity):
        runner.on("pull", action=write_to_last_arg(b"z"))
        runner.on("rm -f", returncode=1)
        artifact = downloader.BuildAcquirer(session, dev).acquire(identity)
        assert artifact.source is BuildSource.DEVICE_CACHE


class TestAcquireFromCatalog:
    def _fake_download(self, url, dest_path):
        dest_path.write_bytes(b"downloaded")
        return dest_path

    def test_cache_miss_downloads_exact_build(self, session, dev, runner):
        identity = DeviceIdentity(SERIAL, "lemonadep", "2024-01-01-NIGHTLY")
        expected = f"{MIRROR}/lineage-2024-01-01-nightly-signed.zip"
        runner.on("test -f", returncode=1)

        page = _page(f"{MIRROR}/lineage-2023-12-01-nightly-signed.zip", expected)
        with patch("lrbox.downloader.net.fetch_text", return_value=page) as fetch, \
                patch("lrbox.downloader.download_resource", side_effect=self._fake_download) as download:
            artifact = downloader.BuildAcquirer(session, dev).acquire(identity)

        fetch.assert_called_once_with("https://download.lineageos.org/devices/lemonadep/builds")
        download.assert_called_once_with(expected, session.build_zip)
        assert artifact.source is BuildSource.CATALOG
        assert artifact.url.endswith("2024-01-01-nightly-signed.zip")
        assert artifact.size == len(b"downloaded")
        assert not runner.find_calls("pull")

    def test_no_matching_build(self, session, dev, runner, identity):
        runner.on("test -f", returncode=1)
        with patch("lrbox.downloader.net.fetch_text", return_value=_page()):
            with pytest.raises(AcquisitionFailure):
                downloader.BuildAcquirer(session, dev).acquire(identity)

    def test_page_unavailable(self, session, dev, runner, identity):
        runner.on("test -f", returncode=1)
        with patch(
            "lrbox.downloader.net.fetch_text",
            side_effect=requests.HTTPError("404 Client Error"),
        ):
            with pytest.raises(AcquisitionFailure):
                downloader.BuildAcquirer(session, dev).acquire(identity)


class TestDownloadResource:
    @patch("lrbox.downloader.net.request_with_retries")
    def test_streams_to_file(self, mock_request, tmp_path):
        response = MagicMock()
        response.iter_content.return_value = [b"abc", b"", b"def"]
        mock_request.return_value.__enter__.return_value = response

        dest = downloader.download_resource("https://example.org/x.zip", tmp_path / "d" / "x.zip")

        assert dest.read_bytes() == b"abcdef"
        mock_request.assert_called_once_with("GET", "https://example.org/x.zip", allow_redirects=True)

    @patch("lrbox.downloader.net.request_with_retries")
    def test_partial_file_is_removed(self, mock_request, tmp_path):
        def _chunks(chunk_size):
            yield b"partial"
            raise requests.ConnectionError("connection reset")

        response = MagicMock()
        response.iter_content.side_effect = _chunks
        mock_request.return_value.__enter__.return_value = response
        dest = tmp_path / "x.zip"

        with pytest.raises(AcquisitionFailure):
            downloader.download_resource("https://example.org/x.zip", dest)

        assert not dest.exists()


class TestOtaExtractorFetcher:
    def _clone(self, command):
        tool = Path(command[-1]) / const.OTA_EXTRACTOR_BINARY
        tool.parent.mkdir(parents=True)
        tool.write_bytes(b"\x7fELF")

    def test_clone_pinned_ref(self, runner, tmp_path):
        runner.on("git", "clone", action=self._clone)

        tool = downloader.OtaExtractorFetcher(runner).fetch(tmp_path)

        assert tool == tmp_path / "extract-tools" / const.OTA_EXTRACTOR_BINARY
        assert os.access(tool, os.X_OK)
        assert runner.captured[-1] is False
        command = runner.calls[-1]
        assert command[:5] == ["git", "clone", "--depth", "1", "--branch"]
        assert command[5] == const.OTA_EXTRACTOR_REF
        assert command[6] == const.OTA_EXTRACTOR_REPO_URL

    def test_clone_failure(self, runner, tmp_path):
        runner.on("clone", stderr="fatal: Remote branch not found", returncode=128)
        with pytest.raises(ToolError):
            downloader.OtaExtractorFetcher(runner).fetch(tmp_path)

    def test_binary_missing_from_checkout(self, runner, tmp_path):
        with pytest.raises(ToolError):
            downloader.OtaExtractorFetcher(runner).fetch(tmp_path)


def test_local_tool_fetcher(tmp_path):
    tool = tmp_path / "ota_extractor"
    tool.write_bytes(b"")
    assert downloader.LocalToolFetcher(tool).fetch(tmp_path / "scratch") == tool

    with pytest.raises(ToolError):
        downloader.LocalToolFetcher(tmp_path / "missing").fetch(tmp_path)
