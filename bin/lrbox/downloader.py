import os
import re
import stat
import shlex
from pathlib import Path
from typing import Optional

import requests  # type: ignore[import-untyped]

from . import constants as const
from . import net
from .context import Session
from .device import DeviceController
from .errors import AcquisitionFailure, DeviceCommandError, ToolError
from .i18n import get_string
from .models import BuildArtifact, BuildSource, DeviceIdentity
from .ui import ui
from .utils import CommandRunner, format_command_output

DOWNLOAD_CHUNK_SIZE = 1024 * 1024


def build_filename(identity: DeviceIdentity) -> str:
    return f"{const.ARCHIVE_PREFIX}{identity.normalized_version}{const.ARCHIVE_SUFFIX}"


def device_cache_path(identity: DeviceIdentity) -> str:
    return f"{const.DEVICE_CACHE_DIR.rstrip('/')}/{build_filename(identity)}"


def download_page_url(identity: DeviceIdentity) -> str:
    return const.DOWNLOAD_PAGE_URL.format(codename=identity.model_codename)


def digest_url(build_url: str) -> str:
    return f"{build_url}{const.DIGEST_QUERY}"


def find_build_url(page: str, identity: DeviceIdentity) -> Optional[str]:
    pattern = (
        rf"https://{re.escape(const.MIRROR_HOST)}/(?:[^\s\"'<>]*/)?{re.escape(const.ARCHIVE_PREFIX)}"
        rf"{re.escape(identity.normalized_version)}{re.escape(const.ARCHIVE_SUFFIX)}"
    )
    # Several builds may be listed; the first one on the page is canonical.
    match = re.search(pattern, page, flags=re.IGNORECASE)
    return match.group(0) if match else None


def download_resource(url: str, dest_path: Path) -> Path:
    ui.info(get_string("dl_downloading").format(filename=dest_path.name, url=url))
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with net.request_with_retries("GET", url, allow_redirects=True) as response:
            with open(dest_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
    except (requests.RequestException, OSError) as e:
        if dest_path.exists():
            dest_path.unlink()
        raise AcquisitionFailure(get_string("dl_err_download").format(url=url, e=e)) from e

    ui.info(get_string("dl_download_success").format(filename=dest_path.name))
    return dest_path


class BuildAcquirer:
    def __init__(self, session: Session, dev: DeviceController):
        self.session = session
        self.dev = dev

    def acquire(self, identity: DeviceIdentity) -> BuildArtifact:
        self.session.ensure_work_dir()
        cache_path = device_cache_path(identity)

        ui.info(get_string("dl_check_cache").format(path=cache_path))
        try:
            cached = self.dev.file_exists(cache_path, as_root=True)
        except DeviceCommandError as e:
            raise AcquisitionFailure(str(e)) from e

        if cached:
            return self.pull_from_cache(cache_path)

        ui.info(get_string("dl_cache_miss"))
        return self.download_from_catalog(identity)

    def pull_from_cache(self, cache_path: str) -> BuildArtifact:
        ui.info(get_string("dl_cache_hit").format(path=cache_path))
        staged = const.DEVICE_CACHE_COPY

        # The updater cache is root-only; stage a readable copy for adb pull.
        out, code = self.dev.exec_root_shell(f"cp {shlex.quote(cache_path)} {shlex.quote(staged)}")
        if code != 0:
            raise AcquisitionFailure(
                get_string("dl_err_cache_copy").format(path=cache_path, out=out.strip())
            )
        try:
            local_path = self.dev.pull(staged, self.session.build_zip)
        except DeviceCommandError as e:
            raise AcquisitionFailure(str(e)) from e

        _, code = self.dev.exec_shell(f"rm -f {shlex.quote(staged)}")
        if code != 0:
            ui.warn(get_string("dl_warn_cache_copy_left").format(path=staged))

        return BuildArtifact(
            local_path=local_path,
            source=BuildSource.DEVICE_CACHE,
            size=local_path.stat().st_size,
        )

    def resolve_build_url(self, identity: DeviceIdentity) -> str:
        page_url = download_page_url(identity)
        ui.info(get_string("dl_fetch_page").format(url=page_url))
        try:
            page = net.fetch_text(page_url)
        except requests.RequestException as e:
            raise AcquisitionFailure(
                get_string("dl_err_fetch_page").format(url=page_url, e=e)
            ) from e

        build_url = find_build_url(page, identity)
        if not build_url:
            raise AcquisitionFailure(
                get_string("dl_err_no_build_url").format(
                    version=identity.normalized_version, url=page_url
                )
            )
        ui.info(get_string("dl_found_build_url").format(url=build_url))
        return build_url

    def download_from_catalog(self, identity: DeviceIdentity) -> BuildArtifact:
        build_url = self.resolve_build_url(identity)
        local_path = download_resource(build_url, self.session.build_zip)
        return BuildArtifact(
            local_path=local_path,
            source=BuildSource.CATALOG,
            size=local_path.stat().st_size,
            url=build_url,
        )


class OtaExtractorFetcher:
    """Checks out the pinned extract-tools revision and locates ``ota_extractor``."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        repo_url: str = const.OTA_EXTRACTOR_REPO_URL,
        ref: str = const.OTA_EXTRACTOR_REF,
        binary: str = const.OTA_EXTRACTOR_BINARY,
    ):
        self.runner = runner or CommandRunner()
        self.repo_url = repo_url
        self.ref = ref
        self.binary = binary

    def fetch(self, scratch_dir: Path) -> Path:
        checkout = scratch_dir / "extract-tools"
        ui.info(get_string("dl_fetch_extractor").format(repo=self.repo_url, ref=self.ref))
        command = [
            str(const.GIT_EXE), "clone", "--depth", "1",
            "--branch", self.ref, self.repo_url, str(checkout),
        ]
        try:
            result = self.runner.run(command, check=False, capture=False)
        except FileNotFoundError as e:
            raise ToolError(get_string("dl_err_fetch_extractor").format(e=e)) from e
        if result.returncode != 0:
            raise ToolError(
                get_string("dl_err_fetch_extractor").format(e=format_command_output(result))
            )

        tool = checkout / self.binary
        if not tool.is_file():
            raise ToolError(get_string("dl_err_extractor_missing").format(path=tool))

        mode = os.stat(tool).st_mode
        os.chmod(tool, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return tool


class LocalToolFetcher:
    """Serves an already available extractor binary, e.g. a fixture or a local build."""

    def __init__(self, tool_path: Path):
        self.tool_path = Path(tool_path)

    def fetch(self, scratch_dir: Path) -> Path:
        if not self.tool_path.is_file():
            raise ToolError(get_string("dl_err_extractor_missing").format(path=self.tool_path))
        return self.tool_path
