import subprocess
import time
from typing import Any, Callable, Optional, Union

from . import integrity, ota, utils
from .actions import FlashOrchestrator, check_preconditions
from .context import Session
from .device import DeviceController
from .downloader import BuildAcquirer, LocalToolFetcher, OtaExtractorFetcher, digest_url
from .errors import ToolError
from .i18n import get_string
from .models import BootImage, BuildArtifact, BuildSource, DeviceIdentity
from .patch.root import MagiskPatcher
from .ui import ui


class Pipeline:
    """Fixed, fail-fast sequence from preconditions to the final reboot.

    Each step runs to completion before the next starts; the first error
    stops the run and leaves the device and work dir as they are.
    """

    def __init__(
        self,
        session: Session,
        dev: DeviceController,
        tool_fetcher: Optional[Union[OtaExtractorFetcher, LocalToolFetcher]] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        check_tools: Optional[Callable[[], None]] = None,
    ):
        self.session = session
        self.dev = dev
        self.acquirer = BuildAcquirer(session, dev)
        self.extractor = ota.BootImageExtractor(session, dev.runner, tool_fetcher)
        self.patcher = MagiskPatcher(session, dev)
        self.flasher = FlashOrchestrator(session, dev, clock=clock, sleep=sleep)
        self.check_tools = check_tools or self._check_tools

    def _check_tools(self) -> None:
        # git is only needed to clone extract-tools.
        fetches_tools = isinstance(self.extractor.tool_fetcher, OtaExtractorFetcher)
        utils.check_dependencies(utils.required_tools(include_git=fetches_tools))

    def _step(self, title_key: str, func: Callable[..., Any], *args: Any) -> Any:
        title = get_string(title_key)
        ui.echo(title)
        stage = title.strip().strip("-").strip()
        try:
            return func(*args)
        except ToolError as e:
            if not getattr(e, "step", None):
                e.step = stage
            raise
        except (subprocess.CalledProcessError, OSError) as e:
            error = ToolError(get_string("wf_err_unexpected").format(e=e))
            error.step = stage
            raise error from e

    def _verify_build(self, artifact: BuildArtifact) -> None:
        if artifact.source is BuildSource.DEVICE_CACHE:
            ui.info(get_string("wf_integrity_cache_skip"))
            return
        reference = integrity.fetch_reference_digest(digest_url(artifact.url))
        computed = integrity.compute_digest(artifact.local_path)
        integrity.verify(reference, computed)

    def _confirm_flash(self) -> None:
        if self.session.assume_yes:
            return
        if not ui.confirm(get_string("wf_confirm_flash").format(serial=self.session.serial)):
            raise ToolError(get_string("process_cancelled"))

    def prepare_boot_image(self) -> BootImage:
        self._step("wf_step1_tools", self.check_tools)
        self._step("wf_step2_device", check_preconditions, self.dev)
        identity: DeviceIdentity = self._step("wf_step3_identity", self.dev.read_identity)
        artifact: BuildArtifact = self._step("wf_step4_acquire", self.acquirer.acquire, identity)
        self._step("wf_step5_verify", self._verify_build, artifact)
        package_format = self._step("wf_step6_detect", ota.classify, artifact.local_path)
        return self._step("wf_step7_extract", self.extractor.extract, artifact, package_format)

    def run(self) -> BootImage:
        unpatched = self.prepare_boot_image()
        patched: BootImage = self._step("wf_step8_patch", self.patcher.patch, unpatched)
        self._step("wf_step9_confirm", self._confirm_flash)
        self._step("wf_step10_flash", self.flasher.run, patched)
        return patched


def root_device(session: Session, dev: DeviceController, **kwargs: Any) -> str:
    patched = Pipeline(session, dev, **kwargs).run()
    success_msg = get_string("wf_process_complete")
    success_msg += f"\n{get_string('wf_patched_saved').format(path=patched.local_path)}"
    return success_msg


def extract_boot_image(session: Session, dev: DeviceController, **kwargs: Any) -> str:
    unpatched = Pipeline(session, dev, **kwargs).prepare_boot_image()
    return get_string("wf_extract_complete").format(path=unpatched.local_path)
