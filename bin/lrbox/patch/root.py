import posixpath
import shlex

from .. import constants as const
from ..context import Session
from ..device import DeviceController
from ..errors import DeviceCommandError, PatchFailure
from ..i18n import get_string
from ..models import BootImage, BootImageVariant
from ..ui import ui


class MagiskPatcher:
    """Runs Magisk's own ``boot_patch.sh`` on the device against a pushed boot image."""

    def __init__(self, session: Session, dev: DeviceController):
        self.session = session
        self.dev = dev

    def transfer_to_device(self, unpatched: BootImage) -> str:
        if unpatched.variant is not BootImageVariant.UNPATCHED:
            raise PatchFailure(get_string("patch_err_wrong_variant"))
        ui.info(get_string("patch_push_boot").format(dst=const.DEVICE_UNPATCHED_IMG))
        try:
            self.dev.push(unpatched.local_path, const.DEVICE_UNPATCHED_IMG)
        except DeviceCommandError as e:
            raise PatchFailure(str(e)) from e
        return const.DEVICE_UNPATCHED_IMG

    def patch_on_device(self) -> str:
        script = posixpath.join(const.MAGISK_DIR, const.MAGISK_BOOT_PATCH)
        raw_output = posixpath.join(const.MAGISK_DIR, const.MAGISK_RAW_OUTPUT)

        ui.info(get_string("patch_run_magisk"))
        # boot_patch.sh writes new-boot.img into its working directory.
        command = f"cd {shlex.quote(const.MAGISK_DIR)} && sh {shlex.quote(script)} {shlex.quote(const.DEVICE_UNPATCHED_IMG)}"
        output, code = self.dev.exec_root_shell(command)
        if code != 0:
            raise PatchFailure(
                get_string("patch_err_magisk_failed").format(code=code, out=output.strip())
            )

        output, code = self.dev.exec_root_shell(
            f"mv {shlex.quote(raw_output)} {shlex.quote(const.DEVICE_PATCHED_IMG)}"
        )
        if code != 0:
            raise PatchFailure(
                get_string("patch_err_rename").format(src=raw_output, dst=const.DEVICE_PATCHED_IMG)
            )
        ui.info(get_string("patch_magisk_ok").format(path=const.DEVICE_PATCHED_IMG))
        return const.DEVICE_PATCHED_IMG

    def retrieve_patched(self) -> BootImage:
        target = self.session.patched_image
        if target.exists():
            target.unlink()
        ui.info(get_string("patch_pull_patched").format(dst=target))
        try:
            local_path = self.dev.pull(const.DEVICE_PATCHED_IMG, target)
        except DeviceCommandError as e:
            raise PatchFailure(str(e)) from e
        return BootImage(variant=BootImageVariant.PATCHED, local_path=local_path)

    def patch(self, unpatched: BootImage) -> BootImage:
        self.transfer_to_device(unpatched)
        self.patch_on_device()
        return self.retrieve_patched()
