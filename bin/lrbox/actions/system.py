import posixpath
from typing import List

from .. import constants as const
from ..device import DeviceController
from ..errors import DeviceUnauthorized, DeviceUnreachable, PreconditionFailure
from ..i18n import get_string
from ..ui import ui


def check_device_connected(dev: DeviceController) -> None:
    state = dev.adb_state()
    if state == "device":
        ui.info(get_string("act_device_connected").format(serial=dev.serial))
        return
    if state == "unauthorized":
        raise DeviceUnauthorized(get_string("device_err_unauthorized").format(serial=dev.serial))
    if state is None and dev.is_in_bootloader_mode():
        raise PreconditionFailure(get_string("act_err_in_bootloader").format(serial=dev.serial))
    raise DeviceUnreachable(get_string("device_err_unreachable").format(serial=dev.serial))


def check_root(dev: DeviceController) -> None:
    output, code = dev.exec_root_shell("id")
    if code != 0 or "uid=0" not in output:
        raise PreconditionFailure(get_string("act_err_no_root"))
    ui.info(get_string("act_root_ok"))


def find_magisk_packages(dev: DeviceController) -> List[str]:
    output, code = dev.exec_shell("pm list packages")
    if code != 0:
        raise PreconditionFailure(get_string("act_err_list_packages"))
    packages = []
    for line in output.splitlines():
        name = line.strip().replace("package:", "", 1)
        if name and const.MAGISK_PACKAGE_MATCH in name.lower():
            packages.append(name)
    return packages


def check_magisk(dev: DeviceController) -> None:
    packages = find_magisk_packages(dev)
    if not packages:
        raise PreconditionFailure(get_string("act_err_magisk_missing"))
    if len(packages) > 1:
        raise PreconditionFailure(
            get_string("act_err_magisk_ambiguous").format(packages=", ".join(packages))
        )

    script = posixpath.join(const.MAGISK_DIR, const.MAGISK_BOOT_PATCH)
    if not dev.file_exists(script, as_root=True):
        raise PreconditionFailure(get_string("act_err_boot_patch_missing").format(path=script))
    ui.info(get_string("act_magisk_ok").format(package=packages[0]))


def check_preconditions(dev: DeviceController) -> None:
    check_device_connected(dev)
    check_root(dev)
    check_magisk(dev)
