import time
from typing import Callable

from .. import constants as const
from ..context import Session
from ..device import DeviceController
from ..errors import BootloaderTimeout, DeviceCommandError, FlashFailure
from ..i18n import get_string
from ..models import BootImage, BootImageVariant, DeviceMode
from ..ui import ui


def poll_until(
    predicate: Callable[[], bool],
    timeout: float,
    interval: float,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Call ``predicate`` every ``interval`` seconds until it holds or ``timeout`` passes.

    The predicate runs once more at the deadline, so a wait never gives up
    earlier than ``timeout`` and never runs longer than ``timeout + interval``.
    Returns False on timeout.
    """
    deadline = clock() + timeout
    while True:
        if predicate():
            return True
        if clock() >= deadline:
            return False
        sleep(interval)


class FlashOrchestrator:
    def __init__(
        self,
        session: Session,
        dev: DeviceController,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session
        self.dev = dev
        self.clock = clock
        self.sleep = sleep

    def reboot_to_bootloader(self) -> None:
        ui.info(get_string("flash_reboot_bootloader"))
        try:
            self.dev.reboot_to_bootloader()
        except DeviceCommandError as e:
            raise FlashFailure(str(e)) from e

    def wait_for_bootloader(self) -> None:
        timeout = self.session.bootloader_timeout
        interval = self.session.poll_interval
        ui.info(get_string("flash_wait_bootloader").format(timeout=timeout))

        def _in_bootloader() -> bool:
            if self.dev.get_mode() is DeviceMode.BOOTLOADER:
                return True
            ui.info(get_string("flash_wait_bootloader_loop").format(interval=interval))
            return False

        if not poll_until(_in_bootloader, timeout, interval, clock=self.clock, sleep=self.sleep):
            raise BootloaderTimeout(
                get_string("flash_err_bootloader_timeout").format(timeout=timeout)
            )
        ui.info(get_string("flash_bootloader_ok"))

    def flash(self, patched: BootImage) -> None:
        if patched.variant is not BootImageVariant.PATCHED:
            raise FlashFailure(get_string("flash_err_unpatched"))
        ui.info(get_string("flash_boot").format(name=patched.local_path.name))
        try:
            self.dev.flash_partition(const.BOOT_PARTITION, patched.local_path)
        except DeviceCommandError as e:
            raise FlashFailure(str(e)) from e
        ui.info(get_string("flash_boot_ok"))

    def reboot_normal(self) -> None:
        ui.info(get_string("flash_reboot_system"))
        try:
            self.dev.reboot_normal()
        except DeviceCommandError as e:
            raise FlashFailure(str(e)) from e

    def run(self, patched: BootImage) -> None:
        self.reboot_to_bootloader()
        self.wait_for_bootloader()
        self.flash(patched)
        self.reboot_normal()
