import re
import shlex
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from . import constants as const
from .context import Session
from .errors import DeviceCommandError, DeviceUnauthorized, DeviceUnreachable, PreconditionFailure
from .i18n import get_string
from .models import DeviceIdentity, DeviceMode
from .ui import ui
from .utils import CommandRunner, format_command_output

_UNREACHABLE_PATTERNS = (
    re.compile(r"device '[^']*' not found"),
    re.compile(r"no devices/emulators found"),
    re.compile(r"device offline"),
    re.compile(r"device still connecting"),
)
_UNAUTHORIZED_PATTERN = re.compile(r"device unauthorized")


def parse_device_list(output: str) -> Dict[str, str]:
    """Parse ``adb devices`` / ``fastboot devices`` output into {serial: state}."""
    devices = {}
    for line in output.splitlines():
        line = line.strip()
        if not line or line.startswith("List of devices") or line.startswith("*"):
            continue
        parts = line.split()
        if len(parts) >= 2:
            devices[parts[0]] = parts[1]
    return devices


class AdbManager:
    def __init__(self, serial: str, runner: CommandRunner):
        self.serial = serial
        self.runner = runner

    def _command(self, *args: str) -> List[str]:
        return [str(const.ADB_EXE), "-s", self.serial, *args]

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        try:
            result = self.runner.run(args, check=False, capture=True)
        except FileNotFoundError as e:
            raise PreconditionFailure(get_string("device_err_adb_missing").format(e=e)) from e

        stderr = result.stderr or ""
        if any(p.search(stderr) for p in _UNREACHABLE_PATTERNS):
            raise DeviceUnreachable(get_string("device_err_unreachable").format(serial=self.serial))
        if _UNAUTHORIZED_PATTERN.search(stderr):
            raise DeviceUnauthorized(get_string("device_err_unauthorized").format(serial=self.serial))
        return result

    def get_state(self) -> Optional[str]:
        try:
            result = self.runner.run([str(const.ADB_EXE), "devices"], check=False, capture=True)
        except FileNotFoundError as e:
            raise PreconditionFailure(get_string("device_err_adb_missing").format(e=e)) from e
        return parse_device_list(result.stdout or "").get(self.serial)

    def shell(self, command: str) -> Tuple[str, int]:
        result = self._run(self._command("shell", command))
        return (result.stdout or ""), result.returncode

    def get_prop(self, name: str) -> str:
        output, code = self.shell(f"getprop {shlex.quote(name)}")
        if code != 0:
            raise DeviceCommandError(get_string("device_err_getprop").format(name=name))
        return output.strip()

    def push(self, local_path: Union[str, Path], remote_path: str) -> None:
        result = self._run(self._command("push", str(local_path), remote_path))
        if result.returncode != 0:
            raise DeviceCommandError(
                get_string("device_err_push").format(
                    src=local_path, dst=remote_path, out=format_command_output(result)
                )
            )

    def pull(self, remote_path: str, local_path: Union[str, Path]) -> Path:
        local_path = Path(local_path)
        local_path.parent.mkdir(parents=True, exist_ok=True)
        result = self._run(self._command("pull", remote_path, str(local_path)))
        if result.returncode != 0 or not local_path.exists():
            raise DeviceCommandError(
                get_string("device_err_pull").format(
                    src=remote_path, out=format_command_output(result)
                )
            )
        return local_path

    def reboot_bootloader(self) -> None:
        result = self._run(self._command("reboot", "bootloader"))
        if result.returncode != 0:
            raise DeviceCommandError(
                get_string("device_err_reboot").format(e=format_command_output(result))
            )


class FastbootManager:
    def __init__(self, serial: str, runner: CommandRunner):
        self.serial = serial
        self.runner = runner

    def _command(self, *args: str) -> List[str]:
        return [str(const.FASTBOOT_EXE), "-s", self.serial, *args]

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        try:
            return self.runner.run(args, check=False, capture=True)
        except FileNotFoundError as e:
            raise PreconditionFailure(get_string("device_err_fastboot_missing").format(e=e)) from e

    def list_devices(self) -> Dict[str, str]:
        result = self._run([str(const.FASTBOOT_EXE), "devices"])
        return parse_device_list(result.stdout or "")

    def check_device(self) -> bool:
        return self.list_devices().get(self.serial) == "fastboot"

    def _require_device(self) -> None:
        if not self.check_device():
            raise DeviceUnreachable(
                get_string("device_err_fastboot_unreachable").format(serial=self.serial)
            )

    def _run_on_device(self, *args: str) -> subprocess.CompletedProcess:
        # fastboot waits forever for an absent serial instead of failing.
        self._require_device()
        result = self._run(self._command(*args))
        if result.returncode != 0:
            self._require_device()
        return result

    def flash(self, partition: str, image_path: Union[str, Path]) -> None:
        result = self._run_on_device("flash", partition, str(image_path))
        if result.returncode != 0:
            raise DeviceCommandError(
                get_string("device_err_flash").format(
                    partition=partition, out=format_command_output(result)
                )
            )

    def reboot_system(self) -> None:
        result = self._run_on_device("reboot")
        if result.returncode != 0:
            raise DeviceCommandError(
                get_string("device_err_reboot").format(e=format_command_output(result))
            )


class DeviceController:
    """Both channels to the one device selected for this session.

    The adb channel works while Android is running, the fastboot channel
    only while the device sits in its bootloader.
    """

    def __init__(self, session: Session, runner: Optional[CommandRunner] = None):
        self.session = session
        self.runner = runner or CommandRunner()
        self.adb = AdbManager(session.serial, self.runner)
        self.fastboot = FastbootManager(session.serial, self.runner)

    @property
    def serial(self) -> str:
        return self.session.serial

    def is_reachable(self) -> bool:
        return self.adb.get_state() == "device"

    def adb_state(self) -> Optional[str]:
        return self.adb.get_state()

    def is_in_bootloader_mode(self) -> bool:
        return self.fastboot.check_device()

    def get_mode(self) -> DeviceMode:
        if self.is_in_bootloader_mode():
            return DeviceMode.BOOTLOADER
        if self.is_reachable():
            return DeviceMode.NORMAL
        return DeviceMode.UNKNOWN

    def read_property(self, name: str) -> str:
        return self.adb.get_prop(name)

    def exec_shell(self, command: str) -> Tuple[str, int]:
        return self.adb.shell(command)

    def exec_root_shell(self, command: str) -> Tuple[str, int]:
        return self.adb.shell(f"su -c {shlex.quote(command)}")

    def file_exists(self, remote_path: str, as_root: bool = False) -> bool:
        command = f"test -f {shlex.quote(remote_path)}"
        _, code = self.exec_root_shell(command) if as_root else self.exec_shell(command)
        return code == 0

    def push(self, local_path: Union[str, Path], remote_path: str) -> None:
        self.adb.push(local_path, remote_path)

    def pull(self, remote_path: str, local_path: Union[str, Path]) -> Path:
        return self.adb.pull(remote_path, local_path)

    def reboot_to_bootloader(self) -> None:
        self.adb.reboot_bootloader()

    def reboot_normal(self) -> None:
        self.fastboot.reboot_system()

    def flash_partition(self, name: str, local_path: Union[str, Path]) -> None:
        self.fastboot.flash(name, local_path)

    def read_identity(self) -> DeviceIdentity:
        codename = self.read_property(const.PROP_CODENAME)
        version = self.read_property(const.PROP_VERSION)
        if not codename or not version:
            raise PreconditionFailure(
                get_string("device_err_identity").format(
                    codename_prop=const.PROP_CODENAME, version_prop=const.PROP_VERSION
                )
            )
        identity = DeviceIdentity(
            serial=self.serial, model_codename=codename, firmware_version=version
        )
        ui.info(get_string("device_identity").format(codename=codename, version=version))
        return identity
