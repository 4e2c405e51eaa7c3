import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from . import constants as const
from .errors import PreconditionFailure
from .i18n import get_string


@dataclass(frozen=True)
class Session:
    serial: str
    work_dir: Path = field(default_factory=lambda: const.WORK_DIR)
    bootloader_timeout: float = const.BOOTLOADER_TIMEOUT
    poll_interval: float = const.BOOTLOADER_POLL_INTERVAL
    assume_yes: bool = False

    @classmethod
    def create(
        cls,
        serial: Optional[str] = None,
        work_dir: Optional[Path] = None,
        assume_yes: bool = False,
    ) -> "Session":
        serial = serial or os.environ.get("ANDROID_SERIAL", "")
        if not serial:
            raise PreconditionFailure(get_string("ctx_err_no_serial"))
        return cls(
            serial=serial,
            work_dir=Path(work_dir) if work_dir else const.WORK_DIR,
            assume_yes=assume_yes,
        )

    @property
    def build_zip(self) -> Path:
        return self.work_dir / const.FN_BUILD_ZIP

    @property
    def payload_bin(self) -> Path:
        return self.work_dir / const.FN_PAYLOAD

    @property
    def unpatched_image(self) -> Path:
        return self.work_dir / const.FN_BOOT

    @property
    def patched_image(self) -> Path:
        return self.work_dir / const.FN_BOOT_PATCHED

    def ensure_work_dir(self) -> Path:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        return self.work_dir
