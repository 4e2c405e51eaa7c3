from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class OtaPackageFormat(Enum):
    BLOCK_BASED = "block"
    PAYLOAD_BASED = "payload"
    FILE_BASED = "file"


class DeviceMode(Enum):
    NORMAL = "normal"
    BOOTLOADER = "bootloader"
    UNKNOWN = "unknown"


class BootImageVariant(Enum):
    UNPATCHED = "unpatched"
    PATCHED = "patched"


class BuildSource(Enum):
    DEVICE_CACHE = "cache"
    CATALOG = "catalog"


@dataclass(frozen=True)
class DeviceIdentity:
    serial: str
    model_codename: str
    firmware_version: str

    @property
    def normalized_version(self) -> str:
        return self.firmware_version.strip().lower()


@dataclass(frozen=True)
class BuildArtifact:
    local_path: Path
    source: BuildSource
    size: int
    url: Optional[str] = None


@dataclass(frozen=True)
class IntegrityDigest:
    hex_value: str
    algorithm: str = "sha256"


@dataclass(frozen=True)
class BootImage:
    variant: BootImageVariant
    local_path: Path
