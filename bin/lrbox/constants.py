import json
import os
from pathlib import Path
from typing import Any

LRBOX_DIR = Path(__file__).parent.resolve()
BASE_DIR = Path.cwd()

CONFIG_FILE = Path(os.environ.get("LRBOX_CONFIG", LRBOX_DIR / "config.json"))

WORK_DIR = BASE_DIR / "lrbox_work"
LOG_DIR = BASE_DIR / "log"

FN_BOOT = "boot.img"
FN_PAYLOAD = "payload.bin"
FN_BUILD_ZIP = "lineage-build.zip"
FN_BOOT_PATCHED = "magisk_patched.img"
EXTRACTOR_OUT_DIR = "ota_extractor_out"

BOOT_PARTITION = "boot"

_config = {}

def load_config() -> None:
    global _config
    if CONFIG_FILE.exists():
        try:
            with open(CONFIG_FILE, 'r', encoding='utf-8') as f:
                _config = json.load(f)
        except (OSError, ValueError) as e:
            raise RuntimeError(f"[!] Critical Error: Failed to load config.json: {e}")
    else:
        raise RuntimeError(f"[!] Critical Error: Configuration file missing: {CONFIG_FILE}")

def _get_cfg(section: str, key: str, default: Any = None) -> Any:
    if not _config:
        load_config()
    try:
        return _config[section][key]
    except KeyError:
        if default is not None:
            return default
        raise RuntimeError(f"[!] Critical Error: Missing configuration key: [{section}][{key}]")

ADB_EXE = _get_cfg("tools", "adb")
FASTBOOT_EXE = _get_cfg("tools", "fastboot")
GIT_EXE = _get_cfg("tools", "git")

DOWNLOAD_PAGE_URL = _get_cfg("lineage", "download_page_url")
MIRROR_HOST = _get_cfg("lineage", "mirror_host")
ARCHIVE_PREFIX = _get_cfg("lineage", "archive_prefix")
ARCHIVE_SUFFIX = _get_cfg("lineage", "archive_suffix")
DIGEST_QUERY = _get_cfg("lineage", "digest_query")
PROP_CODENAME = _get_cfg("lineage", "codename_prop")
PROP_VERSION = _get_cfg("lineage", "version_prop")
DEVICE_CACHE_DIR = _get_cfg("lineage", "cache_dir")

MAGISK_PACKAGE_MATCH = _get_cfg("magisk", "package_match")
MAGISK_DIR = _get_cfg("magisk", "toolkit_dir")
MAGISK_BOOT_PATCH = _get_cfg("magisk", "boot_patch_script")
MAGISK_RAW_OUTPUT = _get_cfg("magisk", "raw_output")

DEVICE_UNPATCHED_IMG = _get_cfg("device_paths", "unpatched_image")
DEVICE_PATCHED_IMG = _get_cfg("device_paths", "patched_image")
DEVICE_CACHE_COPY = _get_cfg("device_paths", "cache_copy")

OTA_EXTRACTOR_REPO_URL = _get_cfg("ota_extractor", "repo_url")
OTA_EXTRACTOR_REF = _get_cfg("ota_extractor", "ref")
OTA_EXTRACTOR_BINARY = _get_cfg("ota_extractor", "binary")

BOOTLOADER_TIMEOUT = _get_cfg("bootloader", "timeout")
BOOTLOADER_POLL_INTERVAL = _get_cfg("bootloader", "poll_interval")

NET_TIMEOUT = _get_cfg("network", "timeout")
NET_RETRIES = _get_cfg("network", "retries")
NET_BACKOFF = _get_cfg("network", "backoff")

APP_VERSION = _config.get("version", "0.0.0")
