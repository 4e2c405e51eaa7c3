import shutil
import zipfile
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from . import constants as const
from .context import Session
from .downloader import LocalToolFetcher, OtaExtractorFetcher
from .errors import ToolError, UnsupportedFormat
from .i18n import get_string
from .models import BootImage, BootImageVariant, BuildArtifact, OtaPackageFormat
from .ui import ui
from .utils import CommandRunner, format_command_output, scratch_directory


def _open_archive(archive_path: Union[str, Path]) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(archive_path, "r")
    except (zipfile.BadZipFile, OSError) as e:
        raise ToolError(get_string("ota_err_bad_archive").format(name=Path(archive_path).name, e=e)) from e


def classify(archive_path: Union[str, Path]) -> OtaPackageFormat:
    with _open_archive(archive_path) as zf:
        names = set(zf.namelist())

    # boot.img is checked first; an archive carrying both entries is block based.
    if const.FN_BOOT in names:
        return OtaPackageFormat.BLOCK_BASED
    if const.FN_PAYLOAD in names:
        return OtaPackageFormat.PAYLOAD_BASED
    return OtaPackageFormat.FILE_BASED


def extract_member(archive_path: Union[str, Path], member: str, target_path: Path) -> Path:
    ui.info(get_string("ota_extracting").format(member=member, archive=Path(archive_path).name))
    target_path.parent.mkdir(parents=True, exist_ok=True)
    with _open_archive(archive_path) as zf:
        try:
            with zf.open(member) as source, open(target_path, "wb") as target:
                shutil.copyfileobj(source, target)
        except KeyError as e:
            raise ToolError(get_string("ota_err_member_missing").format(member=member)) from e
    return target_path


class BootImageExtractor:
    def __init__(
        self,
        session: Session,
        runner: Optional[CommandRunner] = None,
        tool_fetcher: Optional[Union[OtaExtractorFetcher, LocalToolFetcher]] = None,
    ):
        self.session = session
        self.runner = runner or CommandRunner()
        self.tool_fetcher = tool_fetcher or OtaExtractorFetcher(self.runner)
        self._strategies: Dict[OtaPackageFormat, Callable[[BuildArtifact], Path]] = {
            OtaPackageFormat.BLOCK_BASED: self._extract_block_based,
            OtaPackageFormat.PAYLOAD_BASED: self._extract_payload_based,
            OtaPackageFormat.FILE_BASED: self._extract_file_based,
        }

    def extract(self, artifact: BuildArtifact, package_format: OtaPackageFormat) -> BootImage:
        ui.info(get_string("ota_format_detected").format(fmt=package_format.value))
        target = self.session.unpatched_image
        if target.exists():
            target.unlink()

        boot_img = self._strategies[package_format](artifact)
        ui.info(get_string("ota_boot_extracted").format(path=boot_img))
        return BootImage(variant=BootImageVariant.UNPATCHED, local_path=boot_img)

    def _extract_block_based(self, artifact: BuildArtifact) -> Path:
        return extract_member(artifact.local_path, const.FN_BOOT, self.session.unpatched_image)

    def _extract_payload_based(self, artifact: BuildArtifact) -> Path:
        payload = extract_member(artifact.local_path, const.FN_PAYLOAD, self.session.payload_bin)
        out_dir = self.session.work_dir / const.EXTRACTOR_OUT_DIR
        if out_dir.exists():
            shutil.rmtree(out_dir)
        out_dir.mkdir(parents=True)

        with scratch_directory(prefix="lrbox-extract-tools-") as scratch:
            tool = self.tool_fetcher.fetch(scratch)
            command = [
                str(tool),
                "--payload", str(payload),
                "--output_dir", str(out_dir),
                "--partitions", const.BOOT_PARTITION,
            ]
            ui.info(get_string("ota_run_extractor").format(partition=const.BOOT_PARTITION))
            try:
                result = self.runner.run(command, check=False, capture=False)
            except (FileNotFoundError, PermissionError) as e:
                raise ToolError(get_string("ota_err_extractor_failed").format(out=e)) from e
            if result.returncode != 0:
                raise ToolError(
                    get_string("ota_err_extractor_failed").format(out=format_command_output(result))
                )

        extracted = out_dir / const.FN_BOOT
        if not extracted.is_file():
            raise ToolError(get_string("ota_err_no_boot_output").format(dir=out_dir))
        shutil.move(str(extracted), str(self.session.unpatched_image))
        shutil.rmtree(out_dir)
        return self.session.unpatched_image

    def _extract_file_based(self, artifact: BuildArtifact) -> Path:
        raise UnsupportedFormat(
            get_string("ota_err_file_based").format(name=artifact.local_path.name)
        )
