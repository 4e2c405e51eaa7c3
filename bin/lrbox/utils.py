import os
import shutil
import subprocess
import sys
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, List, Optional, Union

from . import constants as const
from .errors import PreconditionFailure
from .i18n import get_string
from .ui import ui

Command = Union[List[str], str]


def run_command(
    command: Command,
    shell: bool = False,
    check: bool = True,
    env: Optional[dict] = None,
    capture: bool = False,
    cwd: Optional[Union[str, Path]] = None
) -> subprocess.CompletedProcess:
    if capture:
        return subprocess.run(
            command, shell=shell, check=check, capture_output=True,
            text=True, encoding='utf-8', errors='ignore', env=env, cwd=cwd
        )

    process = subprocess.Popen(
        command, shell=shell, env=env, cwd=cwd,
        stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
        text=True, encoding='utf-8', errors='ignore', bufsize=1
    )

    output_lines = []
    if process.stdout:
        for line in process.stdout:
            sys.stdout.write(line)
            output_lines.append(line)

    process.wait()
    returncode = process.returncode

    if check and returncode != 0:
        raise subprocess.CalledProcessError(returncode, command, output="".join(output_lines))

    return subprocess.CompletedProcess(command, returncode, stdout="".join(output_lines), stderr=None)


class CommandRunner:
    """Runs external programs and captures their exit status.

    Every component that shells out (adb, fastboot, git, the OTA extractor)
    receives one of these, so tests can hand in a scripted replacement.
    """

    def run(
        self,
        command: Command,
        check: bool = True,
        capture: bool = True,
        cwd: Optional[Union[str, Path]] = None,
    ) -> subprocess.CompletedProcess:
        return run_command(command, check=check, capture=capture, cwd=cwd)


def format_command_output(result: subprocess.CompletedProcess) -> str:
    stdout = (result.stdout or "").strip()
    stderr = (result.stderr or "").strip()
    if stdout and stderr:
        return f"{stderr}\n{stdout}"
    return stderr or stdout


def required_tools(include_git: bool = True) -> dict:
    tools = {
        "ADB": const.ADB_EXE,
        "Fastboot": const.FASTBOOT_EXE,
    }
    if include_git:
        tools["Git"] = const.GIT_EXE
    return tools


def check_dependencies(tools: Optional[dict] = None) -> None:
    dependencies = tools if tools is not None else required_tools()

    missing_deps = [
        name for name, exe in dependencies.items()
        if not (Path(exe).is_file() or shutil.which(str(exe)))
    ]

    if missing_deps:
        for name in missing_deps:
            ui.echo(get_string("utils_missing_dep").format(name=name), err=True)
        raise PreconditionFailure(
            get_string("utils_err_missing_tools").format(tools=", ".join(missing_deps))
        )

    ui.echo(get_string("utils_deps_found"))


@contextmanager
def scratch_directory(prefix: str) -> Generator[Path, None, None]:
    path = Path(tempfile.mkdtemp(prefix=prefix))
    try:
        yield path
    finally:
        if path.exists():
            try:
                shutil.rmtree(path)
            except OSError as e:
                ui.warn(get_string("warn_failed_cleanup_workspace").format(path=path, e=e))


def staging_files(work_dir: Path) -> List[Path]:
    return [
        work_dir / const.FN_BUILD_ZIP,
        work_dir / const.FN_PAYLOAD,
        work_dir / const.FN_BOOT,
        work_dir / const.FN_BOOT_PATCHED,
        work_dir / const.EXTRACTOR_OUT_DIR,
    ]


def clean_workspace(work_dir: Path = const.WORK_DIR) -> None:
    ui.echo(get_string('utils_cleaning_title').format(dir=work_dir))

    removed = 0
    for path in staging_files(work_dir):
        if not path.exists():
            continue
        try:
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()
            ui.echo(get_string('utils_removed').format(name=path.name))
            removed += 1
        except OSError as e:
            ui.echo(get_string('utils_remove_error').format(name=path.name, e=e), err=True)

    if removed == 0:
        ui.echo(get_string('utils_nothing_to_clean'))

    if work_dir.is_dir() and not any(work_dir.iterdir()):
        os.rmdir(work_dir)

    ui.echo(get_string('utils_clean_complete'))
