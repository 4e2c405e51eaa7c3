import os
import subprocess
import sys
import zipfile
from pathlib import Path

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../bin")))

from lrbox.context import Session
from lrbox.device import DeviceController
from lrbox.models import DeviceIdentity

SERIAL = "SERIAL123"


class FakeRunner:
    """Scripted stand-in for CommandRunner.

    A rule matches when every fragment is a substring of some element of the
    command; the most recently added matching rule wins.
    """

    def __init__(self):
        self.calls = []
        self.captured = []
        self.rules = []

    def on(self, *fragments, stdout="", stderr="", returncode=0, action=None):
        self.rules.append((fragments, stdout, stderr, returncode, action))
        return self

    def run(self, command, check=True, capture=True, cwd=None):
        command = list(command)
        self.calls.append(command)
        self.captured.append(capture)
        for fragments, stdout, stderr, returncode, action in reversed(self.rules):
            if all(any(f in str(part) for part in command) for f in fragments):
                if action:
                    action(command)
                return subprocess.CompletedProcess(command, returncode, stdout, stderr)
        return subprocess.CompletedProcess(command, 0, "", "")

    def find_calls(self, *fragments):
        return [
            c for c in self.calls
            if all(any(f in str(part) for part in c) for f in fragments)
        ]


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def session(tmp_path):
    return Session(serial=SERIAL, work_dir=tmp_path / "work", assume_yes=True)


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def dev(session, runner):
    return DeviceController(session, runner)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def identity():
    return DeviceIdentity(
        serial=SERIAL,
        model_codename="lemonadep",
        firmware_version=" 21.0-20240101-NIGHTLY-lemonadep ",
    )


@pytest.fixture
def make_zip(tmp_path):
    def _make(entries, name="build.zip"):
        path = tmp_path / name
        with zipfile.ZipFile(path, "w") as zf:
            for entry, data in entries.items():
                zf.writestr(entry, data)
        return path

    return _make


def write_to_last_arg(content: bytes):
    def _action(command):
        Path(command[-1]).parent.mkdir(parents=True, exist_ok=True)
        Path(command[-1]).write_bytes(content)

    return _action
