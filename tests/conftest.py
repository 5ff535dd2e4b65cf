"""MockExecutor and shared fixtures for testing."""
from __future__ import annotations

import io
import shlex
import subprocess
from unittest.mock import MagicMock

import pytest

from rack.zfs import LIST_CMD


class MockExecutor:
    """
    Executor that returns pre-scripted responses for commands.

    responses: dict mapping tuple(cmd) -> stdout string (or an Exception to raise)
    If the command isn't found, raises KeyError (to catch unexpected calls in tests).

    popen_returncodes: dict mapping a command prefix string (e.g. "zfs receive")
    to the exit status processes starting that way report; everything else exits 0.

    popen_errors: dict mapping a command prefix string to an OSError raised
    instead of starting the process (a missing binary, say).

    Pass verbose=True to print every command that goes through the executor.
    """

    def __init__(
        self,
        responses: dict | None = None,
        popen_returncodes: dict | None = None,
        popen_errors: dict | None = None,
        verbose: bool = False,
    ):
        self.responses: dict = responses or {}
        self.popen_returncodes: dict = popen_returncodes or {}
        self.popen_errors: dict = popen_errors or {}
        self.verbose = verbose
        self.calls: list[list[str]] = []  # record of all commands, run and popen
        self.popen_calls: list[tuple[list[str], dict]] = []  # (cmd, kwargs)
        self.procs: list = []  # mock Popen objects handed out, in order

    def _key(self, cmd: list[str]) -> tuple:
        return tuple(cmd)

    def run(self, cmd: list[str]) -> str:
        self.calls.append(cmd)
        key = self._key(cmd)
        if self.verbose:
            print(f"  [mock.run] {shlex.join(cmd)}")
        if key not in self.responses:
            raise KeyError(f"MockExecutor: unexpected command: {cmd}")
        result = self.responses[key]
        if isinstance(result, Exception):
            raise result
        return result

    def popen(self, cmd: list[str], **kwargs) -> subprocess.Popen:
        """
        For pipeline tests: record the call and return a mock Popen object
        that finishes immediately with the scripted exit status.
        """
        self.calls.append(cmd)
        self.popen_calls.append((cmd, kwargs))
        if self.verbose:
            print(f"  [mock.popen] {shlex.join(cmd)}")

        joined = " ".join(cmd)
        for prefix, error in self.popen_errors.items():
            if joined.startswith(prefix):
                raise error
        rc = 0
        for prefix, code in self.popen_returncodes.items():
            if joined.startswith(prefix):
                rc = code

        mock_proc = MagicMock(spec=subprocess.Popen)
        mock_proc.stdout = io.BytesIO(b"")
        mock_proc.stdin = io.BytesIO(b"")
        mock_proc.returncode = rc
        mock_proc.wait.return_value = rc
        self.procs.append(mock_proc)
        return mock_proc

    def popen_commands(self) -> list[list[str]]:
        return [cmd for cmd, _ in self.popen_calls]

    def ran(self, *prefix: str) -> list[list[str]]:
        """Every recorded command starting with the given words."""
        n = len(prefix)
        return [cmd for cmd in self.calls if tuple(cmd[:n]) == prefix]


# ---------------------------------------------------------------------------
# Captured `zfs list -H -t all -o name,mountpoint` style output
# ---------------------------------------------------------------------------

def listing(*filesystems) -> str:
    """
    Build listing output from (name, mountpoint, [snapshot names]) tuples,
    each filesystem followed by its snapshots as zfs prints them.
    """
    lines = []
    for name, mountpoint, snaps in filesystems:
        lines.append(f"{name}\t{mountpoint}")
        for snap in snaps:
            lines.append(f"{name}@{snap}\t-")
    return "\n".join(lines) + "\n"


def caz(*indexes: int) -> list[str]:
    """Snapshot names under the default prefix with the given indexes."""
    return [f"caz{i:04d}-20260101{i % 24:02d}0000" for i in indexes]


LINT_LISTING = listing(
    ("lint", "/lint", caz(0, 1, 2)),
    ("lint/home", "/home", caz(0, 1, 2) + ["zfs-auto-snap_daily-2026-01-03-0000"]),
    ("lint/home/work", "/home/work", caz(1, 2)),
    ("lint2", "/lint2", caz(7)),
    ("backup", "/backup", []),
)


def props_output(dataset: str, rows: list[tuple[str, str, str]]) -> str:
    """Build `zfs get -H -o name,property,value,source` output."""
    return "".join(f"{dataset}\t{p}\t{v}\t{s}\n" for p, v, s in rows)


def get_cmd(dataset: str) -> tuple:
    return ("zfs", "get", "-H", "-o", "name,property,value,source", "all", dataset)


def estimate_cmd(*send_args: str) -> tuple:
    return ("zfs", "send", "-nP") + send_args


@pytest.fixture
def verbose(request):
    """True if -v was passed to pytest."""
    return request.config.getoption("--verbose", default=False)


@pytest.fixture
def list_cmd() -> tuple:
    return tuple(LIST_CMD)
