"""Executor protocol and the local implementation."""
from __future__ import annotations

import shlex
import subprocess
from typing import Protocol, runtime_checkable

from rack.errors import RackError


class ExecutorError(RackError):
    """Raised when a command exits with a non-zero status."""
    def __init__(self, cmd: list[str], returncode: int, stderr: str):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"Command {shlex.join(cmd)!r} exited {returncode}: {stderr.strip()}"
        )


class PipelineError(ExecutorError):
    """Raised when any stage of a multi-process pipeline fails."""
    def __init__(self, stages: list[list[str]], returncodes: list[int]):
        self.stages = stages
        self.returncodes = returncodes
        cmd: list[str] = []
        for stage in stages:
            if cmd:
                cmd.append("|")
            cmd.extend(stage)
        detail = ", ".join(
            f"{stage[0]} exited {rc}" for stage, rc in zip(stages, returncodes)
        )
        failed = next((rc for rc in returncodes if rc != 0), 0)
        super().__init__(cmd, failed, detail)


@runtime_checkable
class Executor(Protocol):
    def run(self, cmd: list[str]) -> str:
        """Run a command, return stdout. Raise ExecutorError on failure."""
        raise NotImplementedError

    def popen(self, cmd: list[str], **kwargs) -> subprocess.Popen:
        """Launch a command as a Popen object for piping."""
        raise NotImplementedError


class LocalExecutor:
    """Run commands on the local machine."""

    def run(self, cmd: list[str]) -> str:
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise ExecutorError(cmd, 1, str(e)) from e
        if result.returncode != 0:
            raise ExecutorError(cmd, result.returncode, result.stderr)
        return result.stdout

    def popen(self, cmd: list[str], **kwargs) -> subprocess.Popen:
        return subprocess.Popen(cmd, text=False, **kwargs)


def run_pipeline(stages: list[list[str]], executor: "Executor") -> None:
    """
    Run commands connected stdout-to-stdin, e.g. zfs send | pv | zfs receive.

    Every stage is started before any is waited on, so the processes run
    concurrently.  Each intermediate pipe is closed in this process once the
    next stage owns it, letting an upstream stage see SIGPIPE if a downstream
    stage dies.  Stages are then waited in order; a non-zero exit from any of
    them fails the whole pipeline.
    """
    procs: list[subprocess.Popen] = []
    for i, cmd in enumerate(stages):
        kwargs = {}
        if procs:
            kwargs["stdin"] = procs[-1].stdout
        if i < len(stages) - 1:
            kwargs["stdout"] = subprocess.PIPE
        try:
            proc = executor.popen(cmd, **kwargs)
        except OSError as e:
            if procs:
                procs[-1].stdout.close()
            for started in procs:
                started.kill()
                started.wait()
            raise ExecutorError(cmd, 1, str(e)) from e
        if procs:
            procs[-1].stdout.close()
        procs.append(proc)

    returncodes = [proc.wait() for proc in procs]
    if any(rc != 0 for rc in returncodes):
        raise PipelineError(stages, returncodes)
