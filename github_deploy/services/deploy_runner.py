"""
Deploy Runner — sync a repository checkout to a commit and run the deploy command.

Output from the deploy command is streamed line by line into a bounded
buffer, the process log and, when LOG_DIR is set, a per-commit log file.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

from github_deploy.errors import DeployLaunchError, GitSyncError, RepositoryNotFoundError

logger = logging.getLogger(__name__)

OUTPUT_BUFFER_LINES = 50
_READ_CHUNK = 64 * 1024
_CONSOLE_LINE_LIMIT = 4096


class OutputBuffer:
    """Most recent output lines, oldest evicted first."""

    def __init__(self, maxlen: int = OUTPUT_BUFFER_LINES):
        self._lines: deque[str] = deque(maxlen=maxlen)

    def append(self, line: str) -> str | None:
        """Store ``line`` trimmed; blank lines are dropped and return None."""
        trimmed = line.strip()
        if not trimmed:
            return None
        self._lines.append(trimmed)
        return trimmed

    def extend(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.append(line)

    def tail(self, count: int) -> list[str]:
        if count <= 0:
            return []
        return list(self._lines)[-count:]

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    @property
    def maxlen(self) -> int:
        return self._lines.maxlen or 0

    def __len__(self) -> int:
        return len(self._lines)


@dataclass
class DeployResult:
    exit_code: int
    output: OutputBuffer = field(default_factory=OutputBuffer)
    log_path: Path | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class DeployRunner:
    def __init__(
        self,
        command: Sequence[str],
        log_dir: str | os.PathLike | None = None,
        git_remote: str = "origin",
    ):
        self.command = list(command)
        self.log_dir = Path(log_dir) if log_dir else None
        self.git_remote = git_remote

    def ensure_repository(self, repo_dir: Path) -> None:
        if not repo_dir.is_dir():
            raise RepositoryNotFoundError(str(repo_dir))

    async def run(self, repo_dir: Path, repo_name: str, sha: str) -> DeployResult:
        """Check out ``sha`` in ``repo_dir`` and run the deploy command for it.

        The directory is expected to have passed ``ensure_repository``.
        Raises GitSyncError before anything is spawned when the checkout
        fails, and DeployLaunchError when the command cannot be started.
        """
        await self.sync(repo_dir, sha)
        return await self.execute(repo_dir, repo_name, sha)

    async def sync(self, repo_dir: Path, sha: str) -> None:
        logger.info("git fetch %s %s", self.git_remote, sha)
        await self._run_git(["fetch", self.git_remote, sha], repo_dir)
        logger.info("git checkout FETCH_HEAD")
        await self._run_git(["checkout", "FETCH_HEAD"], repo_dir)

    async def _run_git(self, args: list[str], cwd: Path) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                "git",
                *args,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise GitSyncError(str(e)) from e
        stdout, _ = await proc.communicate()
        output = stdout.decode("utf-8", errors="replace").strip()
        if proc.returncode != 0:
            raise GitSyncError(output or f"git {args[0]} exited with code {proc.returncode}")
        return output

    async def execute(self, repo_dir: Path, repo_name: str, sha: str) -> DeployResult:
        argv = [*self.command, sha]
        logger.info("Starting deploy: %s (in %s)", " ".join(argv), repo_dir)

        result = DeployResult(exit_code=-1)
        log_file: IO[str] | None = None
        if self.log_dir:
            result.log_path = self.log_path(repo_name, sha)
            log_file = await asyncio.to_thread(_open_log, result.log_path)
        sink = _LogSink(log_file)

        try:
            try:
                proc = await asyncio.create_subprocess_exec(
                    *argv,
                    cwd=str(repo_dir),
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise DeployLaunchError(str(e)) from e

            try:
                await asyncio.gather(
                    self._capture(proc.stdout, result.output, sink),
                    self._capture(proc.stderr, result.output, sink),
                )
            finally:
                # The deploy key stays held until the child has exited.
                result.exit_code = await proc.wait()
        finally:
            if log_file is not None:
                await asyncio.to_thread(log_file.close)

        logger.info(
            "Deploy %s (exit code: %d)",
            "succeeded" if result.ok else "failed",
            result.exit_code,
        )
        return result

    def log_path(self, repo_name: str, sha: str) -> Path:
        if self.log_dir is None:
            raise ValueError("No log directory configured")
        return self.log_dir / repo_name / f"{sha}.txt"

    async def _capture(
        self,
        stream: asyncio.StreamReader | None,
        output: OutputBuffer,
        sink: _LogSink,
    ) -> None:
        """Drain ``stream`` in chunks; lines of any length are recorded."""
        if stream is None:
            return
        pending = bytearray()
        while chunk := await stream.read(_READ_CHUNK):
            pending.extend(chunk)
            if b"\n" not in chunk:
                continue
            *complete, rest = bytes(pending).split(b"\n")
            pending = bytearray(rest)
            for raw in complete:
                self._record(raw, output, sink)
        if pending:
            self._record(bytes(pending), output, sink)

    def _record(self, raw: bytes, output: OutputBuffer, sink: _LogSink) -> None:
        line = output.append(raw.decode("utf-8", errors="replace"))
        if line is None:
            return
        logger.info("[deploy] %s", line[:_CONSOLE_LINE_LIMIT])
        sink.write(line)


def _open_log(path: Path) -> IO[str]:
    path.parent.mkdir(parents=True, exist_ok=True)
    return path.open("w", encoding="utf-8")


class _LogSink:
    """Per-deploy log file; a failed write disables it instead of the deploy."""

    def __init__(self, log_file: IO[str] | None):
        self._file = log_file

    def write(self, line: str) -> None:
        if self._file is None:
            return
        try:
            self._file.write(line + "\n")
        except OSError as e:
            logger.warning("Deploy log write failed, no longer logging to file: %s", e)
            self._file = None
