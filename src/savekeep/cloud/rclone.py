"""
rclone integration -- remote setup, sync invocation and log decoding.

``Rclone`` builds command lines for a configured remote. ``RcloneProcess``
owns a running ``rclone sync`` and turns its JSON log (one object per line
on stderr) into typed events. Lines rclone writes that we do not know are
never errors: they are noted at TRACE level and dropped.
"""

from __future__ import annotations

import json
import logging
import os
import queue
import shlex
import subprocess
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import IO, TYPE_CHECKING, Iterable, Optional, Sequence, Union

from ..errors import (
    CommandError,
    ProcessExitedNonZero,
    ProcessLaunchFailed,
    ProcessTerminatedAbnormally,
)
from ..log import TRACE

if TYPE_CHECKING:
    from ..config import RcloneApp
    from .remote import Remote

logger = logging.getLogger("savekeep.cloud.rclone")

MAX_LINES_PER_POLL = 10
OUTPUT_TAIL_LINES = 100
EXIT_GRACE_PERIOD = 1.0
HIDDEN_ARGS = ["**"]


class ScanChange(str, Enum):
    """How a file differs between the two sides of a sync."""

    NEW = "new"
    DIFFERENT = "different"
    REMOVED = "removed"
    SAME = "same"
    UNKNOWN = "unknown"


class SyncDirection(str, Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"


class Finality(str, Enum):
    PREVIEW = "preview"
    FINAL = "final"

    @property
    def preview(self) -> bool:
        return self is Finality.PREVIEW


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, order=True)
class CloudChange:
    """A file rclone copied, replaced, or deleted."""

    path: str
    change: ScanChange


@dataclass(frozen=True)
class Progress:
    """Bytes transferred so far out of the expected total."""

    current: float
    max: float


RcloneProcessEvent = Union[Progress, CloudChange]


# ---------------------------------------------------------------------------
# Log decoding
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SkipLog:
    """rclone skipped an action, e.g. because of ``--dry-run``."""

    skipped: str
    object: str


@dataclass(frozen=True)
class ChangeLog:
    msg: str
    object: str


@dataclass(frozen=True)
class StatsLog:
    bytes: float
    total_bytes: float


@dataclass(frozen=True)
class UnrecognizedLog:
    line: str


LogLine = Union[SkipLog, ChangeLog, StatsLog, UnrecognizedLog]


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def decode_log_line(line: str) -> LogLine:
    """Classify one stderr line from ``rclone --use-json-log``.

    Shapes are checked in order: skip notice, change notice, stats.
    Anything else, including invalid JSON, is ``UnrecognizedLog``.
    """
    try:
        data = json.loads(line)
    except ValueError:
        return UnrecognizedLog(line)
    if not isinstance(data, dict):
        return UnrecognizedLog(line)

    target = data.get("object")
    if isinstance(data.get("skipped"), str) and isinstance(target, str):
        return SkipLog(skipped=data["skipped"], object=target)
    if isinstance(data.get("msg"), str) and isinstance(target, str):
        return ChangeLog(msg=data["msg"], object=target)

    stats = data.get("stats")
    if isinstance(stats, dict) and _is_number(stats.get("bytes")) and _is_number(stats.get("totalBytes")):
        return StatsLog(bytes=float(stats["bytes"]), total_bytes=float(stats["totalBytes"]))

    return UnrecognizedLog(line)


_SKIP_CHANGES = {
    "copy": ScanChange.DIFFERENT,
    "delete": ScanChange.REMOVED,
}

_MSG_CHANGES = {
    "Copied (new)": ScanChange.NEW,
    "Copied (replaced existing)": ScanChange.DIFFERENT,
    "Deleted": ScanChange.REMOVED,
}


def log_to_event(log: LogLine) -> Optional[RcloneProcessEvent]:
    """Map a decoded log line to an event, or None if it carries none."""
    if isinstance(log, SkipLog):
        change = _SKIP_CHANGES.get(log.skipped)
        if change is None:
            logger.log(TRACE, "Unhandled Rclone 'skipped': %s", log.skipped)
            return None
        return CloudChange(path=log.object, change=change)

    if isinstance(log, ChangeLog):
        change = _MSG_CHANGES.get(log.msg)
        if change is None:
            logger.log(TRACE, "Unhandled Rclone 'msg': %s", log.msg)
            return None
        return CloudChange(path=log.object, change=change)

    if isinstance(log, StatsLog):
        return Progress(current=log.bytes, max=log.total_bytes)

    logger.log(TRACE, "Unhandled Rclone message: %s", log.line)
    return None


# ---------------------------------------------------------------------------
# Process supervision
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProcessOutcome:
    """Final state of a finished or cancelled process."""

    error: Optional[CommandError] = None
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None and not self.cancelled


def _creation_flags() -> int:
    if os.name == "nt":
        return getattr(subprocess, "CREATE_NO_WINDOW", 0)
    return 0


def _pump(stream: IO[bytes], tail: deque, lines: Optional[queue.Queue] = None) -> None:
    """Copy lines from a pipe into a tail buffer and, optionally, a queue."""
    try:
        for raw in iter(stream.readline, b""):
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            tail.append(line)
            if lines is not None:
                lines.put(line)
    except (OSError, ValueError) as exc:
        logger.debug("Stopped reading process output: %s", exc)
    finally:
        stream.close()


class RcloneProcess:
    """A running rclone process and the events decoded from its log.

    stderr and stdout are drained by background threads so the child never
    blocks on a full pipe. ``poll_events`` and ``check_exit`` never block.
    """

    def __init__(self, program: str, args: list[str], child: subprocess.Popen) -> None:
        self.program = program
        self.args = args
        self._child = child
        self._lines: queue.Queue[str] = queue.Queue()
        self._stdout_tail: deque[str] = deque(maxlen=OUTPUT_TAIL_LINES)
        self._stderr_tail: deque[str] = deque(maxlen=OUTPUT_TAIL_LINES)
        self._readers: list[threading.Thread] = []
        self._exited_at: Optional[float] = None

        if child.stderr is not None:
            self._start_reader("stderr", child.stderr, self._stderr_tail, self._lines)
        if child.stdout is not None:
            self._start_reader("stdout", child.stdout, self._stdout_tail)

    @classmethod
    def launch(cls, program: str, args: Sequence[str]) -> "RcloneProcess":
        """Start ``program`` with piped output.

        Raises:
            ProcessLaunchFailed: The OS refused to start the program.
        """
        args = list(args)
        logger.debug("Running command: %s %s", program, args)
        try:
            child = subprocess.Popen(
                [program, *args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                creationflags=_creation_flags(),
            )
        except OSError as exc:
            error = ProcessLaunchFailed(program, args, str(exc))
            logger.error("Rclone failed: %s", error)
            raise error from exc
        return cls(program, args, child)

    def _start_reader(
        self,
        name: str,
        stream: IO[bytes],
        tail: deque,
        lines: Optional[queue.Queue] = None,
    ) -> None:
        thread = threading.Thread(
            target=_pump,
            args=(stream, tail, lines),
            name=f"rclone-{name}-{self._child.pid}",
            daemon=True,
        )
        thread.start()
        self._readers.append(thread)

    @property
    def pid(self) -> int:
        return self._child.pid

    def poll_events(self) -> list[RcloneProcessEvent]:
        """Decode up to ``MAX_LINES_PER_POLL`` pending log lines."""
        events: list[RcloneProcessEvent] = []
        for _ in range(MAX_LINES_PER_POLL):
            try:
                line = self._lines.get_nowait()
            except queue.Empty:
                break
            event = log_to_event(decode_log_line(line))
            if event is not None:
                events.append(event)

        if events:
            logger.log(TRACE, "New Rclone events: %s", events)
        return events

    def has_pending_lines(self) -> bool:
        return not self._lines.empty()

    def check_exit(self) -> Optional[ProcessOutcome]:
        """Non-blocking completion check.

        Returns None while the process runs, or while log lines it already
        wrote are still waiting for ``poll_events``. If its output pipes stay
        open after exit, the outcome is reported once ``EXIT_GRACE_PERIOD``
        has passed, with whatever output was captured by then.
        """
        try:
            code = self._child.poll()
        except OSError as exc:
            logger.debug("Unable to check rclone status: %s", exc)
            return self._finish(ProcessTerminatedAbnormally(self.program, self.args))

        if code is None:
            return None

        now = time.monotonic()
        if self._exited_at is None:
            self._exited_at = now

        # A descendant can keep the pipes open after the child exits.
        if any(reader.is_alive() for reader in self._readers):
            if now - self._exited_at < EXIT_GRACE_PERIOD:
                return None
            logger.debug("Rclone exited but its output is still open; reporting anyway")
        elif self.has_pending_lines():
            return None

        if code == 0:
            return self._finish(None)
        if code < 0:
            return self._finish(ProcessTerminatedAbnormally(self.program, self.args))
        return self._finish(
            ProcessExitedNonZero(
                self.program,
                self.args,
                code,
                stdout=_joined(self._stdout_tail),
                stderr=_joined(self._stderr_tail),
            )
        )

    def _finish(self, error: Optional[CommandError]) -> ProcessOutcome:
        if error is None:
            logger.debug("Rclone succeeded")
        else:
            logger.error("Rclone failed: %s", error)
        return ProcessOutcome(error)

    def kill(self) -> None:
        """Kill and reap the process. Failures are ignored."""
        try:
            self._child.kill()
            self._child.wait(timeout=5)
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.debug("Ignoring failure to kill rclone: %s", exc)


def _joined(lines: Iterable[str]) -> Optional[str]:
    text = "\n".join(lines)
    return text or None


# ---------------------------------------------------------------------------
# Command building
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CommandOutput:
    code: int
    stdout: str
    stderr: str


def run_command(
    program: str,
    args: Sequence[str],
    success: Iterable[int] = (0,),
    private: bool = False,
) -> CommandOutput:
    """Run a short-lived command to completion.

    Private commands (e.g. ones carrying a password) never show their
    arguments in logs or errors.
    """
    args = list(args)
    shown = HIDDEN_ARGS if private else args
    logger.debug("Running command: %s %s", program, shown)

    try:
        result = subprocess.run(
            [program, *args],
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
            stdin=subprocess.DEVNULL,
            creationflags=_creation_flags(),
        )
    except OSError as exc:
        raise ProcessLaunchFailed(program, shown, str(exc)) from exc

    if result.returncode in tuple(success):
        return CommandOutput(result.returncode, result.stdout, result.stderr)
    if result.returncode < 0:
        raise ProcessTerminatedAbnormally(program, shown)
    raise ProcessExitedNonZero(
        program,
        shown,
        result.returncode,
        stdout=result.stdout.strip() or None,
        stderr=result.stderr.strip() or None,
    )


class Rclone:
    """rclone commands for one remote."""

    def __init__(self, app: "RcloneApp", remote: "Remote") -> None:
        self.app = app
        self.remote = remote

    @property
    def program(self) -> str:
        return self.app.resolve() or self.app.path

    def path(self, remote_path: str) -> str:
        return f"{self.remote.name()}:{remote_path}"

    def args(self, args: Iterable[str]) -> list[str]:
        """User-configured extra arguments followed by ``args``."""
        collected: list[str] = []
        if self.app.arguments:
            try:
                collected.extend(shlex.split(self.app.arguments))
            except ValueError as exc:
                logger.warning("Ignoring unparseable rclone arguments %r: %s", self.app.arguments, exc)
        collected.extend(args)
        return collected

    def run(self, args: Iterable[str], success: Iterable[int] = (0,), private: bool = False) -> CommandOutput:
        return run_command(self.program, self.args(args), success, private)

    def obscure(self, credential: str) -> str:
        """Return rclone's obscured form of a password."""
        return self.run(["obscure", credential], private=True).stdout.strip()

    def configure_remote(self) -> None:
        """Create the remote in rclone's config. No-op for custom remotes.

        Raises:
            CommandError: ``rclone obscure`` or ``rclone config create`` failed.
        """
        if not self.remote.needs_configuration():
            return

        remote = self.remote
        private = remote.has_credentials()
        if private:
            remote = remote.model_copy(update={"password": self.obscure(remote.password)})

        args = ["config", "create", remote.name(), remote.slug()]
        config_args = remote.config_args()
        if config_args:
            args.extend(config_args)

        self.run(args, private=private)
        logger.info("Configured rclone remote %s (%s)", remote.name(), remote.slug())

    def sync_args(
        self,
        local: Path,
        remote_path: str,
        direction: SyncDirection,
        finality: Finality,
        game_dirs: Iterable[str] = (),
    ) -> list[str]:
        args = ["sync", "-v", "--use-json-log", "--stats=100ms"]
        if finality.preview:
            args.append("--dry-run")

        # Include rules match files, so whole folders need a trailing `**`.
        for game_dir in game_dirs:
            args.append(f"--include=/{game_dir}/**")

        if direction is SyncDirection.UPLOAD:
            args.extend([str(local), self.path(remote_path)])
        else:
            args.extend([self.path(remote_path), str(local)])
        return self.args(args)

    def sync(
        self,
        local: Path,
        remote_path: str,
        direction: SyncDirection,
        finality: Finality,
        game_dirs: Iterable[str] = (),
    ) -> RcloneProcess:
        """Start ``rclone sync`` between the local backup folder and the remote.

        Raises:
            ProcessLaunchFailed: rclone could not be started.
        """
        return RcloneProcess.launch(
            self.program,
            self.sync_args(local, remote_path, direction, finality, game_dirs),
        )
