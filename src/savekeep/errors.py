"""
Error types shared across savekeep.

Every error carries enough context (program, arguments, captured
output, manifest source) to be shown to a user as-is.
"""

from __future__ import annotations

from typing import Optional


class SaveKeepError(RuntimeError):
    """Base class for all savekeep failures."""


class ConfigError(SaveKeepError):
    """Raised when the configuration file cannot be parsed or validated."""


class ToolUnavailable(SaveKeepError):
    """The rclone executable could not be resolved."""

    def __init__(self, program: str = "rclone") -> None:
        self.program = program
        super().__init__(f"Unable to find rclone: {program or '(not set)'}")


class RemoteNotConfigured(SaveKeepError):
    """No cloud remote has been selected."""

    def __init__(self) -> None:
        super().__init__("Cloud remote is not configured")


class RemotePathInvalid(SaveKeepError):
    """The remote path is empty or points at the remote root."""

    def __init__(self, path: str = "") -> None:
        self.path = path
        super().__init__(f"Invalid cloud path: {path!r}")


class CommandError(SaveKeepError):
    """A subprocess could not be run to a successful completion."""

    def __init__(self, program: str, args: list[str], message: str) -> None:
        self.program = program
        self.arguments = list(args)
        super().__init__(message)

    def command_line(self) -> str:
        return " ".join([self.program, *self.arguments])


class ProcessLaunchFailed(CommandError):
    """The program could not be started at all."""

    def __init__(self, program: str, args: list[str], raw: str) -> None:
        self.raw = raw
        super().__init__(program, args, f"Failed to launch: {program} {args} | {raw}")


class ProcessExitedNonZero(CommandError):
    """The program ran but exited with a failure code."""

    def __init__(
        self,
        program: str,
        args: list[str],
        code: int,
        stdout: Optional[str] = None,
        stderr: Optional[str] = None,
    ) -> None:
        self.code = code
        self.stdout = stdout
        self.stderr = stderr

        lines = [f"Command exited with code {code}: {program} {args}"]
        if stdout:
            lines.append(f"stdout: {stdout}")
        if stderr:
            lines.append(f"stderr: {stderr}")
        super().__init__(program, args, "\n".join(lines))


class ProcessTerminatedAbnormally(CommandError):
    """The program was killed or its status could not be read."""

    def __init__(self, program: str, args: list[str]) -> None:
        super().__init__(program, args, f"Command terminated: {program} {args}")


class ManifestInvalid(SaveKeepError):
    """A manifest document failed to parse."""

    def __init__(self, why: str, identifier: Optional[str] = None) -> None:
        self.why = why
        self.identifier = identifier
        source = f" ({identifier})" if identifier else ""
        super().__init__(f"Manifest file is invalid{source}: {why}")


class ManifestUpdateFailed(SaveKeepError):
    """A manifest could not be downloaded or saved."""

    def __init__(self, identifier: Optional[str] = None) -> None:
        self.identifier = identifier
        source = f" ({identifier})" if identifier else ""
        super().__init__(f"Unable to download an update to the manifest file{source}")
