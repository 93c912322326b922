"""External command execution via asyncio subprocesses."""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import structlog

from redeployer.errors import DeploymentError, ErrorKind

logger = structlog.get_logger()

# Stderr preview length for logging
STDERR_PREVIEW_LENGTH = 500


@dataclass(frozen=True)
class Command:
    """A program invocation: name, arguments and working directory."""

    program: str
    args: tuple[str, ...] = ()
    cwd: Path | None = None

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]


@dataclass(frozen=True)
class CommandResult:
    """Exit status and captured output of a finished command."""

    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""
    command: Command | None = field(default=None, compare=False)

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def stdout_text(self) -> str:
        """Decode stdout, raising a PARSE error on invalid UTF-8."""
        try:
            return self.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DeploymentError(ErrorKind.PARSE, str(e)) from e

    def stderr_preview(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")[:STDERR_PREVIEW_LENGTH]


class ProcessRunner(Protocol):
    """Anything that can run a `Command` to completion."""

    async def run(self, command: Command) -> CommandResult: ...


class SubprocessRunner:
    """Runs commands as child processes without blocking the event loop."""

    async def run(self, command: Command) -> CommandResult:
        logger.debug(
            "executing_command",
            argv=command.argv,
            cwd=str(command.cwd) if command.cwd else None,
        )

        try:
            proc = await asyncio.create_subprocess_exec(
                *command.argv,
                cwd=command.cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate()
        except OSError as e:
            logger.error(
                "command_spawn_failed",
                program=command.program,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DeploymentError(ErrorKind.COMMAND, str(e)) from e

        result = CommandResult(
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout or b"",
            stderr=stderr or b"",
            command=command,
        )

        logger.debug(
            "command_complete",
            program=command.program,
            exit_code=result.returncode,
            output_length=len(result.stdout),
        )
        return result
