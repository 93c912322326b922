"""Staging and live directory management."""

from pathlib import Path

import structlog

from redeployer.errors import DeploymentError, ErrorKind
from redeployer.process_runner import Command, ProcessRunner

logger = structlog.get_logger()

# Sentinel lines printed by the existence test
EXISTS = "Y\n"
MISSING = "N\n"

_EXISTENCE_TEST = '[ -d "$1" ] && echo Y || echo N'


class StagingManager:
    """Filesystem operations on service directories, all via the process runner."""

    def __init__(self, runner: ProcessRunner):
        self.runner = runner

    async def get_or_create(self, path: Path) -> tuple[Path, bool]:
        """Ensure `path` is a directory.

        Returns:
            (path, created): created is True only if this call made the directory.

        Raises:
            DeploymentError: STATUS if the test or mkdir fails, UNEXPECTED if the
                test prints anything but a sentinel line.
        """
        check = await self.runner.run(Command("sh", ("-c", _EXISTENCE_TEST, "sh", str(path))))
        if not check.success:
            raise DeploymentError(ErrorKind.STATUS, f"directory test failed for {path}")

        answer = check.stdout_text()
        if answer == EXISTS:
            return path, False
        if answer != MISSING:
            raise DeploymentError(ErrorKind.UNEXPECTED, f"directory test printed {answer!r}")

        logger.warning("creating_directory", path=str(path))
        mkdir = await self.runner.run(Command("mkdir", ("-p", str(path))))
        if not mkdir.success:
            logger.warning("mkdir_failed", path=str(path), stderr=mkdir.stderr_preview())
            raise DeploymentError(ErrorKind.STATUS, f"mkdir failed for {path}")

        return path, True

    async def purge(self, path: Path) -> None:
        """Delete everything inside `path`, keeping the directory itself."""
        result = await self.runner.run(Command("find", (str(path), "-mindepth", "1", "-delete")))
        if not result.success:
            logger.error("purge_failed", path=str(path), stderr=result.stderr_preview())
            raise DeploymentError(ErrorKind.REMOVE, result.stderr_preview())

    async def copy_contents(self, source: Path, destination: Path) -> None:
        """Copy the contents of `source` (dotfiles included) into `destination`."""
        result = await self.runner.run(
            Command("cp", ("-af", f"{source}/.", "."), cwd=destination)
        )
        if not result.success:
            logger.error(
                "copy_failed",
                source=str(source),
                destination=str(destination),
                stderr=result.stderr_preview(),
            )
            raise DeploymentError(ErrorKind.COPY, result.stderr_preview())
