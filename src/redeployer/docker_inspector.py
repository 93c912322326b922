"""Container discovery via the docker CLI."""

import json

from pydantic import ValidationError
import structlog

from redeployer.errors import DeploymentError, ErrorKind
from redeployer.models import DockerContainerRecord, correlation_label
from redeployer.process_runner import Command, ProcessRunner

logger = structlog.get_logger()

RUNNING_STATE = "running"


def parse_container_listing(output: str) -> list[DockerContainerRecord]:
    """Parse one JSON object per line, skipping lines that do not decode."""
    containers: list[DockerContainerRecord] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        try:
            containers.append(DockerContainerRecord.model_validate(json.loads(line)))
        except (json.JSONDecodeError, ValidationError):
            logger.debug("container_line_skipped", line_preview=line[:80])
    return containers


def is_running(containers: list[DockerContainerRecord], service_name: str) -> bool:
    """True if a container labelled for the service reports state `running`."""
    if not containers:
        return False

    label = correlation_label(service_name)
    return any(c.state == RUNNING_STATE and label in c.labels for c in containers)


class DockerInspector:
    """Lists running containers."""

    def __init__(self, runner: ProcessRunner):
        self.runner = runner

    async def list_containers(self) -> list[DockerContainerRecord]:
        """Run `docker ps --format json` and parse its output.

        Raises:
            DeploymentError: COMMAND if docker cannot be started, STATUS on a
                non-zero exit, PARSE if the output is not valid UTF-8.
        """
        result = await self.runner.run(Command("docker", ("ps", "--format", "json")))

        if not result.success:
            logger.warning(
                "docker_ps_failed",
                exit_code=result.returncode,
                stderr=result.stderr_preview(),
            )
            raise DeploymentError(ErrorKind.STATUS, "docker ps failed")

        containers = parse_container_listing(result.stdout_text())
        logger.debug("containers_listed", count=len(containers))
        return containers
