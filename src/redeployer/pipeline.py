"""Deployment pipeline: discovery, clone/pull, copy, tag, stop, start.

Each step publishes its status before acting and only runs once the previous
step has succeeded. The first failure publishes exactly one failure status
(see `redeployer.status.status_from_error`) and is re-raised to the caller.
Nothing is rolled back: directories left by a failed run are reused by the
next one, which is safe because every directory step is get-or-create.
"""

from pathlib import Path

import structlog

from redeployer.compose_tagger import ComposeTagger
from redeployer.config import Settings
from redeployer.docker_inspector import DockerInspector, is_running
from redeployer.errors import DeploymentError, ErrorKind
from redeployer.event_bus import EventBus
from redeployer.models import (
    DeploymentStatus,
    DockerContainerRecord,
    ServiceDefinition,
    ServiceStatusUpdate,
    StatusKind,
)
from redeployer.process_runner import Command, ProcessRunner
from redeployer.staging import StagingManager
from redeployer.status import status_from_error

logger = structlog.get_logger()


class DeploymentPipeline:
    """Runs the fixed deployment sequence for one service at a time."""

    def __init__(self, runner: ProcessRunner, bus: EventBus, settings: Settings):
        self.runner = runner
        self.bus = bus
        self.settings = settings
        self.inspector = DockerInspector(runner)
        self.staging = StagingManager(runner)
        self.tagger = ComposeTagger(settings.compose_file_name)

    def staging_dir(self, service: ServiceDefinition) -> Path:
        return self.settings.services_repo_dir / service.name

    def live_dir(self, service: ServiceDefinition) -> Path:
        return self.settings.services_live_dir / service.name

    def _publish(self, service: ServiceDefinition, status: DeploymentStatus) -> None:
        self.bus.publish(ServiceStatusUpdate(service_id=service.id, status=status))

    def _announce(self, service: ServiceDefinition, kind: StatusKind) -> None:
        logger.info("deployment_step", service_id=service.id, step=kind.value)
        self._publish(service, DeploymentStatus.of(kind))

    async def deploy(self, service: ServiceDefinition) -> None:
        """Run every step for `service`.

        Raises:
            DeploymentError: the first failing step's error, after its status
                has been published.
        """
        logger.info("deployment_started", service_id=service.id, service_name=service.name)
        self._announce(service, StatusKind.DEPLOYMENT_REQUESTED)

        try:
            containers = await self.discover()
            await self.clone_or_pull(service)
            await self.copy_to_live(service)
            await self.apply_tags(service)
            if is_running(containers, service.name):
                await self.stop(service)
            await self.start(service)
        except DeploymentError as e:
            self._publish(service, status_from_error(e))
            logger.error(
                "deployment_failed",
                service_id=service.id,
                service_name=service.name,
                error_kind=e.kind.value,
                error=e.detail,
            )
            raise

        logger.info("deployment_completed", service_id=service.id, service_name=service.name)

    async def discover(self) -> list[DockerContainerRecord]:
        try:
            return await self.inspector.list_containers()
        except DeploymentError as e:
            raise DeploymentError(ErrorKind.DISCOVERY, str(e)) from e

    def _git(self, service: ServiceDefinition, *args: str, cwd: Path | None = None) -> Command:
        identity = service.identity_file
        override = ("-c", f"core.sshCommand=ssh -i {identity}") if identity else ()
        return Command("git", (*override, *args), cwd=cwd)

    async def clone_or_pull(self, service: ServiceDefinition) -> None:
        path, created = await self.staging.get_or_create(self.staging_dir(service))

        if created:
            self._announce(service, StatusKind.CLONING)
            command = self._git(service, "clone", service.repo_url, str(path))
        else:
            self._announce(service, StatusKind.PULLING)
            command = self._git(service, "pull", cwd=path)

        result = await self.runner.run(command)
        if not result.success:
            logger.error(
                "clone_or_pull_failed",
                service_id=service.id,
                cloned=created,
                stderr=result.stderr_preview(),
            )
            raise DeploymentError(ErrorKind.CLONE_OR_PULL, result.stderr_preview())

    async def copy_to_live(self, service: ServiceDefinition) -> None:
        self._announce(service, StatusKind.COPYING)

        live_path, created = await self.staging.get_or_create(self.live_dir(service))
        if not created:
            await self.staging.purge(live_path)

        await self.staging.copy_contents(self.staging_dir(service), live_path)

    async def apply_tags(self, service: ServiceDefinition) -> None:
        self._announce(service, StatusKind.REWRITING_CONFIG)
        await self.tagger.tag(
            self.live_dir(service),
            service.compose_name,
            [service.correlation_label],
        )

    async def stop(self, service: ServiceDefinition) -> None:
        self._announce(service, StatusKind.STOPPING)

        path, _ = await self.staging.get_or_create(self.live_dir(service))
        result = await self.runner.run(Command("docker", ("compose", "stop"), cwd=path))
        if not result.success:
            logger.error(
                "compose_stop_failed",
                service_id=service.id,
                stderr=result.stderr_preview(),
            )
            raise DeploymentError(ErrorKind.STOP, result.stderr_preview())

    async def start(self, service: ServiceDefinition) -> None:
        self._announce(service, StatusKind.STARTING)

        path, created = await self.staging.get_or_create(self.live_dir(service))
        if created:
            logger.error("live_dir_missing_at_start", service_id=service.id, path=str(path))
            raise DeploymentError(ErrorKind.UNEXPECTED, f"live directory {path} did not exist")

        result = await self.runner.run(Command("docker", ("compose", "up", "-d"), cwd=path))
        if not result.success:
            logger.error(
                "compose_up_failed",
                service_id=service.id,
                stderr=result.stderr_preview(),
            )
            raise DeploymentError(ErrorKind.START, result.stderr_preview())
