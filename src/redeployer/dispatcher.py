"""Background execution of deployment requests."""

import asyncio
from collections import defaultdict

import structlog

from redeployer.errors import DeploymentError, StoreError
from redeployer.event_bus import EventBus
from redeployer.models import (
    DeploymentStatus,
    ServiceStatusUpdate,
    StatusKind,
    UnstructuredError,
)
from redeployer.pipeline import DeploymentPipeline
from redeployer.store import ServiceStore

logger = structlog.get_logger()


class DeploymentDispatcher:
    """Hands deploy requests to background tasks and reports their outcome.

    Two requests for the same service run concurrently unless `lock_per_service`
    is set; without it both may see a missing directory and clone into the
    same path.
    """

    def __init__(
        self,
        store: ServiceStore,
        pipeline: DeploymentPipeline,
        bus: EventBus,
        lock_per_service: bool = False,
    ):
        self.store = store
        self.pipeline = pipeline
        self.bus = bus
        self.lock_per_service = lock_per_service
        self.pending_tasks: set[asyncio.Task] = set()
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    def request(self, service_id: int) -> asyncio.Task:
        """Schedule a deployment and return without waiting for it."""
        task = asyncio.create_task(self.run(service_id), name=f"deploy-{service_id}")
        self.pending_tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.info("deployment_requested", service_id=service_id)
        return task

    async def run(self, service_id: int) -> bool:
        """Fetch, deploy and publish the terminal status. Returns success."""
        try:
            service = await self.store.get_service(service_id)
        except StoreError as e:
            logger.error("service_lookup_failed", service_id=service_id, error=str(e))
            self.bus.publish(UnstructuredError(message=str(e)))
            return False

        try:
            if self.lock_per_service:
                async with self._locks[service_id]:
                    await self.pipeline.deploy(service)
            else:
                await self.pipeline.deploy(service)
        except DeploymentError as e:
            # Failure status was already published by the pipeline
            logger.error(
                "deployment_request_failed",
                service_id=service_id,
                error_kind=e.kind.value,
                error=str(e),
            )
            return False

        self.bus.publish(
            ServiceStatusUpdate(
                service_id=service_id,
                status=DeploymentStatus.of(StatusKind.RUNNING),
            )
        )
        return True

    def _on_done(self, task: asyncio.Task) -> None:
        self.pending_tasks.discard(task)
        if task.cancelled():
            logger.warning("deployment_cancelled", task=task.get_name())
            return
        if task.exception():
            logger.error(
                "deployment_task_crashed",
                task=task.get_name(),
                error=str(task.exception()),
                error_type=type(task.exception()).__name__,
            )

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Cancel in-flight deployments; their commands are abandoned."""
        if not self.pending_tasks:
            return

        logger.info("cancelling_deployments", count=len(self.pending_tasks))
        for task in list(self.pending_tasks):
            task.cancel()
        await asyncio.wait(list(self.pending_tasks), timeout=timeout)
