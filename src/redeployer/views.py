"""JSON payloads pushed to live viewers, one per bus event.

Viewers never receive state directly from the bus: every event triggers a
fresh read of the store (and of docker, for full refreshes).
"""

from typing import Any

import structlog

from redeployer.docker_inspector import DockerInspector, is_running
from redeployer.errors import DeploymentError, StoreError
from redeployer.models import (
    BusEvent,
    DeploymentStatus,
    RequestFullStatus,
    ServiceDefinition,
    ServiceStatusUpdate,
    StatusKind,
    SubscriberConnected,
    UnstructuredError,
)
from redeployer.status import app_severity, app_summary, status_label, status_severity
from redeployer.store import ServiceStore

logger = structlog.get_logger()


def _service_row(service: ServiceDefinition, status: DeploymentStatus) -> dict[str, Any]:
    return {
        "id": service.id,
        "name": service.name,
        "repo_url": service.repo_url,
        "access_url": service.access_url,
        "active": service.active,
        "status": status.kind.value,
        "status_label": status_label(status),
        "severity": status_severity(status),
    }


class StatusView:
    """Turns bus events into viewer payloads."""

    def __init__(self, store: ServiceStore, inspector: DockerInspector):
        self.store = store
        self.inspector = inspector

    async def render(self, event: BusEvent) -> dict[str, Any]:
        if isinstance(event, SubscriberConnected):
            return self.connected()
        if isinstance(event, RequestFullStatus):
            return await self.service_list()
        if isinstance(event, ServiceStatusUpdate):
            return await self.service_update(event.service_id, event.status)
        if isinstance(event, UnstructuredError):
            return self.unknown(event.message)
        raise TypeError(f"Unsupported event: {event!r}")

    def connected(self) -> dict[str, Any]:
        return {
            "kind": "connected",
            "severity": "success",
            "summary": "Connected",
            "refresh": True,
        }

    async def service_list(self) -> dict[str, Any]:
        try:
            services = await self.store.list_services()
        except StoreError as e:
            logger.error("service_list_failed", error=str(e))
            return {
                "kind": "database_error",
                "severity": "error",
                "summary": "Database error",
                "error": str(e),
            }

        try:
            containers = await self.inspector.list_containers()
        except DeploymentError as e:
            logger.warning("service_list_discovery_failed", error=str(e))
            unknown = DeploymentStatus.of(StatusKind.UNKNOWN)
            return {
                "kind": "service_list",
                "severity": "warning",
                "summary": "Services status unknown",
                "services": [_service_row(s, unknown) for s in services],
                "error": str(e),
            }

        running = DeploymentStatus.of(StatusKind.RUNNING)
        inactive = DeploymentStatus.of(StatusKind.INACTIVE)
        return {
            "kind": "service_list",
            "severity": "success",
            "summary": "Services found",
            "services": [
                _service_row(s, running if is_running(containers, s.name) else inactive)
                for s in services
            ],
        }

    async def service_update(self, service_id: int, status: DeploymentStatus) -> dict[str, Any]:
        try:
            service = await self.store.get_service(service_id)
        except StoreError as e:
            logger.error("service_update_lookup_failed", service_id=service_id, error=str(e))
            return {
                "kind": "database_error",
                "severity": "error",
                "summary": "Unknown service error",
                "error": f"Unable to access service from the database | {e}",
            }

        return {
            "kind": "service_update",
            "severity": app_severity(status),
            "summary": app_summary(status),
            "service": _service_row(service, status),
        }

    def unknown(self, message: str) -> dict[str, Any]:
        return {
            "kind": "error",
            "severity": "error",
            "summary": "Unknown error",
            "error": message,
        }
