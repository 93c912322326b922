"""In-memory stand-ins for external collaborators."""

import asyncio
import json
from pathlib import Path
from typing import Any

from redeployer.errors import NotFoundError, StoreError
from redeployer.event_bus import Subscription
from redeployer.models import (
    BusEvent,
    ServiceDefinition,
    ServiceFields,
    ServiceStatusUpdate,
    StatusKind,
    SubscriberConnected,
)
from redeployer.process_runner import Command, CommandResult

COMPOSE_TEMPLATE = """\
services:
  {unit}:
    image: example/{unit}:latest
    ports:
    - 8080:80
    environment:
      MODE: production
  db:
    image: postgres:16
volumes:
  data: {{}}
"""


class FakeProcessRunner:
    """Process runner that never spawns anything.

    Directory tests and mkdir operate on `existing_dirs`; `docker ps` lists
    `containers`; every other command succeeds unless overridden with `on()`
    or `fail()`. Each call yields to the event loop once, like a real
    subprocess would.
    """

    def __init__(
        self,
        existing_dirs: list[Path] | None = None,
        containers: list[dict[str, Any]] | None = None,
    ):
        self.calls: list[Command] = []
        self.existing_dirs: set[str] = {str(p) for p in existing_dirs or []}
        self.containers = containers or []
        self._overrides: list[tuple[tuple[str, ...], CommandResult | Exception]] = []

    def on(self, *argv_prefix: str, result: CommandResult | Exception) -> None:
        """Answer commands starting with `argv_prefix` with `result` (or raise it)."""
        self._overrides.append((argv_prefix, result))

    def fail(self, *argv_prefix: str, returncode: int = 1, stderr: bytes = b"boom") -> None:
        self.on(*argv_prefix, result=CommandResult(returncode=returncode, stderr=stderr))

    def ran(self, *argv_prefix: str) -> bool:
        return any(self._matches(call, argv_prefix) for call in self.calls)

    def calls_to(self, *argv_prefix: str) -> list[Command]:
        return [call for call in self.calls if self._matches(call, argv_prefix)]

    @staticmethod
    def _matches(command: Command, argv_prefix: tuple[str, ...]) -> bool:
        return tuple(command.argv[: len(argv_prefix)]) == argv_prefix

    async def run(self, command: Command) -> CommandResult:
        self.calls.append(command)
        await asyncio.sleep(0)

        for prefix, outcome in self._overrides:
            if self._matches(command, prefix):
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome

        argv = command.argv
        if argv[0] == "sh":
            answer = b"Y\n" if argv[-1] in self.existing_dirs else b"N\n"
            return CommandResult(returncode=0, stdout=answer, command=command)
        if argv[0] == "mkdir":
            self.existing_dirs.add(argv[-1])
            return CommandResult(returncode=0, command=command)
        if argv[:2] == ["docker", "ps"]:
            output = "\n".join(json.dumps(c) for c in self.containers)
            return CommandResult(returncode=0, stdout=output.encode(), command=command)
        return CommandResult(returncode=0, command=command)


def container(name: str, state: str = "running", labels: str | None = None) -> dict[str, Any]:
    """A `docker ps --format json` line for a service's container."""
    return {
        "ID": f"{name[:4]}0123abcd",
        "Image": f"{name}:latest",
        "Names": f"{name}-app-1",
        "Labels": labels
        if labels is not None
        else f"com.docker.compose.project={name},|||{name}|||",
        "State": state,
    }


class FakeServiceStore:
    """In-memory ServiceStore."""

    def __init__(self, services: list[ServiceDefinition] | None = None):
        self.services: dict[int, ServiceDefinition] = {s.id: s for s in services or []}
        self.broken = False

    def _check(self) -> None:
        if self.broken:
            raise StoreError("Unable to use database")

    async def list_services(self) -> list[ServiceDefinition]:
        self._check()
        return list(self.services.values())

    async def get_service(self, service_id: int) -> ServiceDefinition:
        self._check()
        if service_id not in self.services:
            raise NotFoundError(service_id)
        return self.services[service_id]

    async def create_service(self, fields: ServiceFields) -> ServiceDefinition:
        self._check()
        if any(s.name == fields.name for s in self.services.values()):
            raise StoreError(f"Constraint violated: duplicate name {fields.name}")
        service = ServiceDefinition(id=max(self.services, default=0) + 1, **fields.model_dump())
        self.services[service.id] = service
        return service

    async def update_service(self, service_id: int, fields: ServiceFields) -> ServiceDefinition:
        self._check()
        if service_id not in self.services:
            raise NotFoundError(service_id)
        service = ServiceDefinition(id=service_id, **fields.model_dump())
        self.services[service_id] = service
        return service


async def drain(subscription: Subscription) -> list[BusEvent]:
    """Receive everything currently buffered, skipping the connect snapshot."""
    events = []
    while subscription.pending:
        event = await subscription.receive()
        if not isinstance(event, SubscriberConnected):
            events.append(event)
    return events


async def status_kinds(subscription: Subscription) -> list[StatusKind]:
    """StatusKind of every buffered service status update, in publish order."""
    return [e.status.kind for e in await drain(subscription) if isinstance(e, ServiceStatusUpdate)]
