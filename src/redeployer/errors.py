"""Error taxonomy for deployments and the service store."""

from enum import Enum


class ErrorKind(str, Enum):
    """Low-level failure kinds raised while deploying a service."""

    COMMAND = "command"  # command could not be started at all
    STATUS = "status"  # command exited non-zero
    UNEXPECTED = "unexpected"  # command produced output we cannot interpret
    PARSE = "parse"  # command output was not valid text
    UNKNOWN = "unknown"
    DISCOVERY = "discovery"
    CLONE_OR_PULL = "clone_or_pull"
    START = "start"
    STOP = "stop"
    REMOVE = "remove"
    COPY = "copy"
    YAML = "yaml"  # compose document could not be parsed or serialized
    KEY = "key"  # compose document is missing an expected key


class DeploymentError(Exception):
    """Raised by any deployment step; `kind` decides the published status."""

    def __init__(self, kind: ErrorKind, detail: str | None = None):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


class StoreError(Exception):
    """Raised by the service store. Never a deployment failure."""


class NotFoundError(StoreError):
    """Requested service does not exist."""

    def __init__(self, service_id: int):
        self.service_id = service_id
        super().__init__(f"Service {service_id} not found")
