"""Data models for services, statuses, containers and bus events."""

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Service names double as a directory name and as the label key
SERVICE_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._-]*$"


def correlation_label(service_name: str) -> str:
    """Label string embedded in a compose unit to mark it as ours."""
    return f"|||{service_name}|||"


class ServiceFields(BaseModel):
    """Operator-editable parameters of a managed service."""

    model_config = ConfigDict(from_attributes=True)

    name: str = Field(
        ...,
        pattern=SERVICE_NAME_PATTERN,
        description="Unique name; staging directory and correlation label key",
    )
    compose_name: str = Field(..., min_length=1, description="Unit key under `services`")
    repo_url: str = Field(..., min_length=1, description="Git repository to clone")
    access_url: str = Field(default="", description="Externally visible URL")
    active: bool = False
    credential_file: str | None = Field(
        default=None,
        description="SSH identity file used for git when use_credential_file is set",
    )
    use_credential_file: bool = False


class ServiceDefinition(ServiceFields):
    """A stored service definition."""

    id: int

    @property
    def correlation_label(self) -> str:
        """Label injected into the compose unit to find its container again."""
        return correlation_label(self.name)

    @property
    def identity_file(self) -> str | None:
        """Credential file to pass to git, if one should be used."""
        if self.use_credential_file and self.credential_file:
            return self.credential_file
        return None


class StatusKind(str, Enum):
    """Closed set of deployment states."""

    INACTIVE = "inactive"
    RUNNING = "running"
    DISCOVERY_FAILED = "discovery_failed"
    COMMAND_FAILED = "command_failed"
    CLONE_OR_PULL_FAILED = "clone_or_pull_failed"
    DEPLOYMENT_REQUESTED = "deployment_requested"
    CLONING = "cloning"
    PULLING = "pulling"
    STOPPING = "stopping"
    STARTING = "starting"
    COPYING = "copying"
    REWRITING_CONFIG = "rewriting_config"
    UNKNOWN = "unknown"


class DeploymentStatus(BaseModel):
    """Progress or outcome of a deployment. Only COMMAND_FAILED carries a message."""

    model_config = ConfigDict(frozen=True)

    kind: StatusKind
    message: str | None = None

    @model_validator(mode="after")
    def check_message(self) -> "DeploymentStatus":
        """A message is required for COMMAND_FAILED and forbidden otherwise."""
        if self.kind is StatusKind.COMMAND_FAILED and not self.message:
            raise ValueError("command_failed status requires a message")
        if self.kind is not StatusKind.COMMAND_FAILED and self.message is not None:
            raise ValueError(f"{self.kind.value} status carries no message")
        return self

    @classmethod
    def of(cls, kind: StatusKind) -> "DeploymentStatus":
        return cls(kind=kind)

    @classmethod
    def command_failed(cls, message: str) -> "DeploymentStatus":
        return cls(kind=StatusKind.COMMAND_FAILED, message=message)


class DockerContainerRecord(BaseModel):
    """One line of `docker ps --format json`."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., alias="ID")
    image: str = Field(..., alias="Image")
    names: str = Field(..., alias="Names")
    labels: str = Field(..., alias="Labels")
    state: str = Field(..., alias="State")


class RequestFullStatus(BaseModel):
    """Ask every viewer to re-render the whole service list."""

    type: Literal["request_full_status"] = "request_full_status"


class ServiceStatusUpdate(BaseModel):
    """A deployment status transition for one service."""

    type: Literal["service_status_update"] = "service_status_update"
    service_id: int
    status: DeploymentStatus


class UnstructuredError(BaseModel):
    """An error that cannot be attributed to a known service."""

    type: Literal["unstructured_error"] = "unstructured_error"
    message: str


class SubscriberConnected(BaseModel):
    """Synthetic first event delivered to each new subscriber."""

    type: Literal["subscriber_connected"] = "subscriber_connected"


BusEvent = Annotated[
    RequestFullStatus | ServiceStatusUpdate | UnstructuredError | SubscriberConnected,
    Field(discriminator="type"),
]
