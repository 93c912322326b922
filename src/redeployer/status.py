"""Mapping of deployment errors to statuses, and statuses to display text.

Every table here is keyed by a full enum; `tests/unit/test_status.py` checks
that each one covers all members, so adding an `ErrorKind` or `StatusKind`
without a mapping fails the test suite.
"""

from redeployer.errors import DeploymentError, ErrorKind
from redeployer.models import DeploymentStatus, StatusKind

# Generic causes collapse into COMMAND_FAILED with a fixed message
_COMMAND_FAILED_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.STATUS: "Command resulted in failure status",
    ErrorKind.UNEXPECTED: "Command resulted in unexpected string",
    ErrorKind.PARSE: "Failed to parse command output",
    ErrorKind.START: "Failed to start Docker service",
    ErrorKind.STOP: "Failed to stop Docker service",
    ErrorKind.REMOVE: "Failed to remove live directory contents",
    ErrorKind.COPY: "Failed to copy repo contents",
    ErrorKind.YAML: "Failed to parse YAML file",
}

# Kinds with a dedicated status of their own
_DEDICATED_STATUSES: dict[ErrorKind, StatusKind] = {
    ErrorKind.UNKNOWN: StatusKind.UNKNOWN,
    ErrorKind.DISCOVERY: StatusKind.DISCOVERY_FAILED,
    ErrorKind.CLONE_OR_PULL: StatusKind.CLONE_OR_PULL_FAILED,
}

STATUS_LABELS: dict[StatusKind, str] = {
    StatusKind.INACTIVE: "Inactive",
    StatusKind.RUNNING: "Running",
    StatusKind.DISCOVERY_FAILED: "Failed to discover service",
    StatusKind.COMMAND_FAILED: "Failed command",
    StatusKind.CLONE_OR_PULL_FAILED: "Failed to clone or pull",
    StatusKind.DEPLOYMENT_REQUESTED: "Deployment requested...",
    StatusKind.CLONING: "Cloning repo...",
    StatusKind.PULLING: "Pulling repo...",
    StatusKind.STOPPING: "Stopping service...",
    StatusKind.STARTING: "Starting service...",
    StatusKind.COPYING: "Copying repo...",
    StatusKind.REWRITING_CONFIG: "Rewriting docker-compose.yml...",
    StatusKind.UNKNOWN: "Unknown status",
}

_PENDING = frozenset(
    {
        StatusKind.DEPLOYMENT_REQUESTED,
        StatusKind.CLONING,
        StatusKind.PULLING,
        StatusKind.STOPPING,
        StatusKind.STARTING,
        StatusKind.COPYING,
        StatusKind.REWRITING_CONFIG,
    }
)
_FAILED = frozenset(
    {
        StatusKind.DISCOVERY_FAILED,
        StatusKind.COMMAND_FAILED,
        StatusKind.CLONE_OR_PULL_FAILED,
    }
)

STATUS_SEVERITY: dict[StatusKind, str] = {
    StatusKind.INACTIVE: "unknown",
    StatusKind.UNKNOWN: "unknown",
    StatusKind.RUNNING: "success",
    **{kind: "warning" for kind in _PENDING},
    **{kind: "error" for kind in _FAILED},
}


def status_from_error(error: DeploymentError) -> DeploymentStatus:
    """Map a deployment failure to the status published for it."""
    kind = error.kind
    if kind in _DEDICATED_STATUSES:
        return DeploymentStatus.of(_DEDICATED_STATUSES[kind])
    if kind is ErrorKind.COMMAND:
        return DeploymentStatus.command_failed(error.detail or "No response from system command")
    if kind is ErrorKind.KEY:
        return DeploymentStatus.command_failed(f"Failed to find key '{error.detail}'")
    return DeploymentStatus.command_failed(_COMMAND_FAILED_MESSAGES[kind])


def status_label(status: DeploymentStatus) -> str:
    """Short human-readable text for a status."""
    label = STATUS_LABELS[status.kind]
    if status.kind is StatusKind.COMMAND_FAILED:
        return f"{label} | {status.message}"
    return label


def status_severity(status: DeploymentStatus) -> str:
    """One of success, warning, error, unknown."""
    return STATUS_SEVERITY[status.kind]


def app_summary(status: DeploymentStatus) -> str:
    """Application-level headline shown next to a single service update."""
    if status.kind is StatusKind.UNKNOWN:
        return "Service unknown"
    if status.kind in _FAILED:
        return "Service failure"
    if status.kind in _PENDING:
        return "Service pending..."
    return "Connected"


def app_severity(status: DeploymentStatus) -> str:
    """Severity of the application headline; an inactive service is not a problem."""
    if status.kind is StatusKind.INACTIVE:
        return "success"
    return status_severity(status)
