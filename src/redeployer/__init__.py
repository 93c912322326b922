"""Redeployer - redeploys compose services from git and streams their status."""

from redeployer.event_bus import EventBus
from redeployer.models import DeploymentStatus, ServiceDefinition, StatusKind
from redeployer.pipeline import DeploymentPipeline

__all__ = ["DeploymentPipeline", "DeploymentStatus", "EventBus", "ServiceDefinition", "StatusKind"]
