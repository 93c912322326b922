"""Shared fixtures."""

from pathlib import Path

from fakes import COMPOSE_TEMPLATE, FakeProcessRunner
import pytest

from redeployer.config import Settings
from redeployer.event_bus import EventBus
from redeployer.models import ServiceDefinition
from redeployer.pipeline import DeploymentPipeline


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing every directory into the test's tmp_path."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        services_repo_dir=tmp_path / "repos",
        services_live_dir=tmp_path / "live",
        _env_file=None,
    )


@pytest.fixture
def service() -> ServiceDefinition:
    return ServiceDefinition(
        id=7,
        name="blog",
        compose_name="web",
        repo_url="git@example.com:me/blog.git",
        access_url="https://blog.example.com",
        active=True,
    )


@pytest.fixture
def compose_file(settings: Settings, service: ServiceDefinition) -> Path:
    """A compose file already sitting in the service's live directory."""
    live_dir = settings.services_live_dir / service.name
    live_dir.mkdir(parents=True)
    path = live_dir / settings.compose_file_name
    path.write_text(COMPOSE_TEMPLATE.format(unit=service.compose_name))
    return path


@pytest.fixture
def runner() -> FakeProcessRunner:
    return FakeProcessRunner()


@pytest.fixture
def bus() -> EventBus:
    return EventBus(capacity=100)


@pytest.fixture
def pipeline(runner: FakeProcessRunner, bus: EventBus, settings: Settings) -> DeploymentPipeline:
    return DeploymentPipeline(runner, bus, settings)
