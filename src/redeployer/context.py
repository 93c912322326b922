"""Wiring of the long-lived components shared by the HTTP layer."""

from dataclasses import dataclass

from redeployer.config import Settings
from redeployer.dispatcher import DeploymentDispatcher
from redeployer.event_bus import EventBus
from redeployer.pipeline import DeploymentPipeline
from redeployer.process_runner import ProcessRunner, SubprocessRunner
from redeployer.store import ServiceStore, SqlServiceStore
from redeployer.views import StatusView


@dataclass
class AppContext:
    """Everything a request handler needs, built once per process."""

    settings: Settings
    bus: EventBus
    store: ServiceStore
    pipeline: DeploymentPipeline
    dispatcher: DeploymentDispatcher
    view: StatusView

    @classmethod
    def build(
        cls,
        settings: Settings,
        runner: ProcessRunner | None = None,
        store: ServiceStore | None = None,
    ) -> "AppContext":
        runner = runner or SubprocessRunner()
        store = store or SqlServiceStore(settings.database_url)
        bus = EventBus(capacity=settings.event_bus_capacity)
        pipeline = DeploymentPipeline(runner, bus, settings)
        dispatcher = DeploymentDispatcher(
            store,
            pipeline,
            bus,
            lock_per_service=settings.deploy_lock_enabled,
        )
        return cls(
            settings=settings,
            bus=bus,
            store=store,
            pipeline=pipeline,
            dispatcher=dispatcher,
            view=StatusView(store, pipeline.inspector),
        )
