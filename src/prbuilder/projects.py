from __future__ import annotations

from typing import Callable, Iterable, Optional

from sanic.log import logger

from prbuilder.cache import StateStore
from prbuilder.github.api import API
from prbuilder.model import Project, TriggerConfig
from prbuilder.trigger import (
    BuildExecutor,
    CommandExecutor,
    PollScheduler,
    RepositoryCoordinator,
    RepositoryRegistry,
)


def command_executor(project: Project) -> BuildExecutor:
    return CommandExecutor(project.command)


class ProjectManager:
    """Keeps registry, poll schedule and stored state in line with projects.

    Each lifecycle hook builds a fresh coordinator from the project and the
    immutable base configuration; tracked pull requests and in-flight builds
    of a replaced coordinator carry over.
    """

    def __init__(
        self,
        *,
        api: API,
        config: TriggerConfig,
        registry: RepositoryRegistry,
        scheduler: Optional[PollScheduler] = None,
        store: Optional[StateStore] = None,
        executor_factory: Callable[[Project], BuildExecutor] = command_executor,
        webhook_secret: Optional[str] = None,
        dry_run: bool = False,
    ):
        self.api = api
        self.config = config
        self.registry = registry
        self.scheduler = scheduler
        self.store = store
        self.executor_factory = executor_factory
        self.webhook_secret = webhook_secret
        self.dry_run = dry_run

    def build_coordinator(
        self,
        project: Project,
        previous: Optional[RepositoryCoordinator] = None,
    ) -> RepositoryCoordinator:
        pulls = None
        tracker = None
        lock = None
        if previous is None:
            if self.store is not None:
                pulls = self.store.load(project.name)
        elif previous.repository.lower() == project.repository.lower():
            # the map and its builds stay behind the same lock
            pulls = previous.pulls
            tracker = previous.tracker
            lock = previous.lock
        else:
            logger.info(
                "%s moved from %s to %s, dropping tracked pull requests",
                project.name,
                previous.repository,
                project.repository,
            )
            if self.store is not None:
                self.store.forget(project.name)

        return RepositoryCoordinator(
            project.name,
            project.repository,
            api=self.api,
            executor=self.executor_factory(project),
            config=project.trigger_config(self.config),
            parameters=project.parameters,
            pulls=pulls,
            tracker=tracker,
            lock=lock,
            store=self.store,
            dry_run=self.dry_run,
        )

    async def on_loaded(self, projects: Iterable[Project]) -> None:
        logger.info("Initialize repository registry")
        for project in projects:
            await self.on_created(project)

    async def on_created(self, project: Project) -> RepositoryCoordinator:
        logger.info("Processing %s for repository change", project.name)
        previous = self.registry.get(project.name)
        coordinator = self.build_coordinator(project, previous)
        self.registry.register(project.name, project.repository, coordinator)
        if self.scheduler is not None:
            await self.scheduler.start(
                project.name, coordinator.config.cron, coordinator.on_poll
            )
        if coordinator.config.hook_url is not None:
            await coordinator.create_hook(
                coordinator.config.hook_url, secret=self.webhook_secret
            )
        return coordinator

    async def on_updated(self, project: Project) -> RepositoryCoordinator:
        return await self.on_created(project)

    async def on_renamed(self, project: Project, old_name: str) -> RepositoryCoordinator:
        logger.info("Renamed %s to %s, processing the change", old_name, project.name)
        previous = self.registry.get(old_name)
        self.registry.unregister(old_name)
        if self.scheduler is not None:
            await self.scheduler.stop(old_name)
        if self.store is not None and previous is None:
            self.store.rename(old_name, project.name)

        coordinator = self.build_coordinator(project, previous)
        self.registry.register(project.name, project.repository, coordinator)
        if self.store is not None and previous is not None:
            self.store.forget(old_name)
            self.store.save(project.name, coordinator.pulls)
        if self.scheduler is not None:
            await self.scheduler.start(
                project.name, coordinator.config.cron, coordinator.on_poll
            )
        return coordinator

    async def on_deleted(self, name: str) -> bool:
        logger.info("Removing %s from repository callbacks", name)
        removed = self.registry.unregister(name)
        if self.scheduler is not None:
            await self.scheduler.stop(name)
        if self.store is not None:
            self.store.forget(name)
        return removed
