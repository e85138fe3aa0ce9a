import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
from typing import Optional

import aiohttp
import humanize
import typer
from tabulate import tabulate

from prbuilder import config
from prbuilder.cache import get_store
from prbuilder.github.api import API
from prbuilder.logger import configure_logging, get_log_handlers
from prbuilder.model import ProjectsFile, TriggerConfig
from prbuilder.projects import ProjectManager
from prbuilder.trigger import RepositoryRegistry
from prbuilder.web import create_app, github_client

logger = logging.getLogger("prbuilder")

app = typer.Typer()


def load_project(projects: str, name: str):
    try:
        return ProjectsFile.load(projects).get(name)
    except KeyError:
        raise typer.BadParameter(f"Unknown project {name!r} in {projects}")


@app.callback()
def init():
    configure_logging()
    get_log_handlers(logger)


@asynccontextmanager
async def project_manager(projects_file: str, with_store: bool = True):
    async with aiohttp.ClientSession() as session:
        store = get_store() if with_store else None
        try:
            yield ProjectManager(
                api=API(github_client(session)),
                config=TriggerConfig.from_env(),
                registry=RepositoryRegistry(),
                store=store,
                webhook_secret=config.GITHUB_WEBHOOK_SECRET,
                dry_run=config.DRY_RUN,
            )
        finally:
            if store is not None:
                store.close()


@app.command()
def serve(host: str = "0.0.0.0", port: int = 8000, projects: Optional[str] = None):
    create_app(projects).run(host=host, port=port, single_process=True)


@app.command()
def poll(project: str, projects: str = config.PROJECTS_FILE):
    """Run a single poll pass for PROJECT and wait for the builds it started."""

    async def handle():
        async with project_manager(projects) as manager:
            coordinator = manager.build_coordinator(load_project(projects, project))
            await coordinator.on_poll()
            for build in coordinator.tracker:
                wait = getattr(build.handle, "wait", None)
                if wait is not None:
                    await wait()
            await coordinator.on_poll()

    asyncio.run(handle())


@app.command()
def create_hook(
    project: str,
    hook_url: Optional[str] = None,
    projects: str = config.PROJECTS_FILE,
):
    async def handle():
        async with project_manager(projects, with_store=False) as manager:
            coordinator = manager.build_coordinator(load_project(projects, project))
            url = hook_url or coordinator.config.hook_url
            if url is None:
                raise typer.BadParameter("No hook url given and HOOK_URL is not set")
            created = await coordinator.create_hook(
                url, secret=config.GITHUB_WEBHOOK_SECRET
            )
            if not created:
                raise typer.Exit(1)

    asyncio.run(handle())


@app.command()
def close_pr(project: str, number: int, projects: str = config.PROJECTS_FILE):
    async def handle():
        async with project_manager(projects, with_store=False) as manager:
            coordinator = manager.build_coordinator(load_project(projects, project))
            if not await coordinator.close_pull_request(number):
                raise typer.Exit(1)

    asyncio.run(handle())


@app.command()
def state(subscriber: Optional[str] = None):
    """Print the tracked pull requests stored for each subscriber."""
    now = datetime.now(timezone.utc)
    with get_store() as store:
        subscribers = [subscriber] if subscriber else store.subscribers()
        for name in subscribers:
            pulls = store.load(name)
            rows = [
                (
                    f"#{pr.id}",
                    pr.author,
                    pr.head[:10],
                    pr.target_branch,
                    "yes" if pr.accepted else "no",
                    "yes" if pr.pending_build else "no",
                    humanize.naturaltime(now - pr.updated),
                )
                for pr in sorted(pulls.values(), key=lambda pr: pr.id)
            ]
            typer.echo(f"{name}: {len(rows)} pull requests")
            typer.echo(
                tabulate(
                    rows,
                    headers=(
                        "PR",
                        "Author",
                        "Head",
                        "Target",
                        "Accepted",
                        "Pending",
                        "Updated",
                    ),
                    tablefmt="github",
                )
            )
