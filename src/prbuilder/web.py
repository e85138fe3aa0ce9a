import logging

from sanic import Sanic, response, Request
import aiohttp
import cachetools
import gidgethub
from gidgethub import sansio
from gidgethub import aiohttp as gh_aiohttp
from sanic.log import logger
import sanic.log
from prometheus_client import core
from prometheus_client.exposition import generate_latest

from prbuilder import config
from prbuilder.cache import StateStore
from prbuilder.github import SUPPORTED_EVENTS, create_router
from prbuilder.github.api import API
from prbuilder.logger import configure_logging, get_log_handlers
from prbuilder.metric import error_counter, request_counter, webhook_counter
from prbuilder.model import ProjectsFile, TriggerConfig
from prbuilder.projects import ProjectManager
from prbuilder.trigger import PollScheduler, RepositoryRegistry


def github_client(session: aiohttp.ClientSession, cache=None) -> gh_aiohttp.GitHubAPI:
    return gh_aiohttp.GitHubAPI(
        session,
        "prbuilder",
        oauth_token=config.GITHUB_TOKEN,
        cache=cache,
        base_url=config.GITHUB_API_URL,
    )


async def process_github_event(app, event: sansio.Event) -> None:
    action = event.data.get("action")
    webhook_counter.labels(event=event.event, action=action or "").inc()

    if event.event not in SUPPORTED_EVENTS:
        logger.debug("Ignoring %s event", event.event)
        return

    logger.debug("Dispatching event %s (%s)", event.event, event.delivery_id)
    try:
        await app.ctx.github_router.dispatch(event, app.ctx.registry)
    except Exception:  # noqa: BLE001
        error_counter.labels(context="event_dispatch").inc()
        logger.error("Exception raised when dispatching event", exc_info=True)


def create_app(projects_file: str = None) -> Sanic:
    configure_logging()

    app = Sanic("prbuilder")
    app.update_config(config)

    sanic.log.logger.handlers = []
    get_log_handlers(sanic.log.logger)
    get_log_handlers(logging.getLogger("prbuilder"))

    app.ctx.cache = cachetools.LRUCache(maxsize=500)
    app.ctx.github_router = create_router()
    app.ctx.registry = RepositoryRegistry()
    app.ctx.trigger_config = TriggerConfig.from_env()
    app.ctx.projects_file = projects_file or config.PROJECTS_FILE

    @app.listener("before_server_start")
    async def init(app, loop):
        logger.debug("Creating aiohttp session")
        app.ctx.aiohttp_session = aiohttp.ClientSession()
        app.ctx.api = API(github_client(app.ctx.aiohttp_session, app.ctx.cache))
        app.ctx.store = StateStore(config.STATE_DIR)
        app.ctx.scheduler = PollScheduler()
        app.ctx.projects = ProjectManager(
            api=app.ctx.api,
            config=app.ctx.trigger_config,
            registry=app.ctx.registry,
            scheduler=app.ctx.scheduler,
            store=app.ctx.store,
            webhook_secret=config.GITHUB_WEBHOOK_SECRET,
            dry_run=config.DRY_RUN,
        )
        projects = ProjectsFile.load(app.ctx.projects_file)
        await app.ctx.projects.on_loaded(projects.projects)

    @app.listener("after_server_stop")
    async def teardown(app, loop):
        await app.ctx.scheduler.shutdown()
        await app.ctx.aiohttp_session.close()
        app.ctx.store.close()

    @app.on_request
    async def on_request(request: Request):
        if request.path == "/metrics":
            return
        request_counter.labels(path=request.path).inc()

    @app.get("/status")
    async def status(request):
        logger.debug("status check")
        return response.text("ok")

    @app.route("/webhook", methods=["POST"])
    async def github(request):
        logger.debug("Webhook received")

        try:
            event = sansio.Event.from_http(
                request.headers, request.body, secret=config.GITHUB_WEBHOOK_SECRET
            )
        except gidgethub.ValidationFailure:
            logger.warning("Webhook signature validation failed")
            return response.empty(403)
        except gidgethub.BadRequest:
            logger.warning("Malformed webhook delivery", exc_info=True)
            return response.empty(400)

        await process_github_event(app, event)
        return response.empty(200)

    @app.get("/metrics")
    async def metrics(request):
        return response.raw(generate_latest(core.REGISTRY))

    return app
