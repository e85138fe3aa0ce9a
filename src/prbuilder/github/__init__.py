from typing import Optional

from gidgethub.routing import Router
from gidgethub.sansio import Event
from sanic.log import logger

from prbuilder.github.api import API, HOST_ERRORS
from prbuilder.github.model import Issue, IssueComment, PullRequest, Repository
from prbuilder.metric import error_counter, webhook_skipped_counter
from prbuilder.trigger.registry import RepositoryRegistry

SUPPORTED_EVENTS = ("pull_request", "issue_comment")


def _repository_name(event: Event) -> Optional[str]:
    repo = Repository.model_validate(event.data["repository"])
    return repo.full_name


async def on_pull_request_webhook(event: Event, registry: RepositoryRegistry) -> int:
    """Deliver a pull_request event to every subscriber of its repository.

    Subscribers are handled one after the other; a failing subscriber does
    not keep the others from seeing the event. Returns the number of
    subscribers the event was delivered to.
    """
    pr = PullRequest.model_validate(event.data["pull_request"])
    action = event.data["action"]
    repo_name = _repository_name(event)
    logger.debug("Received pull_request %s event on %s#%d", action, repo_name, pr.number)

    coordinators = registry.lookup(repo_name) if repo_name else ()
    if not coordinators:
        logger.debug("No project subscribes to %s", repo_name)
        webhook_skipped_counter.labels(event="pull_request").inc()
        return 0

    for coordinator in coordinators:
        try:
            await coordinator.on_pull_request_event(action, pr)
        except Exception:  # noqa: BLE001
            error_counter.labels(context="pull_request_webhook").inc()
            logger.error(
                "Handling pull_request %s for %s failed",
                action,
                coordinator.name,
                exc_info=True,
            )
    return len(coordinators)


async def on_issue_comment_webhook(event: Event, registry: RepositoryRegistry) -> int:
    issue = Issue.model_validate(event.data["issue"])
    comment = IssueComment.model_validate(event.data["comment"])
    action = event.data["action"]
    repo_name = _repository_name(event)
    logger.debug(
        "Comment %s on %s#%d: %r", action, repo_name, issue.number, comment.body
    )

    if not issue.is_pull_request:
        logger.debug("%s#%d is not a pull request", repo_name, issue.number)
        webhook_skipped_counter.labels(event="issue_comment").inc()
        return 0

    coordinators = registry.lookup(repo_name) if repo_name else ()
    if not coordinators:
        webhook_skipped_counter.labels(event="issue_comment").inc()
        return 0

    for coordinator in coordinators:
        try:
            await coordinator.on_issue_comment_event(action, issue.number, comment)
        except Exception:  # noqa: BLE001
            error_counter.labels(context="issue_comment_webhook").inc()
            logger.error(
                "Handling issue_comment %s for %s failed",
                action,
                coordinator.name,
                exc_info=True,
            )
    return len(coordinators)


def create_router() -> Router:
    router = Router()
    router.register("pull_request")(on_pull_request_webhook)
    router.register("issue_comment")(on_issue_comment_webhook)
    return router


__all__ = [
    "API",
    "HOST_ERRORS",
    "SUPPORTED_EVENTS",
    "create_router",
    "on_issue_comment_webhook",
    "on_pull_request_webhook",
]
