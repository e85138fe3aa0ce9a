from __future__ import annotations

import asyncio
import re
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional

from sanic.log import logger

from prbuilder.github.api import API, HOST_ERRORS
from prbuilder.github.model import CommitState, IssueComment, PullRequest
from prbuilder.metric import (
    build_dispatch_counter,
    error_counter,
    poll_counter,
    tracked_builds,
    tracked_pull_requests,
)
from prbuilder.model import REPOSITORY_PATTERN, ConfigurationError, TriggerConfig
from prbuilder.trigger.executor import build_parameters
from prbuilder.trigger.pull_request import PullRequestState
from prbuilder.trigger.reporter import StatusReporter
from prbuilder.trigger.tracker import BuildTracker
from prbuilder.trigger.types import (
    BuildExecutor,
    BuildHandle,
    BuildTriggerCause,
    TrackedBuild,
)

if TYPE_CHECKING:
    from prbuilder.cache import StateStore

HOOK_EVENTS = ("issue_comment", "pull_request")

COMPLETION_MESSAGES = {
    CommitState.success: "Build finished.",
    CommitState.failure: "Build failed.",
    CommitState.error: "Build errored.",
}


def build_message(cancelled: bool, merged: bool) -> str:
    parts = []
    if cancelled:
        parts.append("Previous build stopped.")
    parts.append("Merged build triggered." if merged else "Build triggered.")
    return " ".join(parts)


class RepositoryCoordinator:
    """Reconciles the pull requests of one repository for one project.

    Poll passes and webhook events both go through the same lock, so the
    tracked ``pulls`` map is only ever mutated by one of them at a time.
    """

    def __init__(
        self,
        name: str,
        repository: str,
        *,
        api: API,
        executor: BuildExecutor,
        config: TriggerConfig,
        parameters: Optional[Mapping[str, str]] = None,
        pulls: Optional[Dict[int, PullRequestState]] = None,
        tracker: Optional[BuildTracker] = None,
        lock: Optional[asyncio.Lock] = None,
        store: Optional["StateStore"] = None,
        dry_run: bool = False,
    ):
        if not repository or not REPOSITORY_PATTERN.match(repository):
            raise ConfigurationError(
                f"Invalid repository {repository!r} for {name}, expected 'owner/name'"
            )
        try:
            self._phrase = config.phrase_pattern()
        except re.error as e:
            raise ConfigurationError(
                f"Invalid ok to test phrase {config.ok_to_test_phrase!r}: {e}"
            ) from e

        self.name = name
        self.repository = repository
        self.api = api
        self.executor = executor
        self.config = config
        self.parameters = dict(parameters or {})
        self.pulls: Dict[int, PullRequestState] = pulls if pulls is not None else {}
        self.tracker = tracker if tracker is not None else BuildTracker()
        self.store = store
        self.reporter = StatusReporter(
            api,
            repository,
            context=config.status_context,
            use_comments=config.use_comments,
            dry_run=dry_run,
        )
        self.lock = lock if lock is not None else asyncio.Lock()

    def __repr__(self) -> str:
        return f"RepositoryCoordinator({self.name!r}, {self.repository!r})"

    @property
    def repo_url(self) -> str:
        return f"{self.config.github_server.rstrip('/')}/{self.repository}"

    async def on_poll(self) -> None:
        async with self.lock:
            await self._poll()
            await self._reap()
            self._persist()

    async def on_pull_request_event(self, action: str, pr: PullRequest) -> None:
        async with self.lock:
            await self._on_pull_request_event(action, pr)
            self._persist()

    async def on_issue_comment_event(
        self, action: str, number: int, comment: IssueComment
    ) -> None:
        async with self.lock:
            await self._on_issue_comment_event(action, number, comment)
            self._persist()

    async def _poll(self) -> None:
        logger.info(
            "Getting all open pull requests for %s (%s)", self.repository, self.name
        )
        try:
            prs = [pr async for pr in self.api.get_pulls(self.repository)]
        except HOST_ERRORS:
            poll_counter.labels(result="error").inc()
            logger.error(
                "Could not retrieve pull requests for %s", self.repository, exc_info=True
            )
            return
        logger.info("Got %d open pull requests for %s", len(prs), self.repository)

        closed = set(self.pulls)
        for pr in prs:
            closed.discard(pr.number)
            try:
                await self._check(self._get_or_create(pr), pr)
            except Exception:  # noqa: BLE001
                error_counter.labels(context="pull_request_check").inc()
                logger.error(
                    "Checking %s on %s failed", pr, self.repository, exc_info=True
                )

        for number in sorted(closed):
            logger.info(
                "Pull request #%d on %s is no longer open, dropping it",
                number,
                self.repository,
            )
            del self.pulls[number]
        poll_counter.labels(result="ok").inc()

    async def _on_pull_request_event(self, action: str, pr: PullRequest) -> None:
        if action in ("opened", "reopened"):
            await self._check(self._get_or_create(pr), pr)
        elif action == "synchronize":
            state = self.pulls.get(pr.number)
            if state is None:
                logger.error(
                    "Pull request #%d on %s is not tracked, ignoring synchronize",
                    pr.number,
                    self.repository,
                )
                return
            await self._check(state, pr)
        elif action == "closed":
            if self.pulls.pop(pr.number, None) is not None:
                logger.info(
                    "Pull request #%d on %s closed", pr.number, self.repository
                )
        else:
            logger.warning("Unknown pull request hook action: %s", action)

    async def _on_issue_comment_event(
        self, action: str, number: int, comment: IssueComment
    ) -> None:
        if action != "created":
            logger.debug("Ignoring %s comment on #%d", action, number)
            return
        state = self.pulls.get(number)
        if state is None:
            logger.debug("Pull request #%d on %s is not tracked", number, self.repository)
            return

        state.check_comment(comment, self._phrase, self.config.bot_login)
        if not state.pending_build:
            return

        try:
            pr = await self.api.get_pull(self.repository, number)
        except HOST_ERRORS:
            logger.error(
                "Could not retrieve pull request #%d on %s, building on next poll",
                number,
                self.repository,
                exc_info=True,
            )
            return
        state.check_commit(pr.head.sha)
        state.mark_updated(pr.updated_at)
        await self._build(state, pr)

    def _get_or_create(self, pr: PullRequest) -> PullRequestState:
        state = self.pulls.get(pr.number)
        if state is None:
            state = PullRequestState.from_pull_request(pr)
            self.pulls[pr.number] = state
        return state

    async def _check(self, state: PullRequestState, pr: PullRequest) -> None:
        if state.is_updated(pr):
            logger.info(
                "Pull request #%d was updated on %s at %s",
                state.id,
                self.repository,
                pr.updated_at,
            )
            comments = await self._get_comments(state)
            considered = 0
            if comments is not None:
                considered = state.check_comments(
                    comments, self._phrase, self.config.bot_login
                )
            new_commit = state.check_commit(pr.head.sha)

            if not new_commit and considered == 0:
                logger.info(
                    "Pull request #%d on %s was updated but there are no new "
                    "comments nor commits",
                    state.id,
                    self.repository,
                )
            if comments is not None:
                state.mark_updated(pr.updated_at)

        if state.pending_build:
            await self._build(state, pr)

    async def _get_comments(
        self, state: PullRequestState
    ) -> Optional[List[IssueComment]]:
        try:
            return [
                comment
                async for comment in self.api.get_comments_since(
                    self.repository, state.id, state.updated
                )
            ]
        except HOST_ERRORS:
            logger.error(
                "Couldn't obtain comments of #%d on %s",
                state.id,
                self.repository,
                exc_info=True,
            )
            return None

    async def _get_mergeable(self, number: int) -> bool:
        try:
            return bool(await self.api.get_mergeable(self.repository, number))
        except HOST_ERRORS:
            logger.error(
                "Couldn't obtain mergeable status of #%d on %s",
                number,
                self.repository,
                exc_info=True,
            )
            return False

    async def _build(self, state: PullRequestState, pr: PullRequest) -> None:
        mergeable = await self._get_mergeable(state.id)
        state.prepare_build(pr.base.ref, mergeable)
        logger.info("Merge target branch of #%d: %s", state.id, state.target_branch)

        cancelled = self.tracker.cancel_build(state.id)
        message = build_message(cancelled, mergeable)

        cause = BuildTriggerCause(
            commit=state.head,
            pull_id=state.id,
            merged=mergeable,
            target_branch=state.target_branch,
        )
        handle = await self._submit(cause)
        if handle is None:
            return

        self.tracker.add(TrackedBuild(cause=cause, handle=handle))
        await self.reporter.publish(
            state.head, CommitState.pending, handle.url, message, state.id
        )
        logger.info("%s: %s", cause.short_description, message)

    async def _submit(self, cause: BuildTriggerCause) -> Optional[BuildHandle]:
        parameters = build_parameters(cause, self.parameters)
        try:
            handle = await self.executor.submit(cause, parameters)
        except Exception:  # noqa: BLE001
            logger.error(
                "Executor raised submitting build of #%d", cause.pull_id, exc_info=True
            )
            handle = None

        if handle is None:
            build_dispatch_counter.labels(result="failed").inc()
            logger.error(
                "Build of #%d at %s on %s didn't start",
                cause.pull_id,
                cause.commit,
                self.repository,
            )
            return None
        build_dispatch_counter.labels(result="started").inc()
        return handle

    async def _reap(self) -> None:
        for build in self.tracker.reap():
            try:
                result = build.handle.result()
            except Exception:  # noqa: BLE001
                logger.error(
                    "Could not get result of build of #%d", build.pull_id, exc_info=True
                )
                continue
            if result is None:
                continue
            await self.reporter.publish(
                build.commit,
                result,
                build.handle.url,
                COMPLETION_MESSAGES.get(result, "Build finished."),
                build.pull_id,
            )

    def _persist(self) -> None:
        tracked_pull_requests.labels(subscriber=self.name).set(len(self.pulls))
        tracked_builds.labels(subscriber=self.name).set(len(self.tracker))
        if self.store is None:
            return
        try:
            self.store.save(self.name, self.pulls)
        except Exception:  # noqa: BLE001
            error_counter.labels(context="persist").inc()
            logger.error("Could not persist state of %s", self.name, exc_info=True)

    async def create_hook(self, hook_url: str, secret: Optional[str] = None) -> bool:
        try:
            async for hook in self.api.get_hooks(self.repository):
                if hook.name == "web" and hook.config.url == hook_url:
                    logger.debug("Hook for %s already exists", self.repository)
                    return True
            await self.api.create_hook(
                self.repository, hook_url, HOOK_EVENTS, active=True, secret=secret
            )
        except HOST_ERRORS:
            logger.error(
                "Couldn't create web hook for repository %s. Does the token have "
                "admin rights to the repository?",
                self.repository,
                exc_info=True,
            )
            return False
        logger.info("Created web hook for %s -> %s", self.repository, hook_url)
        return True

    async def add_comment(self, number: int, body: str) -> bool:
        return await self.reporter.comment(number, body)

    async def close_pull_request(self, number: int) -> bool:
        try:
            await self.api.close_pull(self.repository, number)
        except HOST_ERRORS:
            logger.error(
                "Couldn't close the pull request #%d on %s",
                number,
                self.repository,
                exc_info=True,
            )
            return False
        return True
