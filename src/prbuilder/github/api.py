import asyncio
from datetime import datetime, timezone
from typing import AsyncIterator, Iterable, Optional

import aiohttp
import gidgethub
from gidgethub.abc import GitHubAPI
from sanic.log import logger

from prbuilder.github.model import (
    CommitState,
    Hook,
    IssueComment,
    PullRequest,
)
from prbuilder.metric import record_api_call

# Failures of the repository host; callers degrade instead of aborting a pass.
HOST_ERRORS = (gidgethub.GitHubException, aiohttp.ClientError, asyncio.TimeoutError)

STATUS_DESCRIPTION_LIMIT = 140


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class API:
    gh: GitHubAPI

    call_count: int

    def __init__(self, gh: GitHubAPI):
        self.gh = gh
        self.call_count = 0

    def _count(self, endpoint: str) -> None:
        self.call_count += 1
        record_api_call(endpoint)

    async def get_pulls(self, repo: str) -> AsyncIterator[PullRequest]:
        self._count("pulls")
        url = f"/repos/{repo}/pulls?state=open"
        logger.debug("Get open pulls %s", url)
        async for item in self.gh.getiter(url):
            yield PullRequest.model_validate(item)

    async def get_pull(self, repo: str, number: int) -> PullRequest:
        self._count("pulls")
        url = f"/repos/{repo}/pulls/{number}"
        logger.debug("Get pull %s", url)
        return PullRequest.model_validate(await self.gh.getitem(url))

    async def get_mergeable(self, repo: str, number: int) -> Optional[bool]:
        # mergeable is only computed on the single pull endpoint
        pr = await self.get_pull(repo, number)
        return pr.mergeable

    async def get_comments_since(
        self, repo: str, number: int, since: Optional[datetime]
    ) -> AsyncIterator[IssueComment]:
        self._count("comments")
        url = f"/repos/{repo}/issues/{number}/comments"
        if since is not None:
            url += f"?since={format_timestamp(since)}"
        logger.debug("Get comments %s", url)
        async for item in self.gh.getiter(url):
            yield IssueComment.model_validate(item)

    async def create_commit_status(
        self,
        repo: str,
        sha: str,
        state: CommitState,
        target_url: Optional[str],
        description: str,
        context: str,
    ) -> None:
        self._count("statuses")
        url = f"/repos/{repo}/statuses/{sha}"
        payload = {
            "state": CommitState(state).value,
            "description": description[:STATUS_DESCRIPTION_LIMIT],
            "context": context,
        }
        if target_url is not None:
            payload["target_url"] = target_url
        logger.debug("Creating commit status %s: %s", url, payload)
        await self.gh.post(url, data=payload)

    async def post_comment(self, repo: str, number: int, body: str) -> None:
        self._count("comments")
        url = f"/repos/{repo}/issues/{number}/comments"
        logger.debug("Posting comment to %s", url)
        await self.gh.post(url, data={"body": body})

    async def close_pull(self, repo: str, number: int) -> None:
        self._count("pulls")
        url = f"/repos/{repo}/pulls/{number}"
        logger.debug("Closing pull %s", url)
        await self.gh.patch(url, data={"state": "closed"})

    async def get_hooks(self, repo: str) -> AsyncIterator[Hook]:
        self._count("hooks")
        async for item in self.gh.getiter(f"/repos/{repo}/hooks"):
            yield Hook.model_validate(item)

    async def create_hook(
        self,
        repo: str,
        hook_url: str,
        events: Iterable[str],
        active: bool = True,
        secret: Optional[str] = None,
    ) -> Hook:
        self._count("hooks")
        hook_config = {
            "url": hook_url,
            "content_type": "json",
            "insecure_ssl": "1",
        }
        if secret is not None:
            hook_config["secret"] = secret
        url = f"/repos/{repo}/hooks"
        logger.debug("Creating hook %s -> %s", url, hook_url)
        data = await self.gh.post(
            url,
            data={
                "name": "web",
                "config": hook_config,
                "events": list(events),
                "active": active,
            },
        )
        return Hook.model_validate(data)
