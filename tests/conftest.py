from typing import Dict, List, Optional

import gidgethub
import pytest

from prbuilder.github.model import CommitState, Hook, IssueComment, PullRequest
from prbuilder.model import TriggerConfig
from prbuilder.trigger import RepositoryCoordinator


def pr_payload(
    number: int = 42,
    head_sha: str = "a" * 40,
    updated_at: str = "2026-02-16T10:00:00Z",
    author: str = "contributor",
    base_ref: str = "master",
    mergeable: Optional[bool] = None,
) -> dict:
    return {
        "number": number,
        "id": 5000 + number,
        "state": "open",
        "title": f"Change {number}",
        "user": {"login": author},
        "head": {"ref": "feature", "sha": head_sha},
        "base": {
            "ref": base_ref,
            "sha": "f" * 40,
            "repo": {"id": 103, "name": "repo", "full_name": "org/repo"},
        },
        "created_at": "2026-02-16T09:00:00Z",
        "updated_at": updated_at,
        "mergeable": mergeable,
    }


def comment_payload(
    body: str,
    updated_at: str = "2026-02-16T11:00:00Z",
    author: str = "maintainer",
    id: int = 1,
) -> dict:
    return {
        "id": id,
        "body": body,
        "user": {"login": author},
        "created_at": updated_at,
        "updated_at": updated_at,
    }


class FakeAPI:
    def __init__(self):
        self.pulls: List[PullRequest] = []
        self.comments: Dict[int, List[IssueComment]] = {}
        self.mergeable: Dict[int, Optional[bool]] = {}
        self.hooks: List[Hook] = []
        self.statuses = []
        self.posted_comments = []
        self.created_hooks = []
        self.closed = []
        self.fail_pulls = False
        self.fail_comments = False
        self.fail_mergeable = False
        self.fail_status = False
        self.fail_comment_post = False

    def set_pulls(self, *prs: PullRequest) -> None:
        self.pulls = list(prs)

    async def get_pulls(self, repo: str):
        if self.fail_pulls:
            raise gidgethub.GitHubException("pulls unavailable")
        for pr in self.pulls:
            yield pr

    async def get_pull(self, repo: str, number: int) -> PullRequest:
        for pr in self.pulls:
            if pr.number == number:
                return pr
        raise gidgethub.GitHubException(f"no pull {number}")

    async def get_mergeable(self, repo: str, number: int) -> Optional[bool]:
        if self.fail_mergeable:
            raise gidgethub.GitHubException("mergeable unavailable")
        return self.mergeable.get(number)

    async def get_comments_since(self, repo: str, number: int, since):
        if self.fail_comments:
            raise gidgethub.GitHubException("comments unavailable")
        for comment in self.comments.get(number, []):
            if since is None or comment.updated_at >= since:
                yield comment

    async def create_commit_status(
        self, repo, sha, state, target_url, description, context
    ):
        if self.fail_status:
            raise gidgethub.GitHubException("statuses unavailable")
        self.statuses.append((sha, state, target_url, description))

    async def post_comment(self, repo, number, body):
        if self.fail_comment_post:
            raise gidgethub.GitHubException("comments unavailable")
        self.posted_comments.append((number, body))

    async def close_pull(self, repo, number):
        self.closed.append(number)

    async def get_hooks(self, repo):
        for hook in self.hooks:
            yield hook

    async def create_hook(self, repo, hook_url, events, active=True, secret=None):
        self.created_hooks.append((hook_url, tuple(events), active))
        hook = Hook(id=len(self.hooks) + 1, name="web", config={"url": hook_url})
        self.hooks.append(hook)
        return hook


class FakeHandle:
    def __init__(self, cause, cancellable: bool = True):
        self.cause = cause
        self.url = f"https://ci.example.com/builds/{cause.pull_id}/{cause.commit[:7]}"
        self.cancellable = cancellable
        self.cancelled = False
        self.finished = False
        self.outcome: Optional[CommitState] = None

    def cancel(self) -> bool:
        if not self.cancellable or self.finished:
            return False
        self.cancelled = True
        return True

    def is_finished(self) -> bool:
        return self.finished

    def result(self) -> Optional[CommitState]:
        return self.outcome

    def finish(self, outcome: CommitState = CommitState.success) -> None:
        self.finished = True
        self.outcome = outcome


class FakeExecutor:
    def __init__(self):
        self.submitted = []
        self.handles: List[FakeHandle] = []
        self.fail = False
        self.cancellable = True

    async def submit(self, cause, parameters):
        self.submitted.append((cause, dict(parameters)))
        if self.fail:
            return None
        handle = FakeHandle(cause, cancellable=self.cancellable)
        self.handles.append(handle)
        return handle


@pytest.fixture
def make_pr():
    def factory(**kwargs) -> PullRequest:
        return PullRequest.model_validate(pr_payload(**kwargs))

    return factory


@pytest.fixture
def make_comment():
    def factory(body: str, **kwargs) -> IssueComment:
        return IssueComment.model_validate(comment_payload(body, **kwargs))

    return factory


@pytest.fixture
def api():
    return FakeAPI()


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def trigger_config():
    return TriggerConfig(bot_login="prbuilder-bot")


@pytest.fixture
def coordinator(api, executor, trigger_config):
    return RepositoryCoordinator(
        "project",
        "org/repo",
        api=api,
        executor=executor,
        config=trigger_config,
    )
