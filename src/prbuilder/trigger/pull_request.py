from __future__ import annotations

from datetime import datetime, timezone
import re
from typing import Any, Dict, Iterable, Optional

from sanic.log import logger

from prbuilder.github.model import IssueComment, PullRequest


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class PullRequestState:
    """Tracked state of one open pull request.

    The state decides whether a build has to be (re)started: a new head commit
    triggers only once the pull request is ``accepted``, an ok-to-test comment
    accepts it and triggers unconditionally. ``pending_build`` is cleared by
    :meth:`prepare_build` right before a dispatch is attempted.

    Identity is the pull request number alone.
    """

    id: int
    author: str
    head: str
    updated: datetime
    target_branch: str
    mergeable: Optional[bool]
    accepted: bool
    pending_build: bool

    def __init__(
        self,
        id: int,
        author: str,
        head: str,
        updated: datetime,
        *,
        target_branch: str = "master",
        mergeable: Optional[bool] = None,
        accepted: bool = True,
        pending_build: bool = True,
    ):
        self.id = id
        self.author = author
        self.head = head
        self.updated = _as_utc(updated)
        self.target_branch = target_branch
        self.mergeable = mergeable
        self.accepted = accepted
        self.pending_build = pending_build

    @classmethod
    def from_pull_request(cls, pr: PullRequest) -> "PullRequestState":
        state = cls(
            id=pr.number,
            author=pr.user.login,
            head=pr.head.sha,
            updated=pr.updated_at,
        )
        logger.info(
            "Created pull request #%d by %s updated at: %s SHA: %s",
            state.id,
            state.author,
            state.updated,
            state.head,
        )
        return state

    def is_updated(self, pr: PullRequest) -> bool:
        return self.updated < _as_utc(pr.updated_at) or pr.head.sha != self.head

    def check_commit(self, sha: str) -> bool:
        """Record a head commit, returns False if it is not new."""
        if sha == self.head:
            return False

        logger.debug("New commit on #%d: %s => %s", self.id, self.head, sha)
        self.head = sha
        if self.accepted:
            self.pending_build = True
        else:
            logger.info(
                "Pull request #%d by %s is not accepted, not building %s",
                self.id,
                self.author,
                sha,
            )
        return True

    def is_new_comment(self, comment: IssueComment) -> bool:
        return self.updated < _as_utc(comment.updated_at)

    def check_comment(
        self,
        comment: IssueComment,
        phrase: re.Pattern[str],
        bot_login: Optional[str] = None,
    ) -> bool:
        """Apply one comment, returns True if it was considered at all."""
        if not self.is_new_comment(comment):
            return False

        sender = comment.user.login
        if bot_login is not None and sender == bot_login:
            logger.debug("Ignoring own comment %d on #%d", comment.id, self.id)
            return True

        if phrase.fullmatch(comment.body) is not None:
            logger.info(
                "Comment %d by %s accepts pull request #%d", comment.id, sender, self.id
            )
            self.accepted = True
            self.pending_build = True
        return True

    def check_comments(
        self,
        comments: Iterable[IssueComment],
        phrase: re.Pattern[str],
        bot_login: Optional[str] = None,
    ) -> int:
        return sum(
            1 for comment in comments if self.check_comment(comment, phrase, bot_login)
        )

    def mark_updated(self, updated: datetime) -> bool:
        updated = _as_utc(updated)
        if updated <= self.updated:
            return False
        self.updated = updated
        return True

    def prepare_build(self, target_branch: str, mergeable: Optional[bool]) -> None:
        self.target_branch = target_branch
        self.mergeable = mergeable
        self.pending_build = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "author": self.author,
            "head": self.head,
            "updated": self.updated,
            "target_branch": self.target_branch,
            "mergeable": self.mergeable,
            "accepted": self.accepted,
            "pending_build": self.pending_build,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PullRequestState":
        data = dict(data)
        return cls(
            data.pop("id"),
            data.pop("author"),
            data.pop("head"),
            data.pop("updated"),
            **data,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PullRequestState):
            return NotImplemented
        return other.id == self.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return (
            f"PullRequestState(#{self.id}, head={self.head}, "
            f"accepted={self.accepted}, pending_build={self.pending_build})"
        )
