from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

import pydantic


class Model(pydantic.BaseModel):
    pass


class CommitState(str, Enum):
    pending = "pending"
    success = "success"
    error = "error"
    failure = "failure"


class User(Model):
    login: str
    id: Optional[int] = None


class Repository(Model):
    id: Optional[int] = None
    name: str
    full_name: Optional[str] = None
    url: Optional[str] = None
    html_url: Optional[str] = None
    private: Optional[bool] = None


class PrConnection(Model):
    ref: str
    sha: str
    label: Optional[str] = None
    repo: Optional[Repository] = None


class PullRequest(Model):
    number: int
    id: Optional[int] = None
    state: Literal["open", "closed"] = "open"
    title: Optional[str] = None
    user: User
    head: PrConnection
    base: PrConnection
    created_at: Optional[datetime] = None
    updated_at: datetime
    merged_at: Optional[datetime] = None
    mergeable: Optional[bool] = None
    html_url: Optional[str] = None

    def __str__(self) -> str:
        name = None
        if self.base.repo is not None:
            name = self.base.repo.full_name or self.base.repo.name
        if name is None:
            return f"PR(#{self.number})"
        return f"PR({name}#{self.number})"


class Issue(Model):
    number: int
    title: Optional[str] = None
    user: Optional[User] = None
    pull_request: Optional[Dict[str, Any]] = None

    @property
    def is_pull_request(self) -> bool:
        return self.pull_request is not None


class IssueComment(Model):
    id: int
    body: str = ""
    user: User
    created_at: Optional[datetime] = None
    updated_at: datetime
    html_url: Optional[str] = None


class HookConfig(Model):
    url: Optional[str] = None
    content_type: Optional[str] = None
    insecure_ssl: Optional[str] = None


class Hook(Model):
    id: int
    name: str
    active: bool = True
    events: List[str] = pydantic.Field(default_factory=list)
    config: HookConfig = pydantic.Field(default_factory=HookConfig)
