from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Protocol

from prbuilder.github.model import CommitState


@dataclass(frozen=True)
class BuildTriggerCause:
    commit: str
    pull_id: int
    merged: bool
    target_branch: str

    @property
    def short_description(self) -> str:
        suffix = ", automatically merged." if self.merged else "."
        return f"GitHub pull request #{self.pull_id} of commit {self.commit}{suffix}"


class BuildHandle(Protocol):
    url: Optional[str]

    def cancel(self) -> bool: ...

    def is_finished(self) -> bool: ...

    def result(self) -> Optional[CommitState]: ...


class BuildExecutor(Protocol):
    async def submit(
        self, cause: BuildTriggerCause, parameters: Mapping[str, str]
    ) -> Optional[BuildHandle]: ...


@dataclass(eq=False)
class TrackedBuild:
    cause: BuildTriggerCause
    handle: BuildHandle

    @property
    def pull_id(self) -> int:
        return self.cause.pull_id

    @property
    def commit(self) -> str:
        return self.cause.commit

    @property
    def merged(self) -> bool:
        return self.cause.merged
