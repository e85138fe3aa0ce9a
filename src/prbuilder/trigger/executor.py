from __future__ import annotations

import asyncio
import os
from typing import Dict, Mapping, Optional, Sequence

from sanic.log import logger

from prbuilder.github.model import CommitState
from prbuilder.trigger.types import BuildTriggerCause


def build_parameters(
    cause: BuildTriggerCause, defaults: Optional[Mapping[str, str]] = None
) -> Dict[str, str]:
    """Parameters handed to the executor for one build.

    ``sha1`` is what the build checks out: the host's synthetic merge ref for
    merged builds, the head commit otherwise. A ``sha1`` default of the
    project is always overridden.
    """
    values = {k: str(v) for k, v in (defaults or {}).items() if k != "sha1"}
    if cause.merged:
        values["sha1"] = f"origin/pr/{cause.pull_id}/merge"
    else:
        values["sha1"] = cause.commit
    values["actual_commit"] = cause.commit
    values["base_branch"] = cause.target_branch
    values["pull_id"] = str(cause.pull_id)
    return values


class ProcessBuild:
    url: Optional[str] = None

    def __init__(
        self, cause: BuildTriggerCause, process: asyncio.subprocess.Process
    ):
        self.cause = cause
        self.process = process
        self.cancelled = False
        self._task = asyncio.create_task(process.wait())

    def cancel(self) -> bool:
        if self._task.done():
            return False
        try:
            self.process.terminate()
        except ProcessLookupError:
            return False
        self.cancelled = True
        return True

    def is_finished(self) -> bool:
        return self._task.done()

    def result(self) -> Optional[CommitState]:
        if not self._task.done() or self.cancelled:
            return None
        if self._task.exception() is not None:
            return CommitState.error
        return CommitState.success if self._task.result() == 0 else CommitState.failure

    async def wait(self) -> Optional[CommitState]:
        await asyncio.shield(self._task)
        return self.result()


class CommandExecutor:
    """Runs each build as a local process.

    Build parameters are passed as upper-cased environment variables on top
    of the service's own environment.
    """

    def __init__(self, command: Sequence[str], cwd: Optional[str] = None):
        if not command:
            raise ValueError("CommandExecutor needs a command to run")
        self.command = list(command)
        self.cwd = cwd

    async def submit(
        self, cause: BuildTriggerCause, parameters: Mapping[str, str]
    ) -> Optional[ProcessBuild]:
        env = dict(os.environ)
        env.update({key.upper(): value for key, value in parameters.items()})
        logger.info("Starting %s: %s", cause.short_description, " ".join(self.command))
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command, cwd=self.cwd, env=env
            )
        except OSError:
            logger.error("Could not start build command %s", self.command, exc_info=True)
            return None
        return ProcessBuild(cause, process)
