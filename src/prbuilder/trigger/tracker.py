from __future__ import annotations

from typing import Iterator, List

from sanic.log import logger

from prbuilder.metric import build_cancel_counter
from prbuilder.trigger.types import TrackedBuild


class BuildTracker:
    """In-flight builds of one repository coordinator."""

    def __init__(self) -> None:
        self._builds: List[TrackedBuild] = []

    def add(self, build: TrackedBuild) -> None:
        logger.debug("Tracking build of #%d at %s", build.pull_id, build.commit)
        self._builds.append(build)

    def cancel_build(self, pull_id: int) -> bool:
        for build in list(self._builds):
            if build.pull_id != pull_id:
                continue
            try:
                cancelled = build.handle.cancel()
            except Exception:  # noqa: BLE001
                logger.error(
                    "Cancelling build of #%d at %s raised",
                    pull_id,
                    build.commit,
                    exc_info=True,
                )
                cancelled = False
            if cancelled:
                self._builds.remove(build)
                build_cancel_counter.inc()
                logger.info("Cancelled build of #%d at %s", pull_id, build.commit)
                return True
            logger.info(
                "Build of #%d at %s could not be cancelled", pull_id, build.commit
            )
        return False

    def reap(self) -> List[TrackedBuild]:
        finished = []
        for build in list(self._builds):
            try:
                done = build.handle.is_finished()
            except Exception:  # noqa: BLE001
                logger.error(
                    "Checking build of #%d at %s raised",
                    build.pull_id,
                    build.commit,
                    exc_info=True,
                )
                continue
            if done:
                self._builds.remove(build)
                finished.append(build)
        if finished:
            logger.debug("Reaped %d finished builds", len(finished))
        return finished

    def builds_for(self, pull_id: int) -> List[TrackedBuild]:
        return [build for build in self._builds if build.pull_id == pull_id]

    def __len__(self) -> int:
        return len(self._builds)

    def __iter__(self) -> Iterator[TrackedBuild]:
        return iter(list(self._builds))
