from __future__ import annotations

from typing import Optional

from sanic.log import logger

from prbuilder.github.api import API, HOST_ERRORS
from prbuilder.github.model import CommitState
from prbuilder.metric import error_counter, status_publish_counter


class StatusReporter:
    """Publishes commit statuses, falling back to PR comments.

    Neither method raises: a failed publication is logged and reported through
    the return value only.
    """

    def __init__(
        self,
        api: API,
        repository: str,
        *,
        context: str = "prbuilder",
        use_comments: bool = False,
        dry_run: bool = False,
    ):
        self.api = api
        self.repository = repository
        self.context = context
        self.use_comments = use_comments
        self.dry_run = dry_run

    async def publish(
        self,
        sha: str,
        state: CommitState,
        target_url: Optional[str],
        message: str,
        pull_id: int,
    ) -> bool:
        logger.info(
            "Setting status of %s to %s with url %s and message: %s",
            sha,
            state.value,
            target_url,
            message,
        )
        if self.dry_run:
            status_publish_counter.labels(result="dry_run").inc()
            return True
        try:
            await self.api.create_commit_status(
                self.repository, sha, state, target_url, message, self.context
            )
            status_publish_counter.labels(result="status").inc()
            return True
        except HOST_ERRORS:
            if not self.use_comments:
                status_publish_counter.labels(result="error").inc()
                logger.error(
                    "Could not update commit status of %s on %s",
                    sha,
                    self.repository,
                    exc_info=True,
                )
                return False
            logger.info(
                "Could not update commit status of %s on %s, trying to send comment",
                sha,
                self.repository,
                exc_info=True,
            )
        except Exception:  # noqa: BLE001
            status_publish_counter.labels(result="error").inc()
            error_counter.labels(context="status_publish").inc()
            logger.error("Unexpected error publishing status of %s", sha, exc_info=True)
            return False

        if await self.comment(pull_id, message):
            status_publish_counter.labels(result="comment").inc()
            return True
        status_publish_counter.labels(result="error").inc()
        return False

    async def comment(self, pull_id: int, body: str) -> bool:
        if self.dry_run:
            logger.info("Dry run, not commenting on #%d: %s", pull_id, body)
            return True
        try:
            await self.api.post_comment(self.repository, pull_id, body)
            return True
        except HOST_ERRORS:
            logger.error(
                "Couldn't add comment to pull request #%d: %r",
                pull_id,
                body,
                exc_info=True,
            )
        except Exception:  # noqa: BLE001
            error_counter.labels(context="comment").inc()
            logger.error(
                "Unexpected error commenting on pull request #%d", pull_id, exc_info=True
            )
        return False
