from typing import Dict, List
import logging

import diskcache

from prbuilder import config
from prbuilder.trigger.pull_request import PullRequestState

logger = logging.getLogger("prbuilder")


class StateStore(diskcache.Cache):
    """Tracked pull requests of every subscriber, surviving restarts.

    States are stored as plain dicts under ``pulls_<subscriber>``.
    """

    pulls_key: str = "pulls"
    subscribers_key: str = "subscribers"

    def _pulls_key(self, subscriber: str) -> str:
        return f"{self.pulls_key}_{subscriber}"

    def load(self, subscriber: str) -> Dict[int, PullRequestState]:
        raw = self.get(self._pulls_key(subscriber), [])
        pulls = {}
        for item in raw:
            state = PullRequestState.from_dict(item)
            pulls[state.id] = state
        logger.debug("Loaded %d pull requests of %s", len(pulls), subscriber)
        return pulls

    def save(self, subscriber: str, pulls: Dict[int, PullRequestState]) -> None:
        with self.transact():
            self.set(
                self._pulls_key(subscriber),
                [state.to_dict() for state in pulls.values()],
            )
            known = self.get(self.subscribers_key, set())
            if subscriber not in known:
                known.add(subscriber)
                self.set(self.subscribers_key, known)

    def rename(self, old: str, new: str) -> bool:
        with self.transact():
            raw = self.get(self._pulls_key(old))
            if raw is None:
                return False
            self.set(self._pulls_key(new), raw)
            self.delete(self._pulls_key(old))
            known = self.get(self.subscribers_key, set())
            known.discard(old)
            known.add(new)
            self.set(self.subscribers_key, known)
        logger.info("Moved state of %s to %s", old, new)
        return True

    def forget(self, subscriber: str) -> bool:
        with self.transact():
            removed = self.delete(self._pulls_key(subscriber))
            known = self.get(self.subscribers_key, set())
            known.discard(subscriber)
            self.set(self.subscribers_key, known)
        return removed

    def subscribers(self) -> List[str]:
        return sorted(self.get(self.subscribers_key, set()))


def get_store() -> StateStore:
    logger.info("Opening state dir: %s", config.STATE_DIR)
    return StateStore(config.STATE_DIR)
