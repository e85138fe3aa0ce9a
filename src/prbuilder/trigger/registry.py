from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from sanic.log import logger

if TYPE_CHECKING:
    from prbuilder.trigger.coordinator import RepositoryCoordinator


class RepositoryRegistry:
    """Which coordinators subscribe to which repository.

    Projects know their repository but not the other way round, so this is
    the only place a webhook delivery can find its recipients. Repository
    names are matched case-insensitively. A single lock guards both maps and
    is never held across I/O.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # repository : (subscriber : coordinator)
        self._repositories: Dict[str, Dict[str, "RepositoryCoordinator"]] = {}
        # subscriber : repository
        self._subscriptions: Dict[str, str] = {}

    @staticmethod
    def _key(repository: str) -> str:
        return repository.lower()

    def register(
        self,
        subscriber: str,
        repository: str,
        coordinator: "RepositoryCoordinator",
    ) -> None:
        repo_key = self._key(repository)
        with self._lock:
            self._remove(subscriber)
            logger.info(
                "Register project %s for callbacks from %s", subscriber, repository
            )
            self._repositories.setdefault(repo_key, {})[subscriber] = coordinator
            self._subscriptions[subscriber] = repo_key

    def unregister(self, subscriber: str) -> bool:
        with self._lock:
            return self._remove(subscriber)

    def rename(self, old: str, new: str) -> bool:
        with self._lock:
            repo_key = self._subscriptions.get(old)
            if repo_key is None:
                return False
            coordinator = self._repositories[repo_key][old]
            self._remove(old)
            self._remove(new)
            self._repositories.setdefault(repo_key, {})[new] = coordinator
            self._subscriptions[new] = repo_key
            logger.info("Renamed project %s to %s on %s", old, new, repo_key)
            return True

    def _remove(self, subscriber: str) -> bool:
        repo_key = self._subscriptions.pop(subscriber, None)
        if repo_key is None:
            return False
        subscribers = self._repositories.get(repo_key, {})
        subscribers.pop(subscriber, None)
        if not subscribers:
            self._repositories.pop(repo_key, None)
        logger.info("From %s remove callback for %s", repo_key, subscriber)
        return True

    def lookup(self, repository: str) -> Tuple["RepositoryCoordinator", ...]:
        with self._lock:
            found = tuple(self._repositories.get(self._key(repository), {}).values())
        logger.debug("For %s %d coordinators have been found", repository, len(found))
        return found

    def get(self, subscriber: str) -> Optional["RepositoryCoordinator"]:
        with self._lock:
            repo_key = self._subscriptions.get(subscriber)
            if repo_key is None:
                return None
            return self._repositories[repo_key][subscriber]

    def repository_of(self, subscriber: str) -> Optional[str]:
        with self._lock:
            return self._subscriptions.get(subscriber)

    def subscribers(self, repository: str) -> List[str]:
        with self._lock:
            return list(self._repositories.get(self._key(repository), {}))

    def repositories(self) -> List[str]:
        with self._lock:
            return sorted(self._repositories)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)
