from prbuilder.trigger.coordinator import RepositoryCoordinator
from prbuilder.trigger.executor import CommandExecutor, build_parameters
from prbuilder.trigger.pull_request import PullRequestState
from prbuilder.trigger.registry import RepositoryRegistry
from prbuilder.trigger.reporter import StatusReporter
from prbuilder.trigger.scheduler import PollScheduler
from prbuilder.trigger.tracker import BuildTracker
from prbuilder.trigger.types import (
    BuildExecutor,
    BuildHandle,
    BuildTriggerCause,
    TrackedBuild,
)

__all__ = [
    "BuildExecutor",
    "BuildHandle",
    "BuildTracker",
    "BuildTriggerCause",
    "CommandExecutor",
    "PollScheduler",
    "PullRequestState",
    "RepositoryCoordinator",
    "RepositoryRegistry",
    "StatusReporter",
    "TrackedBuild",
    "build_parameters",
]
