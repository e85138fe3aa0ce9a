from types import SimpleNamespace

from gidgethub.sansio import Event
import pytest

from conftest import pr_payload
from prbuilder.github import create_router
from prbuilder.metric import error_counter, webhook_counter
from prbuilder.trigger import RepositoryRegistry
from prbuilder.web import process_github_event


def make_app(registry=None, router=None):
    return SimpleNamespace(
        ctx=SimpleNamespace(
            github_router=router or create_router(),
            registry=registry or RepositoryRegistry(),
        )
    )


def make_event(event: str = "pull_request", action: str = "opened"):
    data = {
        "action": action,
        "pull_request": pr_payload(number=8),
        "repository": {"id": 103, "name": "repo", "full_name": "org/repo"},
    }
    return Event(data, event=event, delivery_id="delivery-1")


@pytest.mark.asyncio
async def test_pull_request_event_is_dispatched(coordinator, api, executor, make_pr):
    registry = RepositoryRegistry()
    registry.register(coordinator.name, coordinator.repository, coordinator)
    api.set_pulls(make_pr(number=8))
    before = webhook_counter.labels(event="pull_request", action="opened")._value.get()

    await process_github_event(make_app(registry), make_event())

    assert 8 in coordinator.pulls
    assert [cause.pull_id for cause, _ in executor.submitted] == [8]
    after = webhook_counter.labels(event="pull_request", action="opened")._value.get()
    assert after == before + 1


@pytest.mark.asyncio
async def test_unsupported_event_is_ignored():
    class Router:
        async def dispatch(self, *args):
            raise AssertionError("should not be dispatched")

    await process_github_event(make_app(router=Router()), make_event(event="push"))


@pytest.mark.asyncio
async def test_dispatch_errors_are_absorbed():
    class Router:
        async def dispatch(self, *args):
            raise RuntimeError("boom")

    before = error_counter.labels(context="event_dispatch")._value.get()

    await process_github_event(make_app(router=Router()), make_event())

    assert error_counter.labels(context="event_dispatch")._value.get() == before + 1
