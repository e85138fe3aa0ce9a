from datetime import datetime, timedelta, timezone
import re

from prbuilder.trigger import PullRequestState

PHRASE = re.compile(r".*ok\W+to\W+test.*")


def make_state(**kwargs) -> PullRequestState:
    data = dict(
        id=42,
        author="contributor",
        head="a" * 40,
        updated=datetime(2026, 2, 16, 10, 0, tzinfo=timezone.utc),
    )
    data.update(kwargs)
    return PullRequestState(**data)


def test_new_pull_request_builds_once(make_pr):
    state = PullRequestState.from_pull_request(make_pr(number=7, head_sha="b" * 40))

    assert state.id == 7
    assert state.head == "b" * 40
    assert state.author == "contributor"
    assert state.target_branch == "master"
    assert state.mergeable is None
    assert state.accepted
    assert state.pending_build


def test_new_commit_on_accepted_pull_request_triggers():
    state = make_state(pending_build=False)

    assert state.check_commit("b" * 40)
    assert state.head == "b" * 40
    assert state.pending_build


def test_same_commit_is_not_new():
    state = make_state(pending_build=False)

    assert not state.check_commit("a" * 40)
    assert not state.pending_build


def test_new_commit_on_unaccepted_pull_request_does_not_trigger():
    state = make_state(accepted=False, pending_build=False)

    assert state.check_commit("b" * 40)
    assert state.head == "b" * 40
    assert not state.pending_build


def test_ok_to_test_accepts_even_without_new_commit(make_comment):
    state = make_state(accepted=False, pending_build=False)

    assert state.check_comment(make_comment("ok to test"), PHRASE, "prbuilder-bot")
    assert state.accepted
    assert state.pending_build
    assert state.head == "a" * 40


def test_acceptance_is_sticky(make_comment):
    state = make_state(accepted=False, pending_build=False)
    state.check_comment(make_comment("please, ok to test!"), PHRASE)
    state.prepare_build("main", False)

    state.check_comment(
        make_comment("something else", updated_at="2026-02-16T12:00:00Z"), PHRASE
    )
    assert state.accepted
    assert not state.pending_build

    state.check_commit("c" * 40)
    assert state.pending_build


def test_other_comments_do_not_trigger(make_comment):
    state = make_state(accepted=False, pending_build=False)

    assert state.check_comment(make_comment("looks good to me"), PHRASE)
    assert not state.accepted
    assert not state.pending_build


def test_multi_line_comment_does_not_accept(make_comment, trigger_config):
    state = make_state(accepted=False, pending_build=False)

    comment = make_comment("ok to test\nbut check docs too")
    assert state.check_comment(comment, trigger_config.phrase_pattern())

    assert not state.accepted
    assert not state.pending_build


def test_own_comments_are_ignored(make_comment):
    state = make_state(accepted=False, pending_build=False)

    comment = make_comment("ok to test", author="prbuilder-bot")
    state.check_comment(comment, PHRASE, bot_login="prbuilder-bot")

    assert not state.accepted
    assert not state.pending_build


def test_old_comments_are_not_considered(make_comment):
    state = make_state(accepted=False, pending_build=False)

    old = make_comment("ok to test", updated_at="2026-02-16T09:00:00Z")
    same = make_comment("ok to test", updated_at="2026-02-16T10:00:00Z")
    assert state.check_comments([old, same], PHRASE) == 0
    assert not state.pending_build


def test_updated_only_moves_forward():
    state = make_state()
    original = state.updated

    assert not state.mark_updated(original - timedelta(minutes=5))
    assert not state.mark_updated(original)
    assert state.updated == original

    assert state.mark_updated(original + timedelta(minutes=5))
    assert state.updated == original + timedelta(minutes=5)


def test_naive_timestamps_are_utc():
    state = make_state(updated=datetime(2026, 2, 16, 10, 0))
    assert state.updated.tzinfo is not None
    assert not state.mark_updated(datetime(2026, 2, 16, 10, 0, tzinfo=timezone.utc))


def test_is_updated(make_pr):
    state = PullRequestState.from_pull_request(make_pr())

    assert not state.is_updated(make_pr())
    assert state.is_updated(make_pr(updated_at="2026-02-16T10:05:00Z"))
    assert state.is_updated(make_pr(head_sha="b" * 40))


def test_prepare_build_clears_pending():
    state = make_state()
    state.prepare_build("develop", True)

    assert state.target_branch == "develop"
    assert state.mergeable is True
    assert not state.pending_build


def test_identity_is_the_number():
    a = make_state(head="a" * 40)
    b = make_state(head="b" * 40, accepted=False)
    c = make_state(id=43)

    assert a == b
    assert hash(a) == hash(b)
    assert a != c
    assert len({a, b, c}) == 2


def test_dict_roundtrip_keeps_decision_fields():
    state = make_state(accepted=False, pending_build=False, target_branch="main")
    state.mergeable = False

    restored = PullRequestState.from_dict(state.to_dict())

    assert restored.to_dict() == state.to_dict()
