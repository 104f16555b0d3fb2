import asyncio

import pytest

from clubhub.auth import SessionStore
from clubhub.models import NoSession, Resolved, Resolving, User
from tests.fakes import make_record


def test_initial_snapshot_is_loading(logger):
    store = SessionStore(logger=logger)
    assert store.loading is True
    assert isinstance(store.state, NoSession)
    assert store.user is None
    assert not store.is_authenticated


def test_publish_keeps_loading_until_finished(logger):
    store = SessionStore(logger=logger)
    store.publish(Resolving(subject_id="A", attempt=1))
    assert store.loading is True

    store.finish_loading()
    store.publish(Resolved(user=User.from_profile(make_record("A"))))
    assert store.loading is False
    assert store.is_authenticated
    assert store.user.id == "A"


def test_finish_loading_only_notifies_once(logger):
    store = SessionStore(logger=logger)
    seen = []
    store.subscribe(seen.append)
    store.finish_loading()
    store.finish_loading()
    assert [snap.loading for snap in seen] == [False]


def test_failing_listener_does_not_block_others(logger):
    store = SessionStore(logger=logger)
    seen = []

    def broken(_snapshot):
        raise ValueError("render failed")

    store.subscribe(broken)
    store.subscribe(seen.append)
    store.publish(NoSession())
    assert len(seen) == 1


def test_unsubscribe(logger):
    store = SessionStore(logger=logger)
    seen = []
    unsubscribe = store.subscribe(seen.append)
    unsubscribe()
    unsubscribe()
    store.publish(NoSession())
    assert seen == []


@pytest.mark.asyncio
async def test_ready_waits_for_first_reconciliation(logger):
    store = SessionStore(logger=logger)
    waiter = asyncio.ensure_future(store.ready())
    await asyncio.sleep(0)
    assert not waiter.done()

    store.finish_loading()
    snapshot = await waiter
    assert snapshot.loading is False
    # Already finished: returns immediately.
    assert (await store.ready()) is store.snapshot
