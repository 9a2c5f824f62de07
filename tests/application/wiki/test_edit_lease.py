"""EditLeaseService の単体テスト"""

import logging
from datetime import timedelta

import pytest

from domain.wiki.exceptions import (
    LockHeldError,
    WikiAccessDeniedError,
    WikiPageNotFoundError,
    WikiValidationError,
)


def test_acquire_grants_lease_with_configured_ttl(engine, page_factory, editor, clock):
    page = page_factory()

    lease = engine.leases.acquire(page, editor)

    assert lease.holder_id == editor.id
    assert lease.holder_name == editor.name
    assert lease.started_at == clock.now
    assert lease.expires_at == clock.now + timedelta(seconds=600)
    assert lease.reason == "editing"
    assert page.lock_holder_id == editor.id


def test_second_actor_is_denied_while_lease_is_live(engine, page_factory, editor, other_editor, clock):
    page = page_factory()
    lease = engine.leases.acquire(page, editor)
    clock.advance(599)

    with pytest.raises(LockHeldError) as excinfo:
        engine.leases.acquire(page, other_editor)

    assert excinfo.value.holder_id == editor.id
    assert excinfo.value.expires_at == lease.expires_at
    assert excinfo.value.http_status == 423


def test_holder_renews_without_moving_start_time(engine, page_factory, editor, clock):
    page = page_factory()
    first = engine.leases.acquire(page, editor)
    clock.advance(300)

    renewed = engine.leases.acquire(page, editor, ttl=120)

    assert renewed.started_at == first.started_at
    assert renewed.expires_at == clock.now + timedelta(seconds=120)


def test_expired_lease_can_be_taken_over(engine, page_factory, editor, other_editor, clock):
    page = page_factory()
    engine.leases.acquire(page, editor)
    clock.advance(600)

    assert engine.leases.inspect(page) is None

    lease = engine.leases.acquire(page, other_editor)
    assert lease.holder_id == other_editor.id
    assert lease.started_at == clock.now


def test_release_is_idempotent(engine, page_factory, editor):
    page = page_factory()
    engine.leases.acquire(page, editor)

    assert engine.leases.release(page, editor) is True
    assert engine.leases.release(page, editor) is False
    assert engine.leases.is_held(page) is False


def test_release_of_expired_lease_is_a_no_op(engine, page_factory, editor, clock):
    page = page_factory()
    engine.leases.acquire(page, editor)
    clock.advance(601)

    assert engine.leases.release(page, editor) is False


def test_release_by_other_actor_requires_force(engine, page_factory, editor, other_editor, moderator):
    page = page_factory()
    engine.leases.acquire(page, editor)

    with pytest.raises(WikiAccessDeniedError):
        engine.leases.release(page, other_editor)
    with pytest.raises(WikiAccessDeniedError):
        engine.leases.release(page, other_editor, force=True)

    assert engine.leases.release(page, moderator, force=True) is True
    assert engine.leases.is_held(page) is False


def test_session_releases_on_error(engine, page_factory, editor):
    page = page_factory()

    with pytest.raises(RuntimeError):
        with engine.leases.session(page, editor) as lease:
            assert engine.leases.is_held_by(page, editor)
            assert lease.holder_id == editor.id
            raise RuntimeError("boom")

    assert engine.leases.is_held(page) is False


def test_acquire_on_deleted_page_raises_not_found(engine, page_factory, editor, moderator):
    page = page_factory()
    engine.pages.soft_delete(page, moderator)

    with pytest.raises(WikiPageNotFoundError):
        engine.leases.acquire(page, editor)


def test_acquire_rejects_non_positive_ttl(engine, page_factory, editor):
    page = page_factory()

    with pytest.raises(WikiValidationError):
        engine.leases.acquire(page, editor, ttl=0)


def test_sweep_clears_only_expired_leases(engine, page_factory, editor, other_editor, clock):
    stale = page_factory(slug="Stale")
    live = page_factory(slug="Live")
    engine.leases.acquire(stale, editor, ttl=60)
    engine.leases.acquire(live, other_editor, ttl=3600)
    clock.advance(120)

    assert engine.leases.sweep_expired() == 1
    engine.leases.inspect(stale)
    assert stale.lock_holder_id is None
    assert engine.leases.is_held_by(live, other_editor)


def test_session_exit_leaves_a_taken_over_lease_alone(engine, page_factory, editor, other_editor, clock):
    page = page_factory()

    with engine.leases.session(page, editor, ttl=60):
        clock.advance(61)
        engine.leases.acquire(page, other_editor)

    assert engine.leases.is_held_by(page, other_editor)


def test_session_keeps_the_original_error_after_lease_loss(engine, page_factory, editor, other_editor, clock):
    page = page_factory()

    with pytest.raises(RuntimeError, match="boom"):
        with engine.leases.session(page, editor, ttl=60):
            clock.advance(61)
            engine.leases.acquire(page, other_editor)
            raise RuntimeError("boom")

    assert engine.leases.is_held_by(page, other_editor)


def test_force_release_logs_only_when_cleared(engine, page_factory, editor, moderator, monkeypatch, caplog):
    page = page_factory()
    engine.leases.acquire(page, editor)
    repo = engine.leases.pages
    real_clear = repo.clear_lease
    calls = []

    def clear_lease(page_id, holder_id=None, live_at=None):
        calls.append(holder_id)
        if len(calls) == 1:
            return real_clear(page_id, holder_id=holder_id, live_at=live_at)
        # 保持者が入れ替わった直後を再現する
        return False

    monkeypatch.setattr(repo, "clear_lease", clear_lease)

    with caplog.at_level(logging.INFO, logger="wiki"):
        released = engine.leases.release(page, moderator, force=True)

    assert released is False
    assert calls == [moderator.id, editor.id]
    assert not [r for r in caplog.records if getattr(r, "event", None) == "wiki.lease.force_release"]
