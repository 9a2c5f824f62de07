"""PageStore の単体テスト"""

import logging

import pytest
from sqlalchemy import update

from core.models.wiki.models import WikiPage
from domain.wiki.exceptions import (
    RevisionConflictError,
    WikiConflictError,
    WikiPageNotFoundError,
    WikiValidationError,
)
from domain.wiki.types import EditType, ProtectionLevel


def test_create_rejects_duplicate_slug_in_namespace(engine, page_factory):
    page_factory(slug="Test")

    with pytest.raises(WikiConflictError):
        page_factory(slug="Test")

    other = page_factory(slug="Test", namespace="help")
    assert other.namespace == "help"


def test_apply_edit_with_matching_expected_revision(engine, page_factory, editor):
    page = page_factory(content="Hello")

    engine.pages.apply_edit(page, "Hello World", "expand", editor, expected_revision=1)

    assert page.current_revision == 2
    assert page.content == "Hello World"
    assert page.updated_by_id == editor.id


def test_apply_edit_with_stale_expected_revision_writes_nothing(engine, page_factory, editor, other_editor):
    page = page_factory(content="Hello")
    engine.pages.apply_edit(page, "Hello World", None, editor)

    with pytest.raises(RevisionConflictError) as excinfo:
        engine.pages.apply_edit(page, "Hi there", None, other_editor, expected_revision=1)

    assert (excinfo.value.expected, excinfo.value.actual) == (1, 2)
    assert page.content == "Hello World"
    assert engine.revisions.history(page).total == 2


def test_apply_edit_detects_concurrent_writer(engine, page_factory, editor, db_session):
    page = page_factory(content="Hello")
    # 別プロセスが先に書き込んだ状態を再現する
    db_session.execute(
        update(WikiPage)
        .where(WikiPage.id == page.id)
        .values(current_revision=2)
        .execution_options(synchronize_session=False)
    )
    db_session.commit()

    with pytest.raises(RevisionConflictError) as excinfo:
        engine.pages.apply_edit(page, "Hello World", None, editor)

    assert (excinfo.value.expected, excinfo.value.actual) == (1, 2)


def test_apply_edit_rejects_empty_content(engine, page_factory, editor):
    page = page_factory()

    with pytest.raises(WikiValidationError):
        engine.pages.apply_edit(page, "", None, editor)


def test_revert_restores_old_content_as_new_revision(engine, page_factory, editor, moderator):
    page = page_factory(content="Hello")
    engine.pages.apply_edit(page, "spam", None, editor)
    engine.pages.apply_edit(page, "more spam", None, editor)

    engine.pages.revert(page, 1, moderator)

    history = engine.revisions.history(page, ascending=True).revisions
    assert page.current_revision == 4
    assert page.content == "Hello"
    assert history[-1].edit_type is EditType.REVERT
    assert history[-1].summary == "Revert to revision 1"
    assert [r.is_reverted for r in history] == [False, True, True, False]
    assert history[1].reverted_by_id == moderator.id


def test_revert_requires_older_revision(engine, page_factory, moderator):
    page = page_factory()

    with pytest.raises(WikiValidationError):
        engine.pages.revert(page, 1, moderator)


def test_set_protection_appends_protect_revision(engine, page_factory, moderator, caplog):
    page = page_factory(content="Hello")

    with caplog.at_level(logging.INFO, logger="wiki"):
        engine.pages.set_protection(page, "full", moderator, "edit war")

    latest = engine.revisions.get(page, 2).revision
    assert ProtectionLevel.parse(page.protection_level) is ProtectionLevel.FULL
    assert page.protection_reason == "edit war"
    assert latest.edit_type is EditType.PROTECT
    assert latest.content == "Hello"
    assert latest.size_change == 0

    record = next(r for r in caplog.records if getattr(r, "event", None) == "wiki.page.protect")
    assert record.wiki_fields["protection_level"] == "full"
    assert record.wiki_fields["revision"] == 2

    with pytest.raises(WikiValidationError):
        engine.pages.set_protection(page, "full", moderator)


def test_move_changes_slug_and_keeps_history(engine, page_factory, moderator):
    page = page_factory(slug="Test")

    engine.pages.move(page, "Renamed", "Renamed", moderator, "typo")

    assert page.live_slug == "Renamed"
    assert engine.pages.find_live("main", "Test") is None
    assert engine.pages.get_live("main", "Renamed").id == page.id
    latest = engine.revisions.get(page, 2).revision
    assert latest.edit_type is EditType.MOVE
    assert latest.summary == "Moved from Test to Renamed: typo"


def test_move_onto_existing_page_conflicts(engine, page_factory, moderator):
    page = page_factory(slug="Test")
    page_factory(slug="Taken")

    with pytest.raises(WikiConflictError):
        engine.pages.move(page, "Taken", "Taken", moderator)


def test_soft_delete_hides_page_but_keeps_revisions(engine, page_factory, moderator, editor):
    page = page_factory(slug="Test")
    revision_id = engine.revisions.get(page, 1).revision.id

    engine.pages.soft_delete(page, moderator, "obsolete")

    assert page.is_deleted is True
    assert engine.pages.find_live("main", "Test") is None
    assert engine.pages.list_live().total == 0
    assert engine.revisions.get_by_id(revision_id).content == "Hello"
    with pytest.raises(WikiPageNotFoundError):
        engine.pages.get_live("main", "Test")
    with pytest.raises(WikiPageNotFoundError):
        engine.pages.apply_edit(page, "ghost edit", None, editor)
    with pytest.raises(WikiPageNotFoundError):
        engine.pages.soft_delete(page, moderator)


def test_slug_is_reusable_after_delete_and_blocks_restore(engine, page_factory, moderator):
    original = page_factory(slug="Test", content="old")
    engine.pages.soft_delete(original, moderator)
    assert original.live_slug is None

    replacement = page_factory(slug="Test", content="new")

    assert replacement.id != original.id
    assert replacement.live_slug == "Test"
    with pytest.raises(WikiConflictError):
        engine.pages.restore(original, moderator)


def test_restore_brings_page_back(engine, page_factory, moderator):
    page = page_factory(slug="Test")
    engine.pages.soft_delete(page, moderator)

    engine.pages.restore(page, moderator)

    assert page.is_deleted is False
    assert page.live_slug == "Test"
    assert engine.pages.get_live("main", "Test").id == page.id
    with pytest.raises(WikiConflictError):
        engine.pages.restore(page, moderator)


def test_list_live_pages_by_namespace(engine, page_factory):
    page_factory(slug="One")
    page_factory(slug="Two")
    page_factory(slug="Three", namespace="help")

    assert engine.pages.list_live("main").total == 2
    assert engine.pages.list_live().total == 3
    assert len(engine.pages.list_live(limit=1).pages) == 1
