"""Wikiユースケースの単体テスト"""

from __future__ import annotations

import pytest

from application.wiki.use_cases import (
    AcquireEditSessionUseCase,
    DeletePageUseCase,
    EditSessionStatusUseCase,
    GetHistoryUseCase,
    GetPageUseCase,
    GetRecentChangesUseCase,
    GetRevisionUseCase,
    ListPagesUseCase,
    ListSubmissionsUseCase,
    MovePageUseCase,
    ProposeEditUseCase,
    ProposePageCreationUseCase,
    ProtectPageUseCase,
    ReleaseEditSessionUseCase,
    RestorePageUseCase,
    ReviewSubmissionUseCase,
    RevertPageUseCase,
)
from domain.wiki.exceptions import (
    LockHeldError,
    RevisionConflictError,
    WikiAccessDeniedError,
    WikiPageNotFoundError,
    WikiValidationError,
)
from domain.wiki.types import SubmissionStatus


@pytest.fixture
def protected_page(engine, page_factory, moderator):
    page = page_factory(slug="Test", content="Hello")
    engine.pages.set_protection(page, "full", moderator)
    return page


def test_direct_edit_is_applied_and_lease_released(engine, page_factory, editor):
    page = page_factory(slug="Test", content="Hello")

    result = ProposeEditUseCase(engine).execute("main", "Test", "Hello World", editor, expected_revision=1)

    assert result.is_applied
    assert result.applied.current_revision == 2
    assert engine.leases.is_held(page) is False


def test_direct_edit_blocked_by_foreign_lease(engine, page_factory, editor, other_editor):
    page = page_factory(slug="Test")
    engine.leases.acquire(page, other_editor)

    with pytest.raises(LockHeldError):
        ProposeEditUseCase(engine).execute("main", "Test", "Hello World", editor)

    assert page.current_revision == 1


def test_protected_page_edit_is_queued(engine, protected_page, editor):
    result = ProposeEditUseCase(engine).execute("main", "Test", "Hello World", editor, summary="typo")

    assert result.is_applied is False
    assert result.queued.expected_revision == protected_page.current_revision == 2
    assert result.queued.summary == "typo"
    assert protected_page.content == "Hello"


def test_queued_edit_with_stale_expected_revision_conflicts(engine, protected_page, editor):
    with pytest.raises(RevisionConflictError):
        ProposeEditUseCase(engine).execute("main", "Test", "Hello World", editor, expected_revision=1)


def test_viewer_cannot_propose_edits(engine, page_factory, viewer):
    page_factory(slug="Test")

    with pytest.raises(WikiAccessDeniedError):
        ProposeEditUseCase(engine).execute("main", "Test", "Hello World", viewer)


def test_edit_of_missing_page(engine, editor):
    with pytest.raises(WikiPageNotFoundError):
        ProposeEditUseCase(engine).execute("main", "Nope", "Hello", editor)


def test_page_creation_routes_by_role(engine, editor, moderator):
    queued = ProposePageCreationUseCase(engine).execute(None, "Draft Page", "Body", editor)
    applied = ProposePageCreationUseCase(engine).execute(None, "Live Page", "Body", moderator)

    assert queued.queued.target_slug == "draft-page"
    assert applied.applied.slug == "live-page"
    assert GetPageUseCase(engine).execute("main", "live-page").title == "Live Page"


def test_restricted_namespace_blocks_editor(engine, editor):
    with pytest.raises(WikiAccessDeniedError):
        ProposePageCreationUseCase(engine).execute("template", "Infobox", "Body", editor)


def test_review_requires_reviewer_role(engine, protected_page, editor, other_editor):
    queued = ProposeEditUseCase(engine).execute("main", "Test", "Hello World", editor).queued

    with pytest.raises(WikiAccessDeniedError):
        ReviewSubmissionUseCase(engine).execute(queued.id, "approve", other_editor)


def test_review_approve_applies_submission(engine, protected_page, editor, moderator):
    queued = ProposeEditUseCase(engine).execute("main", "Test", "Hello World", editor).queued

    outcome = ReviewSubmissionUseCase(engine).execute(queued.id, "approve", moderator)

    assert outcome.page.content == "Hello World"
    assert outcome.page.current_revision == 3
    assert SubmissionStatus(outcome.submission.status) is SubmissionStatus.APPROVED


def test_review_rejects_unknown_decision(engine, protected_page, editor, moderator):
    queued = ProposeEditUseCase(engine).execute("main", "Test", "Hello World", editor).queued

    with pytest.raises(WikiValidationError):
        ReviewSubmissionUseCase(engine).execute(queued.id, "escalate", moderator)


def test_reviewer_must_be_able_to_edit_target_level(engine, page_factory, editor, moderator, admin):
    page = page_factory(slug="Locked")
    engine.pages.set_protection(page, "admin", admin)
    queued = ProposeEditUseCase(engine).execute("main", "Locked", "change", editor).queued

    with pytest.raises(WikiAccessDeniedError):
        ReviewSubmissionUseCase(engine).execute(queued.id, "approve", moderator)

    outcome = ReviewSubmissionUseCase(engine).execute(queued.id, "hold", moderator, "admin only")
    assert SubmissionStatus(outcome.submission.status) is SubmissionStatus.ONHOLD


def test_list_submissions_for_reviewers(engine, protected_page, editor, moderator):
    ProposeEditUseCase(engine).execute("main", "Test", "Hello World", editor)

    listing = ListSubmissionsUseCase(engine).execute(moderator)

    assert listing.total == 1
    with pytest.raises(WikiAccessDeniedError):
        ListSubmissionsUseCase(engine).execute(editor)
    with pytest.raises(WikiValidationError):
        ListSubmissionsUseCase(engine).execute(moderator, "archived")


def test_edit_session_lifecycle(engine, page_factory, editor, other_editor):
    page_factory(slug="Test")

    lease = AcquireEditSessionUseCase(engine).execute("main", "Test", editor, ttl=60)
    status = EditSessionStatusUseCase(engine).execute("main", "Test")

    assert status == lease
    with pytest.raises(LockHeldError):
        AcquireEditSessionUseCase(engine).execute("main", "Test", other_editor)
    assert ReleaseEditSessionUseCase(engine).execute("main", "Test", editor) is True
    assert EditSessionStatusUseCase(engine).execute("main", "Test") is None


def test_edit_session_requires_direct_edit_rights(engine, protected_page, editor):
    with pytest.raises(WikiAccessDeniedError):
        AcquireEditSessionUseCase(engine).execute("main", "Test", editor)


def test_history_and_revision_lookup(engine, page_factory, editor):
    page_factory(slug="Test", content="Hello")
    ProposeEditUseCase(engine).execute("main", "Test", "Hello World", editor)

    history = GetHistoryUseCase(engine).execute("main", "Test", order="asc")
    detail = GetRevisionUseCase(engine).execute("main", "Test", 2)

    assert [r.revision_number for r in history.revisions] == [1, 2]
    assert detail.previous.content == "Hello"
    with pytest.raises(WikiValidationError):
        GetHistoryUseCase(engine).execute("main", "Test", order="sideways")


def test_recent_changes_use_case_normalizes_namespace(engine, page_factory, editor):
    page_factory(slug="Alpha")
    page_factory(slug="Manual", namespace="help")
    use_case = GetRecentChangesUseCase(engine)

    help_only = use_case.execute(namespace=" HELP ")
    everything = use_case.execute(namespace="")

    assert [change.page.slug for change in help_only.changes] == ["Manual"]
    assert everything.total == 2
    with pytest.raises(WikiValidationError):
        use_case.execute(namespace="bad namespace!")


def test_revert_use_case(engine, page_factory, editor, moderator):
    page_factory(slug="Test", content="Hello")
    ProposeEditUseCase(engine).execute("main", "Test", "vandalism", editor)

    page = RevertPageUseCase(engine).execute("main", "Test", 1, moderator, expected_revision=2)

    assert page.content == "Hello"
    assert page.current_revision == 3
    assert engine.leases.is_held(page) is False


def test_protect_use_case_checks_roles(engine, page_factory, editor, moderator, admin):
    page_factory(slug="Test")

    with pytest.raises(WikiAccessDeniedError):
        ProtectPageUseCase(engine).execute("main", "Test", "semi", editor)
    # 自分が編集できなくなるレベルには変更できない
    with pytest.raises(WikiAccessDeniedError):
        ProtectPageUseCase(engine).execute("main", "Test", "admin", moderator)

    page = ProtectPageUseCase(engine).execute("main", "Test", "admin", admin, "office action")
    assert page.protection_reason == "office action"


def test_move_delete_and_restore(engine, page_factory, editor, moderator):
    original = page_factory(slug="Test")

    with pytest.raises(WikiAccessDeniedError):
        MovePageUseCase(engine).execute("main", "Test", "Moved", editor)
    moved = MovePageUseCase(engine).execute("main", "Test", "Moved Page", moderator)
    assert moved.slug == "moved-page"

    with pytest.raises(WikiAccessDeniedError):
        DeletePageUseCase(engine).execute("main", "moved-page", editor)
    DeletePageUseCase(engine).execute("main", "moved-page", moderator, "cleanup")
    assert ListPagesUseCase(engine).execute().total == 0
    assert GetRevisionUseCase(engine).execute_by_id(
        engine.revisions.get(original, 1).revision.id
    ).page_id == original.id

    restored = RestorePageUseCase(engine).execute(original.id, moderator)
    assert restored.is_deleted is False
    assert GetPageUseCase(engine).execute("main", "moved-page").id == original.id
