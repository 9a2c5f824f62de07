"""Wikiアプリケーション層のユースケース

権限判定（ProtectionGate）→ 編集リース → PageStore / SubmissionWorkflow の順に
呼び出す。HTTP 層はここだけを呼ぶ。
"""

from __future__ import annotations

from typing import Iterable, Optional

from core.models.wiki.models import WikiPage, WikiRevision
from domain.wiki.exceptions import RevisionConflictError, WikiValidationError
from domain.wiki.slug import SlugService
from domain.wiki.types import (
    Actor,
    ProtectionLevel,
    ReviewDecision,
    SubmissionStatus,
    SubmissionType,
)

from .dto import (
    Lease,
    PageListing,
    ProposeEditResult,
    RecentChanges,
    ReviewOutcome,
    RevisionDetail,
    RevisionHistory,
    SubmissionListing,
)
from .engine import WikiEngine, current_wiki_engine


class _WikiUseCase:
    def __init__(self, engine: Optional[WikiEngine] = None) -> None:
        self.engine = engine or current_wiki_engine()
        self._slugs = SlugService()

    def _live_page(self, namespace: Optional[str], slug: str) -> WikiPage:
        return self.engine.pages.get_live(
            self._slugs.namespace(namespace),
            self._slugs.from_user_input(slug).value,
        )

    def _ensure_direct_edit(self, page: WikiPage, actor: Actor) -> None:
        gate = self.engine.gate
        gate.ensure_can_edit_directly(page.protection_level, actor)
        gate.ensure(
            gate.can_write_namespace(page.namespace, actor),
            f"namespace {page.namespace!r} is restricted",
        )


class GetPageUseCase(_WikiUseCase):
    """Wikiページ表示ユースケース"""

    def execute(self, namespace: Optional[str], slug: str) -> WikiPage:
        return self._live_page(namespace, slug)


class ListPagesUseCase(_WikiUseCase):
    def execute(self, namespace: Optional[str] = None, limit: int = 50, skip: int = 0) -> PageListing:
        return self.engine.pages.list_live(namespace, limit=limit, skip=skip)


class ProposeEditUseCase(_WikiUseCase):
    """ページ編集ユースケース

    直接編集できる利用者はリースを取って即時反映し、
    それ以外は承認待ちキューに提案を積む。
    """

    def execute(
        self,
        namespace: Optional[str],
        slug: str,
        content: str,
        actor: Actor,
        *,
        summary: Optional[str] = None,
        expected_revision: Optional[int] = None,
        title: Optional[str] = None,
    ) -> ProposeEditResult:
        engine = self.engine
        command = engine.commands.build_edit_command(
            namespace=namespace,
            slug=slug,
            content=content,
            summary=summary,
            expected_revision=expected_revision,
        )
        page = engine.pages.get_live(command.namespace, command.slug)
        gate = engine.gate

        if gate.can_edit_directly(page.protection_level, actor) and gate.can_write_namespace(
            page.namespace, actor
        ):
            with engine.leases.session(page, actor):
                engine.pages.apply_edit(
                    page,
                    command.content,
                    command.summary,
                    actor,
                    expected_revision=command.expected_revision,
                )
            return ProposeEditResult(applied=page)

        gate.ensure(gate.can_submit(actor), "you are not allowed to propose edits")
        if command.expected_revision is not None and command.expected_revision != page.current_revision:
            raise RevisionConflictError(command.expected_revision, page.current_revision)
        submission = engine.submissions.submit(
            SubmissionType.EDIT,
            page.namespace,
            page.slug,
            title or page.title,
            command.content,
            actor,
            summary=command.summary,
            target=page,
        )
        return ProposeEditResult(queued=submission)


class ProposePageCreationUseCase(_WikiUseCase):
    """Wikiページ作成ユースケース"""

    def execute(
        self,
        namespace: Optional[str],
        title: str,
        content: str,
        actor: Actor,
        *,
        slug: Optional[str] = None,
        summary: Optional[str] = None,
        categories: Iterable[str] = (),
    ) -> ProposeEditResult:
        engine = self.engine
        command = engine.commands.build_creation_command(
            namespace=namespace,
            title=title,
            content=content,
            slug=slug,
            summary=summary,
            categories=categories,
        )
        gate = engine.gate
        gate.ensure(gate.can_submit(actor), "you are not allowed to create pages")
        gate.ensure(
            gate.can_write_namespace(command.namespace, actor),
            f"namespace {command.namespace!r} is restricted",
        )

        if gate.can_create_directly(command.namespace, actor):
            page = engine.pages.create(
                command.namespace,
                command.slug,
                command.title,
                command.content,
                actor,
                summary=command.summary,
            )
            return ProposeEditResult(applied=page)

        submission = engine.submissions.submit(
            SubmissionType.CREATE,
            command.namespace,
            command.slug,
            command.title,
            command.content,
            actor,
            summary=command.summary,
            categories=command.categories,
        )
        return ProposeEditResult(queued=submission)


class ReviewSubmissionUseCase(_WikiUseCase):
    """承認待ち提案の審査ユースケース"""

    def execute(
        self,
        submission_id: int,
        decision: ReviewDecision | str,
        reviewer: Actor,
        reason: Optional[str] = None,
    ) -> ReviewOutcome:
        engine = self.engine
        gate = engine.gate
        gate.ensure(gate.can_review(reviewer), "you are not allowed to review submissions")
        try:
            decision = ReviewDecision(decision)
        except ValueError as exc:
            raise WikiValidationError(f"unknown review decision: {decision!r}") from exc

        workflow = engine.submissions
        submission = workflow.get(submission_id)
        if decision is ReviewDecision.APPROVE:
            self._ensure_reviewer_can_apply(submission, reviewer)
            page = workflow.approve(submission, reviewer)
            return ReviewOutcome(submission=submission, page=page)
        if decision is ReviewDecision.REJECT:
            workflow.reject(submission, reviewer, reason)
        elif decision is ReviewDecision.HOLD:
            workflow.hold(submission, reviewer, reason)
        else:
            workflow.unhold(submission, reviewer, reason)
        return ReviewOutcome(submission=submission)

    def _ensure_reviewer_can_apply(self, submission, reviewer: Actor) -> None:
        # 審査者自身が直接反映できない保護レベルの提案は承認できない
        engine = self.engine
        if SubmissionType(submission.submission_type) is SubmissionType.CREATE:
            engine.gate.ensure(
                engine.gate.can_write_namespace(submission.namespace, reviewer),
                f"namespace {submission.namespace!r} is restricted",
            )
            return
        page = engine.pages.get_by_id(submission.page_id, include_deleted=False)
        self._ensure_direct_edit(page, reviewer)


class ListSubmissionsUseCase(_WikiUseCase):
    def execute(
        self,
        reviewer: Actor,
        status: Optional[SubmissionStatus | str] = SubmissionStatus.PENDING,
        limit: int = 50,
        skip: int = 0,
    ) -> SubmissionListing:
        gate = self.engine.gate
        gate.ensure(gate.can_review(reviewer), "you are not allowed to review submissions")
        try:
            parsed = SubmissionStatus(status) if status else None
        except ValueError as exc:
            raise WikiValidationError(f"unknown submission status: {status!r}") from exc
        return self.engine.submissions.list_by_status(parsed, limit=limit, skip=skip)


class AcquireEditSessionUseCase(_WikiUseCase):
    """編集開始（リース取得）ユースケース"""

    def execute(
        self,
        namespace: Optional[str],
        slug: str,
        actor: Actor,
        ttl: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> Lease:
        page = self._live_page(namespace, slug)
        self._ensure_direct_edit(page, actor)
        return self.engine.leases.acquire(page, actor, ttl=ttl, reason=reason or "editing")


class ReleaseEditSessionUseCase(_WikiUseCase):
    def execute(self, namespace: Optional[str], slug: str, actor: Actor, *, force: bool = False) -> bool:
        page = self._live_page(namespace, slug)
        return self.engine.leases.release(page, actor, force=force)


class EditSessionStatusUseCase(_WikiUseCase):
    def execute(self, namespace: Optional[str], slug: str) -> Optional[Lease]:
        page = self._live_page(namespace, slug)
        return self.engine.leases.inspect(page)


class GetHistoryUseCase(_WikiUseCase):
    """リビジョン一覧ユースケース"""

    def execute(
        self,
        namespace: Optional[str],
        slug: str,
        *,
        limit: Optional[int] = None,
        skip: int = 0,
        author_id: Optional[int] = None,
        edit_type: Optional[str] = None,
        order: str = "desc",
    ) -> RevisionHistory:
        if order not in ("asc", "desc"):
            raise WikiValidationError("order must be 'asc' or 'desc'")
        page = self._live_page(namespace, slug)
        return self.engine.revisions.history(
            page,
            limit,
            skip,
            author_id=author_id,
            edit_type=edit_type,
            ascending=order == "asc",
        )


class GetRecentChangesUseCase(_WikiUseCase):
    """最近の変更ユースケース（全ページ横断、名前空間未指定なら全名前空間）"""

    def execute(
        self,
        *,
        namespace: Optional[str] = None,
        edit_type: Optional[str] = None,
        author_id: Optional[int] = None,
        limit: Optional[int] = None,
        skip: int = 0,
    ) -> RecentChanges:
        if namespace is not None and namespace.strip():
            namespace = self._slugs.namespace(namespace)
        else:
            namespace = None
        return self.engine.revisions.recent(
            namespace=namespace,
            edit_type=edit_type,
            author_id=author_id,
            limit=limit,
            skip=skip,
        )


class GetRevisionUseCase(_WikiUseCase):
    def execute(self, namespace: Optional[str], slug: str, revision_number: int) -> RevisionDetail:
        page = self._live_page(namespace, slug)
        return self.engine.revisions.get(page, revision_number)

    def execute_by_id(self, revision_id: int) -> WikiRevision:
        """リビジョンIDで取得（削除済みページの履歴も参照できる）"""

        return self.engine.revisions.get_by_id(revision_id)


class RevertPageUseCase(_WikiUseCase):
    """指定リビジョンへの差し戻しユースケース"""

    def execute(
        self,
        namespace: Optional[str],
        slug: str,
        revision_number: int,
        actor: Actor,
        *,
        summary: Optional[str] = None,
        expected_revision: Optional[int] = None,
    ) -> WikiPage:
        engine = self.engine
        page = self._live_page(namespace, slug)
        self._ensure_direct_edit(page, actor)
        with engine.leases.session(page, actor, reason="revert"):
            engine.pages.revert(
                page,
                revision_number,
                actor,
                summary,
                expected_revision=expected_revision,
            )
        return page


class ProtectPageUseCase(_WikiUseCase):
    """保護レベル変更ユースケース"""

    def execute(
        self,
        namespace: Optional[str],
        slug: str,
        level: ProtectionLevel | str,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> WikiPage:
        engine = self.engine
        command = engine.commands.build_protection_command(
            namespace=namespace, slug=slug, level=level, reason=reason
        )
        page = engine.pages.get_live(command.namespace, command.slug)
        gate = engine.gate
        gate.ensure(gate.can_protect(actor), "you are not allowed to change page protection")
        # 変更後に自分が編集できなくなるレベルは設定できない
        gate.ensure_can_edit_directly(page.protection_level, actor)
        gate.ensure_can_edit_directly(command.level, actor)
        return engine.pages.set_protection(page, command.level, actor, command.reason)


class MovePageUseCase(_WikiUseCase):
    """ページ移動（スラッグ・タイトル変更）ユースケース"""

    def execute(
        self,
        namespace: Optional[str],
        slug: str,
        new_title: str,
        actor: Actor,
        *,
        new_slug: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> WikiPage:
        engine = self.engine
        command = engine.commands.build_move_command(
            namespace=namespace, slug=slug, new_title=new_title, new_slug=new_slug, reason=reason
        )
        page = engine.pages.get_live(command.namespace, command.slug)
        gate = engine.gate
        gate.ensure(gate.can_move(actor), "you are not allowed to move pages")
        self._ensure_direct_edit(page, actor)
        with engine.leases.session(page, actor, reason="move"):
            engine.pages.move(page, command.new_slug, command.new_title, actor, command.reason)
        return page


class DeletePageUseCase(_WikiUseCase):
    """ページ論理削除ユースケース"""

    def execute(
        self,
        namespace: Optional[str],
        slug: str,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> WikiPage:
        engine = self.engine
        page = self._live_page(namespace, slug)
        gate = engine.gate
        gate.ensure(gate.can_delete(actor), "you are not allowed to delete pages")
        self._ensure_direct_edit(page, actor)
        return engine.pages.soft_delete(page, actor, reason)


class RestorePageUseCase(_WikiUseCase):
    def execute(self, page_id: int, actor: Actor) -> WikiPage:
        engine = self.engine
        gate = engine.gate
        gate.ensure(gate.can_delete(actor), "you are not allowed to restore pages")
        page = engine.pages.get_by_id(page_id)
        return engine.pages.restore(page, actor)


__all__ = [
    "AcquireEditSessionUseCase",
    "DeletePageUseCase",
    "EditSessionStatusUseCase",
    "GetHistoryUseCase",
    "GetPageUseCase",
    "GetRecentChangesUseCase",
    "GetRevisionUseCase",
    "ListPagesUseCase",
    "ListSubmissionsUseCase",
    "MovePageUseCase",
    "ProposeEditUseCase",
    "ProposePageCreationUseCase",
    "ProtectPageUseCase",
    "ReleaseEditSessionUseCase",
    "RestorePageUseCase",
    "ReviewSubmissionUseCase",
    "RevertPageUseCase",
]
