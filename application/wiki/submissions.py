"""承認待ちキュー（Submission）のワークフロー

編集提案は提出時点の ``current_revision`` を記録し、承認時に最新リビジョンと
一致しなければ反映せずに保留のまま残す。
"""

from __future__ import annotations

from typing import Iterable, Optional

from core.logging_config import structured_wiki_logger
from core.models.wiki.models import WikiPage, WikiSubmission
from core.time import Clock, utc_now
from domain.wiki.exceptions import (
    InvalidSubmissionStateError,
    RevisionConflictError,
    SubmissionNotFoundError,
    WikiConflictError,
    WikiValidationError,
)
from domain.wiki.slug import DEFAULT_NAMESPACE
from domain.wiki.types import Actor, SubmissionStatus, SubmissionType, WikiRole
from infrastructure.wiki.repositories import WikiSubmissionRepository

from .dto import SubmissionListing
from .page_store import PageStore


class SubmissionWorkflow:
    """提案の登録と審査"""

    def __init__(
        self,
        store: Optional[PageStore] = None,
        submissions: Optional[WikiSubmissionRepository] = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store or PageStore(clock=clock)
        self.submissions = submissions or WikiSubmissionRepository(self.store.pages.session)
        self._clock = clock
        self._log = structured_wiki_logger("submissions")

    # --- 登録 -------------------------------------------------------------
    def submit(
        self,
        submission_type: SubmissionType | str,
        namespace: Optional[str],
        slug: str,
        title: str,
        content: str,
        author: Actor,
        *,
        summary: Optional[str] = None,
        categories: Iterable[str] = (),
        target: Optional[WikiPage] = None,
    ) -> WikiSubmission:
        """提案を pending で登録する"""

        submission_type = SubmissionType(submission_type)
        if not content:
            raise WikiValidationError("content is required")

        namespace = namespace or DEFAULT_NAMESPACE
        expected_revision: Optional[int] = None
        page_id: Optional[int] = None
        if submission_type is SubmissionType.EDIT:
            if target is None:
                raise WikiValidationError("an edit submission needs a target page")
            namespace, slug, title = target.namespace, target.slug, title or target.title
            expected_revision = target.current_revision
            page_id = target.id
        elif self.store.find_live(namespace, slug) is not None:
            raise WikiConflictError(
                f"page {namespace}/{slug} already exists", namespace=namespace, slug=slug
            )

        now = self._clock()
        submission = WikiSubmission(
            submission_type=submission_type,
            status=SubmissionStatus.PENDING,
            namespace=namespace,
            target_slug=slug,
            target_title=title,
            page_id=page_id,
            content=content,
            summary=summary,
            categories=list(categories or []),
            expected_revision=expected_revision,
            author_id=author.id,
            author_name=author.name,
            created_at=now,
            updated_at=now,
        )
        with self.store.atomic():
            self.submissions.add(submission)

        self._log.info(
            "wiki.submission.submit",
            submission_id=submission.id,
            type=submission_type.value,
            page_id=page_id,
            expected_revision=expected_revision,
            author_id=author.id,
        )
        return submission

    # --- 参照 -------------------------------------------------------------
    def get(self, submission_id: int) -> WikiSubmission:
        submission = self.submissions.find_by_id(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(
                f"submission {submission_id} does not exist", submission_id=submission_id
            )
        return submission

    def list_by_status(
        self,
        status: Optional[SubmissionStatus | str] = SubmissionStatus.PENDING,
        limit: int = 50,
        skip: int = 0,
    ) -> SubmissionListing:
        if limit < 1 or skip < 0:
            raise WikiValidationError("limit must be positive and skip must not be negative")
        parsed = SubmissionStatus(status) if status else None
        counts = self.submissions.count_by_status()
        items = self.submissions.find_by_status(parsed, limit=limit, offset=skip)
        total = counts[parsed] if parsed is not None else sum(counts.values())
        return SubmissionListing(
            submissions=tuple(items), total=total, limit=limit, skip=skip, counts=counts
        )

    def count_by_status(self) -> dict[SubmissionStatus, int]:
        return self.submissions.count_by_status()

    # --- 審査 -------------------------------------------------------------
    def approve(self, submission: WikiSubmission, reviewer: Actor) -> WikiPage:
        """提案を反映して approved にする。失敗時は pending のまま残る。"""

        self._ensure_status(submission, (SubmissionStatus.PENDING,), "approve")

        try:
            with self.store.atomic():
                if SubmissionType(submission.submission_type) is SubmissionType.CREATE:
                    page = self.store.create(
                        submission.namespace,
                        submission.target_slug,
                        submission.target_title,
                        submission.content,
                        _author_of(submission),
                        summary=submission.summary,
                        verified=True,
                    )
                else:
                    page = self.store.get_by_id(submission.page_id, include_deleted=False)
                    self.store.apply_edit(
                        page,
                        submission.content,
                        submission.summary,
                        _author_of(submission),
                        expected_revision=submission.expected_revision,
                        verified=True,
                    )
                self._transition(
                    submission,
                    (SubmissionStatus.PENDING,),
                    SubmissionStatus.APPROVED,
                    reviewer,
                    "approve",
                )
        except (RevisionConflictError, WikiConflictError) as exc:
            self._log.warning(
                "wiki.submission.conflict",
                submission_id=submission.id,
                reviewer_id=reviewer.id,
                error=exc.code,
                **exc.details,
            )
            raise

        self.store.pages.session.refresh(submission)
        self._log.info(
            "wiki.submission.approve",
            submission_id=submission.id,
            page_id=page.id,
            revision=page.current_revision,
            reviewer_id=reviewer.id,
        )
        return page

    def reject(self, submission: WikiSubmission, reviewer: Actor, reason: Optional[str] = None) -> WikiSubmission:
        """提案を却下する（ページは変更しない）"""

        return self._decide(
            submission,
            (SubmissionStatus.PENDING, SubmissionStatus.ONHOLD),
            SubmissionStatus.REJECTED,
            reviewer,
            "reject",
            reason,
        )

    def hold(self, submission: WikiSubmission, reviewer: Actor, reason: Optional[str] = None) -> WikiSubmission:
        return self._decide(
            submission,
            (SubmissionStatus.PENDING,),
            SubmissionStatus.ONHOLD,
            reviewer,
            "hold",
            reason,
        )

    def unhold(self, submission: WikiSubmission, reviewer: Actor, reason: Optional[str] = None) -> WikiSubmission:
        return self._decide(
            submission,
            (SubmissionStatus.ONHOLD,),
            SubmissionStatus.PENDING,
            reviewer,
            "unhold",
            reason,
        )

    def _decide(
        self,
        submission: WikiSubmission,
        allowed: tuple[SubmissionStatus, ...],
        target: SubmissionStatus,
        reviewer: Actor,
        action: str,
        reason: Optional[str],
    ) -> WikiSubmission:
        self._ensure_status(submission, allowed, action)
        with self.store.atomic():
            self._transition(submission, allowed, target, reviewer, action, reason)
        self.store.pages.session.refresh(submission)
        self._log.info(
            f"wiki.submission.{action}",
            submission_id=submission.id,
            reviewer_id=reviewer.id,
            status=target.value,
        )
        return submission

    def _transition(
        self,
        submission: WikiSubmission,
        allowed: tuple[SubmissionStatus, ...],
        target: SubmissionStatus,
        reviewer: Actor,
        action: str,
        reason: Optional[str] = None,
    ) -> None:
        now = self._clock()
        values: dict[str, object] = {"status": target, "updated_at": now}
        if target is SubmissionStatus.PENDING:
            values["decision_reason"] = reason
        else:
            values.update(
                reviewer_id=reviewer.id,
                reviewer_name=reviewer.name,
                decision_reason=reason,
                reviewed_at=now,
            )
        if not self.submissions.transition(submission.id, allowed, values):
            # 別の審査者が先に状態を変えた
            current = self.submissions.current_status_of(submission.id)
            raise InvalidSubmissionStateError(
                current.value if current is not None else "missing", action
            )

    @staticmethod
    def _ensure_status(
        submission: WikiSubmission, allowed: tuple[SubmissionStatus, ...], action: str
    ) -> None:
        status = SubmissionStatus(submission.status)
        if status not in allowed:
            raise InvalidSubmissionStateError(status.value, action)


def _author_of(submission: WikiSubmission) -> Actor:
    # 反映されるリビジョンの作者は提案者（審査者ではない）
    return Actor(
        id=submission.author_id,
        role=WikiRole.VIEWER,
        name=submission.author_name or "",
    )


__all__ = ["SubmissionWorkflow"]
