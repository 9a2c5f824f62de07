"""ページごとの追記専用リビジョン履歴"""

from __future__ import annotations

from typing import Optional

from core.logging_config import structured_wiki_logger
from core.models.wiki.models import WikiPage, WikiRevision
from core.time import Clock, utc_now
from domain.wiki.exceptions import RevisionNotFoundError, WikiValidationError
from domain.wiki.types import Actor, EditType
from infrastructure.wiki.repositories import WikiRevisionRepository

from .dto import RecentChange, RecentChanges, RevisionDetail, RevisionHistory

RECENT_DEFAULT_LIMIT = 50
RECENT_MAX_LIMIT = 500


class RevisionLog:
    """リビジョンの追記と範囲読み出し

    ``append`` は flush のみ行う。commit は呼び出し側（PageStore）が
    ページの条件付き更新と同じトランザクションで行う。
    """

    def __init__(
        self,
        revisions: Optional[WikiRevisionRepository] = None,
        *,
        clock: Clock = utc_now,
        default_limit: int = 20,
        max_limit: int = 200,
        recent_default_limit: int = RECENT_DEFAULT_LIMIT,
        recent_max_limit: int = RECENT_MAX_LIMIT,
    ) -> None:
        self.revisions = revisions or WikiRevisionRepository()
        self._clock = clock
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.recent_default_limit = recent_default_limit
        self.recent_max_limit = recent_max_limit
        self._log = structured_wiki_logger("revisions")

    def append(
        self,
        page: WikiPage,
        content: str,
        summary: Optional[str],
        author: Actor,
        edit_type: EditType,
        *,
        verified: bool = False,
        title: Optional[str] = None,
        base_revision: Optional[int] = None,
        previous_content: Optional[str] = None,
    ) -> WikiRevision:
        """新しいリビジョンを1件追記する"""

        edit_type = EditType(edit_type)
        if edit_type is EditType.CREATE:
            if not content:
                raise WikiValidationError("content is required for a new page")
            number = 1
            previous_length = 0
        else:
            base = page.current_revision if base_revision is None else base_revision
            number = base + 1
            previous = page.content if previous_content is None else previous_content
            previous_length = len(previous or "")

        revision = WikiRevision(
            page_id=page.id,
            revision_number=number,
            title=title or page.title,
            content=content,
            summary=summary,
            edit_type=edit_type,
            content_length=len(content),
            size_change=len(content) - previous_length,
            is_verified=verified,
            author_id=author.id,
            author_name=author.name,
            created_at=self._clock(),
        )
        self.revisions.add(revision)
        self._log.debug(
            "wiki.revision.append",
            page_id=page.id,
            revision=number,
            edit_type=edit_type.value,
            author_id=author.id,
        )
        return revision

    def history(
        self,
        page: WikiPage,
        limit: Optional[int] = None,
        skip: int = 0,
        *,
        author_id: Optional[int] = None,
        edit_type: Optional[EditType | str] = None,
        ascending: bool = False,
    ) -> RevisionHistory:
        """リビジョン一覧（既定は新しい順）"""

        limit = _window(limit, skip, self.default_limit, self.max_limit)
        parsed_type = _parse_edit_type(edit_type)
        revisions = self.revisions.find_history(
            page.id,
            limit=limit,
            offset=skip,
            author_id=author_id,
            edit_type=parsed_type,
            ascending=ascending,
        )
        total = self.revisions.count_history(page.id, author_id=author_id, edit_type=parsed_type)
        return RevisionHistory(revisions=tuple(revisions), total=total, limit=limit, skip=skip)

    def recent(
        self,
        namespace: Optional[str] = None,
        edit_type: Optional[EditType | str] = None,
        author_id: Optional[int] = None,
        limit: Optional[int] = None,
        skip: int = 0,
    ) -> RecentChanges:
        """全ページを横断した最近の変更（リビジョン作成日時の新しい順）

        論理削除されたページのリビジョンは含めない。
        """

        limit = _window(limit, skip, self.recent_default_limit, self.recent_max_limit)
        parsed_type = _parse_edit_type(edit_type)
        rows = self.revisions.find_recent(
            limit=limit,
            offset=skip,
            namespace=namespace,
            author_id=author_id,
            edit_type=parsed_type,
        )
        total = self.revisions.count_recent(namespace=namespace, author_id=author_id, edit_type=parsed_type)
        return RecentChanges(
            changes=tuple(RecentChange(revision=revision, page=page) for revision, page in rows),
            total=total,
            limit=limit,
            skip=skip,
        )

    def get(self, page: WikiPage, revision_number: int) -> RevisionDetail:
        """リビジョン本体と直前のリビジョン"""

        revision = self.revisions.find_by_number(page.id, revision_number)
        if revision is None:
            raise RevisionNotFoundError(
                f"revision {revision_number} of page {page.id} does not exist",
                page_id=page.id,
                revision_number=revision_number,
            )
        previous = None
        if revision_number > 1:
            previous = self.revisions.find_by_number(page.id, revision_number - 1)
        return RevisionDetail(revision=revision, previous=previous)

    def get_by_id(self, revision_id: int) -> WikiRevision:
        revision = self.revisions.find_by_id(revision_id)
        if revision is None:
            raise RevisionNotFoundError(
                f"revision id {revision_id} does not exist", revision_id=revision_id
            )
        return revision

    def mark_reverted(self, page: WikiPage, after_number: int, up_to_number: int, reverter: Actor) -> int:
        return self.revisions.mark_reverted(page.id, after_number, up_to_number, reverter.id)


def _window(limit: Optional[int], skip: int, default_limit: int, max_limit: int) -> int:
    if skip < 0:
        raise WikiValidationError("skip must not be negative")
    if limit is None:
        limit = default_limit
    if limit < 1:
        raise WikiValidationError("limit must be positive")
    return min(limit, max_limit)


def _parse_edit_type(edit_type: Optional[EditType | str]) -> Optional[EditType]:
    if not edit_type:
        return None
    try:
        return EditType(edit_type)
    except ValueError as exc:
        raise WikiValidationError(f"unknown edit type: {edit_type!r}") from exc


__all__ = ["RECENT_DEFAULT_LIMIT", "RECENT_MAX_LIMIT", "RevisionLog"]
