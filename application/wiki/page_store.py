"""ページ本体の永続化とリビジョン追記をまとめたストア

ページの更新はすべて ``current_revision`` をキーにした条件付き UPDATE と
リビジョン行の INSERT を1トランザクションで行う。
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional

from sqlalchemy.exc import IntegrityError

from core.logging_config import structured_wiki_logger
from core.models.wiki.models import WikiPage, WikiRevision
from core.time import Clock, utc_now
from domain.wiki.exceptions import (
    RevisionConflictError,
    WikiConflictError,
    WikiPageNotFoundError,
    WikiValidationError,
)
from domain.wiki.slug import DEFAULT_NAMESPACE
from domain.wiki.types import Actor, EditType, ProtectionLevel
from infrastructure.wiki.repositories import WikiPageRepository

from .dto import PageListing
from .revision_log import RevisionLog


_ATOMIC_DEPTH_KEY = "wiki_atomic_depth"


class PageStore:
    """Wikiページの作成・編集・論理削除"""

    def __init__(
        self,
        pages: Optional[WikiPageRepository] = None,
        revision_log: Optional[RevisionLog] = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self.pages = pages or WikiPageRepository()
        self.revision_log = revision_log or RevisionLog(clock=clock)
        self._clock = clock
        self._log = structured_wiki_logger("pages")

    @property
    def _db(self):
        return self.pages.session

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """1回の commit にまとめる。入れ子の場合は最も外側だけが commit する。"""

        info = self._db.info
        depth = info.get(_ATOMIC_DEPTH_KEY, 0)
        info[_ATOMIC_DEPTH_KEY] = depth + 1
        try:
            yield
            if depth == 0:
                self._db.commit()
        except BaseException:
            if depth == 0:
                self._db.rollback()
            raise
        finally:
            info[_ATOMIC_DEPTH_KEY] = depth

    # --- 参照 -------------------------------------------------------------
    def find_live(self, namespace: str, slug: str) -> Optional[WikiPage]:
        return self.pages.find_live(namespace or DEFAULT_NAMESPACE, slug)

    def get_live(self, namespace: str, slug: str) -> WikiPage:
        """論理削除されていないページを返す"""

        page = self.find_live(namespace, slug)
        if page is None:
            raise WikiPageNotFoundError(
                f"page {namespace}/{slug} does not exist",
                namespace=namespace,
                slug=slug,
            )
        return page

    def get_by_id(self, page_id: int, include_deleted: bool = True) -> WikiPage:
        page = self.pages.find_by_id(page_id, include_deleted=include_deleted)
        if page is None:
            raise WikiPageNotFoundError(f"page {page_id} does not exist", page_id=page_id)
        return page

    def list_live(self, namespace: Optional[str] = None, limit: int = 50, skip: int = 0) -> PageListing:
        if limit < 1 or skip < 0:
            raise WikiValidationError("limit must be positive and skip must not be negative")
        pages = self.pages.find_live_pages(namespace, limit=limit, offset=skip)
        total = self.pages.count_live_pages(namespace)
        return PageListing(pages=tuple(pages), total=total, limit=limit, skip=skip)

    # --- 作成 -------------------------------------------------------------
    def create(
        self,
        namespace: str,
        slug: str,
        title: str,
        content: str,
        author: Actor,
        *,
        summary: Optional[str] = None,
        edit_type: EditType = EditType.CREATE,
        verified: bool = False,
    ) -> WikiPage:
        """新しいページとリビジョン1を作成する"""

        namespace = namespace or DEFAULT_NAMESPACE
        if not content:
            raise WikiValidationError("content is required")
        if self.pages.find_live(namespace, slug) is not None:
            raise WikiConflictError(
                f"page {namespace}/{slug} already exists", namespace=namespace, slug=slug
            )

        now = self._clock()
        page = WikiPage(
            namespace=namespace,
            slug=slug,
            live_slug=slug,
            title=title,
            content=content,
            current_revision=1,
            edit_count=1,
            protection_level=ProtectionLevel.NONE,
            is_deleted=False,
            created_by_id=author.id,
            created_by_name=author.name,
            updated_by_id=author.id,
            updated_by_name=author.name,
            created_at=now,
            updated_at=now,
        )
        with self.atomic():
            try:
                self.pages.add(page)
            except IntegrityError as exc:
                raise WikiConflictError(
                    f"page {namespace}/{slug} already exists", namespace=namespace, slug=slug
                ) from exc
            self.revision_log.append(
                page, content, summary, author, EditType(edit_type), verified=verified
            )

        self._log.info(
            "wiki.page.create",
            page_id=page.id,
            namespace=namespace,
            slug=slug,
            author_id=author.id,
            verified=verified,
        )
        return page

    # --- リビジョンを伴う更新 -----------------------------------------------
    def _write_revision(
        self,
        page: WikiPage,
        *,
        content: str,
        summary: Optional[str],
        author: Actor,
        edit_type: EditType,
        expected_revision: Optional[int] = None,
        verified: bool = False,
        values: Optional[Dict[str, object]] = None,
        before_commit: Optional[Callable[[int], None]] = None,
    ) -> WikiRevision:
        if page.is_deleted:
            raise WikiPageNotFoundError(f"page {page.id} is deleted", page_id=page.id)

        if expected_revision is not None and expected_revision != page.current_revision:
            # 手元のオブジェクトが古い可能性があるので DB の値で確かめる
            self._db.refresh(page)
            if page.current_revision != expected_revision:
                raise RevisionConflictError(expected_revision, page.current_revision)

        base = page.current_revision
        previous_content = page.content
        extra = dict(values or {})
        title = extra.get("title", page.title)
        now = self._clock()
        page_values: Dict[str, object] = {
            "content": content,
            "updated_by_id": author.id,
            "updated_by_name": author.name,
            "updated_at": now,
            **extra,
        }

        with self.atomic():
            try:
                if not self.pages.compare_and_set(page.id, base, page_values):
                    actual = self.pages.current_revision_of(page.id)
                    if actual is None or actual == base:
                        raise WikiPageNotFoundError(f"page {page.id} is deleted", page_id=page.id)
                    raise RevisionConflictError(base, actual)
                revision = self.revision_log.append(
                    page,
                    content,
                    summary,
                    author,
                    edit_type,
                    verified=verified,
                    title=str(title),
                    base_revision=base,
                    previous_content=previous_content,
                )
            except IntegrityError as exc:
                # flush 失敗後のセッションは rollback まで読めないため推定で返す
                if "slug" in extra:
                    raise WikiConflictError(
                        f"page {page.namespace}/{extra['slug']} already exists",
                        namespace=page.namespace,
                        slug=extra["slug"],
                    ) from exc
                raise RevisionConflictError(base, base + 1) from exc
            if before_commit is not None:
                before_commit(base)
            self._db.expire(page)

        return revision

    def apply_edit(
        self,
        page: WikiPage,
        content: str,
        summary: Optional[str],
        author: Actor,
        *,
        expected_revision: Optional[int] = None,
        edit_type: EditType = EditType.EDIT,
        verified: bool = False,
    ) -> WikiPage:
        """本文を更新しリビジョンを1件追記する（全て成功するか何も起きない）"""

        if not content:
            raise WikiValidationError("content is required")
        try:
            revision = self._write_revision(
                page,
                content=content,
                summary=summary,
                author=author,
                edit_type=EditType(edit_type),
                expected_revision=expected_revision,
                verified=verified,
            )
        except RevisionConflictError as exc:
            self._log.warning(
                "wiki.page.conflict",
                page_id=page.id,
                expected=exc.expected,
                actual=exc.actual,
                author_id=author.id,
            )
            raise

        self._log.info(
            "wiki.page.edit",
            page_id=page.id,
            revision=revision.revision_number,
            author_id=author.id,
            size_change=revision.size_change,
            verified=verified,
        )
        return page

    def revert(
        self,
        page: WikiPage,
        revision_number: int,
        actor: Actor,
        summary: Optional[str] = None,
        *,
        expected_revision: Optional[int] = None,
    ) -> WikiPage:
        """指定リビジョンの本文を新しいリビジョンとして復元する"""

        target = self.revision_log.get(page, revision_number).revision
        if revision_number >= page.current_revision:
            raise WikiValidationError("can only revert to an older revision")

        def _mark(base: int) -> None:
            self.revision_log.mark_reverted(page, revision_number, base, actor)

        revision = self._write_revision(
            page,
            content=target.content,
            summary=summary or f"Revert to revision {revision_number}",
            author=actor,
            edit_type=EditType.REVERT,
            expected_revision=expected_revision,
            values={"title": target.title},
            before_commit=_mark,
        )
        self._log.info(
            "wiki.page.revert",
            page_id=page.id,
            target_revision=revision_number,
            revision=revision.revision_number,
            actor_id=actor.id,
        )
        return page

    def set_protection(
        self,
        page: WikiPage,
        level: ProtectionLevel | str,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> WikiPage:
        """保護レベルを変更し、本文が同じ ``protect`` リビジョンを追記する"""

        level = ProtectionLevel.parse(level)
        if ProtectionLevel.parse(page.protection_level) is level:
            raise WikiValidationError(f"page is already at protection level {level.value!r}")

        summary = f"Protection level set to {level.value}"
        if reason:
            summary = f"{summary}: {reason}"
        revision = self._write_revision(
            page,
            content=page.content,
            summary=summary,
            author=actor,
            edit_type=EditType.PROTECT,
            values={
                "protection_level": level,
                "protection_reason": reason,
                "protected_by_id": actor.id,
            },
        )
        self._log.info(
            "wiki.page.protect",
            page_id=page.id,
            protection_level=level.value,
            revision=revision.revision_number,
            actor_id=actor.id,
        )
        return page

    def move(
        self,
        page: WikiPage,
        new_slug: str,
        new_title: str,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> WikiPage:
        """スラッグとタイトルを変更し ``move`` リビジョンを追記する"""

        if new_slug == page.slug and new_title == page.title:
            raise WikiValidationError("new slug or title must differ from the current one")
        occupant = self.pages.find_live(page.namespace, new_slug)
        if occupant is not None and occupant.id != page.id:
            raise WikiConflictError(
                f"page {page.namespace}/{new_slug} already exists",
                namespace=page.namespace,
                slug=new_slug,
            )

        old_slug = page.slug
        summary = f"Moved from {old_slug} to {new_slug}"
        if reason:
            summary = f"{summary}: {reason}"
        revision = self._write_revision(
            page,
            content=page.content,
            summary=summary,
            author=actor,
            edit_type=EditType.MOVE,
            values={"slug": new_slug, "live_slug": new_slug, "title": new_title},
        )
        self._log.info(
            "wiki.page.move",
            page_id=page.id,
            old_slug=old_slug,
            new_slug=new_slug,
            revision=revision.revision_number,
            actor_id=actor.id,
        )
        return page

    # --- 論理削除 -----------------------------------------------------------
    def soft_delete(self, page: WikiPage, actor: Actor, reason: Optional[str] = None) -> WikiPage:
        """ページを論理削除する。リビジョンは残り、ID で参照できる。"""

        values = {
            "is_deleted": True,
            "live_slug": None,
            "deleted_at": self._clock(),
            "deleted_by_id": actor.id,
            "delete_reason": reason,
            "lock_holder_id": None,
            "lock_holder_name": None,
            "lock_start_time": None,
            "lock_expiry": None,
            "lock_reason": None,
        }
        with self.atomic():
            if not self.pages.update_where(page.id, values, is_deleted=False):
                raise WikiPageNotFoundError(f"page {page.id} is already deleted", page_id=page.id)
            self._db.expire(page)

        self._log.info("wiki.page.delete", page_id=page.id, actor_id=actor.id, reason=reason)
        return page

    def restore(self, page: WikiPage, actor: Actor) -> WikiPage:
        """論理削除されたページを元に戻す"""

        if not page.is_deleted:
            raise WikiConflictError(f"page {page.id} is not deleted", page_id=page.id)
        if self.pages.find_live(page.namespace, page.slug) is not None:
            raise WikiConflictError(
                f"page {page.namespace}/{page.slug} already exists",
                namespace=page.namespace,
                slug=page.slug,
            )

        values = {
            "is_deleted": False,
            "live_slug": page.slug,
            "deleted_at": None,
            "deleted_by_id": None,
            "delete_reason": None,
            "updated_by_id": actor.id,
            "updated_by_name": actor.name,
            "updated_at": self._clock(),
        }
        with self.atomic():
            try:
                restored = self.pages.update_where(page.id, values, is_deleted=True)
            except IntegrityError as exc:
                raise WikiConflictError(
                    f"page {page.namespace}/{page.slug} already exists",
                    namespace=page.namespace,
                    slug=page.slug,
                ) from exc
            if not restored:
                raise WikiConflictError(f"page {page.id} is not deleted", page_id=page.id)
            self._db.expire(page)

        self._log.info("wiki.page.restore", page_id=page.id, actor_id=actor.id)
        return page


__all__ = ["PageStore"]
