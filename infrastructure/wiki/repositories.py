"""
Wiki機能のリポジトリ実装 - データアクセス層

リポジトリは commit しない。トランザクション境界はアプリケーションサービスが持つ。
条件付き UPDATE は影響行数で成否を返す。
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, asc, case, desc, func, or_, select, update
from sqlalchemy.orm import Session

from core.db import db
from core.models.wiki.models import WikiPage, WikiRevision, WikiSubmission
from domain.wiki.types import EditType, SubmissionStatus


class _SessionBound:
    def __init__(self, session: Optional[Session] = None):
        self._session = session

    @property
    def session(self) -> Session:
        # 未指定ならリクエスト単位の Flask-SQLAlchemy セッションを使う
        return self._session if self._session is not None else db.session


class WikiPageRepository(_SessionBound):
    """Wikiページのデータアクセス"""

    def find_by_id(self, page_id: int, include_deleted: bool = True) -> Optional[WikiPage]:
        """IDでページを検索"""
        stmt = select(WikiPage).where(WikiPage.id == page_id)
        if not include_deleted:
            stmt = stmt.where(WikiPage.is_deleted.is_(False))
        return self.session.execute(stmt).scalar_one_or_none()

    def find_live(self, namespace: str, slug: str) -> Optional[WikiPage]:
        """名前空間とスラッグで論理削除されていないページを検索"""
        stmt = select(WikiPage).where(
            WikiPage.namespace == namespace,
            WikiPage.slug == slug,
            WikiPage.is_deleted.is_(False),
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def find_live_pages(self, namespace: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[WikiPage]:
        """公開中のページ一覧を取得"""
        stmt = select(WikiPage).where(WikiPage.is_deleted.is_(False))
        if namespace:
            stmt = stmt.where(WikiPage.namespace == namespace)
        stmt = stmt.order_by(desc(WikiPage.updated_at), asc(WikiPage.id)).limit(limit).offset(offset)
        return list(self.session.execute(stmt).scalars())

    def count_live_pages(self, namespace: Optional[str] = None) -> int:
        """公開中のページ数をカウント"""
        stmt = select(func.count(WikiPage.id)).where(WikiPage.is_deleted.is_(False))
        if namespace:
            stmt = stmt.where(WikiPage.namespace == namespace)
        return int(self.session.execute(stmt).scalar_one())

    def current_revision_of(self, page_id: int) -> Optional[int]:
        """DB上の最新リビジョン番号を取得"""
        stmt = select(WikiPage.current_revision).where(WikiPage.id == page_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def add(self, page: WikiPage) -> WikiPage:
        """ページを追加（flush で一意制約を検査する）"""
        self.session.add(page)
        self.session.flush()
        return page

    def compare_and_set(self, page_id: int, expected_revision: int, values: Dict[str, object]) -> bool:
        """``current_revision`` が期待値のときだけ更新してリビジョンを1進める"""
        stmt = (
            update(WikiPage)
            .where(
                WikiPage.id == page_id,
                WikiPage.current_revision == expected_revision,
                WikiPage.is_deleted.is_(False),
            )
            .values(
                current_revision=expected_revision + 1,
                edit_count=WikiPage.edit_count + 1,
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def update_where(self, page_id: int, values: Dict[str, object], *, is_deleted: Optional[bool] = None) -> bool:
        """リビジョンを伴わない列の条件付き更新"""
        stmt = update(WikiPage).where(WikiPage.id == page_id)
        if is_deleted is not None:
            stmt = stmt.where(WikiPage.is_deleted.is_(is_deleted))
        stmt = stmt.values(**values).execution_options(synchronize_session=False)
        return self.session.execute(stmt).rowcount == 1

    # --- 編集リース ---------------------------------------------------------
    def try_acquire_lease(
        self,
        page_id: int,
        holder_id: int,
        holder_name: Optional[str],
        reason: Optional[str],
        now: datetime,
        expires_at: datetime,
    ) -> bool:
        """リースが空・期限切れ・同一保持者のときだけ1文で取得する"""
        renewing = and_(WikiPage.lock_holder_id == holder_id, WikiPage.lock_expiry > now)
        stmt = (
            update(WikiPage)
            .where(
                WikiPage.id == page_id,
                WikiPage.is_deleted.is_(False),
                or_(
                    WikiPage.lock_holder_id.is_(None),
                    WikiPage.lock_expiry.is_(None),
                    WikiPage.lock_expiry <= now,
                    WikiPage.lock_holder_id == holder_id,
                ),
            )
            # MySQL は SET を左から評価するため開始時刻を先に決める
            .ordered_values(
                (WikiPage.lock_start_time, case((renewing, WikiPage.lock_start_time), else_=now)),
                (WikiPage.lock_holder_id, holder_id),
                (WikiPage.lock_holder_name, holder_name),
                (WikiPage.lock_reason, reason),
                (WikiPage.lock_expiry, expires_at),
            )
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def clear_lease(
        self,
        page_id: int,
        holder_id: Optional[int] = None,
        live_at: Optional[datetime] = None,
    ) -> bool:
        """リースを解放（holder_id 指定時はその保持者、live_at 指定時は有効なリースのときだけ）"""
        stmt = update(WikiPage).where(WikiPage.id == page_id, WikiPage.lock_holder_id.is_not(None))
        if holder_id is not None:
            stmt = stmt.where(WikiPage.lock_holder_id == holder_id)
        if live_at is not None:
            stmt = stmt.where(WikiPage.lock_expiry > live_at)
        stmt = stmt.values(**_EMPTY_LEASE).execution_options(synchronize_session=False)
        return self.session.execute(stmt).rowcount == 1

    def clear_expired_leases(self, now: datetime) -> int:
        """期限切れのリース列を一括で消去"""
        stmt = (
            update(WikiPage)
            .where(WikiPage.lock_holder_id.is_not(None), WikiPage.lock_expiry <= now)
            .values(**_EMPTY_LEASE)
            .execution_options(synchronize_session=False)
        )
        return int(self.session.execute(stmt).rowcount or 0)


_EMPTY_LEASE = {
    "lock_holder_id": None,
    "lock_holder_name": None,
    "lock_start_time": None,
    "lock_expiry": None,
    "lock_reason": None,
}


class WikiRevisionRepository(_SessionBound):
    """Wiki履歴のデータアクセス"""

    def add(self, revision: WikiRevision) -> WikiRevision:
        """履歴を追加（flush で (page_id, revision_number) の一意制約を検査する）"""
        self.session.add(revision)
        self.session.flush()
        return revision

    def find_by_id(self, revision_id: int) -> Optional[WikiRevision]:
        """IDで履歴を取得（削除済みページの履歴も対象）"""
        return self.session.get(WikiRevision, revision_id)

    def find_by_number(self, page_id: int, revision_number: int) -> Optional[WikiRevision]:
        """ページIDとリビジョン番号で履歴を取得"""
        stmt = select(WikiRevision).where(
            WikiRevision.page_id == page_id,
            WikiRevision.revision_number == revision_number,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def find_latest(self, page_id: int) -> Optional[WikiRevision]:
        """最新の履歴を取得"""
        stmt = (
            select(WikiRevision)
            .where(WikiRevision.page_id == page_id)
            .order_by(desc(WikiRevision.revision_number))
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def _history_filter(self, stmt, page_id: int, author_id: Optional[int], edit_type: Optional[EditType]):
        stmt = stmt.where(WikiRevision.page_id == page_id)
        if author_id is not None:
            stmt = stmt.where(WikiRevision.author_id == author_id)
        if edit_type is not None:
            stmt = stmt.where(WikiRevision.edit_type == edit_type)
        return stmt

    def find_history(
        self,
        page_id: int,
        *,
        limit: int,
        offset: int = 0,
        author_id: Optional[int] = None,
        edit_type: Optional[EditType] = None,
        ascending: bool = False,
    ) -> List[WikiRevision]:
        """ページIDで履歴を取得（既定は新しい順）"""
        order = asc(WikiRevision.revision_number) if ascending else desc(WikiRevision.revision_number)
        stmt = self._history_filter(select(WikiRevision), page_id, author_id, edit_type)
        stmt = stmt.order_by(order).limit(limit).offset(offset)
        return list(self.session.execute(stmt).scalars())

    def count_history(
        self,
        page_id: int,
        *,
        author_id: Optional[int] = None,
        edit_type: Optional[EditType] = None,
    ) -> int:
        """条件に一致する履歴の件数"""
        stmt = self._history_filter(select(func.count(WikiRevision.id)), page_id, author_id, edit_type)
        return int(self.session.execute(stmt).scalar_one())

    def _recent_filter(
        self,
        stmt,
        namespace: Optional[str],
        author_id: Optional[int],
        edit_type: Optional[EditType],
    ):
        # 論理削除されたページの変更は一覧に出さない
        stmt = stmt.join(WikiPage, WikiPage.id == WikiRevision.page_id).where(WikiPage.is_deleted.is_(False))
        if namespace is not None:
            stmt = stmt.where(WikiPage.namespace == namespace)
        if author_id is not None:
            stmt = stmt.where(WikiRevision.author_id == author_id)
        if edit_type is not None:
            stmt = stmt.where(WikiRevision.edit_type == edit_type)
        return stmt

    def find_recent(
        self,
        *,
        limit: int,
        offset: int = 0,
        namespace: Optional[str] = None,
        author_id: Optional[int] = None,
        edit_type: Optional[EditType] = None,
    ) -> List[Tuple[WikiRevision, WikiPage]]:
        """全ページを横断した最近の変更（新しい順）"""
        stmt = self._recent_filter(select(WikiRevision, WikiPage), namespace, author_id, edit_type)
        stmt = stmt.order_by(desc(WikiRevision.created_at), desc(WikiRevision.id)).limit(limit).offset(offset)
        return [(revision, page) for revision, page in self.session.execute(stmt)]

    def count_recent(
        self,
        *,
        namespace: Optional[str] = None,
        author_id: Optional[int] = None,
        edit_type: Optional[EditType] = None,
    ) -> int:
        stmt = self._recent_filter(select(func.count(WikiRevision.id)), namespace, author_id, edit_type)
        return int(self.session.execute(stmt).scalar_one())

    def mark_reverted(self, page_id: int, after_number: int, up_to_number: int, reverter_id: int) -> int:
        """差し戻しで取り消された履歴に印を付ける"""
        stmt = (
            update(WikiRevision)
            .where(
                WikiRevision.page_id == page_id,
                WikiRevision.revision_number > after_number,
                WikiRevision.revision_number <= up_to_number,
            )
            .values(is_reverted=True, reverted_by_id=reverter_id)
        )
        return int(self.session.execute(stmt).rowcount or 0)


class WikiSubmissionRepository(_SessionBound):
    """承認待ち提案のデータアクセス"""

    def add(self, submission: WikiSubmission) -> WikiSubmission:
        """提案を追加"""
        self.session.add(submission)
        self.session.flush()
        return submission

    def find_by_id(self, submission_id: int) -> Optional[WikiSubmission]:
        """IDで提案を取得"""
        return self.session.get(WikiSubmission, submission_id)

    def find_by_status(
        self,
        status: Optional[SubmissionStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[WikiSubmission]:
        """状態で提案を取得（古い順）"""
        stmt = select(WikiSubmission)
        if status is not None:
            stmt = stmt.where(WikiSubmission.status == status)
        stmt = stmt.order_by(asc(WikiSubmission.created_at), asc(WikiSubmission.id)).limit(limit).offset(offset)
        return list(self.session.execute(stmt).scalars())

    def count_by_status(self) -> Dict[SubmissionStatus, int]:
        """状態ごとの件数"""
        stmt = select(WikiSubmission.status, func.count(WikiSubmission.id)).group_by(WikiSubmission.status)
        counts = {status: 0 for status in SubmissionStatus}
        for status, count in self.session.execute(stmt):
            counts[SubmissionStatus(status)] = int(count)
        return counts

    def current_status_of(self, submission_id: int) -> Optional[SubmissionStatus]:
        """DB上の現在の状態"""
        stmt = select(WikiSubmission.status).where(WikiSubmission.id == submission_id)
        status = self.session.execute(stmt).scalar_one_or_none()
        return SubmissionStatus(status) if status is not None else None

    def transition(
        self,
        submission_id: int,
        from_statuses: Iterable[SubmissionStatus],
        values: Dict[str, object],
    ) -> bool:
        """現在の状態が ``from_statuses`` のときだけ更新する"""
        stmt = (
            update(WikiSubmission)
            .where(
                WikiSubmission.id == submission_id,
                WikiSubmission.status.in_(list(from_statuses)),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1
