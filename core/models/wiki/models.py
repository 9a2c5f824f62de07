"""Wiki機能のSQLAlchemyモデル."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Type

from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import db
from core.time import ensure_utc, isoformat_z
from domain.wiki.types import EditType, ProtectionLevel, SubmissionStatus, SubmissionType

BigInt = db.BigInteger().with_variant(db.Integer, "sqlite")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_column(enum_cls: Type[PyEnum], length: int = 16):
    """列挙値（小文字の文字列）をそのまま保存する非ネイティブ Enum 型。"""

    return db.Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class WikiPage(db.Model):
    """Wikiページモデル

    ``content`` / ``current_revision`` は最新リビジョンの非正規化キャッシュ。
    編集リースもこの行の列として保持する。
    """

    __tablename__ = "wiki_page"
    __table_args__ = (
        # live_slug は論理削除時に NULL になるため、公開中のページだけが一意制約の対象
        db.UniqueConstraint("namespace", "live_slug", name="uq_wiki_page_namespace_live_slug"),
        db.Index("ix_wiki_page_lock_expiry", "lock_holder_id", "lock_expiry"),
    )

    id: Mapped[int] = mapped_column(BigInt, primary_key=True, autoincrement=True)
    namespace: Mapped[str] = mapped_column(db.String(32), nullable=False, default="main")
    slug: Mapped[str] = mapped_column(db.String(255), nullable=False, index=True)
    live_slug: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    title: Mapped[str] = mapped_column(db.String(255), nullable=False)
    content: Mapped[str] = mapped_column(db.Text, nullable=False)
    current_revision: Mapped[int] = mapped_column(db.Integer, nullable=False, default=1)
    edit_count: Mapped[int] = mapped_column(db.Integer, nullable=False, default=1)

    # 保護
    protection_level: Mapped[ProtectionLevel] = mapped_column(
        _enum_column(ProtectionLevel),
        nullable=False,
        default=ProtectionLevel.NONE,
    )
    protection_reason: Mapped[str | None] = mapped_column(db.String(500), nullable=True)
    protected_by_id: Mapped[int | None] = mapped_column(BigInt, nullable=True)

    # 論理削除
    is_deleted: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    deleted_by_id: Mapped[int | None] = mapped_column(BigInt, nullable=True)
    delete_reason: Mapped[str | None] = mapped_column(db.String(500), nullable=True)

    # 編集リース
    lock_holder_id: Mapped[int | None] = mapped_column(BigInt, nullable=True)
    lock_holder_name: Mapped[str | None] = mapped_column(db.String(120), nullable=True)
    lock_start_time: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    lock_expiry: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    lock_reason: Mapped[str | None] = mapped_column(db.String(120), nullable=True)

    # タイムスタンプ
    created_at: Mapped[datetime] = mapped_column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    # 利用者（認証は外部コンポーネントのため外部キーは張らない）
    created_by_id: Mapped[int] = mapped_column(BigInt, nullable=False)
    created_by_name: Mapped[str | None] = mapped_column(db.String(120), nullable=True)
    updated_by_id: Mapped[int] = mapped_column(BigInt, nullable=False)
    updated_by_name: Mapped[str | None] = mapped_column(db.String(120), nullable=True)

    revisions: Mapped[list["WikiRevision"]] = relationship(
        "WikiRevision",
        back_populates="page",
        cascade="all, delete-orphan",
        order_by="WikiRevision.revision_number",
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<WikiPage {self.namespace}/{self.slug} r{self.current_revision}>"

    def lease_is_live(self, now: datetime) -> bool:
        expiry = ensure_utc(self.lock_expiry)
        return self.lock_holder_id is not None and expiry is not None and now < expiry

    def to_dict(self) -> dict[str, object | None]:
        """辞書形式で返す"""

        return {
            "id": self.id,
            "namespace": self.namespace,
            "slug": self.slug,
            "title": self.title,
            "content": self.content,
            "current_revision": self.current_revision,
            "edit_count": self.edit_count,
            "protection_level": ProtectionLevel.parse(self.protection_level).value,
            "protection_reason": self.protection_reason,
            "is_deleted": self.is_deleted,
            "created_at": isoformat_z(self.created_at),
            "updated_at": isoformat_z(self.updated_at),
            "created_by_id": self.created_by_id,
            "updated_by_id": self.updated_by_id,
        }


class WikiRevision(db.Model):
    """Wikiページの履歴管理（追記のみ）"""

    __tablename__ = "wiki_revision"
    __table_args__ = (
        db.UniqueConstraint("page_id", "revision_number", name="uq_wiki_revision_page_number"),
        db.Index("ix_wiki_revision_author", "author_id"),
    )

    id: Mapped[int] = mapped_column(BigInt, primary_key=True, autoincrement=True)
    page_id: Mapped[int] = mapped_column(BigInt, db.ForeignKey("wiki_page.id"), nullable=False)
    revision_number: Mapped[int] = mapped_column(db.Integer, nullable=False)
    title: Mapped[str] = mapped_column(db.String(255), nullable=False)
    content: Mapped[str] = mapped_column(db.Text, nullable=False)
    summary: Mapped[str | None] = mapped_column(db.String(500), nullable=True)
    edit_type: Mapped[EditType] = mapped_column(_enum_column(EditType), nullable=False)
    content_length: Mapped[int] = mapped_column(db.Integer, nullable=False)
    size_change: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)

    is_reverted: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    reverted_by_id: Mapped[int | None] = mapped_column(BigInt, nullable=True)
    # 承認フロー経由で反映されたリビジョン
    is_verified: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    author_id: Mapped[int] = mapped_column(BigInt, nullable=False)
    author_name: Mapped[str | None] = mapped_column(db.String(120), nullable=True)

    page: Mapped[WikiPage] = relationship(
        "WikiPage",
        back_populates="revisions",
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<WikiRevision {self.page_id} v{self.revision_number}>"

    def to_dict(self, include_content: bool = True) -> dict[str, object | None]:
        payload: dict[str, object | None] = {
            "id": self.id,
            "page_id": self.page_id,
            "revision_number": self.revision_number,
            "title": self.title,
            "summary": self.summary,
            "edit_type": EditType(self.edit_type).value,
            "content_length": self.content_length,
            "size_change": self.size_change,
            "is_reverted": self.is_reverted,
            "is_verified": self.is_verified,
            "author_id": self.author_id,
            "author_name": self.author_name,
            "created_at": isoformat_z(self.created_at),
        }
        if include_content:
            payload["content"] = self.content
        return payload


class WikiSubmission(db.Model):
    """承認待ちのページ作成・編集提案"""

    __tablename__ = "wiki_submission"
    __table_args__ = (
        db.Index("ix_wiki_submission_status_created", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigInt, primary_key=True, autoincrement=True)
    submission_type: Mapped[SubmissionType] = mapped_column(
        _enum_column(SubmissionType), nullable=False
    )
    status: Mapped[SubmissionStatus] = mapped_column(
        _enum_column(SubmissionStatus),
        nullable=False,
        default=SubmissionStatus.PENDING,
    )
    namespace: Mapped[str] = mapped_column(db.String(32), nullable=False, default="main")
    target_slug: Mapped[str] = mapped_column(db.String(255), nullable=False)
    target_title: Mapped[str] = mapped_column(db.String(255), nullable=False)
    page_id: Mapped[int | None] = mapped_column(BigInt, db.ForeignKey("wiki_page.id"), nullable=True)

    content: Mapped[str] = mapped_column(db.Text, nullable=False)
    summary: Mapped[str | None] = mapped_column(db.String(500), nullable=True)
    categories: Mapped[list[str]] = mapped_column(db.JSON, nullable=False, default=list)
    # 提案時に作成者が見ていたリビジョン（create では None）
    expected_revision: Mapped[int | None] = mapped_column(db.Integer, nullable=True)

    author_id: Mapped[int] = mapped_column(BigInt, nullable=False)
    author_name: Mapped[str | None] = mapped_column(db.String(120), nullable=True)
    reviewer_id: Mapped[int | None] = mapped_column(BigInt, nullable=True)
    reviewer_name: Mapped[str | None] = mapped_column(db.String(120), nullable=True)
    decision_reason: Mapped[str | None] = mapped_column(db.String(500), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    page: Mapped[WikiPage | None] = relationship("WikiPage")

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<WikiSubmission {self.id} {self.submission_type} {self.status}>"

    def to_dict(self) -> dict[str, object | None]:
        return {
            "id": self.id,
            "type": SubmissionType(self.submission_type).value,
            "status": SubmissionStatus(self.status).value,
            "namespace": self.namespace,
            "target_slug": self.target_slug,
            "target_title": self.target_title,
            "page_id": self.page_id,
            "content": self.content,
            "summary": self.summary,
            "categories": list(self.categories or []),
            "expected_revision": self.expected_revision,
            "author_id": self.author_id,
            "author_name": self.author_name,
            "reviewer_id": self.reviewer_id,
            "reviewer_name": self.reviewer_name,
            "decision_reason": self.decision_reason,
            "reviewed_at": isoformat_z(self.reviewed_at),
            "created_at": isoformat_z(self.created_at),
        }


__all__ = ["WikiPage", "WikiRevision", "WikiSubmission"]
