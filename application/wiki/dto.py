"""Wikiアプリケーション層で受け渡すDTO"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

from core.models.wiki.models import WikiPage, WikiRevision, WikiSubmission
from core.time import ensure_utc, isoformat_z
from domain.wiki.types import SubmissionStatus


@dataclass(frozen=True)
class Lease:
    """ページの編集リース（有効なものだけを表す）"""

    page_id: int
    holder_id: int
    holder_name: Optional[str]
    started_at: Optional[datetime]
    expires_at: datetime
    reason: Optional[str] = None

    @classmethod
    def from_page(cls, page: WikiPage) -> "Lease":
        return cls(
            page_id=page.id,
            holder_id=int(page.lock_holder_id),
            holder_name=page.lock_holder_name,
            started_at=ensure_utc(page.lock_start_time),
            expires_at=ensure_utc(page.lock_expiry),
            reason=page.lock_reason,
        )

    def remaining_seconds(self, now: datetime) -> int:
        return max(0, int((self.expires_at - now).total_seconds()))

    def to_dict(self) -> Dict[str, object]:
        return {
            "page_id": self.page_id,
            "holder_id": self.holder_id,
            "holder_name": self.holder_name,
            "started_at": isoformat_z(self.started_at),
            "expires_at": isoformat_z(self.expires_at),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class RevisionHistory:
    revisions: Tuple[WikiRevision, ...]
    total: int
    limit: int
    skip: int

    @property
    def has_more(self) -> bool:
        return self.skip + len(self.revisions) < self.total


@dataclass(frozen=True)
class RecentChange:
    """最近の変更1件（リビジョンと所属ページ）"""

    revision: WikiRevision
    page: WikiPage


@dataclass(frozen=True)
class RecentChanges:
    changes: Tuple[RecentChange, ...]
    total: int
    limit: int
    skip: int

    @property
    def has_more(self) -> bool:
        return self.skip + len(self.changes) < self.total


@dataclass(frozen=True)
class RevisionDetail:
    revision: WikiRevision
    previous: Optional[WikiRevision] = None


@dataclass(frozen=True)
class PageListing:
    pages: Tuple[WikiPage, ...]
    total: int
    limit: int
    skip: int


@dataclass(frozen=True)
class ProposeEditResult:
    """直接反映されたページ、または承認待ちに積まれた提案のどちらか一方"""

    applied: Optional[WikiPage] = None
    queued: Optional[WikiSubmission] = None

    def __post_init__(self) -> None:
        if (self.applied is None) == (self.queued is None):
            raise ValueError("exactly one of applied / queued must be set")

    @property
    def is_applied(self) -> bool:
        return self.applied is not None


@dataclass(frozen=True)
class ReviewOutcome:
    submission: WikiSubmission
    page: Optional[WikiPage] = None


@dataclass(frozen=True)
class SubmissionListing:
    submissions: Tuple[WikiSubmission, ...]
    total: int
    limit: int
    skip: int
    counts: Dict[SubmissionStatus, int] = field(default_factory=dict)

    @property
    def has_more(self) -> bool:
        return self.skip + len(self.submissions) < self.total


__all__ = [
    "Lease",
    "PageListing",
    "ProposeEditResult",
    "RecentChange",
    "RecentChanges",
    "ReviewOutcome",
    "RevisionDetail",
    "RevisionHistory",
    "SubmissionListing",
]
