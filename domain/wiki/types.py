"""Wikiドメインで利用する列挙型と値オブジェクト。"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class WikiRole(str, Enum):
    """Wiki利用者のロール。``rank`` が大きいほど強い権限を持つ。"""

    VIEWER = "viewer"
    EDITOR = "editor"
    MODERATOR = "moderator"
    ADMIN = "admin"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return _ROLE_RANKS[self]

    def at_least(self, other: "WikiRole") -> bool:
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: "str | WikiRole") -> "WikiRole":
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError as exc:
            raise ValueError(f"unknown wiki role: {value!r}") from exc


_ROLE_RANKS = {
    WikiRole.VIEWER: 0,
    WikiRole.EDITOR: 1,
    WikiRole.MODERATOR: 2,
    WikiRole.ADMIN: 3,
    WikiRole.OWNER: 4,
}


class ProtectionLevel(str, Enum):
    """ページ保護レベル（none < semi < full < admin）。"""

    NONE = "none"
    SEMI = "semi"
    FULL = "full"
    ADMIN = "admin"

    @property
    def strictness(self) -> int:
        return _PROTECTION_ORDER.index(self)

    @classmethod
    def parse(cls, value: "str | ProtectionLevel") -> "ProtectionLevel":
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError as exc:
            raise ValueError(f"unknown protection level: {value!r}") from exc


_PROTECTION_ORDER = [
    ProtectionLevel.NONE,
    ProtectionLevel.SEMI,
    ProtectionLevel.FULL,
    ProtectionLevel.ADMIN,
]


class EditType(str, Enum):
    CREATE = "create"
    EDIT = "edit"
    REVERT = "revert"
    PROTECT = "protect"
    MOVE = "move"


class SubmissionType(str, Enum):
    CREATE = "create"
    EDIT = "edit"


class SubmissionStatus(str, Enum):
    """承認待ちキューの状態。approved / rejected は終端状態。"""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ONHOLD = "onhold"

    @property
    def is_terminal(self) -> bool:
        return self in (SubmissionStatus.APPROVED, SubmissionStatus.REJECTED)


class ReviewDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    HOLD = "hold"
    UNHOLD = "unhold"


@dataclass(frozen=True)
class Actor:
    """外部の認証コンポーネントが解決済みの操作主体。

    コアは資格情報を扱わず、このオブジェクトだけを受け取る。
    """

    id: int
    role: WikiRole
    name: str = ""
    edit_count: int = 0
    registered_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.id <= 0:
            raise ValueError("actor id must be positive")
        object.__setattr__(self, "role", WikiRole.parse(self.role))
        if not self.name:
            object.__setattr__(self, "name", f"user-{self.id}")

    def is_at_least(self, role: WikiRole) -> bool:
        return self.role.at_least(role)


__all__ = [
    "Actor",
    "EditType",
    "ProtectionLevel",
    "ReviewDecision",
    "SubmissionStatus",
    "SubmissionType",
    "WikiRole",
]
