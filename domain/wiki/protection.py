"""ページ保護レベルとロールから編集経路を決めるドメインサービス。

直接編集できない利用者は承認待ちキュー（Submission）経由で提案する。
レベルごとの最低ロールはコードに埋め込まず :class:`ProtectionPolicy` で渡す。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import FrozenSet, Mapping, Optional

from core.time import Clock, ensure_utc, utc_now
from domain.wiki.exceptions import WikiAccessDeniedError
from domain.wiki.types import Actor, ProtectionLevel, WikiRole


DEFAULT_MIN_ROLES: Mapping[ProtectionLevel, WikiRole] = {
    ProtectionLevel.NONE: WikiRole.EDITOR,
    ProtectionLevel.SEMI: WikiRole.EDITOR,
    ProtectionLevel.FULL: WikiRole.MODERATOR,
    ProtectionLevel.ADMIN: WikiRole.ADMIN,
}


@dataclass(frozen=True)
class ProtectionPolicy:
    """保護レベルごとの編集条件。"""

    min_roles: Mapping[ProtectionLevel, WikiRole] = field(
        default_factory=lambda: dict(DEFAULT_MIN_ROLES)
    )
    autoconfirm_levels: FrozenSet[ProtectionLevel] = frozenset({ProtectionLevel.SEMI})
    autoconfirm_min_edits: int = 10
    autoconfirm_min_days: int = 7
    submit_min_role: WikiRole = WikiRole.EDITOR
    reviewer_min_role: WikiRole = WikiRole.MODERATOR
    direct_create_min_role: WikiRole = WikiRole.MODERATOR
    restricted_namespaces: FrozenSet[str] = frozenset({"template", "project"})
    restricted_namespace_min_role: WikiRole = WikiRole.MODERATOR

    def min_role_for(self, level: ProtectionLevel) -> WikiRole:
        # 設定に無いレベルは最も厳しい扱いにする
        return self.min_roles.get(level, WikiRole.OWNER)


class ProtectionGate:
    """(保護レベル, 利用者) から直接編集可否を判定する。"""

    def __init__(self, policy: Optional[ProtectionPolicy] = None, clock: Clock = utc_now) -> None:
        self.policy = policy or ProtectionPolicy()
        self._clock = clock

    # --- 編集経路 ---------------------------------------------------------
    def can_edit_directly(self, level: ProtectionLevel | str, actor: Actor) -> bool:
        level = ProtectionLevel.parse(level)
        if not actor.is_at_least(self.policy.min_role_for(level)):
            return False
        if level in self.policy.autoconfirm_levels and not actor.is_at_least(WikiRole.MODERATOR):
            return self.is_autoconfirmed(actor)
        return True

    def requires_submission(self, level: ProtectionLevel | str, actor: Actor) -> bool:
        return not self.can_edit_directly(level, actor)

    def ensure_can_edit_directly(self, level: ProtectionLevel | str, actor: Actor) -> None:
        if not self.can_edit_directly(level, actor):
            raise WikiAccessDeniedError(
                f"protection level {ProtectionLevel.parse(level).value!r} does not allow direct edits"
                f" by role {actor.role.value!r}",
                protection_level=ProtectionLevel.parse(level).value,
            )

    def is_autoconfirmed(self, actor: Actor) -> bool:
        if actor.edit_count >= self.policy.autoconfirm_min_edits:
            return True
        registered_at: Optional[datetime] = ensure_utc(actor.registered_at)
        if registered_at is None:
            return False
        return self._clock() - registered_at >= timedelta(days=self.policy.autoconfirm_min_days)

    # --- 付随する権限 -------------------------------------------------------
    def can_submit(self, actor: Actor) -> bool:
        return actor.is_at_least(self.policy.submit_min_role)

    def can_review(self, actor: Actor) -> bool:
        return actor.is_at_least(self.policy.reviewer_min_role)

    def can_create_directly(self, namespace: str, actor: Actor) -> bool:
        return actor.is_at_least(self.policy.direct_create_min_role) and self.can_write_namespace(
            namespace, actor
        )

    def can_write_namespace(self, namespace: str, actor: Actor) -> bool:
        if namespace in self.policy.restricted_namespaces:
            return actor.is_at_least(self.policy.restricted_namespace_min_role)
        return True

    def can_protect(self, actor: Actor) -> bool:
        return actor.is_at_least(WikiRole.MODERATOR)

    def can_move(self, actor: Actor) -> bool:
        return actor.is_at_least(WikiRole.MODERATOR)

    def can_delete(self, actor: Actor) -> bool:
        return actor.is_at_least(WikiRole.MODERATOR)

    def ensure(self, allowed: bool, message: str) -> None:
        if not allowed:
            raise WikiAccessDeniedError(message)


__all__ = ["DEFAULT_MIN_ROLES", "ProtectionGate", "ProtectionPolicy"]
