"""ページ単位の編集リース

リースはページ行の列として保持し、取得は1文の条件付き UPDATE で行う。
期限切れのリースは読み取り時に無効とみなす（遅延失効）。
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import timedelta
from typing import Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError

from core.logging_config import structured_wiki_logger
from core.models.wiki.models import WikiPage
from core.time import Clock, ensure_utc, utc_now
from domain.wiki.exceptions import (
    LockHeldError,
    WikiAccessDeniedError,
    WikiPageNotFoundError,
    WikiValidationError,
)
from domain.wiki.types import Actor, WikiRole
from infrastructure.wiki.repositories import WikiPageRepository

from .dto import Lease


DEFAULT_REASON = "editing"


class EditLeaseService:
    """編集リースの取得・更新・解放"""

    def __init__(
        self,
        pages: Optional[WikiPageRepository] = None,
        *,
        ttl_seconds: int = 600,
        clock: Clock = utc_now,
        force_release_role: WikiRole = WikiRole.MODERATOR,
    ) -> None:
        if ttl_seconds < 1:
            raise ValueError("lease ttl must be positive")
        self.pages = pages or WikiPageRepository()
        self.ttl_seconds = ttl_seconds
        self.force_release_role = force_release_role
        self._clock = clock
        self._log = structured_wiki_logger("lease")

    @property
    def _db(self):
        return self.pages.session

    def acquire(
        self,
        page: WikiPage,
        actor: Actor,
        ttl: Optional[int] = None,
        reason: Optional[str] = DEFAULT_REASON,
    ) -> Lease:
        """リースを取得する。保持者本人なら期限を延長する。"""

        ttl_seconds = self.ttl_seconds if ttl is None else int(ttl)
        if ttl_seconds < 1:
            raise WikiValidationError("lease ttl must be positive")

        now = self._clock()
        renewing = page.lock_holder_id == actor.id and page.lease_is_live(now)
        try:
            acquired = self.pages.try_acquire_lease(
                page.id,
                actor.id,
                actor.name,
                reason,
                now,
                now + timedelta(seconds=ttl_seconds),
            )
            if acquired:
                self._db.commit()
            else:
                self._db.rollback()
        except SQLAlchemyError:
            self._db.rollback()
            raise

        self._db.refresh(page)
        if not acquired:
            if page.is_deleted:
                raise WikiPageNotFoundError(f"page {page.id} is deleted", page_id=page.id)
            self._log.info(
                "wiki.lease.denied",
                page_id=page.id,
                actor_id=actor.id,
                holder_id=page.lock_holder_id,
            )
            raise LockHeldError(
                holder_id=page.lock_holder_id,
                expires_at=ensure_utc(page.lock_expiry),
                holder_name=page.lock_holder_name,
            )

        lease = Lease.from_page(page)
        self._log.info(
            "wiki.lease.renew" if renewing else "wiki.lease.acquire",
            page_id=page.id,
            actor_id=actor.id,
            expires_at=lease.expires_at,
        )
        return lease

    def release(self, page: WikiPage, actor: Actor, *, force: bool = False) -> bool:
        """リースを解放する。リースが無い・失効済みなら何もしない。"""

        now = self._clock()
        try:
            released = self.pages.clear_lease(page.id, holder_id=actor.id, live_at=now)
            if released:
                self._db.commit()
                self._db.refresh(page)
                self._log.info("wiki.lease.release", page_id=page.id, actor_id=actor.id)
                return True

            self._db.rollback()
            self._db.refresh(page)
            if not page.lease_is_live(now):
                return False

            if not (force and actor.is_at_least(self.force_release_role)):
                raise WikiAccessDeniedError(
                    "the edit lease is held by another user",
                    holder_id=page.lock_holder_id,
                )

            holder_id = page.lock_holder_id
            released = self.pages.clear_lease(page.id, holder_id=holder_id, live_at=now)
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            raise

        self._db.refresh(page)
        if released:
            self._log.warning(
                "wiki.lease.force_release",
                page_id=page.id,
                actor_id=actor.id,
                holder_id=holder_id,
            )
        return released

    def inspect(self, page: WikiPage) -> Optional[Lease]:
        """有効なリースがあれば返す"""

        self._db.refresh(page)
        if not page.lease_is_live(self._clock()):
            return None
        return Lease.from_page(page)

    def is_held(self, page: WikiPage) -> bool:
        return self.inspect(page) is not None

    def is_held_by(self, page: WikiPage, actor: Actor) -> bool:
        lease = self.inspect(page)
        return lease is not None and lease.holder_id == actor.id

    @contextmanager
    def session(
        self,
        page: WikiPage,
        actor: Actor,
        ttl: Optional[int] = None,
        reason: Optional[str] = DEFAULT_REASON,
    ) -> Iterator[Lease]:
        """リースを取得し、ブロックを抜けるときに必ず解放する"""

        lease = self.acquire(page, actor, ttl=ttl, reason=reason)
        try:
            yield lease
        finally:
            try:
                self.release(page, actor)
            except WikiAccessDeniedError as exc:
                # 期限切れの間に他の利用者が取得したリースには触れない
                self._log.warning(
                    "wiki.lease.lost",
                    page_id=page.id,
                    actor_id=actor.id,
                    holder_id=exc.details.get("holder_id"),
                )

    def sweep_expired(self) -> int:
        """期限切れのリース列を消去する（読み取り側は遅延失効するため最適化のみ）"""

        now = self._clock()
        try:
            cleared = self.pages.clear_expired_leases(now)
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            raise
        self._log.info("wiki.lease.sweep", cleared=cleared)
        return cleared


__all__ = ["DEFAULT_REASON", "EditLeaseService"]
