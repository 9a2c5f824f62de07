"""Wikiエンジンの組み立て

設定・セッション・時計を受け取り、各サービスを1組にまとめる。
Flask アプリでは ``app.extensions["wiki_engine"]`` に1つだけ保持する。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from flask import current_app, has_app_context
from sqlalchemy.orm import Session

from core.settings import ApplicationSettings, WikiSettings
from core.time import Clock, utc_now
from domain.wiki.commands import WikiPageCommandFactory
from domain.wiki.protection import ProtectionGate
from infrastructure.wiki.repositories import (
    WikiPageRepository,
    WikiRevisionRepository,
    WikiSubmissionRepository,
)

from .edit_lease import EditLeaseService
from .page_store import PageStore
from .revision_log import RevisionLog
from .submissions import SubmissionWorkflow


EXTENSION_KEY = "wiki_engine"


@dataclass(frozen=True)
class WikiEngine:
    settings: WikiSettings
    gate: ProtectionGate
    revisions: RevisionLog
    leases: EditLeaseService
    pages: PageStore
    submissions: SubmissionWorkflow
    commands: WikiPageCommandFactory
    clock: Clock


def build_wiki_engine(
    settings: Optional[WikiSettings] = None,
    session: Optional[Session] = None,
    clock: Clock = utc_now,
) -> WikiEngine:
    """設定値から各サービスを生成する

    ``session`` を省略するとリクエスト単位の Flask-SQLAlchemy セッションを使う。
    """

    settings = settings or WikiSettings()
    page_repo = WikiPageRepository(session)
    revisions = RevisionLog(
        WikiRevisionRepository(session),
        clock=clock,
        default_limit=settings.history_default_limit,
        max_limit=settings.history_max_limit,
    )
    store = PageStore(page_repo, revisions, clock=clock)
    return WikiEngine(
        settings=settings,
        gate=ProtectionGate(settings.protection, clock=clock),
        revisions=revisions,
        leases=EditLeaseService(page_repo, ttl_seconds=settings.lease_ttl_seconds, clock=clock),
        pages=store,
        submissions=SubmissionWorkflow(store, WikiSubmissionRepository(session), clock=clock),
        commands=WikiPageCommandFactory(),
        clock=clock,
    )


def current_wiki_engine() -> WikiEngine:
    """アプリに登録されたエンジン、無ければ現在の設定から生成したエンジン"""

    if has_app_context():
        engine = current_app.extensions.get(EXTENSION_KEY)
        if engine is not None:
            return engine
    return build_wiki_engine(ApplicationSettings().wiki())


__all__ = ["EXTENSION_KEY", "WikiEngine", "build_wiki_engine", "current_wiki_engine"]
