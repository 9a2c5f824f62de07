import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

os.environ.setdefault("TESTING", "true")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class FakeClock:
    """テストから進められる時計"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self.now = self.now + timedelta(seconds=seconds, **kwargs)
        return self.now


@pytest.fixture
def app_context():
    """アプリケーションコンテキストを提供するfixture"""
    from tests.config import TestConfig
    from webapp import create_app
    from webapp.extensions import db

    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app(app_context):
    return app_context


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    from webapp.extensions import db

    return db.session


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def wiki_settings():
    from core.settings import WikiSettings

    return WikiSettings(lease_ttl_seconds=600, history_default_limit=20, history_max_limit=50)


@pytest.fixture
def engine(app, wiki_settings, clock):
    from application.wiki.engine import build_wiki_engine

    return build_wiki_engine(wiki_settings, clock=clock)


def _actor(actor_id, role, **kwargs):
    from domain.wiki.types import Actor

    return Actor(id=actor_id, role=role, **kwargs)


@pytest.fixture
def viewer():
    return _actor(1, "viewer", name="viewer")


@pytest.fixture
def editor():
    return _actor(2, "editor", name="editor")


@pytest.fixture
def other_editor():
    return _actor(3, "editor", name="other-editor")


@pytest.fixture
def moderator():
    return _actor(4, "moderator", name="moderator")


@pytest.fixture
def admin():
    return _actor(5, "admin", name="admin")


@pytest.fixture
def page_factory(engine, moderator):
    """main 名前空間にページを作る"""

    def _create(slug="Test", content="Hello", title=None, author=None, namespace="main"):
        return engine.pages.create(namespace, slug, title or slug, content, author or moderator)

    return _create
