"""
Wiki機能のAPI Blueprint
"""

from flask_smorest import Blueprint

bp = Blueprint(
    "wiki",
    __name__,
    url_prefix="/api/wiki",
    description="バージョン管理付きWikiドキュメントAPI",
)

from . import routes  # noqa: E402,F401
