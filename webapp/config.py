import os

from dotenv import load_dotenv

load_dotenv()


def _env(name: str, default=None):
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value


class BaseApplicationSettings:
    """Base Flask application configuration populated from the environment."""

    SECRET_KEY = _env("SECRET_KEY", "change-me")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    db_uri = _env("DATABASE_URI", "sqlite://")
    SQLALCHEMY_DATABASE_URI = db_uri

    # Database stability
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }

    if not db_uri.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS.update({
            "pool_size": 10,
            "max_overflow": 20,
        })
        if db_uri.startswith("mysql"):
            SQLALCHEMY_ENGINE_OPTIONS["connect_args"] = {"connect_timeout": 10}

    # OpenAPI (flask-smorest)
    API_TITLE = "wikiledger API"
    API_VERSION = "1.0.0"
    OPENAPI_VERSION = "3.0.3"
    OPENAPI_URL_PREFIX = "/api"
    OPENAPI_JSON_PATH = "openapi.json"

    # Wiki engine
    WIKI_LEASE_TTL_SECONDS = _env("WIKI_LEASE_TTL_SECONDS", 600)
    WIKI_PROTECTION_MIN_ROLES = _env("WIKI_PROTECTION_MIN_ROLES")
    WIKI_AUTOCONFIRM_LEVELS = _env("WIKI_AUTOCONFIRM_LEVELS", "semi")
    WIKI_AUTOCONFIRM_MIN_EDITS = _env("WIKI_AUTOCONFIRM_MIN_EDITS", 10)
    WIKI_AUTOCONFIRM_MIN_DAYS = _env("WIKI_AUTOCONFIRM_MIN_DAYS", 7)
    WIKI_SUBMIT_MIN_ROLE = _env("WIKI_SUBMIT_MIN_ROLE", "editor")
    WIKI_REVIEWER_MIN_ROLE = _env("WIKI_REVIEWER_MIN_ROLE", "moderator")
    WIKI_DIRECT_CREATE_MIN_ROLE = _env("WIKI_DIRECT_CREATE_MIN_ROLE", "moderator")
    WIKI_RESTRICTED_NAMESPACES = _env("WIKI_RESTRICTED_NAMESPACES", "template,project")
    WIKI_RESTRICTED_NAMESPACE_MIN_ROLE = _env("WIKI_RESTRICTED_NAMESPACE_MIN_ROLE", "moderator")
    WIKI_HISTORY_DEFAULT_LIMIT = _env("WIKI_HISTORY_DEFAULT_LIMIT", 20)
    WIKI_HISTORY_MAX_LIMIT = _env("WIKI_HISTORY_MAX_LIMIT", 200)
    WIKI_LOG_LEVEL = _env("WIKI_LOG_LEVEL", "INFO")

    # Trusted upstream headers carrying the already authenticated actor
    WIKI_ACTOR_HEADER_PREFIX = _env("WIKI_ACTOR_HEADER_PREFIX", "X-Wiki-Actor-")


Config = BaseApplicationSettings
