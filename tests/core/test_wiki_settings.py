"""ApplicationSettings.wiki() のテスト"""

import logging

import pytest

from core.logging_config import WIKI_LOGGER_NAME, configure_logging, structured_wiki_logger
from core.settings import ApplicationSettings
from domain.wiki.types import ProtectionLevel, WikiRole


def test_defaults_without_configuration():
    settings = ApplicationSettings(env={}).wiki()

    assert settings.lease_ttl_seconds == 600
    assert settings.history_default_limit == 20
    assert settings.history_max_limit == 200
    assert settings.protection.min_role_for(ProtectionLevel.FULL) is WikiRole.MODERATOR
    assert settings.protection.restricted_namespaces == frozenset({"template", "project"})


def test_environment_values_are_parsed():
    settings = ApplicationSettings(
        env={
            "WIKI_LEASE_TTL_SECONDS": "120",
            "WIKI_HISTORY_DEFAULT_LIMIT": "500",
            "WIKI_HISTORY_MAX_LIMIT": "100",
            "WIKI_PROTECTION_MIN_ROLES": '{"full": "admin"}',
            "WIKI_AUTOCONFIRM_LEVELS": "semi, full",
            "WIKI_REVIEWER_MIN_ROLE": "admin",
            "WIKI_RESTRICTED_NAMESPACES": "Template",
            "WIKI_LOG_LEVEL": "debug",
        }
    ).wiki()

    assert settings.lease_ttl_seconds == 120
    assert settings.history_max_limit == 100
    assert settings.history_default_limit == 100
    assert settings.protection.min_role_for(ProtectionLevel.FULL) is WikiRole.ADMIN
    assert settings.protection.min_role_for(ProtectionLevel.SEMI) is WikiRole.EDITOR
    assert settings.protection.autoconfirm_levels == frozenset({ProtectionLevel.SEMI, ProtectionLevel.FULL})
    assert settings.protection.reviewer_min_role is WikiRole.ADMIN
    assert settings.protection.restricted_namespaces == frozenset({"template"})
    assert settings.log_level == "DEBUG"


def test_invalid_role_table_is_reported():
    with pytest.raises(ValueError):
        ApplicationSettings(env={"WIKI_PROTECTION_MIN_ROLES": "[1, 2]"}).wiki()


def test_app_config_takes_precedence(app):
    app.config["WIKI_LEASE_TTL_SECONDS"] = 30

    assert ApplicationSettings(env={"WIKI_LEASE_TTL_SECONDS": "90"}).wiki().lease_ttl_seconds == 30


def test_structured_logger_attaches_event(app, caplog):
    configure_logging(app)
    log = structured_wiki_logger("pages", request_id="r-1")

    with caplog.at_level(logging.INFO, logger=WIKI_LOGGER_NAME):
        log.info("wiki.page.edit", page_id=3)

    record = next(r for r in caplog.records if getattr(r, "event", None) == "wiki.page.edit")
    assert record.name == "wiki.pages"
    assert record.wiki_fields["page_id"] == 3
    assert record.wiki_fields["request_id"] == "r-1"
    assert '"component": "pages"' in record.getMessage()


def test_structured_logger_keeps_its_own_keys(app, caplog):
    configure_logging(app)
    log = structured_wiki_logger("pages")

    with caplog.at_level(logging.INFO, logger=WIKI_LOGGER_NAME):
        log.info("wiki.page.protect", level="full", event="other", ts="yesterday")
        log.error("wiki.page.failed", level="admin")

    protect = next(r for r in caplog.records if getattr(r, "event", None) == "wiki.page.protect")
    assert protect.wiki_fields["level"] == "INFO"
    assert protect.wiki_fields["event"] == "wiki.page.protect"
    assert protect.wiki_fields["ts"] != "yesterday"
    failed = next(r for r in caplog.records if getattr(r, "event", None) == "wiki.page.failed")
    assert failed.levelno == logging.ERROR
