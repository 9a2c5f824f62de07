"""Centralised application settings abstraction.

This module exposes :class:`ApplicationSettings` which consolidates all
configuration lookups that previously relied on ad-hoc ``os.environ`` access
throughout the codebase.  The class is intentionally lightweight and treats the
Flask configuration (when an application context is active) and then the
process environment as the backing store, returning value objects and sensible
defaults where appropriate.

Wiki components never read configuration themselves: the application factory
builds a :class:`WikiSettings` once and injects it into the engine.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, Mapping, Optional, TYPE_CHECKING, cast

from flask import current_app, has_app_context

from domain.wiki.protection import DEFAULT_MIN_ROLES, ProtectionPolicy
from domain.wiki.types import ProtectionLevel, WikiRole

if TYPE_CHECKING:  # pragma: no cover
    from flask import Flask


DEFAULT_LEASE_TTL_SECONDS = 600
DEFAULT_HISTORY_LIMIT = 20
DEFAULT_HISTORY_MAX_LIMIT = 200


@dataclass(frozen=True)
class _EnvironmentFacade:
    """Thin wrapper that provides ``Mapping`` compatible access to env vars."""

    source: Mapping[str, Any]

    @classmethod
    def from_environ(cls, env: Optional[Mapping[str, Any]] = None) -> "_EnvironmentFacade":
        return cls(source=os.environ if env is None else env)

    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        return self.source.get(key, default)


@dataclass(frozen=True)
class WikiSettings:
    """Wiki エンジンが利用する設定値をまとめた値オブジェクト。"""

    lease_ttl_seconds: int = DEFAULT_LEASE_TTL_SECONDS
    history_default_limit: int = DEFAULT_HISTORY_LIMIT
    history_max_limit: int = DEFAULT_HISTORY_MAX_LIMIT
    protection: ProtectionPolicy = field(default_factory=ProtectionPolicy)
    log_level: str = "INFO"


class ApplicationSettings:
    """Domain level representation of configuration values.

    The class favours explicit properties instead of generic ``get`` access so
    that the rest of the application operates on intent-revealing names.
    """

    def __init__(self, env: Optional[Mapping[str, Any]] = None) -> None:
        self._env = _EnvironmentFacade.from_environ(env)

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------
    def _get(self, key: str, default: Optional[Any] = None):
        if has_app_context():
            app = cast("Flask", current_app)
            if key in app.config:
                return app.config.get(key)

        value = self._env.get(key)
        if value is not None:
            return value
        return default

    def get(self, key: str, default=None):
        """Return the configured value for *key* or *default* if missing."""

        value = self._get(key)
        return default if value is None else value

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Return a boolean configuration value."""

        value = self._get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return bool(value)
        if isinstance(value, str):
            normalised = value.strip().lower()
            if normalised in {"1", "true", "yes", "on"}:
                return True
            if normalised in {"0", "false", "no", "off"}:
                return False
        return default

    def get_int(self, key: str, default: int = 0) -> int:
        """Return an integer configuration value."""

        value = self._get(key)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def get_list(self, key: str, default: Iterable[str] = ()) -> list[str]:
        """Return a list from a sequence value or a comma separated string."""

        value = self._get(key)
        if value is None:
            return list(default)
        if isinstance(value, str):
            return [segment.strip() for segment in value.split(",") if segment.strip()]
        return [str(segment).strip() for segment in value if str(segment).strip()]

    def get_mapping(self, key: str) -> dict[str, str]:
        """Return a mapping from a dict value or a JSON object string."""

        value = self._get(key)
        if value is None or value == "":
            return {}
        if isinstance(value, Mapping):
            return {str(k): str(v) for k, v in value.items()}
        try:
            decoded = json.loads(str(value))
        except ValueError as exc:
            raise ValueError(f"{key} must be a JSON object") from exc
        if not isinstance(decoded, dict):
            raise ValueError(f"{key} must be a JSON object")
        return {str(k): str(v) for k, v in decoded.items()}

    # ------------------------------------------------------------------
    # Generic flags
    # ------------------------------------------------------------------
    @property
    def testing(self) -> bool:
        return self.get_bool("TESTING")

    # ------------------------------------------------------------------
    # Wiki
    # ------------------------------------------------------------------
    @property
    def wiki_lease_ttl_seconds(self) -> int:
        return max(1, self.get_int("WIKI_LEASE_TTL_SECONDS", DEFAULT_LEASE_TTL_SECONDS))

    @property
    def wiki_protection_min_roles(self) -> dict[ProtectionLevel, WikiRole]:
        roles = dict(DEFAULT_MIN_ROLES)
        for level, role in self.get_mapping("WIKI_PROTECTION_MIN_ROLES").items():
            roles[ProtectionLevel.parse(level)] = WikiRole.parse(role)
        return roles

    @property
    def wiki_autoconfirm_levels(self) -> FrozenSet[ProtectionLevel]:
        return frozenset(
            ProtectionLevel.parse(level)
            for level in self.get_list("WIKI_AUTOCONFIRM_LEVELS", ("semi",))
        )

    @property
    def wiki_restricted_namespaces(self) -> FrozenSet[str]:
        return frozenset(
            namespace.lower()
            for namespace in self.get_list("WIKI_RESTRICTED_NAMESPACES", ("template", "project"))
        )

    def _role(self, key: str, default: WikiRole) -> WikiRole:
        value = self._get(key)
        return WikiRole.parse(value) if value else default

    def wiki_protection_policy(self) -> ProtectionPolicy:
        return ProtectionPolicy(
            min_roles=self.wiki_protection_min_roles,
            autoconfirm_levels=self.wiki_autoconfirm_levels,
            autoconfirm_min_edits=self.get_int("WIKI_AUTOCONFIRM_MIN_EDITS", 10),
            autoconfirm_min_days=self.get_int("WIKI_AUTOCONFIRM_MIN_DAYS", 7),
            submit_min_role=self._role("WIKI_SUBMIT_MIN_ROLE", WikiRole.EDITOR),
            reviewer_min_role=self._role("WIKI_REVIEWER_MIN_ROLE", WikiRole.MODERATOR),
            direct_create_min_role=self._role("WIKI_DIRECT_CREATE_MIN_ROLE", WikiRole.MODERATOR),
            restricted_namespaces=self.wiki_restricted_namespaces,
            restricted_namespace_min_role=self._role(
                "WIKI_RESTRICTED_NAMESPACE_MIN_ROLE", WikiRole.MODERATOR
            ),
        )

    def wiki(self) -> WikiSettings:
        """Return a frozen snapshot of every ``WIKI_*`` setting."""

        max_limit = max(1, self.get_int("WIKI_HISTORY_MAX_LIMIT", DEFAULT_HISTORY_MAX_LIMIT))
        default_limit = self.get_int("WIKI_HISTORY_DEFAULT_LIMIT", DEFAULT_HISTORY_LIMIT)
        return WikiSettings(
            lease_ttl_seconds=self.wiki_lease_ttl_seconds,
            history_default_limit=min(max(1, default_limit), max_limit),
            history_max_limit=max_limit,
            protection=self.wiki_protection_policy(),
            log_level=str(self.get("WIKI_LOG_LEVEL", "INFO")).upper(),
        )


__all__ = ["ApplicationSettings", "WikiSettings"]
