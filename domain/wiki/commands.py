"""Wikiページ操作に利用するドメインコマンドとファクトリ。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from domain.wiki.exceptions import WikiValidationError
from domain.wiki.slug import SlugService
from domain.wiki.types import ProtectionLevel


MAX_TITLE_LENGTH = 255
MAX_SUMMARY_LENGTH = 500


@dataclass(frozen=True)
class PageCreationCommand:
    """ページ作成に必要な値を正規化したコマンド。"""

    namespace: str
    slug: str
    title: str
    content: str
    summary: str | None
    categories: Tuple[str, ...]


@dataclass(frozen=True)
class PageEditCommand:
    """ページ編集に必要な値を正規化したコマンド。"""

    namespace: str
    slug: str
    content: str
    summary: str | None
    expected_revision: int | None


@dataclass(frozen=True)
class PageMoveCommand:
    namespace: str
    slug: str
    new_slug: str
    new_title: str
    reason: str | None


@dataclass(frozen=True)
class PageProtectionCommand:
    namespace: str
    slug: str
    level: ProtectionLevel
    reason: str | None


class WikiPageCommandFactory:
    """入力値を正規化しドメインコマンドへ変換するファクトリ。"""

    def __init__(self, slug_service: SlugService | None = None) -> None:
        self._slugs = slug_service or SlugService()

    def build_creation_command(
        self,
        *,
        namespace: str | None,
        title: str,
        content: str,
        slug: str | None = None,
        summary: str | None = None,
        categories: Iterable[str | None] = (),
    ) -> PageCreationCommand:
        normalized_title = self._normalize_required(title, "title is required")
        if len(normalized_title) > MAX_TITLE_LENGTH:
            raise WikiValidationError("title is too long")
        normalized_content = self._require_content(content)

        return PageCreationCommand(
            namespace=self._slugs.namespace(namespace),
            slug=self._slugs.resolve(slug, normalized_title).value,
            title=normalized_title,
            content=normalized_content,
            summary=self._normalize_summary(summary),
            categories=self._normalize_categories(categories),
        )

    def build_edit_command(
        self,
        *,
        namespace: str | None,
        slug: str,
        content: str,
        summary: str | None = None,
        expected_revision: str | int | None = None,
    ) -> PageEditCommand:
        return PageEditCommand(
            namespace=self._slugs.namespace(namespace),
            slug=self._slugs.from_user_input(slug).value,
            content=self._require_content(content),
            summary=self._normalize_summary(summary),
            expected_revision=self._parse_optional_revision(expected_revision),
        )

    def build_move_command(
        self,
        *,
        namespace: str | None,
        slug: str,
        new_title: str,
        new_slug: str | None = None,
        reason: str | None = None,
    ) -> PageMoveCommand:
        normalized_title = self._normalize_required(new_title, "new title is required")
        return PageMoveCommand(
            namespace=self._slugs.namespace(namespace),
            slug=self._slugs.from_user_input(slug).value,
            new_slug=self._slugs.resolve(new_slug, normalized_title).value,
            new_title=normalized_title,
            reason=self._normalize_summary(reason),
        )

    def build_protection_command(
        self,
        *,
        namespace: str | None,
        slug: str,
        level: str | ProtectionLevel,
        reason: str | None = None,
    ) -> PageProtectionCommand:
        try:
            parsed_level = ProtectionLevel.parse(level)
        except ValueError as exc:
            raise WikiValidationError(str(exc)) from exc
        return PageProtectionCommand(
            namespace=self._slugs.namespace(namespace),
            slug=self._slugs.from_user_input(slug).value,
            level=parsed_level,
            reason=self._normalize_summary(reason),
        )

    @staticmethod
    def _normalize_required(value: str | None, error_message: str) -> str:
        normalized = (value or "").strip()
        if not normalized:
            raise WikiValidationError(error_message)
        return normalized

    @staticmethod
    def _require_content(value: str | None) -> str:
        # 本文は空白も含めてそのまま保存する
        if not (value or "").strip():
            raise WikiValidationError("content is required")
        return value  # type: ignore[return-value]

    @staticmethod
    def _normalize_summary(value: str | None) -> str | None:
        normalized = (value or "").strip()
        if len(normalized) > MAX_SUMMARY_LENGTH:
            raise WikiValidationError("summary is too long")
        return normalized or None

    @staticmethod
    def _parse_optional_revision(value: str | int | None) -> int | None:
        if value in (None, ""):
            return None
        try:
            parsed = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise WikiValidationError("expected revision must be an integer") from exc
        if parsed < 1:
            raise WikiValidationError("expected revision must be positive")
        return parsed

    @staticmethod
    def _normalize_categories(values: Iterable[str | None]) -> Tuple[str, ...]:
        result: list[str] = []
        for value in values or []:
            normalized = (value or "").strip()
            if normalized and normalized not in result:
                result.append(normalized)
        return tuple(result)


__all__ = [
    "PageCreationCommand",
    "PageEditCommand",
    "PageMoveCommand",
    "PageProtectionCommand",
    "WikiPageCommandFactory",
]
