"""Slug / namespace に関するドメインサービスおよび値オブジェクト。"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

from domain.wiki.exceptions import WikiValidationError


DEFAULT_NAMESPACE = "main"
MAX_SLUG_LENGTH = 255


@dataclass(frozen=True)
class Slug:
    """Wiki ドメインで利用するスラッグを表す値オブジェクト。"""

    value: str

    def __post_init__(self) -> None:
        normalized = (self.value or "").strip()
        if not normalized:
            raise WikiValidationError("slug must not be empty")
        object.__setattr__(self, "value", normalized)

    def __str__(self) -> str:  # pragma: no cover - dataclass repr helper
        return self.value


class SlugNormalizer:
    """テキストからスラッグ文字列を生成する正規化コンポーネント。

    ハングルや日本語などの文字は ``\\w`` として残す。
    """

    _INVALID_PATTERN = re.compile(r"[^\w\s-]", re.UNICODE)
    _HYPHEN_PATTERN = re.compile(r"[-\s]+")

    def normalize(self, text: str) -> str:
        if not text:
            return ""

        normalized = unicodedata.normalize("NFKC", text)
        normalized = normalized.lower()
        normalized = self._INVALID_PATTERN.sub("", normalized)
        normalized = self._HYPHEN_PATTERN.sub("-", normalized)
        return normalized.strip("-")


class SlugService:
    """スラッグと名前空間に関するドメインサービス。"""

    _VALID_PATTERN = re.compile(r"^[\w-]+$", re.UNICODE)
    _NAMESPACE_PATTERN = re.compile(r"^[a-z][a-z0-9_-]{0,31}$")

    def __init__(self, normalizer: SlugNormalizer | None = None) -> None:
        self._normalizer = normalizer or SlugNormalizer()

    def generate_from_text(self, text: str) -> Slug:
        """任意のテキストからスラッグを生成する。"""

        normalized = self._normalizer.normalize(text)
        if not normalized:
            raise WikiValidationError("normalized slug must not be empty")
        return Slug(normalized[:MAX_SLUG_LENGTH])

    def from_user_input(self, slug: str) -> Slug:
        """ユーザー入力済みのスラッグから値オブジェクトを生成する。"""

        candidate = (slug or "").strip()
        if not candidate:
            raise WikiValidationError("slug must not be blank")
        if len(candidate) > MAX_SLUG_LENGTH or not self.is_valid(candidate):
            raise WikiValidationError(f"malformed slug: {candidate!r}")
        return Slug(candidate)

    def resolve(self, slug: str | None, title: str) -> Slug:
        """明示スラッグがあれば検証し、無ければタイトルから生成する。"""

        if slug and slug.strip():
            return self.from_user_input(slug)
        return self.generate_from_text(title)

    def namespace(self, value: str | None) -> str:
        candidate = (value or "").strip().lower() or DEFAULT_NAMESPACE
        if not self._NAMESPACE_PATTERN.match(candidate):
            raise WikiValidationError(f"malformed namespace: {candidate!r}")
        return candidate

    @staticmethod
    def is_valid(slug: str) -> bool:
        if not slug:
            return False
        return bool(SlugService._VALID_PATTERN.match(slug))


__all__ = ["DEFAULT_NAMESPACE", "Slug", "SlugNormalizer", "SlugService"]
