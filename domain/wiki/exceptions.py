"""Wikiドメインで利用する例外定義

いずれも呼び出し元へ返される想定内の結果であり、致命的な障害ではない。
ストレージ層の障害（SQLAlchemyError 等）はここに含めない。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from core.time import isoformat_z


class WikiError(Exception):
    """Wiki機能における基底例外"""

    code = "wiki_error"
    http_status = 400

    def __init__(self, message: str = "", **details: Any) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code)
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        payload.update(self.details)
        return payload


class WikiPageNotFoundError(WikiError):
    """ページが存在しない場合の例外"""

    code = "not_found"
    http_status = 404


class SubmissionNotFoundError(WikiPageNotFoundError):
    """承認待ちの提案が存在しない場合の例外"""


class RevisionNotFoundError(WikiPageNotFoundError):
    """指定したリビジョンが存在しない場合の例外"""


class WikiConflictError(WikiError):
    """同じ (namespace, slug) のページが既に存在する場合の例外"""

    code = "conflict"
    http_status = 409


class RevisionConflictError(WikiError):
    """提案・編集の基準リビジョンが現在の最新リビジョンと一致しない"""

    code = "revision_conflict"
    http_status = 409

    def __init__(self, expected: int, actual: int, message: str = "") -> None:
        super().__init__(
            message or f"expected revision {expected} but page is at revision {actual}",
            expected=expected,
            actual=actual,
        )
        self.expected = expected
        self.actual = actual


class LockHeldError(WikiError):
    """他の利用者が編集リースを保持している"""

    code = "lock_held"
    http_status = 423

    def __init__(
        self,
        holder_id: int,
        expires_at: Optional[datetime],
        holder_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"page is being edited by {holder_name or holder_id}",
            holder_id=holder_id,
            holder_name=holder_name,
            expires_at=isoformat_z(expires_at),
        )
        self.holder_id = holder_id
        self.holder_name = holder_name
        self.expires_at = expires_at


class WikiAccessDeniedError(WikiError):
    """権限不足を表す例外"""

    code = "permission_denied"
    http_status = 403


class WikiValidationError(WikiError):
    """入力値の検証エラー"""

    code = "validation_error"
    http_status = 400


class InvalidSubmissionStateError(WikiError):
    """終端状態などで許可されない遷移を要求された"""

    code = "invalid_state"
    http_status = 409

    def __init__(self, current: str, action: str) -> None:
        super().__init__(
            f"cannot {action} a submission in status {current!r}",
            current=current,
            action=action,
        )
        self.current = current
        self.action = action


__all__ = [
    "InvalidSubmissionStateError",
    "LockHeldError",
    "RevisionConflictError",
    "RevisionNotFoundError",
    "SubmissionNotFoundError",
    "WikiAccessDeniedError",
    "WikiConflictError",
    "WikiError",
    "WikiPageNotFoundError",
    "WikiValidationError",
]
