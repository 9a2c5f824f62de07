"""HTTP リクエストから操作主体（Actor）を解決する

認証そのものは上流（リバースプロキシや認証ゲートウェイ）の責務とし、
ここでは信頼済みヘッダーを読み取るだけにする。
``WIKI_ACTOR_RESOLVER`` に ``callable(request) -> Actor | None`` を設定すると差し替えられる。
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from flask import Request, current_app, request
from flask_smorest import abort

from core.time import ensure_utc
from domain.wiki.types import Actor, WikiRole


ActorResolver = Callable[[Request], Optional[Actor]]


def _header(req: Request, name: str) -> Optional[str]:
    prefix = current_app.config.get("WIKI_ACTOR_HEADER_PREFIX", "X-Wiki-Actor-")
    value = req.headers.get(f"{prefix}{name}")
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_since(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(value))


def header_actor_resolver(req: Request) -> Optional[Actor]:
    """``X-Wiki-Actor-*`` ヘッダーから Actor を組み立てる"""

    raw_id = _header(req, "Id")
    if raw_id is None:
        return None
    try:
        return Actor(
            id=int(raw_id),
            role=WikiRole.parse(_header(req, "Role") or WikiRole.VIEWER.value),
            name=_header(req, "Name") or "",
            edit_count=int(_header(req, "Edits") or 0),
            registered_at=_parse_since(_header(req, "Since")),
        )
    except ValueError as exc:
        abort(400, message=f"invalid actor headers: {exc}")


def _resolver() -> ActorResolver:
    return current_app.config.get("WIKI_ACTOR_RESOLVER") or header_actor_resolver


def optional_actor() -> Optional[Actor]:
    return _resolver()(request)


def require_actor() -> Actor:
    actor = optional_actor()
    if actor is None:
        abort(401, message="authentication required")
    return actor


__all__ = ["ActorResolver", "header_actor_resolver", "optional_actor", "require_actor"]
