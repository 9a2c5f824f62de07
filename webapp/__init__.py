import json
import time
from uuid import uuid4

from flask import Flask, g, request

from core.logging_config import configure_logging
from core.settings import ApplicationSettings

from .extensions import api as smorest_api, db, migrate
from .error_handlers import register_error_handlers


_SENSITIVE_KEYS = ("password", "secret", "token")
_MAX_LOGGED_CONTENT = 200


def _mask_sensitive_data(data):
    """ログ出力前に秘匿値を伏せ、長い本文を切り詰める"""
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if any(marker in str(key).lower() for marker in _SENSITIVE_KEYS):
                masked[key] = "***"
            else:
                masked[key] = _mask_sensitive_data(value)
        return masked
    if isinstance(data, list):
        return [_mask_sensitive_data(item) for item in data]
    if isinstance(data, str) and len(data) > _MAX_LOGGED_CONTENT:
        return f"{data[:_MAX_LOGGED_CONTENT]}... ({len(data)} chars)"
    return data


def create_app(config_object=None):
    """アプリケーションファクトリ"""
    from .config import Config
    from werkzeug.middleware.proxy_fix import ProxyFix

    app = Flask(__name__)
    app.config.from_object(Config)
    if config_object is not None:
        app.config.from_object(config_object)
    app.config.setdefault("API_TITLE", "wikiledger API")
    app.config.setdefault("API_VERSION", "1.0.0")
    app.config.setdefault("OPENAPI_VERSION", "3.0.3")
    app.config.setdefault("OPENAPI_URL_PREFIX", "/api")
    app.config.setdefault("OPENAPI_JSON_PATH", "openapi.json")
    app.config.setdefault("API_SPEC_OPTIONS", {})

    # Actor ヘッダーは上流プロキシが付与する前提
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    # 拡張初期化
    db.init_app(app)
    migrate.init_app(app, db)
    smorest_api.init_app(app)
    configure_logging(app)

    # Wiki エンジン（設定はここで1度だけ読む）
    from application.wiki.engine import EXTENSION_KEY, build_wiki_engine

    app.extensions[EXTENSION_KEY] = build_wiki_engine(ApplicationSettings(env=app.config).wiki())

    from .wiki import bp as wiki_bp

    smorest_api.register_blueprint(wiki_bp)

    # smorest のハンドラより後に登録して上書きする
    register_error_handlers(app)

    # CLI コマンド登録
    register_cli_commands(app)

    @app.before_request
    def start_timer():
        g.start_time = time.perf_counter()

    @app.before_request
    def log_api_request():
        if request.path.startswith("/api"):
            req_id = str(uuid4())
            g.request_id = req_id
            log_dict = {"method": request.method}
            args_dict = request.args.to_dict()
            if args_dict:
                log_dict["args"] = _mask_sensitive_data(args_dict)
            input_json = request.get_json(silent=True)
            if input_json is not None:
                log_dict["json"] = _mask_sensitive_data(input_json)
            app.logger.info(
                json.dumps(log_dict, ensure_ascii=False, default=str),
                extra={
                    "event": "api.input",
                    "request_id": req_id,
                    "path": request.path,
                },
            )

    @app.after_request
    def log_api_response(response):
        if request.path.startswith("/api"):
            started = getattr(g, "start_time", None)
            payload = {"status": response.status_code}
            if started is not None:
                payload["elapsed_ms"] = round((time.perf_counter() - started) * 1000, 2)
            if response.mimetype == "application/json" and response.status_code >= 400:
                payload["json"] = _mask_sensitive_data(response.get_json(silent=True))
            log_extra = {
                "event": "api.output",
                "request_id": getattr(g, "request_id", None),
                "path": request.path,
            }
            message = json.dumps(payload, ensure_ascii=False, default=str)
            if response.status_code >= 400:
                app.logger.warning(message, extra=log_extra)
            else:
                app.logger.info(message, extra=log_extra)
        return response

    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if db_uri.startswith("sqlite://"):
        import core.models  # noqa: F401

        with app.app_context():
            db.create_all()

    return app


def register_cli_commands(app):
    """CLI コマンドを登録"""
    import click

    from application.wiki.engine import current_wiki_engine

    @app.cli.group("wiki")
    def wiki_cli():
        """Wiki エンジンの保守コマンド"""

    @wiki_cli.command("sweep-leases")
    def sweep_leases():
        """期限切れの編集リースを一括で解除"""
        cleared = current_wiki_engine().leases.sweep_expired()
        click.echo(f"Cleared {cleared} expired lease(s).")

    @wiki_cli.command("submissions")
    def submission_counts():
        """承認待ちキューの状態別件数を表示"""
        counts = current_wiki_engine().submissions.count_by_status()
        for status, count in counts.items():
            click.echo(f"{status.value}: {count}")


__all__ = ["create_app", "register_cli_commands"]
