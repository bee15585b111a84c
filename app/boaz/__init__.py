import logging
import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, request, session

from app.boaz.api import fail, register_error_handlers
from app.boaz.auth import bp as auth_bp, load_current_user
from app.boaz.config import load_config
from app.boaz.db import init_db, teardown_db_session
from app.boaz.modules.accounting.admin import bp as accounting_bp
from app.boaz.modules.accounts.admin import bp as accounts_bp
from app.boaz.modules.approvals.admin import bp as approvals_bp
from app.boaz.modules.assets.admin import bp as assets_bp
from app.boaz.modules.contracts.admin import bp as contracts_bp
from app.boaz.modules.contracts.public import bp as contracts_public_bp
from app.boaz.modules.customer_success.admin import bp as customer_success_bp
from app.boaz.modules.integrations.admin import bp as integrations_bp
from app.boaz.modules.marketing_social.admin import bp as marketing_social_bp
from app.boaz.modules.stratflow.admin import bp as stratflow_bp
from app.boaz.modules.support.admin import bp as support_bp
from app.boaz.modules.tasks.admin import bp as tasks_bp
from app.boaz.routes import bp as routes_bp
from app.boaz.security import ensure_csrf_token, validate_csrf

logger = logging.getLogger(__name__)

BLUEPRINTS = (
    (routes_bp, None),
    (auth_bp, "/auth"),
    (accounts_bp, "/api/crm/accounts"),
    (support_bp, "/api/crm/support"),
    (customer_success_bp, "/api/crm/success"),
    (tasks_bp, "/api/crm/tasks"),
    (contracts_bp, "/api/crm"),
    (contracts_public_bp, "/public/sign"),
    (approvals_bp, "/api/approvals"),
    (stratflow_bp, "/api/stratflow"),
    (accounting_bp, "/api/accounting"),
    (assets_bp, "/api/assets"),
    (marketing_social_bp, "/api/marketing/social"),
    (integrations_bp, "/api/integrations"),
)

# Endpoints reachable without a CSRF token (no session state to protect, or
# they establish the session themselves).
_CSRF_EXEMPT_BLUEPRINTS = ("auth.", "contracts_public.", "routes.")
_UNGUARDED_PATHS = ("/static/", "/health", "/healthz")
_MUTATING_METHODS = ("POST", "PUT", "PATCH", "DELETE")


def _check_production_config(app: Flask) -> None:
    """Refuse to boot a production app on SQLite or with the default secret."""
    env = (app.config.get("ENV") or "").strip().lower()
    if env not in ("prod", "production"):
        return
    db_url = str(app.config.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL is required in production.")
    if db_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    if str(app.config.get("SECRET_KEY") or "") in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")


def _dispose_engine_after_fork(app: Flask) -> None:
    # gunicorn --preload forks workers after the pool exists.
    if not hasattr(os, "register_at_fork"):
        return

    def _after_fork_child():
        engine = app.extensions.get("sqlalchemy_engine")
        if engine:
            engine.dispose()
            app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

    os.register_at_fork(after_in_child=_after_fork_child)


def _warn_on_storage_config(app: Flask) -> None:
    if app.config.get("STORAGE_BACKEND") != "s3":
        return
    missing = [k for k in ("S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY") if not app.config.get(k)]
    if missing:
        app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing))


def _load_user():
    if request.path.startswith(_UNGUARDED_PATHS):
        g.current_user = None
        g.api_key = None
        return None
    return load_current_user()


def _csrf_guard():
    if request.path.startswith(_UNGUARDED_PATHS) or getattr(g, "api_key", None) is not None:
        return None
    ensure_csrf_token()
    session.permanent = True
    if request.method not in _MUTATING_METHODS:
        return None
    if (request.endpoint or "").startswith(_CSRF_EXEMPT_BLUEPRINTS):
        return None
    if not validate_csrf(request):
        return fail("csrf_invalid", 400)
    return None


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    _check_production_config(app)
    init_db(app)
    _dispose_engine_after_fork(app)
    _warn_on_storage_config(app)

    register_error_handlers(app)
    for blueprint, prefix in BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=prefix)

    app.before_request(_load_user)
    app.before_request(_csrf_guard)
    app.teardown_appcontext(teardown_db_session)

    logger.info("create_app() complete; %d blueprints registered", len(BLUEPRINTS))
    return app
