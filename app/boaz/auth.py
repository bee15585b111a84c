from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, request, session
from werkzeug.security import check_password_hash

from app.boaz.api import ApiError, ok
from app.boaz.audit import record_event
from app.boaz.db import db_session
from app.boaz.models import User
from app.boaz.security import ensure_csrf_token

bp = Blueprint("auth", __name__)


class LoginThrottle:
    """Per-IP sliding window of login attempts, kept in process memory."""

    def __init__(self, limit: int = 5, window_seconds: int = 300):
        self.limit = limit
        self.window = timedelta(seconds=window_seconds)
        self._attempts: dict[str, list[datetime]] = defaultdict(list)

    def blocked(self, ip: str) -> bool:
        cutoff = datetime.utcnow() - self.window
        recent = [t for t in self._attempts[ip] if t > cutoff]
        self._attempts[ip] = recent
        return len(recent) >= self.limit

    def hit(self, ip: str) -> None:
        self._attempts[ip].append(datetime.utcnow())

    def reset(self, ip: str | None = None) -> None:
        if ip is None:
            self._attempts.clear()
        else:
            self._attempts.pop(ip, None)


login_throttle = LoginThrottle()


def extract_api_key() -> str | None:
    header = request.headers.get("X-Boaz-Api-Key") or request.headers.get("X-Api-Key")
    if header and header.strip():
        return header.strip()
    auth = request.headers.get("Authorization") or ""
    if auth.startswith("Bearer "):
        tok = auth[7:].strip()
        if tok:
            return tok
    return None


def load_current_user() -> None:
    """
    Loads g.current_user from an API key header or the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.api_key = None
    if request.path.startswith(("/static/", "/health", "/healthz")):
        g.current_user = None
        return

    raw_key = extract_api_key()
    if raw_key:
        from app.boaz.modules.integrations.service import resolve_api_key

        s = db_session()
        key = resolve_api_key(s, raw_key)
        if key is None:
            raise ApiError("invalid_api_key", 401)
        user = s.get(User, key.created_by_user_id) if key.created_by_user_id else None
        if not user or not user.is_active:
            raise ApiError("invalid_api_key", 401)
        g.api_key = key
        g.current_user = user
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    s = db_session()
    user = s.get(User, int(user_id))
    if not user or not user.is_active:
        session.pop("user_id", None)
        g.current_user = None
        return
    g.current_user = user


def _login_payload() -> tuple[str, str]:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return (str(data.get("email") or "").strip().lower(), str(data.get("password") or ""))
    return ((request.form.get("email") or "").strip().lower(), request.form.get("password") or "")


@bp.post("/login")
def login_post():
    email, password = _login_payload()
    ip = request.remote_addr or "unknown"

    if login_throttle.blocked(ip):
        raise ApiError("too_many_attempts", 429)
    login_throttle.hit(ip)

    s = db_session()
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, password):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
            metadata={"email": email},
        )
        s.commit()
        current_app.logger.info("Login failed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise ApiError("invalid_credentials", 401)

    session.clear()
    session["user_id"] = user.id
    session.permanent = True
    login_throttle.reset(ip)
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    return ok({"user": user.to_dict(), "csrf_token": ensure_csrf_token()})


@bp.post("/logout")
def logout():
    s = db_session()
    user = getattr(g, "current_user", None)
    if user:
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.clear()
    return ok({"ok": True})


@bp.get("/me")
def me():
    user = getattr(g, "current_user", None)
    if not user:
        raise ApiError("unauthorized", 401)
    return ok({"user": user.to_dict(), "csrf_token": ensure_csrf_token()})
