from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from urllib.parse import quote

from flask import g, redirect, request, url_for

from ..errors import StoreError
from ..extensions import get_store, identity, role_cache, role_resolver
from ..logging import get_logger
from ..models import Principal, Role
from .identity_service import Session

logger = get_logger(__name__)


@dataclass(frozen=True)
class PortalContext:
    """Who is asking, built once per request and passed to views explicitly."""

    session: Session | None = None
    principal: Principal | None = None

    @property
    def signed_in(self) -> bool:
        return self.principal is not None

    @property
    def role(self) -> Role:
        return self.principal.role if self.principal else Role.UNKNOWN

    @property
    def is_faculty(self) -> bool:
        return self.principal is not None and self.principal.is_faculty


def _display_name(sess: Session) -> str:
    try:
        rows = get_store().select("profiles", {"id": sess.user_id})
    except StoreError:
        rows = []
    if rows and rows[0].get("full_name"):
        return rows[0]["full_name"]
    return sess.user_metadata.get("full_name") or sess.email


def build_context() -> PortalContext:
    try:
        sess = identity().get_current_session()
    except StoreError as e:
        logger.error("session_lookup_failed", error=str(e))
        return PortalContext()
    if sess is None:
        return PortalContext()
    role = role_cache().get_or_resolve(sess.token, sess.user_id, role_resolver())
    return PortalContext(sess, Principal(sess.user_id, _display_name(sess), role))


def get_context() -> PortalContext:
    if "portal" not in g:
        g.portal = build_context()
    return g.portal


def get_safe_next_url(default_endpoint: str = "portal.dashboard") -> str:
    next_url = (request.args.get("next") or request.form.get("next") or "").strip()
    if next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return url_for(default_endpoint)


def _login_redirect(fallback_endpoint: str):
    # POST-only routes cannot be revisited with a GET after signing in
    next_url = request.path if request.method == "GET" else url_for(fallback_endpoint)
    return redirect(url_for("auth.login", next=next_url))


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not get_context().signed_in:
            return _login_redirect("portal.dashboard")
        return fn(*args, **kwargs)

    return wrapper


def faculty_required(list_endpoint: str):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            ctx = get_context()
            if not ctx.signed_in:
                return _login_redirect(list_endpoint)
            if not ctx.is_faculty:
                return redirect(
                    redirect_with_query(url_for(list_endpoint), "error", "Only faculty can make changes here.")
                )
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def redirect_with_query(url: str, key: str, value: str) -> str:
    sep = "&" if ("?" in url) else "?"
    return f"{url}{sep}{key}={quote(value)}"
