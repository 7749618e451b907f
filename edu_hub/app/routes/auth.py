from __future__ import annotations

from flask import Blueprint, redirect, render_template, request, url_for

from ..errors import AuthenticationError, StoreError
from ..extensions import identity
from ..logging import get_logger
from ..services.auth_service import get_context, get_safe_next_url


bp = Blueprint("auth", __name__)

logger = get_logger(__name__)


@bp.app_context_processor
def inject_portal():
    return {"portal": get_context()}


@bp.get("/auth")
def login():
    if get_context().signed_in:
        return redirect(url_for("portal.dashboard"))
    return render_template("auth.html", error=None, mode=request.args.get("mode") or "signin", form={})


@bp.post("/auth")
def login_post():
    mode = (request.form.get("mode") or "signin").strip()
    form = {k: (request.form.get(k) or "").strip() for k in ("email", "full_name", "role")}
    password = request.form.get("password") or ""

    try:
        if mode == "signup":
            identity().sign_up(form["email"], password, form["full_name"], form["role"])
        else:
            identity().sign_in(form["email"], password)
    except AuthenticationError as e:
        return render_template("auth.html", error=str(e), mode=mode, form=form)
    except StoreError as e:
        logger.error("auth_store_error", mode=mode, error=str(e))
        return render_template("auth.html", error="Something went wrong. Please try again.", mode=mode, form=form)

    return redirect(get_safe_next_url("portal.dashboard"))


@bp.post("/logout")
def logout():
    try:
        identity().sign_out()
    except StoreError as e:
        logger.error("sign_out_failed", error=str(e))
    return redirect(url_for("auth.login"))
